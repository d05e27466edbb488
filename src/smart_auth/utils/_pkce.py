import base64
import hashlib
import secrets


def generate_code_verifier() -> str:
    """Generate a PKCE code verifier (43-128 characters)."""
    return (
        base64.urlsafe_b64encode(secrets.token_bytes(32)).rstrip(b"=").decode("ascii")
    )


def calculate_s256_challenge(verifier: str) -> str:
    sha256_digest = hashlib.sha256(verifier.encode("ascii")).digest()

    challenge = base64.urlsafe_b64encode(sha256_digest).rstrip(b"=").decode("ascii")

    return challenge
