from urllib.parse import urlparse


def join_url(base_url: str, path: str) -> str:
    """
    Join a path onto a base URL.

    Absolute URLs are returned unchanged, so callers can pass either a path
    relative to the FHIR base (e.g. "Patient/123") or a full URL taken from a
    server response (e.g. a Bundle's next link).

    Args:
        base_url: The base URL, with or without a trailing slash
        path: A relative path or an absolute URL

    Returns:
        The joined URL
    """
    if urlparse(path).scheme:
        return path

    if not path:
        return base_url

    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"
