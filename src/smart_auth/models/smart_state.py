from datetime import datetime, timezone

from pydantic import BaseModel

from .oauth_token_response import TokenResponse


class SmartState(BaseModel):
    """Everything needed to rebuild an authorized FHIR client.

    Stored as JSON under `key`. Before the code exchange only the flow fields
    are set; `token_response` and `expires_at` are filled in once the
    authorization server has issued tokens.
    """

    key: str
    server_url: str
    client_id: str
    client_secret: str | None = None
    scope: str = ""
    redirect_uri: str
    authorize_uri: str | None = None
    token_uri: str | None = None
    code_verifier: str | None = None
    token_response: TokenResponse | None = None
    expires_at: datetime | None = None

    @property
    def access_token(self) -> str | None:
        if self.token_response:
            return self.token_response.access_token

        return None

    @property
    def refresh_token(self) -> str | None:
        if self.token_response:
            return self.token_response.refresh_token

        return None

    def is_expired(self, leeway: int = 0) -> bool:
        if self.expires_at is None:
            return False

        return self.expires_at.timestamp() - leeway <= datetime.now(
            tz=timezone.utc
        ).timestamp()
