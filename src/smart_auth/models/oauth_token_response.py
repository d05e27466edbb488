from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, RootModel


class TokenResponse(BaseModel):
    # SMART servers add launch context and vendor fields next to the tokens
    model_config = ConfigDict(extra="allow")

    token_type: str = Field(description="The type of token, usually 'Bearer'")

    access_token: str = Field(description="The issued access token")
    expires_in: int | None = Field(
        None, description="Lifetime of the access token in seconds"
    )
    refresh_token: str | None = Field(
        None, description="Token used to obtain new access tokens"
    )
    scope: str | None = Field(
        None,
        description="Space-delimited list of scopes associated with the access token",
    )
    id_token: str | None = Field(
        None,
        description="OpenID Connect ID token returned alongside access token",
    )
    patient: str | None = Field(
        None, description="Id of the patient selected during launch"
    )
    encounter: str | None = Field(
        None, description="Id of the encounter selected during launch"
    )
    need_patient_banner: bool | None = Field(
        None, description="Whether the app should display a patient banner"
    )
    smart_style_url: str | None = Field(
        None, description="URL of the EHR's style parameters"
    )

    @property
    def access_token_expires_at(self) -> datetime | None:
        if self.expires_in:
            return datetime.now(tz=timezone.utc) + timedelta(seconds=self.expires_in)

        return None


class TokenErrorResponse(BaseModel):
    error: str = Field(description="Error code as per OAuth 2.0 specification")
    error_description: str | None = Field(
        None, description="Human-readable explanation of the error"
    )
    error_uri: HttpUrl | None = Field(
        None, description="URI to a web page with more information about the error"
    )


class OAuth2TokenEndpointResponse(RootModel):
    root: TokenResponse | TokenErrorResponse

    def is_error(self) -> bool:
        return isinstance(self.root, TokenErrorResponse)
