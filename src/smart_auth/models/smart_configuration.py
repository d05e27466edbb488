from pydantic import BaseModel, ConfigDict, Field


class SmartConfiguration(BaseModel):
    """The parts of `.well-known/smart-configuration` we rely on.

    Both endpoints are None for open servers.
    """

    model_config = ConfigDict(extra="ignore")

    authorization_endpoint: str | None = None
    token_endpoint: str | None = None
    code_challenge_methods_supported: list[str] = Field(default_factory=list)
    capabilities: list[str] = Field(default_factory=list)

    @property
    def is_open_server(self) -> bool:
        return self.authorization_endpoint is None

    @property
    def supports_pkce(self) -> bool:
        return "S256" in self.code_challenge_methods_supported
