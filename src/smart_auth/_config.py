from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ._storage import StorageAdapter, session_storage


@dataclass(frozen=True)
class SmartConfig:
    """Static configuration for the SMART authorization flow."""

    client_id: str

    # Where the browser ends up once the flow has completed
    redirect_uri: str

    # FHIR base used when the request doesn't name one (standalone launch)
    server_url: str | None = None

    # Confidential clients only
    client_secret: str | None = None

    scope: str = "openid fhirUser offline_access"

    # OAuth redirect_uri registered with the authorization server.
    # Defaults to redirect_uri
    callback_uri: str | None = None

    get_storage: Callable[[Any], StorageAdapter] = session_storage

    @property
    def oauth_redirect_uri(self) -> str:
        return self.callback_uri or self.redirect_uri
