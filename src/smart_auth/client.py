import logging
from typing import Any

import httpx

from smart_auth.exceptions import SmartAuthException
from smart_auth.utils._url import join_url

from ._storage import StorageAdapter
from .models.smart_state import SmartState
from .oauth import build_token_auth, send_token_request

logger = logging.getLogger(__name__)

# Refresh this many seconds before the access token actually expires
EXPIRY_LEEWAY = 10


class FhirClient:
    """A FHIR client bound to one authorized SMART state.

    Token refreshes are written back to the storage the state came from, so
    the next request picks up the new tokens.
    """

    def __init__(self, state: SmartState, storage: StorageAdapter | None = None):
        self._state = state
        self.storage = storage

    @property
    def state(self) -> SmartState:
        return self._state

    @property
    def server_url(self) -> str:
        return self._state.server_url

    @property
    def access_token(self) -> str | None:
        return self._state.access_token

    @property
    def patient_id(self) -> str | None:
        if self._state.token_response:
            return self._state.token_response.patient

        return None

    @property
    def encounter_id(self) -> str | None:
        if self._state.token_response:
            return self._state.token_response.encounter

        return None

    def is_expired(self) -> bool:
        return self._state.is_expired(leeway=EXPIRY_LEEWAY)

    def can_refresh(self) -> bool:
        return bool(self._state.refresh_token and self._state.token_uri)

    async def refresh(self) -> SmartState:
        """Use the refresh token to obtain a new access token.

        Raises:
            SmartAuthException: If there is nothing to refresh with or the
                token endpoint rejects the request
        """
        if not self.can_refresh():
            raise SmartAuthException(
                "invalid_request",
                error_description=(
                    "Unable to refresh. No refresh_token or token endpoint found."
                ),
                status_code=400,
            )

        assert self._state.token_uri is not None
        assert self._state.refresh_token is not None

        auth, client_params = build_token_auth(
            self._state.client_id, self._state.client_secret
        )

        try:
            token_response = await send_token_request(
                self._state.token_uri,
                {
                    "grant_type": "refresh_token",
                    "refresh_token": self._state.refresh_token,
                    **client_params,
                },
                auth=auth,
            )
        except SmartAuthException as e:
            logger.error("Failed to refresh access token: %s", e)
            raise

        # Servers that don't rotate refresh tokens omit them from the response
        if not token_response.refresh_token:
            token_response.refresh_token = self._state.refresh_token

        self._state = self._state.model_copy(
            update={
                "token_response": token_response,
                "expires_at": token_response.access_token_expires_at,
            }
        )

        if self.storage is not None:
            await self.storage.set(self._state.key, self._state.model_dump_json())

        return self._state

    def _get_headers(self) -> dict[str, str]:
        headers = {"Accept": "application/fhir+json, application/json"}

        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"

        return headers

    async def request(self, path: str, method: str = "GET", **kwargs: Any) -> Any:
        """Send an authorized request to the FHIR server.

        `path` is relative to the server base (e.g. "Patient/123"); absolute
        URLs are used as they are. Expired tokens are refreshed first when
        possible. Returns the decoded JSON body, or None for empty responses.
        """
        if self.is_expired() and self.can_refresh():
            await self.refresh()

        url = join_url(self.server_url, path)
        headers = {**self._get_headers(), **kwargs.pop("headers", {})}

        try:
            async with httpx.AsyncClient() as client:
                response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.RequestError as e:
            logger.error("Request to %s failed: %s", url, e)

            raise SmartAuthException(
                "server_error",
                error_description=f"Unable to reach {url}",
                status_code=502,
            ) from e

        if response.is_error:
            logger.warning("%s %s returned %s", method, url, response.status_code)

            raise SmartAuthException(
                "request_failed",
                error_description=f"{method} {url} returned {response.status_code}",
                status_code=response.status_code,
            )

        if not response.content:
            return None

        return response.json()
