"""SMART authorization middleware.

Three handlers drive the flow: `authorize` starts it, `complete_auth`
handles the authorization server's callback and `refresh_auth` forces a token
refresh. Each one is called with the request, the storage for that request
and a `call_next` continuation, and either returns its own response or the
result of `call_next()`, never both.
"""

import logging
from collections.abc import Awaitable, Callable

from cross_web import AsyncHTTPRequest

from smart_auth.exceptions import SmartAuthException
from smart_auth.utils._response import Response

from ._config import SmartConfig
from ._phase import (
    ErrorCallback,
    PendingCallback,
    Unrelated,
    classify_callback,
    classify_launch,
)
from ._storage import SMART_KEY, StorageAdapter, get_client_state
from .client import FhirClient
from .oauth import SmartOAuth

logger = logging.getLogger(__name__)

CallNext = Callable[[], Awaitable[Response]]

LOST_SESSION_MESSAGE = (
    "No smart state found in session. Please re-authorize your app."
)


class SmartAuth:
    def __init__(
        self,
        config: SmartConfig,
        oauth: SmartOAuth | None = None,
        client_class: type[FhirClient] = FhirClient,
    ):
        self.config = config
        self.oauth = oauth or SmartOAuth()
        self.client_class = client_class

    async def get_client(self, storage: StorageAdapter) -> FhirClient | None:
        """Return a client for the stored SMART state, or None.

        None means "not authorized", whether the flow never ran or its state
        is gone.
        """
        state = await get_client_state(storage)

        if state is None:
            return None

        return self.client_class(state, storage)

    async def authorize(
        self, request: AsyncHTTPRequest, storage: StorageAdapter, call_next: CallNext
    ) -> Response:
        """Start the authorization flow if the FHIR server can be determined.

        The server comes from `iss` (with `launch`), `fhirServiceUrl` or
        `config.server_url`. When none of them is available the request is
        not ours and is handed to `call_next`.
        """
        launch = classify_launch(request.query_params, self.config.server_url)

        if isinstance(launch, Unrelated):
            logger.debug("No FHIR server for this request, passing through")

            return await call_next()

        try:
            return await self.oauth.authorize(launch, self.config, storage)
        except SmartAuthException as e:
            logger.error("Failed to start authorization: %s", e)

            return Response.error(e.message, status_code=e.status_code)

    async def complete_auth(
        self, request: AsyncHTTPRequest, storage: StorageAdapter, call_next: CallNext
    ) -> Response:
        """Handle the redirect back from the authorization server.

        An `error` parameter ends the flow and is reported as is. A `code`
        and `state` pair is exchanged for tokens, after which the browser is
        sent to `config.redirect_uri`. Anything else goes to `call_next`.
        """
        callback = classify_callback(request.query_params)

        if isinstance(callback, ErrorCallback):
            logger.debug("Authorization failed: %s", callback.message)

            return Response.error(callback.message, status_code=400)

        if isinstance(callback, PendingCallback):
            try:
                await self.oauth.complete_auth(callback, storage)
            except SmartAuthException as e:
                logger.error("Failed to complete authorization: %s", e)

                return Response.error(e.message, status_code=e.status_code)

            return Response.redirect(self.config.redirect_uri)

        return await call_next()

    async def refresh_auth(
        self, request: AsyncHTTPRequest, storage: StorageAdapter, call_next: CallNext
    ) -> Response:
        """Refresh the access token, then continue with `call_next`.

        You don't usually need this: `FhirClient.request` refreshes expired
        tokens on its own when a refresh token is available.
        """
        client = await self.get_client(storage)

        # Perhaps the server was restarted or the session was lost
        if client is None:
            return Response.error(LOST_SESSION_MESSAGE, status_code=401)

        try:
            await client.refresh()
        except SmartAuthException as e:
            return Response.error(e.message, status_code=e.status_code)

        return await call_next()

    async def logout(self, storage: StorageAdapter) -> bool:
        """Forget the current SMART state.

        Returns True if there was anything to remove.
        """
        key = await storage.get(SMART_KEY)

        if not key:
            return False

        await storage.unset(key)

        return await storage.unset(SMART_KEY)
