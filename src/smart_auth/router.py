import json
import logging
from collections.abc import Awaitable, Callable

from cross_web import AsyncHTTPRequest
from fastapi import APIRouter, Request

from ._config import SmartConfig
from ._middleware import CallNext, SmartAuth
from ._route import Route
from ._storage import StorageAdapter
from .client import FhirClient
from .oauth import SmartOAuth
from .utils._response import Response

logger = logging.getLogger(__name__)


class SmartAuthRouter(APIRouter):
    """FastAPI router exposing the SMART launch, callback and refresh endpoints.

    The default storage keeps SMART state in `request.session`, so the app
    needs Starlette's `SessionMiddleware`. Every launch adds a state and logout
    only removes the current one, so a cookie backed session stops working
    once it grows past the browser limit (about 4 KB). Apps that launch repeatedly
    should use a server-side session store or pass their own `get_storage`
    in `SmartConfig`.

    Example:
        config = SmartConfig(
            client_id="my_app",
            redirect_uri="https://app.example.com/",
            callback_uri="https://app.example.com/smart/callback",
        )
        smart = SmartAuthRouter(config)

        app = FastAPI()
        app.add_middleware(SessionMiddleware, secret_key="...")
        app.include_router(smart, prefix="/smart")

        @app.get("/")
        async def home(request: Request):
            client = await smart.get_client(request)
            ...
    """

    def __init__(
        self,
        config: SmartConfig,
        oauth: SmartOAuth | None = None,
        launch_path: str = "/launch",
        callback_path: str = "/callback",
        refresh_path: str = "/refresh",
        logout_path: str = "/logout",
        # Continuation for launch and callback requests that aren't part of
        # a flow, a 404 by default
        on_unhandled: Callable[[AsyncHTTPRequest], Awaitable[Response]] | None = None,
        # Continuation after a successful refresh
        on_refreshed: Callable[[AsyncHTTPRequest], Awaitable[Response]] | None = None,
    ):
        super().__init__()

        self.config = config
        self.smart_auth = SmartAuth(config, oauth=oauth)

        self._on_unhandled = on_unhandled
        self._on_refreshed = on_refreshed or self._redirect_home

        routes = [
            Route(
                path=launch_path,
                methods=["GET"],
                function=self.smart_auth.authorize,
                continuation=self._on_unhandled,
                operation_id="smart_launch",
                summary="Start the SMART authorization flow",
            ),
            Route(
                path=callback_path,
                methods=["GET"],
                function=self.smart_auth.complete_auth,
                continuation=self._on_unhandled,
                operation_id="smart_callback",
                summary="Complete the SMART authorization flow",
            ),
            Route(
                path=refresh_path,
                methods=["GET"],
                function=self.smart_auth.refresh_auth,
                continuation=self._on_refreshed,
                operation_id="smart_refresh",
                summary="Refresh the SMART access token",
            ),
            Route(
                path=logout_path,
                methods=["POST"],
                function=self.logout,
                operation_id="smart_logout",
                summary="Forget the SMART authorization",
            ),
        ]

        for route in routes:
            self.add_api_route(
                route.path,
                route.to_fastapi_endpoint(self.config.get_storage),
                methods=route.methods,
                operation_id=route.operation_id,
                summary=route.summary,
            )

    async def _redirect_home(self, request: AsyncHTTPRequest) -> Response:
        return Response.redirect(self.config.redirect_uri)

    async def logout(
        self, request: AsyncHTTPRequest, storage: StorageAdapter, call_next: CallNext
    ) -> Response:
        await self.smart_auth.logout(storage)

        return Response(
            status_code=200,
            body=json.dumps({"message": "Logged out"}),
            headers={"Content-Type": "application/json"},
        )

    async def get_client(self, request: Request) -> FhirClient | None:
        """Helper for endpoints that need the authorized FHIR client.

        Example:
            @app.get("/patient")
            async def patient(request: Request):
                client = await smart.get_client(request)
                if client is None:
                    return RedirectResponse("/smart/launch")
                return await client.request(f"Patient/{client.patient_id}")
        """
        return await self.smart_auth.get_client(self.config.get_storage(request))
