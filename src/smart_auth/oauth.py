import logging
import secrets

import httpx
from pydantic import ValidationError

from smart_auth.exceptions import SmartAuthException
from smart_auth.utils._pkce import calculate_s256_challenge, generate_code_verifier
from smart_auth.utils._response import Response
from smart_auth.utils._url import join_url

from ._config import SmartConfig
from ._phase import LaunchRequest, PendingCallback
from ._storage import SMART_KEY, StorageAdapter
from .models.capability_statement import CapabilityStatement
from .models.oauth_token_response import (
    OAuth2TokenEndpointResponse,
    TokenErrorResponse,
    TokenResponse,
)
from .models.smart_configuration import SmartConfiguration
from .models.smart_state import SmartState

logger = logging.getLogger(__name__)

OAUTH_URIS_EXTENSION = (
    "http://fhir-registry.smarthealthit.org/StructureDefinition/oauth-uris"
)


def build_token_auth(
    client_id: str, client_secret: str | None
) -> tuple[httpx.BasicAuth | None, dict[str, str]]:
    """Client authentication for token requests.

    Confidential clients use HTTP Basic, public clients send their client_id
    in the form body.
    """
    if client_secret:
        return httpx.BasicAuth(client_id, client_secret), {}

    return None, {"client_id": client_id}


async def send_token_request(
    token_uri: str, data: dict[str, str], auth: httpx.BasicAuth | None = None
) -> TokenResponse:
    """POST to a token endpoint and parse the result.

    Raises:
        SmartAuthException: carrying the upstream status when the server
            rejects the request, 502 when it can't be reached and 500 when the
            payload can't be understood.
    """
    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(
                token_uri,
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/x-www-form-urlencoded",
                },
                data=data,
                auth=auth,
            )
    except httpx.RequestError as e:
        logger.error("Token request to %s failed: %s", token_uri, e)

        raise SmartAuthException(
            "server_error",
            error_description="Unable to reach the token endpoint",
            status_code=502,
        ) from e

    try:
        token_response = OAuth2TokenEndpointResponse.model_validate_json(
            response.text
        )
    except ValidationError:
        token_response = None

    if response.is_error:
        logger.warning(
            "Token endpoint returned %s: %s", response.status_code, response.text
        )

        if token_response is not None and token_response.is_error():
            assert isinstance(token_response.root, TokenErrorResponse)

            raise SmartAuthException(
                token_response.root.error,
                error_description=token_response.root.error_description,
                status_code=response.status_code,
            )

        raise SmartAuthException(
            "server_error",
            error_description="Token request failed",
            status_code=response.status_code,
        )

    if token_response is None:
        logger.error("Failed to parse token response")

        raise SmartAuthException(
            "server_error", error_description="Failed to parse token response"
        )

    if token_response.is_error():
        assert isinstance(token_response.root, TokenErrorResponse)

        logger.error("Token request failed: %s", token_response.root.error)

        raise SmartAuthException(
            token_response.root.error,
            error_description=token_response.root.error_description,
            status_code=400,
        )

    assert isinstance(token_response.root, TokenResponse)
    return token_response.root


class SmartOAuth:
    """SMART App Launch protocol operations.

    Discovers the authorization server of a FHIR endpoint, sends the browser
    there and exchanges the returned code for tokens. All state that has to
    survive the redirect goes through the storage passed in.
    """

    def _generate_state(self) -> str:
        return secrets.token_hex(16)

    async def discover(self, server_url: str) -> SmartConfiguration:
        """Find the OAuth endpoints of a FHIR server.

        Tries `.well-known/smart-configuration` first and falls back to the
        `oauth-uris` extension in the server's CapabilityStatement.
        """
        async with httpx.AsyncClient() as client:
            try:
                response = await client.get(
                    join_url(server_url, ".well-known/smart-configuration"),
                    headers={"Accept": "application/json"},
                )

                if response.is_success:
                    configuration = SmartConfiguration.model_validate_json(
                        response.text
                    )

                    if configuration.authorization_endpoint:
                        return configuration
            except (httpx.RequestError, ValidationError) as e:
                logger.debug("No usable smart-configuration for %s: %s", server_url, e)

            try:
                response = await client.get(
                    join_url(server_url, "metadata"),
                    headers={"Accept": "application/fhir+json, application/json"},
                )
            except httpx.RequestError as e:
                logger.error("Failed to fetch metadata from %s: %s", server_url, e)

                raise SmartAuthException(
                    "server_error",
                    error_description=f"Unable to reach FHIR server at {server_url}",
                    status_code=502,
                ) from e

        if response.is_error:
            logger.error(
                "Metadata request to %s returned %s", server_url, response.status_code
            )

            raise SmartAuthException(
                "server_error",
                error_description=f"Unable to read metadata from {server_url}",
                status_code=response.status_code,
            )

        try:
            capability_statement = CapabilityStatement.model_validate_json(
                response.text
            )
        except ValidationError as e:
            logger.error("Invalid metadata returned by %s", server_url)

            raise SmartAuthException(
                "server_error",
                error_description=f"Invalid metadata returned by {server_url}",
                status_code=502,
            ) from e

        return self.parse_capability_statement(capability_statement)

    def parse_capability_statement(
        self, capability_statement: CapabilityStatement
    ) -> SmartConfiguration:
        uris = capability_statement.get_extension_uris(OAUTH_URIS_EXTENSION)

        return SmartConfiguration(
            authorization_endpoint=uris.get("authorize"),
            token_endpoint=uris.get("token"),
        )

    def build_authorization_params(
        self,
        state: SmartState,
        launch: str | None = None,
        code_challenge: str | None = None,
    ) -> dict[str, str]:
        """Build authorization request parameters.

        Override this method to customize authorization parameters.
        """
        params = {
            "response_type": "code",
            "client_id": state.client_id,
            "scope": state.scope,
            "redirect_uri": state.redirect_uri,
            "aud": state.server_url,
            "state": state.key,
        }

        if launch:
            params["launch"] = launch

        if code_challenge:
            params["code_challenge"] = code_challenge
            params["code_challenge_method"] = "S256"

        return params

    def build_token_exchange_params(
        self, code: str, state: SmartState
    ) -> dict[str, str]:
        """Build token exchange request parameters.

        Override this method to customize token exchange parameters.
        """
        params = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": state.redirect_uri,
        }

        if state.code_verifier:
            params["code_verifier"] = state.code_verifier

        return params

    async def authorize(
        self,
        launch: LaunchRequest,
        config: SmartConfig,
        storage: StorageAdapter,
    ) -> Response:
        """
        Redirect to the authorization endpoint of the FHIR server.

        The pending flow state is written under a fresh random key, which is
        also the OAuth `state` parameter, so the callback can find it again.
        Open servers need no authorization, so the flow is completed right
        away and the browser goes straight to `config.redirect_uri`.
        """
        scope = config.scope

        if launch.launch and "launch" not in scope.split():
            scope = f"{scope} launch".strip()

        configuration = await self.discover(launch.server_url)

        state = SmartState(
            key=self._generate_state(),
            server_url=launch.server_url,
            client_id=config.client_id,
            client_secret=config.client_secret,
            scope=scope,
            redirect_uri=config.oauth_redirect_uri,
            authorize_uri=configuration.authorization_endpoint,
            token_uri=configuration.token_endpoint,
        )

        if configuration.is_open_server:
            logger.info("%s is an open server, skipping authorization", state.server_url)

            await storage.set(state.key, state.model_dump_json())
            await storage.set(SMART_KEY, state.key)

            return Response.redirect(config.redirect_uri)

        code_challenge: str | None = None

        if configuration.supports_pkce:
            state.code_verifier = generate_code_verifier()
            code_challenge = calculate_s256_challenge(state.code_verifier)

        await storage.set(state.key, state.model_dump_json())

        assert state.authorize_uri is not None

        return Response.redirect(
            state.authorize_uri,
            query_params=self.build_authorization_params(
                state, launch=launch.launch, code_challenge=code_challenge
            ),
        )

    async def complete_auth(
        self, callback: PendingCallback, storage: StorageAdapter
    ) -> SmartState:
        """
        Exchange the authorization code for tokens.

        On success the completed state replaces the pending one under the same
        key and `smartId` is pointed at it.

        Raises:
            SmartAuthException: If the state is unknown or the exchange fails
        """
        # The pointer key is never a flow state
        raw_state = None

        if callback.state != SMART_KEY:
            raw_state = await storage.get(callback.state)

        if not raw_state:
            logger.error("No SMART state found for state %s", callback.state)

            raise SmartAuthException(
                "invalid_state",
                error_description="No state found. Please (re)launch the app.",
                status_code=400,
            )

        try:
            state = SmartState.model_validate_json(raw_state)
        except ValidationError as e:
            logger.error("Invalid SMART state", exc_info=e)

            raise SmartAuthException(
                "server_error", error_description="Invalid state data"
            ) from e

        if not state.token_uri:
            raise SmartAuthException(
                "invalid_state",
                error_description="No token endpoint found for this state",
                status_code=400,
            )

        auth, client_params = build_token_auth(state.client_id, state.client_secret)

        token_response = await send_token_request(
            state.token_uri,
            {**self.build_token_exchange_params(callback.code, state), **client_params},
            auth=auth,
        )

        state = state.model_copy(
            update={
                "token_response": token_response,
                "expires_at": token_response.access_token_expires_at,
                "code_verifier": None,
            }
        )

        await storage.set(state.key, state.model_dump_json())
        await storage.set(SMART_KEY, state.key)

        logger.info("Completed SMART authorization for %s", state.server_url)

        return state
