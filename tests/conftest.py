from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from cross_web import AsyncHTTPRequest

from smart_auth._config import SmartConfig
from smart_auth._middleware import SmartAuth
from smart_auth._storage import SMART_KEY, SessionStorage
from smart_auth.models.oauth_token_response import TokenResponse
from smart_auth.models.smart_state import SmartState
from smart_auth.utils._response import Response

SERVER_URL = "https://fhir.example.com/r4"
AUTHORIZE_URL = "https://auth.example.com/authorize"
TOKEN_URL = "https://auth.example.com/token"
REDIRECT_URI = "http://localhost:8000/app"
CALLBACK_URI = "http://localhost:8000/smart/callback"


def make_request(query_params: dict[str, Any] | None = None) -> AsyncHTTPRequest:
    """Create a mock AsyncHTTPRequest for testing."""
    request = MagicMock(spec=AsyncHTTPRequest)
    request.url = "http://localhost:8000/smart/launch"
    request.query_params = query_params or {}
    request.headers = {}
    request.cookies = {}
    return request


def smart_configuration(**overrides: Any) -> dict[str, Any]:
    return {
        "authorization_endpoint": AUTHORIZE_URL,
        "token_endpoint": TOKEN_URL,
        "code_challenge_methods_supported": ["S256"],
        "capabilities": ["launch-ehr", "launch-standalone"],
        **overrides,
    }


def token_payload(**overrides: Any) -> dict[str, Any]:
    return {
        "token_type": "Bearer",
        "access_token": "test_access_token",
        "expires_in": 3600,
        "refresh_token": "test_refresh_token",
        "scope": "openid fhirUser offline_access launch",
        "patient": "123",
        "encounter": "456",
        **overrides,
    }


@pytest.fixture
def session() -> dict[str, Any]:
    return {}


@pytest.fixture
def storage(session: dict[str, Any]) -> SessionStorage:
    return SessionStorage(session)


@pytest.fixture
def config() -> SmartConfig:
    return SmartConfig(
        client_id="test_client_id",
        redirect_uri=REDIRECT_URI,
        callback_uri=CALLBACK_URI,
    )


@pytest.fixture
def confidential_config() -> SmartConfig:
    return SmartConfig(
        client_id="test_client_id",
        client_secret="test_client_secret",
        redirect_uri=REDIRECT_URI,
        callback_uri=CALLBACK_URI,
        server_url=SERVER_URL,
    )


@pytest.fixture
def smart_auth(config: SmartConfig) -> SmartAuth:
    return SmartAuth(config)


@pytest.fixture
def call_next() -> AsyncMock:
    return AsyncMock(return_value=Response.text("next"))


@pytest.fixture
def pending_state() -> SmartState:
    """State as written by authorize, before the code exchange."""
    return SmartState(
        key="test_state",
        server_url=SERVER_URL,
        client_id="test_client_id",
        scope="openid fhirUser offline_access launch",
        redirect_uri=CALLBACK_URI,
        authorize_uri=AUTHORIZE_URL,
        token_uri=TOKEN_URL,
        code_verifier="test_code_verifier",
    )


@pytest.fixture
def smart_state(pending_state: SmartState) -> SmartState:
    """State after a successful code exchange."""
    return pending_state.model_copy(
        update={
            "code_verifier": None,
            "token_response": TokenResponse.model_validate(token_payload()),
            "expires_at": datetime.now(tz=timezone.utc) + timedelta(hours=1),
        }
    )


@pytest.fixture
def pending_session(
    session: dict[str, Any], pending_state: SmartState
) -> dict[str, Any]:
    session[pending_state.key] = pending_state.model_dump_json()
    return session


@pytest.fixture
def authorized_session(
    session: dict[str, Any], smart_state: SmartState
) -> dict[str, Any]:
    session[smart_state.key] = smart_state.model_dump_json()
    session[SMART_KEY] = smart_state.key
    return session
