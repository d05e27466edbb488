from smart_auth._config import SmartConfig
from smart_auth._middleware import LOST_SESSION_MESSAGE, SmartAuth
from smart_auth._phase import (
    ErrorCallback,
    LaunchRequest,
    PendingCallback,
    Unrelated,
    classify_callback,
    classify_launch,
)
from smart_auth._storage import (
    SMART_KEY,
    SessionStorage,
    StorageAdapter,
    get_client_state,
    session_storage,
)
from smart_auth.client import FhirClient
from smart_auth.exceptions import SmartAuthException
from smart_auth.models.smart_state import SmartState
from smart_auth.oauth import SmartOAuth

__all__ = [
    "LOST_SESSION_MESSAGE",
    "SMART_KEY",
    "ErrorCallback",
    "FhirClient",
    "LaunchRequest",
    "PendingCallback",
    "SessionStorage",
    "SmartAuth",
    "SmartAuthException",
    "SmartConfig",
    "SmartOAuth",
    "SmartState",
    "StorageAdapter",
    "Unrelated",
    "classify_callback",
    "classify_launch",
    "get_client_state",
    "session_storage",
]
