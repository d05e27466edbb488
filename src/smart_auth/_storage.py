import logging
from collections.abc import MutableMapping
from typing import Any

from pydantic import ValidationError
from typing_extensions import Protocol

from .models.smart_state import SmartState

logger = logging.getLogger(__name__)

# Session key holding the storage key of the current client state
SMART_KEY = "smartId"


class StorageAdapter(Protocol):
    """Per-request key/value storage used to persist SMART state."""

    async def set(self, key: str, value: Any) -> Any:
        """Add or update the value at `key` and return it."""
        ...

    async def get(self, key: str) -> Any | None:
        """Return the value at `key`, or None if there isn't one."""
        ...

    async def unset(self, key: str) -> bool:
        """Remove the value at `key`. Returns True if something was removed."""
        ...


class SessionStorage:
    """Storage backed by a mutable session mapping.

    Implements StorageAdapter via duck typing. Works with Starlette's
    `request.session` (cookie sessions) or any plain dict.
    """

    def __init__(self, session: MutableMapping[str, Any]):
        self.session = session

    async def set(self, key: str, value: Any) -> Any:
        self.session[key] = value
        return value

    async def get(self, key: str) -> Any | None:
        return self.session.get(key)

    async def unset(self, key: str) -> bool:
        if key in self.session:
            del self.session[key]
            return True

        return False


def session_storage(request: Any) -> StorageAdapter:
    """Default storage factory.

    Expects something that exposes `request.session` as a mutable mapping,
    e.g. a Starlette request behind `SessionMiddleware`.
    """
    return SessionStorage(request.session)


async def get_client_state(storage: StorageAdapter) -> SmartState | None:
    """Resolve the current client state through the `smartId` pointer.

    A missing pointer, a pointer to nothing and a blob we can't parse all mean
    the same thing to callers: there is no authorized client.
    """
    key = await storage.get(SMART_KEY)

    if not key:
        return None

    raw_state = await storage.get(key)

    if not raw_state:
        return None

    try:
        return SmartState.model_validate_json(raw_state)
    except ValidationError as e:
        logger.warning("Invalid SMART state stored at %s", key, exc_info=e)

        return None
