"""Classification of incoming requests into SMART flow phases.

The middleware never stores which phase a browser is in. Instead each request
is classified once, from its query parameters, and the handlers dispatch on
the result.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Unrelated:
    """The request is not part of an authorization flow."""


@dataclass(frozen=True)
class LaunchRequest:
    server_url: str
    launch: str | None = None


@dataclass(frozen=True)
class ErrorCallback:
    error: str
    error_description: str | None = None

    @property
    def message(self) -> str:
        if self.error_description:
            return f"{self.error}:\n{self.error_description}"

        return self.error


@dataclass(frozen=True)
class PendingCallback:
    code: str
    state: str


LaunchPhase = LaunchRequest | Unrelated
CallbackPhase = ErrorCallback | PendingCallback | Unrelated


def classify_launch(
    query_params: Mapping[str, Any], server_url: str | None = None
) -> LaunchPhase:
    launch = query_params.get("launch")
    iss = query_params.get("iss")
    fhir_service_url = query_params.get("fhirServiceUrl")

    # EHR launch
    if launch and iss:
        return LaunchRequest(server_url=iss, launch=launch)

    if fhir_service_url:
        return LaunchRequest(server_url=fhir_service_url)

    # Standalone launch against the configured server
    if server_url:
        return LaunchRequest(server_url=server_url)

    return Unrelated()


def classify_callback(query_params: Mapping[str, Any]) -> CallbackPhase:
    if error := query_params.get("error"):
        return ErrorCallback(
            error=error, error_description=query_params.get("error_description")
        )

    code = query_params.get("code")
    state = query_params.get("state")

    if code and state:
        return PendingCallback(code=code, state=state)

    return Unrelated()
