from collections.abc import Awaitable, Callable
from typing import Any

from cross_web import AsyncHTTPRequest, Response

from ._middleware import CallNext
from ._storage import StorageAdapter
from .utils._response import Response as TextResponse

Handler = Callable[[AsyncHTTPRequest, StorageAdapter, CallNext], Awaitable[Response]]
Continuation = Callable[[AsyncHTTPRequest], Awaitable[Response]]


async def not_found(request: AsyncHTTPRequest) -> Response:
    return TextResponse.error("Not Found", status_code=404)


class Route:
    def __init__(
        self,
        path: str,
        methods: list[str],
        function: Handler,
        # Used when the handler calls `call_next`, defaults to a 404
        continuation: Continuation | None = None,
        operation_id: str | None = None,
        summary: str | None = None,
    ):
        self.path = path
        self.methods = methods
        self.function = function
        self.continuation = continuation or not_found
        self.operation_id = operation_id
        self.summary = summary

    def to_fastapi_endpoint(
        self, get_storage: Callable[[Any], StorageAdapter]
    ) -> Callable[..., Any]:
        from fastapi import Request as FastAPIRequest
        from fastapi import Response as FastAPIResponse

        async def wrapper(request: FastAPIRequest) -> FastAPIResponse:
            # Storage comes from the framework request, which owns the session
            storage = get_storage(request)

            route_request = AsyncHTTPRequest.from_fastapi(request)

            async def call_next() -> Response:
                return await self.continuation(route_request)

            route_response = await self.function(route_request, storage, call_next)

            return route_response.to_fastapi()

        return wrapper
