from typing import Generator

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient
from starlette.middleware.sessions import SessionMiddleware

from smart_auth._config import SmartConfig
from smart_auth.router import SmartAuthRouter


@pytest.fixture
def router(config: SmartConfig) -> SmartAuthRouter:
    return SmartAuthRouter(config)


@pytest.fixture
def test_app(router: SmartAuthRouter) -> FastAPI:
    app = FastAPI()
    app.add_middleware(SessionMiddleware, secret_key="test-secret")

    app.include_router(router, prefix="/smart")

    @app.get("/patient")
    async def patient(request: Request):
        client = await router.get_client(request)

        if client is None:
            return JSONResponse({"authorized": False}, status_code=401)

        return await client.request(f"Patient/{client.patient_id}")

    return app


@pytest.fixture
def client(test_app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(test_app) as c:
        yield c
