"""FastAPI router for the password-reset endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body
from fastapi.responses import JSONResponse

from ...reset import PasswordResetEndpoints


def create_password_reset_router(
    endpoints: PasswordResetEndpoints,
    *,
    prefix: str = "/password-reset",
    tags: list[str] | None = None,
) -> APIRouter:
    """Build a router exposing ``POST {prefix}/initiate`` and ``POST {prefix}/verify``.

    Bodies are passed through unvalidated so missing fields produce the
    same ``400 {message}`` documents as the serverless handlers.

    Example:
        ```python
        app = FastAPI()
        app.include_router(create_password_reset_router(components.reset_endpoints))
        ```
    """
    router = APIRouter(prefix=prefix, tags=tags or ["password-reset"])

    @router.post("/initiate")
    async def initiate(
        payload: dict[str, Any] | None = Body(default=None)
    ) -> JSONResponse:
        response = await endpoints.initiate(payload or {})
        return JSONResponse(status_code=response.status_code, content=response.body)

    @router.post("/verify")
    async def verify(
        payload: dict[str, Any] | None = Body(default=None)
    ) -> JSONResponse:
        response = await endpoints.verify(payload or {})
        return JSONResponse(status_code=response.status_code, content=response.body)

    return router


__all__: list[str] = ["create_password_reset_router"]
