"""Serverless (AWS Lambda) entry points.

Components are built once per process from ``CHALLENGE_AUTH_*`` settings
and run on one long-lived event loop so aiobotocore clients survive across
invocations of a warm container.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Coroutine, Mapping
from typing import Any, TypeVar

from .config import ChallengeAuthSettings
from .factory import ChallengeAuthComponents, create_components
from .reset import ResetResponse

logger = logging.getLogger(__name__)

T = TypeVar("T")

_components: ChallengeAuthComponents | None = None
_loop: asyncio.AbstractEventLoop | None = None


def get_components() -> ChallengeAuthComponents:
    global _components
    if _components is None:
        _components = create_components(ChallengeAuthSettings.from_env())
    return _components


def set_components(components: ChallengeAuthComponents | None) -> None:
    """Replace the process-wide components (tests, custom wiring)."""
    global _components
    _components = components


def _run(coro: Coroutine[Any, Any, T]) -> T:
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
    return _loop.run_until_complete(coro)


def _request_document(event: Mapping[str, Any] | None) -> Mapping[str, Any]:
    """Raw request document, or the JSON ``body`` of an API-gateway event."""
    event = event or {}
    body = event.get("body")
    if body is None:
        return event
    if isinstance(body, str):
        parsed = json.loads(body) if body else {}
        return parsed if isinstance(parsed, dict) else {}
    return body if isinstance(body, Mapping) else {}


# ═══════════════════════════════════════════════════════════════
# CUSTOM AUTHENTICATION TRIGGERS
# ═══════════════════════════════════════════════════════════════


def define_auth_challenge(event: dict[str, Any], context: Any = None) -> dict[str, Any]:
    return _run(get_components().triggers.define(event))


def create_auth_challenge(event: dict[str, Any], context: Any = None) -> dict[str, Any]:
    return _run(get_components().triggers.create(event))


def verify_auth_challenge(event: dict[str, Any], context: Any = None) -> dict[str, Any]:
    return _run(get_components().triggers.verify(event))


def pre_token_generation(event: dict[str, Any], context: Any = None) -> dict[str, Any]:
    return _run(get_components().triggers.pre_token_generation(event))


# ═══════════════════════════════════════════════════════════════
# PASSWORD RESET
# ═══════════════════════════════════════════════════════════════


def initiate_password_reset(event: dict[str, Any], context: Any = None) -> dict[str, Any]:
    try:
        payload = _request_document(event)
    except json.JSONDecodeError:
        logger.warning("Rejected password-reset request with a malformed body")
        return ResetResponse(400, {"message": "Request body is not valid JSON"}).to_proxy_response()
    response = _run(get_components().reset_endpoints.initiate(payload))
    return response.to_proxy_response()


def verify_password_reset(event: dict[str, Any], context: Any = None) -> dict[str, Any]:
    try:
        payload = _request_document(event)
    except json.JSONDecodeError:
        logger.warning("Rejected password-reset request with a malformed body")
        return ResetResponse(400, {"message": "Request body is not valid JSON"}).to_proxy_response()
    response = _run(get_components().reset_endpoints.verify(payload))
    return response.to_proxy_response()


__all__: list[str] = [
    "get_components",
    "set_components",
    "define_auth_challenge",
    "create_auth_challenge",
    "verify_auth_challenge",
    "pre_token_generation",
    "initiate_password_reset",
    "verify_password_reset",
]
