"""Out-of-band password reset: initiate (send a code) and verify (set password).

Independent of the login transcript. Reset records carry an absolute expiry
and are deleted only after the new password has been accepted.
"""

from __future__ import annotations

import json
import logging
import secrets
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .config import PasswordResetConfig
from .exceptions import (
    InvalidResetCodeError,
    MissingFieldsError,
    PasswordResetError,
    WeakPasswordError,
)
from .model import LoginContext, PasswordResetRecord
from .otp import DispatchReport, OtpDispatcher, random_code
from .ports import IIdentityDirectory, IPasswordResetStore

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# REQUESTS / RESPONSES
# ═══════════════════════════════════════════════════════════════


class InitiateResetRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    user_name: str | None = Field(default=None, alias="userName")
    user_pool_id: str | None = Field(default=None, alias="userPoolId")


class VerifyResetRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    user_name: str | None = Field(default=None, alias="userName")
    user_pool_id: str | None = Field(default=None, alias="userPoolId")
    otp: str | None = None
    new_password: str | None = Field(default=None, alias="newPassword")


@dataclass(frozen=True)
class ResetResponse:
    """HTTP-shaped result of a reset call."""

    status_code: int
    body: dict[str, Any] = field(default_factory=dict)

    def to_proxy_response(self) -> dict[str, Any]:
        """API-gateway proxy form: ``{statusCode, body}`` with a JSON body."""
        return {"statusCode": self.status_code, "body": json.dumps(self.body)}


# ═══════════════════════════════════════════════════════════════
# SERVICE
# ═══════════════════════════════════════════════════════════════


class PasswordResetService:
    """Issues and redeems password-reset codes.

    Example:
        ```python
        service = PasswordResetService(
            store=InMemoryPasswordResetStore(),
            directory=directory,
            dispatcher=dispatcher,
        )
        await service.initiate("alice", "pool-1")
        await service.verify("alice", "pool-1", "4821", "n3w-Passw0rd")
        ```
    """

    def __init__(
        self,
        *,
        store: IPasswordResetStore,
        directory: IIdentityDirectory,
        dispatcher: OtpDispatcher,
        config: PasswordResetConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the service.

        Args:
            store: Reset record storage.
            directory: Identity backend for contacts and password updates.
            dispatcher: Channel fan-out.
            config: Reset configuration.
            clock: Returns the current epoch time in seconds.
        """
        self._store = store
        self._directory = directory
        self._dispatcher = dispatcher
        self.config = config or PasswordResetConfig()
        self._clock = clock

    async def initiate(self, user_id: str | None, scope: str | None) -> DispatchReport:
        """Generate, store and send a reset code.

        Delivery is best effort: once the record is stored the call succeeds
        even if some or all channels failed.

        Raises:
            MissingFieldsError: If ``user_id`` or ``scope`` is missing.
        """
        if not user_id or not scope:
            raise MissingFieldsError("userName, userPoolId is required")

        contacts = await self._directory.get_contacts(user_id, scope)
        code = random_code(self.config.code_length)
        expires_at = int(self._clock()) + self.config.ttl_seconds
        await self._store.put(PasswordResetRecord(user_id=user_id, otp=code, expires_at=expires_at))
        logger.info(f"Reset code stored for {user_id}, expires at {expires_at}")

        report = await self._dispatcher.dispatch(
            LoginContext(user_id=user_id, scope=scope, contacts=contacts),
            code,
            require_delivery=False,
            login_policies=False,
            valid_minutes=max(self.config.ttl_seconds // 60, 1),
        )
        if not report.records:
            logger.warning(f"No delivery channel registered for {user_id}")
        return report

    async def verify(
        self,
        user_id: str | None,
        scope: str | None,
        otp: str | None,
        new_password: str | None,
    ) -> None:
        """Redeem a reset code and set the new password.

        Raises:
            MissingFieldsError: If any input is missing.
            WeakPasswordError: If the new password is too short.
            InvalidResetCodeError: If the code is absent, wrong or expired.
            PasswordPolicyError: If the backend rejects the password.
            UserNotFoundError: If the backend does not know the account.
        """
        if not user_id or not scope or not otp or not new_password:
            raise MissingFieldsError("userName, userPoolId, otp, and newPassword are required")

        min_length = self.config.min_password_length
        if len(new_password) < min_length:
            raise WeakPasswordError(f"Password must be at least {min_length} characters long")

        record = await self._store.get(user_id)
        now = int(self._clock())
        if (
            record is None
            or not secrets.compare_digest(record.otp.encode("utf-8"), otp.encode("utf-8"))
            or record.is_expired(now)
        ):
            logger.warning(f"Invalid or expired reset code for {user_id}")
            raise InvalidResetCodeError()

        await self._directory.set_password(user_id, scope, new_password)
        logger.info(f"Password reset for {user_id}")
        await self._store.delete(user_id)


# ═══════════════════════════════════════════════════════════════
# HTTP-SHAPED BOUNDARY
# ═══════════════════════════════════════════════════════════════


class PasswordResetEndpoints:
    """Maps request documents to :class:`ResetResponse` values.

    Shared by the FastAPI router and the serverless handlers. Unexpected
    errors become ``500 {message, cause}``.
    """

    def __init__(self, service: PasswordResetService) -> None:
        self.service = service

    async def initiate(self, payload: Mapping[str, Any]) -> ResetResponse:
        try:
            request = InitiateResetRequest.model_validate(payload)
            await self.service.initiate(request.user_name, request.user_pool_id)
        except MissingFieldsError as e:
            return ResetResponse(e.status_code, {"message": e.message})
        except PydanticValidationError as e:
            return ResetResponse(400, {"message": _describe(e)})
        except Exception as e:  # noqa: BLE001
            logger.exception("Error initiating password reset")
            return ResetResponse(500, {"message": "Error sending OTP", "cause": str(e)})
        return ResetResponse(200, {"message": "OTP sent successfully"})

    async def verify(self, payload: Mapping[str, Any]) -> ResetResponse:
        try:
            request = VerifyResetRequest.model_validate(payload)
            await self.service.verify(
                request.user_name,
                request.user_pool_id,
                request.otp,
                request.new_password,
            )
        except PasswordResetError as e:
            return ResetResponse(e.status_code, {"message": e.message})
        except PydanticValidationError as e:
            return ResetResponse(400, {"message": _describe(e)})
        except Exception as e:  # noqa: BLE001
            logger.exception("Error resetting password")
            return ResetResponse(500, {"message": "Error resetting password", "cause": str(e)})
        return ResetResponse(200, {"message": "Password reset successfully"})


def _describe(error: PydanticValidationError) -> str:
    fields = sorted({".".join(str(p) for p in e.get("loc", ())) for e in error.errors()})
    return f"Invalid request fields: {', '.join(fields)}"


__all__: list[str] = [
    "InitiateResetRequest",
    "VerifyResetRequest",
    "ResetResponse",
    "PasswordResetService",
    "PasswordResetEndpoints",
]
