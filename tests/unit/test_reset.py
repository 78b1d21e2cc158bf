"""Tests for the password-reset service and its HTTP-shaped boundary."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from challenge_auth.channels.memory import InMemoryOtpChannel
from challenge_auth.config import PasswordResetConfig
from challenge_auth.exceptions import (
    InvalidResetCodeError,
    MissingFieldsError,
    PasswordPolicyError,
    UserNotFoundError,
    WeakPasswordError,
)
from challenge_auth.model import PasswordResetRecord
from challenge_auth.otp import OtpDispatcher
from challenge_auth.reset import PasswordResetEndpoints, PasswordResetService, ResetResponse
from challenge_auth.stores.memory import InMemoryPasswordResetStore

from ..fakes import EMAIL, PHONE, FakeDirectory

NOW = 1_700_000_000


def verify_payload(
    otp: str = "4821", password: str = "n3w-Passw0rd", user: str = "alice"
) -> dict[str, str]:
    return {"userName": user, "userPoolId": "pool-1", "otp": otp, "newPassword": password}


class FakeClock:
    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(
    reset_store: InMemoryPasswordResetStore,
    directory: FakeDirectory,
    dispatcher: OtpDispatcher,
    clock: FakeClock,
) -> PasswordResetService:
    return PasswordResetService(
        store=reset_store, directory=directory, dispatcher=dispatcher, clock=clock
    )


@pytest.fixture
def endpoints(service: PasswordResetService) -> PasswordResetEndpoints:
    return PasswordResetEndpoints(service)


@pytest.mark.asyncio
class TestInitiate:
    async def test_stores_record_and_sends_code(
        self,
        service: PasswordResetService,
        reset_store: InMemoryPasswordResetStore,
        sms: InMemoryOtpChannel,
        email: InMemoryOtpChannel,
    ) -> None:
        report = await service.initiate("alice", "pool-1")

        record = await reset_store.get("alice")
        assert record is not None
        assert record.expires_at == NOW + 300
        assert len(record.otp) == 4 and record.otp.isdigit()
        assert report.succeeded
        assert sms.codes == [record.otp]
        email.assert_sent(EMAIL)
        assert "valid for the next 5 minutes" in email.sent_messages[0].message.body_text

    async def test_reinitiate_overwrites_previous_code(
        self,
        service: PasswordResetService,
        reset_store: InMemoryPasswordResetStore,
        clock: FakeClock,
    ) -> None:
        await service.initiate("alice", "pool-1")
        clock.now += 60
        await service.initiate("alice", "pool-1")

        record = await reset_store.get("alice")
        assert record is not None and record.expires_at == NOW + 60 + 300

    async def test_privileged_account_still_gets_sms(
        self,
        service: PasswordResetService,
        directory: FakeDirectory,
        sms: InMemoryOtpChannel,
    ) -> None:
        directory.groups["alice"] = ["PROVIDER"]
        await service.initiate("alice", "pool-1")
        sms.assert_sent(PHONE)

    async def test_delivery_failure_is_best_effort(
        self,
        reset_store: InMemoryPasswordResetStore,
        directory: FakeDirectory,
    ) -> None:
        dispatcher = OtpDispatcher([])
        service = PasswordResetService(
            store=reset_store, directory=directory, dispatcher=dispatcher
        )

        report = await service.initiate("alice", "pool-1")

        assert not report.succeeded
        assert await reset_store.get("alice") is not None

    @pytest.mark.parametrize("user_id, scope", [(None, "pool-1"), ("alice", None), ("", "")])
    async def test_missing_fields(
        self, service: PasswordResetService, user_id: str | None, scope: str | None
    ) -> None:
        with pytest.raises(MissingFieldsError):
            await service.initiate(user_id, scope)

    async def test_unknown_user(self, service: PasswordResetService) -> None:
        with pytest.raises(UserNotFoundError):
            await service.initiate("mallory", "pool-1")


@pytest.mark.asyncio
class TestVerify:
    @pytest_asyncio.fixture
    async def seeded(self, reset_store: InMemoryPasswordResetStore) -> InMemoryPasswordResetStore:
        await reset_store.put(PasswordResetRecord("alice", "4821", NOW + 300))
        return reset_store

    async def test_success_sets_password_and_deletes_record(
        self,
        service: PasswordResetService,
        seeded: InMemoryPasswordResetStore,
        directory: FakeDirectory,
    ) -> None:
        await service.verify("alice", "pool-1", "4821", "n3w-Passw0rd")

        assert directory.passwords["alice"] == "n3w-Passw0rd"
        assert await seeded.get("alice") is None

    async def test_code_is_single_use(
        self, service: PasswordResetService, seeded: InMemoryPasswordResetStore
    ) -> None:
        await service.verify("alice", "pool-1", "4821", "n3w-Passw0rd")
        with pytest.raises(InvalidResetCodeError):
            await service.verify("alice", "pool-1", "4821", "n3w-Passw0rd")

    async def test_wrong_code_keeps_record(
        self, service: PasswordResetService, seeded: InMemoryPasswordResetStore
    ) -> None:
        with pytest.raises(InvalidResetCodeError):
            await service.verify("alice", "pool-1", "0000", "n3w-Passw0rd")
        assert await seeded.get("alice") is not None

    async def test_non_ascii_code_is_rejected_uniformly(
        self, endpoints: PasswordResetEndpoints, seeded: InMemoryPasswordResetStore
    ) -> None:
        response = await endpoints.verify(verify_payload(otp="48é1"))
        assert response == ResetResponse(400, {"message": "Invalid or expired OTP"})
        assert await seeded.get("alice") is not None

    async def test_expired_code_keeps_record(
        self,
        service: PasswordResetService,
        seeded: InMemoryPasswordResetStore,
        clock: FakeClock,
        directory: FakeDirectory,
    ) -> None:
        clock.now = NOW + 301
        with pytest.raises(InvalidResetCodeError, match="Invalid or expired OTP"):
            await service.verify("alice", "pool-1", "4821", "n3w-Passw0rd")
        assert await seeded.get("alice") is not None
        assert "alice" not in directory.passwords

    async def test_code_valid_at_expiry_instant(
        self,
        service: PasswordResetService,
        seeded: InMemoryPasswordResetStore,
        clock: FakeClock,
    ) -> None:
        clock.now = NOW + 300
        await service.verify("alice", "pool-1", "4821", "n3w-Passw0rd")

    async def test_missing_record(self, service: PasswordResetService) -> None:
        with pytest.raises(InvalidResetCodeError):
            await service.verify("alice", "pool-1", "4821", "n3w-Passw0rd")

    async def test_short_password_checked_before_code(
        self, service: PasswordResetService, seeded: InMemoryPasswordResetStore
    ) -> None:
        with pytest.raises(WeakPasswordError, match="at least 8 characters"):
            await service.verify("alice", "pool-1", "0000", "short")
        assert await seeded.get("alice") is not None

    async def test_min_length_is_configurable(
        self,
        reset_store: InMemoryPasswordResetStore,
        directory: FakeDirectory,
        dispatcher: OtpDispatcher,
    ) -> None:
        service = PasswordResetService(
            store=reset_store,
            directory=directory,
            dispatcher=dispatcher,
            config=PasswordResetConfig(min_password_length=12),
        )
        with pytest.raises(WeakPasswordError, match="at least 12 characters"):
            await service.verify("alice", "pool-1", "4821", "elevenchars")

    async def test_policy_rejection_keeps_record(
        self,
        service: PasswordResetService,
        seeded: InMemoryPasswordResetStore,
        directory: FakeDirectory,
    ) -> None:
        directory.rejected_passwords.add("password123")
        with pytest.raises(PasswordPolicyError):
            await service.verify("alice", "pool-1", "4821", "password123")
        assert await seeded.get("alice") is not None

    @pytest.mark.parametrize(
        "args",
        [
            (None, "pool-1", "4821", "n3w-Passw0rd"),
            ("alice", None, "4821", "n3w-Passw0rd"),
            ("alice", "pool-1", None, "n3w-Passw0rd"),
            ("alice", "pool-1", "4821", None),
        ],
    )
    async def test_missing_fields(
        self, service: PasswordResetService, args: tuple[str | None, ...]
    ) -> None:
        with pytest.raises(MissingFieldsError):
            await service.verify(*args)


@pytest.mark.asyncio
class TestEndpoints:
    async def test_initiate_ok(self, endpoints: PasswordResetEndpoints) -> None:
        response = await endpoints.initiate({"userName": "alice", "userPoolId": "pool-1"})
        assert response == ResetResponse(200, {"message": "OTP sent successfully"})

    async def test_initiate_missing_fields(self, endpoints: PasswordResetEndpoints) -> None:
        response = await endpoints.initiate({"userName": "alice"})
        assert response.status_code == 400
        assert response.body == {"message": "userName, userPoolId is required"}

    async def test_initiate_backend_failure_is_500(
        self, endpoints: PasswordResetEndpoints, directory: FakeDirectory
    ) -> None:
        directory.get_contacts = AsyncMock(  # type: ignore[method-assign]
            side_effect=RuntimeError("boom")
        )
        response = await endpoints.initiate({"userName": "alice", "userPoolId": "pool-1"})
        assert response.status_code == 500
        assert response.body == {"message": "Error sending OTP", "cause": "boom"}

    async def test_initiate_unknown_user_is_500(self, endpoints: PasswordResetEndpoints) -> None:
        response = await endpoints.initiate({"userName": "mallory", "userPoolId": "pool-1"})
        assert response.status_code == 500
        assert response.body["message"] == "Error sending OTP"

    async def test_initiate_mistyped_field(self, endpoints: PasswordResetEndpoints) -> None:
        response = await endpoints.initiate({"userName": ["alice"], "userPoolId": "pool-1"})
        assert response.status_code == 400
        assert response.body["message"].startswith("Invalid request fields")

    async def test_verify_ok(
        self, endpoints: PasswordResetEndpoints, reset_store: InMemoryPasswordResetStore
    ) -> None:
        await reset_store.put(PasswordResetRecord("alice", "4821", NOW + 300))
        response = await endpoints.verify(verify_payload())
        assert response == ResetResponse(200, {"message": "Password reset successfully"})

    @pytest.mark.parametrize(
        "payload, status, message",
        [
            (
                {"userName": "alice"},
                400,
                "userName, userPoolId, otp, and newPassword are required",
            ),
            (
                verify_payload(password="short"),
                400,
                "Password must be at least 8 characters long",
            ),
            (
                verify_payload(otp="9999"),
                400,
                "Invalid or expired OTP",
            ),
        ],
    )
    async def test_verify_client_errors(
        self,
        endpoints: PasswordResetEndpoints,
        payload: dict[str, str],
        status: int,
        message: str,
    ) -> None:
        response = await endpoints.verify(payload)
        assert response.status_code == status
        assert response.body == {"message": message}

    async def test_verify_unknown_user_is_404(
        self, endpoints: PasswordResetEndpoints, reset_store: InMemoryPasswordResetStore
    ) -> None:
        await reset_store.put(PasswordResetRecord("mallory", "4821", NOW + 300))
        response = await endpoints.verify(verify_payload(user="mallory"))
        assert response == ResetResponse(404, {"message": "User not found"})

    async def test_verify_unexpected_error_is_500(
        self,
        endpoints: PasswordResetEndpoints,
        reset_store: InMemoryPasswordResetStore,
        directory: FakeDirectory,
    ) -> None:
        await reset_store.put(PasswordResetRecord("alice", "4821", NOW + 300))
        directory.set_password = AsyncMock(  # type: ignore[method-assign]
            side_effect=RuntimeError("backend down")
        )
        response = await endpoints.verify(verify_payload())
        assert response.status_code == 500
        assert response.body == {"message": "Error resetting password", "cause": "backend down"}


def test_proxy_response_serializes_body() -> None:
    proxy = ResetResponse(400, {"message": "nope"}).to_proxy_response()
    assert proxy == {"statusCode": 400, "body": json.dumps({"message": "nope"})}
