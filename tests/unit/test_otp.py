"""Tests for OTP generation and channel fan-out."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from challenge_auth.channels.memory import InMemoryOtpChannel
from challenge_auth.config import OtpConfig
from challenge_auth.delivery import ChannelKind, DeliveryStatus, render_otp_message
from challenge_auth.exceptions import OtpDeliveryError
from challenge_auth.model import AccountContacts, LoginContext
from challenge_auth.otp import OtpDispatcher, OtpGenerator, random_code

from ..fakes import EMAIL, PHONE, FakeDirectory


class TestRandomCode:
    @pytest.mark.parametrize("length", [1, 4, 6, 10])
    def test_length_and_digits(self, length: int) -> None:
        code = random_code(length)
        assert len(code) == length
        assert code.isdigit()

    def test_leading_zeros_are_kept(self) -> None:
        with patch("challenge_auth.otp.secrets.randbelow", side_effect=[0, 0, 7, 3]):
            assert random_code(4) == "0073"


class TestOtpGenerator:
    def test_regular_identity_gets_random_code(self, context: LoginContext) -> None:
        generator = OtpGenerator(OtpConfig(code_length=6))
        code = generator.generate(context)
        assert len(code) == 6 and code.isdigit()

    def test_no_test_identities_by_default(self, context: LoginContext) -> None:
        assert not OtpGenerator().is_test_identity(context)

    def test_test_identity_by_phone(self, context: LoginContext) -> None:
        generator = OtpGenerator(OtpConfig(test_identities=frozenset({PHONE})))
        assert generator.generate(context) == "1234"

    def test_test_identity_by_user_id(self) -> None:
        generator = OtpGenerator(
            OtpConfig(test_identities=frozenset({"qa-bot"}), test_code="0000")
        )
        assert generator.generate(LoginContext(user_id="qa-bot")) == "0000"


@pytest.mark.asyncio
class TestDispatcher:
    async def test_fans_out_to_every_contact(
        self,
        dispatcher: OtpDispatcher,
        context: LoginContext,
        sms: InMemoryOtpChannel,
        email: InMemoryOtpChannel,
    ) -> None:
        report = await dispatcher.dispatch(context, "4821")

        assert report.succeeded
        assert set(report.delivered_channels) == {ChannelKind.SMS, ChannelKind.EMAIL}
        sms.assert_sent(PHONE)
        email.assert_sent(EMAIL)
        assert sms.codes == ["4821"]
        assert "4821" in sms.sent_messages[0].message.sms_text

    async def test_only_registered_contacts_are_used(
        self, dispatcher: OtpDispatcher, sms: InMemoryOtpChannel, email: InMemoryOtpChannel
    ) -> None:
        context = LoginContext("bob", contacts=AccountContacts(email="bob@example.com"))
        await dispatcher.dispatch(context, "4821")
        assert sms.sent_messages == []
        email.assert_sent("bob@example.com")

    async def test_partial_failure_still_succeeds(
        self, directory: FakeDirectory, context: LoginContext, email: InMemoryOtpChannel
    ) -> None:
        broken = InMemoryOtpChannel(ChannelKind.SMS, fail_with="throttled")
        dispatcher = OtpDispatcher([broken, email], directory=directory)

        report = await dispatcher.dispatch(context, "4821")

        assert report.succeeded
        assert report.delivered_channels == [ChannelKind.EMAIL]
        assert report.errors == ("sms: throttled",)

    async def test_total_failure_raises(self, context: LoginContext) -> None:
        dispatcher = OtpDispatcher(
            [
                InMemoryOtpChannel(ChannelKind.SMS, fail_with="down"),
                InMemoryOtpChannel(ChannelKind.EMAIL, fail_with="bounced"),
            ]
        )
        with pytest.raises(OtpDeliveryError) as exc_info:
            await dispatcher.dispatch(context, "4821")
        assert exc_info.value.errors == ["sms: down", "email: bounced"]

    async def test_total_failure_tolerated_when_not_required(
        self, context: LoginContext
    ) -> None:
        dispatcher = OtpDispatcher([InMemoryOtpChannel(ChannelKind.SMS, fail_with="down")])
        report = await dispatcher.dispatch(context, "4821", require_delivery=False)
        assert not report.succeeded
        assert report.records[0].status is DeliveryStatus.FAILED

    async def test_no_contacts_is_a_failure(self, dispatcher: OtpDispatcher) -> None:
        with pytest.raises(OtpDeliveryError, match="no channel available"):
            await dispatcher.dispatch(LoginContext("nobody"), "4821")

    async def test_raising_channel_becomes_failed_record(
        self, context: LoginContext, email: InMemoryOtpChannel
    ) -> None:
        class ExplodingChannel(InMemoryOtpChannel):
            async def send(self, target, message):  # type: ignore[no-untyped-def]
                raise RuntimeError("socket closed")

        dispatcher = OtpDispatcher([ExplodingChannel(ChannelKind.SMS), email])
        report = await dispatcher.dispatch(context, "4821")
        assert report.succeeded
        assert report.errors == ("sms: socket closed",)

    async def test_privileged_account_gets_email_only(
        self,
        dispatcher: OtpDispatcher,
        directory: FakeDirectory,
        context: LoginContext,
        sms: InMemoryOtpChannel,
        email: InMemoryOtpChannel,
    ) -> None:
        directory.groups["alice"] = ["users", "CLINIC_PROVIDER_ADMINS"]

        await dispatcher.dispatch(context, "4821")

        assert sms.sent_messages == []
        email.assert_sent(EMAIL)

    async def test_privileged_suppression_can_be_disabled(
        self,
        directory: FakeDirectory,
        context: LoginContext,
        sms: InMemoryOtpChannel,
        email: InMemoryOtpChannel,
    ) -> None:
        directory.groups["alice"] = ["PROVIDER"]
        dispatcher = OtpDispatcher(
            [sms, email],
            directory=directory,
            config=OtpConfig(suppress_sms_for_privileged=False),
        )
        await dispatcher.dispatch(context, "4821")
        assert directory.group_lookups == 0
        sms.assert_sent(PHONE)

    async def test_reset_delivery_ignores_login_policies(
        self,
        dispatcher: OtpDispatcher,
        directory: FakeDirectory,
        context: LoginContext,
        sms: InMemoryOtpChannel,
    ) -> None:
        directory.groups["alice"] = ["PROVIDER"]
        await dispatcher.dispatch(context, "4821", login_policies=False, valid_minutes=5)
        sms.assert_sent(PHONE)
        assert "valid for the next 5 minutes" in sms.sent_messages[0].message.body_text

    async def test_test_identity_is_never_sent_anything(
        self, sms: InMemoryOtpChannel, email: InMemoryOtpChannel, context: LoginContext
    ) -> None:
        dispatcher = OtpDispatcher(
            [sms, email], config=OtpConfig(test_identities=frozenset({"alice"}))
        )
        report = await dispatcher.dispatch(context, "1234")
        assert report.skipped and report.succeeded
        assert sms.sent_messages == [] and email.sent_messages == []


def test_duplicate_channel_kind_is_rejected() -> None:
    with pytest.raises(ValueError, match="Duplicate channel for sms"):
        OtpDispatcher([InMemoryOtpChannel(ChannelKind.SMS), InMemoryOtpChannel(ChannelKind.SMS)])


def test_rendered_message_mentions_brand() -> None:
    message = render_otp_message("4821", "Acme")
    assert message.subject == "Acme OTP Code"
    assert message.sms_text.startswith("Your Acme OTP code is: 4821.")
    assert "<b>4821</b>" in message.body_html
    assert "valid for" not in message.body_text
