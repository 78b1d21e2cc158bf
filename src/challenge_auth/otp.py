"""OTP generation and multi-channel dispatch.

Codes are drawn one digit at a time from ``secrets``. Dispatch fans out to
every registered channel concurrently and succeeds when at least one
channel delivers; generation and delivery are skipped for configured test
identities.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from collections.abc import Sequence
from dataclasses import dataclass

from .config import OtpConfig
from .delivery import ChannelKind, DeliveryRecord, OtpMessage, render_otp_message
from .exceptions import OtpDeliveryError
from .model import AccountContacts, LoginContext
from .ports import IIdentityDirectory, IOtpChannel

logger = logging.getLogger(__name__)


def random_code(length: int) -> str:
    """Numeric code of ``length`` digits, each uniform over 0-9."""
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


class OtpGenerator:
    """Produces login passcodes.

    Test identities (by phone number or user identifier) always receive
    ``config.test_code``.
    """

    def __init__(self, config: OtpConfig | None = None) -> None:
        self.config = config or OtpConfig()

    def is_test_identity(self, context: LoginContext) -> bool:
        identities = self.config.test_identities
        if not identities:
            return False
        return context.user_id in identities or (
            context.contacts.phone_number is not None
            and context.contacts.phone_number in identities
        )

    def generate(self, context: LoginContext) -> str:
        if self.is_test_identity(context):
            logger.info(f"Using fixed OTP for test identity {context.user_id}")
            return self.config.test_code
        return random_code(self.config.code_length)


@dataclass(frozen=True)
class DispatchReport:
    """Outcome of one fan-out."""

    records: tuple[DeliveryRecord, ...] = ()
    skipped: bool = False
    errors: tuple[str, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.skipped or any(r.succeeded for r in self.records)

    @property
    def delivered_channels(self) -> list[ChannelKind]:
        return [r.channel for r in self.records if r.succeeded]


class OtpDispatcher:
    """Sends a passcode over every channel the account has registered.

    Example:
        ```python
        dispatcher = OtpDispatcher(
            [SnsSmsChannel(), SesEmailChannel(from_email="otp@example.com")],
            directory=CognitoIdentityDirectory(),
        )
        await dispatcher.dispatch(context, "4821")
        ```
    """

    def __init__(
        self,
        channels: Sequence[IOtpChannel],
        *,
        directory: IIdentityDirectory | None = None,
        config: OtpConfig | None = None,
        brand_name: str = "Account",
    ) -> None:
        """Initialize the dispatcher.

        Args:
            channels: At most one channel per :class:`ChannelKind`.
            directory: Used for the privileged-group SMS suppression.
            config: OTP configuration (test identities, suppression).
            brand_name: Product name used in messages.
        """
        self._channels: dict[ChannelKind, IOtpChannel] = {}
        for channel in channels:
            if channel.kind in self._channels:
                raise ValueError(f"Duplicate channel for {channel.kind.value}")
            self._channels[channel.kind] = channel
        self._directory = directory
        self.config = config or OtpConfig()
        self.brand_name = brand_name
        self._generator = OtpGenerator(self.config)

    async def dispatch(
        self,
        context: LoginContext,
        code: str,
        *,
        require_delivery: bool = True,
        login_policies: bool = True,
        valid_minutes: int | None = None,
    ) -> DispatchReport:
        """Deliver ``code`` over all applicable channels concurrently.

        Args:
            context: Recipient account and its contacts.
            code: Passcode to deliver.
            require_delivery: Raise when no channel succeeds.
            login_policies: Apply the test-identity skip and the
                privileged-group SMS suppression.
            valid_minutes: Validity mentioned in the message.

        Raises:
            OtpDeliveryError: If ``require_delivery`` and every attempt failed.
        """
        if login_policies and self._generator.is_test_identity(context):
            logger.info(f"Skipping OTP delivery for test identity {context.user_id}")
            return DispatchReport(skipped=True)

        message = render_otp_message(code, self.brand_name, valid_minutes=valid_minutes)
        plan = await self._plan(context, login_policies=login_policies)

        records = await asyncio.gather(
            *(self._attempt(channel, target, message) for channel, target in plan)
        )
        errors = [
            f"{r.channel.value}: {r.error or 'failed'}" for r in records if not r.succeeded
        ]
        report = DispatchReport(records=tuple(records), errors=tuple(errors))

        if not report.succeeded:
            logger.error(f"OTP delivery failed on every channel for {context.user_id}")
            if require_delivery:
                raise OtpDeliveryError(context.user_id, errors)
        elif errors:
            logger.warning(
                f"Partial OTP delivery for {context.user_id}: {'; '.join(errors)}"
            )
        return report

    async def _plan(
        self, context: LoginContext, *, login_policies: bool
    ) -> list[tuple[IOtpChannel, str]]:
        contacts: AccountContacts = context.contacts
        plan: list[tuple[IOtpChannel, str]] = []

        sms = self._channels.get(ChannelKind.SMS)
        if sms is not None and contacts.phone_number:
            if login_policies and await self._is_privileged(context):
                logger.info(f"Suppressing SMS for privileged account {context.user_id}")
            else:
                plan.append((sms, contacts.phone_number))

        email = self._channels.get(ChannelKind.EMAIL)
        if email is not None and contacts.email:
            plan.append((email, contacts.email))

        return plan

    async def _is_privileged(self, context: LoginContext) -> bool:
        if not self.config.suppress_sms_for_privileged or self._directory is None:
            return False
        groups = await self._directory.list_groups(context.user_id, context.scope)
        marker = self.config.privileged_group_marker
        return any(marker in group for group in groups)

    async def _attempt(
        self, channel: IOtpChannel, target: str, message: OtpMessage
    ) -> DeliveryRecord:
        try:
            return await channel.send(target, message)
        except Exception as e:  # noqa: BLE001
            logger.error(f"{channel.kind.value} delivery raised: {e}")
            return DeliveryRecord.failed(target, channel.kind, error=str(e))


__all__: list[str] = ["random_code", "OtpGenerator", "DispatchReport", "OtpDispatcher"]
