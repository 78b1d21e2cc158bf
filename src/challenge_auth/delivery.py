"""Delivery channel kinds, rendered OTP messages and delivery records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum


class ChannelKind(Enum):
    """Channels a passcode can travel over."""

    SMS = "sms"
    EMAIL = "email"


class DeliveryStatus(Enum):
    SENT = "sent"
    FAILED = "failed"


@dataclass(frozen=True)
class DeliveryRecord:
    """Immutable record of one delivery attempt."""

    target: str
    channel: ChannelKind
    status: DeliveryStatus
    provider_id: str | None = None
    sent_at: datetime | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        if self.sent_at is None:
            object.__setattr__(self, "sent_at", datetime.now(timezone.utc))

    @property
    def succeeded(self) -> bool:
        return self.status is DeliveryStatus.SENT

    @classmethod
    def sent(
        cls,
        target: str,
        channel: ChannelKind,
        provider_id: str | None = None,
    ) -> DeliveryRecord:
        """Create a successful delivery record."""
        return cls(
            target=target,
            channel=channel,
            status=DeliveryStatus.SENT,
            provider_id=provider_id,
        )

    @classmethod
    def failed(
        cls,
        target: str,
        channel: ChannelKind,
        error: str | None = None,
    ) -> DeliveryRecord:
        """Create a failed delivery record."""
        return cls(
            target=target,
            channel=channel,
            status=DeliveryStatus.FAILED,
            error=error,
        )


@dataclass(frozen=True)
class OtpMessage:
    """Passcode message rendered for every channel.

    Attributes:
        code: The passcode, for channels that template it themselves.
        sms_text: Body for SMS.
        subject: Email subject.
        body_text: Plain-text email body.
        body_html: HTML email body.
    """

    code: str
    sms_text: str
    subject: str
    body_text: str
    body_html: str


def render_otp_message(
    code: str,
    brand: str = "Account",
    *,
    valid_minutes: int | None = None,
) -> OtpMessage:
    """Render the passcode message for SMS and email."""
    validity = ""
    if valid_minutes:
        validity = f"This code is valid for the next {valid_minutes} minutes. "
    sms_text = (
        f"Your {brand} OTP code is: {code}. Do not share this code with anyone. "
        "Message & data rates may apply."
    )
    body_text = (
        "Dear User,\n\n"
        f"Your one-time password (OTP) code is: {code}\n\n"
        f"{validity}Please do not share this code with anyone.\n\n"
        f"If you did not request this, please contact {brand} support immediately.\n\n"
        f"Thank you,\n{brand} Team"
    )
    body_html = (
        "<html><body>"
        "<p>Dear User,</p>"
        f"<p>Your one-time password (OTP) code is: <b>{code}</b></p>"
        f"<p>{validity}Please do not share this code with anyone.</p>"
        f"<p>If you did not request this, please contact {brand} support immediately.</p>"
        f"<p>Thank you,<br/>{brand} Team</p>"
        "</body></html>"
    )
    return OtpMessage(
        code=code,
        sms_text=sms_text,
        subject=f"{brand} OTP Code",
        body_text=body_text,
        body_html=body_html,
    )


__all__: list[str] = [
    "ChannelKind",
    "DeliveryStatus",
    "DeliveryRecord",
    "OtpMessage",
    "render_otp_message",
]
