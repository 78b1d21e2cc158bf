"""In-memory channels for tests and local development."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..delivery import ChannelKind, DeliveryRecord, OtpMessage
from ..ports import IOtpChannel

logger = logging.getLogger(__name__)


@dataclass
class SentMessage:
    """Record of a sent message for test assertions."""

    target: str
    message: OtpMessage
    channel: ChannelKind


class InMemoryOtpChannel(IOtpChannel):
    """
    Test double (Fake) that stores messages in a list for assertions.

    Set ``fail_with`` to make every send return a failed record.
    """

    def __init__(self, kind: ChannelKind, *, fail_with: str | None = None) -> None:
        self.kind = kind
        self.fail_with = fail_with
        self.sent_messages: list[SentMessage] = []

    async def send(self, target: str, message: OtpMessage) -> DeliveryRecord:
        if self.fail_with is not None:
            return DeliveryRecord.failed(target, self.kind, error=self.fail_with)
        self.sent_messages.append(SentMessage(target, message, self.kind))
        return DeliveryRecord.sent(target, self.kind, provider_id="test-id")

    @property
    def codes(self) -> list[str]:
        """Codes sent so far, oldest first."""
        return [m.message.code for m in self.sent_messages]

    def assert_sent(self, target: str, count: int = 1) -> None:
        """Helper for test assertions."""
        matches = [m for m in self.sent_messages if m.target == target]
        if len(matches) != count:
            raise AssertionError(
                f"Expected {count} messages to {target} via {self.kind.value}, "
                f"but found {len(matches)}."
            )

    def clear(self) -> None:
        """Clear all sent messages."""
        self.sent_messages.clear()


class ConsoleOtpChannel(IOtpChannel):
    """Logs messages instead of sending them. Development only."""

    def __init__(self, kind: ChannelKind) -> None:
        self.kind = kind

    async def send(self, target: str, message: OtpMessage) -> DeliveryRecord:
        logger.info(f"[{self.kind.value}] to {target}: {message.subject}")
        return DeliveryRecord.sent(target, self.kind, provider_id="console")


__all__: list[str] = ["SentMessage", "InMemoryOtpChannel", "ConsoleOtpChannel"]
