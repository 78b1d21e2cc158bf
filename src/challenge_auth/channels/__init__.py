"""Passcode delivery channels."""

from __future__ import annotations

from .memory import ConsoleOtpChannel, InMemoryOtpChannel, SentMessage
from .ses import SesEmailChannel
from .sns import SnsSmsChannel

__all__ = [
    "InMemoryOtpChannel",
    "ConsoleOtpChannel",
    "SentMessage",
    "SnsSmsChannel",
    "SesEmailChannel",
]
