"""Derive a login's stage from its transcript.

All three phases work from the stage computed here instead of matching
transcript shapes independently. A well-formed transcript starts with a
successful flow selection, optionally followed by one password round, then
OTP rounds.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .model import AuthFlow, ChallengeRound, ChallengeStep, FailureReason, LoginStage


@dataclass(frozen=True)
class TranscriptState:
    """Derived stage, plus the failure reason for ``TERMINAL_FAILURE``."""

    stage: LoginStage
    failure: FailureReason | None = None
    rounds: int = 0

    @classmethod
    def failed(cls, reason: FailureReason, rounds: int) -> TranscriptState:
        return cls(LoginStage.TERMINAL_FAILURE, reason, rounds)


def derive_state(transcript: Sequence[ChallengeRound]) -> TranscriptState:
    """Map a transcript onto a :class:`LoginStage`.

    Args:
        transcript: Prior rounds, oldest first.

    Returns:
        The derived state. Unrecognized rounds yield ``UNKNOWN_ERROR``;
        recognized rounds in impossible positions yield
        ``INVALID_CHALLENGE_STATE``.
    """
    n = len(transcript)
    if n == 0:
        return TranscriptState(LoginStage.AWAITING_FLOW)

    if any(r.step is None for r in transcript):
        return TranscriptState.failed(FailureReason.UNKNOWN_ERROR, n)

    first = transcript[0]
    last = transcript[-1]

    if first.step is not ChallengeStep.SELECT_AUTH_FLOW:
        return TranscriptState.failed(FailureReason.INVALID_CHALLENGE_STATE, n)

    if n == 1:
        if first.challenge_result:
            return TranscriptState(LoginStage.FLOW_SELECTED, rounds=n)
        return TranscriptState.failed(FailureReason.INVALID_AUTH_FLOW, n)

    if not first.challenge_result:
        return TranscriptState.failed(FailureReason.INVALID_CHALLENGE_STATE, n)

    if n == 2 and last.step is ChallengeStep.PASSWORD_CHALLENGE:
        if last.challenge_result:
            return TranscriptState(LoginStage.AWAITING_OTP, rounds=n)
        return TranscriptState.failed(FailureReason.INVALID_PASSWORD, n)

    if last.step is ChallengeStep.OTP_CHALLENGE:
        if last.challenge_result:
            return TranscriptState(LoginStage.TERMINAL_SUCCESS, rounds=n)
        return TranscriptState(LoginStage.OTP_RETRY, rounds=n)

    return TranscriptState.failed(FailureReason.INVALID_CHALLENGE_STATE, n)


def resolve_selected_flow(flow: AuthFlow) -> LoginStage:
    """Stage that follows a successful selection of ``flow``."""
    if flow is AuthFlow.PASSWORD_OTP:
        return LoginStage.AWAITING_PASSWORD
    return LoginStage.AWAITING_OTP


__all__: list[str] = ["TranscriptState", "derive_state", "resolve_selected_flow"]
