"""Define phase: decide whether to challenge again, issue tokens or fail.

Terminal decisions (ISSUE_TOKENS and FAIL) delete the session record;
CONTINUE never does.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence

from .config import OtpConfig
from .model import ChallengeRound, Decision, FailureReason, LoginStage
from .ports import ILoginStateStore
from .transcript import TranscriptState, derive_state

logger = logging.getLogger(__name__)

_Transition = Callable[[str, TranscriptState], Awaitable[Decision]]


class AuthChallengeOrchestrator:
    """Top-level state machine driver.

    Example:
        ```python
        orchestrator = AuthChallengeOrchestrator(store=InMemoryLoginStateStore())
        decision = await orchestrator.decide("alice", transcript)
        if decision.issue_tokens:
            ...
        ```
    """

    def __init__(self, *, store: ILoginStateStore, config: OtpConfig | None = None) -> None:
        self._store = store
        self.config = config or OtpConfig()
        self._transitions: dict[LoginStage, _Transition] = {
            LoginStage.AWAITING_FLOW: self._challenge,
            LoginStage.FLOW_SELECTED: self._challenge,
            LoginStage.AWAITING_OTP: self._challenge,
            LoginStage.OTP_RETRY: self._retry_or_lock_out,
            LoginStage.TERMINAL_SUCCESS: self._grant,
            LoginStage.TERMINAL_FAILURE: self._fail,
        }

    async def decide(self, user_id: str, transcript: Sequence[ChallengeRound]) -> Decision:
        """Evaluate the transcript and return the round's decision."""
        state = derive_state(transcript)
        transition = self._transitions.get(state.stage, self._fail)
        decision = await transition(user_id, state)

        if decision.is_terminal:
            await self._store.delete(user_id)

        reason = f" ({decision.reason.value})" if decision.reason else ""
        logger.info(
            f"Define phase for {user_id}: stage={state.stage.value} "
            f"rounds={state.rounds} -> {decision.action.value}{reason}"
        )
        return decision

    async def _challenge(self, user_id: str, state: TranscriptState) -> Decision:
        return Decision.challenge()

    async def _grant(self, user_id: str, state: TranscriptState) -> Decision:
        return Decision.grant()

    async def _fail(self, user_id: str, state: TranscriptState) -> Decision:
        return Decision.fail(state.failure or FailureReason.INVALID_CHALLENGE_STATE)

    async def _retry_or_lock_out(self, user_id: str, state: TranscriptState) -> Decision:
        # Backstop: the verify phase rejects resends at the threshold itself.
        # A resend accepted at the threshold is still owed its code.
        session = await self._store.get(user_id, consistent=True)
        if session is None:
            logger.warning(f"No session record for {user_id} during OTP retry")
            return Decision.fail(FailureReason.INVALID_CHALLENGE_STATE)
        if session.resend_count >= self.config.max_resend and not session.has_pending_resend:
            logger.warning(
                f"Resend lockout for {user_id} at resend_count={session.resend_count}"
            )
            return Decision.fail(FailureReason.MAX_OTP_RESEND_ATTEMPTS_EXCEEDED)
        return Decision.challenge()


__all__: list[str] = ["AuthChallengeOrchestrator"]
