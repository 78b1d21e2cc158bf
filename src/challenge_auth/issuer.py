"""Create phase: decide which challenge to present and issue codes.

A fresh code resets every counter. On an OTP retry a new code goes out only
when a resend is pending (``resend_count > last_sent_resend_count``); a wrong
guess re-presents the challenge with the same code. The invocation that
claims a pending resend is the only one that dispatches for it, and the new
code is written only after delivery has been attempted.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence

from .exceptions import ConditionFailedError, InvalidChallengeStateError
from .model import (
    ChallengeDescriptor,
    ChallengeRound,
    ChallengeStep,
    LoginContext,
    LoginSession,
    LoginStage,
    SessionUpdate,
)
from .otp import OtpDispatcher, OtpGenerator
from .ports import ILoginStateStore
from .transcript import derive_state, resolve_selected_flow

logger = logging.getLogger(__name__)

_Transition = Callable[[LoginContext], Awaitable[ChallengeDescriptor]]

SELECT_AUTH_FLOW = ChallengeDescriptor(ChallengeStep.SELECT_AUTH_FLOW)
PASSWORD_CHALLENGE = ChallengeDescriptor(ChallengeStep.PASSWORD_CHALLENGE)
OTP_CHALLENGE = ChallengeDescriptor(ChallengeStep.OTP_CHALLENGE)


class ChallengeIssuer:
    """Presents the next challenge and performs OTP side effects."""

    def __init__(
        self,
        *,
        store: ILoginStateStore,
        dispatcher: OtpDispatcher,
        generator: OtpGenerator | None = None,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._generator = generator or OtpGenerator(dispatcher.config)
        self._transitions: dict[LoginStage, _Transition] = {
            LoginStage.AWAITING_FLOW: self._select_flow,
            LoginStage.FLOW_SELECTED: self._follow_selected_flow,
            LoginStage.AWAITING_PASSWORD: self._ask_password,
            LoginStage.AWAITING_OTP: self._issue_fresh_code,
            LoginStage.OTP_RETRY: self._represent_otp,
        }

    async def issue(
        self, context: LoginContext, transcript: Sequence[ChallengeRound]
    ) -> ChallengeDescriptor:
        """Return the challenge for the next round.

        Raises:
            InvalidChallengeStateError: If the transcript is terminal or the
                session record does not support the derived stage.
            OtpDeliveryError: If a code had to be sent and no channel worked.
        """
        state = derive_state(transcript)
        transition = self._transitions.get(state.stage)
        if transition is None:
            raise InvalidChallengeStateError(
                f"No challenge to issue for {context.user_id} at stage {state.stage.value}"
            )
        challenge = await transition(context)
        logger.info(
            f"Create phase for {context.user_id}: stage={state.stage.value} "
            f"-> {challenge.step.value}"
        )
        return challenge

    async def _select_flow(self, context: LoginContext) -> ChallengeDescriptor:
        return SELECT_AUTH_FLOW

    async def _ask_password(self, context: LoginContext) -> ChallengeDescriptor:
        return PASSWORD_CHALLENGE

    async def _follow_selected_flow(self, context: LoginContext) -> ChallengeDescriptor:
        session = await self._store.get(context.user_id, consistent=True)
        if session is None:
            raise InvalidChallengeStateError(
                f"Flow selected but no session record for {context.user_id}"
            )
        return await self._transitions[resolve_selected_flow(session.flow)](context)

    async def _issue_fresh_code(self, context: LoginContext) -> ChallengeDescriptor:
        code = self._generator.generate(context)
        await self._dispatcher.dispatch(context, code)
        await self._store.update(
            context.user_id,
            SessionUpdate(
                set_fields={
                    "otp": code,
                    "resend_count": 0,
                    "last_sent_resend_count": 0,
                    "claimed_resend_count": 0,
                    "otp_attempts": 0,
                }
            ),
        )
        return OTP_CHALLENGE

    async def _represent_otp(self, context: LoginContext) -> ChallengeDescriptor:
        session = await self._store.get(context.user_id, consistent=True)
        if session is None or not session.has_pending_resend:
            return OTP_CHALLENGE
        if not await self._claim_resend(context, session):
            return OTP_CHALLENGE

        code = self._generator.generate(context)
        try:
            await self._dispatcher.dispatch(context, code)
        except Exception:
            await self._release_resend(context, session)
            raise

        try:
            await self._store.update(
                context.user_id,
                SessionUpdate(
                    set_fields={
                        "otp": code,
                        "last_sent_resend_count": session.resend_count,
                    },
                    expect_equal={"claimed_resend_count": session.resend_count},
                ),
            )
        except ConditionFailedError:
            logger.warning(
                f"Session for {context.user_id} changed while resend "
                f"{session.resend_count} was being sent"
            )
        else:
            logger.info(f"Resent OTP for {context.user_id} (resend {session.resend_count})")
        return OTP_CHALLENGE

    async def _claim_resend(self, context: LoginContext, session: LoginSession) -> bool:
        """Take ownership of the pending resend; False if another invocation has it."""
        if not session.has_unclaimed_resend:
            logger.info(
                f"Resend {session.resend_count} for {context.user_id} is already "
                "being fulfilled"
            )
            return False
        try:
            await self._store.update(
                context.user_id,
                SessionUpdate(
                    set_fields={"claimed_resend_count": session.resend_count},
                    expect_equal={
                        "claimed_resend_count": session.claimed_resend_count,
                        "last_sent_resend_count": session.last_sent_resend_count,
                    },
                ),
            )
        except ConditionFailedError:
            logger.warning(
                f"Resend {session.resend_count} for {context.user_id} was claimed "
                "by a concurrent invocation"
            )
            return False
        return True

    async def _release_resend(self, context: LoginContext, session: LoginSession) -> None:
        try:
            await self._store.update(
                context.user_id,
                SessionUpdate(
                    set_fields={"claimed_resend_count": session.claimed_resend_count},
                    expect_equal={"claimed_resend_count": session.resend_count},
                ),
            )
        except ConditionFailedError:
            logger.warning(f"Could not release resend claim for {context.user_id}")


__all__: list[str] = [
    "ChallengeIssuer",
    "SELECT_AUTH_FLOW",
    "PASSWORD_CHALLENGE",
    "OTP_CHALLENGE",
]
