"""Verify phase: judge the user's answer to the current challenge.

Counter mutations are single conditional updates against the store, so
concurrent answers for the same user never lose an increment. A resend at
the lockout threshold raises :class:`ResendLimitExceededError` instead of
returning an ordinary incorrect answer.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Mapping
from typing import Any

from .config import OtpConfig
from .exceptions import ConditionFailedError, ResendLimitExceededError
from .model import (
    AuthFlow,
    ChallengeStep,
    LoginContext,
    LoginSession,
    SessionUpdate,
    VerificationOutcome,
    VerificationResult,
)
from .ports import ICredentialVerifier, ILoginStateStore

logger = logging.getLogger(__name__)


def _same_code(answer: str, expected: str) -> bool:
    return secrets.compare_digest(answer.encode("utf-8"), expected.encode("utf-8"))


class AnswerVerifier:
    """Checks answers and applies the associated state mutation."""

    def __init__(
        self,
        *,
        store: ILoginStateStore,
        credentials: ICredentialVerifier,
        config: OtpConfig | None = None,
    ) -> None:
        self._store = store
        self._credentials = credentials
        self.config = config or OtpConfig()

    async def verify(
        self,
        context: LoginContext,
        private_parameters: Mapping[str, Any],
        answer: str | None,
    ) -> VerificationResult:
        """Verify ``answer`` against the challenge described by ``private_parameters``.

        Args:
            context: Login context.
            private_parameters: Private metadata of the issued challenge.
            answer: The submitted answer.

        Raises:
            ResendLimitExceededError: If a resend is requested at the threshold.
        """
        step = ChallengeStep.parse(private_parameters.get("challengeMetadata"))
        if step is ChallengeStep.SELECT_AUTH_FLOW:
            result = await self._verify_flow(context, answer)
        elif step is ChallengeStep.PASSWORD_CHALLENGE:
            result = await self._verify_password(context, answer)
        elif step is ChallengeStep.OTP_CHALLENGE:
            result = await self._verify_otp(context, answer)
        else:
            result = VerificationResult(False, VerificationOutcome.UNRECOGNIZED_CHALLENGE)

        log = logger.info if result.correct else logger.warning
        log(
            f"Verify phase for {context.user_id}: "
            f"step={step.value if step else None} -> {result.outcome.value}"
        )
        return result

    async def _verify_flow(self, context: LoginContext, answer: str | None) -> VerificationResult:
        flow = AuthFlow.parse(answer)
        if flow is None:
            return VerificationResult(False, VerificationOutcome.FLOW_REJECTED)
        await self._store.put(LoginSession(user_id=context.user_id, flow=flow))
        return VerificationResult(True, VerificationOutcome.FLOW_SELECTED)

    async def _verify_password(
        self, context: LoginContext, answer: str | None
    ) -> VerificationResult:
        if not answer:
            return VerificationResult(False, VerificationOutcome.PASSWORD_REJECTED)
        if await self._credentials.verify(context, answer):
            return VerificationResult(True, VerificationOutcome.PASSWORD_ACCEPTED)
        return VerificationResult(False, VerificationOutcome.PASSWORD_REJECTED)

    async def _verify_otp(self, context: LoginContext, answer: str | None) -> VerificationResult:
        session = await self._store.get(context.user_id, consistent=True)
        if session is None:
            return VerificationResult(False, VerificationOutcome.SESSION_MISSING)

        if answer == self.config.resend_sentinel:
            return await self._accept_resend(context, session)

        if answer and session.otp and _same_code(answer, session.otp):
            return VerificationResult(True, VerificationOutcome.OTP_ACCEPTED)

        try:
            await self._store.update(
                context.user_id, SessionUpdate(increment={"otp_attempts": 1})
            )
        except ConditionFailedError:
            return VerificationResult(False, VerificationOutcome.SESSION_MISSING)
        return VerificationResult(False, VerificationOutcome.WRONG_ANSWER)

    async def _accept_resend(
        self, context: LoginContext, session: LoginSession
    ) -> VerificationResult:
        max_resend = self.config.max_resend
        if session.resend_count >= max_resend:
            logger.warning(f"Max resend attempts reached for {context.user_id}")
            raise ResendLimitExceededError(context.user_id, session.resend_count)

        try:
            updated = await self._store.update(
                context.user_id,
                SessionUpdate(
                    increment={"resend_count": 1},
                    set_fields={"otp_attempts": 0},
                    expect_below={"resend_count": max_resend},
                ),
            )
        except ConditionFailedError:
            # Lost a race: either the record went away or a concurrent
            # resend reached the threshold first.
            current = await self._store.get(context.user_id, consistent=True)
            if current is None:
                return VerificationResult(False, VerificationOutcome.SESSION_MISSING)
            raise ResendLimitExceededError(context.user_id, current.resend_count) from None

        logger.info(f"Resend accepted for {context.user_id} (resend {updated.resend_count})")
        return VerificationResult(False, VerificationOutcome.RESEND_ACCEPTED)


__all__: list[str] = ["AnswerVerifier"]
