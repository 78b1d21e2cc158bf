"""Adapter between identity-provider trigger events and the three phases.

Event documents follow the Cognito custom-authentication trigger shape.
Each handler returns a copy of the event with its ``response`` filled in.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ValidationError
from .issuer import ChallengeIssuer
from .model import (
    CUSTOM_CHALLENGE,
    AccountContacts,
    ChallengeRound,
    LoginContext,
    Transcript,
)
from .orchestrator import AuthChallengeOrchestrator
from .verifier import AnswerVerifier

logger = logging.getLogger(__name__)

CLIENT_ID_ATTRIBUTE = "custom:clientId"
CLIENT_ID_CLAIM = "clientId"


# ═══════════════════════════════════════════════════════════════
# EVENT MODELS
# ═══════════════════════════════════════════════════════════════


class _EventModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SessionEntry(_EventModel):
    challenge_name: str = Field(alias="challengeName")
    challenge_result: bool | None = Field(default=False, alias="challengeResult")
    challenge_metadata: str | None = Field(default=None, alias="challengeMetadata")

    def to_round(self) -> ChallengeRound:
        return ChallengeRound(
            challenge_name=self.challenge_name,
            challenge_result=bool(self.challenge_result),
            challenge_metadata=self.challenge_metadata,
        )


class CallerContext(_EventModel):
    client_id: str | None = Field(default=None, alias="clientId")


class TriggerRequest(_EventModel):
    session: list[SessionEntry] = Field(default_factory=list)
    user_attributes: dict[str, Any] = Field(default_factory=dict, alias="userAttributes")
    private_challenge_parameters: dict[str, Any] = Field(
        default_factory=dict, alias="privateChallengeParameters"
    )
    challenge_answer: str | None = Field(default=None, alias="challengeAnswer")


class TriggerEvent(_EventModel):
    user_name: str = Field(alias="userName")
    user_pool_id: str = Field(default="", alias="userPoolId")
    caller_context: CallerContext = Field(default_factory=CallerContext, alias="callerContext")
    request: TriggerRequest = Field(default_factory=TriggerRequest)

    @property
    def transcript(self) -> Transcript:
        return tuple(entry.to_round() for entry in self.request.session)

    @property
    def context(self) -> LoginContext:
        return LoginContext(
            user_id=self.user_name,
            scope=self.user_pool_id,
            client_id=self.caller_context.client_id,
            contacts=AccountContacts.from_attributes(self.request.user_attributes),
        )


def parse_event(event: Mapping[str, Any]) -> TriggerEvent:
    """Validate a trigger document.

    Raises:
        ValidationError: If required fields are missing or mistyped.
    """
    try:
        return TriggerEvent.model_validate(event)
    except PydanticValidationError as e:
        errors: dict[str, list[str]] = {}
        for err in e.errors():
            loc = ".".join(str(p) for p in err.get("loc", ())) or "__root__"
            errors.setdefault(loc, []).append(err.get("msg", "invalid"))
        raise ValidationError(errors) from e


def _with_response(event: Mapping[str, Any], **fields: Any) -> dict[str, Any]:
    result = copy.deepcopy(dict(event))
    response = dict(result.get("response") or {})
    response.update(fields)
    result["response"] = response
    return result


# ═══════════════════════════════════════════════════════════════
# ADAPTER
# ═══════════════════════════════════════════════════════════════


class CognitoTriggerAdapter:
    """Runs the phases for Cognito's define/create/verify triggers.

    Example:
        ```python
        adapter = CognitoTriggerAdapter(orchestrator, issuer, verifier)
        event = await adapter.define(event)
        ```
    """

    def __init__(
        self,
        orchestrator: AuthChallengeOrchestrator,
        issuer: ChallengeIssuer,
        verifier: AnswerVerifier,
    ) -> None:
        self.orchestrator = orchestrator
        self.issuer = issuer
        self.verifier = verifier

    async def define(self, event: Mapping[str, Any]) -> dict[str, Any]:
        parsed = parse_event(event)
        decision = await self.orchestrator.decide(parsed.user_name, parsed.transcript)
        fields: dict[str, Any] = {
            "issueTokens": decision.issue_tokens,
            "failAuthentication": decision.fail_authentication,
        }
        if not decision.is_terminal:
            fields["challengeName"] = CUSTOM_CHALLENGE
        return _with_response(event, **fields)

    async def create(self, event: Mapping[str, Any]) -> dict[str, Any]:
        parsed = parse_event(event)
        challenge = await self.issuer.issue(parsed.context, parsed.transcript)
        return _with_response(
            event,
            publicChallengeParameters=challenge.public_parameters,
            privateChallengeParameters=challenge.private_parameters,
            challengeMetadata=challenge.challenge_metadata,
        )

    async def verify(self, event: Mapping[str, Any]) -> dict[str, Any]:
        """Judge the answer.

        Raises:
            ResendLimitExceededError: Propagated so the pipeline aborts the
                login with ``MAX_OTP_RESEND_ATTEMPTS_EXCEEDED``.
        """
        parsed = parse_event(event)
        result = await self.verifier.verify(
            parsed.context,
            parsed.request.private_challenge_parameters,
            parsed.request.challenge_answer,
        )
        return _with_response(event, answerCorrect=result.correct)

    async def pre_token_generation(self, event: Mapping[str, Any]) -> dict[str, Any]:
        """Copy the ``custom:clientId`` attribute into access and ID token claims."""
        parsed = parse_event(event)
        client_id = parsed.request.user_attributes.get(CLIENT_ID_ATTRIBUTE)
        if client_id is None:
            logger.warning(f"No {CLIENT_ID_ATTRIBUTE} attribute on {parsed.user_name}")
        claims = {CLIENT_ID_CLAIM: client_id}
        return _with_response(
            event,
            claimsAndScopeOverrideDetails={
                "accessTokenGeneration": {"claimsToAddOrOverride": dict(claims)},
                "idTokenGeneration": {"claimsToAddOrOverride": dict(claims)},
            },
        )


__all__: list[str] = [
    "SessionEntry",
    "CallerContext",
    "TriggerRequest",
    "TriggerEvent",
    "parse_event",
    "CognitoTriggerAdapter",
]
