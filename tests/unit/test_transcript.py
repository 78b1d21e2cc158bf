"""Tests for transcript stage derivation."""

from __future__ import annotations

import pytest

from challenge_auth.model import AuthFlow, ChallengeStep, FailureReason, LoginStage
from challenge_auth.transcript import derive_state, resolve_selected_flow

from ..fakes import OTP_BAD, OTP_OK, PASSWORD_BAD, PASSWORD_OK, SELECT_OK, round_


class TestDeriveState:
    def test_empty_transcript_awaits_flow(self) -> None:
        state = derive_state(())
        assert state.stage is LoginStage.AWAITING_FLOW
        assert state.failure is None
        assert state.rounds == 0

    def test_successful_selection(self) -> None:
        assert derive_state((SELECT_OK,)).stage is LoginStage.FLOW_SELECTED

    def test_rejected_selection_is_invalid_auth_flow(self) -> None:
        state = derive_state((round_(ChallengeStep.SELECT_AUTH_FLOW, False),))
        assert state.stage is LoginStage.TERMINAL_FAILURE
        assert state.failure is FailureReason.INVALID_AUTH_FLOW

    def test_password_accepted_awaits_otp(self) -> None:
        assert derive_state((SELECT_OK, PASSWORD_OK)).stage is LoginStage.AWAITING_OTP

    def test_password_rejected_fails(self) -> None:
        state = derive_state((SELECT_OK, PASSWORD_BAD))
        assert state.stage is LoginStage.TERMINAL_FAILURE
        assert state.failure is FailureReason.INVALID_PASSWORD

    @pytest.mark.parametrize(
        "transcript",
        [
            (SELECT_OK, OTP_OK),
            (SELECT_OK, PASSWORD_OK, OTP_OK),
            (SELECT_OK, PASSWORD_OK, OTP_BAD, OTP_BAD, OTP_OK),
        ],
    )
    def test_correct_otp_is_terminal_success(self, transcript) -> None:
        assert derive_state(transcript).stage is LoginStage.TERMINAL_SUCCESS

    @pytest.mark.parametrize(
        "transcript",
        [
            (SELECT_OK, OTP_BAD),
            (SELECT_OK, PASSWORD_OK, OTP_BAD),
            (SELECT_OK, OTP_BAD, OTP_BAD, OTP_BAD),
        ],
    )
    def test_negative_otp_round_is_retry(self, transcript) -> None:
        state = derive_state(transcript)
        assert state.stage is LoginStage.OTP_RETRY
        assert state.rounds == len(transcript)

    def test_unknown_tag_is_unknown_error(self) -> None:
        state = derive_state((SELECT_OK, round_("SOMETHING_ELSE", True)))
        assert state.stage is LoginStage.TERMINAL_FAILURE
        assert state.failure is FailureReason.UNKNOWN_ERROR

    def test_foreign_challenge_name_is_unknown_error(self) -> None:
        foreign = round_(ChallengeStep.SELECT_AUTH_FLOW, True, name="SRP_A")
        state = derive_state((foreign,))
        assert state.failure is FailureReason.UNKNOWN_ERROR

    @pytest.mark.parametrize(
        "transcript",
        [
            (PASSWORD_OK,),
            (OTP_OK,),
            (SELECT_OK, SELECT_OK),
            (SELECT_OK, PASSWORD_OK, PASSWORD_OK),
            (round_(ChallengeStep.SELECT_AUTH_FLOW, False), OTP_OK),
        ],
    )
    def test_malformed_transcripts_are_invalid_state(self, transcript) -> None:
        state = derive_state(transcript)
        assert state.stage is LoginStage.TERMINAL_FAILURE
        assert state.failure is FailureReason.INVALID_CHALLENGE_STATE


def test_resolve_selected_flow() -> None:
    assert resolve_selected_flow(AuthFlow.PASSWORD_OTP) is LoginStage.AWAITING_PASSWORD
    assert resolve_selected_flow(AuthFlow.OTP_ONLY) is LoginStage.AWAITING_OTP
