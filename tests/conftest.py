"""Test configuration and fixtures."""

from __future__ import annotations

import pytest

from challenge_auth.channels.memory import InMemoryOtpChannel
from challenge_auth.config import OtpConfig
from challenge_auth.delivery import ChannelKind
from challenge_auth.issuer import ChallengeIssuer
from challenge_auth.model import AccountContacts, LoginContext
from challenge_auth.orchestrator import AuthChallengeOrchestrator
from challenge_auth.otp import OtpDispatcher
from challenge_auth.stores.memory import InMemoryLoginStateStore, InMemoryPasswordResetStore
from challenge_auth.verifier import AnswerVerifier

from .fakes import EMAIL, PHONE, FakeCredentials, FakeDirectory


@pytest.fixture
def otp_config() -> OtpConfig:
    return OtpConfig()


@pytest.fixture
def session_store() -> InMemoryLoginStateStore:
    return InMemoryLoginStateStore()


@pytest.fixture
def reset_store() -> InMemoryPasswordResetStore:
    return InMemoryPasswordResetStore()


@pytest.fixture
def sms() -> InMemoryOtpChannel:
    return InMemoryOtpChannel(ChannelKind.SMS)


@pytest.fixture
def email() -> InMemoryOtpChannel:
    return InMemoryOtpChannel(ChannelKind.EMAIL)


@pytest.fixture
def directory() -> FakeDirectory:
    directory = FakeDirectory()
    directory.contacts["alice"] = AccountContacts(phone_number=PHONE, email=EMAIL)
    return directory


@pytest.fixture
def credentials() -> FakeCredentials:
    return FakeCredentials({"alice": "correct-horse"})


@pytest.fixture
def context() -> LoginContext:
    return LoginContext(
        user_id="alice",
        scope="pool-1",
        client_id="client-1",
        contacts=AccountContacts(phone_number=PHONE, email=EMAIL),
    )


@pytest.fixture
def dispatcher(
    sms: InMemoryOtpChannel,
    email: InMemoryOtpChannel,
    directory: FakeDirectory,
    otp_config: OtpConfig,
) -> OtpDispatcher:
    return OtpDispatcher([sms, email], directory=directory, config=otp_config)


@pytest.fixture
def orchestrator(
    session_store: InMemoryLoginStateStore, otp_config: OtpConfig
) -> AuthChallengeOrchestrator:
    return AuthChallengeOrchestrator(store=session_store, config=otp_config)


@pytest.fixture
def issuer(session_store: InMemoryLoginStateStore, dispatcher: OtpDispatcher) -> ChallengeIssuer:
    return ChallengeIssuer(store=session_store, dispatcher=dispatcher)


@pytest.fixture
def verifier(
    session_store: InMemoryLoginStateStore,
    credentials: FakeCredentials,
    otp_config: OtpConfig,
) -> AnswerVerifier:
    return AnswerVerifier(store=session_store, credentials=credentials, config=otp_config)
