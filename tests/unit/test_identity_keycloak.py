"""Tests for the Keycloak identity backend with the python-keycloak clients patched."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from keycloak.exceptions import KeycloakAuthenticationError, KeycloakError

from challenge_auth.config import KeycloakSettings
from challenge_auth.exceptions import IdentityBackendError, PasswordPolicyError, UserNotFoundError
from challenge_auth.identity.keycloak import KeycloakCredentialVerifier, KeycloakIdentityDirectory
from challenge_auth.model import AccountContacts, LoginContext

SETTINGS = KeycloakSettings(
    server_url="http://localhost:8080/",
    realm="acme",
    client_id="login",
    client_secret="secret",
    admin_client_secret="admin-secret",
)


@pytest.fixture
def openid():
    with patch("challenge_auth.identity.keycloak.KeycloakOpenID") as cls:
        yield cls.return_value


@pytest.fixture
def admin():
    with patch("challenge_auth.identity.keycloak.KeycloakAdmin") as cls:
        instance = MagicMock()
        instance.get_user_id.return_value = "kc-123"
        cls.return_value = instance
        yield instance


@pytest.mark.asyncio
class TestKeycloakCredentialVerifier:
    async def test_valid_password(self, openid: MagicMock) -> None:
        verifier = KeycloakCredentialVerifier(SETTINGS)
        assert await verifier.verify(LoginContext("alice"), "correct-horse")
        openid.token.assert_called_once_with("alice", "correct-horse")

    async def test_rejected_password(self, openid: MagicMock) -> None:
        openid.token.side_effect = KeycloakAuthenticationError(
            error_message="invalid_grant", response_code=401
        )
        assert not await KeycloakCredentialVerifier(SETTINGS).verify(LoginContext("alice"), "x")

    async def test_server_error_raises(self, openid: MagicMock) -> None:
        openid.token.side_effect = KeycloakError(error_message="down", response_code=503)
        with pytest.raises(IdentityBackendError):
            await KeycloakCredentialVerifier(SETTINGS).verify(LoginContext("alice"), "x")


@pytest.mark.asyncio
class TestKeycloakIdentityDirectory:
    async def test_contacts_read_phone_attribute(self, admin: MagicMock) -> None:
        admin.get_user.return_value = {
            "email": "alice@example.com",
            "attributes": {"phone_number": ["+15551230000"]},
        }

        contacts = await KeycloakIdentityDirectory(SETTINGS).get_contacts("alice", "acme")

        assert contacts == AccountContacts("+15551230000", "alice@example.com")
        admin.get_user_id.assert_called_with("alice")
        admin.get_user.assert_called_with("kc-123")

    async def test_unknown_username(self, admin: MagicMock) -> None:
        admin.get_user_id.return_value = None
        with pytest.raises(UserNotFoundError):
            await KeycloakIdentityDirectory(SETTINGS).get_contacts("mallory", "acme")

    async def test_groups(self, admin: MagicMock) -> None:
        admin.get_user_groups.return_value = [{"name": "users"}, {"name": "PROVIDER"}]
        groups = await KeycloakIdentityDirectory(SETTINGS).list_groups("alice", "acme")
        assert groups == ["users", "PROVIDER"]

    async def test_set_password(self, admin: MagicMock) -> None:
        await KeycloakIdentityDirectory(SETTINGS).set_password("alice", "acme", "n3w-Passw0rd")
        admin.set_user_password.assert_called_once_with("kc-123", "n3w-Passw0rd", temporary=False)

    @pytest.mark.parametrize(
        "code, expected",
        [(400, PasswordPolicyError), (404, UserNotFoundError), (500, IdentityBackendError)],
    )
    async def test_set_password_errors(
        self, admin: MagicMock, code: int, expected: type[Exception]
    ) -> None:
        admin.set_user_password.side_effect = KeycloakError(
            error_message="rejected", response_code=code
        )
        with pytest.raises(expected):
            await KeycloakIdentityDirectory(SETTINGS).set_password("alice", "acme", "weak")
