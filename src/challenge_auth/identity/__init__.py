"""Identity backend adapters (credential checks and account directory)."""

from __future__ import annotations

from .cognito import CognitoCredentialVerifier, CognitoIdentityDirectory
from .keycloak import KeycloakCredentialVerifier, KeycloakIdentityDirectory

__all__ = [
    "CognitoCredentialVerifier",
    "CognitoIdentityDirectory",
    "KeycloakCredentialVerifier",
    "KeycloakIdentityDirectory",
]
