"""
Credential failure taxonomy.

Primitives and decoders raise these; the resolver catches them and turns
them into `Unauthenticated` results. They never reach a route handler.
"""

from __future__ import annotations

from enum import Enum


class FailureKind(str, Enum):
    """Why a request was not resolved or not allowed."""

    MISSING_CREDENTIAL = "missing_credential"
    MALFORMED_CREDENTIAL = "malformed_credential"
    EXPIRED_CREDENTIAL = "expired_credential"
    SIGNATURE_MISMATCH = "signature_mismatch"
    UNKNOWN_IDENTITY = "unknown_identity"
    INSUFFICIENT_CAPABILITY = "insufficient_capability"


class CredentialError(Exception):
    """Base exception for a credential that is present but unusable."""

    kind: FailureKind = FailureKind.MALFORMED_CREDENTIAL

    def __init__(self, message: str = "Invalid credential"):
        self.message = message
        super().__init__(message)


class MalformedCredentialError(CredentialError):
    """Header or token is structurally invalid."""

    kind = FailureKind.MALFORMED_CREDENTIAL


class ExpiredCredentialError(CredentialError):
    """Token expired or timestamp outside the accepted window."""

    kind = FailureKind.EXPIRED_CREDENTIAL


class SignatureMismatchError(CredentialError):
    """HMAC or JWT signature did not verify."""

    kind = FailureKind.SIGNATURE_MISMATCH


class IdentityProviderUnavailableError(Exception):
    """The identity provider's key set could not be fetched."""
    pass
