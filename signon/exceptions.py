"""Custom signon exceptions.

Every exception carries a human readable `remediation` hint, separate from the technical message, that
callers can show in test failure output.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

from signon.types import AuthPhase


class SignonError(Exception):
    message: str
    remediation: Optional[str]

    def __init__(self, message: str, *, remediation: Optional[str] = None) -> None:
        super().__init__(message)

        self.message = message
        self.remediation = remediation

    def __str__(self) -> str:
        return self.message


class ConfigurationErrorKind(Enum):
    MISSING_SECRET = 'missing-secret'
    MISSING_CREDENTIALS = 'missing-credentials'
    UNKNOWN_ROLE = 'unknown-role'
    INVALID_CONFIG = 'invalid-config'


class ConfigurationError(SignonError):
    """Caller misconfiguration, e.g. a missing secret or an invalid configuration file. Not retried."""

    kind: ConfigurationErrorKind

    def __init__(
        self,
        message: str,
        kind: ConfigurationErrorKind = ConfigurationErrorKind.INVALID_CONFIG,
        *,
        remediation: Optional[str] = None,
    ) -> None:
        super().__init__(message, remediation=remediation)

        self.kind = kind


class GenerationError(SignonError):
    """A TOTP code could not be generated from the configured secret."""


class AuthFlowError(SignonError):
    role: str
    phase: AuthPhase
    idp_response: Optional[str]

    def __init__(
        self,
        message: str,
        role: str,
        phase: AuthPhase,
        idp_response: Optional[str] = None,
        *,
        remediation: Optional[str] = None,
    ) -> None:
        super().__init__(message, remediation=remediation)

        self.role = role
        self.phase = phase
        self.idp_response = idp_response

    def __str__(self) -> str:
        message = f'[{self.role}/{self.phase}] {self.message}'

        if self.idp_response is not None:
            message = f'{message}: {self.idp_response}'

        return message


class StorageStateErrorKind(Enum):
    MISSING = 'missing'
    EXPIRED = 'expired'
    CORRUPTED = 'corrupted'
    INVALID = 'invalid'


class StorageStateError(SignonError):
    role: str
    path: str
    kind: StorageStateErrorKind

    def __init__(
        self,
        message: str,
        role: str,
        path: str,
        kind: StorageStateErrorKind,
        *,
        remediation: Optional[str] = None,
    ) -> None:
        super().__init__(message, remediation=remediation)

        self.role = role
        self.path = path
        self.kind = kind


__all__ = [
    'AuthFlowError',
    'ConfigurationError',
    'ConfigurationErrorKind',
    'GenerationError',
    'SignonError',
    'StorageStateError',
    'StorageStateErrorKind',
]
