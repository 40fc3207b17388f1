"""Error kinds and exceptions raised across the identity workflow."""

from __future__ import annotations

from enum import Enum


class IdentityErrorKind(str, Enum):
    """Expected failure outcomes reported by the identity workflow."""

    invalid_format = "invalid_format"
    weak_credential = "weak_credential"
    account_exists = "account_exists"
    invalid_credentials = "invalid_credentials"
    persistence_failure = "persistence_failure"


class ConfigurationError(RuntimeError):
    """Raised at startup when the service cannot be configured safely."""


class PersistenceError(Exception):
    """Raised by an account registry when storage I/O fails."""


class DuplicateAccountError(PersistenceError):
    """Raised by an account registry when the email uniqueness constraint fires."""
