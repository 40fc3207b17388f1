"""Domain-level contracts shared by the workflow, storage and transport layers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from .account import Account
from .errors import IdentityErrorKind


class AccountRegistry(Protocol):
    """Storage capability the identity workflow depends on.

    Email comparisons must be case-insensitive. ``add_account`` raises
    :class:`~calora_identity.domain.errors.DuplicateAccountError` when the
    email is already taken and
    :class:`~calora_identity.domain.errors.PersistenceError` on other failures.
    """

    def exists_by_email(self, email: str) -> bool: ...

    def add_account(self, account: Account) -> Account: ...

    def get_by_email(self, email: str) -> Account | None: ...


@dataclass(slots=True, frozen=True)
class AuthenticationResult:
    """Bearer token and identity facts returned after register or login."""

    token: str
    account_id: str
    email: str
    expires_at: datetime


@dataclass(slots=True, frozen=True)
class AuthOutcome:
    """Either an authentication result or the kind of failure that prevented it."""

    result: AuthenticationResult | None = None
    error: IdentityErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, result: AuthenticationResult) -> "AuthOutcome":
        return cls(result=result)

    @classmethod
    def failure(cls, error: IdentityErrorKind) -> "AuthOutcome":
        return cls(error=error)
