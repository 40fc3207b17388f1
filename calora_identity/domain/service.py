"""Identity workflow orchestrating validation, hashing, persistence and token issuance."""

from __future__ import annotations

from datetime import datetime, timezone
import logging

from .account import Account
from .contracts import AccountRegistry, AuthenticationResult, AuthOutcome
from .email import normalize_email
from .errors import (
    ConfigurationError,
    DuplicateAccountError,
    IdentityErrorKind,
    PersistenceError,
)
from ..config import Settings
from ..security.passwords import MAX_PASSWORD_BYTES, PasswordHasher, encoded_length
from ..security.tokens import TokenIssuer

logger = logging.getLogger(__name__)


class IdentityService:
    """Registration and login workflows backed by an account registry."""

    def __init__(
        self,
        registry: AccountRegistry,
        settings: Settings,
        *,
        hasher: PasswordHasher | None = None,
        token_issuer: TokenIssuer | None = None,
    ) -> None:
        """Store collaborators; raises ``ConfigurationError`` for an unusable key or password policy."""
        if not 0 < settings.password_max_bytes <= MAX_PASSWORD_BYTES:
            raise ConfigurationError(
                f"PASSWORD_MAX_BYTES must be between 1 and {MAX_PASSWORD_BYTES}"
            )
        self._registry = registry
        self._min_password_length = settings.password_min_length
        self._max_password_bytes = settings.password_max_bytes
        self._hasher = hasher or PasswordHasher(rounds=settings.bcrypt_rounds)
        self._tokens = token_issuer or TokenIssuer(settings)
        self._dummy_hash: str | None = None

    def register(self, email: str, password: str) -> AuthOutcome:
        """Create an account and return a token bound to it."""
        canonical_email = normalize_email(email)
        if canonical_email is None:
            return AuthOutcome.failure(IdentityErrorKind.invalid_format)

        if not self._acceptable_password(password):
            return AuthOutcome.failure(IdentityErrorKind.weak_credential)

        try:
            if self._registry.exists_by_email(canonical_email):
                logger.info("registration rejected: email already registered")
                return AuthOutcome.failure(IdentityErrorKind.account_exists)

            account = Account(
                email=canonical_email,
                password_hash=self._hasher.hash(password),
                created_at=datetime.now(timezone.utc),
            )
            account = self._registry.add_account(account)
        except DuplicateAccountError:
            logger.info("registration rejected: concurrent insert for the same email")
            return AuthOutcome.failure(IdentityErrorKind.account_exists)
        except PersistenceError:
            logger.exception("registration failed while accessing the account registry")
            return AuthOutcome.failure(IdentityErrorKind.persistence_failure)

        logger.info("account %s registered", account.account_id)
        return AuthOutcome.success(self._authenticate(account))

    def login(self, email: str, password: str) -> AuthOutcome:
        """Verify credentials and return a fresh token.

        Unknown emails and wrong passwords produce the same
        ``invalid_credentials`` outcome.
        """
        try:
            account = self._registry.get_by_email((email or "").lower())
        except PersistenceError:
            logger.exception("login failed while accessing the account registry")
            return AuthOutcome.failure(IdentityErrorKind.persistence_failure)

        if account is None:
            # Same bcrypt cost as the mismatch path below.
            self._hasher.verify(password or "", self._get_dummy_hash())
            logger.info("login rejected: invalid credentials")
            return AuthOutcome.failure(IdentityErrorKind.invalid_credentials)

        if not self._hasher.verify(password or "", account.password_hash):
            logger.info("login rejected for account %s: invalid credentials", account.account_id)
            return AuthOutcome.failure(IdentityErrorKind.invalid_credentials)

        if self._hasher.needs_rehash(account.password_hash):
            logger.info(
                "password hash for account %s uses an outdated bcrypt cost factor",
                account.account_id,
            )

        logger.info("account %s authenticated", account.account_id)
        return AuthOutcome.success(self._authenticate(account))

    def _acceptable_password(self, password: str) -> bool:
        """Length policy: at least the minimum characters, at most the bcrypt byte limit."""
        if not password or not password.strip() or len(password) < self._min_password_length:
            return False
        size = encoded_length(password)
        return size is not None and size <= self._max_password_bytes

    def _authenticate(self, account: Account) -> AuthenticationResult:
        token, expires_at = self._tokens.issue(str(account.account_id), account.email)
        return AuthenticationResult(
            token=token,
            account_id=str(account.account_id),
            email=account.email,
            expires_at=expires_at,
        )

    def _get_dummy_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = self._hasher.hash("calora-dummy-password")
        return self._dummy_hash
