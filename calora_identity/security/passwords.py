"""bcrypt-backed password hashing."""

from __future__ import annotations

import logging

import bcrypt

logger = logging.getLogger(__name__)

DEFAULT_ROUNDS = 12

# bcrypt input limit. Longer secrets are refused, never truncated.
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """Salted, adaptive one-way hashing of account passwords.

    Parameters
    ----------
    rounds:
        bcrypt cost factor. Each increment doubles the work per hash.
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self._rounds = rounds

    @property
    def rounds(self) -> int:
        return self._rounds

    def hash(self, password: str) -> str:
        """Return a self-describing ``$2b$`` hash with a freshly generated salt.

        Raises
        ------
        ValueError
            When ``password`` is not UTF-8 encodable or exceeds ``MAX_PASSWORD_BYTES``.
        """
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(_encode(password), salt).decode("ascii")

    def verify(self, password: str, password_hash: str) -> bool:
        """Return ``True`` iff ``password`` matches ``password_hash``.

        Malformed hashes, unencodable or over-long passwords yield ``False``.
        """
        try:
            return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
        except (ValueError, TypeError, AttributeError):
            logger.debug("password or hash rejected; verification failed")
            return False

    def needs_rehash(self, password_hash: str) -> bool:
        """Report whether ``password_hash`` was produced with a different cost factor."""
        parts = password_hash.split("$")
        if len(parts) < 4 or not parts[2].isdigit():
            return True
        return int(parts[2]) != self._rounds


def encoded_length(password: str) -> int | None:
    """Return the UTF-8 byte length of ``password``, or ``None`` if it cannot be encoded."""
    try:
        return len(password.encode("utf-8"))
    except UnicodeEncodeError:
        return None


def _encode(password: str) -> bytes:
    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValueError(f"password exceeds {MAX_PASSWORD_BYTES} bytes")
    return encoded
