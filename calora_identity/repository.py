"""Database repository for account data."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime

import psycopg
from psycopg.errors import UniqueViolation
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from .domain.account import Account
from .domain.errors import DuplicateAccountError, PersistenceError


@dataclass(slots=True)
class AccountRecord:
    """Row projection used when mapping database tuples to domain aggregates."""

    account_id: uuid.UUID | str
    email: str
    password_hash: str
    created_at: datetime


class AccountRepository:
    """Postgres-backed account registry.

    Email uniqueness is enforced by the ``accounts_email_lower_key`` index on
    ``lower(email)``; see ``sql/001_create_accounts.sql``.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def exists_by_email(self, email: str) -> bool:
        """Return ``True`` when an account with ``email`` exists, ignoring case."""
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        "SELECT EXISTS (SELECT 1 FROM accounts WHERE lower(email) = lower(%s))",
                        (email,),
                    )
                    row = cur.fetchone()
        except psycopg.Error as exc:
            raise PersistenceError("account lookup failed") from exc
        return bool(row and row[0])

    def get_by_email(self, email: str) -> Account | None:
        """Fetch the account registered under ``email`` or return ``None``."""
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        """
                        SELECT account_id, email, password_hash, created_at
                        FROM accounts
                        WHERE lower(email) = lower(%s)
                        """,
                        (email,),
                    )
                    row = cur.fetchone()
        except psycopg.Error as exc:
            raise PersistenceError("account lookup failed") from exc
        if not row:
            return None
        return self._map_record(AccountRecord(*row))

    def add_account(self, account: Account) -> Account:
        """Insert ``account`` and return it with the generated identifier."""
        account_id = uuid.uuid4()
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        """
                        INSERT INTO accounts (account_id, email, password_hash, created_at)
                        VALUES (%s, %s, %s, %s)
                        RETURNING account_id, email, password_hash, created_at
                        """,
                        (account_id, account.email, account.password_hash, account.created_at),
                    )
                    row = cur.fetchone()
                conn.commit()
        except UniqueViolation as exc:
            raise DuplicateAccountError("email already registered") from exc
        except psycopg.Error as exc:
            raise PersistenceError("account insert failed") from exc
        return self._map_record(AccountRecord(*row))

    def _map_record(self, record: AccountRecord) -> Account:
        """Convert a row projection into the domain ``Account`` dataclass."""
        return Account(
            account_id=str(record.account_id),
            email=record.email,
            password_hash=record.password_hash,
            created_at=record.created_at,
        )
