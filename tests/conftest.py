from __future__ import annotations

from dataclasses import replace

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from calora_identity.api import routes
from calora_identity.config import Settings
from calora_identity.domain.account import Account
from calora_identity.domain.errors import DuplicateAccountError
from calora_identity.domain.service import IdentityService
from calora_identity.security.tokens import TokenIssuer

TEST_SECRET = "test-signing-key-0123456789abcdef0123456789"


class FakeRegistry:
    """In-memory registry mimicking the Postgres uniqueness behaviour."""

    def __init__(self) -> None:
        self.accounts: dict[str, Account] = {}
        self._seq = 0

    def exists_by_email(self, email: str) -> bool:
        return email.lower() in self.accounts

    def add_account(self, account: Account) -> Account:
        key = account.email.lower()
        if key in self.accounts:
            raise DuplicateAccountError("email already registered")
        self._seq += 1
        stored = replace(account, account_id=f"acct-{self._seq}")
        self.accounts[key] = stored
        return stored

    def get_by_email(self, email: str) -> Account | None:
        return self.accounts.get(email.lower())


@pytest.fixture
def settings() -> Settings:
    return Settings(
        jwt_secret=TEST_SECRET,
        jwt_issuer="Calora",
        jwt_audience="Calora",
        jwt_expiration_minutes=60,
        password_min_length=6,
        bcrypt_rounds=4,
    )


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def service(registry: FakeRegistry, settings: Settings) -> IdentityService:
    return IdentityService(registry, settings)


@pytest.fixture
def api_client(service: IdentityService, settings: Settings):
    """Provide a FastAPI test client with isolated state."""
    app = FastAPI()
    app.include_router(routes.router)
    app.state.identity_service = service
    app.state.token_issuer = TokenIssuer(settings)

    with TestClient(app) as client:
        yield client
