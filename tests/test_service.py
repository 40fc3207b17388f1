"""Workflow tests for registration and login."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
import logging

import pytest

from calora_identity.config import Settings
from calora_identity.domain.errors import ConfigurationError, IdentityErrorKind, PersistenceError
from calora_identity.domain.service import IdentityService
from calora_identity.security.passwords import PasswordHasher
from calora_identity.security.tokens import TokenIssuer

from conftest import FakeRegistry


class RacingRegistry(FakeRegistry):
    """Registry whose existence check misses a concurrent insert."""

    def exists_by_email(self, email: str) -> bool:
        return False


class BrokenRegistry(FakeRegistry):
    def exists_by_email(self, email: str) -> bool:
        raise PersistenceError("connection refused")

    def get_by_email(self, email: str):
        raise PersistenceError("connection refused")


def test_register_returns_token_for_new_account(service, registry, settings):
    outcome = service.register("User@Example.com", "secretpw")

    assert outcome.ok
    result = outcome.result
    assert result.email == "user@example.com"
    assert result.account_id == registry.accounts["user@example.com"].account_id
    assert result.expires_at > datetime.now(timezone.utc)

    claims = TokenIssuer(settings).decode(result.token)
    assert claims["sub"] == result.account_id
    assert claims["email"] == "user@example.com"


def test_register_stores_hash_not_plaintext(service, registry):
    service.register("user@example.com", "secretpw")

    stored = registry.accounts["user@example.com"]
    assert stored.password_hash != "secretpw"
    assert stored.password_hash.startswith("$2b$")
    assert stored.created_at.tzinfo is not None


@pytest.mark.parametrize("second_email", ["user@example.com", "USER@EXAMPLE.COM", "User@example.com"])
def test_register_rejects_duplicate_email_in_any_case(service, second_email):
    assert service.register("user@example.com", "secretpw").ok

    outcome = service.register(second_email, "secretpw")
    assert not outcome.ok
    assert outcome.error is IdentityErrorKind.account_exists
    assert outcome.result is None


def test_register_rejects_malformed_email(service, registry):
    outcome = service.register("not-an-email", "secret1")
    assert outcome.error is IdentityErrorKind.invalid_format
    assert registry.accounts == {}


@pytest.mark.parametrize("password", ["", "      ", "ab", "12345"])
def test_register_rejects_weak_password(service, password):
    outcome = service.register("a@b.com", password)
    assert outcome.error is IdentityErrorKind.weak_credential


def test_register_honours_configured_minimum_length(registry, settings):
    strict = IdentityService(registry, replace(settings, password_min_length=10))
    assert strict.register("a@b.com", "secretpw").error is IdentityErrorKind.weak_credential
    assert strict.register("a@b.com", "secretpw12").ok


def test_email_is_validated_before_password(service):
    assert service.register("bad", "ab").error is IdentityErrorKind.invalid_format


def test_register_maps_insert_race_to_account_exists(settings):
    registry = RacingRegistry()
    service = IdentityService(registry, settings)

    assert service.register("race@example.com", "secretpw").ok
    outcome = service.register("race@example.com", "secretpw")
    assert outcome.error is IdentityErrorKind.account_exists


def test_registry_failures_surface_as_persistence_failure(settings):
    service = IdentityService(BrokenRegistry(), settings)

    assert service.register("user@example.com", "secretpw").error is IdentityErrorKind.persistence_failure
    assert service.login("user@example.com", "secretpw").error is IdentityErrorKind.persistence_failure


def test_login_after_register_returns_fresh_token(service, settings):
    registered = service.register("User@Example.com", "secretpw").result

    outcome = service.login("user@example.com", "secretpw")
    assert outcome.ok
    result = outcome.result
    assert result.account_id == registered.account_id
    assert result.email == "user@example.com"
    assert result.expires_at > datetime.now(timezone.utc)
    assert result.token != registered.token

    claims = TokenIssuer(settings).decode(result.token)
    assert claims["jti"] != TokenIssuer(settings).decode(registered.token)["jti"]


def test_login_is_case_insensitive_on_email(service):
    service.register("user@example.com", "secretpw")
    assert service.login("USER@example.com", "secretpw").ok


def test_login_failures_are_indistinguishable(service):
    service.register("user@example.com", "secretpw")

    wrong_password = service.login("user@example.com", "wrongpw")
    unknown_email = service.login("nobody@example.com", "secretpw")
    malformed_email = service.login("not-an-email", "secretpw")

    assert wrong_password == unknown_email == malformed_email
    assert wrong_password.error is IdentityErrorKind.invalid_credentials


def test_login_with_empty_password_fails(service):
    service.register("user@example.com", "secretpw")
    assert service.login("user@example.com", "").error is IdentityErrorKind.invalid_credentials


def test_login_fails_closed_on_corrupt_stored_hash(service, registry):
    service.register("user@example.com", "secretpw")
    registry.accounts["user@example.com"].password_hash = "corrupted"

    assert service.login("user@example.com", "secretpw").error is IdentityErrorKind.invalid_credentials


def test_token_expiration_matches_configured_ttl(registry, settings):
    service = IdentityService(registry, replace(settings, jwt_expiration_minutes=15))
    before = datetime.now(timezone.utc).replace(microsecond=0)

    result = service.register("ttl@example.com", "secretpw").result
    claims = TokenIssuer(settings).decode(result.token)

    assert claims["exp"] - claims["iat"] == 15 * 60
    assert before + timedelta(minutes=15) <= result.expires_at <= before + timedelta(minutes=15, seconds=5)


def test_service_refuses_to_start_without_signing_key(registry):
    with pytest.raises(ConfigurationError):
        IdentityService(registry, Settings(jwt_secret=""))


def test_register_rejects_unencodable_password(service, registry):
    outcome = service.register("user@example.com", "\ud800abcdefg")
    assert outcome.error is IdentityErrorKind.weak_credential
    assert registry.accounts == {}


def test_register_rejects_passwords_over_byte_limit(service, registry):
    outcome = service.register("long@example.com", "x" * 72 + "-alice-secret")
    assert outcome.error is IdentityErrorKind.weak_credential
    assert registry.accounts == {}

    # Multi-byte characters count by their UTF-8 size.
    assert service.register("wide@example.com", "é" * 37).error is IdentityErrorKind.weak_credential
    assert service.register("wide@example.com", "é" * 36).ok


def test_long_password_prefix_does_not_unlock_account(service):
    assert service.register("long@example.com", "x" * 72).ok
    outcome = service.login("long@example.com", "x" * 72 + "-totally-different")
    assert outcome.error is IdentityErrorKind.invalid_credentials


def test_register_honours_configured_byte_limit(registry, settings):
    strict = IdentityService(registry, replace(settings, password_max_bytes=8))
    assert strict.register("a@b.com", "123456789").error is IdentityErrorKind.weak_credential
    assert strict.register("a@b.com", "12345678").ok


@pytest.mark.parametrize("max_bytes", [0, 73])
def test_service_rejects_unusable_byte_limit(registry, settings, max_bytes):
    with pytest.raises(ConfigurationError):
        IdentityService(registry, replace(settings, password_max_bytes=max_bytes))


def test_login_flags_hash_with_outdated_cost(service, registry, caplog):
    service.register("user@example.com", "secretpw")
    registry.accounts["user@example.com"].password_hash = PasswordHasher(rounds=5).hash("secretpw")

    with caplog.at_level(logging.INFO, logger="calora_identity.domain.service"):
        assert service.login("user@example.com", "secretpw").ok

    assert any("outdated bcrypt cost factor" in record.getMessage() for record in caplog.records)


def test_login_does_not_flag_current_hash(service, caplog):
    service.register("user@example.com", "secretpw")

    with caplog.at_level(logging.INFO, logger="calora_identity.domain.service"):
        assert service.login("user@example.com", "secretpw").ok

    assert not any("outdated" in record.getMessage() for record in caplog.records)
