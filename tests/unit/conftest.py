"""
Unit test configuration.

Patches dotenv so pydantic-settings never reads the project's real .env file
during unit tests. Tests control config exclusively through monkeypatch.setenv().

Also provides a fully wired AuthService over the in-memory store, with a
fake clock shared by every collaborator so expiry can be driven by hand.
"""

import pytest

from config import JWTSettings
from infrastructure.cache.otp_throttle import OtpThrottle
from services.auth_service import AuthService, CustomerProfile
from services.otp_engine import OtpEngine
from services.token_issuer import TokenIssuer
from shared.crypto import SecretHasher
from tests.fakes import FakeClock, InMemoryAccountStore, RecordingEmailProvider


@pytest.fixture(autouse=True)
def disable_dotenv_loading(monkeypatch):
    """Prevent pydantic-settings from loading .env files in all unit tests."""
    import pydantic_settings.sources.providers.dotenv as ps_dotenv

    monkeypatch.setattr(ps_dotenv, "dotenv_values", lambda *a, **kw: {})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryAccountStore()


@pytest.fixture
def mailer():
    return RecordingEmailProvider()


@pytest.fixture
def hasher():
    # Minimal argon2 work factor keeps the suite fast
    return SecretHasher(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def jwt_settings():
    return JWTSettings(jwt_secret="unit-test-secret-with-enough-length-0123456789")


@pytest.fixture
def otp_engine(store, clock):
    return OtpEngine(store, length=6, ttl_seconds=600, max_attempts=5, clock=clock)


@pytest.fixture
def token_issuer(jwt_settings, store, clock):
    return TokenIssuer(jwt_settings, store, clock=clock)


@pytest.fixture
def throttle():
    return OtpThrottle(None)


@pytest.fixture
def service(store, hasher, otp_engine, token_issuer, mailer, throttle, clock):
    return AuthService(
        store=store,
        hasher=hasher,
        otp_engine=otp_engine,
        token_issuer=token_issuer,
        email_provider=mailer,
        throttle=throttle,
        clock=clock,
    )


@pytest.fixture
def profile():
    return CustomerProfile(
        first_name="Ada",
        last_name="Lovelace",
        phone="5551234567",
        address_line="123 Main St",
        city="New York",
        state="NY",
        zip="10001",
    )
