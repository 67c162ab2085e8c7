"""Unit tests for AppError hierarchy and the registered exception handlers."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel

from errors import (
    AppError,
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    OtpAttemptsExhaustedError,
    OtpExpiredError,
    OtpMismatchError,
    RateLimitError,
    ServiceUnavailableError,
    ValidationError,
    register_error_handlers,
)


@pytest.mark.parametrize(
    "cls, status, code",
    [
        (ValidationError, 400, "validation_error"),
        (AuthenticationError, 401, "authentication_error"),
        (ForbiddenError, 403, "forbidden"),
        (NotFoundError, 404, "not_found"),
        (ConflictError, 409, "conflict"),
        (RateLimitError, 429, "rate_limit_exceeded"),
        (ServiceUnavailableError, 503, "service_unavailable"),
        (OtpExpiredError, 409, "otp_expired"),
        (OtpMismatchError, 409, "otp_invalid"),
        (OtpAttemptsExhaustedError, 403, "otp_attempts_exhausted"),
    ],
)
def test_status_and_code(cls, status, code):
    e = cls("boom")
    assert e.status_code == status
    assert e.error_code == code
    assert e.message == "boom"


class TestOtpErrorKinds:
    def test_expired_and_mismatch_are_conflicts(self):
        assert issubclass(OtpExpiredError, ConflictError)
        assert issubclass(OtpMismatchError, ConflictError)

    def test_exhausted_is_forbidden(self):
        assert issubclass(OtpAttemptsExhaustedError, ForbiddenError)


class TestRetriable:
    def test_only_unavailable_is_retriable(self):
        assert ServiceUnavailableError("down").retriable is True
        for cls in (NotFoundError, ConflictError, ForbiddenError, AuthenticationError):
            assert cls("x").retriable is False


class TestAppErrorToDict:
    def test_basic(self):
        e = NotFoundError("Account not found")
        assert e.to_dict() == {
            "success": False,
            "error": "Account not found",
            "code": "not_found",
        }

    def test_retriable_flag_included(self):
        assert ServiceUnavailableError("down").to_dict()["retriable"] is True

    @pytest.mark.parametrize(
        "kwargs, key, value",
        [
            ({"field": "email"}, "field", "email"),
            ({"details": {"min": 8}}, "details", {"min": 8}),
        ],
        ids=["with_field", "with_details"],
    )
    def test_optional_key_present(self, kwargs, key, value):
        e = ValidationError("invalid", **kwargs)
        assert e.to_dict()[key] == value

    def test_no_optional_keys_when_absent(self):
        d = NotFoundError("missing").to_dict()
        assert "field" not in d
        assert "details" not in d
        assert "retriable" not in d


# ── Handlers ──────────────────────────────────────────────────────────────────


class _Body(BaseModel):
    email: str


@pytest.fixture
def client():
    app = FastAPI()
    register_error_handlers(app)

    @app.get("/app-error")
    async def app_error():
        raise OtpExpiredError("OTP expired. Please resend OTP.")

    @app.get("/crash")
    async def crash():
        raise RuntimeError("kaboom")

    @app.post("/validate")
    async def validate(body: _Body):
        return {"ok": True}

    return TestClient(app, raise_server_exceptions=False)


class TestHandlers:
    def test_app_error_rendered(self, client):
        resp = client.get("/app-error")
        assert resp.status_code == 409
        assert resp.json() == {
            "success": False,
            "error": "OTP expired. Please resend OTP.",
            "code": "otp_expired",
        }

    def test_request_validation_is_422(self, client):
        resp = client.post("/validate", json={})
        assert resp.status_code == 422
        body = resp.json()
        assert body["success"] is False
        assert body["code"] == "validation_error"
        assert body["field"] == "email"

    def test_unhandled_is_500(self, client):
        resp = client.get("/crash")
        assert resp.status_code == 500
        assert resp.json()["code"] == "internal_error"
        assert "kaboom" not in resp.text

    def test_base_app_error_defaults(self):
        e = AppError("x")
        assert e.status_code == 500
        assert e.error_code == "internal_error"
