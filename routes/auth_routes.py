"""
Authentication endpoints.

POST /auth/signup               — customer signup (sends registration OTP)
POST /auth/signup-technician    — technician signup (sends registration OTP)
POST /auth/resend-otp           — reissue the registration OTP
POST /auth/verify-otp           — consume the registration OTP
POST /auth/login                — password login; returns access + refresh
POST /auth/forgot-password      — issue a password-reset OTP
POST /auth/resend-forgot-otp    — reissue the password-reset OTP
POST /auth/reset-password       — consume the reset OTP and set a new password
POST /auth/change-password      — bearer access token required
POST /auth/refresh              — rotate the refresh token

Handlers only translate DTOs to service calls and service results to the
success envelope; every failure is an AppError rendered by the global handler.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from config import AppSettings
from dependencies import get_auth_service, get_current_claims, get_settings
from errors import ValidationError
from schemas.dto.requests.auth import (
    ChangePasswordRequest,
    EmailRequest,
    LoginRequest,
    RefreshTokenRequest,
    ResetPasswordRequest,
    SignupRequest,
    SignupTechnicianRequest,
    VerifyOtpRequest,
)
from schemas.dto.responses.auth import AccountSummary, LoginData, SignupData, TokenData
from schemas.dto.responses.common import Envelope
from services.auth_service import (
    Ack,
    AuthService,
    CustomerProfile,
    TechnicianProfile,
)
from services.token_issuer import AccessClaims
from shared.validators import validate_otp_format

router = APIRouter(prefix="/auth", tags=["auth"])


def _require_otp_width(code: str, settings: AppSettings) -> None:
    if not validate_otp_format(code, settings.otp.otp_length):
        raise ValidationError(
            f"otp must be exactly {settings.otp.otp_length} digits", field="otp"
        )


def _signup_envelope(ack: Ack) -> Envelope[SignupData]:
    user = AccountSummary.from_account(ack.account) if ack.account else None
    return Envelope(message=ack.message, data=SignupData(user=user, otp_sent=ack.otp_sent))


def _ack_envelope(ack: Ack) -> Envelope[None]:
    return Envelope(message=ack.message)


@router.post(
    "/signup",
    response_model=Envelope[SignupData],
    status_code=status.HTTP_201_CREATED,
)
async def signup(
    body: SignupRequest,
    service: AuthService = Depends(get_auth_service),
) -> Envelope[SignupData]:
    profile = CustomerProfile(
        first_name=body.first_name,
        last_name=body.last_name,
        phone=body.phone,
        address_line=body.address,
        apartment=body.apt,
        city=body.city,
        state=body.state,
        zip=body.zip,
    )
    ack = await service.signup(body.email, body.password, profile)
    return _signup_envelope(ack)


@router.post(
    "/signup-technician",
    response_model=Envelope[SignupData],
    status_code=status.HTTP_201_CREATED,
)
async def signup_technician(
    body: SignupTechnicianRequest,
    service: AuthService = Depends(get_auth_service),
) -> Envelope[SignupData]:
    profile = TechnicianProfile(
        first_name=body.first_name, last_name=body.last_name, phone=body.phone
    )
    ack = await service.signup_technician(body.email, body.password, profile)
    return _signup_envelope(ack)


@router.post("/resend-otp", response_model=Envelope[None])
async def resend_otp(
    body: EmailRequest,
    service: AuthService = Depends(get_auth_service),
) -> Envelope[None]:
    return _ack_envelope(await service.resend_registration_otp(body.email))


@router.post("/verify-otp", response_model=Envelope[None])
async def verify_otp(
    body: VerifyOtpRequest,
    service: AuthService = Depends(get_auth_service),
    settings: AppSettings = Depends(get_settings),
) -> Envelope[None]:
    _require_otp_width(body.otp, settings)
    return _ack_envelope(await service.verify_registration_otp(body.email, body.otp))


@router.post("/login", response_model=Envelope[LoginData])
async def login(
    body: LoginRequest,
    service: AuthService = Depends(get_auth_service),
) -> Envelope[LoginData]:
    result = await service.login(body.email, body.password)
    return Envelope(
        message=result.message,
        data=LoginData(
            user=AccountSummary.from_account(result.account),
            access_token=result.tokens.access_token,
            refresh_token=result.tokens.refresh_token,
            refresh_token_expires_at=result.tokens.refresh_expires_at,
        ),
    )


@router.post("/forgot-password", response_model=Envelope[None])
async def forgot_password(
    body: EmailRequest,
    service: AuthService = Depends(get_auth_service),
) -> Envelope[None]:
    return _ack_envelope(await service.forgot_password(body.email))


@router.post("/resend-forgot-otp", response_model=Envelope[None])
async def resend_forgot_otp(
    body: EmailRequest,
    service: AuthService = Depends(get_auth_service),
) -> Envelope[None]:
    return _ack_envelope(await service.resend_forgot_password_otp(body.email))


@router.post("/reset-password", response_model=Envelope[None])
async def reset_password(
    body: ResetPasswordRequest,
    service: AuthService = Depends(get_auth_service),
    settings: AppSettings = Depends(get_settings),
) -> Envelope[None]:
    _require_otp_width(body.otp, settings)
    ack = await service.reset_password(body.email, body.otp, body.new_password)
    return _ack_envelope(ack)


@router.post("/change-password", response_model=Envelope[None])
async def change_password(
    body: ChangePasswordRequest,
    claims: AccessClaims = Depends(get_current_claims),
    service: AuthService = Depends(get_auth_service),
) -> Envelope[None]:
    ack = await service.change_password(
        claims.account_id, body.old_password, body.new_password
    )
    return _ack_envelope(ack)


@router.post("/refresh", response_model=Envelope[TokenData])
async def refresh(
    body: RefreshTokenRequest,
    service: AuthService = Depends(get_auth_service),
) -> Envelope[TokenData]:
    tokens = await service.refresh_token(body.refresh_token)
    return Envelope(
        message="Token refreshed successfully",
        data=TokenData(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            refresh_token_expires_at=tokens.refresh_expires_at,
        ),
    )
