"""
Authentication routes, mounted under /api.

POST /user-registration                → send activation OTP (user)
POST /verify-user                      → verify OTP, create user        (201)
POST /user-login                       → set user session cookies
POST /user-refresh-token               → new user access cookie         (201)
GET  /logged-in-user                   → current user
POST /forgot-user-password             → send reset OTP (user)
POST /forgot-password-otp-verification → verify reset OTP (either role)
POST /reset-user-password              → store new password

POST /seller-registration, /verify-seller, /seller-login,
     /seller-refresh-token, /forgot-seller-password, /reset-seller-password
GET  /logged-in-seller                 → seller equivalents

POST /logout                           → clear every session cookie
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from dependencies import (
    CurrentAccount,
    get_auth_service,
    get_token_service,
    require_seller,
    require_user,
)
from schemas.dto.requests.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    RegisterSellerRequest,
    RegisterUserRequest,
    ResetPasswordRequest,
    VerifyOtpRequest,
    VerifySellerRequest,
    VerifyUserRequest,
)
from schemas.dto.responses.auth import (
    AccountSummary,
    RefreshResponse,
    SellerLoginResponse,
    SellerProfileResponse,
    SellerVerifyResponse,
    UserLoginResponse,
    UserProfileResponse,
)
from schemas.dto.responses.common import ErrorResponse, MessageResponse
from services.auth_service import AuthService
from services.token_service import TokenService, cookie_names

_ERRORS = {status: {"model": ErrorResponse} for status in (400, 401, 403, 500)}

router = APIRouter(prefix="/api", tags=["auth"], responses=_ERRORS)

OTP_SENT_MESSAGE = "OTP sent successfully. Please check your email."


def _summary(account) -> AccountSummary:
    return AccountSummary(**account.summary())


# ── Users ────────────────────────────────────────────────────────────────────


@router.post("/user-registration", response_model=MessageResponse)
async def user_registration(
    body: RegisterUserRequest,
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await auth.start_registration(
        "user", name=body.name, email=body.email, password=body.password
    )
    return MessageResponse(success=True, message=OTP_SENT_MESSAGE)


@router.post("/verify-user", response_model=MessageResponse, status_code=201)
async def verify_user(
    body: VerifyUserRequest,
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await auth.complete_registration(
        "user",
        name=body.name,
        email=body.email,
        password=body.password,
        otp=body.otp,
    )
    return MessageResponse(success=True, message="User registered successfully")


@router.post(
    "/user-login", response_model=UserLoginResponse, response_model_exclude_none=True
)
async def user_login(
    body: LoginRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    tokens: TokenService = Depends(get_token_service),
) -> UserLoginResponse:
    account, session = await auth.login("user", body.email, body.password)
    tokens.set_session_cookies(response, session, "user")
    return UserLoginResponse(
        success=True,
        message="User logged in successfully",
        user=_summary(account),
    )


@router.post("/user-refresh-token", response_model=RefreshResponse, status_code=201)
async def user_refresh_token(
    request: Request,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    tokens: TokenService = Depends(get_token_service),
) -> RefreshResponse:
    return await _refresh(request, response, "user", auth, tokens)


@router.get(
    "/logged-in-user",
    response_model=UserProfileResponse,
    response_model_exclude_none=True,
)
async def logged_in_user(
    current: CurrentAccount = Depends(require_user),
) -> UserProfileResponse:
    return UserProfileResponse(success=True, user=_summary(current.account))


@router.post("/forgot-user-password", response_model=MessageResponse)
async def forgot_user_password(
    body: ForgotPasswordRequest,
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await auth.start_password_reset("user", body.email)
    return MessageResponse(success=True, message=OTP_SENT_MESSAGE)


@router.post("/reset-user-password", response_model=MessageResponse)
async def reset_user_password(
    body: ResetPasswordRequest,
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await auth.reset_password("user", body.email, body.new_password)
    return MessageResponse(success=True, message="Password reset successfully")


# ── Sellers ──────────────────────────────────────────────────────────────────


@router.post("/seller-registration", response_model=MessageResponse)
async def seller_registration(
    body: RegisterSellerRequest,
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await auth.start_registration(
        "seller",
        name=body.name,
        email=body.email,
        password=body.password,
        phone_number=body.phone_number,
        country=body.country,
    )
    return MessageResponse(success=True, message=OTP_SENT_MESSAGE)


@router.post("/verify-seller", response_model=SellerVerifyResponse)
async def verify_seller(
    body: VerifySellerRequest,
    auth: AuthService = Depends(get_auth_service),
) -> SellerVerifyResponse:
    seller = await auth.complete_registration(
        "seller",
        name=body.name,
        email=body.email,
        password=body.password,
        otp=body.otp,
        phone_number=body.phone_number,
        country=body.country,
    )
    return SellerVerifyResponse(
        success=True,
        message="Seller registered successfully",
        seller=_summary(seller),
    )


@router.post("/seller-login", response_model=SellerLoginResponse)
async def seller_login(
    body: LoginRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    tokens: TokenService = Depends(get_token_service),
) -> SellerLoginResponse:
    account, session = await auth.login("seller", body.email, body.password)
    tokens.set_session_cookies(response, session, "seller")
    return SellerLoginResponse(
        success=True,
        message="Seller logged in successfully",
        seller=_summary(account),
    )


@router.post("/seller-refresh-token", response_model=RefreshResponse, status_code=201)
async def seller_refresh_token(
    request: Request,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    tokens: TokenService = Depends(get_token_service),
) -> RefreshResponse:
    return await _refresh(request, response, "seller", auth, tokens)


@router.get("/logged-in-seller", response_model=SellerProfileResponse)
async def logged_in_seller(
    current: CurrentAccount = Depends(require_seller),
) -> SellerProfileResponse:
    return SellerProfileResponse(success=True, seller=_summary(current.account))


@router.post("/forgot-seller-password", response_model=MessageResponse)
async def forgot_seller_password(
    body: ForgotPasswordRequest,
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await auth.start_password_reset("seller", body.email)
    return MessageResponse(success=True, message=OTP_SENT_MESSAGE)


@router.post("/reset-seller-password", response_model=MessageResponse)
async def reset_seller_password(
    body: ResetPasswordRequest,
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await auth.reset_password("seller", body.email, body.new_password)
    return MessageResponse(success=True, message="Password reset successfully")


# ── Shared ───────────────────────────────────────────────────────────────────


@router.post("/forgot-password-otp-verification", response_model=MessageResponse)
async def forgot_password_otp_verification(
    body: VerifyOtpRequest,
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await auth.verify_password_reset_otp(body.email, body.otp)
    return MessageResponse(
        success=True,
        message="OTP verified successfully. You can now reset your password.",
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    tokens: TokenService = Depends(get_token_service),
) -> MessageResponse:
    tokens.clear_session_cookies(response)
    return MessageResponse(success=True, message="Logged out successfully")


async def _refresh(
    request: Request,
    response: Response,
    role: str,
    auth: AuthService,
    tokens: TokenService,
) -> RefreshResponse:
    refresh_cookie = request.cookies.get(cookie_names(role).refresh)
    claims = await auth.refresh_access_token(refresh_cookie)
    tokens.set_access_cookie(
        response, tokens.issue_access_token(claims.id, claims.role), claims.role
    )
    return RefreshResponse(success=True)
