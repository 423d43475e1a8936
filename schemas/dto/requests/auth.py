"""
Request DTOs for authentication endpoints.

RegisterUserRequest          - POST /api/user-registration
RegisterSellerRequest        - POST /api/seller-registration
VerifyUserRequest            - POST /api/verify-user
VerifySellerRequest          - POST /api/verify-seller
LoginRequest                 - POST /api/user-login, /api/seller-login
ForgotPasswordRequest        - POST /api/forgot-user-password, /api/forgot-seller-password
VerifyOtpRequest             - POST /api/forgot-password-otp-verification
ResetPasswordRequest         - POST /api/reset-user-password, /api/reset-seller-password

Registration fields are optional at the schema level so that the
role-specific "Missing required fields" check in shared.validators produces
the message the frontends expect.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RegisterUserRequest(BaseModel):
    """Request body for POST /api/user-registration."""

    model_config = ConfigDict(populate_by_name=True)

    name: str | None = None
    email: str | None = None
    password: str | None = None


class RegisterSellerRequest(RegisterUserRequest):
    """Request body for POST /api/seller-registration."""

    phone_number: str | None = None
    country: str | None = None


class VerifyUserRequest(BaseModel):
    """Request body for POST /api/verify-user.

    ``otp`` is the 6-digit code emailed by /api/user-registration.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)
    otp: str = Field(min_length=1)


class VerifySellerRequest(VerifyUserRequest):
    """Request body for POST /api/verify-seller."""

    phone_number: str = Field(min_length=1)
    country: str = Field(min_length=1)


class LoginRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ForgotPasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(min_length=1)


class VerifyOtpRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(min_length=1)
    otp: str = Field(min_length=1)


class ResetPasswordRequest(BaseModel):
    """Request body for POST /api/reset-*-password.

    Accepts ``newPassword`` (frontend spelling) or ``new_password``.
    """

    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(min_length=1)
    new_password: str = Field(min_length=1, alias="newPassword")
