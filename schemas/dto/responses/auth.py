"""
Response DTOs for authentication endpoints.

AccountSummary       - public account projection
UserLoginResponse    - POST /api/user-login (200)
SellerLoginResponse  - POST /api/seller-login (200)
SellerVerifyResponse - POST /api/verify-seller (200)
UserProfileResponse  - GET /api/logged-in-user (200)
SellerProfileResponse - GET /api/logged-in-seller (200)
RefreshResponse      - POST /api/*-refresh-token (201)
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class AccountSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    email: str
    # present for sellers only; route handlers use exclude_none=True
    phone_number: Optional[str] = None
    country: Optional[str] = None


class UserLoginResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    user: AccountSummary


class SellerLoginResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    seller: AccountSummary


class SellerVerifyResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    seller: AccountSummary


class UserProfileResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    user: AccountSummary


class SellerProfileResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    seller: AccountSummary


class RefreshResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
