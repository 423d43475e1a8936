"""
Account flows for users and sellers.

Registration and password reset are both OTP-gated:

    registration   → request_otp(activation template)
    verification   → verify OTP → create account
    forgot         → request_otp(forgot-password template)
    OTP check      → verify OTP → grant reset
    reset          → consume grant → store new password hash

Login and refresh mint session tokens through TokenService. Route handlers
own the HTTP concerns (cookies, status codes); this layer only raises
AppError subclasses.
"""

from __future__ import annotations

from typing import Optional

from errors import AuthenticationError, NotFoundError, ValidationError
from repositories.account_repository import AccountRepository
from schemas.models.account import AccountDoc, SellerDoc, UserDoc
from services.otp_service import (
    TEMPLATE_SELLER_ACTIVATION,
    TEMPLATE_SELLER_FORGOT_PASSWORD,
    TEMPLATE_USER_ACTIVATION,
    TEMPLATE_USER_FORGOT_PASSWORD,
    OtpService,
)
from services.token_service import SessionTokens, TokenClaims, TokenService
from shared.crypto import hash_password, verify_password
from shared.logging import get_logger
from shared.validators import Role, normalize_email, validate_registration_data

log = get_logger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"

_ACTIVATION_TEMPLATES = {
    "user": TEMPLATE_USER_ACTIVATION,
    "seller": TEMPLATE_SELLER_ACTIVATION,
}
_FORGOT_PASSWORD_TEMPLATES = {
    "user": TEMPLATE_USER_FORGOT_PASSWORD,
    "seller": TEMPLATE_SELLER_FORGOT_PASSWORD,
}


class AuthService:
    def __init__(
        self,
        users: AccountRepository[UserDoc],
        sellers: AccountRepository[SellerDoc],
        otp: OtpService,
        tokens: TokenService,
    ) -> None:
        self._repos: dict[str, AccountRepository] = {"user": users, "seller": sellers}
        self._otp = otp
        self._tokens = tokens

    def _repo(self, role: Role) -> AccountRepository:
        return self._repos[role]

    async def _ensure_not_registered(self, role: Role, email: str) -> None:
        if await self._repo(role).exists(email):
            raise ValidationError(f"{role.capitalize()} already exists with this email")

    # ── Registration ─────────────────────────────────────────────────────────

    async def start_registration(
        self,
        role: Role,
        *,
        name: Optional[str],
        email: Optional[str],
        password: Optional[str],
        phone_number: Optional[str] = None,
        country: Optional[str] = None,
    ) -> None:
        validate_registration_data(
            role,
            name=name,
            email=email,
            password=password,
            phone_number=phone_number,
            country=country,
        )
        email = normalize_email(email)
        await self._ensure_not_registered(role, email)
        await self._otp.request_otp(name, email, _ACTIVATION_TEMPLATES[role])
        log.info("registration_started", role=role, email=email)

    async def complete_registration(
        self,
        role: Role,
        *,
        name: str,
        email: str,
        password: str,
        otp: str,
        phone_number: Optional[str] = None,
        country: Optional[str] = None,
    ) -> AccountDoc:
        email = normalize_email(email)
        await self._ensure_not_registered(role, email)
        await self._otp.verify(email, otp)

        password_hash = hash_password(password)
        if role == "seller":
            account: AccountDoc = SellerDoc(
                name=name,
                email=email,
                password_hash=password_hash,
                phone_number=phone_number,
                country=country,
            )
        else:
            account = UserDoc(name=name, email=email, password_hash=password_hash)
        return await self._repo(role).create(account)

    # ── Sessions ─────────────────────────────────────────────────────────────

    async def login(
        self, role: Role, email: str, password: str
    ) -> tuple[AccountDoc, SessionTokens]:
        account = await self._repo(role).find_by_email(normalize_email(email))
        if account is None or not verify_password(password, account.password_hash):
            log.info("login_failed", role=role)
            raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

        tokens = self._tokens.issue_session(str(account.id), role)
        log.info("login_succeeded", role=role, account_id=str(account.id))
        return account, tokens

    async def refresh_access_token(self, refresh_token: Optional[str]) -> TokenClaims:
        """Validate *refresh_token* and return its claims once the account exists.

        The caller mints the new access token for the returned claims.
        """
        if not refresh_token:
            raise ValidationError("Unauthorized, refresh token is missing")

        claims = self._tokens.verify_refresh_token(refresh_token)
        account = await self._repo(claims.role).find_by_id(claims.id)
        if account is None:
            raise NotFoundError("User/Seller not found")
        return claims

    async def resolve_account(self, claims: TokenClaims) -> Optional[AccountDoc]:
        return await self._repo(claims.role).find_by_id(claims.id)

    # ── Password reset ───────────────────────────────────────────────────────

    async def start_password_reset(self, role: Role, email: str) -> None:
        email = normalize_email(email)
        account = await self._repo(role).find_by_email(email)
        if account is None:
            raise AuthenticationError(f"{role.capitalize()} not found")

        await self._otp.request_otp(
            account.name, email, _FORGOT_PASSWORD_TEMPLATES[role]
        )
        log.info("password_reset_started", role=role, email=email)

    async def verify_password_reset_otp(self, email: str, otp: str) -> None:
        await self._otp.verify(email, otp)
        await self._otp.grant_password_reset(email)

    async def reset_password(self, role: Role, email: str, new_password: str) -> None:
        email = normalize_email(email)
        repo = self._repo(role)
        account = await repo.find_by_email(email)
        if account is None:
            raise NotFoundError(f"{role.capitalize()} not found")

        if verify_password(new_password, account.password_hash):
            raise ValidationError(
                "New password must be different from the old password"
            )

        await self._otp.consume_password_reset(email)
        await repo.update_password(email, hash_password(new_password))
        log.info("password_reset_completed", role=role, account_id=str(account.id))
