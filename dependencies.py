"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Long-lived objects (clients, services) are built
once in the app lifespan and stored on app.state; the providers only hand
them out, which keeps tests free to install doubles in their own lifespan.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from fastapi import Depends, Request

from errors import AuthenticationError, ForbiddenError, NotFoundError
from schemas.models.account import AccountDoc
from services.auth_service import AuthService
from services.token_service import TokenService, cookie_names


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


@dataclass
class CurrentAccount:
    account: AccountDoc
    role: str


def _read_access_token(request: Request, role: Optional[str]) -> Optional[str]:
    """Find an access token: role cookie first, then any session cookie, then bearer."""
    cookie_order = ["access_token", "seller_access_token"]
    if role is not None:
        preferred = cookie_names(role).access
        cookie_order.remove(preferred)
        cookie_order.insert(0, preferred)

    for name in cookie_order:
        token = request.cookies.get(name)
        if token:
            return token

    auth_header = request.headers.get("Authorization", "")
    if auth_header.lower().startswith("bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return None


async def _authenticate(
    request: Request,
    role: Optional[str],
    tokens: TokenService,
    auth: AuthService,
) -> CurrentAccount:
    token = _read_access_token(request, role)
    if not token:
        raise AuthenticationError("Unauthorized, token is missing")

    claims = tokens.verify_access_token(token)
    account = await auth.resolve_account(claims)
    if account is None:
        raise NotFoundError("Account not found")
    return CurrentAccount(account=account, role=claims.role)


def require_role(role: str) -> Callable[..., Awaitable[CurrentAccount]]:
    """Build a dependency that authenticates the caller and insists on *role*."""

    async def dependency(
        request: Request,
        tokens: TokenService = Depends(get_token_service),
        auth: AuthService = Depends(get_auth_service),
    ) -> CurrentAccount:
        current = await _authenticate(request, role, tokens, auth)
        if current.role != role:
            raise ForbiddenError(f"Access denied, {role} account required")
        return current

    return dependency


require_user = require_role("user")
require_seller = require_role("seller")
