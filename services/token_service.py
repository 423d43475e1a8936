"""
Session tokens - minting, verification and cookie delivery.

A session is two independently signed JWTs carrying ``{id, role}``:
an access token (short-lived, access secret) and a refresh token (long-lived,
refresh secret). Both travel as httpOnly, secure, SameSite=None cookies whose
max-age is the cookie lifetime from JWTSettings, not the token lifetime: an
expired access token may still be present in the browser, and is rejected by
the ``exp`` check on the next request.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Literal

import jwt
from fastapi import Response

from config import JWTSettings
from errors import AuthenticationError

Role = Literal["user", "seller"]
ROLES: tuple[str, ...] = ("user", "seller")

TOKEN_EXPIRED_MESSAGE = "Token has expired"
TOKEN_INVALID_MESSAGE = "Invalid token format or signature"
TOKEN_PAYLOAD_MESSAGE = "Unauthorized, Invalid token payload"


@dataclass(frozen=True)
class SessionTokens:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class TokenClaims:
    id: str
    role: Role


@dataclass(frozen=True)
class CookieNames:
    access: str
    refresh: str


COOKIE_NAMES: dict[str, CookieNames] = {
    "user": CookieNames(access="access_token", refresh="refresh_token"),
    "seller": CookieNames(access="seller_access_token", refresh="seller_refresh_token"),
}


def cookie_names(role: str) -> CookieNames:
    return COOKIE_NAMES[role]


class TokenService:
    def __init__(self, settings: JWTSettings) -> None:
        if not settings.jwt_secret_access_token or not settings.jwt_secret_refresh_token:
            raise RuntimeError(
                "JWT_SECRET_ACCESS_TOKEN and JWT_SECRET_REFRESH_TOKEN must be set"
            )
        self._settings = settings

    def _sign(self, subject_id: str, role: str, secret: str, ttl_seconds: int) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            "id": str(subject_id),
            "role": role,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=ttl_seconds)).timestamp()),
        }
        return jwt.encode(claims, secret, algorithm=self._settings.jwt_algorithm)

    def _verify(self, token: str, secret: str) -> TokenClaims:
        try:
            claims = jwt.decode(
                token,
                secret,
                algorithms=[self._settings.jwt_algorithm],
                options={"require": ["exp"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise AuthenticationError(TOKEN_EXPIRED_MESSAGE) from e
        except jwt.InvalidTokenError as e:
            raise AuthenticationError(TOKEN_INVALID_MESSAGE) from e

        subject_id = claims.get("id")
        role = claims.get("role")
        if not subject_id or role not in ROLES:
            raise AuthenticationError(TOKEN_PAYLOAD_MESSAGE)
        return TokenClaims(id=str(subject_id), role=role)

    def issue_access_token(self, subject_id: str, role: str) -> str:
        return self._sign(
            subject_id,
            role,
            self._settings.jwt_secret_access_token,
            self._settings.access_token_ttl_seconds,
        )

    def issue_session(self, subject_id: str, role: str) -> SessionTokens:
        """Mint an access/refresh pair for *subject_id* acting as *role*."""
        refresh_token = self._sign(
            subject_id,
            role,
            self._settings.jwt_secret_refresh_token,
            self._settings.refresh_token_ttl_seconds,
        )
        return SessionTokens(
            access_token=self.issue_access_token(subject_id, role),
            refresh_token=refresh_token,
        )

    def verify_access_token(self, token: str) -> TokenClaims:
        return self._verify(token, self._settings.jwt_secret_access_token)

    def verify_refresh_token(self, token: str) -> TokenClaims:
        return self._verify(token, self._settings.jwt_secret_refresh_token)

    # ── Cookies ──────────────────────────────────────────────────────────────

    def _set_cookie(self, response: Response, name: str, value: str) -> None:
        response.set_cookie(
            name,
            value=value,
            max_age=self._settings.cookie_max_age_seconds,
            httponly=True,
            secure=self._settings.cookie_secure,
            samesite=self._settings.cookie_samesite,
            path="/",
        )

    def set_access_cookie(self, response: Response, token: str, role: str) -> None:
        self._set_cookie(response, cookie_names(role).access, token)

    def set_session_cookies(
        self, response: Response, tokens: SessionTokens, role: str
    ) -> None:
        names = cookie_names(role)
        self._set_cookie(response, names.access, tokens.access_token)
        self._set_cookie(response, names.refresh, tokens.refresh_token)

    def clear_session_cookies(self, response: Response) -> None:
        for names in COOKIE_NAMES.values():
            for name in (names.access, names.refresh):
                response.delete_cookie(
                    name,
                    path="/",
                    httponly=True,
                    secure=self._settings.cookie_secure,
                    samesite=self._settings.cookie_samesite,
                )
