"""
Shared test doubles.

InMemoryExpiringStore mirrors the Redis-backed store with a controllable
clock so TTL behaviour can be tested without sleeping. CapturingMailer
records outgoing emails (and the OTP inside them). InMemoryAccountRepository
implements the AccountRepository surface over a dict.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import pytest
from bson import ObjectId

from config import JWTSettings, OtpSettings
from errors import ValidationError
from schemas.models.account import AccountDoc, SellerDoc, UserDoc
from services.auth_service import AuthService
from services.otp_service import OtpService
from services.token_service import TokenService

TEST_ACCESS_SECRET = "test-access-secret"
TEST_REFRESH_SECRET = "test-refresh-secret"


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryExpiringStore:
    def __init__(self, clock: FakeClock) -> None:
        self._clock = clock
        self._data: dict[str, tuple[str, float]] = {}

    def _entry(self, key: str) -> Optional[tuple[str, float]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry[1] <= self._clock.now:
            del self._data[key]
            return None
        return entry

    async def get(self, key: str) -> Optional[str]:
        entry = self._entry(key)
        return entry[0] if entry else None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._data[key] = (value, self._clock.now + ttl_seconds)

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self._data.pop(key, None)

    async def incr_with_expiry(self, key: str, ttl_seconds: int) -> int:
        entry = self._entry(key)
        count = int(entry[0]) + 1 if entry else 1
        self._data[key] = (str(count), self._clock.now + ttl_seconds)
        return count

    def ttl(self, key: str) -> Optional[float]:
        entry = self._entry(key)
        return entry[1] - self._clock.now if entry else None

    def raw(self, key: str) -> Optional[str]:
        entry = self._entry(key)
        return entry[0] if entry else None


class CapturingMailer:
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.succeed = True

    async def send_email(
        self, to_email: str, subject: str, template_name: str, variables: dict
    ) -> bool:
        if not self.succeed:
            return False
        self.sent.append(
            {
                "to": to_email,
                "subject": subject,
                "template": template_name,
                "variables": dict(variables),
            }
        )
        return True

    def last_code(self, email: str) -> str:
        for message in reversed(self.sent):
            if message["to"] == email:
                return message["variables"]["otp"]
        raise AssertionError(f"no OTP sent to {email}")


class InMemoryAccountRepository:
    def __init__(self, model: type[AccountDoc], kind: str) -> None:
        self._model = model
        self.kind = kind
        self.docs: dict[str, AccountDoc] = {}

    async def ensure_indexes(self) -> None:
        return None

    async def find_by_email(self, email: str) -> Optional[AccountDoc]:
        return self.docs.get(email)

    async def find_by_id(self, account_id: str) -> Optional[AccountDoc]:
        for doc in self.docs.values():
            if str(doc.id) == account_id:
                return doc
        return None

    async def exists(self, email: str) -> bool:
        return email in self.docs

    async def create(self, account: AccountDoc) -> AccountDoc:
        if account.email in self.docs:
            raise ValidationError(
                f"{self.kind.capitalize()} already exists with this email"
            )
        now = datetime.now(timezone.utc)
        account.id = ObjectId()
        account.created_at = now
        account.updated_at = now
        self.docs[account.email] = account
        return account

    async def update_password(self, email: str, password_hash: str) -> bool:
        doc = self.docs.get(email)
        if doc is None:
            return False
        doc.password_hash = password_hash
        return True

    async def delete(self, email: str) -> None:
        self.docs.pop(email, None)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryExpiringStore(clock)


@pytest.fixture
def mailer():
    return CapturingMailer()


@pytest.fixture
def otp_settings():
    return OtpSettings()


@pytest.fixture
def otp_service(store, mailer, otp_settings):
    return OtpService(store, mailer, otp_settings)


@pytest.fixture
def jwt_settings():
    return JWTSettings(
        jwt_secret_access_token=TEST_ACCESS_SECRET,
        jwt_secret_refresh_token=TEST_REFRESH_SECRET,
    )


@pytest.fixture
def token_service(jwt_settings):
    return TokenService(jwt_settings)


@pytest.fixture
def users():
    return InMemoryAccountRepository(UserDoc, "user")


@pytest.fixture
def sellers():
    return InMemoryAccountRepository(SellerDoc, "seller")


@pytest.fixture
def auth_service(users, sellers, otp_service, token_service):
    return AuthService(users, sellers, otp_service, token_service)
