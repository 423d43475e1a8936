"""Unit tests for AuthService flows over in-memory repositories."""

import pytest

from errors import AuthenticationError, NotFoundError, ValidationError
from services.otp_service import (
    RESET_NOT_VERIFIED_MESSAGE,
    TEMPLATE_SELLER_ACTIVATION,
    TEMPLATE_USER_ACTIVATION,
    TEMPLATE_USER_FORGOT_PASSWORD,
)
from shared.crypto import verify_password

EMAIL = "bob@example.com"
PASSWORD = "s3cret-pass"


async def _register_user(auth_service, mailer, email=EMAIL, password=PASSWORD):
    await auth_service.start_registration(
        "user", name="Bob", email=email, password=password
    )
    return await auth_service.complete_registration(
        "user",
        name="Bob",
        email=email,
        password=password,
        otp=mailer.last_code(email.strip().lower()),
    )


class TestRegistration:
    async def test_user_registration_sends_activation_otp(self, auth_service, mailer):
        await auth_service.start_registration(
            "user", name="Bob", email=EMAIL, password=PASSWORD
        )
        assert mailer.sent[-1]["template"] == TEMPLATE_USER_ACTIVATION

    async def test_seller_registration_uses_seller_template(self, auth_service, mailer):
        await auth_service.start_registration(
            "seller",
            name="Shop",
            email=EMAIL,
            password=PASSWORD,
            phone_number="+15550100",
            country="US",
        )
        assert mailer.sent[-1]["template"] == TEMPLATE_SELLER_ACTIVATION

    @pytest.mark.parametrize(
        "fields",
        [
            {"name": None, "email": EMAIL, "password": PASSWORD},
            {"name": "Bob", "email": "", "password": PASSWORD},
            {"name": "Bob", "email": EMAIL, "password": None},
        ],
        ids=["no_name", "no_email", "no_password"],
    )
    async def test_missing_fields(self, auth_service, mailer, fields):
        with pytest.raises(ValidationError, match="Missing required fields"):
            await auth_service.start_registration("user", **fields)
        assert mailer.sent == []

    async def test_seller_requires_phone_and_country(self, auth_service):
        with pytest.raises(ValidationError, match="Missing required fields"):
            await auth_service.start_registration(
                "seller", name="Shop", email=EMAIL, password=PASSWORD
            )

    async def test_invalid_email(self, auth_service):
        with pytest.raises(ValidationError, match="Invalid email format"):
            await auth_service.start_registration(
                "user", name="Bob", email="bob.example.com", password=PASSWORD
            )

    async def test_complete_creates_account_with_hashed_password(
        self, auth_service, mailer, users
    ):
        account = await _register_user(auth_service, mailer)
        assert account.id is not None
        stored = users.docs[EMAIL]
        assert stored.password_hash != PASSWORD
        assert verify_password(PASSWORD, stored.password_hash)

    async def test_email_normalised_before_storage(self, auth_service, mailer, users):
        await _register_user(auth_service, mailer, email="  Bob@Example.com ")
        assert EMAIL in users.docs

    async def test_duplicate_registration_rejected(self, auth_service, mailer):
        await _register_user(auth_service, mailer)
        with pytest.raises(ValidationError, match="User already exists with this email"):
            await auth_service.start_registration(
                "user", name="Bob", email=EMAIL, password=PASSWORD
            )

    async def test_wrong_otp_creates_nothing(self, auth_service, mailer, users):
        await auth_service.start_registration(
            "user", name="Bob", email=EMAIL, password=PASSWORD
        )
        wrong = "000000" if mailer.last_code(EMAIL) != "000000" else "111111"
        with pytest.raises(ValidationError, match="attempts left"):
            await auth_service.complete_registration(
                "user", name="Bob", email=EMAIL, password=PASSWORD, otp=wrong
            )
        assert users.docs == {}

    async def test_user_and_seller_namespaces_are_separate(
        self, auth_service, mailer, clock
    ):
        await _register_user(auth_service, mailer)
        clock.advance(61)
        await auth_service.start_registration(
            "seller",
            name="Shop",
            email=EMAIL,
            password=PASSWORD,
            phone_number="+15550100",
            country="US",
        )


class TestLoginAndRefresh:
    async def test_login_returns_account_and_tokens(
        self, auth_service, mailer, token_service
    ):
        created = await _register_user(auth_service, mailer)
        account, tokens = await auth_service.login("user", EMAIL, PASSWORD)
        assert account.id == created.id
        claims = token_service.verify_access_token(tokens.access_token)
        assert claims.id == str(created.id)
        assert claims.role == "user"

    @pytest.mark.parametrize("email, password", [(EMAIL, "wrong"), ("x@y.com", PASSWORD)])
    async def test_bad_credentials(self, auth_service, mailer, email, password):
        await _register_user(auth_service, mailer)
        with pytest.raises(AuthenticationError, match="Invalid email or password"):
            await auth_service.login("user", email, password)

    async def test_user_cannot_login_as_seller(self, auth_service, mailer):
        await _register_user(auth_service, mailer)
        with pytest.raises(AuthenticationError):
            await auth_service.login("seller", EMAIL, PASSWORD)

    async def test_refresh_missing_token(self, auth_service):
        with pytest.raises(ValidationError, match="refresh token is missing"):
            await auth_service.refresh_access_token(None)

    async def test_refresh_returns_claims(self, auth_service, mailer):
        created = await _register_user(auth_service, mailer)
        _, tokens = await auth_service.login("user", EMAIL, PASSWORD)
        claims = await auth_service.refresh_access_token(tokens.refresh_token)
        assert claims.id == str(created.id)

    async def test_refresh_for_deleted_account(self, auth_service, mailer, users):
        await _register_user(auth_service, mailer)
        _, tokens = await auth_service.login("user", EMAIL, PASSWORD)
        await users.delete(EMAIL)
        with pytest.raises(NotFoundError):
            await auth_service.refresh_access_token(tokens.refresh_token)

    async def test_access_token_cannot_refresh(self, auth_service, mailer):
        await _register_user(auth_service, mailer)
        _, tokens = await auth_service.login("user", EMAIL, PASSWORD)
        with pytest.raises(AuthenticationError):
            await auth_service.refresh_access_token(tokens.access_token)


class TestPasswordReset:
    async def _reset_code(self, auth_service, mailer, clock):
        await _register_user(auth_service, mailer)
        clock.advance(61)
        await auth_service.start_password_reset("user", EMAIL)
        return mailer.last_code(EMAIL)

    async def test_unknown_account(self, auth_service):
        with pytest.raises(AuthenticationError, match="User not found"):
            await auth_service.start_password_reset("user", EMAIL)

    async def test_sends_forgot_password_template(self, auth_service, mailer, clock):
        await self._reset_code(auth_service, mailer, clock)
        assert mailer.sent[-1]["template"] == TEMPLATE_USER_FORGOT_PASSWORD
        assert mailer.sent[-1]["variables"]["name"] == "Bob"

    async def test_full_reset(self, auth_service, mailer, clock, users):
        code = await self._reset_code(auth_service, mailer, clock)
        await auth_service.verify_password_reset_otp(EMAIL, code)
        await auth_service.reset_password("user", EMAIL, "brand-new-pass")

        assert verify_password("brand-new-pass", users.docs[EMAIL].password_hash)
        await auth_service.login("user", EMAIL, "brand-new-pass")

    async def test_reset_requires_verified_code(self, auth_service, mailer, clock):
        await self._reset_code(auth_service, mailer, clock)
        with pytest.raises(ValidationError, match=RESET_NOT_VERIFIED_MESSAGE):
            await auth_service.reset_password("user", EMAIL, "brand-new-pass")

    async def test_same_password_rejected(self, auth_service, mailer, clock):
        code = await self._reset_code(auth_service, mailer, clock)
        await auth_service.verify_password_reset_otp(EMAIL, code)
        with pytest.raises(ValidationError, match="must be different"):
            await auth_service.reset_password("user", EMAIL, PASSWORD)

    async def test_reset_unknown_account(self, auth_service):
        with pytest.raises(NotFoundError, match="User not found"):
            await auth_service.reset_password("user", EMAIL, "brand-new-pass")

    async def test_grant_is_spent_by_reset(self, auth_service, mailer, clock):
        code = await self._reset_code(auth_service, mailer, clock)
        await auth_service.verify_password_reset_otp(EMAIL, code)
        await auth_service.reset_password("user", EMAIL, "brand-new-pass")
        with pytest.raises(ValidationError, match=RESET_NOT_VERIFIED_MESSAGE):
            await auth_service.reset_password("user", EMAIL, "another-pass")
