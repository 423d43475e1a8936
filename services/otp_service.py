"""
One-time-password issuance and verification.

Per-email state lives entirely in the expiring store, each record with its
own TTL (see infrastructure.cache.otp_store.OtpKeys):

    otp             SHA-256 of the live code              otp_ttl_seconds
    otp_cooldown    present → no reissue yet              otp_cooldown_seconds
    otp_request_count  issuance requests in window        otp_request_window_seconds
    otp_spam_lock   present → issuance refused            otp_spam_lock_seconds
    otp_attempts    failed verifications so far           otp_attempts_ttl_seconds
    otp_lock        present → hard lock                   otp_lock_seconds
    otp_reset_grant reset code verified, password pending otp_reset_grant_seconds

The request window slides: every accepted request re-arms the counter TTL, so
the count only resets after a full window with no requests.

Nothing is deleted explicitly except by ``verify`` on success or when the hard
lock trips; everything else ages out.
"""

from __future__ import annotations

from config import OtpSettings
from errors import ValidationError
from infrastructure.cache.otp_store import ExpiringStore, OtpKeys
from infrastructure.email.protocol import EmailDeliveryError, EmailProvider
from shared.crypto import hash_token, token_matches
from shared.generators import generate_otp_code
from shared.logging import get_logger
from shared.validators import normalize_email

log = get_logger(__name__)

TEMPLATE_USER_ACTIVATION = "user-activation"
TEMPLATE_SELLER_ACTIVATION = "seller-activation"
TEMPLATE_USER_FORGOT_PASSWORD = "user-forgot-password"
TEMPLATE_SELLER_FORGOT_PASSWORD = "seller-forgot-password"

OTP_EMAIL_SUBJECT = "Verify your email"

LOCKED_MESSAGE = (
    "Account locked due to multiple failed OTP attempts. Try again after {duration}."
)
SPAM_LOCKED_MESSAGE = (
    "Too many OTP requests. Please wait {duration} before requesting a new OTP."
)
COOLDOWN_MESSAGE = "Please wait {duration} before requesting a new OTP."
EXPIRED_MESSAGE = "OTP has expired or is invalid"
RESET_NOT_VERIFIED_MESSAGE = "Please verify the OTP before resetting your password."


def describe_duration(seconds: int) -> str:
    """Render a lock duration for users: ``1800`` → ``"30 minutes"``."""
    for unit_seconds, unit in ((3600, "hour"), (60, "minute")):
        if seconds >= unit_seconds and seconds % unit_seconds == 0:
            count = seconds // unit_seconds
            return f"{count} {unit}" if count == 1 else f"{count} {unit}s"
    return f"{seconds} second" if seconds == 1 else f"{seconds} seconds"


class OtpService:
    def __init__(
        self,
        store: ExpiringStore,
        email_provider: EmailProvider,
        settings: OtpSettings,
    ) -> None:
        self._store = store
        self._email = email_provider
        self._settings = settings
        self._locked_message = LOCKED_MESSAGE.format(
            duration=describe_duration(settings.otp_lock_seconds)
        )
        self._spam_locked_message = SPAM_LOCKED_MESSAGE.format(
            duration=describe_duration(settings.otp_spam_lock_seconds)
        )
        self._cooldown_message = COOLDOWN_MESSAGE.format(
            duration=describe_duration(settings.otp_cooldown_seconds)
        )

    async def check_restrictions(self, email: str) -> None:
        """Refuse issuance while a hard lock, spam lock or cooldown is active.

        Read-only. Checked in that order, so the most severe lock is reported.
        """
        email = normalize_email(email)
        if await self._store.get(OtpKeys.lock(email)):
            raise ValidationError(self._locked_message)
        if await self._store.get(OtpKeys.spam_lock(email)):
            raise ValidationError(self._spam_locked_message)
        if await self._store.get(OtpKeys.cooldown(email)):
            raise ValidationError(self._cooldown_message)

    async def track_request(self, email: str) -> None:
        """Count an issuance request; past ``otp_max_requests`` set the spam lock."""
        email = normalize_email(email)
        count = await self._store.incr_with_expiry(
            OtpKeys.request_count(email), self._settings.otp_request_window_seconds
        )
        if count > self._settings.otp_max_requests:
            await self._store.set(
                OtpKeys.spam_lock(email), "true", self._settings.otp_spam_lock_seconds
            )
            log.warning("otp_spam_locked", email=email, requests=count)
            raise ValidationError(self._spam_locked_message)

    async def issue(self, name: str, email: str, template: str) -> None:
        """Generate a code, email it, then store it with a reissue cooldown.

        The record is only written after the mailer accepts the message, so a
        failed send leaves no live code and no cooldown behind.

        Raises:
            EmailDeliveryError: the provider reported the message as not sent.
        """
        email = normalize_email(email)
        code = generate_otp_code()

        sent = await self._email.send_email(
            email, OTP_EMAIL_SUBJECT, template, {"name": name, "otp": code}
        )
        if not sent:
            raise EmailDeliveryError(f"Failed to send {template} email")

        await self._store.set(
            OtpKeys.otp(email), hash_token(code), self._settings.otp_ttl_seconds
        )
        await self._store.set(
            OtpKeys.cooldown(email), "true", self._settings.otp_cooldown_seconds
        )
        log.info("otp_issued", email=email, template=template)

    async def request_otp(self, name: str, email: str, template: str) -> None:
        """Guard → tracker → issue: the full issuance pipeline."""
        await self.check_restrictions(email)
        await self.track_request(email)
        await self.issue(name, email, template)

    async def verify(self, email: str, code: str) -> None:
        """Check *code* against the live OTP for *email*.

        The only place codes are compared. A match consumes the code; the
        ``otp_max_failed_attempts + 1``-th mismatch trips the hard lock and
        discards the code. While the hard lock is active every attempt fails
        with the lock message, whatever the code.
        """
        email = normalize_email(email)
        otp_key = OtpKeys.otp(email)
        attempts_key = OtpKeys.attempts(email)

        if await self._store.get(OtpKeys.lock(email)):
            raise ValidationError(self._locked_message)

        stored_hash = await self._store.get(otp_key)
        if not stored_hash:
            raise ValidationError(EXPIRED_MESSAGE)

        if token_matches(code.strip(), stored_hash):
            await self._store.delete(otp_key, attempts_key)
            log.info("otp_verified", email=email)
            return

        failed_attempts = (
            await self._store.incr_with_expiry(
                attempts_key, self._settings.otp_attempts_ttl_seconds
            )
            - 1
        )
        if failed_attempts >= self._settings.otp_max_failed_attempts:
            await self._store.set(
                OtpKeys.lock(email), "true", self._settings.otp_lock_seconds
            )
            await self._store.delete(otp_key, attempts_key)
            log.warning("otp_hard_locked", email=email)
            raise ValidationError(self._locked_message)

        remaining = self._settings.otp_max_failed_attempts - failed_attempts
        log.info("otp_mismatch", email=email, attempts_left=remaining)
        raise ValidationError(f"Invalid OTP. You have {remaining} attempts left.")

    async def grant_password_reset(self, email: str) -> None:
        """Record that *email* passed a reset-code check; reset must follow soon."""
        await self._store.set(
            OtpKeys.reset_grant(normalize_email(email)),
            "true",
            self._settings.otp_reset_grant_seconds,
        )

    async def consume_password_reset(self, email: str) -> None:
        """Spend the grant left by ``grant_password_reset``.

        Raises:
            ValidationError: no verified reset code for *email* is on record.
        """
        key = OtpKeys.reset_grant(normalize_email(email))
        if not await self._store.get(key):
            raise ValidationError(RESET_NOT_VERIFIED_MESSAGE)
        await self._store.delete(key)
