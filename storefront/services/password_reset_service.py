"""Password reset - one-time, time-boxed reset links sent by email.

Per user at most one reset link is live: issuing a new one deletes the
user's earlier records. A record goes from unused to used exactly once;
the transition is a conditional UPDATE on ``used = false`` so concurrent
submissions of the same token cannot both succeed. Expired records are
rejected on lookup and left in place.
"""
import secrets
import string
from datetime import timedelta
from typing import Optional

import resend
from sqlalchemy.orm import Session

from storefront.config import get_settings
from storefront.models.user import PasswordReset, User
from storefront.services.auth_service import hash_password
from storefront.services.errors import (
    ConfigurationError,
    DeliveryError,
    ExpiredError,
    InvalidOrUsedToken,
    NotFoundError,
    ValidationError,
)
from storefront.utils.helpers import normalize_email, utcnow
from storefront.utils.logger import audit_log, log

RESET_TOKEN_ALPHABET = string.ascii_letters + string.digits
MIN_RESET_TOKEN_LENGTH = 10
MIN_PASSWORD_LENGTH = 8


def generate_reset_token(length: int) -> str:
    return "".join(secrets.choice(RESET_TOKEN_ALPHABET) for _ in range(length))


class ResetMailer:
    """Sends reset links through Resend."""

    def __init__(self, api_key: str, from_email: str):
        self.api_key = api_key
        self.from_email = from_email

    def ensure_configured(self) -> None:
        if not self.api_key:
            log.error("RESEND_API_KEY not configured - cannot send reset email")
            raise ConfigurationError("Email delivery is not configured")

    def send_reset_link(self, email: str, name: str, reset_link: str) -> bool:
        """Send the reset email. Returns True on success."""
        self.ensure_configured()
        resend.api_key = self.api_key

        greeting = f"Hi {name}," if name else "Hi,"
        try:
            resend.Emails.send({
                "from": self.from_email,
                "to": [email],
                "subject": "Reset your Robe By Shamshad password",
                "text": (
                    f"{greeting}\n\n"
                    "We received a request to reset your password. Use the link below "
                    "within the next hour. It works only once.\n"
                    f"{reset_link}\n\n"
                    "If you didn't request this change, you can safely ignore this email."
                ),
                "html": (
                    f"<p>{greeting}</p>"
                    f"<p>We received a request to reset your password. Click the button below "
                    f"within the next hour. The link works only once.</p>"
                    f"<p style='text-align:center;margin:24px 0'>"
                    f"<a href='{reset_link}' style='display:inline-block;padding:12px 24px;"
                    f"background:#059669;color:#fff;border-radius:6px;text-decoration:none'>"
                    f"Reset Password</a></p>"
                    f"<p>If you didn't request this change, you can safely ignore this email.</p>"
                ),
            })
            log.info(f"Reset email sent to {email}")
            return True
        except Exception as exc:
            log.error(f"Failed to send reset email to {email}: {exc}")
            return False


def get_reset_mailer() -> ResetMailer:
    settings = get_settings()
    return ResetMailer(settings.resend_api_key, settings.reset_from_email)


class PasswordResetService:
    """Issue and consume password reset records."""

    def __init__(
        self,
        db: Session,
        mailer: ResetMailer,
        ttl: Optional[timedelta] = None,
        token_length: Optional[int] = None,
    ):
        settings = get_settings()
        self.db = db
        self.mailer = mailer
        self.ttl = ttl or timedelta(minutes=settings.reset_token_ttl_minutes)
        self.token_length = token_length or settings.reset_token_length

    def request_reset(self, email: str, base_url: str) -> PasswordReset:
        """Issue a new reset link for ``email`` and mail it.

        Raises:
            ValidationError: ``email`` is not a usable address.
            NotFoundError: no account uses ``email``.
            ConfigurationError: mail delivery has no credentials.
            DeliveryError: the mail provider rejected the message.
        """
        if not isinstance(email, str) or "@" not in email:
            raise ValidationError("A valid email is required")

        normalized = normalize_email(email)
        user = self.db.query(User).filter(User.email == normalized).first()
        if user is None:
            raise NotFoundError("No account found with that email")

        self.mailer.ensure_configured()

        # Earlier links for this user stop working
        self.db.query(PasswordReset).filter(PasswordReset.user_id == user.id).delete(
            synchronize_session=False
        )
        record = PasswordReset(
            user_id=user.id,
            token=generate_reset_token(self.token_length),
            expires_at=utcnow() + self.ttl,
            used=False,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)

        reset_link = f"{base_url.rstrip('/')}/reset-password/{record.token}"
        if not self.mailer.send_reset_link(normalized, user.name or "", reset_link):
            raise DeliveryError("Unable to process reset request")
        return record

    def consume_reset(self, token: str, new_password: str) -> User:
        """Set a new password using a reset token.

        Raises:
            ValidationError: token too short or password too weak.
            InvalidOrUsedToken: no unused record for ``token``, including
                when a concurrent request consumed it first.
            ExpiredError: the record exists but is past its expiry.
        """
        if not isinstance(token, str) or len(token) < MIN_RESET_TOKEN_LENGTH:
            raise ValidationError("Invalid or missing token")
        if not isinstance(new_password, str) or len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )

        record = (
            self.db.query(PasswordReset)
            .filter(PasswordReset.token == token, PasswordReset.used == False)  # noqa: E712
            .first()
        )
        if record is None:
            raise InvalidOrUsedToken("Reset link is invalid or already used")

        now = utcnow()
        if record.expires_at <= now:
            raise ExpiredError("Reset link has expired")

        claimed = (
            self.db.query(PasswordReset)
            .filter(PasswordReset.id == record.id, PasswordReset.used == False)  # noqa: E712
            .update({"used": True, "used_at": now}, synchronize_session=False)
        )
        user = self.db.get(User, record.user_id)
        if claimed != 1 or user is None:
            self.db.rollback()
            raise InvalidOrUsedToken("Reset link is invalid or already used")

        user.password_hash = hash_password(new_password)
        user.updated_at = now
        self.db.commit()
        audit_log.info(f"Password reset completed for user {user.id}")
        return user
