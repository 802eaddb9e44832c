"""Authentication service - password hashing, users, sessions"""
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from passlib.context import CryptContext
from sqlalchemy.orm import Session

from storefront.config import get_settings
from storefront.models.user import User, UserSession
from storefront.services.errors import AccountDisabled, ConflictError, InvalidCredentials
from storefront.services.token_codec import AuthClaims, TokenCodec
from storefront.utils.helpers import normalize_email, utcnow
from storefront.utils.logger import audit_log, log

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"
ACCOUNT_DISABLED_MESSAGE = "This account has been deactivated. Please contact support."


def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: Optional[str]) -> bool:
    if not hashed:
        # Same bcrypt cost as a real comparison
        pwd_context.dummy_verify()
        return False
    return pwd_context.verify(plain, hashed)


def create_user(
    db: Session,
    email: str,
    password: Optional[str],
    name: str = "",
    role: str = "customer",
    is_admin: bool = False,
    email_verified: bool = False,
) -> User:
    """Create a new user account. Email must be unused."""
    normalized = normalize_email(email)
    if db.query(User).filter(User.email == normalized).first():
        raise ConflictError("Email already registered")
    user = User(
        email=normalized,
        name=name,
        password_hash=hash_password(password) if password else None,
        role=role,
        is_admin=1 if is_admin else 0,
        email_verified=email_verified,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def seed_initial_admin(db: Session) -> Optional[User]:
    """Create the first admin user from env vars if no users exist."""
    settings = get_settings()
    if not settings.initial_admin_email or not settings.initial_admin_password:
        return None
    # Skip if any users already exist
    if db.query(User).first():
        return None
    user = create_user(
        db,
        settings.initial_admin_email,
        settings.initial_admin_password,
        name="Admin",
        role="admin",
        is_admin=True,
        email_verified=True,
    )
    log.info(f"Seeded initial admin user: {user.email}")
    return user


@dataclass
class LoginResult:
    """Outcome of a successful login: the cookie value and what it points at."""
    auth_token: str
    session: UserSession
    user: User


@dataclass
class ResolvedSession:
    user: User
    session: UserSession
    claims: AuthClaims


class SessionManager:
    """Maps a presented auth token to a live session and its user.

    This is the authoritative check. The request gate only verifies the
    token signature, so a token whose session was deleted elsewhere still
    passes the gate until it expires (at most ``ttl``); ``resolve`` rejects
    it immediately.
    """

    def __init__(self, db: Session, codec: TokenCodec, ttl: Optional[timedelta] = None):
        self.db = db
        self.codec = codec
        self.ttl = ttl or codec.ttl

    def login(self, email: str, password: str) -> LoginResult:
        """Check credentials and open a new session.

        Unknown email and wrong password raise the same ``InvalidCredentials``.
        ``AccountDisabled`` is only raised once the password matched.
        """
        user = self.db.query(User).filter(User.email == normalize_email(email)).first()
        if user is None:
            verify_password(password, None)
            audit_log.warning("Failed login for unknown email")
            raise InvalidCredentials(INVALID_CREDENTIALS_MESSAGE)
        if not verify_password(password, user.password_hash):
            audit_log.warning(f"Failed login for user {user.id}")
            raise InvalidCredentials(INVALID_CREDENTIALS_MESSAGE)
        if not user.is_active:
            raise AccountDisabled(ACCOUNT_DISABLED_MESSAGE)

        user.last_login = utcnow()
        self.db.commit()
        return self.open_session(user)

    def open_session(self, user: User) -> LoginResult:
        """Persist a new session row for ``user`` and mint its auth token."""
        session_token = secrets.token_hex(32)
        # Mint first: a missing secret must not leave a session row behind
        auth_token = self.codec.mint(
            AuthClaims(
                user_id=str(user.id),
                email=user.email,
                name=user.name or "",
                session_token=session_token,
                role=user.role or "customer",
                is_admin=1 if user.is_admin else 0,
            )
        )

        session = UserSession(
            user_id=user.id,
            token=session_token,
            expires_at=utcnow() + self.ttl,
        )
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)
        audit_log.info(f"Opened session for user {user.id}")
        return LoginResult(auth_token=auth_token, session=session, user=user)

    def resolve(self, auth_token: Optional[str]) -> Optional[ResolvedSession]:
        """Return the live session for ``auth_token`` or None.

        Every failure (bad token, unknown session, expired session, deleted
        user) yields the same None.
        """
        if not auth_token:
            return None
        claims = self.codec.verify(auth_token)
        if claims is None:
            return None

        session = (
            self.db.query(UserSession)
            .filter(UserSession.token == claims.session_token)
            .first()
        )
        if session is None:
            return None

        if session.expires_at <= utcnow():
            self.db.query(UserSession).filter(UserSession.id == session.id).delete(
                synchronize_session=False
            )
            self.db.commit()
            return None

        user = self.db.get(User, session.user_id)
        if user is None:
            return None
        return ResolvedSession(user=user, session=session, claims=claims)

    def logout(self, auth_token: Optional[str]) -> None:
        """Delete the session behind ``auth_token``. Idempotent."""
        claims = self.codec.verify(auth_token) if auth_token else None
        if claims is None:
            return
        removed = self.db.query(UserSession).filter(
            UserSession.token == claims.session_token
        ).delete(synchronize_session=False)
        self.db.commit()
        if removed:
            audit_log.info(f"Closed session for user {claims.user_id}")

    def cleanup_expired(self) -> int:
        """Delete expired sessions. Returns count removed."""
        count = (
            self.db.query(UserSession)
            .filter(UserSession.expires_at <= utcnow())
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return count
