"""Authentication service: Google sign-in, emailed OTPs and JWT sessions."""

import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

import bcrypt
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token
from jose import jwt
from sqlalchemy import delete
from sqlmodel import Session, select

from taskminder.config import get_settings
from taskminder.errors import AuthenticationFailed, ValidationFailed
from taskminder.models.user import AuthResponse, OneTimePassword, User, UserResponse
from taskminder.services.email import EmailSender, build_otp_email, deliver

logger = logging.getLogger(__name__)

# Loose shape check: something@something.tld
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass
class GoogleIdentity:
    """Verified claims from a Google ID token."""

    email: str
    name: str | None
    subject: str


class GoogleTokenVerifier:
    """Verify Google ID tokens against the configured OAuth client."""

    def __init__(self, client_id: str) -> None:
        self.client_id = client_id
        self._request = google_requests.Request()

    def verify(self, token: str) -> GoogleIdentity:
        try:
            claims = id_token.verify_oauth2_token(token, self._request, self.client_id)
        except ValueError as e:
            raise AuthenticationFailed("Invalid Google token") from e

        email = claims.get("email")
        if not email:
            raise AuthenticationFailed("Google token carries no email address")
        return GoogleIdentity(email=email.lower(), name=claims.get("name"), subject=claims["sub"])


def get_google_verifier() -> GoogleTokenVerifier:
    return GoogleTokenVerifier(get_settings().GOOGLE_CLIENT_ID)


# -----------------------------------------------------------------------------
# Users
# -----------------------------------------------------------------------------


def validate_email(email: str) -> bool:
    """Validate email shape."""
    return bool(EMAIL_PATTERN.match(email))


def get_user_by_email(session: Session, email: str) -> User | None:
    """Get a user by email address."""
    return session.exec(select(User).where(User.email == email.strip().lower())).first()


def get_user_by_owner(session: Session, owner: str) -> User | None:
    """Resolve a task owner identifier to a user, if it names one."""
    try:
        user_id = UUID(owner)
    except (TypeError, ValueError):
        return None
    return session.get(User, user_id)


def get_or_create_user(
    session: Session,
    email: str,
    name: str | None = None,
    google_id: str | None = None,
) -> User:
    """Find the user for ``email``, creating it on first sign-in.

    Missing name/google_id values are filled in on existing users.
    """
    email = email.strip().lower()
    if not validate_email(email):
        raise ValidationFailed("email", "Please enter a valid email address")

    user = get_user_by_email(session, email)
    if user is None:
        user = User(email=email, name=name, google_id=google_id)
        session.add(user)
        session.commit()
        session.refresh(user)
        logger.info("User created", extra={"user_id": str(user.id)})
        return user

    changed = False
    if name and not user.name:
        user.name = name
        changed = True
    if google_id and not user.google_id:
        user.google_id = google_id
        changed = True
    if changed:
        user.updated_at = datetime.utcnow()
        session.add(user)
        session.commit()
        session.refresh(user)
    return user


# -----------------------------------------------------------------------------
# One-time passwords
# -----------------------------------------------------------------------------


def generate_otp() -> str:
    """Generate a 6-digit numeric code."""
    return f"{secrets.randbelow(900000) + 100000}"


def hash_otp(code: str) -> str:
    """Hash a code using bcrypt."""
    return bcrypt.hashpw(code.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_otp_hash(code: str, code_hash: str) -> bool:
    return bcrypt.checkpw(code.encode("utf-8"), code_hash.encode("utf-8"))


class OtpService:
    """Issue and verify emailed one-time passwords.

    Codes are stored hashed with an expiry; a new code for an email replaces
    any earlier one.
    """

    def __init__(self, email_sender: EmailSender, valid_minutes: int = 10) -> None:
        self.email_sender = email_sender
        self.valid_minutes = valid_minutes

    def issue(self, session: Session, email: str, now: datetime | None = None) -> str:
        """Create a code for ``email``, email it and return it.

        Raises:
            DeliveryError: If the code could not be emailed
        """
        now = now or datetime.utcnow()
        email = email.strip().lower()
        code = generate_otp()

        session.execute(
            delete(OneTimePassword).where(
                (OneTimePassword.email == email) | (OneTimePassword.expires_at <= now)
            )
        )
        session.add(
            OneTimePassword(
                email=email,
                code_hash=hash_otp(code),
                expires_at=now + timedelta(minutes=self.valid_minutes),
                created_at=now,
            )
        )
        session.commit()

        deliver(self.email_sender, build_otp_email(email, code, self.valid_minutes))
        logger.info("OTP issued", extra={"email": email})
        return code

    def verify(self, session: Session, email: str, code: str, now: datetime | None = None) -> bool:
        """Check ``code`` for ``email``; a matching code is consumed."""
        now = now or datetime.utcnow()
        email = email.strip().lower()

        record = session.exec(
            select(OneTimePassword)
            .where(OneTimePassword.email == email)
            .where(OneTimePassword.expires_at > now)
            .order_by(OneTimePassword.created_at.desc())
        ).first()

        if record is None or not verify_otp_hash(code, record.code_hash):
            logger.warning("OTP verification failed", extra={"email": email})
            return False

        session.delete(record)
        session.commit()
        return True


def get_otp_service(email_sender: EmailSender) -> OtpService:
    return OtpService(email_sender, valid_minutes=get_settings().OTP_EXPIRATION_MINUTES)


# -----------------------------------------------------------------------------
# Sessions
# -----------------------------------------------------------------------------


def generate_jwt(user: User) -> tuple[str, datetime]:
    """
    Generate a JWT token for the user.
    Returns (token, expires_at).
    """
    settings = get_settings()
    issued_at = datetime.utcnow()
    expires_at = issued_at + timedelta(hours=settings.JWT_EXPIRATION_HOURS)
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "exp": expires_at,
        "iat": issued_at,
    }
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expires_at


def create_auth_response(user: User) -> AuthResponse:
    """Create an authentication response with JWT token."""
    token, expires_at = generate_jwt(user)
    return AuthResponse(
        user=UserResponse.model_validate(user),
        token=token,
        expires_at=expires_at,
    )


def start_google_login(
    session: Session,
    verifier: GoogleTokenVerifier,
    otp_service: OtpService,
    token: str,
) -> User:
    """Verify a Google token, record the user and email them an OTP."""
    identity = verifier.verify(token)
    user = get_or_create_user(session, identity.email, identity.name, identity.subject)
    otp_service.issue(session, user.email)
    return user


def complete_otp_login(
    session: Session,
    otp_service: OtpService,
    email: str,
    code: str,
) -> AuthResponse:
    """Exchange a valid OTP for a session token.

    Raises:
        AuthenticationFailed: If the code is wrong, expired or already used
    """
    if not otp_service.verify(session, email, code):
        raise AuthenticationFailed("Invalid OTP")
    user = get_or_create_user(session, email)
    return create_auth_response(user)
