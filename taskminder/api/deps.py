"""API dependencies for dependency injection."""

from collections.abc import Generator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlmodel import Session

from taskminder.config import get_settings
from taskminder.db.session import get_session
from taskminder.models.user import User
from taskminder.services.auth import (
    GoogleTokenVerifier,
    OtpService,
    get_google_verifier,
    get_otp_service,
)
from taskminder.services.email import EmailSender, get_email_sender
from taskminder.services.reminders import ReminderDispatcher, get_reminder_dispatcher

security = HTTPBearer()


def get_db_session() -> Generator[Session, None, None]:
    """Get database session dependency."""
    yield from get_session()


DBSession = Annotated[Session, Depends(get_db_session)]


def get_current_user(
    session: DBSession,
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> User:
    """Get current authenticated user from JWT token."""
    settings = get_settings()
    token = credentials.credentials
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
        user_id: str | None = payload.get("sub")
        if user_id is None:
            raise credentials_exception
        user = session.get(User, UUID(user_id))
    except (JWTError, ValueError):
        raise credentials_exception

    if user is None:
        raise credentials_exception

    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def get_admin_user(current_user: CurrentUser) -> User:
    """Require the authenticated user to be a configured administrator."""
    if not get_settings().is_admin_email(current_user.email):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


AdminUser = Annotated[User, Depends(get_admin_user)]


EmailTransport = Annotated[EmailSender, Depends(get_email_sender)]
Dispatcher = Annotated[ReminderDispatcher, Depends(get_reminder_dispatcher)]
GoogleVerifier = Annotated[GoogleTokenVerifier, Depends(get_google_verifier)]


def get_otp_provider(email_sender: EmailTransport) -> OtpService:
    return get_otp_service(email_sender)


Otp = Annotated[OtpService, Depends(get_otp_provider)]
