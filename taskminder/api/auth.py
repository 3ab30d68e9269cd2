"""Authentication API endpoints."""

import logging

from fastapi import APIRouter

from taskminder.api.deps import CurrentUser, DBSession, GoogleVerifier, Otp
from taskminder.models.user import (
    AuthResponse,
    GoogleLogin,
    OtpSentResponse,
    OtpVerify,
    UserResponse,
)
from taskminder.services.auth import complete_otp_login, start_google_login

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/google", response_model=OtpSentResponse)
def google_login(
    session: DBSession,
    verifier: GoogleVerifier,
    otp_service: Otp,
    body: GoogleLogin,
) -> OtpSentResponse:
    """Verify a Google ID token and email a one-time password."""
    user = start_google_login(session, verifier, otp_service, body.token)
    return OtpSentResponse(message="OTP sent to your email", email=user.email)


@router.post("/verify", response_model=AuthResponse)
def verify_otp(session: DBSession, otp_service: Otp, body: OtpVerify) -> AuthResponse:
    """Exchange a one-time password for a session token."""
    return complete_otp_login(session, otp_service, body.email, body.otp)


@router.get("/me", response_model=UserResponse)
def read_current_user(current_user: CurrentUser) -> UserResponse:
    return UserResponse.model_validate(current_user)


@router.post("/logout")
def logout_user(current_user: CurrentUser) -> dict[str, str]:
    """Sign out (invalidate session)."""
    # JWT is stateless, so logout is handled client-side by discarding the token.
    logger.info("User logged out", extra={"user_id": str(current_user.id)})
    return {"message": "Logged out successfully"}
