"""Environment configuration for the Taskminder backend."""

import os
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


def _csv(value: str) -> list[str]:
    return [item.strip().lower() for item in value.split(",") if item.strip()]


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self) -> None:
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./taskminder.db")
        self.JWT_SECRET: str = os.getenv("JWT_SECRET", "")
        self.FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:5173")
        self.JWT_ALGORITHM: str = "HS256"
        self.JWT_EXPIRATION_HOURS: int = int(os.getenv("JWT_EXPIRATION_HOURS", "1"))

        # Google sign-in and emailed one-time passwords
        self.GOOGLE_CLIENT_ID: str = os.getenv("GOOGLE_CLIENT_ID", "")
        self.OTP_EXPIRATION_MINUTES: int = int(os.getenv("OTP_EXPIRATION_MINUTES", "10"))
        self.ADMIN_EMAILS: list[str] = _csv(os.getenv("ADMIN_EMAILS", ""))

        # Outbound email
        self.EMAIL_BACKEND: str = os.getenv("EMAIL_BACKEND", "smtp")
        self.SMTP_HOST: str = os.getenv("SMTP_HOST", "smtp.gmail.com")
        self.SMTP_PORT: int = int(os.getenv("SMTP_PORT", "465"))
        self.EMAIL_USER: str = os.getenv("EMAIL_USER", "")
        self.EMAIL_PASS: str = os.getenv("EMAIL_PASS", "")
        self.EMAIL_FROM: str = os.getenv("EMAIL_FROM", "") or self.EMAIL_USER

        # Reminder dispatch
        self.REMINDER_HORIZON_DAYS: int = int(os.getenv("REMINDER_HORIZON_DAYS", "30"))

        # Background workers
        self.WORKER_BATCH_SIZE: int = int(os.getenv("WORKER_BATCH_SIZE", "50"))
        self.WORKER_POLL_INTERVAL_SECONDS: int = int(
            os.getenv("WORKER_POLL_INTERVAL_SECONDS", "5")
        )

    def validate(self) -> None:
        """Validate that required environment variables are set."""
        if not self.DATABASE_URL:
            raise ValueError("DATABASE_URL environment variable is required")
        if not self.JWT_SECRET:
            raise ValueError("JWT_SECRET environment variable is required")

    def is_admin_email(self, email: str) -> bool:
        return email.lower() in self.ADMIN_EMAILS


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    settings = Settings()
    return settings
