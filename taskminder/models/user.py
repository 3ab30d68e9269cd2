"""User entity model."""

from datetime import datetime
from uuid import UUID, uuid4

from pydantic import EmailStr, field_validator
from sqlmodel import Field, SQLModel


class UserBase(SQLModel):
    """Base User schema."""

    email: str = Field(max_length=255, unique=True, index=True)


class User(UserBase, table=True):
    """User database model.

    Tasks reference users through ``Task.owner`` (the string form of ``id``)
    by convention only.
    """

    __tablename__ = "users"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str | None = Field(default=None, max_length=255)
    google_id: str | None = Field(default=None, max_length=255, unique=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def owner_id(self) -> str:
        return str(self.id)


class OneTimePassword(SQLModel, table=True):
    """Hashed one-time password with an expiry."""

    __tablename__ = "one_time_passwords"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    email: str = Field(max_length=255, index=True)
    code_hash: str = Field(max_length=255)
    expires_at: datetime = Field(index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class GoogleLogin(SQLModel):
    """Schema for Google sign-in."""

    token: str = Field(min_length=1)


class OtpVerify(SQLModel):
    """Schema for OTP submission."""

    email: EmailStr
    otp: str = Field(min_length=6, max_length=6)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.strip().lower()


class OtpSentResponse(SQLModel):
    """Schema for OTP issuance response."""

    message: str
    email: str


class UserResponse(SQLModel):
    """Schema for user response."""

    id: UUID
    email: str
    name: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuthResponse(SQLModel):
    """Schema for authentication response."""

    user: UserResponse
    token: str
    expires_at: datetime
