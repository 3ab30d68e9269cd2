"""Shared fixtures: in-memory database, fake email transport and API client."""

import os
import time

os.environ["TZ"] = "UTC"
time.tzset()
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["EMAIL_BACKEND"] = "console"
os.environ["ADMIN_EMAILS"] = "admin@example.com"

from datetime import datetime  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from taskminder.api.deps import get_db_session  # noqa: E402
from taskminder.errors import DeliveryError  # noqa: E402
from taskminder.main import app  # noqa: E402
from taskminder.models.user import User  # noqa: E402
from taskminder.services.auth import generate_jwt, get_google_verifier  # noqa: E402
from taskminder.services.email import OutgoingEmail, get_email_sender  # noqa: E402
from taskminder.services.reminders import ReminderDispatcher, get_reminder_dispatcher  # noqa: E402


class FakeEmailSender:
    """Records every message; raises DeliveryError while ``fail`` is set."""

    def __init__(self) -> None:
        self.sent: list[OutgoingEmail] = []
        self.fail = False

    def send(self, to: str, subject: str, text_body: str, html_body: str | None = None) -> None:
        if self.fail:
            raise DeliveryError(f"Delivery to {to} refused")
        self.sent.append(OutgoingEmail(to=to, subject=subject, text_body=text_body, html_body=html_body))


class FakeGoogleVerifier:
    """Accepts tokens of the form ``valid:<email>``."""

    def verify(self, token: str):
        from taskminder.errors import AuthenticationFailed
        from taskminder.services.auth import GoogleIdentity

        if not token.startswith("valid:"):
            raise AuthenticationFailed("Invalid Google token")
        email = token.split(":", 1)[1]
        return GoogleIdentity(email=email, name="Google User", subject=f"google-{email}")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def db_session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 1, 1, 9, 0)


@pytest.fixture
def test_user(db_session: Session) -> User:
    user = User(email="user@example.com", name="Test User")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def admin_user(db_session: Session) -> User:
    user = User(email="admin@example.com", name="Admin")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture
def dispatcher(email_sender: FakeEmailSender) -> ReminderDispatcher:
    return ReminderDispatcher(email_sender, horizon_days=30)


@pytest.fixture
def client(engine, email_sender: FakeEmailSender, dispatcher: ReminderDispatcher):
    def override_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_db_session] = override_session
    app.dependency_overrides[get_email_sender] = lambda: email_sender
    app.dependency_overrides[get_reminder_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_google_verifier] = FakeGoogleVerifier
    yield TestClient(app)
    app.dependency_overrides.clear()


def bearer(user: User) -> dict[str, str]:
    token, _ = generate_jwt(user)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(test_user: User) -> dict[str, str]:
    return bearer(test_user)


@pytest.fixture
def admin_headers(admin_user: User) -> dict[str, str]:
    return bearer(admin_user)
