import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("TOKEN_CLEANUP_INTERVAL_SECONDS", "0")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import re  # noqa: E402
from dataclasses import dataclass  # noqa: E402
from datetime import timedelta  # noqa: E402
from typing import Callable, Dict, Generator, List  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import app.models  # noqa: F401,E402
from app.core.database import get_db  # noqa: E402
from app.core.rate_limit import limiter  # noqa: E402
from app.core.security import TokenIssuer, get_token_issuer, hash_password  # noqa: E402
from app.main import create_app  # noqa: E402
from app.models.base import Base  # noqa: E402
from app.models.user import AccountStatus, User, UserRole  # noqa: E402
from app.repositories.user_repository import UserRepository  # noqa: E402
from app.routers.auth import get_auth_service  # noqa: E402
from app.routers.listings import get_listing_workflow  # noqa: E402
from app.services.auth import AuthService  # noqa: E402
from app.services.listings import ListingWorkflow  # noqa: E402
from app.services.refresh_tokens import RefreshTokenStore  # noqa: E402

PASSWORD = "secret123"
TOKEN_PATTERN = re.compile(r"token=([A-Za-z0-9_-]+)")


@dataclass
class SentEmail:
    to: str
    subject: str
    html_body: str


class MemoryOutbox:
    def __init__(self):
        self.messages: List[SentEmail] = []

    def send(self, to: str, subject: str, html_body: str) -> None:
        self.messages.append(SentEmail(to, subject, html_body))

    def sent_to(self, to: str) -> List[SentEmail]:
        return [message for message in self.messages if message.to == to]

    def token_for(self, to: str) -> str:
        """Token embedded in the link of the latest mail sent to ``to``."""
        match = TOKEN_PATTERN.search(self.sent_to(to)[-1].html_body)
        assert match, "no token link in the last email"
        return match.group(1)


@pytest.fixture
def session_factory() -> sessionmaker:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def outbox() -> MemoryOutbox:
    return MemoryOutbox()


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer(
        secret_key="unit-test-secret",
        algorithm="HS256",
        issuer="test-issuer",
        audience="test-audience",
        access_ttl=timedelta(minutes=15),
    )


@pytest.fixture
def refresh_store(issuer) -> RefreshTokenStore:
    return RefreshTokenStore(issuer, timedelta(days=7))


@pytest.fixture
def auth_service(issuer, refresh_store, outbox) -> AuthService:
    return AuthService(
        token_issuer=issuer,
        refresh_store=refresh_store,
        email_sender=outbox,
        frontend_url="http://frontend.test",
        email_token_ttl=timedelta(hours=24),
    )


@pytest.fixture
def workflow(outbox) -> ListingWorkflow:
    return ListingWorkflow(email_sender=outbox, publication_period=timedelta(days=90))


@pytest.fixture
def make_user(db) -> Callable[..., User]:
    """Create an already confirmed account with the given role."""
    repo = UserRepository()

    def _make_user(username: str, role: UserRole = UserRole.USER) -> User:
        user = repo.create(
            db,
            username=username,
            email=f"{username}@example.com",
            hashed_password=hash_password(PASSWORD),
            role=role,
            status=AccountStatus.ACTIVE,
        )
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def client(session_factory, issuer, auth_service, workflow) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    limiter.reset()
    app = create_app()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_token_issuer] = lambda: issuer
    app.dependency_overrides[get_auth_service] = lambda: auth_service
    app.dependency_overrides[get_listing_workflow] = lambda: workflow
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def login(client) -> Callable[[str], Dict[str, str]]:
    def _login(username: str, password: str = PASSWORD) -> Dict[str, str]:
        response = client.post("/auth/login", json={"username": username, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _login
