"""Pytest configuration and fixtures."""

import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("PROTECTION_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.db.base import Base
from app.db.session import get_db
from app.api.v1.dependencies import get_location_service, get_protection
from app.models.user import User, UserRole, UserStatus
from app.schemas.auth import SessionClaims
from app.services.auth_service import AuthService
from app.services.location import LocationData, LocationResolver
from app.services.passwords import hash_password
from app.services.protection import AllowAllGate, ProtectionDecision, ProtectionGate
from app.services.referral import generate_referral_code
from app.services.session_service import SessionService


# In-memory SQLite for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FixedLocationResolver(LocationResolver):
    """Location resolver returning a fixed country."""

    def __init__(self, country_code: str = "GB", country: str = "United Kingdom"):
        self.location = LocationData(country_code=country_code, country=country)
        self.calls = []

    def resolve(self, ip):
        self.calls.append(ip)
        return self.location


class DenyingGate(ProtectionGate):
    """Protection gate refusing every request with a fixed decision."""

    def __init__(self, decision: ProtectionDecision):
        self.decision = decision
        self.calls = []

    def protect(self, client_ip, user_agent, action):
        self.calls.append((client_ip, user_agent, action))
        return self.decision


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database session for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def location_resolver():
    return FixedLocationResolver()


@pytest.fixture(scope="function")
def protection_gate():
    """Gate used by the client fixture; tests may swap its decision."""
    return AllowAllGate()


@pytest.fixture(scope="function")
def client(db_session, location_resolver, protection_gate):
    """Create a test client with overridden dependencies."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_location_service] = lambda: location_resolver
    app.dependency_overrides[get_protection] = lambda: protection_gate

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def deny_protection(client):
    """Install a gate that refuses every attempt with the given decision."""

    def _deny(decision: ProtectionDecision) -> DenyingGate:
        gate = DenyingGate(decision)
        app.dependency_overrides[get_protection] = lambda: gate
        return gate

    return _deny


@pytest.fixture
def auth_service(db_session, location_resolver):
    return AuthService(db_session, location_resolver)


@pytest.fixture
def make_user(db_session):
    """Factory inserting users straight into the database."""

    def _make_user(
        email="member@example.com",
        name="Member User",
        password=None,
        status=UserStatus.ACTIVE,
        role=UserRole.USER,
        image=None,
        referral_code=None,
    ) -> User:
        user = User(
            email=email,
            name=name,
            image=image,
            password_hash=hash_password(password) if password else None,
            status=status,
            role=role,
            referral_code=referral_code or generate_referral_code(),
            country_code="KE",
            country="Kenya",
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def session_headers():
    """Build Authorization headers carrying a signed session for given claims."""

    def _headers(role=UserRole.USER, user_id="00000000-0000-0000-0000-000000000001", **overrides):
        claims = SessionClaims(
            id=str(user_id),
            email=overrides.get("email", "member@example.com"),
            name=overrides.get("name", "Member User"),
            role=role,
            status=overrides.get("status", UserStatus.ACTIVE),
            country=overrides.get("country", "KE"),
            referral_code=overrides.get("referral_code", "abcd1234"),
        )
        token = SessionService().issue_token(claims)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def test_user(client):
    """Register a user through the API and sign in."""
    user_data = {
        "name": "Test User",
        "email": "test@example.com",
        "password": "Testpassword123",
        "confirm_password": "Testpassword123",
    }
    response = client.post("/api/auth/signup", json=user_data)
    assert response.status_code == 201

    login_response = client.post(
        "/api/auth/signin",
        json={"email": user_data["email"], "password": user_data["password"]},
    )
    assert login_response.status_code == 200

    token = login_response.json()["access_token"]
    return {"user_data": user_data, "token": token, "user": response.json()["user"]}


@pytest.fixture
def auth_headers(test_user):
    """Return authorization headers for authenticated requests."""
    return {"Authorization": f"Bearer {test_user['token']}"}
