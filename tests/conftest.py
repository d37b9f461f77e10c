"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from typing import Generator

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import duka.models  # noqa: F401  registers every table
from duka.core.jwt import create_access_token
from duka.core.rate_limiter import limiter
from duka.database import Base, get_db
from duka.main import app
from duka.models.inventory import LOCATION_KAMULU, LOCATION_UTAWALA
from duka.models.products import Product
from duka.models.users import User, ROLE_ACCOUNTANT, ROLE_ADMIN, ROLE_CLERK
from duka.services import ledger

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _make_user(db_session: Session, email: str, full_name: str, role: str) -> User:
    user = User(email=email, full_name=full_name, role=role, is_active=True)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def admin_user(db_session: Session) -> User:
    return _make_user(db_session, "admin@example.com", "Admin User", ROLE_ADMIN)


@pytest.fixture
def clerk_user(db_session: Session) -> User:
    return _make_user(db_session, "clerk@example.com", "Clerk User", ROLE_CLERK)


@pytest.fixture
def accountant_user(db_session: Session) -> User:
    return _make_user(db_session, "accounts@example.com", "Accountant User", ROLE_ACCOUNTANT)


def auth_headers_for(user: User) -> dict:
    token = create_access_token(user.id, user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return auth_headers_for(admin_user)


@pytest.fixture
def clerk_headers(clerk_user: User) -> dict:
    return auth_headers_for(clerk_user)


@pytest.fixture
def accountant_headers(accountant_user: User) -> dict:
    return auth_headers_for(accountant_user)


@pytest.fixture
def stocked_products(db_session: Session, admin_user: User) -> dict:
    """Two products with opening stock: cement 10 @ utawala / 3 @ kamulu, nails 4 @ utawala."""
    cement = Product(name="Cement 50kg", description="Portland cement", min_stock_level=5)
    nails = Product(name="Roofing Nails 1kg", min_stock_level=2)
    db_session.add_all([cement, nails])
    db_session.flush()

    ledger.adjust_stock(db_session, cement.id, LOCATION_UTAWALA, 10, admin_user.id)
    ledger.adjust_stock(db_session, cement.id, LOCATION_KAMULU, 3, admin_user.id)
    ledger.adjust_stock(db_session, nails.id, LOCATION_UTAWALA, 4, admin_user.id)
    db_session.commit()

    return {"cement": cement, "nails": nails}
