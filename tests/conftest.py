"""
Shared fixtures for the import pipeline tests.

Every test gets a fresh in-memory SQLite database (one connection held by
StaticPool), seeded with an admin user, the default roles and one vendor.
The API client runs against that same session through a get_db override.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from src.vendor_tool.database import create_db_engine, get_db
from src.vendor_tool.main import app
from src.vendor_tool.models import Base
from src.vendor_tool.models.team_member import TeamMember
from src.vendor_tool.seed import create_admin_user, create_default_roles, create_vendor
from src.vendor_tool.services import csv_import


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = TestingSession()
    yield session
    session.close()


@pytest.fixture
def admin(db):
    return create_admin_user(db)


@pytest.fixture
def roles(db):
    return create_default_roles(db)


@pytest.fixture
def vendor(db, roles):
    return create_vendor(db, "Northwind Consulting")


@pytest.fixture
def other_vendor(db, roles):
    return create_vendor(db, "Contoso Staffing")


@pytest.fixture
def add_member(db, roles):
    """Factory for persisted team members."""
    def _add(vendor, first_name, last_name, email, daily_rate="500"):
        member = TeamMember(
            first_name=first_name,
            last_name=last_name,
            email=email,
            vendor_id=vendor.id,
            role_id=roles[0].id,
            daily_rate=Decimal(daily_rate),
            currency="GBP",
            start_date=date(2025, 1, 6),
        )
        db.add(member)
        db.commit()
        db.refresh(member)
        return member
    return _add


@pytest.fixture(autouse=True)
def clear_import_sessions():
    csv_import.IMPORT_SESSIONS.clear()
    yield
    csv_import.IMPORT_SESSIONS.clear()


@pytest.fixture
def client(db, admin):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
