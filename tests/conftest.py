"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from decimal import Decimal
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest
import pytest_asyncio

from src.config.settings import Settings
from src.models.business import ApplicationStatus, BusinessApplication
from src.models.user import Principal, UserRole
from src.storage.database import Database


@pytest.fixture
def owner():
    """Business owner principal."""
    return Principal(id=101, role=UserRole.USER)


@pytest.fixture
def admin():
    """Admin principal."""
    return Principal(id=1, role=UserRole.ADMIN)


@pytest.fixture
def support_agent():
    """Support staff principal."""
    return Principal(id=7, role=UserRole.SUPPORT)


@pytest.fixture
def approved_business(owner):
    """Approved business with a rent fee and no location yet."""
    return BusinessApplication(
        id=uuid4(),
        owner_id=owner.id,
        name="Chikondi Grocery",
        justification_text="Fresh produce for the market",
        status=ApplicationStatus.APPROVED,
        contract_fee=Decimal("50.00"),
        rent_fee=Decimal("5000.00"),
    )


@pytest.fixture
def mock_dispatcher():
    """Notification dispatcher that records calls."""
    return AsyncMock()


@pytest.fixture
def mock_redis():
    """Mock Redis connection fixture."""
    return Mock()


@pytest.fixture
def test_settings(tmp_path):
    """Settings pointing at an in-memory SQLite database."""
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        upload_dir=str(tmp_path / "uploads"),
        contract_fee=Decimal("50"),
    )


@pytest_asyncio.fixture
async def db(test_settings):
    """Connected in-memory database with all tables created."""
    database = Database(test_settings)
    await database.connect()
    await database.create_tables()
    try:
        yield database
    finally:
        await database.disconnect()


@pytest_asyncio.fixture
async def session(db):
    """Session on the in-memory database."""
    async with db.session() as session:
        yield session
