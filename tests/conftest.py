"""
Pytest configuration and shared fixtures

Fun fact: The name "conftest" comes from pytest's configuration testing
framework. Files named conftest.py are automatically discovered and their
fixtures are available to all tests in the same directory and subdirectories!
"""

import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

import pytest

from partshare.app import PartShare
from partshare.catalog.models import CatalogObject
from partshare.catalog.repository import CatalogRepository
from partshare.kernel.ledger import SQLiteLedger
from partshare.kernel.time import TestTimeProvider
from tests.helpers import add_bike_object, add_participants


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Provide a temporary directory that's cleaned up after test"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_db(temp_dir: Path) -> Path:
    """Provide a temporary database path (the file is created on first use)"""
    return temp_dir / "partshare.db"


@pytest.fixture
def ledger(temp_db: Path) -> SQLiteLedger:
    """Provide a fresh ledger for each test"""
    return SQLiteLedger(temp_db)


@pytest.fixture
def catalog(ledger: SQLiteLedger) -> CatalogRepository:
    """Provide a catalog repository on the fresh ledger"""
    return CatalogRepository(ledger)


@pytest.fixture
def test_time() -> TestTimeProvider:
    """
    Provide a controllable time provider for deterministic tests

    Default time: 2025-01-15 12:00:00 UTC (chosen because it's a well-known
    Wednesday in the middle of Q1 2025)
    """
    return TestTimeProvider(datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def roster(catalog: CatalogRepository, test_time: TestTimeProvider) -> list[int]:
    """
    Three participants: Alice, Bob and Chloe, in ascending id order

    Ascending ids matter - they are the tie-break of every fairness policy.
    """
    return add_participants(catalog, ["Alice", "Bob", "Chloe"], test_time.now())


@pytest.fixture
def bike(catalog: CatalogRepository) -> CatalogObject:
    """
    Bike object with part kinds wheel and frame, and two kit types:
    - "Wheel only": 1 wheel
    - "Full bike": 2 wheels + 1 frame
    """
    return add_bike_object(catalog)


@pytest.fixture
def part_share(temp_dir: Path, temp_db: Path, test_time: TestTimeProvider) -> PartShare:
    """
    Provide a PartShare façade with isolated settings file

    Fun fact: A façade hides a building's structure behind a single front -
    the same idea the Gang of Four borrowed in 1994!
    """
    return PartShare(temp_db, time_provider=test_time, settings_path=temp_dir / "settings.json")
