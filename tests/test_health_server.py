"""
Tests for health server

Tests Flask-based health check endpoints for liveness and readiness probes.
Validates security headers, database connectivity checks and the ledger summary.

Fun fact: The concept of "health checks" in distributed systems was pioneered by Amazon
in the early 2000s when building their highly available retail platform. Today, every
cloud-native system uses similar patterns!
"""

import sqlite3
from pathlib import Path

import pytest

from partshare import __version__, health_server
from partshare.app import PartShare
from partshare.health_server import app, initialize_health_server
from partshare.kernel.ledger import SQLiteLedger
from tests.helpers import add_bike_object, add_participants, type_id_by_name


@pytest.fixture(autouse=True)
def reset_server_state():
    """Global server state must not leak between tests"""
    yield
    health_server._db_path = None
    health_server._app_instance = None


@pytest.fixture
def health_db(tmp_path, test_time) -> Path:
    """Ledger database with three participants and one allocated distribution"""
    db_path = tmp_path / "health.db"
    ps = PartShare(db_path, time_provider=test_time, settings_path=tmp_path / "settings.json")
    ids = add_participants(ps.catalog, ["Alice", "Bob", "Chloe"], test_time.now())
    full_bike = type_id_by_name(add_bike_object(ps.catalog), "Full bike")
    ps.create_distribution("Probe", ids, [{"type_id": full_bike, "count": 1}], policy={"type": "less"})
    return db_path


@pytest.fixture
def client():
    """Flask test client"""
    app.config["TESTING"] = True
    with app.test_client() as client:
        yield client


@pytest.fixture
def initialized_server(health_db):
    """Health server initialized with the populated database"""
    initialize_health_server(health_db)


# =============================================================================
# Initialization Tests
# =============================================================================


def test_initialize_health_server_sets_db_path(health_db):
    """Test initialize_health_server sets database path"""
    initialize_health_server(health_db)

    assert health_server._db_path == health_db


def test_initialize_health_server_accepts_string_path(health_db):
    """Test initialize_health_server accepts string path"""
    initialize_health_server(str(health_db))

    assert health_server._db_path == health_db


def test_initialize_health_server_with_app_instance(health_db, tmp_path):
    """Test initialize_health_server stores the PartShare instance"""
    instance = PartShare(health_db, settings_path=tmp_path / "settings.json")
    initialize_health_server(health_db, app_instance=instance)

    assert health_server._app_instance is instance


# =============================================================================
# Security Headers Tests
# =============================================================================


@pytest.mark.parametrize("path", ["/health/live", "/health/ready", "/health"])
def test_endpoints_have_security_headers(client, initialized_server, path):
    """Test every endpoint returns security headers"""
    response = client.get(path)

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["X-XSS-Protection"] == "1; mode=block"
    assert response.headers["Strict-Transport-Security"] == "max-age=31536000; includeSubDomains"
    assert "default-src 'none'" in response.headers["Content-Security-Policy"]


# =============================================================================
# Liveness Endpoint Tests
# =============================================================================


def test_liveness_returns_json_status(client, initialized_server):
    """Test liveness endpoint returns 200 with status"""
    response = client.get("/health/live")

    assert response.status_code == 200
    data = response.get_json()
    assert data["status"] == "alive"
    assert data["service"] == "partshare"


def test_liveness_works_without_initialization(client):
    """Test liveness endpoint works even without initialization"""
    response = client.get("/health/live")

    assert response.status_code == 200
    assert response.get_json()["status"] == "alive"


# =============================================================================
# Readiness Endpoint Tests
# =============================================================================


def test_readiness_returns_assignment_count(client, initialized_server):
    """Test readiness reports the assignment rows of the ledger"""
    response = client.get("/health/ready")

    assert response.status_code == 200
    data = response.get_json()
    assert data["status"] == "ready"
    assert data["database"] == "accessible"
    # 1 full bike to 3 participants: one row each
    assert data["assignment_count"] == 3


def test_readiness_returns_503_when_not_initialized(client):
    """Test readiness endpoint returns 503 when not initialized"""
    response = client.get("/health/ready")

    assert response.status_code == 503
    data = response.get_json()
    assert data["status"] == "not_ready"
    assert data["reason"] == "database_path_not_initialized"


def test_readiness_returns_503_when_db_file_missing(client):
    """Test readiness endpoint returns 503 when database file doesn't exist"""
    initialize_health_server("/nonexistent/path/to/db.sqlite")

    response = client.get("/health/ready")

    assert response.status_code == 503
    data = response.get_json()
    assert data["reason"] == "database_file_not_found"
    assert "/nonexistent/path/to/db.sqlite" in data["db_path"]


def test_readiness_returns_503_on_database_error(client, tmp_path):
    """Test readiness endpoint returns 503 when the ledger table is missing"""
    bare_db = tmp_path / "bare.db"
    conn = sqlite3.connect(str(bare_db))
    conn.execute("CREATE TABLE unrelated (id INTEGER)")
    conn.commit()
    conn.close()
    initialize_health_server(bare_db)

    response = client.get("/health/ready")

    assert response.status_code == 503
    assert response.get_json()["reason"] == "database_operational_error"


def test_readiness_returns_503_on_unexpected_database_error(client, health_db, monkeypatch):
    """Test readiness endpoint returns 503 on unexpected database error"""
    initialize_health_server(health_db)

    def mock_connect(*args, **kwargs):
        raise RuntimeError("Unexpected database connection error")

    monkeypatch.setattr(health_server.sqlite3, "connect", mock_connect)

    response = client.get("/health/ready")

    assert response.status_code == 503
    data = response.get_json()
    assert data["reason"] == "unexpected_error"
    assert "error" in data


# =============================================================================
# Detailed Health Endpoint Tests
# =============================================================================


def test_detailed_health_includes_database_metrics(client, initialized_server):
    """Test detailed health endpoint reports row counts and size"""
    response = client.get("/health")

    assert response.status_code == 200
    data = response.get_json()
    assert data["status"] == "healthy"
    assert data["service"] == "partshare"
    assert data["version"] == __version__
    assert data["database"]["status"] == "healthy"
    assert data["database"]["participant_count"] == 3
    assert data["database"]["distribution_count"] == 1
    assert data["database"]["assignment_count"] == 3
    assert "size_mb" in data["database"]


def test_detailed_health_without_app_instance(client, initialized_server):
    """Test the ledger summary is omitted without a PartShare instance"""
    data = client.get("/health").get_json()

    assert "ledger" not in data


def test_detailed_health_returns_degraded_when_db_not_initialized(client):
    """Test detailed health endpoint returns degraded status when DB not initialized"""
    response = client.get("/health")

    assert response.status_code == 503
    data = response.get_json()
    assert data["status"] == "degraded"
    assert data["database"]["status"] == "not_initialized"


def test_detailed_health_returns_degraded_on_database_error(client, tmp_path):
    """Test detailed health endpoint reports an unreadable database"""
    bare_db = tmp_path / "bare.db"
    SQLiteLedger(bare_db)
    conn = sqlite3.connect(str(bare_db))
    conn.execute("DROP TABLE assignments")
    conn.commit()
    conn.close()
    initialize_health_server(bare_db)

    response = client.get("/health")

    assert response.status_code == 503
    data = response.get_json()
    assert data["status"] == "degraded"
    assert data["database"]["status"] == "unhealthy"
    assert "error" in data["database"]


def test_detailed_health_with_app_instance(client, health_db, tmp_path):
    """Test the ledger summary comes from PartShare statistics"""
    instance = PartShare(health_db, settings_path=tmp_path / "settings.json")
    initialize_health_server(health_db, app_instance=instance)

    response = client.get("/health")

    assert response.status_code == 200
    ledger = response.get_json()["ledger"]
    assert ledger["total_units"] == 3
    assert ledger["total_distributions"] == 1
    assert ledger["equity_index"] == 100.0


def test_detailed_health_with_failing_app_instance(client, health_db, tmp_path, monkeypatch):
    """Test a failing ledger summary is reported without failing the probe"""
    instance = PartShare(health_db, settings_path=tmp_path / "settings.json")

    def broken_statistics():
        raise RuntimeError("statistics unavailable")

    monkeypatch.setattr(instance, "statistics", broken_statistics)
    initialize_health_server(health_db, app_instance=instance)

    response = client.get("/health")

    assert response.status_code == 200
    assert response.get_json()["ledger"]["status"] == "unavailable"
