"""
Health check HTTP server for liveness and readiness probes.

Probes open their own short-lived read connection instead of going through
the ledger, so a stuck allocation transaction cannot hang a probe for longer
than the connect timeout.

Usage:
    python -m partshare.health_server
"""

import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any

from flask import Flask, Response, jsonify

from partshare import __version__
from partshare.kernel.logging import get_logger

logger = get_logger(__name__)

SERVICE_NAME = "partshare"
PROBE_TIMEOUT_SECONDS = 1.0
COUNTED_TABLES = ("participants", "distributions", "assignments")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}

app = Flask(__name__)

# Set by initialize_health_server()
_db_path: Path | None = None
_app_instance: Any = None  # PartShare, for the ledger summary


def initialize_health_server(db_path: str | Path, app_instance: Any = None) -> None:
    """
    Point the probes at a database.

    Args:
        db_path: SQLite database of the ledger
        app_instance: Optional PartShare instance; enables the ledger summary
    """
    global _db_path, _app_instance
    _db_path = Path(db_path)
    _app_instance = app_instance
    logger.info("Health server initialized", db_path=str(_db_path))


def _probe_connection(db_path: Path) -> "closing[sqlite3.Connection]":
    return closing(sqlite3.connect(str(db_path), timeout=PROBE_TIMEOUT_SECONDS))


def _not_ready(reason: str, **details: Any) -> tuple[Response, int]:
    logger.error("Readiness check failed", reason=reason, **details)
    return jsonify({"status": "not_ready", "reason": reason, **details}), 503


@app.after_request
def add_security_headers(response: Response) -> Response:
    """Attach security headers to every response"""
    response.headers.update(SECURITY_HEADERS)
    return response


@app.route("/health/live", methods=["GET"])
def liveness() -> tuple[Response, int]:
    """The process is up; never touches the database."""
    return jsonify({"status": "alive", "service": SERVICE_NAME}), 200


@app.route("/health/ready", methods=["GET"])
def readiness() -> tuple[Response, int]:
    """
    Ready when the database file exists and the assignment ledger answers.

    Returns 503 with a machine-readable reason otherwise.
    """
    if _db_path is None:
        return _not_ready("database_path_not_initialized")
    if not _db_path.exists():
        return _not_ready("database_file_not_found", db_path=str(_db_path))

    try:
        with _probe_connection(_db_path) as conn:
            assignment_count = conn.execute("SELECT COUNT(*) FROM assignments").fetchone()[0]
    except sqlite3.OperationalError as e:
        return _not_ready("database_operational_error", error=str(e))
    except Exception as e:
        return _not_ready("unexpected_error", error=str(e))

    return (
        jsonify({"status": "ready", "database": "accessible", "assignment_count": assignment_count}),
        200,
    )


def _database_summary(db_path: Path) -> dict[str, Any]:
    with _probe_connection(db_path) as conn:
        counts = {
            table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
            for table in COUNTED_TABLES
        }
        page_count = conn.execute("PRAGMA page_count").fetchone()[0]
        page_size = conn.execute("PRAGMA page_size").fetchone()[0]
    return {
        "status": "healthy",
        "path": str(db_path),
        "participant_count": counts["participants"],
        "distribution_count": counts["distributions"],
        "assignment_count": counts["assignments"],
        "size_mb": round(page_count * page_size / (1024 * 1024), 2),
    }


def _ledger_summary(instance: Any) -> dict[str, Any]:
    statistics = instance.statistics()
    return {
        "total_units": statistics.total_units,
        "total_distributions": statistics.total_distributions,
        "gini_coefficient": round(statistics.gini_coefficient, 3),
        "equity_index": statistics.equity_index,
    }


@app.route("/health", methods=["GET"])
def detailed_health() -> tuple[Response, int]:
    """
    Database row counts and size, plus fairness figures when a PartShare
    instance was registered. A failing summary is reported, not fatal.
    """
    health: dict[str, Any] = {"status": "healthy", "service": SERVICE_NAME, "version": __version__}

    if _db_path is None or not _db_path.exists():
        health["database"] = {"status": "not_initialized"}
        health["status"] = "degraded"
    else:
        try:
            health["database"] = _database_summary(_db_path)
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            health["database"] = {"status": "unhealthy", "error": str(e)}
            health["status"] = "degraded"

    if _app_instance is not None:
        try:
            health["ledger"] = _ledger_summary(_app_instance)
        except Exception as e:
            logger.warning("Could not compute ledger summary", error=str(e))
            health["ledger"] = {"status": "unavailable", "error": str(e)}

    return jsonify(health), 200 if health["status"] == "healthy" else 503


def run_health_server(port: int = 8080, debug: bool = False) -> None:
    logger.info("Starting health check server", port=port)
    app.run(host="0.0.0.0", port=port, debug=debug)


if __name__ == "__main__":
    initialize_health_server(".partshare.db")
    run_health_server(port=8080, debug=True)
