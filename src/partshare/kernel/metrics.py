"""
Prometheus metrics collection for PartShare.

Provides observability into allocation runs, ledger writes, and failures.
"""

import time
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from prometheus_client import Counter, Histogram, start_http_server

# ============================================================================
# Allocation Metrics
# ============================================================================

distributions_created_total = Counter(
    "partshare_distributions_created_total",
    "Total number of distributions created and allocated",
    ["policy"],
)

units_allocated_total = Counter(
    "partshare_units_allocated_total",
    "Total number of units assigned to participants",
    ["policy"],
)

precondition_failures_total = Counter(
    "partshare_precondition_failures_total",
    "Total number of allocation requests rejected before any write",
    ["reason"],
)

allocation_duration_seconds = Histogram(
    "partshare_allocation_duration_seconds",
    "Duration of a complete allocation run in seconds",
    ["policy"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

plan_size_units = Histogram(
    "partshare_plan_size_units",
    "Number of units in the pool of an allocation run",
    buckets=(0, 1, 5, 10, 25, 50, 100, 250, 500, 1000),
)

# ============================================================================
# Ledger Metrics
# ============================================================================

ledger_upserts_total = Counter(
    "partshare_ledger_upserts_total",
    "Total number of assignment upserts written to the ledger",
)

operation_duration_seconds = Histogram(
    "partshare_operation_duration_seconds",
    "Duration of façade operations in seconds",
    ["operation"],
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

operations_processed_total = Counter(
    "partshare_operations_processed_total",
    "Total number of façade operations processed",
    ["operation", "status"],  # status: success, failure
)

# ============================================================================
# Helper Functions
# ============================================================================

P = ParamSpec("P")
R = TypeVar("R")


def track_operation_duration(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator to track operation duration and outcome.

    Args:
        operation: Name of the operation being processed

    Returns:
        Decorated function that tracks duration
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start = time.perf_counter()
            status = "success"
            try:
                return func(*args, **kwargs)
            except Exception:
                status = "failure"
                raise
            finally:
                duration = time.perf_counter() - start
                operation_duration_seconds.labels(operation=operation).observe(duration)
                operations_processed_total.labels(
                    operation=operation, status=status
                ).inc()

        return wrapper

    return decorator


def start_metrics_server(port: int = 9090) -> None:
    """
    Start Prometheus metrics HTTP server.

    Args:
        port: Port to listen on (default: 9090)
    """
    start_http_server(port)
