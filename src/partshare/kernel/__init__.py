"""
Kernel - Core infrastructure

The kernel provides the ledger store, configuration, error hierarchy and
observability plumbing that the catalog and allocation modules build upon.
"""

from partshare.kernel.errors import (
    ConfigurationError,
    LedgerError,
    NotFoundError,
    PartShareError,
    PreconditionViolation,
)
from partshare.kernel.ledger import LedgerSession, SQLiteLedger
from partshare.kernel.settings import AllocationSettings, SettingsStore
from partshare.kernel.time import RealTimeProvider, TestTimeProvider, TimeProvider

__all__ = [
    # Storage
    "SQLiteLedger",
    "LedgerSession",
    # Configuration
    "AllocationSettings",
    "SettingsStore",
    # Time
    "TimeProvider",
    "RealTimeProvider",
    "TestTimeProvider",
    # Errors
    "PartShareError",
    "LedgerError",
    "ConfigurationError",
    "PreconditionViolation",
    "NotFoundError",
]
