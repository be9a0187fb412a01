"""
Timeout handling for allocation runs.

The engine itself is not cancellable; this module layers a caller-level
timeout around a run. Because a run executes inside a single ledger
transaction, a timeout rolls the whole run back.
"""

import signal
import threading
from contextlib import contextmanager
from typing import Any, Generator

from partshare.kernel.errors import PartShareError
from partshare.kernel.logging import get_logger

logger = get_logger(__name__)


class OperationTimeout(PartShareError):
    """Raised when an operation exceeds its timeout."""

    pass


@contextmanager
def timeout_context(seconds: int, operation_name: str = "operation") -> Generator[None, None, None]:
    """
    Context manager that raises OperationTimeout if operation exceeds time limit.

    Note: This uses SIGALRM, which is only available on Unix-like systems and
    only in the main thread. Elsewhere the body runs without a deadline.

    Args:
        seconds: Maximum seconds to allow for operation
        operation_name: Name of operation for logging

    Raises:
        OperationTimeout: If operation exceeds timeout

    Example:
        with timeout_context(30, "allocate"):
            engine.allocate(...)
    """
    if not hasattr(signal, "SIGALRM") or threading.current_thread() is not threading.main_thread():
        logger.debug("Timeout not enforced", operation=operation_name)
        yield
        return

    def _timeout_handler(signum: int, frame: Any) -> None:
        logger.error(
            "Operation exceeded timeout",
            operation=operation_name,
            timeout_seconds=seconds,
        )
        raise OperationTimeout(f"{operation_name} exceeded timeout of {seconds} seconds")

    old_handler = signal.signal(signal.SIGALRM, _timeout_handler)
    signal.alarm(seconds)

    try:
        yield
    finally:
        signal.alarm(0)
        signal.signal(signal.SIGALRM, old_handler)
