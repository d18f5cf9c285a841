"""
ChromaSift Reliability & Cancellation
Error types and cooperative cancellation for long-running passes.
"""
import threading
import time
from typing import Optional

from loguru import logger


class ChromaSiftError(Exception):
    """Base class for ChromaSift errors."""
    pass


class ImageValidationError(ChromaSiftError, ValueError):
    """Raised when an input raster is missing, empty or malformed."""
    pass


class OperationCancelledError(ChromaSiftError):
    """Raised when a pass observes a cancelled token."""
    pass


class OperationTimeoutError(OperationCancelledError):
    """Raised when a pass overruns the deadline of its token."""
    pass


class PresetParseError(ChromaSiftError, ValueError):
    """Raised when serialized range-set or palette data cannot be decoded."""
    pass


class CancellationToken:
    """
    Cooperative cancellation flag with an optional deadline.

    Workers call ``raise_if_cancelled()`` between row batches and between
    k-means iterations. The flag is never inspected mid-pixel.
    """

    def __init__(self, timeout_ms: Optional[float] = None):
        self._event = threading.Event()
        self.timeout_ms = timeout_ms if timeout_ms else None
        self._deadline = (
            time.monotonic() + self.timeout_ms / 1000.0 if self.timeout_ms else None
        )

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.expired

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def raise_if_cancelled(self, operation: str = "operation") -> None:
        """Raise if cancellation was requested or the deadline passed."""
        if self._event.is_set():
            raise OperationCancelledError(f"{operation} cancelled")
        if self.expired:
            logger.error(f"Timeout in {operation} after {self.timeout_ms}ms")
            raise OperationTimeoutError(f"{operation} timed out after {self.timeout_ms}ms")


def check_cancelled(token: Optional[CancellationToken], operation: str) -> None:
    """Raise if ``token`` is set; tolerate a missing token."""
    if token is not None:
        token.raise_if_cancelled(operation)
