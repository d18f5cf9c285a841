"""
ChromaSift Row Batching
Splits a raster into horizontal bands and runs a pure function over them on
worker threads. Bands share no mutable state, results come back in row order.
"""
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, TypeVar

from chromasift.config import config
from chromasift.services.reliability import CancellationToken, check_cancelled

T = TypeVar("T")


def row_batches(height: int, batch_rows: Optional[int] = None) -> List[slice]:
    """
    Partition ``height`` rows into contiguous slices.

    Args:
        height: Number of rows in the raster
        batch_rows: Rows per batch, defaults to ``config.BATCH_ROWS``

    Returns:
        List of row slices covering ``[0, height)`` in order
    """
    step = max(1, int(batch_rows or config.BATCH_ROWS))
    return [slice(start, min(start + step, height)) for start in range(0, height, step)]


def run_row_batches(
    fn: Callable[[slice], T],
    height: int,
    cancel_token: Optional[CancellationToken] = None,
    operation: str = "row pass",
    workers: Optional[int] = None,
    batch_rows: Optional[int] = None,
) -> List[T]:
    """
    Apply ``fn`` to every row batch and collect the results in row order.

    The token is checked before each batch starts, so a cancelled pass stops
    at a batch boundary and raises ``OperationCancelledError``.
    """
    batches = row_batches(height, batch_rows)
    n_workers = max(1, int(workers or config.WORKER_THREADS))

    def guarded(rows: slice) -> T:
        check_cancelled(cancel_token, operation)
        return fn(rows)

    if n_workers == 1 or len(batches) == 1:
        return [guarded(rows) for rows in batches]

    with ThreadPoolExecutor(max_workers=n_workers) as executor:
        # map() preserves submission order and re-raises worker exceptions
        return list(executor.map(guarded, batches))
