"""
Batching of grid cells to bound peak memory.

No state crosses grid-cell boundaries, so batches can be cut anywhere in the
cell-id space without changing the results; chunking is purely a memory
concern.
"""

from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, List, Mapping, Sequence, Tuple, TypeVar, Union

from .config import get_logger

_logger = get_logger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class ChunkInfo:
    """One batch of grid cells."""
    index: int
    grid_ids: Tuple[int, ...]
    n_rows: int

    @property
    def n_cells(self) -> int:
        return len(self.grid_ids)

    def __str__(self):
        return (f"chunk {self.index}: grids {self.grid_ids[0]}-{self.grid_ids[-1]} "
                f"({self.n_cells} cells, {self.n_rows} rows)")


def plan_chunks(
    row_counts: Union[Mapping[int, int], Iterable[Tuple[int, int]]],
    max_rows: int
) -> List[ChunkInfo]:
    """
    Split grid cells into contiguous batches of at most ``max_rows`` rows.

    Cells are taken in grid-id order and packed greedily. A cell larger than
    ``max_rows`` on its own forms a single-cell batch.

    Parameters
    ----------
    row_counts : mapping or iterable of (grid_id, n_rows)
        Number of (cell x date) rows of each grid cell.
    max_rows : int
        Row ceiling per batch.

    Returns
    -------
    chunks : list of ChunkInfo

    Examples
    --------
    >>> [c.grid_ids for c in plan_chunks({1: 4, 2: 4, 3: 4}, max_rows=8)]
    [(1, 2), (3,)]
    """
    if max_rows < 1:
        raise ValueError(f"max_rows must be >= 1, got {max_rows}")
    items = row_counts.items() if isinstance(row_counts, Mapping) else row_counts
    items = sorted(items)

    chunks: List[ChunkInfo] = []
    batch: List[int] = []
    batch_rows = 0
    for grid_id, n_rows in items:
        if batch and batch_rows + n_rows > max_rows:
            chunks.append(ChunkInfo(len(chunks), tuple(batch), batch_rows))
            batch, batch_rows = [], 0
        batch.append(grid_id)
        batch_rows += n_rows
    if batch:
        chunks.append(ChunkInfo(len(chunks), tuple(batch), batch_rows))
    return chunks


def schedule(
    row_counts: Mapping[int, int],
    max_rows: int,
    trigger_rows: int
) -> List[ChunkInfo]:
    """
    Plan the batches of a run.

    Everything runs as one batch unless the total row count exceeds
    ``trigger_rows``.
    """
    n_obs = sum(row_counts.values())
    if n_obs <= trigger_rows:
        return plan_chunks(row_counts, max(n_obs, 1))
    chunks = plan_chunks(row_counts, max_rows)
    _logger.info(
        f"Large dataset detected ({n_obs} rows). Processing "
        f"{len(row_counts)} grids in {len(chunks)} chunks"
    )
    return chunks


def run_chunks(
    worker: Callable[..., T],
    batches: Sequence,
    *args,
    n_workers: int = 1
) -> List[T]:
    """
    Apply ``worker(batch, *args)`` to every batch.

    With ``n_workers > 1`` batches run in a process pool; ``worker`` and its
    arguments must then be picklable. Results come back in batch order either
    way. Any exception aborts the run.
    """
    if n_workers <= 1 or len(batches) <= 1:
        return [worker(batch, *args) for batch in batches]

    _logger.info(f"Processing {len(batches)} chunks with {n_workers} workers")
    with ProcessPoolExecutor(max_workers=n_workers) as pool:
        futures = [pool.submit(worker, batch, *args) for batch in batches]
        return [f.result() for f in futures]
