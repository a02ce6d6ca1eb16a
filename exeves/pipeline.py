"""
End-to-end ExEvE identification.

    per-cell series -> pentad climatology -> z-scores -> thresholds
        -> segmentation (one pass per definition) -> annotation -> events

Every cell is handled by :func:`process_cell`, a pure function of the cell
and the configuration. Batches of cells (see ``chunking``) are combined by
concatenation, so results do not depend on how the cells were batched.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from .aggregate import event_tables, events_per_cell
from .annotate import annotate
from .chunking import run_chunks, schedule
from .climatology import pentad_climatology, pentad_statistics, standardize_to_zscore
from .config import ExEvEConfig, get_logger
from .data_io import CellSeries, load_cells, output_paths, read_table, write_tables
from .segmentation import segment_cell
from .thresholds import ThresholdSet, estimate_thresholds, threshold_table

_logger = get_logger(__name__)


# ============================================================================
# 单格点处理 (Per-cell Processing)
# ============================================================================

@dataclass
class CellResult:
    """Everything derived from one grid cell."""
    grid_id: int
    observations: pd.DataFrame
    climatology: pd.DataFrame
    thresholds: ThresholdSet


def observation_columns(config: ExEvEConfig) -> List[str]:
    """Column order of the annotated observation table."""
    columns = ['grid_id', 'date', 'season', 'period', 'value', 'std_value']
    for d in config.definitions:
        columns.append(d.event_column)
        if d.requires_containment and d.extreme_column:
            columns.append(d.extreme_column)
    return columns


def process_cell(cell: CellSeries, config: ExEvEConfig) -> CellResult:
    """
    Standardize, threshold and segment one grid cell.

    Parameters
    ----------
    cell : CellSeries
    config : ExEvEConfig

    Returns
    -------
    result : CellResult
        ``observations`` holds ``grid_id, date, value, std_value`` and one
        nullable id column per definition (plus its extreme-run column for
        containment definitions). Annotation is left to the batch.
    """
    stats = pentad_statistics(cell.values, cell.dates)
    std_values = standardize_to_zscore(cell.values, cell.dates, stats)
    thresholds = estimate_thresholds(std_values, config)

    frame = pd.DataFrame({
        'grid_id': np.full(len(cell), cell.grid_id, dtype=np.int64),
        'date': cell.dates,
        'value': cell.values,
        'std_value': std_values,
    })
    for definition in config.definitions:
        result = segment_cell(std_values, thresholds, definition)
        frame[definition.event_column] = result.event_id
        if result.extreme_id is not None and definition.extreme_column:
            frame[definition.extreme_column] = result.extreme_id

    climatology = pentad_climatology(cell, stats)
    return CellResult(cell.grid_id, frame, climatology, thresholds)


# ============================================================================
# 批处理 (Batch Processing)
# ============================================================================

@dataclass
class RunResult:
    """Output tables of a run."""
    grid: pd.DataFrame
    climatology: pd.DataFrame
    thresholds: pd.DataFrame
    observations: pd.DataFrame
    events: pd.DataFrame

    def tables(self) -> Dict[str, pd.DataFrame]:
        return {
            'grid': self.grid,
            'pentads': self.climatology,
            'thresholds': self.thresholds,
            'exeves': self.observations,
            'events': self.events,
        }


def process_chunk(cells: Sequence[CellSeries], config: ExEvEConfig) -> RunResult:
    """Process a batch of cells into annotated tables and their events."""
    results = [process_cell(cell, config) for cell in cells]
    columns = observation_columns(config)

    if results:
        observations = pd.concat(
            [r.observations for r in results], ignore_index=True
        )
        climatology = pd.concat(
            [r.climatology for r in results], ignore_index=True
        )
    else:
        observations = pd.DataFrame(columns=[c for c in columns
                                             if c not in ('season', 'period')])
        climatology = pd.DataFrame(columns=['grid_id', 'pentad', 'mean', 'sd', 'n'])

    observations = annotate(observations, config)[columns]
    thresholds = threshold_table({r.grid_id: r.thresholds for r in results})
    events = event_tables(observations, config.definitions)

    grid = pd.DataFrame({'grid_id': [c.grid_id for c in cells],
                         'lon': [c.lon for c in cells],
                         'lat': [c.lat for c in cells]})
    return RunResult(grid, climatology, thresholds, observations, events)


def combine(parts: Sequence[RunResult]) -> RunResult:
    """Concatenate batch results, ordered by grid id."""
    def stack(name: str, keys: List[str]) -> pd.DataFrame:
        frames = [getattr(p, name) for p in parts]
        table = pd.concat(frames, ignore_index=True)
        return table.sort_values(keys, kind='stable').reset_index(drop=True)

    return RunResult(
        grid=stack('grid', ['grid_id']),
        climatology=stack('climatology', ['grid_id', 'pentad']),
        thresholds=stack('thresholds', ['grid_id']),
        observations=stack('observations', ['grid_id', 'date']),
        events=stack('events', ['definition', 'grid_id', 'event_id']),
    )


def identify_events(cells: Sequence[CellSeries], config: ExEvEConfig) -> RunResult:
    """
    Run the whole identification over a set of cells.

    Cells are batched by :func:`chunking.schedule`; batches run sequentially
    or in a process pool depending on ``config.n_workers``.
    """
    by_id = {c.grid_id: c for c in cells}
    chunks = schedule(
        {gid: len(c) for gid, c in by_id.items()},
        max_rows=config.chunk_rows,
        trigger_rows=config.chunk_trigger_rows,
    )
    batches = [[by_id[gid] for gid in chunk.grid_ids] for chunk in chunks]
    if not batches:
        batches = [[]]
    parts = run_chunks(process_chunk, batches, config, n_workers=config.n_workers)
    return combine(parts)


def log_summary(result: RunResult, config: ExEvEConfig) -> None:
    """Log grid, date range and mean event counts per definition."""
    obs = result.observations
    _logger.info("=== SUMMARY ===")
    _logger.info(f"Total grid cells: {obs['grid_id'].nunique()}")
    if len(obs):
        _logger.info(f"Date range: {obs['date'].min().date()} to {obs['date'].max().date()}")
    for definition in config.definitions:
        counts = events_per_cell(obs, definition)
        mean = counts.mean() if len(counts) else 0.0
        _logger.info(f"  {definition.name}: {mean:.2f} events per grid cell (mean)")


def run_pipeline(config: ExEvEConfig, write: bool = True) -> RunResult:
    """
    Read the input, identify events and write every output table.

    Nothing is written unless the whole computation succeeds.

    Parameters
    ----------
    config : ExEvEConfig
    write : bool, default=True
        If False, only return the tables.
    """
    _logger.info(f"Processing {config.region} data...")
    _logger.info(f"Period: {config.period_start} to {config.period_end}")
    grid, cells = load_cells(config)
    result = identify_events(cells, config)
    # coordinates of the ingested grid, not of the processed batches
    result.grid = grid

    if write:
        config.ensure_output_dirs()
        write_tables(result.tables(), output_paths(config))
    log_summary(result, config)
    return result


def load_result(config: ExEvEConfig) -> Optional[RunResult]:
    """Read the tables of a previous run back in, or None if absent."""
    paths = output_paths(config)
    if not all(p.exists() for p in paths.values()):
        return None
    tables = {
        'grid': read_table(paths['grid'], parse_dates=()),
        'pentads': read_table(paths['pentads'], parse_dates=()),
        'thresholds': read_table(paths['thresholds'], parse_dates=()),
        'exeves': read_table(paths['exeves']),
        'events': read_table(paths['events'], parse_dates=('start_date', 'end_date')),
    }
    obs = tables['exeves']
    id_columns = [c for c in obs.columns if c.endswith('_id') and c != 'grid_id']
    for col in id_columns:
        obs[col] = obs[col].astype('Int64')
    obs['season'] = pd.Categorical(obs['season'], categories=list(config.season_labels), ordered=True)
    obs['period'] = pd.Categorical(obs['period'], categories=list(config.period_labels), ordered=True)
    return RunResult(
        grid=tables['grid'],
        climatology=tables['pentads'],
        thresholds=tables['thresholds'],
        observations=obs,
        events=tables['events'],
    )
