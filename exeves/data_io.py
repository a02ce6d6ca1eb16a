"""
Data I/O for the ExEvE workflow.

- Reading the gridded evaporation product (NetCDF via xarray)
- Decoding the time axis from its ``units`` attribute
- Splitting the grid into per-cell series and the grid-cell table
- Writing the output tables (CSV via pandas)

Kept apart from the analysis modules so the input source can be swapped.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Tuple, Union

import numpy as np
import pandas as pd
import xarray as xr

from .config import ExEvEConfig, get_logger

_logger = get_logger(__name__)


# ============================================================================
# 输入错误 (Input Errors)
# ============================================================================

class MissingInputFile(FileNotFoundError):
    """The configured input file does not exist."""


class VariableNotFound(KeyError):
    """A variable or coordinate is missing from the input dataset."""

    def __str__(self):
        # KeyError quotes its argument; keep the message readable
        return str(self.args[0]) if self.args else ''


class UnparseableTimeUnits(ValueError):
    """The time axis ``units`` attribute cannot be decoded."""


# ============================================================================
# 网格单元 (Grid Cells)
# ============================================================================

@dataclass(frozen=True)
class CellSeries:
    """Daily record of one grid cell, missing values already dropped."""
    grid_id: int
    lon: float
    lat: float
    dates: pd.DatetimeIndex
    values: np.ndarray

    def __len__(self):
        return len(self.values)


_TIME_UNITS = re.compile(
    r"^\s*(?P<step>days?|hours?)\s+since\s+(?P<epoch>.+?)\s*$",
    re.IGNORECASE,
)


def parse_time_axis(time_values: Iterable, units: str) -> pd.DatetimeIndex:
    """
    Convert numeric time offsets into daily dates.

    Parameters
    ----------
    time_values : array-like
        Offsets from the epoch.
    units : str
        CF-style units such as ``"days since 1980-01-01"`` or
        ``"hours since 1980-01-01 00:00:00"``.

    Returns
    -------
    dates : pd.DatetimeIndex
        Dates normalized to midnight.

    Examples
    --------
    >>> parse_time_axis([0, 24, 48], 'hours since 2000-01-01')[-1]
    Timestamp('2000-01-03 00:00:00')
    """
    if not isinstance(units, str):
        raise UnparseableTimeUnits(f"Time units missing or not a string: {units!r}")
    match = _TIME_UNITS.match(units)
    if match is None:
        raise UnparseableTimeUnits(
            f"Cannot parse time units {units!r}; expected "
            "'days since <date>' or 'hours since <date>'"
        )
    try:
        epoch = pd.Timestamp(match.group('epoch'))
    except (ValueError, TypeError) as exc:
        raise UnparseableTimeUnits(
            f"Cannot parse epoch in time units {units!r}: {exc}"
        ) from exc
    if epoch is pd.NaT:
        raise UnparseableTimeUnits(f"Empty epoch in time units {units!r}")
    if epoch.tz is not None:
        # "... UTC" or "... +0:00" epochs; dates are kept as naive UTC
        epoch = epoch.tz_convert(None)

    offsets = np.asarray(time_values, dtype=float)
    step = 'h' if match.group('step').lower().startswith('hour') else 'D'
    dates = epoch + pd.to_timedelta(offsets, unit=step)
    return pd.DatetimeIndex(dates).normalize()


def _decode_time(ds: xr.Dataset, time_name: str) -> pd.DatetimeIndex:
    time = ds[time_name]
    if np.issubdtype(time.dtype, np.datetime64):
        dates = pd.DatetimeIndex(time.values)
        if dates.tz is not None:
            dates = dates.tz_convert(None)
        return dates.normalize()
    return parse_time_axis(time.values, time.attrs.get('units'))


def open_input(config: ExEvEConfig) -> xr.Dataset:
    """Open the configured NetCDF file without decoding its time axis."""
    path = config.input_path
    if not path.exists():
        raise MissingInputFile(
            f"Cannot find input file '{path}' (working directory: {Path.cwd()})"
        )
    _logger.info(f"Reading: {path}")
    return xr.open_dataset(path, decode_times=False)


def read_grid(
    ds: xr.Dataset,
    config: ExEvEConfig
) -> Tuple[pd.DataFrame, List[CellSeries]]:
    """
    Split a gridded dataset into per-cell series.

    Cells whose whole record is missing are dropped. Grid ids start at 1 and
    follow ascending longitude, then ascending latitude, independent of the
    order of the coordinate axes in the file.

    Parameters
    ----------
    ds : xr.Dataset
        Dataset with the configured variable and lon/lat/time coordinates.
    config : ExEvEConfig

    Returns
    -------
    grid : pd.DataFrame
        Columns ``grid_id, lon, lat``.
    cells : list of CellSeries
    """
    for name in (config.variable, config.lon_name,
                 config.lat_name, config.time_name):
        if name not in ds.variables:
            raise VariableNotFound(
                f"Variable '{name}' not found in dataset "
                f"(available: {sorted(map(str, ds.variables))})"
            )

    dates = _decode_time(ds, config.time_name)
    da = ds[config.variable]
    missing_dims = {config.lon_name, config.lat_name, config.time_name} - set(da.dims)
    if missing_dims:
        raise VariableNotFound(
            f"Variable '{config.variable}' lacks dimensions {sorted(missing_dims)}"
        )
    values = np.asarray(
        da.transpose(config.lon_name, config.lat_name, config.time_name).values,
        dtype=float,
    )
    lons = np.asarray(ds[config.lon_name].values, dtype=float)
    lats = np.asarray(ds[config.lat_name].values, dtype=float)

    _logger.info(
        f"Dimensions: lon = {len(lons)}, lat = {len(lats)}, time = {len(dates)}"
    )

    if config.clip_to_period:
        in_period = ((dates >= pd.Timestamp(config.period_start))
                     & (dates <= pd.Timestamp(config.period_end)))
        dates = dates[in_period]
        values = values[:, :, np.asarray(in_period)]

    cells = []
    n_dropped = 0
    # ids follow ascending (lon, lat) whatever the axis direction in the file
    for i in np.argsort(lons, kind='stable'):
        lon = lons[i]
        for j in np.argsort(lats, kind='stable'):
            lat = lats[j]
            series = values[i, j, :]
            valid = ~np.isnan(series)
            if not valid.any():
                n_dropped += 1
                continue
            cells.append(CellSeries(
                grid_id=len(cells) + 1,
                lon=float(lon),
                lat=float(lat),
                dates=dates[valid],
                values=series[valid],
            ))

    if n_dropped:
        _logger.debug(f"Dropped {n_dropped} all-missing grid cells")

    grid = grid_table(cells)
    _logger.info(f"Number of grid cells: {len(grid)}")
    _logger.info(f"Total observations: {sum(len(c) for c in cells)}")
    return grid, cells


def grid_table(cells: Iterable[CellSeries]) -> pd.DataFrame:
    """Coordinate table of the given cells."""
    return pd.DataFrame(
        [(c.grid_id, c.lon, c.lat) for c in cells],
        columns=['grid_id', 'lon', 'lat'],
    )


def load_cells(config: ExEvEConfig) -> Tuple[pd.DataFrame, List[CellSeries]]:
    """Open the configured file and split it into per-cell series."""
    ds = open_input(config)
    try:
        return read_grid(ds, config)
    finally:
        ds.close()


# ============================================================================
# 输出 (Output)
# ============================================================================

def output_paths(config: ExEvEConfig) -> Dict[str, Path]:
    """Paths of every table written by a run."""
    region = config.region
    data_dir = config.data_dir
    return {
        'grid': data_dir / f'grid_{region}.csv',
        'pentads': data_dir / f'pentads_std_{region}.csv',
        'thresholds': data_dir / f'thresholds_{region}.csv',
        'exeves': data_dir / f'exeves_std_{region}.csv',
        'events': data_dir / f'events_{region}.csv',
    }


def write_tables(
    tables: Dict[str, pd.DataFrame],
    paths: Dict[str, Union[str, Path]]
) -> None:
    """
    Write each named table to its path.

    Every table is first written to a ``.part`` file next to its target; the
    targets are only replaced once all of them were written. A failure on any
    table removes the staged files and leaves earlier output untouched.
    """
    missing = set(tables) - set(paths)
    if missing:
        raise KeyError(f"No output path for tables: {sorted(missing)}")

    staged = []
    try:
        for name, table in tables.items():
            path = Path(paths[name])
            path.parent.mkdir(parents=True, exist_ok=True)
            part = path.with_name(path.name + '.part')
            staged.append((name, part, path))
            table.to_csv(part, index=False)
    except Exception:
        for _, part, _ in staged:
            part.unlink(missing_ok=True)
        raise

    for name, part, path in staged:
        part.replace(path)
        _logger.info(f"Saved {name}: {path}")


def read_table(path: Union[str, Path], parse_dates: Tuple[str, ...] = ('date',)) -> pd.DataFrame:
    """Read a table written by :func:`write_tables`."""
    header = pd.read_csv(path, nrows=0).columns
    dates = [c for c in parse_dates if c in header]
    return pd.read_csv(path, parse_dates=dates)
