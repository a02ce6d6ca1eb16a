"""
Pentad climatology and z-score standardization.

Following Markonis (2025), seasonality is removed by standardizing every
value within its (pentad, grid cell) group. Pentads are 5-day blocks of the
year (73 per year); from 1 March onward leap years are shifted back by one day
so that pentads line up across leap and non-leap years.
"""

import numpy as np
import pandas as pd

from .config import DAYS_PER_PENTAD
from .data_io import CellSeries


def pentad_index(dates) -> np.ndarray:
    """
    Pentad (1-73) of each date.

    Parameters
    ----------
    dates : array-like of datetime

    Returns
    -------
    pentads : np.ndarray of int

    Examples
    --------
    >>> pentad_index(pd.to_datetime(['2001-01-05', '2001-01-06', '2000-12-31']))
    array([ 1,  2, 73])
    """
    dates = pd.DatetimeIndex(dates)
    doy = np.asarray(dates.dayofyear)
    leap_adjust = (np.asarray(dates.is_leap_year) & (doy > 59)).astype(int)
    return np.ceil((doy - leap_adjust) / DAYS_PER_PENTAD).astype(int)


def pentad_statistics(values, dates) -> pd.DataFrame:
    """
    Sample mean and standard deviation of each pentad group.

    Missing values are ignored. A group whose values are all identical has
    ``sd = 0``; a group with a single value has an undefined (NaN) ``sd``.

    Returns
    -------
    stats : pd.DataFrame
        Indexed by pentad, columns ``mean, sd, n``.
    """
    frame = pd.DataFrame({
        'pentad': pentad_index(dates),
        'value': np.asarray(values, dtype=float),
    })
    stats = frame.groupby('pentad')['value'].agg(
        ['mean', 'std', 'count', 'min', 'max']
    )
    # pin exact zeros so rounding in the variance cannot leak through
    constant = (stats['count'] > 1) & (stats['max'] == stats['min'])
    stats.loc[constant, 'std'] = 0.0
    return stats.rename(columns={'std': 'sd', 'count': 'n'})[['mean', 'sd', 'n']]


def standardize_to_zscore(values, dates, stats: pd.DataFrame = None) -> np.ndarray:
    """
    Transform a daily series to z-scores over pentads.

    Parameters
    ----------
    values : array-like
        Daily values of one grid cell.
    dates : array-like of datetime
        Dates of ``values``.
    stats : pd.DataFrame, optional
        Output of :func:`pentad_statistics`; computed when omitted.

    Returns
    -------
    z_scores : np.ndarray
        ``(value - mean) / sd`` of the matching pentad; NaN where the pentad
        standard deviation is zero or undefined.

    Examples
    --------
    >>> dates = pd.date_range('2000-01-01', periods=3650, freq='D')
    >>> z = standardize_to_zscore(np.random.gamma(2, 1, 3650), dates)
    """
    values = np.asarray(values, dtype=float)
    if stats is None:
        stats = pentad_statistics(values, dates)
    pentads = pentad_index(dates)
    mean = stats['mean'].reindex(pentads).to_numpy()
    sd = stats['sd'].reindex(pentads).to_numpy()
    sd = np.where(sd > 0, sd, np.nan)
    return (values - mean) / sd


def pentad_climatology(cell: CellSeries, stats: pd.DataFrame = None) -> pd.DataFrame:
    """PentadStat rows (grid_id, pentad, mean, sd, n) of one cell."""
    if stats is None:
        stats = pentad_statistics(cell.values, cell.dates)
    stats = stats.reset_index()
    stats.insert(0, 'grid_id', cell.grid_id)
    return stats
