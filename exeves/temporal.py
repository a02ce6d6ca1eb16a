"""
Temporal patterns of the identified events.

Annual, monthly and seasonal statistics of one event definition, annual
duration quantiles, and the linear trend in annual event frequency.
"""

from typing import Dict

import numpy as np
import pandas as pd
from scipy import stats

from .aggregate import event_frequency
from .config import EventDefinition, ExEvEConfig


def _members(observations: pd.DataFrame, definition: EventDefinition) -> pd.DataFrame:
    members = observations[observations[definition.event_column].notna()]
    dates = pd.DatetimeIndex(members['date'])
    return members.assign(year=dates.year, month=dates.month)


def annual_statistics(observations: pd.DataFrame, definition: EventDefinition) -> pd.DataFrame:
    """
    Yearly event statistics.

    Returns
    -------
    annual : pd.DataFrame
        ``year, events_per_cell, total_event_days, mean_event_days,
        total_value``. ``events_per_cell`` averages over cells with events in
        that year; events spanning new year count in both years.
    """
    col = definition.event_column
    members = _members(observations, definition)
    per_cell = members.groupby(['year', 'grid_id']).agg(
        n_events=(col, 'nunique'),
        event_days=(col, 'size'),
        total_value=('value', 'sum'),
    )
    annual = per_cell.groupby(level='year').agg(
        events_per_cell=('n_events', 'mean'),
        total_event_days=('event_days', 'sum'),
        mean_event_days=('event_days', 'mean'),
        total_value=('total_value', 'sum'),
    )
    return annual.reset_index()


def monthly_statistics(observations: pd.DataFrame, definition: EventDefinition) -> pd.DataFrame:
    """Mean events per grid cell in each calendar month (1-12)."""
    col = definition.event_column
    members = _members(observations, definition)
    per_cell = members.groupby(['month', 'grid_id'])[col].nunique()
    return (
        per_cell.groupby(level='month').mean()
        .rename('events_per_cell')
        .reset_index()
    )


def seasonal_statistics(observations: pd.DataFrame, definition: EventDefinition) -> pd.DataFrame:
    """Mean and total events per (season, period)."""
    freq = event_frequency(observations, definition, by=['season', 'period'])
    return (
        freq.groupby(['season', 'period'], observed=True)['frequency']
        .agg(events_per_cell='mean', total_events='sum')
        .reset_index()
    )


def duration_by_year(observations: pd.DataFrame, definition: EventDefinition) -> pd.DataFrame:
    """Mean, median and inter-quartile range of event duration per year."""
    col = definition.event_column
    members = _members(observations, definition)
    days = members.groupby(['year', 'grid_id', col]).size()
    by_year = days.groupby(level='year')
    return pd.DataFrame({
        'mean_duration': by_year.mean(),
        'median_duration': by_year.median(),
        'q25': by_year.quantile(0.25),
        'q75': by_year.quantile(0.75),
    }).reset_index()


def frequency_trend(annual: pd.DataFrame) -> Dict[str, float]:
    """
    Least-squares trend of ``events_per_cell`` against ``year``.

    Returns
    -------
    trend : dict
        ``slope`` (events/cell/year), ``intercept``, ``p_value`` and
        ``r_squared``; all NaN with fewer than three years.
    """
    if len(annual) < 3:
        return {'slope': np.nan, 'intercept': np.nan,
                'p_value': np.nan, 'r_squared': np.nan}
    res = stats.linregress(annual['year'].to_numpy(dtype=float),
                           annual['events_per_cell'].to_numpy(dtype=float))
    return {
        'slope': float(res.slope),
        'intercept': float(res.intercept),
        'p_value': float(res.pvalue),
        'r_squared': float(res.rvalue ** 2),
    }


def period_increase(
    observations: pd.DataFrame,
    definition: EventDefinition,
    config: ExEvEConfig
) -> Dict[str, float]:
    """Mean events per cell in each period and their ratio (second / first)."""
    first, second = config.period_labels
    freq = event_frequency(observations, definition, by='period')
    means = freq.groupby('period', observed=True)['frequency'].mean()
    m1 = float(means.get(first, np.nan))
    m2 = float(means.get(second, np.nan))
    ratio = m2 / m1 if m1 > 0 else np.nan
    return {first: m1, second: m2, 'ratio': ratio}


def temporal_summary(
    observations: pd.DataFrame,
    definition: EventDefinition,
    config: ExEvEConfig
) -> pd.DataFrame:
    """Metric/Value table of the headline temporal results."""
    annual = annual_statistics(observations, definition)
    trend = frequency_trend(annual)
    periods = period_increase(observations, definition, config)
    first, second = config.period_labels
    mean_rate = annual['events_per_cell'].mean() if len(annual) else np.nan
    return pd.DataFrame({
        'Metric': ['Total years', 'Mean events/cell/year', 'Trend (events/cell/year)',
                   'Trend p-value', 'Period 1 mean', 'Period 2 mean', 'Change factor'],
        'Value': [
            len(annual),
            round(mean_rate, 2),
            round(trend['slope'], 4),
            trend['p_value'],
            round(periods[first], 2),
            round(periods[second], 2),
            round(periods['ratio'], 3),
        ],
    })
