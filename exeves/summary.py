"""
Statistical properties of the identified events.

Compares the event definitions with each other and summarizes one definition
by period, season and grid cell. All functions read the annotated
observation table (and the grid table) and never modify them.
"""

from typing import Iterable

import numpy as np
import pandas as pd

from .aggregate import event_frequency, event_table, events_per_cell
from .config import EventDefinition, ExEvEConfig


def compare_definitions(
    observations: pd.DataFrame,
    definitions: Iterable[EventDefinition]
) -> pd.DataFrame:
    """
    Event properties of every definition side by side.

    Returns
    -------
    comparison : pd.DataFrame
        One row per definition with ``frequency`` (mean events per grid cell
        having events), ``duration`` (mean days per event), ``max_duration``,
        ``severity`` (mean sum of values per event) and ``intensity`` (mean
        value per event day).
    """
    definitions = list(definitions)
    rows = []
    for d in definitions:
        events = event_table(observations, d)
        per_cell = events_per_cell(observations, d)
        has_events = len(events) > 0
        rows.append({
            'definition': d.name,
            'frequency': round(per_cell.mean(), 1) if has_events else 0.0,
            'duration': round(events['duration'].mean(), 1) if has_events else np.nan,
            'max_duration': int(events['duration'].max()) if has_events else 0,
            'severity': round(events['severity'].mean(), 1) if has_events else np.nan,
            'intensity': round(events['intensity'].mean(), 2) if has_events else np.nan,
        })
    comparison = pd.DataFrame(rows)
    comparison['definition'] = pd.Categorical(
        comparison['definition'],
        categories=[d.name for d in definitions],
        ordered=True,
    )
    return comparison


def period_summary(observations: pd.DataFrame, definition: EventDefinition) -> pd.DataFrame:
    """
    Mean events per grid cell and mean event duration in each period.

    Durations count only the days of an event inside the period.
    """
    col = definition.event_column
    freq = event_frequency(observations, definition, by='period')
    mean_events = freq.groupby('period', observed=True)['frequency'].mean()

    members = observations[observations[col].notna()]
    days = members.groupby(['grid_id', col, 'period'], observed=True).size()
    mean_duration = days.groupby(level='period', observed=True).mean()

    return pd.DataFrame({
        'mean_events': mean_events,
        'mean_duration': mean_duration,
    }).reset_index()


def seasonal_distribution(observations: pd.DataFrame, definition: EventDefinition) -> pd.DataFrame:
    """Events per season summed over grid cells, with percentage shares."""
    freq = event_frequency(observations, definition, by='season')
    seasonal = (
        freq.groupby('season', observed=True)['frequency'].sum()
        .rename('n_events')
        .reset_index()
    )
    total = seasonal['n_events'].sum()
    seasonal['percentage'] = (
        (100 * seasonal['n_events'] / total).round(1) if total else 0.0
    )
    return seasonal


def spatial_summary(
    observations: pd.DataFrame,
    grid: pd.DataFrame,
    definition: EventDefinition
) -> pd.DataFrame:
    """
    Per-cell event statistics on the coordinate grid.

    Returns
    -------
    spatial : pd.DataFrame
        ``grid_id, lon, lat, event_frequency, mean_duration, mean_severity,
        mean_intensity``; cells without events have frequency 0 and NaN
        statistics.
    """
    events = event_table(observations, definition)
    per_cell = events.groupby('grid_id').agg(
        event_frequency=('event_id', 'size'),
        mean_duration=('duration', 'mean'),
        mean_severity=('severity', 'mean'),
        mean_intensity=('intensity', 'mean'),
    ).reset_index()
    spatial = grid.merge(per_cell, on='grid_id', how='left')
    spatial['event_frequency'] = spatial['event_frequency'].fillna(0).astype(int)
    return spatial


def period_change(
    observations: pd.DataFrame,
    grid: pd.DataFrame,
    definition: EventDefinition,
    config: ExEvEConfig
) -> pd.DataFrame:
    """
    Per-cell change in event counts between the two periods.

    ``change`` is second minus first period; ``ratio`` is second / first and
    NaN where the first period has no events.
    """
    first, second = config.period_labels
    freq = event_frequency(observations, definition, by='period')
    wide = freq.pivot(index='grid_id', columns='period', values='frequency')
    counts = pd.DataFrame({
        'grid_id': wide.index,
        'events_period1': wide[first].to_numpy() if first in wide else 0,
        'events_period2': wide[second].to_numpy() if second in wide else 0,
    })
    change = grid.merge(counts, on='grid_id', how='left')
    for col in ('events_period1', 'events_period2'):
        change[col] = change[col].fillna(0).astype(int)
    change['change'] = change['events_period2'] - change['events_period1']
    p1 = change['events_period1'].where(change['events_period1'] > 0)
    change['ratio'] = change['events_period2'] / p1
    return change


def longest_events(events: pd.DataFrame, definition: EventDefinition, n: int = 5) -> pd.DataFrame:
    """The ``n`` longest events of one definition from an event table."""
    subset = events[events['definition'] == definition.name]
    return (
        subset.sort_values(['duration', 'grid_id', 'event_id'],
                           ascending=[False, True, True], kind='stable')
        .head(n)
        .reset_index(drop=True)
    )
