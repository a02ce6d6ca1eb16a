"""
Event statistics and roll-ups.

Every reduction here is a count, sum, min or max over the member days of an
event, so partial results from different batches can be merged in any order
(see :func:`merge_partials`).
"""

from typing import Iterable, List, Sequence, Union

import pandas as pd

from .config import EventDefinition

EVENT_COLUMNS = [
    'grid_id', 'definition', 'event_id', 'start_date', 'end_date',
    'duration', 'severity', 'intensity', 'peak',
]


def _members(observations: pd.DataFrame, definition: EventDefinition) -> pd.DataFrame:
    col = definition.event_column
    if col not in observations.columns:
        raise KeyError(
            f"Column '{col}' for definition {definition.name!r} not found"
        )
    return observations[observations[col].notna()]


def event_table(observations: pd.DataFrame, definition: EventDefinition) -> pd.DataFrame:
    """
    One row per event of one definition.

    Parameters
    ----------
    observations : pd.DataFrame
        Annotated observation table with ``grid_id, date, value`` and the
        definition's event column.
    definition : EventDefinition

    Returns
    -------
    events : pd.DataFrame
        ``grid_id, definition, event_id, start_date, end_date, duration,
        severity, intensity, peak``. ``duration`` counts member days,
        ``severity`` sums their raw values, ``intensity`` is
        severity / duration and ``peak`` is the largest raw value.
    """
    col = definition.event_column
    members = _members(observations, definition)
    events = (
        members.groupby(['grid_id', col], sort=True)
        .agg(
            start_date=('date', 'min'),
            end_date=('date', 'max'),
            duration=('value', 'size'),
            severity=('value', 'sum'),
            peak=('value', 'max'),
        )
        .reset_index()
        .rename(columns={col: 'event_id'})
    )
    events['intensity'] = events['severity'] / events['duration']
    events['definition'] = definition.name
    events['event_id'] = events['event_id'].astype('int64')
    return events[EVENT_COLUMNS]


def event_tables(
    observations: pd.DataFrame,
    definitions: Iterable[EventDefinition]
) -> pd.DataFrame:
    """Event tables of several definitions stacked together."""
    tables = [event_table(observations, d) for d in definitions]
    if not tables:
        return pd.DataFrame(columns=EVENT_COLUMNS)
    return pd.concat(tables, ignore_index=True)


def merge_partials(parts: Iterable[pd.DataFrame]) -> pd.DataFrame:
    """
    Merge partial event rows describing the same events.

    Each part carries rows computed over a subset of an event's member days.
    Rows sharing ``(grid_id, definition, event_id)`` are combined with
    min/max/sum only, so the result does not depend on the order of ``parts``.
    """
    parts = [p for p in parts if len(p)]
    if not parts:
        return pd.DataFrame(columns=EVENT_COLUMNS)
    stacked = pd.concat(parts, ignore_index=True)
    merged = (
        stacked.groupby(['grid_id', 'definition', 'event_id'], sort=True)
        .agg(
            start_date=('start_date', 'min'),
            end_date=('end_date', 'max'),
            duration=('duration', 'sum'),
            severity=('severity', 'sum'),
            peak=('peak', 'max'),
        )
        .reset_index()
    )
    merged['intensity'] = merged['severity'] / merged['duration']
    return merged[EVENT_COLUMNS]


def event_frequency(
    observations: pd.DataFrame,
    definition: EventDefinition,
    by: Union[str, Sequence[str]] = 'period'
) -> pd.DataFrame:
    """
    Number of distinct events per grid cell and group.

    An event that straddles two groups (e.g. a season boundary) counts in
    both.

    Parameters
    ----------
    by : str or list of str, default='period'
        Grouping column(s) besides ``grid_id``, e.g. ``'season'``.

    Returns
    -------
    frequency : pd.DataFrame
        ``grid_id, <by...>, frequency``; groups without events are absent.
    """
    keys: List[str] = ['grid_id'] + ([by] if isinstance(by, str) else list(by))
    members = _members(observations, definition)
    return (
        members.groupby(keys, observed=True, sort=True)[definition.event_column]
        .nunique()
        .rename('frequency')
        .reset_index()
    )


def events_per_cell(observations: pd.DataFrame, definition: EventDefinition) -> pd.Series:
    """Distinct events of each grid cell that has at least one event."""
    members = _members(observations, definition)
    return members.groupby('grid_id')[definition.event_column].nunique()
