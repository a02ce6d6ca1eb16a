"""
事件分割模块 (Event Segmentation Module)

Run-length segmentation of a standardized series into extreme evaporation
events (ExEvEs), following Markonis (2025).

算法 (Algorithm):
-----------------
1. 标记超过低阈值的日子 / Mark days above the onset (low) threshold
2. 按游程编号 / Number the runs of that indicator (segment ids)
3. 标记超过高阈值的极端日 / Mark extreme days above the high threshold
4. 只保留包含极端日的游程 / Keep runs holding at least one extreme day
   (or every run when the definition needs no containment)
5. 在整个记录上对保留标记重新游程编号 / Re-number the kept indicator over
   the whole record to get the event ids

All named definitions share this single implementation; they only differ in
the threshold pair plugged in (see ``config.DEFAULT_DEFINITIONS``).

参考文献 (References):
----------------------
Markonis, Y. (2025). On the Definition of Extreme Evaporation Events (ExEvEs).
Geophysical Research Letters.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from .config import EventDefinition
from .thresholds import ThresholdSet


# ============================================================================
# 游程编号 (Run-length Ids)
# ============================================================================

def rleid(values) -> np.ndarray:
    """
    Run-length ids: 1-based, incremented at every change of value.

    Examples
    --------
    >>> rleid([False, True, True, False, True])
    array([1, 2, 2, 3, 4])
    """
    values = np.asarray(values)
    if values.size == 0:
        return np.zeros(0, dtype=np.int64)
    changes = np.empty(values.size, dtype=bool)
    changes[0] = True
    changes[1:] = values[1:] != values[:-1]
    return np.cumsum(changes, dtype=np.int64)


def masked_ids(ids: np.ndarray, keep: np.ndarray) -> pd.arrays.IntegerArray:
    """Nullable integer ids, null wherever ``keep`` is False."""
    keep = np.asarray(keep, dtype=bool)
    return pd.arrays.IntegerArray(
        np.asarray(ids, dtype=np.int64).copy(), ~keep
    )


def identify_runs(mask) -> List[Dict[str, int]]:
    """
    Start, end (inclusive) and duration of each True run in ``mask``.

    Examples
    --------
    >>> identify_runs([False, True, True, True, False, True, True, False])
    [{'start': 1, 'end': 3, 'duration': 3}, {'start': 5, 'end': 6, 'duration': 2}]
    """
    mask = np.asarray(mask, dtype=bool)
    padded = np.concatenate(([False], mask, [False])).astype(np.int8)
    edges = np.diff(padded)
    starts = np.flatnonzero(edges == 1)
    ends = np.flatnonzero(edges == -1) - 1
    return [
        {'start': int(s), 'end': int(e), 'duration': int(e - s + 1)}
        for s, e in zip(starts, ends)
    ]


# ============================================================================
# 分割 (Segmentation)
# ============================================================================

@dataclass
class SegmentationResult:
    """
    Outcome of segmenting one cell under one definition.

    Attributes
    ----------
    indicator : np.ndarray of bool
        z-score above the low threshold.
    segment_id : np.ndarray of int
        Run-length ids of ``indicator``.
    is_extreme : np.ndarray of bool
        z-score above the high threshold (all False without containment).
    qualifies : np.ndarray of bool
        Row belongs to an event.
    event_id : pd.arrays.IntegerArray
        Event ids, null outside events.
    extreme_id : pd.arrays.IntegerArray or None
        Ids of the extreme runs, null on non-extreme rows; None when the
        definition needs no containment.
    """
    indicator: np.ndarray
    segment_id: np.ndarray
    is_extreme: np.ndarray
    qualifies: np.ndarray
    event_id: pd.arrays.IntegerArray
    extreme_id: Optional[pd.arrays.IntegerArray]

    @property
    def n_events(self) -> int:
        return int(pd.Series(self.event_id).nunique())

    def segments(self, dates=None) -> pd.DataFrame:
        """
        One row per run-length segment.

        Columns ``segment_id, start, end, indicator, contains_extreme,
        qualifies`` plus ``start_date, end_date`` when ``dates`` is given.
        """
        frame = pd.DataFrame({
            'segment_id': self.segment_id,
            'position': np.arange(len(self.segment_id)),
            'indicator': self.indicator,
            'is_extreme': self.is_extreme & self.indicator,
            'qualifies': self.qualifies,
        })
        if dates is not None:
            frame['date'] = pd.DatetimeIndex(dates)
        grouped = frame.groupby('segment_id', sort=True)
        out = grouped.agg(
            start=('position', 'min'),
            end=('position', 'max'),
            indicator=('indicator', 'first'),
            contains_extreme=('is_extreme', 'any'),
            qualifies=('qualifies', 'first'),
        )
        if dates is not None:
            out['start_date'] = grouped['date'].min()
            out['end_date'] = grouped['date'].max()
        return out.reset_index()


def segment_cell(
    std_values,
    thresholds: ThresholdSet,
    definition: EventDefinition
) -> SegmentationResult:
    """
    Segment one cell's z-scores into events under one definition.

    Parameters
    ----------
    std_values : array-like
        Date-ordered z-scores of one grid cell. NaN never exceeds a threshold.
    thresholds : ThresholdSet
        Thresholds of the same cell.
    definition : EventDefinition
        Which thresholds to use and whether containment is required.

    Returns
    -------
    result : SegmentationResult

    Examples
    --------
    >>> from exeves.config import get_definition
    >>> t = ThresholdSet(low=0.8, high=2.0, median=0.0, high_alt=2.0, n_valid=6)
    >>> r = segment_cell([0.1, 0.9, 1.0, 2.5, 0.9, 0.1], t, get_definition('Q80/Q95'))
    >>> list(r.event_id)
    [<NA>, 2, 2, 2, 2, <NA>]
    """
    z = np.asarray(std_values, dtype=float)
    low = thresholds.select(definition.low)

    # NaN compares False on either side
    indicator = z > low
    segment_id = rleid(indicator)

    if definition.requires_containment:
        high = thresholds.select(definition.high)
        is_extreme = z > high
        hit_segments = np.unique(segment_id[indicator & is_extreme])
        qualifies = indicator & np.isin(segment_id, hit_segments)
        extreme_id = masked_ids(rleid(is_extreme), is_extreme)
    else:
        is_extreme = np.zeros_like(indicator)
        qualifies = indicator
        extreme_id = None

    event_id = masked_ids(rleid(qualifies), qualifies)

    return SegmentationResult(
        indicator=indicator,
        segment_id=segment_id,
        is_extreme=is_extreme,
        qualifies=qualifies,
        event_id=event_id,
        extreme_id=extreme_id,
    )


def segment_all(
    std_values,
    thresholds: ThresholdSet,
    definitions
) -> Dict[str, SegmentationResult]:
    """Run :func:`segment_cell` for every definition, keyed by name."""
    return {
        d.name: segment_cell(std_values, thresholds, d) for d in definitions
    }


__all__ = [
    'rleid',
    'masked_ids',
    'identify_runs',
    'SegmentationResult',
    'segment_cell',
    'segment_all',
]
