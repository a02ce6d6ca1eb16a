"""
Per-cell quantile thresholds of the standardized series.

Thresholds are estimated once per grid cell from all of its valid z-scores
(linear-interpolation quantiles) and reused for every date of that cell.
"""

from dataclasses import asdict, dataclass
from typing import Dict, Optional

import numpy as np
import pandas as pd

from .config import ExEvEConfig


@dataclass(frozen=True)
class ThresholdSet:
    """
    Thresholds of one grid cell in z-score units.

    ``high_alt`` is nominally a regression-adjusted variant of ``high``; it is
    estimated as a plain quantile at ``alt_quantile``.
    """
    low: float
    high: float
    median: float
    high_alt: float
    n_valid: int = 0

    def select(self, selector: Optional[str]) -> float:
        """
        Threshold value for a definition selector.

        ``'mean'`` is the climatological mean, i.e. z = 0. ``None`` (no
        threshold) gives NaN, which no value exceeds.
        """
        if selector is None:
            return np.nan
        if selector == 'mean':
            return 0.0
        if selector not in ('low', 'high', 'median', 'high_alt'):
            raise ValueError(f"Unknown threshold selector: {selector!r}")
        return getattr(self, selector)

    @property
    def is_defined(self) -> bool:
        return self.n_valid > 0

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


def estimate_thresholds(std_values, config: ExEvEConfig) -> ThresholdSet:
    """
    Estimate the threshold set of one grid cell.

    Parameters
    ----------
    std_values : array-like
        Z-scores of the cell; NaN entries are ignored.
    config : ExEvEConfig
        Supplies the quantile levels.

    Returns
    -------
    thresholds : ThresholdSet
        All fields NaN when the cell has no valid z-score.

    Examples
    --------
    >>> t = estimate_thresholds(np.arange(101) / 100.0, ExEvEConfig())
    >>> round(t.low, 2), round(t.high, 2)
    (0.8, 0.95)
    """
    z = np.asarray(std_values, dtype=float)
    z = z[~np.isnan(z)]
    levels = config.quantile_levels
    if z.size == 0:
        return ThresholdSet(np.nan, np.nan, np.nan, np.nan, n_valid=0)

    names = list(levels)
    values = np.quantile(z, [levels[n] for n in names], method='linear')
    return ThresholdSet(
        **{n: float(v) for n, v in zip(names, values)},
        n_valid=int(z.size),
    )


def threshold_table(thresholds: Dict[int, ThresholdSet]) -> pd.DataFrame:
    """One row per grid cell: ``grid_id, low, high, median, high_alt, n_valid``."""
    rows = [{'grid_id': gid, **t.as_dict()} for gid, t in thresholds.items()]
    return pd.DataFrame(
        rows, columns=['grid_id', 'low', 'high', 'median', 'high_alt', 'n_valid']
    )
