"""
Period and season labels. Pure functions of the date.
"""

import numpy as np
import pandas as pd

from .config import ExEvEConfig


def period_labels(dates, config: ExEvEConfig) -> pd.Categorical:
    """
    Comparison period of each date.

    Dates up to and including ``config.period_split`` fall in the first
    period, later dates in the second.

    Examples
    --------
    >>> period_labels(pd.to_datetime(['2001-12-31', '2002-01-01']), ExEvEConfig())
    ['up_to_2001', 'after_2001']
    Categories (2, object): ['up_to_2001' < 'after_2001']
    """
    dates = pd.DatetimeIndex(dates)
    first, second = config.period_labels
    late = np.asarray(dates > pd.Timestamp(config.period_split))
    return pd.Categorical(
        np.where(late, second, first),
        categories=[first, second],
        ordered=True,
    )


def season_labels(dates, config: ExEvEConfig) -> pd.Categorical:
    """Season bucket (JFM, AMJ, JAS, OND by default) of each date."""
    months = np.asarray(pd.DatetimeIndex(dates).month)
    lookup = config.month_to_season
    by_month = np.array([lookup.get(m) for m in range(13)], dtype=object)
    return pd.Categorical(
        by_month[months],
        categories=list(config.season_labels),
        ordered=True,
    )


def annotate(frame: pd.DataFrame, config: ExEvEConfig) -> pd.DataFrame:
    """Add ``season`` and ``period`` columns derived from ``frame['date']``."""
    out = frame.copy()
    out['season'] = season_labels(out['date'], config)
    out['period'] = period_labels(out['date'], config)
    return out
