"""
运行配置与事件定义表 (Run Configuration and Event Definitions)

Configuration object for the ExEvE workflow, the table mapping each named
event definition to its threshold pair, and the logger factory shared by all
modules.

The configuration is built once (from defaults, CLI flags or keyword
overrides) and passed explicitly into every component; nothing in the package
reads global mutable state.
"""

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Optional, Tuple

import pandas as pd


# ============================================================================
# 模块常量定义 (Module Constants)
# ============================================================================

DEFAULT_REGION = 'europe_med'
DEFAULT_VARIABLE = 'E'

# 研究时段 (Study periods)
DEFAULT_PERIOD_START = '1981-01-01'
DEFAULT_PERIOD_SPLIT = '2001-12-31'   # 第一时段结束 (end of first period)
DEFAULT_PERIOD_END = '2022-12-31'

# 分位数阈值 (Quantile levels)
DEFAULT_LOW_QUANTILE = 0.80       # 事件起始 (event onset)
DEFAULT_EXTREME_QUANTILE = 0.95   # 极端日 (extreme day)
DEFAULT_MEDIAN_QUANTILE = 0.50
DEFAULT_ALT_QUANTILE = 0.95

# 季节划分 (Season buckets: label -> calendar months)
DEFAULT_SEASONS = (
    ('JFM', (1, 2, 3)),
    ('AMJ', (4, 5, 6)),
    ('JAS', (7, 8, 9)),
    ('OND', (10, 11, 12)),
)

# 分块参数 (Chunking parameters)
DEFAULT_CHUNK_ROWS = 20_000_000          # rows per batch
DEFAULT_CHUNK_TRIGGER_ROWS = 50_000_000  # chunk only above this many rows

DAYS_PER_PENTAD = 5
PENTADS_PER_YEAR = 73

# Threshold selectors understood by ThresholdSet.select
THRESHOLD_SELECTORS = ('low', 'high', 'median', 'high_alt', 'mean')


# ============================================================================
# 日志 (Logging)
# ============================================================================

def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """
    Set up and return a logger with consistent formatting.

    Parameters
    ----------
    name : str
        Logger name, typically ``__name__`` of the calling module.
    level : int, default=logging.INFO
        Logging level.
    """
    logging.basicConfig(
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger = logging.getLogger(name)
    logger.setLevel(level)
    return logger


# ============================================================================
# 事件定义 (Event Definitions)
# ============================================================================

@dataclass(frozen=True)
class EventDefinition:
    """
    One named event definition.

    Attributes
    ----------
    name : str
        Display name, e.g. ``"Q80/Q95"``.
    low : str
        Selector of the onset threshold (see ``THRESHOLD_SELECTORS``).
    high : str or None
        Selector of the extreme threshold; None when no containment is needed.
    requires_containment : bool
        If True a run only becomes an event when it holds an extreme day.
    event_column : str
        Output column carrying the event ids.
    extreme_column : str or None
        Output column carrying the extreme-run ids.
    """
    name: str
    low: str
    high: Optional[str]
    requires_containment: bool
    event_column: str
    extreme_column: Optional[str] = None

    def __post_init__(self):
        if self.low not in THRESHOLD_SELECTORS:
            raise ValueError(f"Unknown low threshold selector: {self.low!r}")
        if self.requires_containment:
            if self.high not in THRESHOLD_SELECTORS:
                raise ValueError(
                    f"Definition {self.name!r} requires containment but has "
                    f"no valid high threshold selector ({self.high!r})"
                )
            if self.extreme_column is None:
                raise ValueError(
                    f"Definition {self.name!r} requires an extreme_column"
                )


# Reference mapping. Mean/Q95 is built from the same pair as Q80/Q95 here;
# MEAN_BASELINE_DEFINITIONS swaps in the z = 0 baseline instead.
DEFAULT_DEFINITIONS: Tuple[EventDefinition, ...] = (
    EventDefinition('Q80/Q95', 'low', 'high', True,
                    'event_80_95_id', 'extreme_80_95_id'),
    EventDefinition('Mean/Q95', 'low', 'high', True,
                    'event_id', 'extreme_id'),
    EventDefinition('Mean/Q95*', 'median', 'high_alt', True,
                    'event_qr_id', 'extreme_qr_id'),
    EventDefinition('Q80', 'low', None, False, 'event_80_id'),
)

MEAN_BASELINE_DEFINITIONS: Tuple[EventDefinition, ...] = tuple(
    replace(d, low='mean') if d.name == 'Mean/Q95' else d
    for d in DEFAULT_DEFINITIONS
)


def get_definition(
    name: str,
    definitions: Tuple[EventDefinition, ...] = DEFAULT_DEFINITIONS
) -> EventDefinition:
    """Look up an event definition by its name."""
    for definition in definitions:
        if definition.name == name:
            return definition
    known = ', '.join(d.name for d in definitions)
    raise KeyError(f"Unknown event definition {name!r} (known: {known})")


# ============================================================================
# 运行配置 (Run Configuration)
# ============================================================================

@dataclass(frozen=True)
class ExEvEConfig:
    """
    All constants of one ExEvE run.

    Construct once and pass to the components; use :meth:`replace` to derive
    a modified copy.

    Examples
    --------
    >>> config = ExEvEConfig(region='iberia', output_dir='out')
    >>> config.input_path.name
    'gleam_e_mm_iberia.nc'
    >>> config.period_labels
    ('up_to_2001', 'after_2001')
    """
    region: str = DEFAULT_REGION
    input_file: Optional[str] = None
    variable: str = DEFAULT_VARIABLE
    lon_name: str = 'lon'
    lat_name: str = 'lat'
    time_name: str = 'time'
    output_dir: str = '.'

    period_start: str = DEFAULT_PERIOD_START
    period_split: str = DEFAULT_PERIOD_SPLIT
    period_end: str = DEFAULT_PERIOD_END
    clip_to_period: bool = False

    low_quantile: float = DEFAULT_LOW_QUANTILE
    extreme_quantile: float = DEFAULT_EXTREME_QUANTILE
    median_quantile: float = DEFAULT_MEDIAN_QUANTILE
    alt_quantile: float = DEFAULT_ALT_QUANTILE

    seasons: Tuple[Tuple[str, Tuple[int, ...]], ...] = DEFAULT_SEASONS

    chunk_rows: int = DEFAULT_CHUNK_ROWS
    chunk_trigger_rows: int = DEFAULT_CHUNK_TRIGGER_ROWS
    n_workers: int = 1

    definitions: Tuple[EventDefinition, ...] = field(
        default=DEFAULT_DEFINITIONS
    )

    def __post_init__(self):
        for name in ('low_quantile', 'extreme_quantile',
                     'median_quantile', 'alt_quantile'):
            q = getattr(self, name)
            if not 0.0 < q < 1.0:
                raise ValueError(f"{name} must be in range (0, 1), got {q}")
        if self.low_quantile >= self.extreme_quantile:
            raise ValueError(
                "low_quantile must be below extreme_quantile, got "
                f"{self.low_quantile} >= {self.extreme_quantile}"
            )

        start = pd.Timestamp(self.period_start)
        split = pd.Timestamp(self.period_split)
        end = pd.Timestamp(self.period_end)
        if not start <= split < end:
            raise ValueError(
                "Period boundaries must satisfy start <= split < end, got "
                f"{self.period_start}, {self.period_split}, {self.period_end}"
            )

        months = sorted(m for _, ms in self.seasons for m in ms)
        if months != list(range(1, 13)):
            raise ValueError(
                "Seasons must cover each calendar month exactly once"
            )

        if self.chunk_rows < 1:
            raise ValueError(f"chunk_rows must be >= 1, got {self.chunk_rows}")
        if self.n_workers < 1:
            raise ValueError(f"n_workers must be >= 1, got {self.n_workers}")

        names = [d.name for d in self.definitions]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate event definition names: {names}")

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def replace(self, **changes) -> 'ExEvEConfig':
        """Return a copy with the given fields changed."""
        return replace(self, **changes)

    @property
    def input_path(self) -> Path:
        if self.input_file is not None:
            return Path(self.input_file)
        return Path(f"gleam_e_mm_{self.region}.nc")

    @property
    def data_dir(self) -> Path:
        return Path(self.output_dir) / 'data'

    @property
    def tables_dir(self) -> Path:
        return Path(self.output_dir) / 'tables'

    @property
    def period_labels(self) -> Tuple[str, str]:
        year = pd.Timestamp(self.period_split).year
        return f'up_to_{year}', f'after_{year}'

    @property
    def period_length_years(self) -> int:
        """Length of the whole study period in (rounded) years."""
        days = (pd.Timestamp(self.period_end)
                - pd.Timestamp(self.period_start)).days
        return int(round(days / 365.25))

    @property
    def season_labels(self) -> Tuple[str, ...]:
        return tuple(label for label, _ in self.seasons)

    @property
    def month_to_season(self) -> Dict[int, str]:
        return {m: label for label, months in self.seasons for m in months}

    @property
    def quantile_levels(self) -> Dict[str, float]:
        """Quantile level behind each ThresholdSet field."""
        return {
            'low': self.low_quantile,
            'high': self.extreme_quantile,
            'median': self.median_quantile,
            'high_alt': self.alt_quantile,
        }

    def ensure_output_dirs(self) -> None:
        """Create the data and tables output directories."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.tables_dir.mkdir(parents=True, exist_ok=True)
