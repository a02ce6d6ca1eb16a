"""
ExEvEs: 极端蒸发事件识别工具包
Extreme Evaporation Events identification toolkit

从格点逐日蒸发数据中识别极端蒸发事件 (ExEvEs)。
Identifies extreme evaporation events in a gridded daily evaporation product
following Markonis (2025).

参考文献 / References:
-----------------------
Markonis, Y. (2025). On the Definition of Extreme Evaporation Events (ExEvEs).
Geophysical Research Letters.

主要功能 / Main Features:
--------------------------
1. 候 (5 天) 气候态标准化 / Pentad climatology and z-score standardization
2. 逐格点分位数阈值 / Per-cell quantile thresholds (Q80, Q95, median, Q95*)
3. 事件分割 / Run-length event segmentation under four definitions
   (Q80/Q95, Mean/Q95, Mean/Q95*, Q80)
4. 时段与季节标注 / Period and season labels
5. 事件统计 / Duration, severity, intensity and frequency roll-ups
6. 分块处理 / Chunked processing of large grids

使用示例 / Usage Example:
--------------------------
>>> from exeves import ExEvEConfig, run_pipeline
>>> config = ExEvEConfig(region='europe_med', output_dir='results')
>>> result = run_pipeline(config)          # reads gleam_e_mm_europe_med.nc
>>> result.events.groupby('definition')['duration'].mean()

命令行 / Command line:
----------------------
    exeves run --region europe_med --output-dir results
    exeves summarize --output-dir results --definition "Q80/Q95"

包结构 / Package Structure:
---------------------------
exeves/
├── config.py         # 配置与事件定义表 / Configuration and definition table
├── data_io.py        # NetCDF 读取与表格输出 / NetCDF input, CSV output
├── climatology.py    # 候气候态标准化 / Pentad standardization
├── thresholds.py     # 分位数阈值 / Quantile thresholds
├── segmentation.py   # 事件分割 / Event segmentation
├── annotate.py       # 时段与季节 / Period and season labels
├── aggregate.py      # 事件统计 / Event statistics
├── chunking.py       # 分块调度 / Chunk scheduling
├── pipeline.py       # 完整流程 / End-to-end run
├── summary.py        # 统计特征 / Statistical properties
├── temporal.py       # 时间变化 / Temporal analysis
├── report.py         # 汇总表输出 / Summary tables
└── cli.py            # 命令行 / Command line
"""

__version__ = "0.2.0"

from .config import (
    DEFAULT_DEFINITIONS,
    MEAN_BASELINE_DEFINITIONS,
    EventDefinition,
    ExEvEConfig,
    get_definition,
)
from .data_io import (
    CellSeries,
    MissingInputFile,
    UnparseableTimeUnits,
    VariableNotFound,
    load_cells,
    parse_time_axis,
    read_grid,
)
from .climatology import pentad_index, pentad_statistics, standardize_to_zscore
from .thresholds import ThresholdSet, estimate_thresholds
from .segmentation import identify_runs, rleid, segment_cell
from .annotate import annotate, period_labels, season_labels
from .aggregate import event_frequency, event_table, event_tables, merge_partials
from .chunking import ChunkInfo, plan_chunks
from .pipeline import RunResult, identify_events, process_cell, run_pipeline

__all__ = [
    # 配置 / Configuration
    "ExEvEConfig",
    "EventDefinition",
    "DEFAULT_DEFINITIONS",
    "MEAN_BASELINE_DEFINITIONS",
    "get_definition",
    # 输入 / Input
    "CellSeries",
    "MissingInputFile",
    "VariableNotFound",
    "UnparseableTimeUnits",
    "load_cells",
    "read_grid",
    "parse_time_axis",
    # 核心 / Core
    "pentad_index",
    "pentad_statistics",
    "standardize_to_zscore",
    "ThresholdSet",
    "estimate_thresholds",
    "rleid",
    "identify_runs",
    "segment_cell",
    "annotate",
    "period_labels",
    "season_labels",
    "event_table",
    "event_tables",
    "event_frequency",
    "merge_partials",
    "ChunkInfo",
    "plan_chunks",
    # 流程 / Pipeline
    "RunResult",
    "process_cell",
    "identify_events",
    "run_pipeline",
]
