"""
Summary tables of a finished run.

Builds the statistics and temporal tables for one reference definition
(Q80/Q95 by default) plus the definition comparison, and writes them under
``<output_dir>/tables``.
"""

from pathlib import Path
from typing import Dict, Optional

import pandas as pd

from .config import ExEvEConfig, get_definition, get_logger
from .data_io import output_paths, write_tables
from .pipeline import RunResult
from .summary import (
    compare_definitions,
    longest_events,
    period_change,
    period_summary,
    seasonal_distribution,
    spatial_summary,
)
from .temporal import (
    annual_statistics,
    duration_by_year,
    frequency_trend,
    monthly_statistics,
    seasonal_statistics,
    temporal_summary,
)

_logger = get_logger(__name__)

REFERENCE_DEFINITION = 'Q80/Q95'


def build_report(
    result: RunResult,
    config: ExEvEConfig,
    definition_name: str = REFERENCE_DEFINITION
) -> Dict[str, pd.DataFrame]:
    """All summary tables of a run, keyed by table name."""
    definition = get_definition(definition_name, config.definitions)
    obs = result.observations
    return {
        'event_properties': compare_definitions(obs, config.definitions),
        'period_summary': period_summary(obs, definition),
        'seasonal_distribution': seasonal_distribution(obs, definition),
        'spatial_summary': spatial_summary(obs, result.grid, definition),
        'period_change': period_change(obs, result.grid, definition, config),
        'longest_events': longest_events(result.events, definition),
        'annual_statistics': annual_statistics(obs, definition),
        'monthly_statistics': monthly_statistics(obs, definition),
        'seasonal_statistics': seasonal_statistics(obs, definition),
        'duration_by_year': duration_by_year(obs, definition),
        'temporal_summary': temporal_summary(obs, definition, config),
    }


def log_report(report: Dict[str, pd.DataFrame], definition_name: str) -> None:
    """Log the definition comparison and the annual frequency trend."""
    _logger.info(f"Event properties by definition:\n{report['event_properties'].to_string(index=False)}")
    trend = frequency_trend(report['annual_statistics'])
    _logger.info(
        f"Annual frequency trend ({definition_name}): slope = {trend['slope']:.4f} "
        f"events/cell/year, p = {trend['p_value']:.3g}, r2 = {trend['r_squared']:.3f}"
    )


def report_paths(report: Dict[str, pd.DataFrame], config: ExEvEConfig) -> Dict[str, Path]:
    """``<tables_dir>/<region>_<name>.csv`` for every summary table."""
    return {name: config.tables_dir / f"{config.region}_{name}.csv" for name in report}


def write_report(
    result: RunResult,
    config: ExEvEConfig,
    definition_name: str = REFERENCE_DEFINITION
) -> Dict[str, pd.DataFrame]:
    """Build the summary tables, log the headline numbers and write them."""
    report = build_report(result, config, definition_name)
    log_report(report, definition_name)
    config.ensure_output_dirs()
    write_tables(report, report_paths(report, config))
    return report


def write_run(
    result: RunResult,
    config: ExEvEConfig,
    definition_name: str = REFERENCE_DEFINITION,
    summary: bool = True
) -> Optional[Dict[str, pd.DataFrame]]:
    """
    Write the data tables of a run and, optionally, its summary tables.

    The summary is built before anything is written and all tables go through
    one :func:`write_tables` call, so a failure leaves no partial output.

    Returns
    -------
    report : dict or None
        The summary tables, or None when ``summary`` is False.
    """
    tables = result.tables()
    paths = output_paths(config)
    report = None
    if summary:
        report = build_report(result, config, definition_name)
        log_report(report, definition_name)
        tables.update(report)
        paths.update(report_paths(report, config))

    config.ensure_output_dirs()
    write_tables(tables, paths)
    return report
