"""
统计与时间分析测试 (Summary and Temporal Statistics Tests)

Hand-placed events on a two-cell grid, so every expected number can be
worked out on paper:

    cell 1: 2000-01-11 (3 days), 2002-03-11 (5 days)
    cell 2: 2001-02-04 (2 days), 2003-04-15 (3 days), 2003-07-24 (1 day)

Every raw value is 2.0, so severity = 2 * duration and intensity = 2.
"""

import numpy as np
import pandas as pd
import pytest

from exeves.aggregate import event_tables
from exeves.annotate import annotate
from exeves.config import DEFAULT_DEFINITIONS, ExEvEConfig, get_definition
from exeves.data_io import read_grid
from exeves.pipeline import identify_events
from exeves.report import build_report
from exeves.summary import (
    compare_definitions,
    longest_events,
    period_change,
    period_summary,
    seasonal_distribution,
    spatial_summary,
)
from exeves.temporal import (
    annual_statistics,
    duration_by_year,
    frequency_trend,
    monthly_statistics,
    period_increase,
    seasonal_statistics,
    temporal_summary,
)

Q80_Q95 = get_definition('Q80/Q95')

# (grid_id, first day offset, duration, event id)
PLACED_EVENTS = [
    (1, 10, 3, 2),
    (1, 800, 5, 4),
    (2, 400, 2, 2),
    (2, 1200, 3, 4),
    (2, 1300, 1, 6),
]


@pytest.fixture
def observations():
    dates = pd.date_range('2000-01-01', '2003-12-31', freq='D')
    frames = []
    for grid_id in (1, 2, 3):
        ids = pd.array([None] * len(dates), dtype='Int64')
        for gid, offset, duration, event_id in PLACED_EVENTS:
            if gid == grid_id:
                ids[offset:offset + duration] = event_id
        frame = pd.DataFrame({
            'grid_id': grid_id,
            'date': dates,
            'value': 2.0,
        })
        for definition in DEFAULT_DEFINITIONS:
            frame[definition.event_column] = ids
        frames.append(frame)
    return annotate(pd.concat(frames, ignore_index=True), ExEvEConfig())


@pytest.fixture
def grid():
    return pd.DataFrame({'grid_id': [1, 2, 3],
                         'lon': [10.0, 10.5, 11.0],
                         'lat': [40.0, 40.0, 40.0]})


# ============================================================================
# 测试 1: 定义对比与空间统计 (Definition Comparison and Spatial Statistics)
# ============================================================================

def test_compare_definitions(observations):
    table = compare_definitions(observations, DEFAULT_DEFINITIONS)

    assert list(table['definition']) == [d.name for d in DEFAULT_DEFINITIONS]
    assert table['definition'].cat.ordered
    row = table.iloc[0]
    assert row['frequency'] == pytest.approx(2.5)
    assert row['duration'] == pytest.approx(2.8)
    assert row['max_duration'] == 5
    assert row['severity'] == pytest.approx(5.6)
    assert row['intensity'] == pytest.approx(2.0)


def test_compare_definitions_without_events(observations):
    empty = observations.assign(event_80_id=pd.array([None] * len(observations), dtype='Int64'))
    table = compare_definitions(empty, [get_definition('Q80')])

    assert table.loc[0, 'frequency'] == 0.0
    assert table.loc[0, 'max_duration'] == 0
    assert np.isnan(table.loc[0, 'duration'])


def test_spatial_summary_keeps_cells_without_events(observations, grid):
    spatial = spatial_summary(observations, grid, Q80_Q95)

    assert spatial['grid_id'].tolist() == [1, 2, 3]
    assert spatial['event_frequency'].tolist() == [2, 3, 0]
    assert spatial.loc[0, 'mean_duration'] == pytest.approx(4.0)
    assert np.isnan(spatial.loc[2, 'mean_duration'])


def test_period_change(observations, grid):
    change = period_change(observations, grid, Q80_Q95, ExEvEConfig())

    assert change['events_period1'].tolist() == [1, 1, 0]
    assert change['events_period2'].tolist() == [1, 2, 0]
    assert change['change'].tolist() == [0, 1, 0]
    assert change.loc[1, 'ratio'] == pytest.approx(2.0)
    assert np.isnan(change.loc[2, 'ratio'])


def test_period_summary(observations):
    summary = period_summary(observations, Q80_Q95).set_index('period')

    assert summary.loc['up_to_2001', 'mean_events'] == pytest.approx(1.0)
    assert summary.loc['after_2001', 'mean_events'] == pytest.approx(1.5)
    assert summary.loc['up_to_2001', 'mean_duration'] == pytest.approx(2.5)
    assert summary.loc['after_2001', 'mean_duration'] == pytest.approx(3.0)


def test_seasonal_distribution(observations):
    seasonal = seasonal_distribution(observations, Q80_Q95).set_index('season')

    assert seasonal['n_events'].to_dict() == {'JFM': 3, 'AMJ': 1, 'JAS': 1}
    assert seasonal['percentage'].sum() == pytest.approx(100.0)
    assert seasonal.loc['JFM', 'percentage'] == pytest.approx(60.0)


def test_longest_events(observations):
    events = event_tables(observations, [Q80_Q95])
    top = longest_events(events, Q80_Q95, n=2)

    assert top['duration'].tolist() == [5, 3]
    # ties broken by grid id
    assert top.loc[1, 'grid_id'] == 1


# ============================================================================
# 测试 2: 时间分析 (Temporal Analysis)
# ============================================================================

def test_annual_statistics(observations):
    annual = annual_statistics(observations, Q80_Q95)

    assert annual['year'].tolist() == [2000, 2001, 2002, 2003]
    assert annual['events_per_cell'].tolist() == [1.0, 1.0, 1.0, 2.0]
    assert annual['total_event_days'].tolist() == [3, 2, 5, 4]
    assert annual['total_value'].tolist() == pytest.approx([6.0, 4.0, 10.0, 8.0])


def test_monthly_statistics(observations):
    monthly = monthly_statistics(observations, Q80_Q95)

    assert monthly['month'].tolist() == [1, 2, 3, 4, 7]
    assert (monthly['events_per_cell'] == 1.0).all()


def test_seasonal_statistics(observations):
    table = seasonal_statistics(observations, Q80_Q95)
    jfm = table[table['season'] == 'JFM'].set_index('period')

    assert jfm.loc['up_to_2001', 'total_events'] == 2
    assert jfm.loc['after_2001', 'total_events'] == 1


def test_duration_by_year(observations):
    durations = duration_by_year(observations, Q80_Q95).set_index('year')

    assert durations.loc[2003, 'mean_duration'] == pytest.approx(2.0)
    assert durations.loc[2003, 'q25'] == pytest.approx(1.5)
    assert durations.loc[2002, 'median_duration'] == pytest.approx(5.0)


def test_frequency_trend_recovers_linear_series():
    years = np.arange(2000, 2010)
    annual = pd.DataFrame({'year': years, 'events_per_cell': 2.0 + 0.5 * (years - 2000)})

    trend = frequency_trend(annual)

    assert trend['slope'] == pytest.approx(0.5)
    assert trend['intercept'] == pytest.approx(2.0 - 0.5 * 2000)
    assert trend['r_squared'] == pytest.approx(1.0)


def test_frequency_trend_needs_three_years():
    annual = pd.DataFrame({'year': [2000, 2001], 'events_per_cell': [1.0, 2.0]})
    assert all(np.isnan(v) for v in frequency_trend(annual).values())


def test_period_increase_and_summary(observations):
    config = ExEvEConfig()
    increase = period_increase(observations, Q80_Q95, config)

    assert increase['up_to_2001'] == pytest.approx(1.0)
    assert increase['after_2001'] == pytest.approx(1.5)
    assert increase['ratio'] == pytest.approx(1.5)

    summary = temporal_summary(observations, Q80_Q95, config).set_index('Metric')['Value']
    assert summary['Total years'] == 4
    assert summary['Change factor'] == pytest.approx(1.5)


# ============================================================================
# 测试 3: 汇总报告 (Report)
# ============================================================================

def test_build_report_on_synthetic_run(synthetic_dataset, config):
    grid, cells = read_grid(synthetic_dataset, config)
    result = identify_events(cells, config)
    result.grid = grid

    report = build_report(result, config)

    assert set(report) == {
        'event_properties', 'period_summary', 'seasonal_distribution',
        'spatial_summary', 'period_change', 'longest_events',
        'annual_statistics', 'monthly_statistics', 'seasonal_statistics',
        'duration_by_year', 'temporal_summary',
    }
    assert len(report['event_properties']) == len(config.definitions)
    assert len(report['spatial_summary']) == len(grid)
    # the constant cell never has events
    spatial = report['spatial_summary'].set_index('grid_id')
    assert spatial.loc[4, 'event_frequency'] == 0


def test_build_report_unknown_definition(synthetic_dataset, config):
    _, cells = read_grid(synthetic_dataset, config)
    result = identify_events(cells, config)
    with pytest.raises(KeyError):
        build_report(result, config, 'Q99')
