"""
端到端流程测试 (End-to-end Pipeline Tests)

1. NetCDF 读取与时间轴解析 / NetCDF reading and time-axis decoding
2. 输入错误 / Input error taxonomy
3. 完整流程与输出表 / Full run and output tables
4. 命令行 / Command line
"""

import numpy as np
import pandas as pd
import pytest

from exeves.cli import main
from exeves.config import ExEvEConfig
from exeves.data_io import (
    MissingInputFile,
    UnparseableTimeUnits,
    VariableNotFound,
    load_cells,
    output_paths,
    parse_time_axis,
    read_grid,
    write_tables,
)
from exeves.pipeline import identify_events, load_result, observation_columns, run_pipeline
from exeves.segmentation import rleid

from conftest import make_dataset


# ============================================================================
# 测试 1: 读取 (Reading)
# ============================================================================

def test_parse_time_axis_days_and_hours():
    days = parse_time_axis([0, 1, 59], 'days since 2000-01-01')
    hours = parse_time_axis([0, 12, 36], 'hours since 2000-01-01 00:00:00')

    assert list(days.strftime('%Y-%m-%d')) == ['2000-01-01', '2000-01-02', '2000-02-29']
    assert list(hours.strftime('%Y-%m-%d')) == ['2000-01-01', '2000-01-01', '2000-01-02']


@pytest.mark.parametrize('units', ['days since 1999-01-01 00:00:00 UTC',
                                   'hours since 1900-01-01 00:00:00.0 +0:00'])
def test_parse_time_axis_timezone_epochs_are_naive(units):
    dates = parse_time_axis([0, 48], units)

    assert dates.tz is None
    assert dates[0] == pd.Timestamp(units.split('since ')[1][:10])


@pytest.mark.parametrize('units', ['months since 2000-01-01', 'days after 2000-01-01',
                                   'days since not-a-date', None])
def test_unparseable_time_units(units):
    with pytest.raises(UnparseableTimeUnits):
        parse_time_axis([0, 1], units)


def test_read_grid_drops_all_missing_cells(synthetic_dataset, config):
    grid, cells = read_grid(synthetic_dataset, config)

    # 3 x 2 grid minus one all-missing cell
    assert len(cells) == 5
    assert grid['grid_id'].tolist() == [1, 2, 3, 4, 5]
    # longitude-major order, (10.0, 40.5) is missing
    assert list(zip(grid['lon'], grid['lat'])) == [
        (10.0, 40.0), (10.5, 40.0), (10.5, 40.5), (11.0, 40.0), (11.0, 40.5)
    ]
    # sparse missing values are dropped from the series
    assert len(cells[2]) == len(cells[1]) - 20
    assert all(not np.isnan(c.values).any() for c in cells)
    assert all(c.dates.is_monotonic_increasing for c in cells)


def test_read_grid_accepts_time_lon_lat_order(synthetic_dataset, config):
    ds = synthetic_dataset.transpose('time', 'lat', 'lon')
    _, cells = read_grid(ds, config)
    _, reference = read_grid(synthetic_dataset, config)

    assert np.array_equal(cells[0].values, reference[0].values)


def test_read_grid_hours_units(config):
    ds = make_dataset(n_years=1, units='hours since 1999-01-01')
    ds = ds.assign_coords(time=('time', ds['time'].values * 24, ds['time'].attrs))
    _, cells = read_grid(ds, config)
    assert cells[0].dates[0] == pd.Timestamp('1999-01-01')
    assert cells[0].dates[1] == pd.Timestamp('1999-01-02')


def test_timezone_units_run_end_to_end(config):
    ds = make_dataset(n_years=2, units='days since 1999-01-01 00:00:00 UTC')
    _, cells = read_grid(ds, config)
    assert cells[0].dates.tz is None
    assert cells[0].dates[0] == pd.Timestamp('1999-01-01')

    result = identify_events(cells, config)
    assert set(result.observations['period'].unique()) == {'up_to_2001'}
    assert len(result.events) > 0


def test_grid_ids_follow_ascending_coordinates(config):
    ascending = make_dataset(n_years=1)
    descending = ascending.isel(lat=slice(None, None, -1))
    assert descending['lat'].values.tolist() == [40.5, 40.0]

    grid_a, cells_a = read_grid(ascending, config)
    grid_d, cells_d = read_grid(descending, config)

    pd.testing.assert_frame_equal(grid_a, grid_d)
    assert grid_d.set_index('grid_id').loc[2, 'lat'] == 40.0
    assert grid_d.set_index('grid_id').loc[3, 'lat'] == 40.5
    for a, d in zip(cells_a, cells_d):
        assert np.array_equal(a.values, d.values)


def test_clip_to_period(synthetic_dataset, config):
    clipped = config.replace(clip_to_period=True, period_start='2000-01-01')
    _, cells = read_grid(synthetic_dataset, clipped)
    assert cells[0].dates.min() == pd.Timestamp('2000-01-01')


# ============================================================================
# 测试 2: 输入错误 (Input Errors)
# ============================================================================

def test_missing_input_file(tmp_path):
    config = ExEvEConfig(input_file=str(tmp_path / 'absent.nc'))
    with pytest.raises(MissingInputFile, match='absent.nc'):
        load_cells(config)


def test_variable_not_found(synthetic_dataset, config):
    with pytest.raises(VariableNotFound, match="'ET'"):
        read_grid(synthetic_dataset, config.replace(variable='ET'))


def test_bad_time_units_in_dataset(synthetic_dataset, config):
    ds = synthetic_dataset.copy()
    ds['time'].attrs['units'] = 'fortnights since 2000-01-01'
    with pytest.raises(UnparseableTimeUnits):
        read_grid(ds, config)


def test_invalid_config():
    with pytest.raises(ValueError):
        ExEvEConfig(low_quantile=0.96)
    with pytest.raises(ValueError):
        ExEvEConfig(period_split='2030-01-01')


# ============================================================================
# 测试 3: 完整流程 (Full Run)
# ============================================================================

def test_identify_events_tables(synthetic_dataset, config):
    grid, cells = read_grid(synthetic_dataset, config)
    result = identify_events(cells, config)
    obs = result.observations

    assert list(obs.columns) == observation_columns(config)
    assert len(obs) == sum(len(c) for c in cells)
    assert set(obs['season'].cat.categories) == {'JFM', 'AMJ', 'JAS', 'OND'}
    assert set(obs['period'].unique()) == {'up_to_2001', 'after_2001'}

    # thresholds and climatology tables
    assert len(result.thresholds) == len(cells)
    assert set(result.climatology['pentad']) == set(range(1, 74))

    # embedded burst in grid 2 around day 180 is an event under every definition
    burst = obs[(obs['grid_id'] == 2)].iloc[181:185]
    for definition in config.definitions:
        assert burst[definition.event_column].notna().all()
        assert burst[definition.event_column].nunique() == 1

    # event rows agree with the observation table
    events = result.events
    for definition in config.definitions:
        subset = events[events['definition'] == definition.name]
        members = obs[definition.event_column].notna().sum()
        assert subset['duration'].sum() == members


def test_constant_cell_has_no_events(synthetic_dataset, config):
    _, cells = read_grid(synthetic_dataset, config)
    result = identify_events(cells, config)
    obs = result.observations
    constant = obs[obs['grid_id'] == 4]

    assert constant['std_value'].isna().all()
    for definition in config.definitions:
        assert constant[definition.event_column].isna().all()
    thresholds = result.thresholds.set_index('grid_id').loc[4]
    assert thresholds['n_valid'] == 0
    assert np.isnan(thresholds['low'])
    assert 4 not in set(result.events['grid_id'])


def test_run_pipeline_writes_and_reloads(netcdf_file, tmp_path):
    config = ExEvEConfig(region='test', input_file=str(netcdf_file),
                         output_dir=str(tmp_path / 'out'))
    result = run_pipeline(config)

    paths = output_paths(config)
    assert all(p.exists() for p in paths.values())

    reloaded = load_result(config)
    assert reloaded is not None
    assert len(reloaded.observations) == len(result.observations)
    assert reloaded.observations['event_80_95_id'].dtype == 'Int64'
    assert reloaded.grid['grid_id'].tolist() == result.grid['grid_id'].tolist()
    assert len(reloaded.events) == len(result.events)


def test_failed_run_writes_nothing(tmp_path):
    config = ExEvEConfig(region='test', input_file=str(tmp_path / 'missing.nc'),
                         output_dir=str(tmp_path / 'out'))
    with pytest.raises(MissingInputFile):
        run_pipeline(config)
    assert not (tmp_path / 'out').exists()


def test_event_ids_restart_in_every_cell(synthetic_dataset, config):
    _, cells = read_grid(synthetic_dataset, config)
    # all cells in one batch
    result = identify_events(cells, config)
    obs = result.observations

    for definition in config.definitions:
        col = definition.event_column
        for grid_id, rows in obs.groupby('grid_id'):
            ids = rows[col]
            members = ids.notna().to_numpy()
            if not members.any():
                continue
            # ids are the run-length ids of the cell's own membership mask
            expected = rleid(members)[members]
            assert ids[members].to_numpy(dtype=np.int64).tolist() == expected.tolist()

        # every event is one contiguous block of one cell
        members = obs[obs[col].notna()]
        positions = members.reset_index()
        for (grid_id, event_id), block in positions.groupby(['grid_id', col]):
            index = block['index'].to_numpy()
            assert np.array_equal(index, np.arange(index[0], index[-1] + 1))
            assert (obs.loc[index, 'grid_id'] == grid_id).all()


class _FailingTable:
    def to_csv(self, *args, **kwargs):
        raise OSError('disk full')


def test_write_tables_leaves_no_partial_output(tmp_path):
    tables = {'first': pd.DataFrame({'a': [1, 2]}), 'second': _FailingTable()}
    paths = {'first': tmp_path / 'first.csv', 'second': tmp_path / 'second.csv'}

    with pytest.raises(OSError, match='disk full'):
        write_tables(tables, paths)
    assert list(tmp_path.iterdir()) == []


def test_write_tables_keeps_previous_output_on_failure(tmp_path):
    target = tmp_path / 'first.csv'
    pd.DataFrame({'a': [0]}).to_csv(target, index=False)

    with pytest.raises(OSError):
        write_tables({'first': pd.DataFrame({'a': [1, 2]}), 'second': _FailingTable()},
                     {'first': target, 'second': tmp_path / 'second.csv'})
    assert pd.read_csv(target)['a'].tolist() == [0]
    assert sorted(p.name for p in tmp_path.iterdir()) == ['first.csv']


# ============================================================================
# 测试 4: 命令行 (CLI)
# ============================================================================

def test_cli_run_and_summarize(netcdf_file, tmp_path):
    out = tmp_path / 'cli'
    assert main(['run', '--region', 'test', '--input', str(netcdf_file),
                 '--output-dir', str(out)]) == 0
    assert (out / 'data' / 'exeves_std_test.csv').exists()
    assert (out / 'tables' / 'test_event_properties.csv').exists()

    assert main(['summarize', '--region', 'test', '--output-dir', str(out),
                 '--definition', 'Q80']) == 0


def test_cli_missing_file_exits_with_error(tmp_path):
    code = main(['run', '--input', str(tmp_path / 'nope.nc'),
                 '--output-dir', str(tmp_path / 'out')])
    assert code == 1


def test_cli_without_command():
    assert main([]) == 1


def test_cli_summary_failure_writes_no_tables(netcdf_file, tmp_path, monkeypatch):
    def broken_report(*args, **kwargs):
        raise RuntimeError('summary failed')

    monkeypatch.setattr('exeves.report.build_report', broken_report)
    out = tmp_path / 'cli'
    with pytest.raises(RuntimeError, match='summary failed'):
        main(['run', '--region', 'test', '--input', str(netcdf_file),
              '--output-dir', str(out)])
    assert not out.exists()


def test_cli_skip_summary_writes_data_only(netcdf_file, tmp_path):
    out = tmp_path / 'cli'
    assert main(['run', '--region', 'test', '--input', str(netcdf_file),
                 '--output-dir', str(out), '--skip-summary']) == 0
    assert (out / 'data' / 'events_test.csv').exists()
    assert list((out / 'tables').glob('*.csv')) == []
