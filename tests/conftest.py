"""
共享测试夹具 (Shared Test Fixtures)

Synthetic gridded evaporation data shaped like the GLEAM product:
dims (lon, lat, time), numeric time axis with a CF ``units`` attribute.
"""

import numpy as np
import pandas as pd
import pytest
import xarray as xr

from exeves.config import ExEvEConfig


def make_dataset(
    n_years: int = 4,
    lons=(10.0, 10.5, 11.0),
    lats=(40.0, 40.5),
    start: str = '1999-01-01',
    seed: int = 42,
    units: str = None,
) -> xr.Dataset:
    """
    Seasonal evaporation with noise and a few embedded heat-driven bursts.

    Cell (lon index 0, lat index 1) is entirely missing and cell
    (lon index 2, lat index 0) is constant.
    """
    rng = np.random.default_rng(seed)
    dates = pd.date_range(start, periods=int(round(365.25 * n_years)), freq='D')
    doy = dates.dayofyear.to_numpy()
    seasonal = 2.0 + 1.5 * np.sin(2 * np.pi * (doy - 80) / 365.25)

    values = np.empty((len(lons), len(lats), len(dates)))
    for i in range(len(lons)):
        for j in range(len(lats)):
            values[i, j] = seasonal + rng.gamma(2.0, 0.25, len(dates))

    # 预埋事件 (embedded bursts)
    values[1, 0, 180:186] += 3.0
    values[1, 1, 900:904] += 2.5

    values[0, 1, :] = np.nan
    values[2, 0, :] = 1.5

    # 少量缺测 (sparse missing values)
    values[1, 1, rng.choice(len(dates), 20, replace=False)] = np.nan

    offsets = (dates - pd.Timestamp(start)).days.to_numpy()
    ds = xr.Dataset(
        {'E': (('lon', 'lat', 'time'), values)},
        coords={
            'lon': list(lons),
            'lat': list(lats),
            'time': ('time', offsets, {'units': units or f'days since {start}'}),
        },
        attrs={'title': 'Synthetic evaporation for tests'},
    )
    return ds


@pytest.fixture
def synthetic_dataset():
    return make_dataset()


@pytest.fixture
def config(tmp_path):
    return ExEvEConfig(region='test', output_dir=str(tmp_path / 'out'))


@pytest.fixture
def netcdf_file(tmp_path, synthetic_dataset):
    path = tmp_path / 'gleam_e_mm_test.nc'
    synthetic_dataset.to_netcdf(path)
    return path
