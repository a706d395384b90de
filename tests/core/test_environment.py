import numpy as np
import pytest
import xarray as xr

from sail_routing.core.environment import (
    DatasetField,
    EnvironmentField,
    EnvironmentSample,
    OutOfCoverage,
    UniformField,
    prepare_currents,
    prepare_winds,
    sample_environment,
)
from sail_routing.core.routes import Position

from conftest import TIME_START


def _winds(num_times=2):
    """Eastward wind growing linearly with longitude and by 1 m/s per hour."""
    lon = np.linspace(-10.0, 10.0, 21)
    lat = np.linspace(-5.0, 5.0, 11)
    time = TIME_START + np.arange(num_times) * np.timedelta64(1, "h")
    uw = lon[None, None, :] + np.arange(num_times)[:, None, None] + 0.0 * lat[None, :, None]
    return xr.Dataset(
        {
            "eastward_wind": (("time", "latitude", "longitude"), uw),
            "northward_wind": (("time", "latitude", "longitude"), np.ones_like(uw)),
        },
        coords={"time": time, "latitude": lat, "longitude": lon},
    )


def _currents():
    lon = np.linspace(-10.0, 10.0, 5)
    lat = np.linspace(-5.0, 5.0, 5)
    uo = np.full((1, lat.size, lon.size), 0.5)
    uo[0, :, 0] = np.nan  # land in the western column
    return xr.Dataset(
        {
            "uo": (("time", "latitude", "longitude"), uo),
            "vo": (("time", "latitude", "longitude"), np.zeros_like(uo)),
        },
        coords={"time": [TIME_START], "latitude": lat, "longitude": lon},
    )


def test_environment_sample_properties():
    sample = EnvironmentSample(wind_u=0.0, wind_v=-10.0, current_u=1.0, current_v=0.0)
    assert np.isclose(sample.wind_speed_ms, 10.0)
    assert np.isclose(sample.wind_direction_degrees, 180.0)
    assert np.isclose(sample.current_speed_ms, 1.0)
    assert sample.wind_over_water == (-1.0, -10.0)


def test_uniform_field_is_an_environment_field():
    assert isinstance(UniformField(), EnvironmentField)
    assert isinstance(DatasetField(prepare_winds(_winds())), EnvironmentField)


def test_uniform_field_sample():
    field = UniformField(wind_u=1.0, wind_v=2.0, current_u=0.1, current_v=0.2)
    sample = field.sample(Position(lon=0.0, lat=0.0), TIME_START)
    assert sample == EnvironmentSample(1.0, 2.0, 0.1, 0.2)


def test_uniform_field_coverage():
    field = UniformField(
        wind_u=1.0,
        lon_bounds=(-1.0, 1.0),
        lat_bounds=(-1.0, 1.0),
        time_range=(TIME_START, TIME_START + np.timedelta64(1, "D")),
    )
    field.sample(Position(lon=0.5, lat=0.5), TIME_START)
    with pytest.raises(OutOfCoverage):
        field.sample(Position(lon=2.0, lat=0.0), TIME_START)
    with pytest.raises(OutOfCoverage):
        field.sample(Position(lon=0.0, lat=0.0), TIME_START + np.timedelta64(2, "D"))

    wind_u, _, _, _, covered = field.sample_many(
        np.array([0.0, 2.0]), np.array([0.0, 0.0]), np.array([TIME_START, TIME_START])
    )
    assert covered.tolist() == [True, False]
    assert wind_u.tolist() == [1.0, 0.0]


def test_out_of_coverage_is_a_lookup_error():
    assert issubclass(OutOfCoverage, LookupError)


class _SampleOnlyField:
    """Field without sample_many, covering the northern hemisphere only."""

    def sample(self, position, time):
        if position.lat < 0:
            raise OutOfCoverage("south")
        return EnvironmentSample(wind_u=position.lat, wind_v=0.0)


def test_sample_environment_falls_back_to_sample():
    wind_u, wind_v, current_u, current_v, covered = sample_environment(
        _SampleOnlyField(), [0.0, 0.0, 0.0], [1.0, -1.0, 2.0], TIME_START
    )
    assert covered.tolist() == [True, False, True]
    assert wind_u.tolist() == [1.0, 0.0, 2.0]
    assert np.all(current_u == 0.0)


def test_prepare_renames_to_standard_names():
    winds = prepare_winds(_winds())
    assert {"lon", "lat", "time", "uw", "vw"} <= set(winds.variables)
    currents = prepare_currents(_currents())
    assert {"lon", "lat", "time", "uo", "vo"} <= set(currents.variables)


def test_dataset_field_interpolates_in_space_and_time():
    field = DatasetField(winds=prepare_winds(_winds()))
    sample = field.sample(Position(lon=2.5, lat=0.3), TIME_START + np.timedelta64(30, "m"))
    assert np.isclose(sample.wind_u, 3.0)
    assert np.isclose(sample.wind_v, 1.0)
    assert sample.current_u == 0.0


def test_dataset_field_coverage():
    field = DatasetField(winds=prepare_winds(_winds()))
    with pytest.raises(OutOfCoverage):
        field.sample(Position(lon=11.0, lat=0.0), TIME_START)
    with pytest.raises(OutOfCoverage):
        field.sample(Position(lon=0.0, lat=0.0), TIME_START + np.timedelta64(2, "h"))
    *_, covered = field.sample_many(
        np.array([0.0, 20.0, 0.0]),
        np.array([0.0, 0.0, 6.0]),
        np.array([TIME_START] * 3),
    )
    assert covered.tolist() == [True, False, False]


def test_dataset_field_with_single_time_is_static():
    field = DatasetField(winds=prepare_winds(_winds(num_times=1)))
    sample = field.sample(Position(lon=1.0, lat=0.0), TIME_START + np.timedelta64(10, "D"))
    assert np.isclose(sample.wind_u, 1.0)


def test_dataset_field_currents_nan_is_zero():
    field = DatasetField(winds=prepare_winds(_winds()), currents=prepare_currents(_currents()))
    wind_u, wind_v, current_u, current_v, covered = field.sample_many(
        np.array([5.0, -10.0]), np.array([0.0, 0.0]), np.array([TIME_START] * 2)
    )
    assert covered.tolist() == [True, True]
    assert np.isclose(current_u[0], 0.5)
    assert current_u[1] == 0.0
    assert np.all(np.isfinite(current_v))


def test_dataset_field_requires_standard_names():
    with pytest.raises(ValueError):
        DatasetField(winds=_winds())
