import pytest

from sail_routing.app.config import (
    FatalConfigurationError,
    IsochroneParams,
    JourneyConfig,
    RoutingConfig,
)
from sail_routing.core.config import RiskModel


def test_defaults_are_valid():
    config = RoutingConfig()
    config.validate()
    assert config.isochrone.time_step_seconds == 3600.0
    assert config.isochrone.executor_type == "sequential"
    assert str(config.journey.time_start_datetime) == "2024-01-01T00:00:00.000000000"


@pytest.mark.parametrize(
    "params, message",
    [
        (dict(time_step_hours=0.0), "time_step_hours"),
        (dict(heading_resolution_degrees=0.0), "heading_resolution_degrees"),
        (dict(heading_resolution_degrees=400.0), "heading_resolution_degrees"),
        (dict(max_steps=0), "max_steps"),
        (dict(tolerance_meters=-1.0), "tolerance_meters"),
        (dict(sector_width_degrees=0.0), "sector_width_degrees"),
        (dict(sector_width_degrees=720.0), "sector_width_degrees"),
        (dict(objectives=()), "objectives"),
        (dict(objectives=("time", "speed")), "objectives"),
        (dict(objectives=("time", "time")), "objectives"),
        (dict(maneuver_penalty=1.5), "maneuver_penalty"),
        (dict(max_frontier_size=0), "max_frontier_size"),
        (dict(arrival_window_steps=-1), "arrival_window_steps"),
        (dict(land_check_samples=-1), "land_check_samples"),
        (dict(expansion_chunk_size=0), "expansion_chunk_size"),
        (dict(executor_type="cluster"), "executor_type"),
        (dict(executor_type="thread", num_workers=0), "num_workers"),
    ],
)
def test_invalid_isochrone_params(params, message):
    config = RoutingConfig(isochrone=IsochroneParams(**params))
    with pytest.raises(FatalConfigurationError, match=message):
        config.validate()


def test_invalid_journey_and_risk():
    with pytest.raises(FatalConfigurationError, match="latitudes"):
        RoutingConfig(journey=JourneyConfig(lat_end=95.0)).validate()
    with pytest.raises(FatalConfigurationError, match="time_start"):
        RoutingConfig(journey=JourneyConfig(time_start="not a time")).validate()
    with pytest.raises(FatalConfigurationError, match="risk"):
        RoutingConfig(risk=RiskModel(reference_wind_speed_ms=0.0)).validate()


def test_all_problems_are_reported():
    config = RoutingConfig(isochrone=IsochroneParams(max_steps=0, tolerance_meters=0.0))
    with pytest.raises(FatalConfigurationError) as excinfo:
        config.validate()
    assert "max_steps" in str(excinfo.value)
    assert "tolerance_meters" in str(excinfo.value)


def test_fatal_configuration_error_is_a_value_error():
    assert issubclass(FatalConfigurationError, ValueError)
