from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

import pytest

from orbitcast.elements import parse
from propagate.constants import derive
from propagate.frames import Frame
from propagate.service import (
    DecayedError,
    NumericalError,
    PropagationError,
    PropagationState,
    _raise_for_code,
    initial_state,
    propagate,
    propagate_range,
)

ISS_LINE1 = "1 25544U 98067A   21245.53748218  .00003969  00000-0  81292-4 0  9995"
ISS_LINE2 = "2 25544  51.6442 320.2331 0003041 346.4163 145.5195 15.48587491300581"
GEO_LINE1 = "1 28626U 05008A   06176.46683397 -.00000205  00000-0  10000-3 0  2190"
GEO_LINE2 = "2 28626   0.0019 286.9433 0000335  13.7918  55.6504  1.00270176  4891"

MINUTES_PER_MONTH = 30 * 1440.0


@pytest.fixture
def iss_constants():
    return derive(parse("ISS (ZARYA)", ISS_LINE1, ISS_LINE2))


@pytest.fixture
def geo_constants():
    return derive(parse(None, GEO_LINE1, GEO_LINE2))


def test_leo_radius_near_epoch(iss_constants) -> None:
    for minutes in (0.0, 45.0, 90.0, -90.0):
        prediction = propagate(iss_constants, None, minutes)
        assert 6700.0 < prediction.radius_km < 6900.0
        assert prediction.minutes_since_epoch == minutes
        speed = math.sqrt(sum(c * c for c in prediction.velocity_km_s))
        assert 7.0 < speed < 8.2


def test_propagation_is_deterministic(iss_constants) -> None:
    first = propagate(iss_constants, None, 1234.5)
    second = propagate(iss_constants, None, 1234.5)
    assert first.position_km == second.position_km
    assert first.velocity_km_s == second.velocity_km_s


def test_position_moves_over_time(iss_constants) -> None:
    start = propagate(iss_constants, None, 0.0).position_km
    later = propagate(iss_constants, None, 20.0).position_km
    assert math.dist(start, later) > 1000.0


def test_long_range_decay_is_reported_not_hidden(iss_constants) -> None:
    decayed = None
    minutes = 0.0
    while minutes < 60 * 12 * MINUTES_PER_MONTH:
        try:
            prediction = propagate(iss_constants, None, minutes)
        except DecayedError as exc:
            decayed = exc
            break
        assert prediction.radius_km >= iss_constants.earth_radius_km
        minutes += MINUTES_PER_MONTH
    assert decayed is not None
    assert decayed.code in (1, 6)
    assert decayed.minutes == minutes


def test_decay_altitude_threshold(iss_constants) -> None:
    with pytest.raises(DecayedError, match="decay threshold"):
        propagate(iss_constants, None, 0.0, decay_altitude_km=5000.0)


def test_non_finite_time_is_numerical_error(iss_constants) -> None:
    with pytest.raises(NumericalError):
        propagate(iss_constants, None, math.nan)


@pytest.mark.parametrize(
    "code,expected",
    [(1, DecayedError), (6, DecayedError), (2, NumericalError), (3, NumericalError), (4, NumericalError)],
)
def test_error_code_mapping(code, expected) -> None:
    with pytest.raises(expected) as excinfo:
        _raise_for_code(code, 12.0)
    assert isinstance(excinfo.value, PropagationError)
    assert excinfo.value.code == code


def test_near_earth_objects_are_stateless(iss_constants) -> None:
    assert initial_state(iss_constants) is None


def test_deep_space_state_tracks_evaluations(geo_constants) -> None:
    state = initial_state(geo_constants)
    assert state is not None
    prediction = propagate(geo_constants, state, 720.0)
    assert prediction.radius_km == pytest.approx(42164.0, rel=5e-3)
    assert state.evaluations == 1
    assert state.last_minutes == 720.0
    propagate(geo_constants, state, 1440.0)
    assert state == PropagationState(evaluations=2, last_minutes=1440.0)


def test_deep_space_order_independence(geo_constants) -> None:
    fresh = derive(parse(None, GEO_LINE1, GEO_LINE2))
    expected = propagate(fresh, initial_state(fresh), 1440.0)

    state = initial_state(geo_constants)
    propagate(geo_constants, state, 4320.0)
    propagate(geo_constants, state, -600.0)
    actual = propagate(geo_constants, state, 1440.0)
    for got, want in zip(actual.position_km, expected.position_km):
        assert got == pytest.approx(want, abs=1e-6)


def test_propagate_range_samples_inclusive(iss_constants) -> None:
    start = datetime.fromtimestamp(iss_constants.epoch_millis / 1000.0, timezone.utc)
    result = propagate_range(
        iss_constants,
        start=start,
        end=start + timedelta(minutes=10),
        step=timedelta(minutes=5),
    )
    assert len(result.samples) == 3
    assert result.catalog_number == 25544
    assert result.step == timedelta(minutes=5)
    payload = result.as_dict()
    assert payload["frame"] == "teme"
    assert payload["step_seconds"] == 300.0
    assert len(payload["samples"][0]["position_km"]) == 3


def test_propagate_range_ecef_preserves_radius(iss_constants) -> None:
    start = datetime.fromtimestamp(iss_constants.epoch_millis / 1000.0, timezone.utc)
    kwargs = dict(start=start, end=start + timedelta(minutes=30), step=timedelta(minutes=15))
    teme = propagate_range(iss_constants, **kwargs)
    ecef = propagate_range(iss_constants, frame=Frame.ECEF, **kwargs)
    for a, b in zip(teme.samples, ecef.samples):
        assert math.hypot(*a.state.position_km) == pytest.approx(math.hypot(*b.state.position_km))
        assert a.state.position_km[2] == pytest.approx(b.state.position_km[2])


def test_propagate_range_rejects_naive_and_bad_steps(iss_constants) -> None:
    aware = datetime(2021, 9, 2, tzinfo=timezone.utc)
    with pytest.raises(ValueError):
        propagate_range(iss_constants, start=datetime(2021, 9, 2), end=aware, step=timedelta(minutes=1))
    with pytest.raises(ValueError):
        propagate_range(iss_constants, start=aware, end=aware, step=timedelta(0))
    with pytest.raises(ValueError):
        propagate_range(iss_constants, start=aware, end=aware - timedelta(minutes=1), step=timedelta(minutes=1))
