"""Derivation of time-invariant SGP4 constants from an element set."""
from __future__ import annotations

import datetime as dt
import enum
import math
from dataclasses import dataclass, field

from sgp4.api import SGP4_ERRORS, WGS72, WGS72OLD, WGS84, Satrec

from orbitcast.elements import ElementSet

MINUTES_PER_DAY = 1440.0
# Mean motion conversion: revolutions/day -> radians/minute.
XPDOTP = MINUTES_PER_DAY / (2.0 * math.pi)
DEG2RAD = math.pi / 180.0
# SGP4 epochs count days from 1949 December 31 00:00 UT.
_SGP4_EPOCH0 = dt.date(1949, 12, 31)


class GravityModel(str, enum.Enum):
    """Earth gravity constants accepted by ``Satrec.sgp4init``."""

    WGS72OLD = "wgs72old"
    WGS72 = "wgs72"
    WGS84 = "wgs84"

    @classmethod
    def from_string(cls, value: str) -> "GravityModel":
        try:
            return cls(value.lower())
        except ValueError as exc:
            raise ValueError(f"Unknown gravity model '{value}'") from exc

    @property
    def whichconst(self) -> int:
        return {
            GravityModel.WGS72OLD: WGS72OLD,
            GravityModel.WGS72: WGS72,
            GravityModel.WGS84: WGS84,
        }[self]


class ModelError(ValueError):
    """Raised when an element set cannot initialise the SGP4 model."""

    def __init__(self, message: str, code: int = 0) -> None:
        super().__init__(message)
        self.code = code


@dataclass(frozen=True)
class PropagationConstants:
    """Initialised SGP4 record plus summaries of the orbit it describes.

    The record is built once per element set. Altitudes are measured from
    the model's equatorial Earth radius.
    """

    catalog_number: int
    epoch_millis: float
    gravity: GravityModel
    opsmode: str
    method: str
    semi_major_axis_km: float
    perigee_altitude_km: float
    apogee_altitude_km: float
    period_minutes: float
    earth_radius_km: float
    satrec: Satrec = field(repr=False, compare=False)

    @property
    def deep_space(self) -> bool:
        return self.method == "d"


def sgp4_epoch(elements: ElementSet) -> float:
    """Return the element epoch as days since 1949-12-31 00:00 UT."""

    year2 = elements.epoch_year
    year = 1900 + year2 if year2 >= 57 else 2000 + year2
    whole_days = (dt.date(year, 1, 1) - _SGP4_EPOCH0).days
    return whole_days + elements.epoch_day - 1.0


def derive(
    elements: ElementSet,
    *,
    gravity: GravityModel = GravityModel.WGS72,
    opsmode: str = "i",
    min_perigee_altitude_km: float = 0.0,
) -> PropagationConstants:
    """Initialise SGP4 for ``elements``.

    Raises :class:`ModelError` if the library rejects the elements or if the
    resulting perigee lies below ``min_perigee_altitude_km``.
    """

    sat = Satrec()
    sat.sgp4init(
        gravity.whichconst,
        opsmode,
        elements.catalog_number,
        sgp4_epoch(elements),
        elements.bstar,
        elements.mean_motion_dot / (XPDOTP * MINUTES_PER_DAY),
        elements.mean_motion_ddot / (XPDOTP * MINUTES_PER_DAY * MINUTES_PER_DAY),
        elements.eccentricity,
        elements.argument_of_perigee_deg * DEG2RAD,
        elements.inclination_deg * DEG2RAD,
        elements.mean_anomaly_deg * DEG2RAD,
        elements.mean_motion / XPDOTP,
        elements.right_ascension_deg * DEG2RAD,
    )
    if sat.error != 0:
        message = SGP4_ERRORS.get(sat.error, f"SGP4 error code {sat.error}")
        raise ModelError(f"satellite {elements.catalog_number}: {message}", code=sat.error)

    if sat.no_kozai <= 0.0:
        raise ModelError(f"satellite {elements.catalog_number}: non-positive mean motion", code=2)
    # a, altp and alta are in Earth radii on both the compiled and the
    # pure-Python record.
    radius_km = sat.radiusearthkm
    semi_major_km = sat.a * radius_km
    perigee_km = sat.altp * radius_km
    apogee_km = sat.alta * radius_km
    period = 2.0 * math.pi / sat.no_kozai

    if not all(math.isfinite(v) for v in (semi_major_km, perigee_km, apogee_km, period)):
        raise ModelError(f"satellite {elements.catalog_number}: singular orbit summary")
    if perigee_km < min_perigee_altitude_km:
        raise ModelError(
            f"satellite {elements.catalog_number}: perigee altitude {perigee_km:.1f} km "
            f"below minimum {min_perigee_altitude_km:.1f} km",
            code=5,
        )

    return PropagationConstants(
        catalog_number=elements.catalog_number,
        epoch_millis=elements.epoch_millis,
        gravity=gravity,
        opsmode=opsmode,
        method=str(sat.method),
        semi_major_axis_km=semi_major_km,
        perigee_altitude_km=perigee_km,
        apogee_altitude_km=apogee_km,
        period_minutes=period,
        earth_radius_km=radius_km,
        satrec=sat,
    )


__all__ = [
    "GravityModel",
    "ModelError",
    "PropagationConstants",
    "derive",
    "sgp4_epoch",
]
