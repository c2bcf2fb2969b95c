"""Parsing and validation of Two-Line Element (TLE) records."""

from __future__ import annotations

import calendar
import dataclasses
import datetime as dt
import json
import re
from typing import Iterator, List, Optional, Tuple, Union

LineInput = Union[str, bytes]

TLE_LINE_LENGTH = 69
_UNIX_EPOCH = dt.datetime(1970, 1, 1, tzinfo=dt.timezone.utc)
_ALPHA5_LETTERS = "ABCDEFGHJKLMNPQRSTUVWXYZ"
_EXPONENT_FIELD = re.compile(r"^([ +-]?)(\d{5})([ +-])(\d)$")


class ParseError(ValueError):
    """Raised when element text does not follow the fixed-column TLE format."""


@dataclasses.dataclass(frozen=True)
class ElementSet:
    """Mean orbital elements decoded from a TLE.

    Angles are kept in degrees and mean motion in revolutions per day, exactly
    as published; conversion to model units happens during constants
    derivation.
    """

    name: Optional[str]
    satnum: str
    catalog_number: int
    classification: str
    international_designator: str
    epoch: dt.datetime
    epoch_year: int
    epoch_day: float
    mean_motion_dot: float
    mean_motion_ddot: float
    bstar: float
    ephemeris_type: int
    element_set_number: int
    inclination_deg: float
    right_ascension_deg: float
    eccentricity: float
    argument_of_perigee_deg: float
    mean_anomaly_deg: float
    mean_motion: float
    revolution_number: int
    line1: str
    line2: str

    @property
    def epoch_millis(self) -> float:
        return (self.epoch - _UNIX_EPOCH).total_seconds() * 1000.0

    def as_text(self, three_line: bool = True) -> str:
        if three_line and self.name:
            return f"{self.name}\n{self.line1}\n{self.line2}\n"
        return f"{self.line1}\n{self.line2}\n"

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "catalog_number": self.catalog_number,
            "classification": self.classification,
            "international_designator": self.international_designator,
            "epoch": self.epoch.isoformat(),
            "mean_motion_dot": self.mean_motion_dot,
            "mean_motion_ddot": self.mean_motion_ddot,
            "bstar": self.bstar,
            "inclination_deg": self.inclination_deg,
            "right_ascension_deg": self.right_ascension_deg,
            "eccentricity": self.eccentricity,
            "argument_of_perigee_deg": self.argument_of_perigee_deg,
            "mean_anomaly_deg": self.mean_anomaly_deg,
            "mean_motion": self.mean_motion,
            "revolution_number": self.revolution_number,
        }


def compute_checksum(line: str) -> int:
    """Return the modulo-10 checksum of the first 68 columns of ``line``."""

    total = 0
    for ch in line[: TLE_LINE_LENGTH - 1]:
        if ch.isdigit():
            total += int(ch)
        elif ch == "-":
            total += 1
    return total % 10


def checksum(line: str) -> bool:
    """Validate the modulo-10 checksum in the last column."""
    line = line.rstrip()
    if len(line) != TLE_LINE_LENGTH:
        return False
    try:
        expected = int(line[-1])
    except ValueError:
        return False
    return compute_checksum(line) == expected


def _full_year(year2: int) -> int:
    # Two-digit years from 57 belong to the 1900s.
    return 1900 + year2 if year2 >= 57 else 2000 + year2


def epoch(line1: str) -> dt.datetime:
    """Parse epoch from line 1 into a timezone-aware UTC datetime."""

    year = _full_year(int(line1[18:20]))
    doy = float(line1[20:32])
    day_int = int(doy)
    frac = doy - day_int
    base = dt.datetime(year, 1, 1, tzinfo=dt.timezone.utc) + dt.timedelta(days=day_int - 1)
    return base + dt.timedelta(microseconds=round(frac * 86_400_000_000))


def decode_catalog_number(field: str) -> int:
    """Decode a 5-column catalog number, including the Alpha-5 extension."""

    field = field.strip()
    if not field:
        raise ParseError("empty catalog number")
    if field.isdigit():
        return int(field)
    head, tail = field[0].upper(), field[1:]
    if head not in _ALPHA5_LETTERS or not tail.isdigit() or len(field) != 5:
        raise ParseError(f"invalid catalog number {field!r}")
    return (_ALPHA5_LETTERS.index(head) + 10) * 10_000 + int(tail)


def _decode_line(value: LineInput, label: str) -> str:
    if isinstance(value, bytes):
        try:
            value = value.decode("ascii")
        except UnicodeDecodeError as exc:
            raise ParseError(f"{label} is not ASCII") from exc
    return value.strip()


def _float_field(line: str, start: int, end: int, label: str) -> float:
    raw = line[start:end].strip()
    try:
        return float(raw)
    except ValueError as exc:
        raise ParseError(f"non-numeric {label} field {raw!r}") from exc


def _int_field(line: str, start: int, end: int, label: str, default: Optional[int] = None) -> int:
    raw = line[start:end].strip()
    if not raw and default is not None:
        return default
    if not raw.isdigit():
        raise ParseError(f"non-numeric {label} field {raw!r}")
    return int(raw)


def _implied_decimal(raw: str, label: str) -> float:
    """Decode ``[sign]ddddd[sign]d`` into ``sign * 0.ddddd * 10**exp``."""

    match = _EXPONENT_FIELD.match(raw)
    if not match:
        raise ParseError(f"malformed exponent in {label} field {raw!r}")
    sign, mantissa, exp_sign, exponent = match.groups()
    value = float(f"0.{mantissa}e{'-' if exp_sign == '-' else ''}{exponent}")
    return -value if sign == "-" else value


def _check_domain(elements: ElementSet) -> None:
    if not 0.0 <= elements.eccentricity < 1.0:
        raise ParseError(f"eccentricity {elements.eccentricity} outside [0, 1)")
    if not 0.0 <= elements.inclination_deg <= 180.0:
        raise ParseError(f"inclination {elements.inclination_deg} outside [0, 180]")
    for label, value in (
        ("right ascension", elements.right_ascension_deg),
        ("argument of perigee", elements.argument_of_perigee_deg),
        ("mean anomaly", elements.mean_anomaly_deg),
    ):
        if not 0.0 <= value <= 360.0:
            raise ParseError(f"{label} {value} outside [0, 360]")
    if elements.mean_motion <= 0.0:
        raise ParseError(f"mean motion {elements.mean_motion} must be positive")


def parse(name: Optional[str], line1: LineInput, line2: LineInput) -> ElementSet:
    """Parse one element record into an :class:`ElementSet`.

    ``line1`` and ``line2`` may be given as text or ASCII bytes. Surrounding
    whitespace and line terminators are ignored; everything else must follow
    the fixed-column layout.
    """

    l1 = _decode_line(line1, "line 1")
    l2 = _decode_line(line2, "line 2")

    for label, line, prefix in (("line 1", l1, "1 "), ("line 2", l2, "2 ")):
        if len(line) != TLE_LINE_LENGTH:
            raise ParseError(f"{label} has {len(line)} columns, expected {TLE_LINE_LENGTH}")
        if not line.startswith(prefix):
            raise ParseError(f"{label} must start with {prefix!r}")
        if not checksum(line):
            raise ParseError(f"{label} checksum mismatch (expected {compute_checksum(line)})")

    satnum = l1[2:7]
    if satnum.strip() != l2[2:7].strip():
        raise ParseError("catalog numbers differ between lines")

    try:
        epoch_value = epoch(l1)
    except ValueError as exc:
        raise ParseError(f"invalid epoch field {l1[18:32]!r}") from exc
    day = _float_field(l1, 20, 32, "epoch day")
    last_day = 366 if calendar.isleap(_full_year(int(l1[18:20]))) else 365
    if not 1.0 <= day < last_day + 1:
        raise ParseError(f"epoch day {day} outside [1, {last_day + 1})")

    ecc_raw = l2[26:33]
    if not ecc_raw.strip().isdigit():
        raise ParseError(f"non-numeric eccentricity field {ecc_raw!r}")

    elements = ElementSet(
        name=name.strip() if name and name.strip() else None,
        satnum=satnum.strip(),
        catalog_number=decode_catalog_number(satnum),
        classification=l1[7].strip() or "U",
        international_designator=l1[9:17].strip(),
        epoch=epoch_value,
        epoch_year=_int_field(l1, 18, 20, "epoch year"),
        epoch_day=day,
        mean_motion_dot=_float_field(l1, 33, 43, "mean motion derivative"),
        mean_motion_ddot=_implied_decimal(l1[44:52], "mean motion second derivative"),
        bstar=_implied_decimal(l1[53:61], "bstar"),
        ephemeris_type=_int_field(l1, 62, 63, "ephemeris type", default=0),
        element_set_number=_int_field(l1, 64, 68, "element set number", default=0),
        inclination_deg=_float_field(l2, 8, 16, "inclination"),
        right_ascension_deg=_float_field(l2, 17, 25, "right ascension"),
        eccentricity=float("0." + ecc_raw.strip().zfill(7)),
        argument_of_perigee_deg=_float_field(l2, 34, 42, "argument of perigee"),
        mean_anomaly_deg=_float_field(l2, 43, 51, "mean anomaly"),
        mean_motion=_float_field(l2, 52, 63, "mean motion"),
        revolution_number=_int_field(l2, 63, 68, "revolution number", default=0),
        line1=l1,
        line2=l2,
    )
    _check_domain(elements)
    return elements


def iter_records(text: str) -> Iterator[Tuple[Optional[str], str, str]]:
    """Yield ``(name, line1, line2)`` for every record in a TLE catalog.

    Both the two-line and three-line layouts are understood, and a JSON object
    carrying ``line1``/``line2`` keys is accepted as a single record.
    """

    lines = [ln.strip() for ln in text.splitlines() if ln.strip()]
    found = False
    idx = 0
    while idx < len(lines):
        if lines[idx].startswith("1 ") and idx + 1 < len(lines) and lines[idx + 1].startswith("2 "):
            name: Optional[str] = None
            if idx - 1 >= 0 and not lines[idx - 1].startswith(("1 ", "2 ")):
                name = lines[idx - 1]
            found = True
            yield name, lines[idx], lines[idx + 1]
            idx += 2
        else:
            idx += 1

    if found:
        return
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError("could not locate a TLE line pair") from exc
    if not isinstance(data, dict) or "line1" not in data or "line2" not in data:
        raise ParseError("could not locate a TLE line pair")
    name_val = data.get("name")
    yield (None if name_val is None else str(name_val)), str(data["line1"]), str(data["line2"])


def parse_catalog(text: str) -> List[ElementSet]:
    """Parse every record in ``text``; the first malformed record aborts."""

    return [parse(name, line1, line2) for name, line1, line2 in iter_records(text)]


__all__ = [
    "ElementSet",
    "ParseError",
    "TLE_LINE_LENGTH",
    "checksum",
    "compute_checksum",
    "decode_catalog_number",
    "epoch",
    "iter_records",
    "parse",
    "parse_catalog",
]
