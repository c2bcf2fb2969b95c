from __future__ import annotations

import json

import pytest
from hypothesis import given, strategies as st

from orbitcast.elements import (
    ElementSet,
    ParseError,
    checksum,
    compute_checksum,
    decode_catalog_number,
    iter_records,
    parse,
    parse_catalog,
)

BASE_NAME = "ISS (ZARYA)"
BASE_LINE1 = "1 25544U 98067A   21245.53748218  .00003969  00000-0  81292-4 0  9995"
BASE_LINE2 = "2 25544  51.6442 320.2331 0003041 346.4163 145.5195 15.48587491300581"


def _finalize_tle_line(line: str) -> str:
    body = line[:68]
    return body + str(compute_checksum(body))


def _text_payload(include_name: bool, prefix_blanks: int, suffix_blanks: int, trailing_space: bool) -> str:
    lines = []
    lines.extend("" for _ in range(prefix_blanks))
    if include_name:
        lines.append(BASE_NAME + (" " if trailing_space else ""))
    lines.append(BASE_LINE1 + (" " if trailing_space else ""))
    lines.append(BASE_LINE2 + (" " if trailing_space else ""))
    lines.extend("" for _ in range(suffix_blanks))
    return "\n".join(lines)


@st.composite
def tle_payloads(draw) -> str:
    variant = draw(st.sampled_from(["text", "json"]))
    if variant == "json":
        payload = {"name": BASE_NAME, "line1": BASE_LINE1, "line2": BASE_LINE2}
        if draw(st.booleans()):
            payload["extra"] = "ignored"
        return json.dumps(payload)
    return _text_payload(
        include_name=draw(st.booleans()),
        prefix_blanks=draw(st.integers(min_value=0, max_value=3)),
        suffix_blanks=draw(st.integers(min_value=0, max_value=3)),
        trailing_space=draw(st.booleans()),
    )


@given(tle_payloads())
def test_catalog_parsing_handles_noise(payload: str) -> None:
    (elements,) = parse_catalog(payload)
    assert isinstance(elements, ElementSet)
    assert elements.catalog_number == 25544
    assert elements.line1 == BASE_LINE1
    assert elements.line2 == BASE_LINE2
    assert checksum(elements.line1)
    assert checksum(elements.line2)


def test_fields_are_decoded_in_published_units() -> None:
    elements = parse(BASE_NAME, BASE_LINE1, BASE_LINE2)
    assert elements.name == BASE_NAME
    assert elements.classification == "U"
    assert elements.international_designator == "98067A"
    assert elements.epoch_year == 21
    assert elements.epoch_day == pytest.approx(245.53748218)
    assert elements.mean_motion_dot == pytest.approx(0.00003969)
    assert elements.mean_motion_ddot == 0.0
    assert elements.bstar == pytest.approx(0.81292e-4)
    assert elements.element_set_number == 999
    assert elements.inclination_deg == pytest.approx(51.6442)
    assert elements.right_ascension_deg == pytest.approx(320.2331)
    assert elements.eccentricity == pytest.approx(0.0003041)
    assert elements.argument_of_perigee_deg == pytest.approx(346.4163)
    assert elements.mean_anomaly_deg == pytest.approx(145.5195)
    assert elements.mean_motion == pytest.approx(15.48587491)
    assert elements.revolution_number == 30058
    assert elements.epoch.isoformat().startswith("2021-09-02T12:53:")


def test_bytes_input_matches_text_input() -> None:
    from_bytes = parse(None, BASE_LINE1.encode("ascii"), BASE_LINE2.encode("ascii") + b"\r\n")
    assert from_bytes == parse(None, BASE_LINE1, BASE_LINE2)
    assert from_bytes.name is None


def test_negative_bstar_exponent() -> None:
    line1 = "1 25544U 98067A   20194.88612269 -.00002218  00000-0 -31515-4 0  9992"
    line2 = "2 25544  51.6461 221.2784 0001413  89.1723 280.4612 15.49507896236008"
    elements = parse(None, line1, line2)
    assert elements.bstar == pytest.approx(-0.31515e-4)
    assert elements.mean_motion_dot == pytest.approx(-0.00002218)


def test_checksum_mismatch_is_rejected() -> None:
    bad = BASE_LINE1[:-1] + str((int(BASE_LINE1[-1]) + 1) % 10)
    with pytest.raises(ParseError, match="checksum"):
        parse(None, bad, BASE_LINE2)


def test_short_line_is_rejected() -> None:
    with pytest.raises(ParseError, match="columns"):
        parse(None, BASE_LINE1[:60], BASE_LINE2)


def test_wrong_line_prefix_is_rejected() -> None:
    with pytest.raises(ParseError, match="must start"):
        parse(None, BASE_LINE2, BASE_LINE1)


def test_non_numeric_field_is_rejected() -> None:
    line2 = _finalize_tle_line(BASE_LINE2[:8] + " 51.6x42" + BASE_LINE2[16:])
    with pytest.raises(ParseError, match="inclination"):
        parse(None, BASE_LINE1, line2)


def test_malformed_exponent_is_rejected() -> None:
    line1 = _finalize_tle_line(BASE_LINE1[:53] + " 8129.-4" + BASE_LINE1[61:])
    with pytest.raises(ParseError, match="exponent"):
        parse(None, line1, BASE_LINE2)


def test_catalog_number_mismatch_is_rejected() -> None:
    line2 = _finalize_tle_line("2 25545" + BASE_LINE2[7:])
    with pytest.raises(ParseError, match="differ"):
        parse(None, BASE_LINE1, line2)


def test_out_of_domain_inclination_is_rejected() -> None:
    line2 = _finalize_tle_line(BASE_LINE2[:8] + "191.6442" + BASE_LINE2[16:])
    with pytest.raises(ParseError, match="inclination"):
        parse(None, BASE_LINE1, line2)


def test_alpha5_catalog_numbers() -> None:
    assert decode_catalog_number("A0000") == 100000
    assert decode_catalog_number("J2931") == 182931
    assert decode_catalog_number("Z9999") == 339999
    assert decode_catalog_number("  123") == 123
    with pytest.raises(ParseError):
        decode_catalog_number("I0000")


def test_iter_records_reads_multiple_objects() -> None:
    geo1 = "1 28626U 05008A   06176.46683397 -.00000205  00000-0  10000-3 0  2190"
    geo2 = "2 28626   0.0019 286.9433 0000335  13.7918  55.6504  1.00270176  4891"
    text = f"{BASE_NAME}\n{BASE_LINE1}\n{BASE_LINE2}\n{geo1}\n{geo2}\n"
    records = list(iter_records(text))
    assert [r[0] for r in records] == [BASE_NAME, None]
    assert [parse(*r).catalog_number for r in records] == [25544, 28626]


def test_iter_records_without_pair_fails() -> None:
    with pytest.raises(ParseError):
        list(iter_records("nothing to see here"))


def _with_epoch(field: str) -> str:
    return _finalize_tle_line(BASE_LINE1[:18] + field + BASE_LINE1[32:])


def test_day_366_requires_leap_year() -> None:
    with pytest.raises(ParseError, match="epoch day"):
        parse(None, _with_epoch("21366.50000000"), BASE_LINE2)
    leap = parse(None, _with_epoch("20366.50000000"), BASE_LINE2)
    assert leap.epoch.isoformat() == "2020-12-31T12:00:00+00:00"


def test_day_zero_is_rejected() -> None:
    with pytest.raises(ParseError, match="epoch day"):
        parse(None, _with_epoch("21000.50000000"), BASE_LINE2)
