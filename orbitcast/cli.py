"""Command line interface for parsing and propagating element sets."""
from __future__ import annotations

import argparse
import dataclasses
import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Sequence

from orbitcast.config import LOG_LEVELS, EngineConfig, load_config
from orbitcast.elements import ElementSet, ParseError, parse_catalog
from orbitcast.logging import configure_logging, get_logger
from propagate.constants import GravityModel, ModelError
from propagate.frames import Frame, RenderFrame
from propagate.service import PropagationError, propagate_range
from registry.store import Registry, RegistryError, create_vector_array

LOGGER = get_logger("cli")


def parse_datetime(value: str) -> datetime:
    try:
        dt = datetime.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid datetime '{value}'") from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timestamp_millis(value: str) -> float:
    """Accept Unix milliseconds or an ISO-8601 instant (UTC when naive)."""

    try:
        return float(value)
    except ValueError:
        return parse_datetime(value).timestamp() * 1000.0


def parse_step(value: str) -> timedelta:
    v = value.strip().lower()
    if v.startswith("pt"):
        v = v[2:]
    units = {"h": "hours", "m": "minutes", "s": "seconds"}
    try:
        if v and v[-1] in units:
            return timedelta(**{units[v[-1]]: float(v[:-1])})
        return timedelta(seconds=float(v))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid step '{value}'") from exc


def _load_elements(path: Path) -> List[ElementSet]:
    text = path.read_text(encoding="utf-8")
    return parse_catalog(text)


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("tle_file", type=Path, help="File with 2-line or 3-line element records")
    parser.add_argument("--log-level", default=None, choices=LOG_LEVELS,
                        help="Logging verbosity (default: ORBITCAST_LOG_LEVEL or INFO)")


def _run_parse(ns: argparse.Namespace, config: EngineConfig) -> int:
    elements = _load_elements(ns.tle_file)
    print(json.dumps([item.as_dict() for item in elements], indent=2))
    return 0


def _query_at(registry: Registry, elements: Sequence[ElementSet], millis: float) -> tuple[list, int]:
    rows = []
    exit_code = 0
    for item in elements:
        object_id = item.catalog_number
        row: dict = {"id": object_id, "name": item.name}
        try:
            if object_id not in registry:
                registry.register(object_id, item)
            position = create_vector_array()
            velocity = create_vector_array()
            prediction = registry.query(object_id, millis, position, velocity)
        except (RegistryError, PropagationError) as exc:
            LOGGER.error("query_failed", extra={"object_id": object_id, "reason": str(exc)})
            row["error"] = str(exc)
            exit_code = 1
        else:
            row["minutes_since_epoch"] = prediction.minutes_since_epoch
            row["position"] = position
            row["velocity"] = velocity
        rows.append(row)
    return rows, exit_code


def _run_propagate(ns: argparse.Namespace, config: EngineConfig) -> int:
    elements = _load_elements(ns.tle_file)
    frame = Frame.from_string(ns.frame)

    if ns.at is not None:
        render = RenderFrame(ns.scale if ns.scale is not None else config.render_scale)
        registry = Registry(config, frame=frame, render=render)
        rows, exit_code = _query_at(registry, elements, ns.at)
        print(json.dumps({"timestamp_millis": ns.at, "frame": frame.value, "objects": rows}, indent=2))
        return exit_code

    if ns.start is None or ns.end is None or ns.step is None:
        print("error: give --at, or all of --start/--end/--step", file=sys.stderr)
        return 2

    registry = Registry(config)
    results = []
    exit_code = 0
    for item in elements:
        try:
            constants = registry.derive(item)
            result = propagate_range(constants, start=ns.start, end=ns.end, step=ns.step,
                                     frame=frame, decay_altitude_km=config.decay_altitude_km)
        except (ModelError, PropagationError) as exc:
            LOGGER.error("range_failed", extra={"catalog_number": item.catalog_number, "reason": str(exc)})
            results.append({"catalog_number": item.catalog_number, "frame": frame.value,
                            "error": str(exc)})
            exit_code = 1
        else:
            results.append(result.as_dict())
    print(json.dumps(results, indent=2))
    return exit_code


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="orbitcast", description="SGP4 element parsing and propagation")
    subparsers = parser.add_subparsers(dest="command")

    parse_cmd = subparsers.add_parser("parse", help="Validate element records and print them as JSON")
    _add_common(parse_cmd)
    parse_cmd.set_defaults(handler=_run_parse)

    prop = subparsers.add_parser("propagate", help="Propagate element records")
    _add_common(prop)
    prop.add_argument("--at", type=parse_timestamp_millis, default=None,
                      help="Query instant (Unix milliseconds or ISO-8601); prints render-frame vectors")
    prop.add_argument("--start", type=parse_datetime, help="Start time (ISO-8601, default UTC)")
    prop.add_argument("--end", type=parse_datetime, help="End time (ISO-8601, default UTC)")
    prop.add_argument("--step", type=parse_step, help="Step duration (seconds, e.g. 60 or PT5M)")
    prop.add_argument("--frame", default="teme", choices=[f.value for f in Frame], help="Native output frame")
    prop.add_argument("--scale", type=float, default=None, help="Render units per kilometre")
    prop.add_argument("--gravity", default=None, choices=[g.value for g in GravityModel],
                      help="Gravity constants (default: ORBITCAST_GRAVITY_MODEL or wgs72)")
    prop.set_defaults(handler=_run_propagate)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    ns = parser.parse_args(argv)
    if not hasattr(ns, "handler"):
        parser.print_help()
        return 1

    try:
        config = load_config()
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    if getattr(ns, "gravity", None):
        config = dataclasses.replace(config, gravity_model=ns.gravity)
    configure_logging(ns.log_level or config.log_level, force=True)

    try:
        return ns.handler(ns, config)
    except FileNotFoundError as exc:
        LOGGER.error("input_missing", extra={"path": str(exc.filename)})
        return 2
    except (ParseError, ModelError, PropagationError) as exc:
        LOGGER.error("run_failed", extra={"reason": str(exc)})
        print(f"error: {exc}", file=sys.stderr)
        return 2


def entrypoint() -> None:
    sys.exit(main())


__all__ = ["build_parser", "main", "entrypoint", "parse_datetime", "parse_step", "parse_timestamp_millis"]
