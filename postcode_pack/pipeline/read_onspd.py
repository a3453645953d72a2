"""Read current, located postcodes from an ONS Postcode Directory CSV."""

from __future__ import annotations

import csv
import math
from datetime import date
from pathlib import Path
from typing import Iterable

from postcode_pack.common.config_loader import PackSettings
from postcode_pack.common.errors import InputMalformedError, PackIOError
from postcode_pack.common.models import BoxAccumulator, GeoPoint, IngestResult, PostcodeRecord
from postcode_pack.common.time_utils import EPOCH_DATE, date_to_unix, parse_onspd_month
from postcode_pack.pipeline.coordinates import build_reprojector


def _resolve_postcode_column(header: list[str], candidates: Iterable[str]) -> str:
    for name in candidates:
        if name in header:
            return name
    raise InputMalformedError(f"Input has none of the postcode columns: {', '.join(candidates)}")


def _require_columns(header: list[str], names: Iterable[str]) -> None:
    missing = sorted({name for name in names if name not in header})
    if missing:
        raise InputMalformedError(f"Input is missing required columns: {', '.join(missing)}")


def _parse_float(value: str, column: str, line_num: int) -> float:
    try:
        parsed = float(value)
    except ValueError as exc:
        raise InputMalformedError(f"Unparseable {column} value {value!r} on line {line_num}") from exc
    if not math.isfinite(parsed):
        raise InputMalformedError(f"Non-finite {column} value {value!r} on line {line_num}")
    return parsed


def read_postcode_rows(rows: Iterable[dict], header: list[str], settings: PackSettings) -> IngestResult:
    columns = settings.columns
    coords = settings.coordinates
    postcode_column = _resolve_postcode_column(header, columns.postcode_candidates)
    _require_columns(header, [columns.lat, columns.long, columns.introduced, columns.terminated, coords.x_column, coords.y_column])
    reproject = build_reprojector(coords.source_epsg)

    records: list[PostcodeRecord] = []
    box = BoxAccumulator()
    total = 0
    terminated = 0
    excluded = 0
    last_update: date = EPOCH_DATE

    for line_num, row in enumerate(rows, start=2):
        total += 1
        postcode = row.get(postcode_column)
        if postcode is None:
            continue

        introduced = parse_onspd_month(row.get(columns.introduced))
        ended = parse_onspd_month(row.get(columns.terminated))
        if introduced is None or ended is not None:
            terminated += 1
            continue

        raw_lat = row.get(columns.lat)
        if raw_lat is None:
            continue
        if _parse_float(raw_lat, columns.lat, line_num) > columns.no_location_lat:
            continue

        raw_x = row.get(coords.x_column)
        raw_y = row.get(coords.y_column)
        if raw_x is None or raw_y is None:
            continue
        location = reproject(
            _parse_float(raw_x, coords.x_column, line_num),
            _parse_float(raw_y, coords.y_column, line_num),
        )

        if any(postcode.startswith(prefix) for prefix in settings.exclude_prefixes):
            excluded += 1
            continue

        if introduced > last_update:
            last_update = introduced
        box.add(location)
        records.append(PostcodeRecord(postcode=postcode, location=location))

    return IngestResult(
        records=records,
        box=box.box(),
        total=total,
        terminated=terminated,
        excluded=excluded,
        last_update=date_to_unix(last_update),
    )


def read_postcodes(path: Path, settings: PackSettings) -> IngestResult:
    """Read ``path`` and return accepted records with their bounding box.

    Raises PackIOError if the file cannot be opened and InputMalformedError for
    missing columns, broken CSV or unparseable coordinates.
    """
    try:
        with path.open("r", encoding="utf-8-sig", newline="") as f:
            reader = csv.DictReader(f)
            header = list(reader.fieldnames or [])
            if not header:
                raise InputMalformedError(f"Input file has no header row: {path}")
            return read_postcode_rows(reader, header, settings)
    except csv.Error as exc:
        raise InputMalformedError(f"Input file is not well formed: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise InputMalformedError(f"Input file is not UTF-8 text: {exc}") from exc
    except OSError as exc:
        raise PackIOError(f"Error reading postcode file {path}: {exc}") from exc
