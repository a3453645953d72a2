"""Run report aggregation."""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Iterable

from postcode_pack.common.fs import write_json
from postcode_pack.common.models import IngestResult
from postcode_pack.common.time_utils import unix_to_iso
from postcode_pack.pipeline.delta_pack import PACKED_KINDS, PackedRecord

SIZE_UNITS = ("Bytes", "KiB", "MiB", "GiB")


def human_size(n: int) -> str:
    value = float(n)
    unit = 0
    while unit < len(SIZE_UNITS) - 1 and value > 1024.0:
        unit += 1
        value /= 1024.0
    return f"{value:.3f} {SIZE_UNITS[unit]}"


def variant_counts(packed: Iterable[PackedRecord]) -> dict[str, int]:
    counts = Counter(item.kind for item in packed)
    return {kind: counts.get(kind, 0) for kind in PACKED_KINDS}


def build_run_summary(
    *,
    run_id: str,
    source: str,
    output: Path,
    ingest: IngestResult,
    packed: list[PackedRecord],
    stream_bytes: int,
    file_bytes: int,
) -> dict:
    return {
        "run_id": run_id,
        "source": source,
        "output": str(output),
        "status": "success",
        "counts": ingest.counts(),
        "bounding_box": ingest.box.to_dict(),
        "last_update": ingest.last_update,
        "last_update_date": unix_to_iso(ingest.last_update),
        "variants": variant_counts(packed),
        "stream_bytes": stream_bytes,
        "file_bytes": file_bytes,
        "file_size": human_size(file_bytes),
    }


def write_run_summary(path: Path, summary: dict) -> Path:
    write_json(path, summary)
    return path
