"""End-to-end ONSPD to UKPP conversion."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from postcode_pack.common.config_loader import PackSettings
from postcode_pack.common.deterministic import sort_by_postcode
from postcode_pack.common.errors import InputMalformedError, PipelineError
from postcode_pack.common.logging import log_event
from postcode_pack.pipeline.assemble import write_pack_file
from postcode_pack.pipeline.bucket_index import build_bucket_index
from postcode_pack.pipeline.delta_pack import pack_postcodes
from postcode_pack.pipeline.fetch import resolve_input
from postcode_pack.pipeline.read_onspd import read_postcodes
from postcode_pack.pipeline.reports import build_run_summary, human_size


@contextmanager
def _stage(logger: logging.Logger, run_id: str, stage: str, fields: dict) -> Iterator[dict]:
    started = time.monotonic()
    log_event(logger, f"{stage} start", run_id=run_id, stage=stage, event="STAGE_START", status="ok")
    try:
        yield fields
    except PipelineError as exc:
        log_event(
            logger,
            f"{stage} failed: {exc}",
            run_id=run_id,
            stage=stage,
            event="STAGE_FAIL",
            status="error",
            error_code=exc.error_code,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        raise
    log_event(
        logger,
        f"{stage} end",
        run_id=run_id,
        stage=stage,
        event="STAGE_END",
        status="ok",
        duration_ms=int((time.monotonic() - started) * 1000),
        **fields,
    )


def run_repack(
    source: str,
    output: Path,
    settings: PackSettings,
    *,
    logger: logging.Logger,
    run_id: str,
    cache_dir: Path,
) -> dict:
    """Convert ``source`` into a pack file at ``output`` and return the run summary."""
    with _stage(logger, run_id, "fetch", {}):
        input_path = resolve_input(source, cache_dir, settings.download)

    with _stage(logger, run_id, "read", {}) as fields:
        ingest = read_postcodes(input_path, settings)
        if not ingest.records:
            raise InputMalformedError(f"No current postcodes with a known location in {input_path}")
        box = ingest.box.require_non_degenerate()
        fields.update(rows_in=ingest.total, rows_out=len(ingest.records))
    log_event(
        logger,
        (
            f"{ingest.total} entries, {ingest.skipped} skipped "
            f"({ingest.terminated} terminated, {ingest.excluded} excluded)"
        ),
        run_id=run_id,
        stage="read",
        event="READ_COUNTS",
        status="ok",
    )
    with _stage(logger, run_id, "sort", {}) as fields:
        records = sort_by_postcode(ingest.records)
        fields.update(rows_out=len(records))

    with _stage(logger, run_id, "pack", {}) as fields:
        packed = pack_postcodes(records, box)
        fields.update(rows_in=len(records), rows_out=len(packed))

    with _stage(logger, run_id, "index", {}) as fields:
        offsets = build_bucket_index(records, packed)
        stream_bytes = offsets[-1]
        fields.update(bytes_out=stream_bytes)

    with _stage(logger, run_id, "write", {}) as fields:
        file_bytes = write_pack_file(output, ingest.last_update, box, offsets, packed)
        fields.update(bytes_out=file_bytes)
    log_event(logger, f"Total file size: {human_size(file_bytes)}", run_id=run_id, stage="write", event="PACK_WRITTEN", status="ok")

    return build_run_summary(
        run_id=run_id,
        source=source,
        output=output,
        ingest=ingest,
        packed=packed,
        stream_bytes=stream_bytes,
        file_bytes=file_bytes,
    )
