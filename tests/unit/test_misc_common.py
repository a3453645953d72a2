import json
import logging
import stat
from datetime import date
from pathlib import Path

import pytest

from postcode_pack.common.deterministic import sort_by_postcode
from postcode_pack.common.fs import atomic_binary_writer, write_bytes_atomic
from postcode_pack.common.ids import generate_run_id
from postcode_pack.common.logging import JsonLineFormatter
from postcode_pack.common.models import GeoPoint, PostcodeRecord
from postcode_pack.common.time_utils import date_to_unix, parse_onspd_month
from postcode_pack.pipeline.delta_pack import AbsoluteRecord, DeltaBothRecord
from postcode_pack.pipeline.reports import human_size, variant_counts


def test_sort_by_postcode_uses_byte_order():
    records = [PostcodeRecord(pc, GeoPoint(0.0, 0.0)) for pc in ["AB101AB", "B1  1AA", "AB1 0AA", "A11 1AA"]]
    assert [r.postcode for r in sort_by_postcode(records)] == ["A11 1AA", "AB1 0AA", "AB101AB", "B1  1AA"]


def test_parse_onspd_month():
    assert parse_onspd_month("202402") == date(2024, 2, 1)
    assert parse_onspd_month("198001XX") == date(1980, 1, 1)
    assert parse_onspd_month("") is None
    assert parse_onspd_month(None) is None
    assert parse_onspd_month("20241") is None
    assert parse_onspd_month("202413") is None
    assert parse_onspd_month("abcdef") is None


def test_date_to_unix_is_midnight_utc():
    assert date_to_unix(date(1970, 1, 1)) == 0
    assert date_to_unix(date(2024, 2, 1)) == 1706745600


def test_human_size_units():
    assert human_size(512) == "512.000 Bytes"
    assert human_size(1024) == "1024.000 Bytes"
    assert human_size(1536) == "1.500 KiB"
    assert human_size(5 * 1024 * 1024) == "5.000 MiB"
    assert human_size(3 * 1024**4) == "3072.000 GiB"


def test_variant_counts_lists_every_layout():
    counts = variant_counts([AbsoluteRecord(1, 2, 3), DeltaBothRecord(1, 0, 0), DeltaBothRecord(2, 0, 0)])
    assert counts == {"absolute": 1, "delta_postcode": 0, "delta_location": 0, "delta_both": 2}


def test_generate_run_id_prefix():
    assert generate_run_id().startswith("pack-")


def test_json_formatter_emits_stable_fields():
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "pack end", None, None)
    record.stage = "pack"
    record.rows_out = 3

    payload = json.loads(JsonLineFormatter().format(record))

    assert payload["stage"] == "pack"
    assert payload["rows_out"] == 3
    assert payload["message"] == "pack end"
    assert payload["error_code"] is None


def test_atomic_writer_keeps_existing_file_on_failure(tmp_path: Path):
    target = tmp_path / "out.pack"
    target.write_bytes(b"previous")

    with pytest.raises(RuntimeError):
        with atomic_binary_writer(target) as f:
            f.write(b"partial")
            raise RuntimeError("boom")

    assert target.read_bytes() == b"previous"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["out.pack"]


def test_write_bytes_atomic_returns_length(tmp_path: Path):
    target = tmp_path / "nested" / "out.pack"
    assert write_bytes_atomic(target, [b"UK", b"PP"]) == 4
    assert target.read_bytes() == b"UKPP"


def test_write_bytes_atomic_uses_default_file_mode(tmp_path: Path):
    plain = tmp_path / "plain.pack"
    plain.write_bytes(b"UKPP")
    target = tmp_path / "postcodes.pack"

    write_bytes_atomic(target, [b"UKPP"])

    assert stat.S_IMODE(target.stat().st_mode) == stat.S_IMODE(plain.stat().st_mode)


def test_write_bytes_atomic_keeps_existing_file_mode(tmp_path: Path):
    target = tmp_path / "postcodes.pack"
    target.write_bytes(b"previous")
    target.chmod(0o640)

    write_bytes_atomic(target, [b"UKPP"])

    assert stat.S_IMODE(target.stat().st_mode) == 0o640
    assert target.read_bytes() == b"UKPP"
