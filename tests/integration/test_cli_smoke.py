import csv
import json
from pathlib import Path

import pytest

from postcode_pack.cli import main
from postcode_pack.common.constants import EXIT_HARD_FAIL, EXIT_NOT_FOUND, EXIT_SUCCESS, STAGES
from postcode_pack.reader.pack_reader import PackReader

HEADER = ["pcd", "dointr", "doterm", "lat", "long"]
ROWS = [
    ["AB1 0AA", "198001", "", "57.0", "-2.0"],
    ["AB101AB", "201511", "", "57.001", "-2.001"],
    ["AB101AD", "201511", "", "57.0013", "-2.0012"],
    ["AB1 0AB", "198001", "200310", "57.0", "-2.0"],
    ["B1  1AA", "198001", "", "52.48", "-1.91"],
    ["CB2 3DS", "202402", "", "52.2032", "0.1231"],
    ["GY1 1AA", "202403", "", "49.45", "-2.53"],
    ["SW1A2AA", "198001", "", "51.5035", "-0.1276"],
    ["ZE1 0AA", "199001", "", "99.999999", "0.000000"],
]


def _write_onspd(path: Path, rows=ROWS) -> Path:
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(HEADER)
        writer.writerows(rows)
    return path


def _pack(tmp_path: Path, *extra: str, rows=ROWS) -> tuple[int, Path]:
    source = _write_onspd(tmp_path / "onspd.csv", rows)
    output = tmp_path / "out" / "postcodes.pack"
    exit_code = main(
        [
            "pack",
            str(source),
            str(output),
            "--run-id",
            "run-test",
            "--log-file",
            str(tmp_path / "logs" / "run-test.log.jsonl"),
            *extra,
        ]
    )
    return exit_code, output


@pytest.mark.integration
def test_pack_then_lookup(tmp_path: Path, capsys):
    exit_code, output = _pack(tmp_path, "--exclude", "GY", "--report", str(tmp_path / "report.json"))

    assert exit_code == EXIT_SUCCESS
    data = output.read_bytes()
    assert data[:8] == bytes([0x55, 0x4B, 0x50, 0x50, 0x01, 0x00, 0x00, 0x00])

    reader = PackReader(data)
    assert [postcode for postcode, _ in reader.iter_postcodes()] == [
        "AB1 0AA",
        "AB101AB",
        "AB101AD",
        "B1  1AA",
        "CB2 3DS",
        "SW1A2AA",
    ]
    assert reader.header.timestamp == 1706745600
    assert reader.header.box.min.x == -2.0012
    assert reader.header.box.max.y == 57.0013

    capsys.readouterr()
    assert main(["lookup", str(output), "cb23ds"]) == EXIT_SUCCESS
    canonical, lon, lat = capsys.readouterr().out.strip().split(",")
    assert canonical == "CB2 3DS"
    assert abs(float(lon) - 0.1231) < 1e-3
    assert abs(float(lat) - 52.2032) < 1e-3

    assert main(["lookup", str(output), "GY1 1AA"]) == EXIT_NOT_FOUND

    report = json.loads((tmp_path / "report.json").read_text(encoding="utf-8"))
    assert report["counts"] == {"total": 9, "accepted": 6, "skipped": 3, "terminated": 1, "excluded": 1}
    assert report["file_bytes"] == len(data)
    assert report["stream_bytes"] == len(data) - 3796
    assert sum(report["variants"].values()) == 6
    assert report["last_update_date"] == "2024-02-01"

    log_lines = (tmp_path / "logs" / "run-test.log.jsonl").read_text(encoding="utf-8").splitlines()
    events = [json.loads(line) for line in log_lines]
    assert {event["stage"] for event in events if event["event"] == "STAGE_END"} == set(STAGES)


@pytest.mark.integration
def test_invalid_postcode_aborts_without_output(tmp_path: Path):
    output = tmp_path / "out" / "postcodes.pack"
    output.parent.mkdir(parents=True)
    output.write_bytes(b"previous pack")
    rows = ROWS + [["AB1 0A!", "198001", "", "57.0", "-2.0"]]

    exit_code, _ = _pack(tmp_path, rows=rows)

    assert exit_code == EXIT_HARD_FAIL
    assert output.read_bytes() == b"previous pack"
    log_lines = (tmp_path / "logs" / "run-test.log.jsonl").read_text(encoding="utf-8").splitlines()
    failures = [json.loads(line) for line in log_lines if '"STAGE_FAIL"' in line]
    assert failures[0]["stage"] == "pack"
    assert failures[0]["error_code"] == "INVALID_FORMAT"


@pytest.mark.integration
def test_missing_input_is_hard_failure(tmp_path: Path):
    exit_code = main(["pack", str(tmp_path / "missing.csv"), str(tmp_path / "out.pack")])
    assert exit_code == EXIT_HARD_FAIL
    assert not (tmp_path / "out.pack").exists()


@pytest.mark.integration
def test_single_location_dataset_is_rejected(tmp_path: Path):
    rows = [["AB1 0AA", "198001", "", "57.0", "-2.0"]]
    exit_code, output = _pack(tmp_path, rows=rows)
    assert exit_code == EXIT_HARD_FAIL
    assert not output.exists()
