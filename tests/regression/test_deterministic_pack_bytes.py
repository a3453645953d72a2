import csv
import random
from pathlib import Path

import pytest

from postcode_pack.cli import main

HEADER = ["pcd", "dointr", "doterm", "lat", "long"]


def _rows() -> list[list[str]]:
    rows = []
    for outward, lat, long in [("AB1 ", 57.10, -2.10), ("AB10", 57.13, -2.12), ("B1  ", 52.48, -1.90), ("SW1A", 51.50, -0.13)]:
        for n in range(3):
            for letter in "ABDEF":
                postcode = f"{outward}{n}A{letter}"
                rows.append([postcode, "199001", "", f"{lat + n * 0.001:.6f}", f"{long - 0.0003 * ord(letter):.6f}"])
    return rows


def _run_once(tmp_path: Path, name: str, rows: list[list[str]], run_id: str) -> bytes:
    source = tmp_path / f"{name}.csv"
    with source.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(HEADER)
        writer.writerows(rows)
    output = tmp_path / f"{name}.pack"
    assert main(["pack", str(source), str(output), "--run-id", run_id]) == 0
    return output.read_bytes()


@pytest.mark.regression
def test_pack_bytes_are_stable_for_same_inputs(tmp_path: Path):
    first = _run_once(tmp_path, "first", _rows(), "run-a")
    second = _run_once(tmp_path, "second", _rows(), "run-b")
    assert first == second


@pytest.mark.regression
def test_pack_bytes_do_not_depend_on_input_row_order(tmp_path: Path):
    rows = _rows()
    shuffled = list(rows)
    random.Random(7).shuffle(shuffled)

    assert _run_once(tmp_path, "ordered", rows, "run-a") == _run_once(tmp_path, "shuffled", shuffled, "run-b")
