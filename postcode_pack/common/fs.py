"""Filesystem helpers."""

from __future__ import annotations

import json
import os
import stat
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator

from postcode_pack.common.errors import PackIOError


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def read_yaml(path: Path):
    import yaml

    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def write_json(path: Path, payload) -> None:
    ensure_dir(path.parent)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2, sort_keys=True)
        f.write("\n")


def read_json(path: Path):
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def _replacement_mode(path: Path) -> int:
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


@contextmanager
def atomic_binary_writer(path: Path) -> Iterator[BinaryIO]:
    """Write ``path`` through a sibling temp file that is renamed on success.

    The result keeps the mode of an existing ``path``, otherwise it gets the
    umask-filtered 0o666 a plain ``open`` would give.
    On any exception the temp file is removed and ``path`` is left as it was.
    """
    ensure_dir(path.parent)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            os.fchmod(f.fileno(), _replacement_mode(path))
            yield f
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def write_bytes_atomic(path: Path, chunks) -> int:
    written = 0
    try:
        with atomic_binary_writer(path) as f:
            for chunk in chunks:
                f.write(chunk)
                written += len(chunk)
    except OSError as exc:
        raise PackIOError(f"Failed writing {path}: {exc}") from exc
    return written
