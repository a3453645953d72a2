"""Pack file serialisation.

Layout, all little-endian::

    0     4s    magic "UKPP"
    4     u32   format version
    8     u64   unix time of the newest introduction date
    16    4xf64 min long, max long, min lat, max lat
    48    937xu32 bucket offsets, the last one being the stream length
    3796  packed record stream
"""

from __future__ import annotations

import struct
from pathlib import Path
from typing import Iterator, Sequence

from postcode_pack.common.constants import INDEX_ENTRY_COUNT, PACK_MAGIC, PACK_VERSION
from postcode_pack.common.errors import ContractError
from postcode_pack.common.fs import write_bytes_atomic
from postcode_pack.common.models import BoundingBox
from postcode_pack.pipeline.delta_pack import PackedRecord, iter_packed_bytes

HEADER_STRUCT = struct.Struct("<4sIQdddd")
INDEX_STRUCT = struct.Struct(f"<{INDEX_ENTRY_COUNT}I")
DATA_START = HEADER_STRUCT.size + INDEX_STRUCT.size


def encode_header(last_update: int, box: BoundingBox, version: int = PACK_VERSION) -> bytes:
    if last_update < 0:
        raise ContractError(f"Dataset timestamp predates the unix epoch: {last_update}")
    return HEADER_STRUCT.pack(PACK_MAGIC, version, last_update, box.min.x, box.max.x, box.min.y, box.max.y)


def encode_index(offsets: Sequence[int]) -> bytes:
    if len(offsets) != INDEX_ENTRY_COUNT:
        raise ContractError(f"Index needs {INDEX_ENTRY_COUNT} offsets, got {len(offsets)}")
    return INDEX_STRUCT.pack(*offsets)


def iter_pack_chunks(
    last_update: int,
    box: BoundingBox,
    offsets: Sequence[int],
    packed: Sequence[PackedRecord],
) -> Iterator[bytes]:
    yield encode_header(last_update, box)
    yield encode_index(offsets)
    yield from iter_packed_bytes(packed)


def assemble_pack(last_update: int, box: BoundingBox, offsets: Sequence[int], packed: Sequence[PackedRecord]) -> bytes:
    return b"".join(iter_pack_chunks(last_update, box, offsets, packed))


def write_pack_file(
    path: Path,
    last_update: int,
    box: BoundingBox,
    offsets: Sequence[int],
    packed: Sequence[PackedRecord],
) -> int:
    """Write the pack atomically and return the file size in bytes."""
    return write_bytes_atomic(path, iter_pack_chunks(last_update, box, offsets, packed))
