"""Reader for UKPP pack files.

Looks a postcode up the same way a browser client does: find the bucket from
the first two characters, then scan that bucket's byte range from a zeroed
delta state until the ordinal matches.
"""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Iterator, TypeVar

from postcode_pack.common.constants import BUCKET_COUNT, PACK_MAGIC, PACK_VERSION
from postcode_pack.common.errors import ContractError, NotFoundError, PackIOError
from postcode_pack.common.models import BoundingBox, GeoPoint
from postcode_pack.common.postcode import decode_ordinal, encode_postcode, format_postcode
from postcode_pack.pipeline.assemble import DATA_START, HEADER_STRUCT, INDEX_STRUCT
from postcode_pack.pipeline.bucket_index import BUCKET_KEYS, bucket_slot
from postcode_pack.pipeline.coordinates import dequantize
from postcode_pack.pipeline.delta_pack import GAP_MASK, TAG_DELTA_LOCATION, TAG_DELTA_POSTCODE

T = TypeVar("T")

EARTH_RADIUS_KM = 6371.0

_U16_PAIR = struct.Struct("<HH")
_I8_PAIR = struct.Struct("<bb")


@dataclass(frozen=True)
class PackHeader:
    version: int
    timestamp: int
    box: BoundingBox


@dataclass(frozen=True)
class PackEntry:
    offset: int
    tag: int
    ordinal: int
    long: int
    lat: int


class PackReader:
    def __init__(self, data: bytes) -> None:
        if len(data) < DATA_START:
            raise ContractError(f"Pack file too short: {len(data)} bytes")
        magic, version, timestamp, min_long, max_long, min_lat, max_lat = HEADER_STRUCT.unpack_from(data, 0)
        if magic != PACK_MAGIC:
            raise ContractError("Pack file is not using a known format")
        if version > PACK_VERSION:
            raise ContractError(f"Pack file format version {version} is newer than supported {PACK_VERSION}")

        self.header = PackHeader(
            version=version,
            timestamp=timestamp,
            box=BoundingBox(min=GeoPoint(x=min_long, y=min_lat), max=GeoPoint(x=max_long, y=max_lat)),
        )
        self.offsets = list(INDEX_STRUCT.unpack_from(data, HEADER_STRUCT.size))
        self.stream = data[DATA_START:]
        if self.offsets[-1] != len(self.stream):
            raise ContractError(
                f"Index sentinel {self.offsets[-1]} does not match stream length {len(self.stream)}"
            )

    @classmethod
    def from_path(cls, path: Path) -> "PackReader":
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise PackIOError(f"Failed reading pack file {path}: {exc}") from exc
        return cls(data)

    def bucket_range(self, key: str) -> tuple[int, int]:
        slot = bucket_slot(key)
        return self.offsets[slot], self.offsets[slot + 1]

    def _read(self, pos: int, size: int, end: int) -> bytes:
        if pos + size > end:
            raise ContractError(f"Record at offset {pos} runs past the end of its bucket")
        return self.stream[pos : pos + size]

    def iter_range(self, start: int, end: int) -> Iterator[PackEntry]:
        last_ordinal = 0
        last_long = 0
        last_lat = 0
        pos = start
        while pos < end:
            offset = pos
            tag = self.stream[pos]
            pos += 1

            if tag & TAG_DELTA_POSTCODE:
                ordinal = last_ordinal + (tag & GAP_MASK) + 1
            else:
                if tag & GAP_MASK:
                    raise ContractError(f"Unsupported record mode 0x{tag:02x} at offset {offset}")
                ordinal = int.from_bytes(self._read(pos, 3, end), "little")
                pos += 3

            if tag & TAG_DELTA_LOCATION:
                dlat, dlong = _I8_PAIR.unpack(self._read(pos, 2, end))
                pos += 2
                lat = last_lat + dlat
                long = last_long + dlong
            else:
                lat, long = _U16_PAIR.unpack(self._read(pos, 4, end))
                pos += 4

            yield PackEntry(offset=offset, tag=tag, ordinal=ordinal, long=long, lat=lat)
            last_ordinal, last_long, last_lat = ordinal, long, lat

    def records_in_bucket(self, key: str) -> Iterator[PackEntry]:
        start, end = self.bucket_range(key)
        return self.iter_range(start, end)

    def iter_postcodes(self) -> Iterator[tuple[str, GeoPoint]]:
        for slot in range(BUCKET_COUNT):
            key = BUCKET_KEYS[slot]
            for entry in self.iter_range(self.offsets[slot], self.offsets[slot + 1]):
                yield key + decode_ordinal(entry.ordinal), dequantize(self.header.box, entry.long, entry.lat)

    def lookup(self, postcode: str) -> tuple[str, GeoPoint]:
        canonical = format_postcode(postcode)
        wanted = encode_postcode(canonical)
        for entry in self.records_in_bucket(canonical[0:2]):
            if entry.ordinal == wanted:
                return canonical, dequantize(self.header.box, entry.long, entry.lat)
        raise NotFoundError(f"Postcode not found: {canonical}")


def distance_between(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle (haversine) distance in kilometres between two WGS84 points."""
    dlat = math.radians(b.y - a.y)
    dlong = math.radians(b.x - a.x)
    h = math.sin(dlat / 2) ** 2 + math.cos(math.radians(a.y)) * math.cos(math.radians(b.y)) * math.sin(dlong / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def sort_by_distance(
    items: Iterable[T],
    point: GeoPoint,
    location: Callable[[T], GeoPoint],
) -> list[tuple[T, float]]:
    """Pair each item with its distance from ``point``, nearest first.

    Ties keep their input order.
    """
    by_distance = [(item, distance_between(point, location(item))) for item in items]
    by_distance.sort(key=lambda pair: pair[1])
    return by_distance
