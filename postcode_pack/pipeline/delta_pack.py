"""Per-record delta packing of sorted postcode records.

Each record becomes one of four fixed-size layouts, selected by whether its
ordinal and its quantized coordinate are close enough to the previous record
in the same bucket. The first byte is a tag: bit 7 marks a delta ordinal,
bit 6 a delta coordinate, and for delta ordinals bits 0-5 hold ``gap - 1``.

======  ======  ==============  =====  =====================================
pc      ll      tag             bytes  payload
======  ======  ==============  =====  =====================================
abs     abs     ``0x00``        8      ordinal (3 LE), lat u16, long u16
delta   abs     ``0x80|gap-1``  5      lat u16, long u16
abs     delta   ``0x40``        6      ordinal (3 LE), dlat i8, dlong i8
delta   delta   ``0xC0|gap-1``  3      dlat i8, dlong i8
======  ======  ==============  =====  =====================================

The running state is reset to zero at every bucket boundary so that a reader
seeking straight to a bucket through the index can decode it on its own.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import ClassVar, Iterable, Union

from postcode_pack.common.constants import MAX_COORD_DELTA, MAX_POSTCODE_GAP, MIN_COORD_DELTA
from postcode_pack.common.errors import ContractError
from postcode_pack.common.models import BoundingBox, PostcodeRecord
from postcode_pack.common.postcode import encode_postcode
from postcode_pack.pipeline.coordinates import quantize

TAG_DELTA_POSTCODE = 0x80
TAG_DELTA_LOCATION = 0x40
GAP_MASK = 0x3F

_ABSOLUTE = struct.Struct("<B3sHH")
_DELTA_POSTCODE = struct.Struct("<BHH")
_DELTA_LOCATION = struct.Struct("<B3sbb")
_DELTA_BOTH = struct.Struct("<Bbb")


def _ordinal_bytes(ordinal: int) -> bytes:
    return ordinal.to_bytes(3, "little")


@dataclass(frozen=True)
class AbsoluteRecord:
    ordinal: int
    lat: int
    long: int

    kind: ClassVar[str] = "absolute"
    size: ClassVar[int] = _ABSOLUTE.size

    def to_bytes(self) -> bytes:
        return _ABSOLUTE.pack(0x00, _ordinal_bytes(self.ordinal), self.lat, self.long)


@dataclass(frozen=True)
class DeltaPostcodeRecord:
    gap: int
    lat: int
    long: int

    kind: ClassVar[str] = "delta_postcode"
    size: ClassVar[int] = _DELTA_POSTCODE.size

    def to_bytes(self) -> bytes:
        return _DELTA_POSTCODE.pack(TAG_DELTA_POSTCODE | (self.gap - 1), self.lat, self.long)


@dataclass(frozen=True)
class DeltaLocationRecord:
    ordinal: int
    dlat: int
    dlong: int

    kind: ClassVar[str] = "delta_location"
    size: ClassVar[int] = _DELTA_LOCATION.size

    def to_bytes(self) -> bytes:
        return _DELTA_LOCATION.pack(TAG_DELTA_LOCATION, _ordinal_bytes(self.ordinal), self.dlat, self.dlong)


@dataclass(frozen=True)
class DeltaBothRecord:
    gap: int
    dlat: int
    dlong: int

    kind: ClassVar[str] = "delta_both"
    size: ClassVar[int] = _DELTA_BOTH.size

    def to_bytes(self) -> bytes:
        return _DELTA_BOTH.pack(TAG_DELTA_POSTCODE | TAG_DELTA_LOCATION | (self.gap - 1), self.dlat, self.dlong)


PackedRecord = Union[AbsoluteRecord, DeltaPostcodeRecord, DeltaLocationRecord, DeltaBothRecord]
PACKED_KINDS = (
    AbsoluteRecord.kind,
    DeltaPostcodeRecord.kind,
    DeltaLocationRecord.kind,
    DeltaBothRecord.kind,
)


@dataclass(frozen=True)
class PackState:
    """Values of the previous record in the current bucket."""

    bucket_key: str | None = None
    last_ordinal: int = 0
    last_long: int = 0
    last_lat: int = 0

    @classmethod
    def start_bucket(cls, bucket_key: str) -> "PackState":
        return cls(bucket_key=bucket_key)


def _can_delta_postcode(gap: int) -> bool:
    # A zero gap cannot be stored in the 6-bit ``gap - 1`` field.
    return 1 <= gap <= MAX_POSTCODE_GAP


def _can_delta_location(dlong: int, dlat: int) -> bool:
    return MIN_COORD_DELTA <= dlong <= MAX_COORD_DELTA and MIN_COORD_DELTA <= dlat <= MAX_COORD_DELTA


def pack_record(state: PackState, record: PostcodeRecord, box: BoundingBox) -> tuple[PackedRecord, PackState]:
    """Pack one record against ``state`` and return it with the next state."""
    if state.bucket_key != record.bucket_key:
        # Ordinals drop the first two characters, so they only compare within a bucket.
        raise ContractError(
            f"Delta state for bucket {state.bucket_key!r} applied to postcode {record.postcode!r}"
        )

    ordinal = encode_postcode(record.postcode)
    gap = ordinal - state.last_ordinal
    long_q, lat_q = quantize(box, record.location)
    dlong = long_q - state.last_long
    dlat = lat_q - state.last_lat

    can_delta_pc = _can_delta_postcode(gap)
    can_delta_ll = _can_delta_location(dlong, dlat)

    packed: PackedRecord
    if can_delta_pc and can_delta_ll:
        packed = DeltaBothRecord(gap=gap, dlat=dlat, dlong=dlong)
    elif can_delta_pc:
        packed = DeltaPostcodeRecord(gap=gap, lat=lat_q, long=long_q)
    elif can_delta_ll:
        packed = DeltaLocationRecord(ordinal=ordinal, dlat=dlat, dlong=dlong)
    else:
        packed = AbsoluteRecord(ordinal=ordinal, lat=lat_q, long=long_q)

    next_state = PackState(bucket_key=state.bucket_key, last_ordinal=ordinal, last_long=long_q, last_lat=lat_q)
    return packed, next_state


def pack_postcodes(records: Iterable[PostcodeRecord], box: BoundingBox) -> list[PackedRecord]:
    """Pack records sorted ascending by postcode text.

    Raises ContractError when bucket keys go backwards (unsorted input) and
    InvalidFormatError for the first postcode outside the canonical grammar.
    """
    box.require_non_degenerate()
    state = PackState()
    packed: list[PackedRecord] = []
    for record in records:
        key = record.bucket_key
        if key != state.bucket_key:
            if state.bucket_key is not None and key < state.bucket_key:
                raise ContractError(f"Records are not sorted: bucket {key!r} follows {state.bucket_key!r}")
            state = PackState.start_bucket(key)
        item, state = pack_record(state, record, box)
        packed.append(item)
    return packed


def packed_length(packed: Iterable[PackedRecord]) -> int:
    return sum(item.size for item in packed)


def iter_packed_bytes(packed: Iterable[PackedRecord]) -> Iterable[bytes]:
    for item in packed:
        yield item.to_bytes()
