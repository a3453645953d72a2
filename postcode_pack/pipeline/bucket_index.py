"""Two-character bucket lookup table for the packed record stream."""

from __future__ import annotations

from typing import Sequence

from postcode_pack.common.constants import BUCKET_COUNT, BUCKET_FIRST_CHARS, BUCKET_SECOND_CHARS
from postcode_pack.common.errors import ContractError, InvalidFormatError
from postcode_pack.common.models import PostcodeRecord
from postcode_pack.pipeline.delta_pack import PackedRecord

MAX_STREAM_OFFSET = 2**32 - 1

BUCKET_KEYS = tuple(first + second for first in BUCKET_FIRST_CHARS for second in BUCKET_SECOND_CHARS)


def bucket_slot(key: str) -> int:
    """Position of a two-character prefix in the ascending bucket order."""
    if len(key) != 2:
        raise InvalidFormatError(f"Bucket key must be two characters: {key!r}")
    first = BUCKET_FIRST_CHARS.find(key[0])
    second = BUCKET_SECOND_CHARS.find(key[1])
    if first < 0 or second < 0:
        raise InvalidFormatError(f"Postcode prefix outside the bucket table: {key!r}")
    return first * len(BUCKET_SECOND_CHARS) + second


def build_bucket_index(records: Sequence[PostcodeRecord], packed: Sequence[PackedRecord]) -> list[int]:
    """Return 936 bucket start offsets followed by the total stream length.

    Empty buckets take the offset of the next populated bucket so every slot
    and its successor bound a valid, possibly empty, byte range.
    """
    if len(records) != len(packed):
        raise ContractError(f"Record count {len(records)} does not match packed count {len(packed)}")

    starts: list[int | None] = [None] * BUCKET_COUNT
    position = 0
    last_slot = -1
    for record, item in zip(records, packed):
        slot = bucket_slot(record.bucket_key)
        if slot != last_slot:
            if slot < last_slot:
                raise ContractError(f"Bucket {record.bucket_key!r} appears out of order")
            starts[slot] = position
            last_slot = slot
        position += item.size

    if position > MAX_STREAM_OFFSET:
        raise ContractError(f"Packed stream of {position} bytes does not fit 32-bit offsets")

    resolved = [0] * BUCKET_COUNT
    next_offset = position
    for slot in range(BUCKET_COUNT - 1, -1, -1):
        start = starts[slot]
        if start is not None:
            next_offset = start
        resolved[slot] = next_offset

    return resolved + [position]
