import pytest

from postcode_pack.common.errors import ContractError, InvalidFormatError
from postcode_pack.common.models import BoundingBox, GeoPoint, PostcodeRecord
from postcode_pack.pipeline.bucket_index import BUCKET_KEYS, bucket_slot, build_bucket_index
from postcode_pack.pipeline.delta_pack import pack_postcodes

BOX = BoundingBox(min=GeoPoint(x=-2.5, y=56.5), max=GeoPoint(x=-1.5, y=57.5))


def _records(*postcodes: str) -> list[PostcodeRecord]:
    return [PostcodeRecord(postcode=pc, location=GeoPoint(x=-2.0, y=57.0)) for pc in postcodes]


def test_bucket_keys_follow_sort_order():
    assert len(BUCKET_KEYS) == 936
    assert BUCKET_KEYS[0] == "A0"
    assert BUCKET_KEYS[10] == "AA"
    assert BUCKET_KEYS[-1] == "ZZ"
    assert list(BUCKET_KEYS) == sorted(BUCKET_KEYS)


def test_bucket_slot_matches_key_table():
    for slot, key in enumerate(BUCKET_KEYS):
        assert bucket_slot(key) == slot
    assert bucket_slot("AB") == 11


@pytest.mark.parametrize("key", ["ab", "1A", "A ", "A", "ABC"])
def test_bucket_slot_rejects_keys_outside_table(key):
    with pytest.raises(InvalidFormatError):
        bucket_slot(key)


def test_reference_example_index():
    records = _records("AB1 0AA", "AB101AB")
    packed = pack_postcodes(records, BOX)

    offsets = build_bucket_index(records, packed)

    assert len(offsets) == 937
    assert offsets[:12] == [0] * 12
    assert offsets[12:] == [14] * 925


def test_empty_buckets_are_backward_filled():
    records = _records("A11 1AA", "A11 1AB", "B1  1AA", "ZE1 0AA")
    packed = pack_postcodes(records, BOX)
    sizes = [item.size for item in packed]

    offsets = build_bucket_index(records, packed)

    total = sum(sizes)
    a1 = bucket_slot("A1")
    b1 = bucket_slot("B1")
    ze = bucket_slot("ZE")
    assert offsets[0] == 0  # A0 is empty and points at A1
    assert offsets[a1] == 0
    assert offsets[a1 + 1] == sizes[0] + sizes[1]
    assert offsets[b1] == sizes[0] + sizes[1]
    assert offsets[b1 - 1] == offsets[b1]
    assert offsets[ze] == total - sizes[3]
    assert offsets[ze + 1 : 936] == [total] * (936 - ze - 1)
    assert offsets[-1] == total


def test_offsets_are_non_decreasing_and_buckets_self_contained():
    postcodes = ["AB1 0AA", "AB1 0AB", "AB101AB", "B1  1AA", "B1  1AD", "M1  1AE", "SW1A1AA", "SW1A2AA"]
    records = _records(*postcodes)
    packed = pack_postcodes(records, BOX)

    offsets = build_bucket_index(records, packed)

    assert offsets == sorted(offsets)
    assert offsets[-1] == sum(item.size for item in packed)
    starts = []
    position = 0
    for item in packed:
        starts.append(position)
        position += item.size
    for record, start in zip(records, starts):
        slot = bucket_slot(record.bucket_key)
        assert offsets[slot] <= start < offsets[slot + 1]


def test_empty_input_gives_zero_index():
    assert build_bucket_index([], []) == [0] * 937


def test_mismatched_lengths_are_rejected():
    records = _records("AB1 0AA")
    with pytest.raises(ContractError):
        build_bucket_index(records, [])


def test_out_of_order_buckets_are_rejected():
    records = _records("AB1 0AA", "B1  1AA")
    packed = pack_postcodes(records, BOX)
    with pytest.raises(ContractError):
        build_bucket_index(list(reversed(records)), list(reversed(packed)))
