"""Helpers for deterministic ordering."""

from __future__ import annotations

from typing import Iterable

from postcode_pack.common.models import PostcodeRecord


def sort_by_postcode(records: Iterable[PostcodeRecord]) -> list[PostcodeRecord]:
    # Code point order of str matches byte order of the UTF-8 encoded text.
    return sorted(records, key=lambda record: record.postcode)
