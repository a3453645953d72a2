"""Run identifier helpers."""

from __future__ import annotations

from datetime import datetime, timezone


def generate_run_id() -> str:
    now = datetime.now(tz=timezone.utc)
    # Sortable id so log files for successive packs list in build order.
    return now.strftime("pack-%Y%m%dT%H%M%S%fZ")
