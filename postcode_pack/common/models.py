"""Data models used across the pack pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from postcode_pack.common.errors import InputMalformedError


@dataclass(frozen=True)
class GeoPoint:
    x: float  # longitude
    y: float  # latitude


@dataclass(frozen=True)
class BoundingBox:
    min: GeoPoint
    max: GeoPoint

    @property
    def long_range(self) -> float:
        return self.max.x - self.min.x

    @property
    def lat_range(self) -> float:
        return self.max.y - self.min.y

    def require_non_degenerate(self) -> "BoundingBox":
        if not (self.long_range > 0 and self.lat_range > 0):
            raise InputMalformedError(
                f"Bounding box has no extent: ({self.min.x}, {self.min.y}) to ({self.max.x}, {self.max.y})"
            )
        return self

    def to_dict(self) -> dict[str, float]:
        return {
            "min_long": self.min.x,
            "max_long": self.max.x,
            "min_lat": self.min.y,
            "max_lat": self.max.y,
        }


@dataclass(frozen=True)
class PostcodeRecord:
    postcode: str
    location: GeoPoint

    @property
    def bucket_key(self) -> str:
        return self.postcode[0:2]


@dataclass
class BoxAccumulator:
    min_long: float = 9999.0
    max_long: float = -9999.0
    min_lat: float = 9999.0
    max_lat: float = -9999.0

    def add(self, point: GeoPoint) -> None:
        self.min_long = min(self.min_long, point.x)
        self.max_long = max(self.max_long, point.x)
        self.min_lat = min(self.min_lat, point.y)
        self.max_lat = max(self.max_lat, point.y)

    def box(self) -> BoundingBox:
        return BoundingBox(
            min=GeoPoint(x=self.min_long, y=self.min_lat),
            max=GeoPoint(x=self.max_long, y=self.max_lat),
        )


@dataclass
class IngestResult:
    records: list[PostcodeRecord]
    box: BoundingBox
    total: int
    terminated: int
    excluded: int
    last_update: int

    @property
    def skipped(self) -> int:
        return self.total - len(self.records)

    def counts(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "accepted": len(self.records),
            "skipped": self.skipped,
            "terminated": self.terminated,
            "excluded": self.excluded,
        }
