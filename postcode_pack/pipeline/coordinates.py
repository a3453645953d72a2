"""Coordinate reprojection and bounding-box quantization."""

from __future__ import annotations

import math
from typing import Callable

from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError

from postcode_pack.common.constants import QUANT_MAX
from postcode_pack.common.errors import ConfigError, InputMalformedError
from postcode_pack.common.models import BoundingBox, GeoPoint

WGS84_EPSG = 4326


def _round_half_away_from_zero(value: float) -> int:
    magnitude = abs(value)
    rounded = math.floor(magnitude)
    # floor(x + 0.5) rounds 0.49999999999999994 up to 1.
    if magnitude - rounded >= 0.5:
        rounded += 1
    return int(math.copysign(rounded, value))


def _quantize_axis(value: float, low: float, span: float) -> int:
    scaled = _round_half_away_from_zero(((value - low) / span) * QUANT_MAX)
    # Saturate like a float to u16 cast; accepted points always lie inside the box.
    return min(max(scaled, 0), QUANT_MAX)


def quantize(box: BoundingBox, point: GeoPoint) -> tuple[int, int]:
    """Map ``point`` to ``(long, lat)`` u16 ordinals relative to ``box``.

    Both axes need a positive range; callers reject degenerate boxes first.
    """
    long_q = _quantize_axis(point.x, box.min.x, box.long_range)
    lat_q = _quantize_axis(point.y, box.min.y, box.lat_range)
    return long_q, lat_q


def dequantize(box: BoundingBox, long_q: int, lat_q: int) -> GeoPoint:
    return GeoPoint(
        x=box.min.x + box.long_range * (long_q / QUANT_MAX),
        y=box.min.y + box.lat_range * (lat_q / QUANT_MAX),
    )


def build_reprojector(source_epsg: int) -> Callable[[float, float], GeoPoint]:
    """Return a function mapping source ``(x, y)`` to a WGS84 GeoPoint."""
    if source_epsg == WGS84_EPSG:
        return lambda x, y: GeoPoint(x=x, y=y)

    try:
        transformer = Transformer.from_crs(CRS.from_epsg(source_epsg), CRS.from_epsg(WGS84_EPSG), always_xy=True)
    except CRSError as exc:
        raise ConfigError(f"Unknown source EPSG code: {source_epsg}") from exc

    def _reproject(x: float, y: float) -> GeoPoint:
        lon, lat = transformer.transform(x, y)
        if not (math.isfinite(lon) and math.isfinite(lat)):
            raise InputMalformedError(f"Coordinate ({x}, {y}) cannot be reprojected from EPSG:{source_epsg}")
        return GeoPoint(x=lon, y=lat)

    return _reproject
