"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from postcode_pack.common.errors import ConfigError
from postcode_pack.common.fs import read_yaml
from postcode_pack.common.schema import validate_pack_config

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[1] / "config" / "ukpp.yml"


@dataclass(frozen=True)
class InputColumns:
    postcode_candidates: tuple[str, ...]
    lat: str
    long: str
    introduced: str
    terminated: str
    no_location_lat: float


@dataclass(frozen=True)
class CoordinateSettings:
    source_epsg: int
    x_column: str
    y_column: str


@dataclass(frozen=True)
class DownloadSettings:
    connect_timeout: float
    read_timeout: float
    max_attempts: int


@dataclass(frozen=True)
class PackSettings:
    columns: InputColumns
    coordinates: CoordinateSettings
    exclude_prefixes: tuple[str, ...]
    download: DownloadSettings

    def with_extra_excludes(self, prefixes: list[str] | None) -> "PackSettings":
        if not prefixes:
            return self
        merged = tuple(dict.fromkeys([*self.exclude_prefixes, *prefixes]))
        return PackSettings(
            columns=self.columns,
            coordinates=self.coordinates,
            exclude_prefixes=merged,
            download=self.download,
        )


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _read_config_file(path: Path):
    try:
        return read_yaml(path)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file is not valid YAML: {path}: {exc}") from exc


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    base = _read_config_file(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = _read_config_file(overlay_path)
    if overlay is None:
        return base
    if not isinstance(overlay, dict):
        raise ConfigError(f"Overlay config must be a mapping: {overlay_path}")
    return _deep_merge(base, overlay)


def settings_from_config(cfg: dict) -> PackSettings:
    inputs = cfg["input"]
    coordinates = cfg["coordinates"]
    download = cfg["download"]
    return PackSettings(
        columns=InputColumns(
            postcode_candidates=tuple(inputs["postcode_columns"]),
            lat=inputs["lat_column"],
            long=inputs["long_column"],
            introduced=inputs["introduced_column"],
            terminated=inputs["terminated_column"],
            no_location_lat=float(inputs["no_location_lat"]),
        ),
        coordinates=CoordinateSettings(
            source_epsg=coordinates["source_epsg"],
            x_column=coordinates["x_column"],
            y_column=coordinates["y_column"],
        ),
        exclude_prefixes=tuple(cfg["exclude_prefixes"]),
        download=DownloadSettings(
            connect_timeout=float(download["connect_timeout_seconds"]),
            read_timeout=float(download["read_timeout_seconds"]),
            max_attempts=int(download["max_attempts"]),
        ),
    )


def load_pack_settings(
    config_path: Path = DEFAULT_CONFIG_PATH,
    *,
    allow_unknown: bool = False,
    overlay_path: Path | None = None,
) -> PackSettings:
    cfg = _load_yaml_with_overlay(config_path, overlay_path)
    return settings_from_config(validate_pack_config(cfg, allow_unknown=allow_unknown))
