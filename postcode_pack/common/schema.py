"""Minimal strict schema for the pack YAML config."""

from __future__ import annotations

from postcode_pack.common.errors import ConfigError


def _assert_mapping(obj, ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def validate_pack_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_mapping(cfg, "pack config")
    top_required = {"input", "coordinates", "exclude_prefixes", "download"}
    _assert_required_keys(cfg, top_required, "pack config")
    _assert_no_unknown_keys(cfg, top_required, "pack config", allow_unknown)

    _assert_mapping(cfg["input"], "input")
    _assert_required_keys(
        cfg["input"],
        {
            "postcode_columns",
            "lat_column",
            "long_column",
            "introduced_column",
            "terminated_column",
            "no_location_lat",
        },
        "input",
    )
    if not isinstance(cfg["input"]["postcode_columns"], list) or not cfg["input"]["postcode_columns"]:
        raise ConfigError("input.postcode_columns must be a non-empty list")

    _assert_mapping(cfg["coordinates"], "coordinates")
    _assert_required_keys(cfg["coordinates"], {"source_epsg", "x_column", "y_column"}, "coordinates")
    if not isinstance(cfg["coordinates"]["source_epsg"], int):
        raise ConfigError("coordinates.source_epsg must be an integer EPSG code")

    prefixes = cfg["exclude_prefixes"]
    if not isinstance(prefixes, list) or not all(isinstance(prefix, str) for prefix in prefixes):
        raise ConfigError("exclude_prefixes must be a list of strings")

    _assert_mapping(cfg["download"], "download")
    _assert_required_keys(
        cfg["download"],
        {"connect_timeout_seconds", "read_timeout_seconds", "max_attempts"},
        "download",
    )
    return cfg
