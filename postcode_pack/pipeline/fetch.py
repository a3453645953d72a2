"""Resolve the pack input to a local CSV, downloading remote sources."""

from __future__ import annotations

from pathlib import Path
from urllib.parse import urlparse

from postcode_pack.common.config_loader import DownloadSettings
from postcode_pack.common.errors import PackIOError
from postcode_pack.common.http import HttpClient, RetryConfig, TimeoutConfig


def is_remote(source: str) -> bool:
    return urlparse(source).scheme in ("http", "https")


def cache_path_for(source: str, cache_dir: Path) -> Path:
    name = Path(urlparse(source).path).name or "onspd.csv"
    return cache_dir / name


def resolve_input(source: str, cache_dir: Path, download: DownloadSettings, client: HttpClient | None = None) -> Path:
    if not is_remote(source):
        path = Path(source)
        if not path.exists():
            raise PackIOError(f"Input file not found: {path}")
        return path

    dest = cache_path_for(source, cache_dir)
    if client is None:
        client = HttpClient(
            timeout=TimeoutConfig(connect=download.connect_timeout, read=download.read_timeout),
            retry=RetryConfig(max_attempts=download.max_attempts),
        )
    with client:
        client.download_to_file(source, dest)
    return dest
