"""Repack the ONS Postcode Directory into a compact UKPP lookup file."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from postcode_pack.common.config_loader import DEFAULT_CONFIG_PATH, load_pack_settings
from postcode_pack.common.constants import EXIT_HARD_FAIL, EXIT_NOT_FOUND, EXIT_SUCCESS
from postcode_pack.common.errors import NotFoundError, PipelineError
from postcode_pack.common.ids import generate_run_id
from postcode_pack.common.logging import build_logger, close_logger, log_event
from postcode_pack.pipeline.repack import run_repack
from postcode_pack.pipeline.reports import write_run_summary
from postcode_pack.reader.pack_reader import PackReader


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    subparsers = parser.add_subparsers(dest="command", required=True)

    pack = subparsers.add_parser("pack", help="Build a pack file from an ONSPD CSV")
    pack.add_argument("input", help="Path or http(s) URL of the ONS Postcode Directory CSV")
    pack.add_argument("output", help="Output pack file")
    pack.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="PREFIX",
        help="Exclude postcodes starting with PREFIX (can be given multiple times)",
    )
    pack.add_argument("--config", default=str(DEFAULT_CONFIG_PATH))
    pack.add_argument("--overlay-config", default=None)
    pack.add_argument("--report", default=None, help="Write a JSON run summary to this path")
    pack.add_argument("--cache-dir", default="./data/cache")
    pack.add_argument("--run-id", default=None)
    pack.add_argument("--log-file", default=None)
    pack.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])

    lookup = subparsers.add_parser("lookup", help="Look a postcode up in a pack file")
    lookup.add_argument("pack", help="Pack file to read")
    lookup.add_argument("postcode", help="Postcode in any spacing or case, e.g. 'sw1a 2aa'")
    return parser.parse_args(argv)


def run_pack(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    log_path = Path(args.log_file) if args.log_file else None
    logger = build_logger(run_id, log_path=log_path, level=args.log_level)
    try:
        settings = load_pack_settings(
            Path(args.config),
            overlay_path=Path(args.overlay_config) if args.overlay_config else None,
        ).with_extra_excludes(args.exclude)
        summary = run_repack(
            args.input,
            Path(args.output),
            settings,
            logger=logger,
            run_id=run_id,
            cache_dir=Path(args.cache_dir),
        )
        if args.report:
            write_run_summary(Path(args.report), summary)
    except PipelineError as exc:
        log_event(
            logger,
            f"Error repacking postcodes: {exc}",
            run_id=run_id,
            event="RUN_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        return EXIT_HARD_FAIL
    finally:
        close_logger(logger)
    return EXIT_SUCCESS


def run_lookup(args: argparse.Namespace) -> int:
    try:
        canonical, point = PackReader.from_path(Path(args.pack)).lookup(args.postcode)
    except NotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_NOT_FOUND
    except PipelineError as exc:
        print(f"{exc.error_code}: {exc}", file=sys.stderr)
        return EXIT_HARD_FAIL
    print(f"{canonical},{point.x},{point.y}")
    return EXIT_SUCCESS


def run_command(args: argparse.Namespace) -> int:
    if args.command == "pack":
        return run_pack(args)
    return run_lookup(args)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    return run_command(args)


if __name__ == "__main__":
    raise SystemExit(main())
