"""
CLI — `cargo screeps` entry point.

Cargo runs external subcommands as ``cargo-screeps screeps <args>``, so
the parser expects the ``screeps`` subcommand first.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from cargo_screeps import TRACE, __version__
from cargo_screeps.config import Settings
from cargo_screeps.errors import ScreepsBuildError
from cargo_screeps.runner import check, run_build, run_upload

logger = logging.getLogger("cargo_screeps")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cargo",
        description="cargo screeps: build Rust crates into Screeps deployables",
    )
    parser.add_argument("--version", action="version", version=f"cargo-screeps {__version__}")
    sub = parser.add_subparsers(dest="subcommand", required=True)

    screeps = sub.add_parser("screeps", help="build, check or upload a Screeps crate")
    screeps.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="more output; repeat for trace logging",
    )
    mode = screeps.add_mutually_exclusive_group(required=True)
    mode.add_argument(
        "-b", "--build",
        action="store_const", dest="mode", const="build",
        help="build files, put in target/ in project root",
    )
    mode.add_argument(
        "-c", "--check",
        action="store_const", dest="mode", const="check",
        help="runs 'cargo web check' with appropriate target",
    )
    mode.add_argument(
        "-u", "--upload",
        action="store_const", dest="mode", const="upload",
        help="upload files to screeps (implies build)",
    )
    return parser


def verbosity_level(count: int) -> int:
    if count <= 0:
        return logging.INFO
    if count == 1:
        return logging.DEBUG
    return TRACE


def setup_logging(count: int) -> None:
    logging.addLevelName(TRACE, "TRACE")
    logging.basicConfig(
        level=verbosity_level(count),
        format="%(name)s: %(message)s",
        stream=sys.stdout,
    )


def find_project_root(start: Path, config_filename: str = "screeps.toml") -> Path:
    """Nearest ancestor holding screeps.toml or Cargo.toml; *start* otherwise."""
    start = start.resolve()
    for candidate in (start, *start.parents):
        if (candidate / config_filename).is_file() or (candidate / "Cargo.toml").is_file():
            return candidate
    return start


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    settings = Settings()
    root = find_project_root(Path.cwd(), settings.CONFIG_FILENAME)
    logger.debug("project root: %s", root)

    try:
        if args.mode == "check":
            check(root, settings=settings)
            return 0
        if args.mode == "upload":
            report = run_upload(root, settings=settings)
        else:
            report = run_build(root, settings=settings)
    except (ScreepsBuildError, OSError) as e:
        logger.error("%s", e)
        return 1

    if not report.succeeded:
        logger.error("build failed: %s", report.error)
        return 1
    for warning in report.warnings:
        logger.debug("warning during build: %s", warning)
    logger.info("wrote %s and %s", report.wasm_output, report.js_output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
