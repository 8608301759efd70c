"""Command line entry point."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from .builder import IsoBuildRunner, load_config, render_command_sequence
from .config import KERNEL_POLICIES, BuildConfig
from .logging_utils import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="aetheros-build",
        description="Build the AetherOS hybrid BIOS/UEFI live ISO.",
    )
    p.add_argument("workdir", nargs="?", default=None, help="Build directory (default: ~/aetheros-build)")
    p.add_argument("--config", type=Path, default=None, help="Load build configuration from a JSON file")
    p.add_argument("--export-config", type=Path, default=None, help="Write the effective configuration as JSON and exit")
    p.add_argument("--include", type=Path, default=None, help="Package include list")
    p.add_argument("--exclude", type=Path, default=None, help="Package exclude list")
    p.add_argument("--release", default=None, help="Release codename to bootstrap")
    p.add_argument("--mirror", default=None, help="Package mirror URL")
    p.add_argument("--kernel-policy", choices=KERNEL_POLICIES, default=None, help="Kernel choice when several are installed")
    p.add_argument("--dry-run", action="store_true", help="Print the command plan without running anything")
    p.add_argument("--tui", action="store_true", help="Open the interactive builder")
    p.add_argument("-v", "--verbose", action="store_true", help="Show tool output on the console")
    return p


def config_from_args(args: argparse.Namespace) -> BuildConfig:
    config = load_config(args.config) if args.config else BuildConfig()
    updates: Dict[str, object] = {}
    for attr, key in (
        ("workdir", "workdir"),
        ("include", "include_file"),
        ("exclude", "exclude_file"),
        ("release", "release"),
        ("mirror", "mirror"),
        ("kernel_policy", "kernel_policy"),
    ):
        value = getattr(args, attr)
        if value is not None:
            updates[key] = str(value) if isinstance(value, Path) else value
    if args.dry_run:
        updates["simulate"] = True
    return config.with_updates(**updates) if updates else config


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = config_from_args(args)
    except (OSError, ValueError) as exc:
        parser.error(str(exc))

    if args.tui:
        from .tui.app import run

        run(config)
        return 0

    if args.export_config:
        configure_logging(verbose=args.verbose)
        IsoBuildRunner(config).export_config(args.export_config)
        logger.info("Configuration exported to %s", args.export_config)
        return 0

    if config.simulate:
        for index, command in enumerate(render_command_sequence(config), start=1):
            print(f"[{index}] {command}")
        return 0

    result = asyncio.run(IsoBuildRunner(config, verbose=args.verbose).run())
    return 0 if result.success else 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
