"""Package provisioning inside the build root."""
from __future__ import annotations

import enum
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from .. import commands
from ..context import BuildContext
from ..errors import PurgeError, StageError

logger = logging.getLogger(__name__)

ABSENT_STATES = {"", "not-installed"}


class PurgeOutcome(enum.Enum):
    REMOVED = "removed"
    ALREADY_ABSENT = "already-absent"
    FAILED = "failed"


@dataclass(frozen=True)
class PurgeResult:
    package: str
    outcome: PurgeOutcome
    returncode: int = 0


def is_absent(status: Optional[str]) -> bool:
    return status is None or status in ABSENT_STATES


async def package_status(ctx: BuildContext, package: str) -> Optional[str]:
    """Return dpkg's status word for ``package``, or ``None`` if dpkg does not know it."""
    result = await ctx.chroot(commands.package_status(package), check=False, capture=True)
    if not result.ok:
        return None
    # One line per architecture dpkg knows the package for.
    words = [line.strip() for line in result.stdout.splitlines() if line.strip()]
    if "installed" in words:
        return "installed"
    return words[-1] if words else ""


async def purge_package(ctx: BuildContext, package: str) -> PurgeResult:
    if is_absent(await package_status(ctx, package)):
        logger.info("%s is not installed, nothing to purge", package)
        return PurgeResult(package, PurgeOutcome.ALREADY_ABSENT)
    result = await ctx.chroot(commands.apt_purge(package), check=False)
    if not result.ok:
        return PurgeResult(package, PurgeOutcome.FAILED, result.returncode)
    return PurgeResult(package, PurgeOutcome.REMOVED)


def remove_path(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)


class Provisioner:
    """Install the include list, purge the exclude list and trim the system."""

    name = "provision"
    description = "Provisioning inside chroot"

    async def run(self, ctx: BuildContext) -> None:
        config = ctx.config
        include = config.include_packages()
        exclude = config.exclude_packages()
        if not include:
            raise StageError(f"Include list {config.include_file} names no packages", stage=self.name)

        await ctx.chroot(commands.apt_update())
        await ctx.chroot(commands.apt_dist_upgrade())
        await ctx.chroot(commands.apt_install(include.packages))

        purges: Dict[str, PurgeOutcome] = {}
        for package in [*exclude, config.bloat_package]:
            if package in purges:
                continue
            result = await purge_package(ctx, package)
            if result.outcome is PurgeOutcome.FAILED:
                raise PurgeError(package, result.returncode)
            purges[package] = result.outcome
        ctx.artifacts["purges"] = purges

        for leftover in config.bloat_paths:
            remove_path(config.chroot_dir / leftover.lstrip("/"))

        await ctx.chroot(commands.apt_autoremove())
        await ctx.chroot(commands.apt_clean())
        lists_dir = config.chroot_dir / "var" / "lib" / "apt" / "lists"
        if lists_dir.is_dir():
            for entry in lists_dir.iterdir():
                remove_path(entry)

        await ctx.chroot(commands.set_default_target(config.default_target))
        await self.verify(ctx, include.packages, exclude.packages)

    async def verify(self, ctx: BuildContext, include: List[str], exclude: List[str]) -> None:
        missing: List[str] = []
        for package in include:
            if await package_status(ctx, package) != "installed":
                missing.append(package)
        lingering: List[str] = []
        for package in exclude:
            if not is_absent(await package_status(ctx, package)):
                lingering.append(package)
        problems = []
        if missing:
            problems.append(f"not installed: {', '.join(missing)}")
        if lingering:
            problems.append(f"still present: {', '.join(lingering)}")
        if problems:
            raise StageError("Package state check failed (" + "; ".join(problems) + ")", stage=self.name)
        logger.info("Verified %d included and %d excluded packages", len(include), len(exclude))
