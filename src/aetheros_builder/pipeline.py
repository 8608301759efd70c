"""Ordered execution of the build stages."""
from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Protocol, Sequence

from .config import BuildConfig
from .context import BuildContext
from .errors import BuildError, PrerequisiteError, StageError
from .stages import (
    BootloaderBuilder,
    Bootstrapper,
    ImagePacker,
    IsoMasterer,
    KernelStager,
    MountManager,
    Provisioner,
    Unmounter,
)

logger = logging.getLogger(__name__)

# binary -> host package providing it
REQUIRED_TOOLS = {
    "debootstrap": "debootstrap",
    "xorriso": "xorriso",
    "mksquashfs": "squashfs-tools",
    "unsquashfs": "squashfs-tools",
    "grub-mkstandalone": "grub-common",
}


class Stage(Protocol):
    name: str
    description: str

    async def run(self, ctx: BuildContext) -> None:
        ...


@dataclass(slots=True)
class PipelineResult:
    ran_stages: List[str]
    iso_path: Path
    artifacts: Dict[str, Any] = field(default_factory=dict)


def build_stages() -> List[Stage]:
    return [
        Bootstrapper(),
        MountManager(),
        Provisioner(),
        ImagePacker(),
        BootloaderBuilder(),
        KernelStager(),
        IsoMasterer(),
        Unmounter(),
    ]


def check_prerequisites(config: BuildConfig) -> None:
    """Raise :class:`PrerequisiteError` listing everything that would stop the build."""
    problems: List[str] = []
    if os.geteuid() != 0:
        problems.append("Run this build as root (it needs bind mounts and chroot).")
    for tool, package in REQUIRED_TOOLS.items():
        if shutil.which(tool) is None:
            problems.append(f"{tool} is required but not installed (package {package}).")
    for label, path in (
        ("BIOS boot sector", config.cdboot_img),
        ("Host resolver configuration", config.resolv_conf),
        ("Package include list", config.include_file),
    ):
        if not path.is_file():
            problems.append(f"{label} not found at {path}.")
    if config.include_file.is_file():
        try:
            config.include_packages()
        except (OSError, BuildError) as exc:
            problems.append(str(exc))
    if problems:
        raise PrerequisiteError(problems)


async def run_pipeline(
    ctx: BuildContext,
    stages: Sequence[Stage] | None = None,
    *,
    preflight: bool = True,
) -> PipelineResult:
    """Run ``stages`` strictly in order, stopping at the first failure.

    Host resources registered on the context are released before returning
    or raising.
    """
    stages = list(stages) if stages is not None else build_stages()
    if preflight:
        check_prerequisites(ctx.config)

    ran: List[str] = []
    ctx.artifacts["ran_stages"] = ran
    try:
        for index, stage in enumerate(stages, start=1):
            logger.info("=== Stage %d/%d: %s ===", index, len(stages), stage.description)
            try:
                await stage.run(ctx)
            except StageError as exc:
                if exc.stage is None:
                    exc.stage = stage.name
                raise
            except (OSError, BuildError) as exc:
                raise StageError(str(exc), stage=stage.name) from exc
            ran.append(stage.name)
    finally:
        await ctx.release()

    logger.info("Done.")
    return PipelineResult(ran_stages=ran, iso_path=ctx.config.iso_path, artifacts=dict(ctx.artifacts))
