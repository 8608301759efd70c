"""Copy the installed kernel and initrd into the ISO tree."""
from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path
from typing import List, Tuple

from ..context import BuildContext
from ..errors import StageError

logger = logging.getLogger(__name__)

KERNEL_PREFIX = "vmlinuz-"
INITRD_PREFIX = "initrd.img-"

_TOKEN_RE = re.compile(r"\d+|[^\d]+")


def version_key(version: str) -> Tuple[Tuple[int, int, str], ...]:
    """Sort key comparing numeric runs numerically (``6.14.0-15`` > ``6.8.0-40``)."""
    key = []
    for token in _TOKEN_RE.findall(version):
        if token.isdigit():
            key.append((1, int(token), ""))
        else:
            key.append((0, 0, token))
    return tuple(key)


def installed_kernels(boot_dir: Path) -> List[str]:
    if not boot_dir.is_dir():
        return []
    return sorted(
        entry.name[len(KERNEL_PREFIX):]
        for entry in boot_dir.iterdir()
        if entry.name.startswith(KERNEL_PREFIX) and entry.is_file()
    )


def select_kernel(versions: List[str], policy: str) -> str:
    """Pick one version; ``highest`` by version order, ``first`` lexicographically."""
    if not versions:
        raise ValueError("no kernels to choose from")
    if policy == "first":
        return min(versions)
    if policy == "highest":
        return max(versions, key=version_key)
    raise ValueError(f"Unsupported kernel policy: {policy}")


class KernelStager:
    name = "kernel"
    description = "Copying kernel & initrd"

    async def run(self, ctx: BuildContext) -> None:
        config = ctx.config
        boot_dir = config.chroot_dir / "boot"
        versions = installed_kernels(boot_dir)
        if not versions:
            raise StageError(f"No {KERNEL_PREFIX}* found in {boot_dir}", stage=self.name)
        version = select_kernel(versions, config.kernel_policy)
        if len(versions) > 1:
            logger.info("Kernels installed: %s; using %s (%s policy)", ", ".join(versions), version, config.kernel_policy)

        kernel = boot_dir / f"{KERNEL_PREFIX}{version}"
        initrd = boot_dir / f"{INITRD_PREFIX}{version}"
        if not initrd.is_file():
            raise StageError(f"Kernel {version} has no matching {initrd.name}", stage=self.name)

        casper = config.image_dir / "casper"
        casper.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(kernel, casper / "vmlinuz")
        shutil.copyfile(initrd, casper / "initrd")
        logger.info("Staged kernel %s", version)
        ctx.artifacts["kernel_version"] = version
