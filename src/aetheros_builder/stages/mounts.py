"""Bind mounts that make the build root usable for chrooted tools."""
from __future__ import annotations

import logging
import shutil

from .. import commands
from ..context import BuildContext

logger = logging.getLogger(__name__)


class MountManager:
    name = "mount"
    description = "Setting up bind mounts"

    async def run(self, ctx: BuildContext) -> None:
        config = ctx.config
        mounted = ctx.artifacts.setdefault("mounts", [])
        for name in commands.BIND_MOUNTS:
            (config.chroot_dir / name).mkdir(parents=True, exist_ok=True)
            await ctx.runner.run(commands.bind_mount(config, name))
            mounted.append(name)
            ctx.exit_stack.push_async_callback(_release, ctx, name)

        resolv = config.chroot_dir / "etc" / "resolv.conf"
        resolv.parent.mkdir(parents=True, exist_ok=True)
        # Ubuntu ships a symlink into /run, which is now the host's /run.
        if resolv.is_symlink():
            resolv.unlink()
        shutil.copyfile(config.resolv_conf, resolv)
        logger.info("Copied %s into the build root", config.resolv_conf)


class Unmounter:
    """Release every bind registered by :class:`MountManager`."""

    name = "unmount"
    description = "Releasing bind mounts"

    async def run(self, ctx: BuildContext) -> None:
        await ctx.release()


async def _release(ctx: BuildContext, name: str) -> None:
    try:
        result = await ctx.runner.run(commands.unmount(ctx.config, name), check=False)
    except OSError as exc:
        logger.warning("Could not run umount for %s: %s", ctx.config.chroot_dir / name, exc)
        return
    if result.ok:
        ctx.artifacts["mounts"].remove(name)
    else:
        logger.warning("Could not unmount %s (exit code %s)", ctx.config.chroot_dir / name, result.returncode)
