from __future__ import annotations

import logging

from .. import commands
from ..context import BuildContext

logger = logging.getLogger(__name__)


class Bootstrapper:
    """Create the minimal root filesystem with debootstrap.

    Skipped when the sentinel left by a previous successful bootstrap exists.
    """

    name = "bootstrap"
    description = "Creating base system"

    async def run(self, ctx: BuildContext) -> None:
        config = ctx.config
        sentinel = config.bootstrap_sentinel
        if sentinel.exists():
            logger.info("Found %s, reusing existing base system", sentinel)
            ctx.artifacts["bootstrap_skipped"] = True
            return

        config.chroot_dir.mkdir(parents=True, exist_ok=True)
        await ctx.runner.run(commands.debootstrap(config))
        sentinel.touch()
        ctx.artifacts["bootstrap_skipped"] = False
