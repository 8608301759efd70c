from __future__ import annotations

import logging

from .. import commands
from ..context import BuildContext
from ..errors import StageError

logger = logging.getLogger(__name__)


class IsoMasterer:
    """Master the hybrid BIOS/UEFI ISO from the staged image tree."""

    name = "iso"
    description = "Generating ISO"

    async def run(self, ctx: BuildContext) -> None:
        config = ctx.config
        for relative in (commands.ISO_BIOS_IMAGE, commands.ISO_EFI_LOADER):
            if not (config.image_dir / relative).is_file():
                raise StageError(f"Boot payload missing from image tree: {relative}", stage=self.name)

        iso_path = config.iso_path
        if iso_path.exists():
            logger.info("Overwriting existing %s", iso_path)
            iso_path.unlink()
        await ctx.runner.run(commands.xorriso(config))
        logger.info("ISO successfully created at %s", iso_path)
        ctx.artifacts["iso"] = iso_path
