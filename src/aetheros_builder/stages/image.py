from __future__ import annotations

import logging

from .. import commands
from ..context import BuildContext
from ..errors import StageError

logger = logging.getLogger(__name__)


def parse_du_bytes(output: str) -> int:
    """Return the byte count from ``du -s`` output (``<bytes>\\t<path>``)."""
    for line in reversed(output.strip().splitlines()):
        field = line.split("\t", 1)[0].strip()
        if field.isdigit():
            return int(field)
    raise ValueError(f"Unexpected du output: {output!r}")


class ImagePacker:
    """Pack the build root into casper/filesystem.squashfs and record its size."""

    name = "squashfs"
    description = "Building SquashFS"

    async def run(self, ctx: BuildContext) -> None:
        config = ctx.config
        squashfs = commands.squashfs_path(config)
        squashfs.parent.mkdir(parents=True, exist_ok=True)
        await ctx.runner.run(commands.mksquashfs(config))

        usage = await ctx.runner.run(commands.disk_usage(config), capture=True)
        try:
            size = parse_du_bytes(usage.stdout)
        except ValueError as exc:
            raise StageError(str(exc), stage=self.name) from exc
        size_file = squashfs.with_name("filesystem.size")
        size_file.write_text(str(size), encoding="utf-8")
        logger.info("Uncompressed root filesystem is %d bytes", size)

        ctx.artifacts["squashfs"] = squashfs
        ctx.artifacts["filesystem_size"] = size
