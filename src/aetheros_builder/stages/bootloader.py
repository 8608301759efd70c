"""GRUB menu and standalone BIOS/UEFI loaders for the ISO tree."""
from __future__ import annotations

import logging
import shutil
import textwrap

from .. import commands
from ..config import BuildConfig
from ..context import BuildContext

logger = logging.getLogger(__name__)


def render_grub_cfg(config: BuildConfig) -> str:
    """Render grub.cfg; its search directive names the sentinel at the ISO root."""
    return textwrap.dedent(
        f"""\
        search --set=root --file /{config.search_sentinel}
        set default="0"
        set timeout={config.boot_timeout}

        menuentry "{config.menu_title}" {{
            linux /casper/vmlinuz {config.kernel_cmdline}
            initrd /casper/initrd
        }}
        """
    )


class BootloaderBuilder:
    name = "bootloader"
    description = "GRUB setup"

    async def run(self, ctx: BuildContext) -> None:
        config = ctx.config
        grub_cfg = commands.grub_cfg_path(config)
        grub_cfg.parent.mkdir(parents=True, exist_ok=True)
        grub_cfg.write_text(render_grub_cfg(config), encoding="utf-8")

        sentinel = config.image_dir / config.search_sentinel
        sentinel.touch()

        config.bootloader_dir.mkdir(parents=True, exist_ok=True)
        efi_loader = commands.efi_loader_path(config)
        core_img = commands.bios_core_path(config)
        await ctx.runner.run(commands.grub_mkstandalone(config, "x86_64-efi", efi_loader))
        await ctx.runner.run(commands.grub_mkstandalone(config, "i386-pc", core_img))

        bios_img = config.image_dir / commands.ISO_BIOS_IMAGE
        with bios_img.open("wb") as out:
            for part in (config.cdboot_img, core_img):
                with part.open("rb") as src:
                    shutil.copyfileobj(src, out)
        logger.info("Wrote BIOS boot image %s", bios_img)

        efi_target = config.image_dir / commands.ISO_EFI_LOADER
        efi_target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(efi_loader, efi_target)

        ctx.artifacts.update(grub_cfg=grub_cfg, sentinel=sentinel, bios_img=bios_img, efi_loader=efi_target)
