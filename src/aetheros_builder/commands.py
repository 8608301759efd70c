"""Argument vectors for every external tool the build invokes.

Stages execute these and :func:`aetheros_builder.builder.render_command_sequence`
renders them as a preview, so both always agree.
"""
from __future__ import annotations

from pathlib import Path
from typing import List, Sequence

from .config import BuildConfig

BIND_MOUNTS = ["dev", "run", "proc", "sys"]

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


def debootstrap(config: BuildConfig) -> List[str]:
    return [
        "debootstrap",
        f"--arch={config.architecture}",
        f"--variant={config.variant}",
        f"--components={','.join(config.components)}",
        config.release,
        str(config.chroot_dir),
        config.mirror,
    ]


def bind_mount(config: BuildConfig, name: str) -> List[str]:
    return ["mount", "--bind", f"/{name}", str(config.chroot_dir / name)]


def unmount(config: BuildConfig, name: str) -> List[str]:
    return ["umount", "-lf", str(config.chroot_dir / name)]


def in_chroot(config: BuildConfig, argv: Sequence[str]) -> List[str]:
    return ["chroot", str(config.chroot_dir), *argv]


def apt_update() -> List[str]:
    return ["apt-get", "update"]


def apt_dist_upgrade() -> List[str]:
    return ["apt-get", "-y", "dist-upgrade"]


def apt_install(packages: Sequence[str]) -> List[str]:
    return ["apt-get", "install", "-y", "--no-install-recommends", "--no-install-suggests", *packages]


def apt_purge(package: str) -> List[str]:
    return ["apt-get", "purge", "-y", package]


def apt_autoremove() -> List[str]:
    return ["apt-get", "autoremove", "-y", "--purge"]


def apt_clean() -> List[str]:
    return ["apt-get", "clean"]


def package_status(package: str) -> List[str]:
    return ["dpkg-query", "--show", r"--showformat=${db:Status-Status}\n", package]


def set_default_target(target: str) -> List[str]:
    return ["systemctl", "set-default", target]


def squashfs_path(config: BuildConfig) -> Path:
    return config.image_dir / "casper" / "filesystem.squashfs"


def mksquashfs(config: BuildConfig) -> List[str]:
    argv = [
        "mksquashfs",
        str(config.chroot_dir),
        str(squashfs_path(config)),
        "-noappend",
        "-no-progress",
        "-one-file-system",
        "-b",
        str(config.squashfs_block_size),
        "-comp",
        config.squashfs_compression,
        "-Xcompression-level",
        str(config.squashfs_level),
    ]
    for excluded in config.squashfs_excludes:
        argv.extend(["-e", excluded])
    return argv


def disk_usage(config: BuildConfig) -> List[str]:
    return ["du", "-sx", "--block-size=1", str(config.chroot_dir)]


def grub_cfg_path(config: BuildConfig) -> Path:
    return config.image_dir / "boot" / "grub" / "grub.cfg"


def efi_loader_path(config: BuildConfig) -> Path:
    return config.bootloader_dir / "bootx64.efi"


def bios_core_path(config: BuildConfig) -> Path:
    return config.bootloader_dir / "core.img"


def grub_mkstandalone(config: BuildConfig, platform: str, output: Path) -> List[str]:
    return [
        "grub-mkstandalone",
        "-O",
        platform,
        "-o",
        str(output),
        f"boot/grub/grub.cfg={grub_cfg_path(config)}",
    ]


# Paths inside the ISO tree; the xorriso boot flags reference these.
ISO_BIOS_IMAGE = "boot/grub/bios.img"
ISO_EFI_LOADER = "EFI/boot/bootx64.efi"


def xorriso(config: BuildConfig) -> List[str]:
    return [
        "xorriso",
        "-as",
        "mkisofs",
        "-iso-level",
        "3",
        "-J",
        "-joliet-long",
        "-full-iso9660-filenames",
        "-volid",
        config.volume_id,
        "-output",
        str(config.iso_path),
        "-eltorito-boot",
        ISO_BIOS_IMAGE,
        "-no-emul-boot",
        "-boot-load-size",
        "4",
        "-boot-info-table",
        "-eltorito-alt-boot",
        "-e",
        ISO_EFI_LOADER,
        "-no-emul-boot",
        "-append_partition",
        "2",
        "0xef",
        str(config.image_dir / ISO_EFI_LOADER),
        "-isohybrid-gpt-basdat",
        str(config.image_dir),
    ]
