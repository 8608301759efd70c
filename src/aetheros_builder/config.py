"""Configuration models for AetherOS live-ISO builds."""
from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from .errors import BuildError


SUPPORTED_ARCHES = ["amd64"]

SUPPORTED_VARIANTS = ["minbase", "buildd"]

KERNEL_POLICIES = ["highest", "first"]

DATA_DIR = Path(__file__).resolve().parent / "data"
DEFAULT_INCLUDE_FILE = DATA_DIR / "packages-include.txt"
DEFAULT_EXCLUDE_FILE = DATA_DIR / "packages-exclude.txt"
DEFAULT_PROFILE = "aetheros"
DEFAULT_WORKDIR = Path.home() / f"{DEFAULT_PROFILE}-build"

BOOTSTRAP_SENTINEL = ".debootstrap_debcompleted"

_VOLID_RE = re.compile(r"^[A-Z0-9_]{1,32}$")


@dataclass(slots=True)
class PackageList:
    """Ordered package names read from an include or exclude list."""

    packages: List[str] = field(default_factory=list)

    @classmethod
    def parse(cls, text: str) -> "PackageList":
        """Parse list text: one name per line, ``#`` comments and blanks ignored."""
        packages: List[str] = []
        for raw in text.splitlines():
            name = raw.split("#", 1)[0].strip()
            if name and name not in packages:
                packages.append(name)
        return cls(packages=packages)

    @classmethod
    def from_file(cls, path: Path, *, missing_ok: bool = False) -> "PackageList":
        path = Path(path)
        if missing_ok and not path.exists():
            return cls()
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise BuildError(f"Package list {path} is not valid UTF-8 (byte {exc.start})") from exc
        return cls.parse(text)

    def __iter__(self) -> Iterator[str]:
        return iter(self.packages)

    def __len__(self) -> int:
        return len(self.packages)


@dataclass(slots=True)
class BuildConfig:
    """In-memory representation of a live-ISO build configuration."""

    release: str = "plucky"
    architecture: str = "amd64"
    mirror: str = "http://archive.ubuntu.com/ubuntu/"
    variant: str = "minbase"
    components: List[str] = field(default_factory=lambda: ["main", "restricted", "universe", "multiverse"])
    profile: str = DEFAULT_PROFILE
    volume_id: str = "AETHEROS"
    workdir: Path = DEFAULT_WORKDIR
    include_file: Path = DEFAULT_INCLUDE_FILE
    exclude_file: Path = DEFAULT_EXCLUDE_FILE
    bloat_package: str = "snapd"
    bloat_paths: List[str] = field(
        default_factory=lambda: ["/snap", "/var/snap", "/var/lib/snapd", "/var/cache/snapd"]
    )
    default_target: str = "graphical.target"
    squashfs_block_size: int = 1048576
    squashfs_compression: str = "zstd"
    squashfs_level: int = 19
    squashfs_excludes: List[str] = field(default_factory=lambda: ["boot"])
    menu_title: str = "Boot AetherOS (live)"
    boot_timeout: int = 5
    kernel_cmdline: str = "boot=casper quiet splash --"
    search_sentinel: str = ""
    resolv_conf: Path = Path("/etc/resolv.conf")
    cdboot_img: Path = Path("/usr/lib/grub/i386-pc/cdboot.img")
    kernel_policy: str = "highest"
    build_date: Optional[dt.date] = None
    simulate: bool = False

    def __post_init__(self) -> None:
        self.workdir = Path(self.workdir).expanduser()
        self.include_file = Path(self.include_file)
        self.exclude_file = Path(self.exclude_file)
        self.resolv_conf = Path(self.resolv_conf)
        self.cdboot_img = Path(self.cdboot_img)
        if isinstance(self.build_date, str):
            self.build_date = dt.date.fromisoformat(self.build_date)
        if not self.search_sentinel:
            self.search_sentinel = self.volume_id
        self.validate()

    def validate(self) -> None:
        """Validate configuration values raising ``ValueError`` when invalid."""
        if self.architecture not in SUPPORTED_ARCHES:
            raise ValueError(f"Unsupported architecture: {self.architecture}")
        if self.variant not in SUPPORTED_VARIANTS:
            raise ValueError(f"Unsupported variant: {self.variant}")
        if self.kernel_policy not in KERNEL_POLICIES:
            raise ValueError(f"Unsupported kernel policy: {self.kernel_policy}")
        if not self.mirror:
            raise ValueError("A package mirror must be provided")
        if not self.components:
            raise ValueError("At least one repository component must be selected")
        if not self.release:
            raise ValueError("A release codename must be provided")
        if not self.profile:
            raise ValueError("Profile name cannot be empty")
        if not _VOLID_RE.match(self.volume_id):
            raise ValueError(f"Invalid ISO volume id: {self.volume_id!r}")
        if "/" in self.search_sentinel:
            raise ValueError("The boot sentinel must be a bare file name")
        if self.squashfs_block_size <= 0 or self.squashfs_level <= 0:
            raise ValueError("Compression parameters must be positive")
        if self.boot_timeout < 0:
            raise ValueError("Boot timeout cannot be negative")

    @property
    def chroot_dir(self) -> Path:
        return self.workdir / "chroot"

    @property
    def image_dir(self) -> Path:
        return self.workdir / "image"

    @property
    def bootloader_dir(self) -> Path:
        return self.workdir / "bootloader"

    @property
    def log_dir(self) -> Path:
        return self.workdir / "logs"

    @property
    def iso_path(self) -> Path:
        # An unpinned date means the day the build runs.
        day = self.build_date or dt.date.today()
        return self.workdir / f"{self.profile}-{day:%Y%m%d}.iso"

    @property
    def bootstrap_sentinel(self) -> Path:
        return self.chroot_dir / BOOTSTRAP_SENTINEL

    def include_packages(self) -> PackageList:
        return PackageList.from_file(self.include_file)

    def exclude_packages(self) -> PackageList:
        return PackageList.from_file(self.exclude_file, missing_ok=True)

    def to_dict(self) -> Dict[str, object]:
        data = asdict(self)
        for key in ("workdir", "include_file", "exclude_file", "resolv_conf", "cdboot_img"):
            data[key] = str(data[key])
        if self.build_date is None:
            del data["build_date"]
        else:
            data["build_date"] = self.build_date.isoformat()
        return data

    def with_updates(self, **updates: object) -> "BuildConfig":
        fields = self.to_dict()
        # The sentinel follows the volume id unless it was set independently.
        if "volume_id" in updates and "search_sentinel" not in updates and self.search_sentinel == self.volume_id:
            fields["search_sentinel"] = ""
        fields.update(updates)
        return BuildConfig.from_dict(fields)

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "BuildConfig":
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        return cls(**data)
