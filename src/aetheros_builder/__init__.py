"""aetheros_builder package."""

from .config import BuildConfig, PackageList
from .builder import IsoBuildRunner, render_command_sequence

__all__ = [
    "BuildConfig",
    "PackageList",
    "IsoBuildRunner",
    "render_command_sequence",
]
