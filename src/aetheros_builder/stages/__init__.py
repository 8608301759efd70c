"""Pipeline stages, in execution order."""

from .bootstrap import Bootstrapper
from .mounts import MountManager, Unmounter
from .provision import Provisioner
from .image import ImagePacker
from .bootloader import BootloaderBuilder
from .kernel import KernelStager
from .iso import IsoMasterer

__all__ = [
    "Bootstrapper",
    "MountManager",
    "Provisioner",
    "ImagePacker",
    "BootloaderBuilder",
    "KernelStager",
    "IsoMasterer",
    "Unmounter",
]
