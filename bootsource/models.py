"""Data models for the boot source resolver."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional

from bootsource.constants import BOOT_NONE, DEFAULT_CONFIG_PATH, DEFAULT_STORAGE_DIR, ROOT_DIR


class BootMode(str, Enum):
    """Boot mode decided by image inspection.

    Inspection can only rule out UEFI; an unset mode leaves the launcher on its
    UEFI default.
    """

    UNSET = ""
    LEGACY = "legacy"


class ImageKind(Enum):
    RAW = "raw"
    QCOW2 = "qcow2"
    ISO = "iso"
    VDI = "vdi"
    VPC = "vpc"
    VMDK = "vmdk"
    GZIP_STREAM = "gzip"
    XZ_STREAM = "xz"
    CONTAINER = "container"
    UNKNOWN = "unknown"

    @classmethod
    def from_path(cls, path: Path) -> "ImageKind":
        """Map a file name to its kind using the last extension only."""
        suffix = Path(path).suffix.lower().lstrip(".")
        return _EXTENSION_KINDS.get(suffix, cls.UNKNOWN)

    @property
    def is_native(self) -> bool:
        """Formats the launcher boots directly."""
        return self in (ImageKind.RAW, ImageKind.QCOW2, ImageKind.ISO)

    @property
    def is_foreign(self) -> bool:
        """Other hypervisors' disk formats that need conversion."""
        return self in (ImageKind.VDI, ImageKind.VPC, ImageKind.VMDK)

    @property
    def is_disk_image(self) -> bool:
        """Native or foreign disk image, as opposed to a compressed wrapper."""
        return self.is_native or self.is_foreign

    @property
    def is_compressed(self) -> bool:
        return self in (ImageKind.GZIP_STREAM, ImageKind.XZ_STREAM, ImageKind.CONTAINER)

    @property
    def qemu_format(self) -> Optional[str]:
        """Format name understood by qemu-img, if any."""
        if self.is_disk_image and self is not ImageKind.ISO:
            return self.value
        return None


_EXTENSION_KINDS: Dict[str, ImageKind] = {
    "img": ImageKind.RAW,
    "raw": ImageKind.RAW,
    "qcow2": ImageKind.QCOW2,
    "iso": ImageKind.ISO,
    "vdi": ImageKind.VDI,
    "vhd": ImageKind.VPC,
    "vhdx": ImageKind.VPC,
    "vmdk": ImageKind.VMDK,
    "gz": ImageKind.GZIP_STREAM,
    "gzip": ImageKind.GZIP_STREAM,
    "xz": ImageKind.XZ_STREAM,
    "7z": ImageKind.CONTAINER,
    "zip": ImageKind.CONTAINER,
    "rar": ImageKind.CONTAINER,
    "lzma": ImageKind.CONTAINER,
    "bz": ImageKind.CONTAINER,
    "bz2": ImageKind.CONTAINER,
}


class AliasEntry(NamedTuple):
    name: str
    url: Optional[str]


@dataclass
class BootConfig:
    boot: str = ""
    storage_dir: Path = DEFAULT_STORAGE_DIR
    allocate: bool = False
    disk_format: str = "raw"
    disk_flags: str = ""
    # BOOT_MODE as given (legacy, uefi, windows_secure ...); non-empty skips inspection
    boot_mode: str = ""
    devices: List[str] = field(default_factory=list)
    uid: Optional[int] = None
    gid: Optional[int] = None
    alias_config: Path = DEFAULT_CONFIG_PATH
    root_dir: Path = ROOT_DIR


@dataclass(frozen=True)
class ConversionJob:
    source: Path
    source_format: str
    destination: Path
    destination_format: str

    @property
    def temporary(self) -> Path:
        """Scratch file beside the destination so the final rename stays on one filesystem."""
        return self.destination.with_name(self.destination.name + ".tmp")


@dataclass
class Classification:
    path: Path
    boot_mode: Optional[BootMode] = None


@dataclass
class PipelineResult:
    boot_mode: str = ""
    boot: Optional[Path] = None
    device_attached: bool = False

    def apply_boot_mode(self, mode: Optional[BootMode]) -> None:
        # First decisive signal wins; later classifications never overwrite it.
        if mode is None or mode is BootMode.UNSET:
            return
        if not self.boot_mode:
            self.boot_mode = mode.value

    def publish(self, classification: Classification) -> None:
        self.boot = classification.path
        self.apply_boot_mode(classification.boot_mode)

    def mark_device_attached(self) -> None:
        self.boot = None
        self.device_attached = True

    @property
    def boot_value(self) -> str:
        if self.device_attached or self.boot is None:
            return BOOT_NONE
        return str(self.boot)

    def as_env(self) -> Dict[str, str]:
        return {"BOOT": self.boot_value, "BOOT_MODE": self.boot_mode}
