"""Boot image classification and placement."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Optional

from bootsource.constants import BIND_MOUNT_NAMES, BOOT_SIGNATURE_OFFSET, HYBRID_SIGNATURE, ROOT_DIR
from bootsource.exceptions import InvalidImageError
from bootsource.models import BootMode, Classification, ImageKind
from bootsource.tools import ExternalTools
from bootsource.utils import log


def read_boot_signature(path: Path) -> bytes:
    """Return the two bytes ending the first sector (offsets 510-511)."""
    with open(path, "rb") as f:
        return f.read(BOOT_SIGNATURE_OFFSET + 2)[-2:]


def inspect_boot_mode(path: Path, kind: ImageKind, tools: ExternalTools) -> Optional[BootMode]:
    """Return ``BootMode.LEGACY`` when the image has no EFI boot path, else None."""
    if kind is ImageKind.ISO and read_boot_signature(path) != HYBRID_SIGNATURE:
        listing = tools.iso_listing(path)
        if not listing.strip():
            raise InvalidImageError("Failed to read ISO file, invalid format!")
        if not any(line.startswith("/EFI") for line in listing.upper().splitlines()):
            return BootMode.LEGACY
        return None

    # Raw disks and hybrid ISOs carry a partition table
    table = tools.partition_table(path)
    if "EFI " not in table.upper():
        return BootMode.LEGACY
    return None


def is_bind_mount(path: Path, root_dir: Path = ROOT_DIR) -> bool:
    """Files such as /boot.iso or /custom.iso are mounted by the user and may be read-only."""
    if path.parent != root_dir:
        return False
    ext = path.suffix.lower()
    return path.name.lower() in {f"{name}{ext}" for name in BIND_MOUNT_NAMES}


def relocate(path: Path, storage_dir: Path, root_dir: Path = ROOT_DIR) -> Path:
    """Move an accepted image to ``<storage>/boot.<ext>`` unless it is already in place."""
    dest = storage_dir / f"boot{path.suffix}"
    if path == dest or is_bind_mount(path, root_dir):
        return path
    try:
        shutil.move(str(path), str(dest))
    except OSError as exc:
        raise InvalidImageError(f"Failed to move {path} to {dest} !") from exc
    return dest


def detect_type(
    path: Optional[Path],
    current_mode: str,
    storage_dir: Path,
    tools: ExternalTools,
    root_dir: Path = ROOT_DIR,
) -> Optional[Classification]:
    """Classify *path* as a bootable image.

    Returns None when the path is not a usable image (missing, empty or an
    unsupported extension). Raises InvalidImageError when it claims to be
    an image but cannot be read or moved into place.
    """
    if path is None or not path.is_file() or path.stat().st_size == 0:
        return None

    kind = ImageKind.from_path(path)
    if not kind.is_native:
        return None

    mode: Optional[BootMode] = None
    if not current_mode and kind is not ImageKind.QCOW2:
        mode = inspect_boot_mode(path, kind, tools)
        if mode is BootMode.LEGACY:
            log("DEBUG", f"No EFI boot path found in {path.name}; using legacy boot")

    return Classification(path=relocate(path, storage_dir, root_dir), boot_mode=mode)
