"""Configuration loading and environment variable parsing for the boot source resolver."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from bootsource.constants import DEFAULT_CONFIG_PATH, DEFAULT_STORAGE_DIR, TARGET_FORMATS
from bootsource.exceptions import ManagerError
from bootsource.models import BootConfig
from bootsource.utils import get_env, parse_optional_int_env

MAX_DEVICES = 6


def parse_allocate(raw: Optional[str]) -> bool:
    """ALLOCATE is on when set to anything not starting with n/N."""
    value = (raw or "").strip()
    return bool(value) and not value.lower().startswith("n")


def parse_boot_mode(raw: Optional[str]) -> str:
    """BOOT_MODE is passed through to the launcher; any non-empty value forces it."""
    return (raw or "").strip()


def parse_devices() -> List[str]:
    """Collect DEVICE, DEVICE2 ... DEVICE6."""
    devices: List[str] = []
    for index in range(1, MAX_DEVICES + 1):
        name = "DEVICE" if index == 1 else f"DEVICE{index}"
        value = (get_env(name) or "").strip()
        if value:
            devices.append(value)
    return devices


def parse_env() -> BootConfig:
    storage_raw = (get_env("STORAGE") or "").strip()
    storage_dir = Path(storage_raw) if storage_raw else DEFAULT_STORAGE_DIR

    disk_format = (get_env("DISK_FMT") or "raw").strip().lower() or "raw"
    if disk_format not in TARGET_FORMATS:
        supported = ", ".join(sorted(TARGET_FORMATS))
        raise ManagerError(f"Unsupported DISK_FMT '{disk_format}'. Supported: {supported}")

    alias_raw = (get_env("DISTROS_CONFIG") or "").strip()

    return BootConfig(
        boot=get_env("BOOT", "") or "",
        storage_dir=storage_dir,
        allocate=parse_allocate(get_env("ALLOCATE")),
        disk_format=disk_format,
        disk_flags=(get_env("DISK_FLAGS") or "").strip(),
        boot_mode=parse_boot_mode(get_env("BOOT_MODE")),
        devices=parse_devices(),
        uid=parse_optional_int_env("UID"),
        gid=parse_optional_int_env("GID"),
        alias_config=Path(alias_raw) if alias_raw else DEFAULT_CONFIG_PATH,
    )
