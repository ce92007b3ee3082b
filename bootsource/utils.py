"""Utility functions for the boot source resolver."""

from __future__ import annotations

import os
import re
import stat
import subprocess
import sys
from pathlib import Path
from typing import List, Optional
from urllib.parse import unquote

from bootsource.constants import _LOG_VERBOSE
from bootsource.exceptions import ManagerError


def log(level: str, message: str) -> None:
    """Colour-coded log line on stderr; stdout carries only the published outputs."""
    if level == "DEBUG" and not _LOG_VERBOSE:
        return
    colours = {
        "INFO": "\033[0;34m",
        "WARN": "\033[1;33m",
        "ERROR": "\033[0;31m",
        "SUCCESS": "\033[0;32m",
        "DEBUG": "\033[0;90m",
    }
    colour = colours.get(level, "")
    reset = "\033[0m" if colour else ""
    print(f"{colour}[{level}]{reset} {message}", file=sys.stderr, flush=True)


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def parse_optional_int_env(name: str, min_val: int = 0) -> Optional[int]:
    raw = (get_env(name) or "").strip()
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ManagerError(f"{name} must be an integer (got '{raw}')")
    if value < min_val:
        raise ManagerError(f"{name} must be >= {min_val} (got {value})")
    return value


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def format_bytes(size: int) -> str:
    """Render a byte count in binary units, e.g. ``1.5 GB``."""
    value = float(size)
    for unit in ("bytes", "KB", "MB", "GB", "TB"):
        if abs(value) < 1024 or unit == "TB":
            break
        value /= 1024
    if unit == "bytes":
        return f"{int(value)} bytes"
    text = f"{value:.1f}".rstrip("0").rstrip(".")
    return f"{text} {unit}"


def get_base(url: str) -> str:
    """Return a filesystem-safe file name for the last path segment of a URL."""
    base = url.split("?", 1)[0].rstrip("/")
    base = base.rsplit("/", 1)[-1]
    base = unquote(base)
    return re.sub(r"[^A-Za-z0-9._-]", "_", base)


def get_available_disk_space(path: Path) -> int:
    """Return available disk space in bytes for the filesystem containing *path*."""
    try:
        st = os.statvfs(path)
        return st.f_bavail * st.f_frsize
    except OSError:
        return 0


def set_owner(path: Path, uid: Optional[int], gid: Optional[int]) -> bool:
    """Hand the artifact to the configured user; no-op when neither id is set."""
    if uid is None and gid is None:
        return True
    try:
        os.chown(path, -1 if uid is None else uid, -1 if gid is None else gid)
    except OSError as exc:
        log("DEBUG", f"chown {path} failed: {exc}")
        return False
    return True


def has_disk(devices: List[str]) -> bool:
    """Return True if any configured device path is a block device."""
    for device in devices:
        try:
            mode = os.stat(device).st_mode
        except OSError:
            continue
        if stat.S_ISBLK(mode):
            return True
    return False


def run(cmd: List[str], check: bool = True, **kwargs) -> subprocess.CompletedProcess:
    """Run command with logging."""
    log("DEBUG", f"Running: {' '.join(cmd)}")
    result = subprocess.run(cmd, check=check, text=True, **kwargs)
    return result
