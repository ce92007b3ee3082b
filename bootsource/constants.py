"""Global constants and path configuration for the boot source resolver."""

from __future__ import annotations

import os
from pathlib import Path

DEFAULT_STORAGE_DIR = Path("/storage")
ROOT_DIR = Path("/")
DEFAULT_CONFIG_PATH = Path(__file__).with_name("distros.yaml")

_LOG_VERBOSE = os.environ.get("LOG_VERBOSE", "").lower() in {"1", "true", "yes", "on"}

# BOOT values that mean "nothing configured"
DEFAULT_ALIAS = "alpine"
PLACEHOLDER_MARKER = "example.com/"

# Published when a disk device is attached instead of an image file
BOOT_NONE = "none"

# Local candidates, highest priority first
SEARCH_ORDER = (
    ("boot", "img"),
    ("boot", "raw"),
    ("boot", "iso"),
    ("boot", "qcow2"),
    ("custom", "iso"),
)
BIND_MOUNT_NAMES = ("boot", "custom")

# Firmware, vars and disks left behind by a differently configured run
STALE_PATTERNS = ("*.rom", "*.vars", "data.*", "qemu.*")
EXTRACT_DIR_NAME = "extract"

# Wait (seconds) before each download attempt
RETRY_SCHEDULE = (0, 5, 10)
RETRY_MESSAGE = "Retrying failed download in X seconds..."
MIN_IMAGE_SIZE = 100_000
DOWNLOAD_TIMEOUT = 30
DOWNLOAD_CHUNK_SIZE = 1024 * 256
PROGRESS_INTERVAL = 1.0
USER_AGENT = "bootsource/1.0"

# Boot sector bytes 510-511 are zero on a hybrid ISO carrying its own MBR
BOOT_SIGNATURE_OFFSET = 510
HYBRID_SIGNATURE = b"\x00\x00"

COW_FILESYSTEMS = {"btrfs"}
NOCOW_ATTRIBUTE = "C"

TARGET_FORMATS = {"raw": "img", "qcow2": "qcow2"}

EXIT_FAILURE = 1
EXIT_ARCHIVE_MISSING = 32
EXIT_SETUP = 33
EXIT_ALIAS = 34
EXIT_CONVERSION = 35
EXIT_CONVERTED_UNREADABLE = 36
EXIT_BIND_MISSING = 37
EXIT_DOWNLOAD = 60
EXIT_UNREADABLE = 63
EXIT_INVALID_BOOT = 64
