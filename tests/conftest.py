"""Shared test fixtures and a fake for the external tool wrappers."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

import pytest
import yaml

from bootsource.models import BootConfig


def make_image(path: Path, size: int = 200_000, signature: bytes = b"\x55\xaa") -> Path:
    """Write a zero-filled image whose first sector ends with *signature*."""
    data = bytearray(size)
    data[510:512] = signature
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(bytes(data))
    return path


class FakeTools:
    """Stand-in for ExternalTools returning canned outputs and recording calls."""

    def __init__(self) -> None:
        self.iso_output = ""
        self.partition_output = ""
        self.virtual = 0
        self.convert_ok = True
        self.converted_payload = b"c" * 150_000
        self.fs_type = "ext2/ext3"
        self.fallocate_results: List[bool] = [True, True]
        self.attributes = "--------------------"
        self.archive_entries: Dict[str, bytes] = {}
        self.archive_rc = 0
        self.calls: List[tuple] = []

    def iso_listing(self, path: Path) -> str:
        self.calls.append(("iso_listing", path))
        return self.iso_output

    def partition_table(self, path: Path) -> str:
        self.calls.append(("partition_table", path))
        return self.partition_output

    def virtual_size(self, path: Path, fmt: str) -> int:
        self.calls.append(("virtual_size", path, fmt))
        return self.virtual

    def convert(self, source, source_format, destination, destination_format, flags, options) -> bool:
        self.calls.append(("convert", source, source_format, destination, destination_format, list(flags), options))
        if self.convert_ok:
            destination.write_bytes(self.converted_payload)
        return self.convert_ok

    def filesystem_type(self, directory: Path) -> str:
        self.calls.append(("filesystem_type", directory))
        return self.fs_type

    def fallocate(self, path: Path, size: int, posix: bool = False) -> bool:
        self.calls.append(("fallocate", path, size, posix))
        return self.fallocate_results.pop(0)

    def file_attributes(self, path: Path) -> str:
        self.calls.append(("file_attributes", path))
        return self.attributes

    def extract_archive(self, archive: Path, destination: Path) -> int:
        self.calls.append(("extract_archive", archive, destination))
        for name, payload in self.archive_entries.items():
            target = destination / name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(payload)
        return self.archive_rc

    def called(self, name: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == name]


@pytest.fixture(autouse=True)
def status_file(tmp_path, monkeypatch) -> Path:
    """Keep StatusBroadcaster away from the real web console directory."""
    path = tmp_path / "status" / "status.txt"
    monkeypatch.setattr("bootsource.status.STATUS_FILE", path)
    return path


@pytest.fixture
def fake_tools() -> FakeTools:
    return FakeTools()


@pytest.fixture
def alias_config(tmp_path) -> Path:
    config = {
        "distributions": {
            "alpine": {
                "name": "Alpine Linux",
                "url": "https://mirror.test/alpine/alpine-virt.iso",
            },
            "tiny": {
                "name": "Tiny Core",
                "url": "https://mirror.test/tiny/core.img.gz",
            },
        }
    }
    path = tmp_path / "distros.yaml"
    path.write_text(yaml.dump(config))
    return path


@pytest.fixture
def boot_config(tmp_path, alias_config) -> BootConfig:
    root = tmp_path / "root"
    storage = tmp_path / "storage"
    root.mkdir()
    storage.mkdir()
    return BootConfig(storage_dir=storage, root_dir=root, alias_config=alias_config)


@pytest.fixture
def mock_env(monkeypatch):
    """Helper to set environment variables for tests."""

    def _set(**kwargs: Optional[str]):
        for key, value in kwargs.items():
            if value is None:
                monkeypatch.delenv(key, raising=False)
            else:
                monkeypatch.setenv(key, str(value))

    return _set


# Environment variables read by parse_env(); cleared for a clean slate.
_PARSE_ENV_VARS = [
    "BOOT",
    "STORAGE",
    "ALLOCATE",
    "DISK_FMT",
    "DISK_FLAGS",
    "BOOT_MODE",
    "DEVICE",
    "DEVICE2",
    "DEVICE3",
    "DEVICE4",
    "DEVICE5",
    "DEVICE6",
    "UID",
    "GID",
    "DISTROS_CONFIG",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Clear all environment variables that parse_env() reads."""
    for key in _PARSE_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
