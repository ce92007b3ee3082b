"""Boot source resolution: find, download, unpack and convert the boot image."""

from __future__ import annotations

import fnmatch
import time
from pathlib import Path
from typing import Callable, Optional, Tuple

from bootsource.aliases import DistroAliases
from bootsource.classifier import detect_type
from bootsource.constants import (
    DEFAULT_ALIAS,
    EXIT_BIND_MISSING,
    EXIT_CONVERTED_UNREADABLE,
    EXIT_DOWNLOAD,
    EXIT_INVALID_BOOT,
    EXIT_SETUP,
    EXIT_UNREADABLE,
    PLACEHOLDER_MARKER,
    RETRY_SCHEDULE,
    SEARCH_ORDER,
    STALE_PATTERNS,
    TARGET_FORMATS,
)
from bootsource.convert import convert_image
from bootsource.download import countdown, download_file, retry_delays
from bootsource.exceptions import DownloadError, InvalidImageError, ManagerError
from bootsource.extract import extract_image
from bootsource.models import BootConfig, Classification, ConversionJob, ImageKind, PipelineResult
from bootsource.status import StatusBroadcaster
from bootsource.tools import ExternalTools
from bootsource.utils import ensure_directory, get_base, has_disk, log, set_owner


def normalize_boot_spec(raw: str) -> str:
    """Strip one layer of quotes and surrounding blanks; fall back to the default alias."""
    value = raw or ""
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        value = value[1:-1]
    value = value.strip()
    if not value or PLACEHOLDER_MARKER in value:
        value = DEFAULT_ALIAS
        log("WARN", f'no value specified for the BOOT variable, defaulting to "{value}".')
    return value


def validate_boot_spec(spec: str) -> None:
    if "." not in spec:
        if not spec:
            raise ManagerError("No BOOT value specified!", exit_code=EXIT_INVALID_BOOT)
        raise ManagerError(
            f'Invalid BOOT value specified, option "{spec}" is not recognized!',
            exit_code=EXIT_INVALID_BOOT,
        )
    if not spec.lower().startswith("http"):
        raise ManagerError(f'Invalid BOOT value specified, "{spec}" is not a valid URL!', exit_code=EXIT_INVALID_BOOT)


def find_entry(directory: Path, name: str, want_dir: bool) -> Optional[Path]:
    """Case-insensitive lookup of *name* directly inside *directory*."""
    try:
        entries = sorted(directory.iterdir())
    except OSError:
        return None
    target = name.lower()
    for entry in entries:
        if entry.name.lower() != target:
            continue
        if entry.is_dir() if want_dir else entry.is_file():
            return entry
    return None


class BootResolver:
    """Drive a single run from the BOOT value to a published boot image."""

    def __init__(
        self,
        cfg: BootConfig,
        tools: Optional[ExternalTools] = None,
        aliases: Optional[DistroAliases] = None,
        status: Optional[StatusBroadcaster] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.cfg = cfg
        self.tools = tools or ExternalTools()
        self.aliases = aliases or DistroAliases(cfg.alias_config)
        self.status = status or StatusBroadcaster()
        self._sleep = sleep

    def resolve(self) -> PipelineResult:
        result = PipelineResult(boot_mode=self.cfg.boot_mode)

        if self._search_local(result):
            return result
        if has_disk(self.cfg.devices):
            result.mark_device_attached()
            return result

        spec = normalize_boot_spec(self.cfg.boot)
        spec, name = self._resolve_alias(spec)
        validate_boot_spec(spec)

        self._prepare_storage()
        base = get_base(spec)
        destination = self.cfg.storage_dir / base
        destination.unlink(missing_ok=True)

        self._acquire(spec, destination, name)
        path = extract_image(destination, self.tools, self.status)
        self._finish(path, result)
        return result

    # -- local search ----------------------------------------------------

    def _search_local(self, result: PipelineResult) -> bool:
        for base, ext in SEARCH_ORDER:
            if self._find_file(f"{base}.{ext}", result):
                return True
        return False

    def _find_file(self, fname: str, result: PipelineResult) -> bool:
        root, storage = self.cfg.root_dir, self.cfg.storage_dir

        directory = find_entry(root, fname, want_dir=True) or find_entry(storage, fname, want_dir=True)
        if directory is not None:
            # A bind mount of a missing host file shows up as an empty directory.
            if has_disk(self.cfg.devices):
                result.mark_device_attached()
                return True
            raise ManagerError(
                f"The bind {directory} maps to a file that does not exist!", exit_code=EXIT_BIND_MISSING
            )

        file = find_entry(root, fname, want_dir=False)
        if file is None or file.stat().st_size == 0:
            file = find_entry(storage, fname, want_dir=False)

        classification = self._classify(file, result)
        if classification is None:
            return False
        result.publish(classification)
        return True

    def _classify(self, path: Optional[Path], result: PipelineResult) -> Optional[Classification]:
        try:
            return detect_type(path, result.boot_mode, self.cfg.storage_dir, self.tools, self.cfg.root_dir)
        except InvalidImageError as exc:
            log("ERROR", str(exc))
            return None

    # -- download --------------------------------------------------------

    def _resolve_alias(self, spec: str) -> Tuple[str, str]:
        entry = self.aliases.lookup(spec)
        if entry is None:
            return spec, ""
        msg = f"Retrieving latest {entry.name} version..."
        log("INFO", msg)
        self.status.update(msg)
        return (entry.url or spec), entry.name

    def _prepare_storage(self) -> None:
        storage = self.cfg.storage_dir
        try:
            ensure_directory(storage)
        except OSError as exc:
            raise ManagerError(f'Failed to create directory "{storage}" !', exit_code=EXIT_SETUP) from exc

        for entry in storage.iterdir():
            name = entry.name.lower()
            if entry.is_file() and any(fnmatch.fnmatch(name, pattern) for pattern in STALE_PATTERNS):
                log("DEBUG", f"Removing stale {entry.name}")
                entry.unlink()

    def _acquire(self, url: str, destination: Path, name: str) -> None:
        for attempt, delay in retry_delays(RETRY_SCHEDULE):
            if delay:
                countdown(delay, self.status, self._sleep)
            try:
                download_file(url, destination, name, self.status)
                return
            except DownloadError as exc:
                log("ERROR", str(exc))
                log("DEBUG", f"Download attempt {attempt} of {len(RETRY_SCHEDULE)} failed ({exc.kind})")

        destination.unlink(missing_ok=True)
        raise DownloadError(
            f"Giving up on {url} after {len(RETRY_SCHEDULE)} attempts", exit_code=EXIT_DOWNLOAD
        )

    # -- final image -----------------------------------------------------

    def _set_owner(self, path: Path) -> None:
        if not set_owner(path, self.cfg.uid, self.cfg.gid):
            log("ERROR", f'Failed to set the owner for "{path}" !')

    def _finish(self, path: Path, result: PipelineResult) -> None:
        kind = ImageKind.from_path(path)

        if kind.is_native:
            self._set_owner(path)
            classification = self._classify(path, result)
            if classification is None:
                raise ManagerError(f'Cannot read file "{path.name}"', exit_code=EXIT_UNREADABLE)
            result.publish(classification)
            return

        if not kind.is_foreign:
            raise ManagerError(
                f'Unknown file extension, type "{path.suffix}" is not recognized!', exit_code=EXIT_SETUP
            )

        target_format = self.cfg.disk_format
        destination = path.with_name(f"{path.stem}.{TARGET_FORMATS[target_format]}")
        job = ConversionJob(path, kind.qemu_format, destination, target_format)
        convert_image(job, self.tools, self.cfg.allocate, self.cfg.disk_flags, self.status)

        self._set_owner(destination)
        classification = self._classify(destination, result)
        if classification is None:
            raise ManagerError(f'Cannot convert file "{destination.name}"', exit_code=EXIT_CONVERTED_UNREADABLE)
        result.publish(classification)
