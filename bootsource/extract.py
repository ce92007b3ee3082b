"""Decompression and archive extraction of downloaded images."""

from __future__ import annotations

import gzip
import lzma
import shutil
from pathlib import Path
from typing import Optional

from bootsource.constants import DOWNLOAD_CHUNK_SIZE, EXIT_SETUP, EXTRACT_DIR_NAME
from bootsource.exceptions import ExtractionError, ManagerError
from bootsource.models import ImageKind
from bootsource.status import StatusBroadcaster
from bootsource.tools import ExternalTools
from bootsource.utils import ensure_directory, log


def _non_empty(path: Path) -> bool:
    return path.is_file() and path.stat().st_size > 0


def _decompress_stream(path: Path, kind: ImageKind) -> Path:
    """Decompress a single-stream file next to itself and remove the original."""
    target = path.with_suffix("")
    opener = gzip.open if kind is ImageKind.GZIP_STREAM else lzma.open
    try:
        with opener(path, "rb") as src, open(target, "wb") as dst:
            shutil.copyfileobj(src, dst, DOWNLOAD_CHUNK_SIZE)
    except (OSError, EOFError, lzma.LZMAError) as exc:
        target.unlink(missing_ok=True)
        raise ExtractionError(f"Failed to decompress {path.name}: {exc}") from exc
    path.unlink(missing_ok=True)
    return target


def _find_in_archive(tmp: Path, expected: str) -> Path:
    """Prefer the file named like the archive, else the first disk image at the top level."""
    candidate = tmp / expected
    if _non_empty(candidate):
        return candidate
    for entry in sorted(tmp.iterdir()):
        if ImageKind.from_path(entry).is_disk_image:
            return entry
    return candidate


def _extract_container(path: Path, tools: ExternalTools) -> Path:
    tmp = path.parent / EXTRACT_DIR_NAME
    shutil.rmtree(tmp, ignore_errors=True)
    try:
        ensure_directory(tmp)
    except OSError as exc:
        raise ManagerError(f'Failed to create directory "{tmp}" !', exit_code=EXIT_SETUP) from exc

    try:
        rc = tools.extract_archive(path, tmp)
        if rc != 0:
            log("WARN", f"7z exited with status {rc} while extracting {path.name}")
        path.unlink(missing_ok=True)

        found = _find_in_archive(tmp, path.stem)
        if not _non_empty(found):
            raise ExtractionError(f'Cannot find file "{found.name}" in {path.suffix} archive!')

        result = path.parent / found.name
        shutil.move(str(found), str(result))
        return result
    finally:
        shutil.rmtree(tmp, ignore_errors=True)


def extract_image(
    path: Path,
    tools: ExternalTools,
    status: Optional[StatusBroadcaster] = None,
) -> Path:
    """Unpack *path* if its extension names a compressor or archive.

    Returns the path of the extracted image inside the same directory, or
    *path* itself when there is nothing to unpack.
    """
    kind = ImageKind.from_path(path)
    if not kind.is_compressed:
        return path

    log("INFO", f"Extracting {path.name}...")
    if status is not None:
        status.update("Extracting image...")

    if kind is ImageKind.CONTAINER:
        return _extract_container(path, tools)
    return _decompress_stream(path, kind)
