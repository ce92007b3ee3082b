"""Boot image download with resumable transfers and retry policy."""

from __future__ import annotations

import errno
import time
from pathlib import Path
from typing import Callable, Iterator, Optional, Sequence, Tuple

import requests

from bootsource.constants import (
    DOWNLOAD_CHUNK_SIZE,
    DOWNLOAD_TIMEOUT,
    MIN_IMAGE_SIZE,
    RETRY_MESSAGE,
    RETRY_SCHEDULE,
    USER_AGENT,
)
from bootsource.exceptions import DownloadError
from bootsource.status import ProgressReporter, StatusBroadcaster
from bootsource.utils import format_bytes, log


def retry_delays(schedule: Sequence[int] = RETRY_SCHEDULE) -> Iterator[Tuple[int, int]]:
    """Yield ``(attempt, seconds to wait before it)`` pairs, attempts counted from 1."""
    yield from enumerate(schedule, start=1)


def countdown(seconds: int, status: StatusBroadcaster, sleep: Callable[[float], None] = time.sleep) -> None:
    log("INFO", RETRY_MESSAGE.replace("X", str(seconds)))
    for remaining in range(seconds, 0, -1):
        status.update(RETRY_MESSAGE.replace("X", str(remaining)))
        sleep(1)


def _transfer(url: str, destination: Path) -> None:
    """Fetch *url* into *destination*, continuing a partial file when the server allows it."""
    headers = {"User-Agent": USER_AGENT, "Connection": "close"}
    offset = destination.stat().st_size if destination.is_file() else 0
    if offset:
        headers["Range"] = f"bytes={offset}-"

    failure = f"Failed to download {url}"
    try:
        with requests.get(url, headers=headers, stream=True, timeout=DOWNLOAD_TIMEOUT) as response:
            if offset and response.status_code == 416:
                log("DEBUG", f"{destination.name} is already complete")
                return
            response.raise_for_status()
            mode = "ab" if offset and response.status_code == 206 else "wb"
            with open(destination, mode) as fh:
                for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    if chunk:
                        fh.write(chunk)
    except requests.HTTPError as exc:
        raise DownloadError(f"{failure} , server issued an error response!", kind="server") from exc
    except (requests.ConnectionError, requests.Timeout) as exc:
        raise DownloadError(f"{failure} , network failure!", kind="network") from exc
    except requests.RequestException as exc:
        raise DownloadError(f"{failure} , reason: {exc}") from exc
    except OSError as exc:
        if exc.errno == errno.ENOSPC:
            raise DownloadError(f"{failure} , cannot write file (disk full?)", kind="disk-full") from exc
        raise DownloadError(f"{failure} , reason: {exc}") from exc


def download_file(
    url: str,
    destination: Path,
    name: str = "",
    status: Optional[StatusBroadcaster] = None,
) -> None:
    """Download *url* to *destination* once.

    Raises DownloadError when the transfer fails or the result is too small
    to be a disk image. A short file is left in place for the caller.
    """
    status = status or StatusBroadcaster()
    if name:
        msg = f"Downloading {name}"
        log("INFO", f"Downloading {name}...")
    else:
        msg = "Downloading image"
        log("INFO", f"Downloading {destination.name}...")
    status.update(f"{msg}...")

    reporter = ProgressReporter(destination, status, f"{msg} ([P])...")
    reporter.start()
    try:
        _transfer(url, destination)
    finally:
        reporter.stop()

    if not destination.is_file():
        raise DownloadError(f"Failed to download {url} , reason: no file was written")
    total = destination.stat().st_size
    if total < MIN_IMAGE_SIZE:
        raise DownloadError(f"Invalid image file: is only {format_bytes(total)} ?", kind="invalid")
    status.update("Download finished successfully...")
