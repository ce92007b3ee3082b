"""Boot status broadcasting for the boot source resolver."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Optional

from bootsource.constants import PROGRESS_INTERVAL
from bootsource.utils import format_bytes, log

# Status file served by the web console
STATUS_FILE = Path("/usr/share/novnc/status.txt")


class StatusBroadcaster:
    """Write boot progress to a file served over HTTP by the web console."""

    def update(self, msg: str) -> None:
        """Append a status message to the status file."""
        try:
            STATUS_FILE.parent.mkdir(parents=True, exist_ok=True)
            with open(STATUS_FILE, "a") as f:
                f.write(msg + "\n")
                f.flush()
        except OSError:
            pass
        log("DEBUG", f"Status: {msg}")


class ProgressReporter:
    """Periodically report how much of *path* has been written so far.

    ``template`` contains a ``[P]`` placeholder replaced with the current size.
    Reporting is advisory: errors reading the file are ignored.
    """

    def __init__(
        self,
        path: Path,
        status: StatusBroadcaster,
        template: str,
        interval: float = PROGRESS_INTERVAL,
    ) -> None:
        self.path = path
        self.status = status
        self.template = template
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._thread = threading.Thread(target=self._loop, name="download-progress", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                size = self.path.stat().st_size
            except OSError:
                continue
            self.status.update(self.template.replace("[P]", format_bytes(size)))
