"""Wrappers around the host binaries the pipeline shells out to.

Every external program the resolver needs is reached through one method of
:class:`ExternalTools`, so callers can pass a fake in tests instead of
requiring isoinfo, fdisk, qemu-img and friends on the test host.
"""

from __future__ import annotations

import json
import subprocess
from pathlib import Path
from typing import List

from bootsource.exceptions import ConversionError
from bootsource.utils import log, run


class ExternalTools:
    def _output(self, cmd: List[str]) -> str:
        """Return stdout of *cmd*, or an empty string when it fails to run."""
        try:
            result = run(cmd, check=False, capture_output=True)
        except OSError as exc:
            log("WARN", f"Unable to run {cmd[0]}: {exc}")
            return ""
        if result.returncode != 0:
            log("DEBUG", f"{cmd[0]} exited with {result.returncode}: {(result.stderr or '').strip()}")
            return ""
        return result.stdout or ""

    def iso_listing(self, path: Path) -> str:
        """List every path inside an ISO9660 image."""
        return self._output(["isoinfo", "-f", "-i", str(path)])

    def partition_table(self, path: Path) -> str:
        return self._output(["fdisk", "-l", str(path)])

    def virtual_size(self, path: Path, fmt: str) -> int:
        """Logical size of a disk image in bytes."""
        output = self._output(["qemu-img", "info", "--output=json", "-f", fmt, str(path)])
        try:
            return int(json.loads(output)["virtual-size"])
        except (ValueError, KeyError, TypeError) as exc:
            raise ConversionError(f"Failed to read the virtual size of {path}") from exc

    def convert(
        self,
        source: Path,
        source_format: str,
        destination: Path,
        destination_format: str,
        flags: List[str],
        options: str,
    ) -> bool:
        cmd = ["qemu-img", "convert", "-f", source_format, *flags, "-o", options, "-O", destination_format]
        cmd += ["--", str(source), str(destination)]
        try:
            result = run(cmd, check=False)
        except OSError as exc:
            log("ERROR", f"Unable to run qemu-img: {exc}")
            return False
        return result.returncode == 0

    def filesystem_type(self, directory: Path) -> str:
        return self._output(["stat", "-f", "-c", "%T", str(directory)]).strip()

    def fallocate(self, path: Path, size: int, posix: bool = False) -> bool:
        cmd = ["fallocate", "-l", str(size)]
        if posix:
            cmd.append("-x")
        cmd.append(str(path))
        try:
            result = run(cmd, check=False, capture_output=True)
        except OSError as exc:
            log("WARN", f"Unable to run fallocate: {exc}")
            return False
        return result.returncode == 0

    def file_attributes(self, path: Path) -> str:
        """Return the lsattr flag column for *path*, e.g. ``---------------C------``."""
        output = self._output(["lsattr", str(path)]).strip()
        return output.split(None, 1)[0] if output else ""

    def extract_archive(self, archive: Path, destination: Path) -> int:
        try:
            result = run(
                ["7z", "x", str(archive), f"-o{destination}"],
                check=False,
                stdout=subprocess.DEVNULL,
            )
        except OSError as exc:
            log("ERROR", f"Unable to run 7z: {exc}")
            return 127
        return result.returncode
