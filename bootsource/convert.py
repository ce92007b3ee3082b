"""Disk image format conversion with qemu-img."""

from __future__ import annotations

import shutil
from typing import Optional

from bootsource.constants import COW_FILESYSTEMS, NOCOW_ATTRIBUTE
from bootsource.exceptions import ConversionError
from bootsource.models import ConversionJob
from bootsource.status import StatusBroadcaster
from bootsource.tools import ExternalTools
from bootsource.utils import format_bytes, get_available_disk_space, log


def _force_allocate(job: ConversionJob, tools: ExternalTools) -> None:
    # qemu-img leaves raw output sparse even with preallocation=falloc
    size = job.temporary.stat().st_size
    if tools.fallocate(job.temporary, size):
        return
    if not tools.fallocate(job.temporary, size, posix=True):
        log("ERROR", f"Failed to allocate {format_bytes(size)} for image!")


def convert_image(
    job: ConversionJob,
    tools: ExternalTools,
    allocate: bool = False,
    disk_flags: str = "",
    status: Optional[StatusBroadcaster] = None,
) -> None:
    """Convert ``job.source`` into ``job.destination``.

    Output is written to ``job.temporary`` and renamed into place only once
    qemu-img succeeds; the source is removed after that rename.
    """
    source, destination, tmp = job.source, job.destination, job.temporary

    if destination.exists():
        raise ConversionError(f"Conversion failed, destination file {destination} already exists?")
    if not source.is_file():
        raise ConversionError(f"Conversion failed, source file {source} does not exists?")

    if job.source_format.lower() == job.destination_format.lower():
        shutil.move(str(source), str(destination))
        return

    directory = tmp.parent
    tmp.unlink(missing_ok=True)

    if allocate:
        required = tools.virtual_size(source, job.source_format)
        space = get_available_disk_space(directory)
        if required > space:
            raise ConversionError(
                f"Not enough free space to convert image in {directory}, "
                f"it has only {format_bytes(space)} available..."
            )

    log("INFO", f"Converting {source.name}...")
    if status is not None:
        status.update("Converting image...")

    flags = ["-p"]
    options = "preallocation=falloc" if allocate else "preallocation=off"
    fs = tools.filesystem_type(directory).lower()
    cow = fs in COW_FILESYSTEMS
    if cow:
        options += ",nocow=on"
    if job.destination_format != "raw":
        if not allocate:
            flags.append("-c")
        if disk_flags:
            options += f",{disk_flags}"

    try:
        converted = tools.convert(source, job.source_format, tmp, job.destination_format, flags, options)
        if not converted:
            raise ConversionError(f"Failed to convert image in {directory}, is there enough space available?")
        if job.destination_format == "raw" and allocate:
            _force_allocate(job, tools)
        tmp.replace(destination)
    except OSError as exc:
        tmp.unlink(missing_ok=True)
        raise ConversionError(f"Failed to move converted image to {destination}: {exc}") from exc
    except Exception:
        tmp.unlink(missing_ok=True)
        raise

    source.unlink(missing_ok=True)

    if cow and NOCOW_ATTRIBUTE not in tools.file_attributes(destination):
        log("ERROR", f"Failed to disable COW for image on {fs.upper()} filesystem!")

    if status is not None:
        status.update("Conversion completed...")
