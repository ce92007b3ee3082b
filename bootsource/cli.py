"""CLI entry points for the boot source resolver."""

from __future__ import annotations

import argparse
import dataclasses
import shlex
from pathlib import Path
from typing import List, Optional

from bootsource.aliases import DistroAliases
from bootsource.config import parse_env
from bootsource.constants import EXIT_FAILURE
from bootsource.exceptions import ManagerError
from bootsource.models import BootConfig, PipelineResult
from bootsource.resolver import BootResolver
from bootsource.status import StatusBroadcaster
from bootsource.utils import log


def list_aliases(aliases: DistroAliases) -> None:
    """Print the known BOOT aliases."""
    distros = aliases.available()
    if not distros:
        log("WARN", "No distributions found")
        return
    max_key = max(len(k) for k in distros)
    for key in sorted(distros):
        info = distros[key]
        print(f"  {key:<{max_key}}  {info.get('name', key)}  ({info.get('url', '?')})")


def show_config(cfg: BootConfig) -> None:
    """Print the resolved configuration and exit."""
    for field in dataclasses.fields(cfg):
        value = getattr(cfg, field.name)
        if value == "":
            value = "<unset>"
        print(f"  {field.name}: {value}")


def render_outputs(result: PipelineResult) -> str:
    """Shell-sourceable ``KEY=value`` lines for the VM launcher."""
    return "".join(f"{key}={shlex.quote(value)}\n" for key, value in result.as_env().items())


def publish(result: PipelineResult, output: Optional[Path]) -> None:
    text = render_outputs(result)
    if output is None:
        print(text, end="", flush=True)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    tmp = output.with_name(output.name + ".tmp")
    tmp.write_text(text)
    tmp.replace(output)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Prepare the boot image for the VM launcher")
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        metavar="FILE",
        help="Write BOOT and BOOT_MODE to FILE instead of stdout",
    )
    parser.add_argument("--list-aliases", action="store_true", help="List known BOOT aliases and exit")
    parser.add_argument("--show-config", action="store_true", help="Show resolved configuration and exit")
    args = parser.parse_args(argv)

    try:
        cfg = parse_env()
    except ManagerError as exc:
        log("ERROR", str(exc))
        return exc.exit_code

    if args.show_config:
        show_config(cfg)
        return 0

    aliases = DistroAliases(cfg.alias_config)
    if args.list_aliases:
        try:
            list_aliases(aliases)
        except ManagerError as exc:
            log("ERROR", str(exc))
            return exc.exit_code
        return 0

    resolver = BootResolver(cfg, aliases=aliases, status=StatusBroadcaster())
    try:
        result = resolver.resolve()
        publish(result, args.output)
    except ManagerError as exc:
        log("ERROR", str(exc))
        return exc.exit_code
    except Exception as exc:
        log("ERROR", f"Unexpected error: {exc}")
        import traceback

        traceback.print_exc()
        return EXIT_FAILURE

    if result.device_attached:
        log("INFO", "Boot disk device already attached; no image file needed")
    else:
        log("SUCCESS", f"Boot image ready: {result.boot_value}")
    return 0
