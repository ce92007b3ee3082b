#!/usr/bin/env python3
"""Validate bootsource/distros.yaml: alias schema and URL reachability."""

from __future__ import annotations

import re
import sys
from pathlib import Path
from urllib.parse import urlparse

import requests
import yaml

DISTROS_PATH = Path(__file__).resolve().parents[2] / "bootsource" / "distros.yaml"
VALID_ARCHES = {"x86_64", "aarch64"}
URL_RE = re.compile(r"^https?://")
KEY_RE = re.compile(r"^[a-z0-9][a-z0-9._-]*$")
# Extensions the resolver can boot, unpack or convert
HANDLED_EXTENSIONS = {
    "img", "raw", "iso", "qcow2", "vdi", "vhd", "vhdx", "vmdk",
    "gz", "gzip", "xz", "7z", "zip", "rar", "lzma", "bz", "bz2",
}
REQUEST_TIMEOUT = 30
USER_AGENT = "bootsource/alias-validator (GitHub Actions)"


def load_distros(path: Path) -> dict:
    with open(path) as f:
        return yaml.safe_load(f)


# ── Phase 1: Schema validation (fail-fast) ──────────────────────────


def validate_schema(data: dict) -> list[str]:
    errors: list[str] = []

    if "distributions" not in data:
        errors.append("Top-level 'distributions' key is missing")
        return errors

    distros = data["distributions"]
    if not isinstance(distros, dict):
        errors.append("'distributions' must be a mapping")
        return errors

    for key, entry in distros.items():
        # aliases are matched case-insensitively and must not look like paths
        if not KEY_RE.match(str(key)):
            errors.append(f"[{key}] alias must be lower-case and contain no '/'")

        if not isinstance(entry, dict):
            errors.append(f"[{key}] entry is not a mapping")
            continue

        if "name" not in entry:
            errors.append(f"[{key}] missing required field 'name'")
        elif not isinstance(entry["name"], str):
            errors.append(f"[{key}] 'name' must be a string")

        url = entry.get("url")
        if url is None:
            errors.append(f"[{key}] missing required field 'url'")
        elif not isinstance(url, str):
            errors.append(f"[{key}] 'url' must be a string")
        elif not URL_RE.match(url):
            errors.append(f"[{key}] 'url' must start with http:// or https://")
        else:
            ext = Path(urlparse(url).path).suffix.lower().lstrip(".")
            if ext not in HANDLED_EXTENSIONS:
                errors.append(f"[{key}] 'url' ends in unsupported extension '.{ext}'")

        if "arch" in entry and entry["arch"] not in VALID_ARCHES:
            errors.append(
                f"[{key}] 'arch' must be one of {VALID_ARCHES}, got '{entry['arch']}'"
            )

    return errors


# ── Phase 2: URL reachability (collect-all) ──────────────────────────


def check_url(key: str, url: str) -> str | None:
    """Return an error string if the URL is unreachable, else None."""
    session = requests.Session()
    session.headers["User-Agent"] = USER_AGENT

    try:
        resp = session.head(url, timeout=REQUEST_TIMEOUT, allow_redirects=True)
        if resp.status_code < 400:
            return None
        # Some mirrors reject HEAD; retry with a streamed GET
        if resp.status_code in (403, 405):
            resp = session.get(
                url, timeout=REQUEST_TIMEOUT, allow_redirects=True, stream=True
            )
            resp.close()
            if resp.status_code < 400:
                return None
        return f"[{key}] HTTP {resp.status_code} for {url}"
    except requests.RequestException as exc:
        return f"[{key}] {exc.__class__.__name__}: {exc} for {url}"


def validate_urls(data: dict) -> list[str]:
    errors: list[str] = []
    for key, entry in data["distributions"].items():
        err = check_url(key, entry["url"])
        if err:
            errors.append(err)
    return errors


# ── Main ─────────────────────────────────────────────────────────────


def main() -> int:
    print(f"Loading {DISTROS_PATH}")
    data = load_distros(DISTROS_PATH)

    print("\n=== Phase 1: Schema validation ===")
    schema_errors = validate_schema(data)
    if schema_errors:
        for e in schema_errors:
            print(f"  ERROR: {e}")
        print(f"\nSchema validation failed with {len(schema_errors)} error(s)")
        return 1
    alias_count = len(data["distributions"])
    print(f"  OK: {alias_count} aliases, all schemas valid")

    print("\n=== Phase 2: URL reachability ===")
    url_errors = validate_urls(data)
    if url_errors:
        for e in url_errors:
            print(f"  ERROR: {e}")
        print(f"\nURL validation failed: {len(url_errors)}/{alias_count} unreachable")
        return 1
    print(f"  OK: all {alias_count} URLs reachable")

    print("\nAll checks passed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
