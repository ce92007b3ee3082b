"""Distribution alias lookup backed by distros.yaml."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from bootsource.constants import DEFAULT_CONFIG_PATH
from bootsource.exceptions import AliasError
from bootsource.models import AliasEntry


class DistroAliases:
    """Map a short BOOT name such as ``alpine`` to its download URL."""

    def __init__(self, config_path: Optional[Path] = None) -> None:
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self._distros: Optional[Dict[str, dict]] = None

    def available(self) -> Dict[str, dict]:
        if self._distros is None:
            self._distros = self._load()
        return self._distros

    def lookup(self, spec: str) -> Optional[AliasEntry]:
        key = spec.strip().lower()
        if not key or "/" in key:
            return None
        info = self.available().get(key)
        if info is None:
            return None
        return AliasEntry(name=str(info.get("name") or key), url=info.get("url"))

    def _load(self) -> Dict[str, dict]:
        if not self.config_path.exists():
            raise AliasError(f"Distribution config missing: {self.config_path}")
        try:
            data = yaml.safe_load(self.config_path.read_text())
        except (OSError, yaml.YAMLError) as exc:
            raise AliasError(f"Cannot read distribution config {self.config_path}: {exc}")
        distros = (data or {}).get("distributions") or {}
        if not isinstance(distros, dict):
            raise AliasError(f"'distributions' must be a mapping in {self.config_path}")
        return {str(key).lower(): value for key, value in distros.items() if isinstance(value, dict)}
