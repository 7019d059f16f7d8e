"""Registry queries over an on-disk registry clone or an in-memory table."""

from __future__ import annotations

import logging
import tomllib
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from binbake.errors import InvalidInputError
from binbake.models import BuildVersion

logger = logging.getLogger(__name__)


class Registry(Protocol):
    def list_versions(self, package: str) -> set[BuildVersion]:
        """Return every registered version of ``package`` (empty if unknown)."""


@dataclass(slots=True)
class InMemoryRegistry:
    packages: dict[str, set[str]] = field(default_factory=dict)

    def add(self, package: str, *versions: str) -> None:
        self.packages.setdefault(package, set()).update(versions)

    def list_versions(self, package: str) -> set[BuildVersion]:
        return set(_parse_versions(self.packages.get(package, ()), package=package))


@dataclass(slots=True)
class TomlRegistry:
    """Reads ``Registry.toml`` and per-package ``Versions.toml`` files."""

    root: Path

    def list_versions(self, package: str) -> set[BuildVersion]:
        versions: set[BuildVersion] = set()
        for rel_path in self.package_paths(package):
            versions_toml = self.root / rel_path / "Versions.toml"
            if not versions_toml.is_file():
                continue
            versions.update(_parse_versions(_load_toml(versions_toml).keys(), package=package))
        return versions

    def package_paths(self, package: str) -> list[str]:
        registry_toml = self.root / "Registry.toml"
        if not registry_toml.is_file():
            return []
        packages = _load_toml(registry_toml).get("packages", {})
        return sorted(
            entry["path"]
            for entry in packages.values()
            if isinstance(entry, dict) and entry.get("name") == package and "path" in entry
        )


def _parse_versions(raw_versions: Iterable[str], *, package: str) -> Iterable[BuildVersion]:
    for raw in raw_versions:
        try:
            yield BuildVersion.parse(raw)
        except InvalidInputError:
            logger.debug("Skipping unparseable registry version %r of %s", raw, package)


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise InvalidInputError(
            "Registry file is not valid TOML.",
            hint="Refresh the registry clone.",
            context={"operation": "registry_load", "path": str(path)},
        ) from exc
