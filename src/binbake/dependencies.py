"""Attach prebuilt dependency artifacts into a workspace and detach them again."""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from binbake.errors import InvalidInputError
from binbake.models import DependencySpec, Platform
from binbake.workspace import Workspace

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AttachedDependency:
    name: str
    links: tuple[Path, ...]


class Materializer(Protocol):
    def attach(
        self,
        workspace: Workspace,
        dependencies: Sequence[DependencySpec],
        platform: Platform,
    ) -> list[AttachedDependency]:
        """Make dependency artifacts visible inside the workspace prefix."""

    def detach(self, handles: Sequence[AttachedDependency]) -> None:
        """Remove everything ``attach`` put in place."""


@dataclass(slots=True)
class SymlinkMaterializer:
    """Symlinks every file of each dependency artifact into ``destdir``.

    Files the build later overwrites are no longer symlinks and are left alone
    by ``detach``.
    """

    def attach(
        self,
        workspace: Workspace,
        dependencies: Sequence[DependencySpec],
        platform: Platform,
    ) -> list[AttachedDependency]:
        handles: list[AttachedDependency] = []
        for dependency in dependencies:
            root = dependency.path
            if not root.is_dir():
                raise InvalidInputError(
                    "Dependency artifact directory does not exist.",
                    context={
                        "dependency": dependency.name,
                        "path": str(root),
                        "platform": platform.triplet,
                    },
                )
            links: list[Path] = []
            for source in sorted(root.rglob("*")):
                if source.is_dir() and not source.is_symlink():
                    continue
                link = workspace.destdir / source.relative_to(root)
                if link.exists() or link.is_symlink():
                    logger.debug("Skipping %s: already provided in workspace", link)
                    continue
                link.parent.mkdir(parents=True, exist_ok=True)
                link.symlink_to(source.resolve())
                links.append(link)
            handles.append(AttachedDependency(name=dependency.name, links=tuple(links)))
        return handles

    def detach(self, handles: Sequence[AttachedDependency]) -> None:
        for handle in handles:
            for link in handle.links:
                if link.is_symlink():
                    os.unlink(link)
