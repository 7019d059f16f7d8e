"""Per-platform build workspaces: creation, source unpacking and teardown."""

from __future__ import annotations

import shutil
import tarfile
import uuid
import zipfile
from dataclasses import dataclass
from pathlib import Path

from binbake.errors import InvalidInputError
from binbake.fetch.git import checkout_mirror
from binbake.models import Platform, ResolvedSource


@dataclass(frozen=True, slots=True)
class Workspace:
    root: Path

    @property
    def srcdir(self) -> Path:
        return self.root / "srcdir"

    @property
    def destdir(self) -> Path:
        return self.root / "destdir"

    @property
    def metadir(self) -> Path:
        return self.root / "metadir"


def platform_build_dir(build_root: Path, platform: Platform) -> Path:
    return build_root / platform.triplet


def create_workspace(build_root: Path, platform: Platform) -> Workspace:
    """Create ``<build_root>/<triplet>/<nonce>`` with empty src/dest/meta dirs."""
    parent = platform_build_dir(build_root, platform)
    workspace = Workspace(root=parent / uuid.uuid4().hex[:12])
    for directory in (workspace.srcdir, workspace.destdir, workspace.metadir):
        directory.mkdir(parents=True, exist_ok=False)
    return workspace


def unpack_sources(workspace: Workspace, sources: tuple[ResolvedSource, ...]) -> None:
    for source in sources:
        if source.kind == "git":
            checkout_mirror(source.path, workspace.srcdir / source.name, ref=source.ref)
        elif source.kind == "archive":
            _extract_archive(source.path, workspace.srcdir)
        else:
            shutil.copy2(source.path, workspace.srcdir / source.name)


def destroy_workspace(workspace: Workspace) -> bool:
    """Remove the workspace, then its per-platform parent only if nothing else is left.

    A non-empty parent means a sibling build for the same platform still owns
    it.  Returns True when the parent was removed.
    """
    shutil.rmtree(workspace.root, ignore_errors=False)
    parent = workspace.root.parent
    if parent.exists() and not any(parent.iterdir()):
        parent.rmdir()
        return True
    return False


def _extract_archive(archive: Path, destination: Path) -> None:
    if archive.name.endswith(".zip"):
        with zipfile.ZipFile(archive) as bundle:
            bundle.extractall(destination)
        return
    try:
        with tarfile.open(archive) as bundle:
            bundle.extractall(destination, filter="data")
    except tarfile.TarError as exc:
        raise InvalidInputError(
            "Unable to unpack source archive.",
            hint="Ensure the source is a valid tar or zip archive.",
            context={"operation": "unpack_sources", "path": str(archive), "error": str(exc)},
        ) from exc
