"""Default build lifecycle hooks.

On failure the source tree and environment are snapshotted into ``metadir``
for postmortem inspection.  On a clean exit licenses are installed into the
destination tree and the environment is saved.
"""

from __future__ import annotations

import json
import shutil
from pathlib import Path

from binbake.backends.base import BuildHooks, HookContext

LICENSE_PREFIXES = ("LICENSE", "LICENCE", "COPYING", "NOTICE", "COPYRIGHT")


def default_hooks() -> BuildHooks:
    return BuildHooks(
        on_error=(snapshot_srcdir, save_env),
        on_exit=(install_licenses, save_env),
    )


def save_env(context: HookContext) -> None:
    """Write the environment the build script ended with to ``metadir/env.json``."""
    metadir = context.request.workspace.metadir
    metadir.mkdir(parents=True, exist_ok=True)
    (metadir / "env.json").write_text(
        json.dumps(dict(context.env), indent=2, sort_keys=True) + "\n",
        encoding="utf-8",
    )


def snapshot_srcdir(context: HookContext) -> None:
    workspace = context.request.workspace
    snapshot = workspace.metadir / "srcdir"
    if snapshot.exists():
        shutil.rmtree(snapshot)
    shutil.copytree(workspace.srcdir, snapshot, symlinks=True)


def install_licenses(context: HookContext) -> None:
    """Copy license files found near the top of the source tree into the prefix."""
    workspace = context.request.workspace
    found = find_license_files(workspace.srcdir)
    if not found:
        return
    target = workspace.destdir / "share" / "licenses" / context.request.package
    target.mkdir(parents=True, exist_ok=True)
    for path in found:
        destination = target / path.name
        if destination.exists():
            continue
        shutil.copy2(path, destination)


def find_license_files(srcdir: Path, *, max_depth: int = 2) -> list[Path]:
    found: list[Path] = []
    _scan_for_licenses(srcdir, depth=0, max_depth=max_depth, found=found)
    return found


def _scan_for_licenses(directory: Path, *, depth: int, max_depth: int, found: list[Path]) -> None:
    if depth > max_depth or not directory.is_dir():
        return
    for child in sorted(directory.iterdir()):
        if child.is_symlink():
            continue
        if child.is_file() and child.name.upper().startswith(LICENSE_PREFIXES):
            found.append(child)
        elif child.is_dir() and not child.name.startswith("."):
            _scan_for_licenses(child, depth=depth + 1, max_depth=max_depth, found=found)
