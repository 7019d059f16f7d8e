"""Relocatability auditing of a destination tree."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from binbake.models import Platform

logger = logging.getLogger(__name__)

_TEXT_SNIFF_BYTES = 8192


@dataclass(frozen=True, slots=True)
class AuditOptions:
    autofix: bool = True
    require_license: bool = True


class Auditor(Protocol):
    def audit(
        self,
        dest_tree: Path,
        package: str,
        platform: Platform,
        *,
        options: AuditOptions,
    ) -> bool:
        """Check ``dest_tree`` for relocatability problems, possibly fixing them in place."""


@dataclass(slots=True)
class PathLeakAuditor:
    """Flags files and symlinks that embed the absolute build workspace path.

    The workspace root is taken to be the parent of ``dest_tree``.  With
    ``autofix``, text files have the absolute destination prefix rewritten to a
    path relative to the file, and absolute symlinks into the tree are made
    relative.  Binary files are only reported.  Symlinks pointing outside the
    workspace are attached dependencies and are not inspected.
    """

    name: str = "path_leak"
    ignore_dirs: tuple[str, ...] = ("logs",)

    def audit(
        self,
        dest_tree: Path,
        package: str,
        platform: Platform,
        *,
        options: AuditOptions,
    ) -> bool:
        passed = True
        dest_root = dest_tree.resolve()
        workspace_root = os.fsencode(str(dest_root.parent))
        for path in sorted(dest_tree.rglob("*")):
            if path.relative_to(dest_tree).parts[0] in self.ignore_dirs:
                continue
            if path.is_symlink():
                passed &= self._audit_symlink(path, dest_root, autofix=options.autofix)
            elif path.is_file():
                passed &= self._audit_file(
                    path, dest_root, workspace_root, autofix=options.autofix
                )
        if options.require_license and not _has_license(dest_tree, package):
            logger.warning(
                "[%s][%s] No license installed under share/licenses/%s",
                package,
                platform.triplet,
                package,
            )
            passed = False
        return passed

    def _audit_symlink(self, path: Path, dest_root: Path, *, autofix: bool) -> bool:
        target = os.readlink(path)
        if not os.path.isabs(target):
            return True
        target_path = Path(target)
        if not target_path.is_relative_to(dest_root.parent):
            # Attached dependency artifacts live outside the workspace.
            return True
        if autofix and target_path.is_relative_to(dest_root):
            relative = os.path.relpath(target_path, path.parent.resolve())
            path.unlink()
            path.symlink_to(relative)
            logger.info("Rewrote absolute symlink %s -> %s", path, relative)
            return True
        logger.warning("Absolute symlink %s -> %s is not relocatable", path, target)
        return False

    def _audit_file(
        self,
        path: Path,
        dest_root: Path,
        workspace_root: bytes,
        *,
        autofix: bool,
    ) -> bool:
        data = path.read_bytes()
        if workspace_root not in data:
            return True
        if autofix and b"\0" not in data[:_TEXT_SNIFF_BYTES]:
            relative = os.fsencode(os.path.relpath(dest_root, path.parent.resolve()))
            fixed = data.replace(os.fsencode(str(dest_root)), relative)
            if workspace_root not in fixed:
                path.write_bytes(fixed)
                logger.info("Rewrote absolute build prefix in %s", path)
                return True
        logger.warning("%s references the build workspace %s", path, os.fsdecode(workspace_root))
        return False


def _has_license(dest_tree: Path, package: str) -> bool:
    license_dir = dest_tree / "share" / "licenses" / package
    return license_dir.is_dir() and any(license_dir.iterdir())
