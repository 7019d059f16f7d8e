"""Deterministic tarball packaging and git-compatible tree hashing.

Archives produced here are byte-for-byte reproducible: entries are sorted,
timestamps and ownership are zeroed, and the gzip header carries neither a
filename nor an mtime.  The tree hash is computed over the uncompressed
directory using git's object format, so it is independent of compression and
matches ``git write-tree`` for the same content.
"""

from __future__ import annotations

import gzip
import hashlib
import os
import stat
import tarfile
from dataclasses import dataclass
from pathlib import Path

from binbake.models import BuildVersion, Platform

_CHUNK_SIZE = 1 << 20


@dataclass(frozen=True, slots=True)
class PackageResult:
    tarball_path: Path
    sha256: str
    tree_hash: str


def package(
    dest_tree: Path,
    out_base: Path,
    version: BuildVersion,
    platform: Platform,
) -> PackageResult:
    """Package ``dest_tree`` as ``<out_base>.v<version>.<triplet>.tar.gz``."""
    tarball = out_base.parent / f"{out_base.name}.v{version}.{platform.triplet}.tar.gz"
    archive_directory(dest_tree, tarball)
    return PackageResult(
        tarball_path=tarball,
        sha256=sha256_file(tarball),
        tree_hash=tree_hash(dest_tree),
    )


def archive_directory(source: Path, tarball: Path, *, root_name: str | None = None) -> Path:
    """Write a reproducible ``.tar.gz`` of ``source``, optionally nested under ``root_name``."""
    tarball.parent.mkdir(parents=True, exist_ok=True)
    temp_path = tarball.with_name(tarball.name + ".tmp")
    with temp_path.open("wb") as raw:
        with gzip.GzipFile(filename="", mode="wb", fileobj=raw, mtime=0) as compressed:
            with tarfile.open(fileobj=compressed, mode="w", format=tarfile.PAX_FORMAT) as tar:
                if root_name is not None:
                    _add_normalized(tar, source, arcname=root_name)
                for entry in _sorted_entries(source):
                    arcname = entry.relative_to(source).as_posix()
                    if root_name is not None:
                        arcname = f"{root_name}/{arcname}"
                    _add_normalized(tar, entry, arcname=arcname)
    os.replace(temp_path, tarball)
    return tarball


def sha256_file(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def tree_hash(root: Path) -> str:
    digest = _hash_tree(root)
    # Empty trees still have a well-defined git hash.
    return digest if digest is not None else _git_object(b"tree", b"")


def _sorted_entries(root: Path) -> list[Path]:
    entries: list[Path] = []
    for current, dirnames, filenames in os.walk(root):
        base = Path(current)
        entries.extend(base / name for name in dirnames)
        entries.extend(base / name for name in filenames)
    return sorted(entries, key=lambda path: path.relative_to(root).as_posix())


def _add_normalized(tar: tarfile.TarFile, path: Path, *, arcname: str) -> None:
    info = tar.gettarinfo(str(path), arcname=arcname)
    info.mtime = 0
    info.uid = 0
    info.gid = 0
    info.uname = ""
    info.gname = ""
    if info.isdir():
        info.mode = 0o755
        tar.addfile(info)
    elif info.issym():
        info.mode = 0o777
        tar.addfile(info)
    else:
        info.mode = 0o755 if _is_executable(path) else 0o644
        with path.open("rb") as handle:
            tar.addfile(info, handle)


def _is_executable(path: Path) -> bool:
    return bool(path.stat().st_mode & stat.S_IXUSR)


def _hash_tree(directory: Path) -> str | None:
    entries: list[tuple[bytes, bytes, str]] = []
    for child in directory.iterdir():
        name = os.fsencode(child.name)
        if child.is_symlink():
            target = os.fsencode(os.readlink(child))
            entries.append((name, b"120000", _git_object(b"blob", target)))
        elif child.is_dir():
            subtree = _hash_tree(child)
            if subtree is None:
                continue
            entries.append((name, b"40000", subtree))
        else:
            mode = b"100755" if _is_executable(child) else b"100644"
            entries.append((name, mode, _hash_blob(child)))
    if not entries:
        return None
    # git orders trees as if directory names had a trailing slash
    entries.sort(key=lambda item: item[0] + (b"/" if item[1] == b"40000" else b""))
    payload = b"".join(
        mode + b" " + name + b"\0" + bytes.fromhex(digest) for name, mode, digest in entries
    )
    return _git_object(b"tree", payload)


def _hash_blob(path: Path) -> str:
    digest = hashlib.sha1()
    digest.update(b"blob %d\0" % path.stat().st_size)
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def _git_object(kind: bytes, payload: bytes) -> str:
    digest = hashlib.sha1()
    digest.update(kind + b" %d\0" % len(payload))
    digest.update(payload)
    return digest.hexdigest()


def prune_empty_dirs(root: Path) -> list[Path]:
    """Remove empty directories below ``root``, deepest first. ``root`` itself is kept."""
    removed: list[Path] = []
    for current, _dirs, _files in os.walk(root, topdown=False):
        directory = Path(current)
        if directory == root or directory.is_symlink():
            continue
        if not any(directory.iterdir()):
            directory.rmdir()
            removed.append(directory)
    return removed
