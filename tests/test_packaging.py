import os
import tarfile
from pathlib import Path

from conftest import run_git

from binbake.models import BuildVersion, Platform
from binbake.packaging import package, prune_empty_dirs, tree_hash


def _populate(root: Path) -> None:
    (root / "bin").mkdir(parents=True)
    (root / "lib").mkdir()
    (root / "share" / "doc").mkdir(parents=True)
    exe = root / "bin" / "hello"
    exe.write_text("#!/bin/sh\necho hi\n", encoding="utf-8")
    exe.chmod(0o755)
    (root / "lib" / "libhello.so.1").write_bytes(b"\x7fELF fake")
    (root / "lib" / "libhello.so").symlink_to("libhello.so.1")
    (root / "share" / "doc" / "README").write_text("docs\n", encoding="utf-8")


def test_repackaging_an_unchanged_tree_is_byte_identical(tmp_path: Path) -> None:
    """Packaging is reproducible across runs."""
    tree = tmp_path / "destdir"
    _populate(tree)
    platform = Platform.parse("x86_64-linux-gnu")
    version = BuildVersion.parse("1.0.0+0")

    first = package(tree, tmp_path / "one" / "hello", version, platform)
    first_bytes = first.tarball_path.read_bytes()
    os.utime(tree / "bin" / "hello", (1_000_000, 1_000_000))
    second = package(tree, tmp_path / "two" / "hello", version, platform)

    assert first.tarball_path.name == "hello.v1.0.0+0.x86_64-linux-gnu.tar.gz"
    assert first.sha256 == second.sha256
    assert first.tree_hash == second.tree_hash
    assert first_bytes == second.tarball_path.read_bytes()


def test_tarball_entries_are_normalized(tmp_path: Path) -> None:
    tree = tmp_path / "destdir"
    _populate(tree)

    result = package(tree, tmp_path / "hello", BuildVersion.parse("1.0.0"), Platform.parse("x86_64-linux-gnu"))

    header = result.tarball_path.read_bytes()[:10]
    # gzip header: no embedded filename flag and a zero mtime
    assert header[3] & 0x08 == 0
    assert header[4:8] == b"\0\0\0\0"
    with tarfile.open(result.tarball_path) as bundle:
        members = bundle.getmembers()
    names = [member.name for member in members]
    assert names == sorted(names)
    assert all(member.mtime == 0 and member.uid == 0 and member.gid == 0 for member in members)
    link = next(member for member in members if member.name == "lib/libhello.so")
    assert link.issym() and link.linkname == "libhello.so.1"
    exe = next(member for member in members if member.name == "bin/hello")
    assert exe.mode & 0o111


def test_tree_hash_matches_git_write_tree(tmp_path: Path) -> None:
    """The tree hash is the one git computes for the same content."""
    tree = tmp_path / "destdir"
    _populate(tree)
    (tree / "empty").mkdir()
    run_git(["init", "--quiet"], cwd=tree)
    run_git(["add", "--all"], cwd=tree)
    expected = run_git(["write-tree"], cwd=tree)
    # Hash the same content without the repository metadata.
    copy = tmp_path / "copy"
    _populate(copy)

    assert tree_hash(copy) == expected


def test_empty_tree_has_git_empty_tree_hash(tmp_path: Path) -> None:
    assert tree_hash(tmp_path) == "4b825dc642cb6eb9a060e54bf8d69288fbee4904"


def test_prune_empty_dirs_removes_nested_empties_only(tmp_path: Path) -> None:
    (tmp_path / "a" / "b" / "c").mkdir(parents=True)
    (tmp_path / "keep").mkdir()
    (tmp_path / "keep" / "file").write_text("x", encoding="utf-8")

    removed = prune_empty_dirs(tmp_path)

    assert removed == [tmp_path / "a" / "b" / "c", tmp_path / "a" / "b", tmp_path / "a"]
    assert sorted(path.name for path in tmp_path.iterdir()) == ["keep"]
