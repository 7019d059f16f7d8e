from pathlib import Path

import pytest

from binbake.dependencies import SymlinkMaterializer
from binbake.errors import InvalidInputError
from binbake.models import DependencySpec, Platform
from binbake.workspace import create_workspace

LINUX = Platform.parse("x86_64-linux-gnu")


def _artifact(root: Path) -> Path:
    (root / "include").mkdir(parents=True)
    (root / "include" / "zlib.h").write_text("/* zlib */\n", encoding="utf-8")
    (root / "lib").mkdir()
    (root / "lib" / "libz.so.1").write_bytes(b"lib")
    return root


def test_attach_links_files_and_detach_removes_only_those_links(tmp_path: Path) -> None:
    """Detach removes the links attach created and leaves build outputs alone."""
    artifact = _artifact(tmp_path / "artifacts" / "zlib")
    workspace = create_workspace(tmp_path / "build", LINUX)
    materializer = SymlinkMaterializer()

    handles = materializer.attach(workspace, [DependencySpec("zlib", artifact)], LINUX)
    header = workspace.destdir / "include" / "zlib.h"
    assert header.is_symlink()
    assert header.read_text(encoding="utf-8") == "/* zlib */\n"

    # The build replaced one linked file with its own copy.
    library = workspace.destdir / "lib" / "libz.so.1"
    library.unlink()
    library.write_bytes(b"rebuilt")

    materializer.detach(handles)

    assert not header.exists()
    assert library.read_bytes() == b"rebuilt"
    assert [handle.name for handle in handles] == ["zlib"]


def test_attach_skips_paths_the_workspace_already_has(tmp_path: Path) -> None:
    artifact = _artifact(tmp_path / "artifacts" / "zlib")
    workspace = create_workspace(tmp_path / "build", LINUX)
    own = workspace.destdir / "include" / "zlib.h"
    own.parent.mkdir(parents=True)
    own.write_text("mine\n", encoding="utf-8")

    handles = SymlinkMaterializer().attach(workspace, [DependencySpec("zlib", artifact)], LINUX)

    assert not own.is_symlink()
    assert own not in handles[0].links


def test_missing_dependency_directory_is_invalid_input(tmp_path: Path) -> None:
    workspace = create_workspace(tmp_path / "build", LINUX)

    with pytest.raises(InvalidInputError) as excinfo:
        SymlinkMaterializer().attach(workspace, [DependencySpec("zlib", tmp_path / "nope")], LINUX)

    assert excinfo.value.context["dependency"] == "zlib"
