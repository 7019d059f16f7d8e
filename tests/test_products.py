from pathlib import Path

import pytest

import binbake.products as products_module
from binbake.models import ExecutableProduct, FileProduct, LibraryProduct, Platform
from binbake.products import describe, is_satisfied, locate, soname

LINUX = Platform.parse("x86_64-linux-gnu")
MACOS = Platform.parse("x86_64-apple-darwin14")
WINDOWS = Platform.parse("x86_64-w64-mingw32")


def _touch(path: Path, *, mode: int = 0o644) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"payload")
    path.chmod(mode)
    return path


def test_library_matches_versioned_names_per_platform(tmp_path: Path) -> None:
    product = LibraryProduct(names=("libz",), variable="libz")
    _touch(tmp_path / "linux" / "lib" / "libz.so.1.2.11")
    _touch(tmp_path / "macos" / "lib" / "libz.1.dylib")
    _touch(tmp_path / "windows" / "bin" / "libz-1.dll")

    assert locate(product, tmp_path / "linux", LINUX) == tmp_path / "linux" / "lib" / "libz.so.1.2.11"
    assert locate(product, tmp_path / "macos", MACOS) == tmp_path / "macos" / "lib" / "libz.1.dylib"
    assert locate(product, tmp_path / "windows", WINDOWS) == tmp_path / "windows" / "bin" / "libz-1.dll"


def test_library_does_not_match_prefix_collisions(tmp_path: Path) -> None:
    """libfoo must not match libfoobar."""
    _touch(tmp_path / "lib" / "libzstd.so")

    assert not is_satisfied(LibraryProduct(names=("libz",), variable="libz"), tmp_path, LINUX)


def test_library_searches_custom_dirs(tmp_path: Path) -> None:
    _touch(tmp_path / "lib64" / "libfoo.so")
    product = LibraryProduct(names=("libfoo",), variable="libfoo", dir_paths=("lib", "lib64"))

    assert locate(product, tmp_path, LINUX) == tmp_path / "lib64" / "libfoo.so"


def test_executable_requires_exec_bit_except_on_windows(tmp_path: Path) -> None:
    """Windows executables are found without the exec bit."""
    product = ExecutableProduct(names=("tool",), variable="tool")
    _touch(tmp_path / "unix" / "bin" / "tool", mode=0o644)
    _touch(tmp_path / "win" / "bin" / "tool.exe", mode=0o644)

    assert locate(product, tmp_path / "unix", LINUX) is None
    assert locate(product, tmp_path / "win", WINDOWS) == tmp_path / "win" / "bin" / "tool.exe"

    (tmp_path / "unix" / "bin" / "tool").chmod(0o755)
    assert locate(product, tmp_path / "unix", LINUX) == tmp_path / "unix" / "bin" / "tool"


def test_file_product_is_a_fixed_relative_path(tmp_path: Path) -> None:
    product = FileProduct(path="share/data.txt", variable="data_txt")

    assert locate(product, tmp_path, LINUX) is None
    _touch(tmp_path / "share" / "data.txt")
    assert locate(product, tmp_path, LINUX) == tmp_path / "share" / "data.txt"
    assert describe(product) == "FileProduct(share/data.txt) as data_txt"


def test_verbose_locate_logs_diagnostics_at_info(
    tmp_path: Path,
    caplog: pytest.LogCaptureFixture,
) -> None:
    product = ExecutableProduct(names=("tool",), variable="tool")

    with caplog.at_level("INFO", logger="binbake.products"):
        locate(product, tmp_path, LINUX, verbose=True)

    assert any("not found" in record.getMessage() for record in caplog.records)


def test_soname_is_read_from_readelf_output(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    library = _touch(tmp_path / "libz.so.1.2.11")
    output = " 0x000000000000000e (SONAME)             Library soname: [libz.so.1]\n"
    monkeypatch.setattr(products_module, "_run_tool", lambda argv: output)

    assert soname(library, LINUX) == "libz.so.1"
    assert soname(library, WINDOWS) is None


def test_soname_is_none_without_tooling(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Without readelf the soname is unknown rather than an error."""
    library = _touch(tmp_path / "libz.so")
    monkeypatch.setattr("binbake.products.shutil.which", lambda _: None)

    assert soname(library, LINUX) is None
