"""Locate declared build products inside a destination tree."""

from __future__ import annotations

import logging
import re
import shutil
import stat
import subprocess
from pathlib import Path

from binbake.errors import InvalidInputError
from binbake.models import ExecutableProduct, FileProduct, LibraryProduct, Platform, Product

logger = logging.getLogger(__name__)

_SONAME_PATTERN = re.compile(r"\(SONAME\)\s+Library soname: \[(?P<soname>[^\]]+)\]")


def locate(
    product: Product,
    prefix: Path,
    platform: Platform,
    *,
    verbose: bool = False,
) -> Path | None:
    """Return the path of ``product`` under ``prefix``, or None if it is missing."""
    if isinstance(product, LibraryProduct):
        return _locate_library(product, prefix, platform, verbose=verbose)
    if isinstance(product, ExecutableProduct):
        return _locate_executable(product, prefix, platform, verbose=verbose)
    if isinstance(product, FileProduct):
        return _locate_file(product, prefix, verbose=verbose)
    raise InvalidInputError(
        "Unsupported product type.",
        context={"product": type(product).__name__},
    )


def is_satisfied(
    product: Product,
    prefix: Path,
    platform: Platform,
    *,
    verbose: bool = False,
) -> bool:
    return locate(product, prefix, platform, verbose=verbose) is not None


def describe(product: Product) -> str:
    if isinstance(product, LibraryProduct):
        return f"LibraryProduct({', '.join(product.names)}) as {product.variable}"
    if isinstance(product, ExecutableProduct):
        return f"ExecutableProduct({', '.join(product.names)}) as {product.variable}"
    return f"FileProduct({product.path}) as {product.variable}"


def soname(path: Path, platform: Platform) -> str | None:
    """Read the runtime soname (or install name) of a library, if a tool can tell us."""
    if platform.os in ("linux", "freebsd"):
        output = _run_tool(["readelf", "-d", str(path)])
        if output is None:
            return None
        match = _SONAME_PATTERN.search(output)
        return match["soname"] if match else None
    if platform.os == "macos":
        output = _run_tool(["otool", "-D", str(path)])
        if output is None:
            return None
        lines = [line.strip() for line in output.splitlines() if line.strip()]
        # First line echoes the queried path, the second is the install name.
        return Path(lines[1]).name if len(lines) > 1 else None
    return None


def _locate_library(
    product: LibraryProduct,
    prefix: Path,
    platform: Platform,
    *,
    verbose: bool,
) -> Path | None:
    search_dirs = product.dir_paths or (platform.libdir,)
    for rel_dir in search_dirs:
        directory = prefix / rel_dir
        if not directory.is_dir():
            _diagnose(verbose, "Library search directory %s does not exist", directory)
            continue
        for candidate in sorted(directory.iterdir()):
            if not candidate.is_file():
                continue
            for name in product.names:
                if _library_name_matches(candidate.name, name, platform):
                    _diagnose(verbose, "Found library %s at %s", name, candidate)
                    return candidate
        _diagnose(
            verbose,
            "Could not locate any of %s inside %s",
            ", ".join(product.names),
            directory,
        )
    return None


def _library_name_matches(filename: str, name: str, platform: Platform) -> bool:
    escaped = re.escape(name)
    if platform.os == "macos":
        pattern = rf"{escaped}(\.[0-9.]+)?\.dylib"
    elif platform.os == "windows":
        pattern = rf"{escaped}(-[0-9]+)?\.dll"
    else:
        pattern = rf"{escaped}\.so(\.[0-9.]+)?"
    return re.fullmatch(pattern, filename) is not None


def _locate_executable(
    product: ExecutableProduct,
    prefix: Path,
    platform: Platform,
    *,
    verbose: bool,
) -> Path | None:
    directory = prefix / (product.dir_path or "bin")
    for name in product.names:
        candidate = directory / f"{name}{platform.exeext}"
        if not candidate.is_file():
            _diagnose(verbose, "Executable %s not found at %s", name, candidate)
            continue
        if platform.os != "windows" and not candidate.stat().st_mode & stat.S_IXUSR:
            _diagnose(verbose, "Executable %s exists but is not executable", candidate)
            continue
        _diagnose(verbose, "Found executable %s at %s", name, candidate)
        return candidate
    return None


def _locate_file(product: FileProduct, prefix: Path, *, verbose: bool) -> Path | None:
    candidate = prefix / product.path
    if candidate.exists():
        _diagnose(verbose, "Found file %s", candidate)
        return candidate
    _diagnose(verbose, "File %s does not exist", candidate)
    return None


def _diagnose(verbose: bool, message: str, *args: object) -> None:
    logger.log(logging.INFO if verbose else logging.DEBUG, message, *args)


def _run_tool(argv: list[str]) -> str | None:
    if shutil.which(argv[0]) is None:
        return None
    completed = subprocess.run(argv, capture_output=True, text=True, check=False)
    if completed.returncode != 0:
        return None
    return completed.stdout
