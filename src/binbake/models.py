"""Core typed dataclasses for sources, platforms, products, versions and build output."""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from binbake.errors import InvalidInputError, ValidationError

Arch = Literal["x86_64", "i686", "aarch64", "armv7l", "powerpc64le"]
OperatingSystem = Literal["linux", "macos", "windows", "freebsd"]
Libc = Literal["glibc", "musl"]
SourceKind = Literal["archive", "file", "git"]

_TRIPLET_PATTERN = re.compile(
    r"(?P<arch>x86_64|i686|aarch64|armv7l|arm|powerpc64le)-"
    r"(?:linux-(?P<libc>gnu|musl)(?P<call_abi>eabihf)?"
    r"|(?P<darwin>apple-darwin14)"
    r"|(?P<mingw>w64-mingw32)"
    r"|(?P<freebsd>unknown-freebsd11\.1))"
    r"(?:-(?P<compiler_abi>[a-z0-9][a-z0-9-]*))?"
)

_VERSION_PATTERN = re.compile(
    r"v?(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>[0-9A-Za-z.-]+))?"
    r"(?:\+(?P<build>[0-9A-Za-z.-]+))?"
)


# ── Sources ─────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class RemoteArchive:
    url: str
    sha256: str


@dataclass(frozen=True, slots=True)
class GitRepo:
    url: str
    ref: str | None = None


@dataclass(frozen=True, slots=True)
class LocalDir:
    path: Path


SourceSpec = RemoteArchive | GitRepo | LocalDir


@dataclass(frozen=True, slots=True)
class ResolvedSource:
    path: Path
    digest: str
    kind: SourceKind
    name: str
    ref: str | None = None


# ── Platforms ───────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Platform:
    arch: Arch
    os: OperatingSystem
    libc: Libc | None = None
    call_abi: str | None = None
    compiler_abi: str | None = None

    @property
    def triplet(self) -> str:
        if self.os == "linux":
            arch = "arm" if self.arch == "armv7l" else self.arch
            libc = "musl" if self.libc == "musl" else "gnu"
            base = f"{arch}-linux-{libc}{self.call_abi or ''}"
        elif self.os == "macos":
            base = f"{self.arch}-apple-darwin14"
        elif self.os == "windows":
            base = f"{self.arch}-w64-mingw32"
        else:
            base = f"{self.arch}-unknown-freebsd11.1"
        if self.compiler_abi:
            return f"{base}-{self.compiler_abi}"
        return base

    @property
    def dlext(self) -> str:
        if self.os == "macos":
            return "dylib"
        if self.os == "windows":
            return "dll"
        return "so"

    @property
    def exeext(self) -> str:
        return ".exe" if self.os == "windows" else ""

    @property
    def libdir(self) -> str:
        return "bin" if self.os == "windows" else "lib"

    @classmethod
    def parse(cls, triplet: str) -> Platform:
        match = _TRIPLET_PATTERN.fullmatch(triplet.strip())
        if match is None:
            raise InvalidInputError(
                "Unrecognized platform triplet.",
                hint="Use a triplet such as x86_64-linux-gnu or aarch64-apple-darwin14.",
                context={"triplet": triplet},
            )
        arch = match["arch"]
        if arch == "arm":
            arch = "armv7l"
        compiler_abi = match["compiler_abi"]
        if match["libc"] is not None:
            return cls(
                arch=arch,  # type: ignore[arg-type]
                os="linux",
                libc="musl" if match["libc"] == "musl" else "glibc",
                call_abi=match["call_abi"],
                compiler_abi=compiler_abi,
            )
        if match["darwin"] is not None:
            os_name: OperatingSystem = "macos"
        elif match["mingw"] is not None:
            os_name = "windows"
        else:
            os_name = "freebsd"
        return cls(arch=arch, os=os_name, compiler_abi=compiler_abi)  # type: ignore[arg-type]

    def __str__(self) -> str:
        return self.triplet


# ── Products ────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class LibraryProduct:
    """A shared library found by any of ``names`` under the platform libdir."""

    names: tuple[str, ...]
    variable: str
    dir_paths: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ExecutableProduct:
    """An executable found by any of ``names`` under ``bin/`` (or ``dir_path``)."""

    names: tuple[str, ...]
    variable: str
    dir_path: str | None = None


@dataclass(frozen=True, slots=True)
class FileProduct:
    """An arbitrary file at a fixed path relative to the destination tree."""

    path: str
    variable: str


Product = LibraryProduct | ExecutableProduct | FileProduct


@dataclass(frozen=True, slots=True)
class ProductInfo:
    path: str
    soname: str | None = None


# ── Versions ────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class BuildVersion:
    major: int
    minor: int
    patch: int
    prerelease: str | None = None
    build: str | None = None

    @classmethod
    def parse(cls, raw: str) -> BuildVersion:
        match = _VERSION_PATTERN.fullmatch(raw.strip())
        if match is None:
            raise InvalidInputError(
                "Invalid semantic version.",
                hint="Use major.minor.patch with optional -prerelease and +build parts.",
                context={"version": raw},
            )
        return cls(
            major=int(match["major"]),
            minor=int(match["minor"]),
            patch=int(match["patch"]),
            prerelease=match["prerelease"],
            build=match["build"],
        )

    @property
    def core(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    @property
    def build_number(self) -> int | None:
        """The build suffix as an integer, or None if absent or non-numeric."""
        if self.build is None or not self.build.isdigit():
            return None
        return int(self.build)

    def with_build(self, number: int) -> BuildVersion:
        if number < 0:
            raise InvalidInputError(
                "Build numbers must be non-negative.",
                context={"version": str(self), "build": str(number)},
            )
        return BuildVersion(
            major=self.major,
            minor=self.minor,
            patch=self.patch,
            prerelease=self.prerelease,
            build=str(number),
        )

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += f"-{self.prerelease}"
        if self.build:
            text += f"+{self.build}"
        return text


# ── Build output ────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ArtifactMeta:
    tarball_name: str
    tarball_sha256: str
    tree_hash: str
    products_info: Mapping[Product, ProductInfo] = field(default_factory=dict)


class BuildOutputMeta(Mapping[Platform, ArtifactMeta]):
    """Per-platform artifacts, populated once per platform and never rewritten."""

    __slots__ = ("_entries",)

    def __init__(self) -> None:
        self._entries: dict[Platform, ArtifactMeta] = {}

    def record(self, platform: Platform, meta: ArtifactMeta) -> None:
        if platform in self._entries:
            raise ValidationError(
                "Platform already has recorded build output.",
                context={"platform": platform.triplet},
            )
        self._entries[platform] = meta

    def __getitem__(self, platform: Platform) -> ArtifactMeta:
        return self._entries[platform]

    def __iter__(self) -> Iterator[Platform]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        triplets = ", ".join(platform.triplet for platform in self._entries)
        return f"BuildOutputMeta({triplets})"


# ── Requests ────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class DependencySpec:
    name: str
    path: Path


@dataclass(frozen=True, slots=True)
class BuildRequest:
    package: str
    version: BuildVersion
    sources: tuple[ResolvedSource, ...]
    script: str
    platforms: tuple[Platform, ...]
    products: tuple[Product, ...]
    dependencies: tuple[DependencySpec, ...] = ()
    build_root: Path = field(default_factory=lambda: Path("build"))
    output_dir: Path = field(default_factory=lambda: Path("products"))


@dataclass(frozen=True, slots=True)
class DeployRequest:
    package: str
    version: BuildVersion
    repo: str
    code_dir: Path
    products_dir: Path
    dependencies: tuple[DependencySpec, ...] = ()
    branch: str = "master"
    register: bool = False
    registry_repo: str = ""
    registry_branch: str = "master"


@dataclass(slots=True)
class DeployResult:
    version: BuildVersion
    tag: str
    tree_hash: str
    build_output: BuildOutputMeta
    registration_branch: str | None = None
    pull_request_url: str | None = None
    registration_error: Exception | None = None


__all__ = [
    "Arch",
    "ArtifactMeta",
    "BuildOutputMeta",
    "BuildRequest",
    "BuildVersion",
    "DependencySpec",
    "DeployRequest",
    "DeployResult",
    "ExecutableProduct",
    "FileProduct",
    "GitRepo",
    "LibraryProduct",
    "Libc",
    "LocalDir",
    "OperatingSystem",
    "Platform",
    "Product",
    "ProductInfo",
    "RemoteArchive",
    "ResolvedSource",
    "SourceKind",
    "SourceSpec",
]
