"""Generate the wrapper code committed alongside each release."""

from __future__ import annotations

import json
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from binbake.models import (
    BuildOutputMeta,
    BuildVersion,
    DependencySpec,
    ExecutableProduct,
    LibraryProduct,
    Product,
    ProductInfo,
)

_PACKAGE_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "https://github.com/binbake")


def package_uuid(package: str) -> str:
    """Stable UUID for a package name, identical on every machine."""
    return str(uuid.uuid5(_PACKAGE_NAMESPACE, package))


class WrapperGenerator(Protocol):
    name: str

    def generate(
        self,
        *,
        package: str,
        version: BuildVersion,
        code_dir: Path,
        build_output: BuildOutputMeta,
        dependencies: Sequence[DependencySpec],
        download_url: str,
    ) -> list[Path]:
        """Write wrapper files into ``code_dir`` and return the paths written."""


@dataclass(slots=True)
class ArtifactsManifestGenerator:
    """Writes ``Artifacts.json``, ``Project.json`` and a ``README.md``.

    ``Artifacts.json`` maps each platform triplet to the release tarball URL,
    its SHA-256, the git tree hash of its contents, and the located products.
    """

    name: str = "artifacts_manifest"

    def generate(
        self,
        *,
        package: str,
        version: BuildVersion,
        code_dir: Path,
        build_output: BuildOutputMeta,
        dependencies: Sequence[DependencySpec],
        download_url: str,
    ) -> list[Path]:
        code_dir.mkdir(parents=True, exist_ok=True)
        artifacts: dict[str, Any] = {}
        for platform, meta in build_output.items():
            artifacts[platform.triplet] = {
                "url": f"{download_url}/{meta.tarball_name}",
                "sha256": meta.tarball_sha256,
                "git-tree-sha1": meta.tree_hash,
                "products": {
                    product.variable: _product_entry(product, info)
                    for product, info in meta.products_info.items()
                },
            }
        project = build_project(package, version, dependencies)

        written = [
            _write_json(code_dir / "Artifacts.json", {package: artifacts}),
            _write_json(code_dir / "Project.json", project),
        ]
        readme = code_dir / "README.md"
        readme.write_text(_readme(package, version, build_output), encoding="utf-8")
        written.append(readme)
        return written


def build_project(
    package: str,
    version: BuildVersion,
    dependencies: Sequence[DependencySpec],
) -> dict[str, Any]:
    return {
        "name": package,
        "uuid": package_uuid(package),
        "version": str(version),
        "deps": {dependency.name: package_uuid(dependency.name) for dependency in dependencies},
    }


def _product_entry(product: Product, info: ProductInfo) -> dict[str, str]:
    if isinstance(product, LibraryProduct):
        entry = {"type": "library", "path": info.path}
        if info.soname:
            entry["soname"] = info.soname
        return entry
    if isinstance(product, ExecutableProduct):
        return {"type": "executable", "path": info.path}
    return {"type": "file", "path": info.path}


def _write_json(path: Path, payload: dict[str, Any]) -> Path:
    path.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    return path


def _readme(package: str, version: BuildVersion, build_output: BuildOutputMeta) -> str:
    platforms = "\n".join(f"- `{platform.triplet}`" for platform in sorted(build_output, key=str))
    return (
        f"# {package}\n\n"
        f"Prebuilt binaries of `{package}` version `{version}`, generated by binbake.\n\n"
        "## Platforms\n\n"
        f"{platforms}\n\n"
        "## Usage\n\n"
        "`Artifacts.json` lists, for each platform triplet, the release tarball URL, its\n"
        "SHA-256, the git tree hash of its unpacked contents, and the relative path of\n"
        "every declared product.  Libraries also record the soname to load them by.\n"
    )
