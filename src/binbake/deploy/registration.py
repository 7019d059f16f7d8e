"""Stage a new package version in a git-backed registry."""

from __future__ import annotations

import logging
import tomllib
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import toml

from binbake.deploy.credentials import Credentials
from binbake.deploy.git import checkout_branch, clone_repo, commit_all, fetch_origin, push
from binbake.deploy.wrappers import package_uuid
from binbake.errors import RegistrationFailure
from binbake.models import BuildVersion, DependencySpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RegistrationResult:
    branch: str
    package_path: str


class RegistryStager(Protocol):
    def stage(
        self,
        *,
        package: str,
        version: BuildVersion,
        repo_url: str,
        tree_hash: str,
        dependencies: Sequence[DependencySpec],
        credentials: Credentials,
    ) -> RegistrationResult:
        """Record ``version`` on a fresh branch of the registry and push that branch."""


@dataclass(frozen=True, slots=True)
class RegistryClone:
    """Local working copy of the registry repository, synced from its remote.

    ``sync`` clones on first use, otherwise fetches and force-resets the base
    branch to ``origin/<base_branch>``, discarding anything left over from an
    earlier registration.
    """

    clone_dir: Path
    remote_url: str
    base_branch: str = "master"

    def sync(self, *, credentials: Credentials | None = None) -> None:
        if (self.clone_dir / ".git").is_dir():
            fetch_origin(self.clone_dir, credentials=credentials)
        else:
            clone_repo(self.remote_url, self.clone_dir, credentials=credentials)
        checkout_branch(
            self.clone_dir,
            self.base_branch,
            start_point=f"origin/{self.base_branch}",
            force=True,
        )
        logger.debug("Registry clone %s is at origin/%s", self.clone_dir, self.base_branch)


def registration_branch(package: str, version: BuildVersion) -> str:
    return f"register/{package}/v{version}"


def registry_package_path(package: str) -> str:
    return f"{package[0].upper()}/{package}"


@dataclass(slots=True)
class GitRegistryStager:
    """Edits a local clone of the registry repository.

    The layout matches what ``binbake.registry.TomlRegistry`` reads back:
    ``Registry.toml`` lists packages by uuid, and each package directory holds
    ``Package.toml``, ``Versions.toml`` and, when there are any, ``Deps.toml``.
    """

    clone_dir: Path
    remote_url: str
    base_branch: str = "master"

    def stage(
        self,
        *,
        package: str,
        version: BuildVersion,
        repo_url: str,
        tree_hash: str,
        dependencies: Sequence[DependencySpec],
        credentials: Credentials,
    ) -> RegistrationResult:
        RegistryClone(self.clone_dir, self.remote_url, self.base_branch).sync(credentials=credentials)
        branch = registration_branch(package, version)
        checkout_branch(self.clone_dir, branch, start_point=f"origin/{self.base_branch}", force=True)

        package_path = registry_package_path(package)
        self.write_entry(
            package=package,
            version=version,
            repo_url=repo_url,
            tree_hash=tree_hash,
            dependencies=dependencies,
        )
        commit_all(self.clone_dir, f"Register {package} v{version}")
        push(self.clone_dir, self.remote_url, branch, credentials=credentials, force=True)
        logger.info("Pushed registry branch %s", branch)
        return RegistrationResult(branch=branch, package_path=package_path)

    def write_entry(
        self,
        *,
        package: str,
        version: BuildVersion,
        repo_url: str,
        tree_hash: str,
        dependencies: Sequence[DependencySpec],
    ) -> Path:
        uuid = package_uuid(package)
        package_path = registry_package_path(package)
        package_dir = self.clone_dir / package_path
        package_dir.mkdir(parents=True, exist_ok=True)

        registry_toml = self.clone_dir / "Registry.toml"
        registry = _read_toml(registry_toml)
        registry.setdefault("packages", {})[uuid] = {"name": package, "path": package_path}
        _write_toml(registry_toml, registry)

        _write_toml(package_dir / "Package.toml", {"name": package, "uuid": uuid, "repo": repo_url})

        versions_toml = package_dir / "Versions.toml"
        versions = _read_toml(versions_toml)
        if str(version) in versions:
            raise RegistrationFailure(
                f"{package} v{version} is already registered.",
                hint="Negotiate the build version against an up-to-date registry clone.",
                context={"operation": "stage_registration", "package": package, "version": str(version)},
            )
        versions[str(version)] = {"git-tree-sha1": tree_hash}
        _write_toml(versions_toml, versions)

        if dependencies:
            deps_toml = package_dir / "Deps.toml"
            deps = _read_toml(deps_toml)
            deps[str(version)] = {dependency.name: package_uuid(dependency.name) for dependency in dependencies}
            _write_toml(deps_toml, deps)
        return package_dir


def _read_toml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise RegistrationFailure(
            "Registry file is not valid TOML.",
            hint="Reset the registry clone to a clean checkout.",
            context={"operation": "stage_registration", "path": str(path)},
        ) from exc


def _write_toml(path: Path, payload: dict[str, Any]) -> None:
    path.write_text(toml.dumps(payload), encoding="utf-8")
