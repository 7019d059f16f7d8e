"""Top-level entry points: build a package for many platforms and optionally deploy it."""

from __future__ import annotations

import tempfile
from collections.abc import Sequence
from pathlib import Path

from binbake.backends.base import BuildRunner, CompilerConfig
from binbake.backends.local_linux import LocalLinuxRunner
from binbake.build import PlatformBuildLoop
from binbake.deploy.github import GitHubCliService
from binbake.deploy.pipeline import DeploymentPipeline
from binbake.deploy.registration import GitRegistryStager, RegistryClone
from binbake.errors import InvalidInputError
from binbake.fetch.resolve import resolve_sources
from binbake.models import (
    BuildOutputMeta,
    BuildRequest,
    BuildVersion,
    DependencySpec,
    DeployRequest,
    DeployResult,
    Platform,
    Product,
)
from binbake.observability import StructuredLogger
from binbake.policy import Policy, storage_dir
from binbake.registry import TomlRegistry


def autobuild(
    package: str,
    version: BuildVersion | str,
    sources: Sequence[object],
    script: str,
    platforms: Sequence[Platform | str],
    products: Sequence[Product],
    dependencies: Sequence[DependencySpec] = (),
    *,
    runner: BuildRunner | None = None,
    policy: Policy | None = None,
    logger: StructuredLogger | None = None,
    compiler: CompilerConfig | None = None,
    build_root: Path = Path("build"),
    output_dir: Path = Path("products"),
    storage: Path | None = None,
) -> BuildOutputMeta:
    """Resolve ``sources`` and run the platform build loop over ``platforms``.

    Local directory sources are archived into a temporary directory that lives
    only as long as the build.
    """
    policy = policy or Policy()
    logger = logger or StructuredLogger()
    storage = storage or storage_dir()
    loop = PlatformBuildLoop(
        runner=runner or LocalLinuxRunner(),
        policy=policy,
        logger=logger,
        compiler=compiler or CompilerConfig(),
    )
    with tempfile.TemporaryDirectory(prefix="binbake-sources-") as work_dir:
        resolved = resolve_sources(
            sources,
            storage_dir=storage,
            work_dir=Path(work_dir),
            policy=policy,
            logger=logger,
        )
        request = BuildRequest(
            package=package,
            version=_as_version(version),
            sources=tuple(resolved),
            script=script,
            platforms=tuple(_as_platform(platform) for platform in platforms),
            products=tuple(products),
            dependencies=tuple(dependencies),
            build_root=build_root,
            output_dir=output_dir,
        )
        return loop.run(request)


def build_tarballs(
    package: str,
    version: BuildVersion | str,
    sources: Sequence[object],
    script: str,
    platforms: Sequence[Platform | str],
    products: Sequence[Product],
    dependencies: Sequence[DependencySpec] = (),
    *,
    deploy_repo: str | None = None,
    register: bool = False,
    registry_repo: str = "",
    code_dir: Path | None = None,
    pipeline: DeploymentPipeline | None = None,
    runner: BuildRunner | None = None,
    policy: Policy | None = None,
    logger: StructuredLogger | None = None,
    compiler: CompilerConfig | None = None,
    build_root: Path = Path("build"),
    output_dir: Path = Path("products"),
    storage: Path | None = None,
) -> BuildOutputMeta | DeployResult:
    """Build every platform and, when ``deploy_repo`` is given, deploy the result.

    Without ``deploy_repo`` this is ``autobuild`` and returns the build output.
    With it, the deployment pipeline negotiates the version, builds, publishes
    wrapper code, optionally registers and uploads, and the ``DeployResult`` is
    returned.
    """
    if register and deploy_repo is None:
        raise InvalidInputError(
            "Cannot register without deploying.",
            hint="Pass deploy_repo to deploy before registering.",
            context={"package": package},
        )
    if deploy_repo is not None and not registry_repo and pipeline is None:
        raise InvalidInputError(
            "Deployment needs the registry repository to negotiate versions against.",
            hint="Pass registry_repo as owner/name.",
            context={"package": package},
        )
    policy = policy or Policy()
    logger = logger or StructuredLogger()
    storage = storage or storage_dir()

    def run_build(build_version: BuildVersion) -> BuildOutputMeta:
        return autobuild(
            package,
            build_version,
            sources,
            script,
            platforms,
            products,
            dependencies,
            runner=runner,
            policy=policy,
            logger=logger,
            compiler=compiler,
            build_root=build_root,
            output_dir=output_dir,
            storage=storage,
        )

    if deploy_repo is None:
        return run_build(_as_version(version))

    if pipeline is None:
        service = GitHubCliService()
        registry_dir = storage / "registry"
        registry_url = service.remote_url(registry_repo)
        stager = None
        if register:
            stager = GitRegistryStager(clone_dir=registry_dir, remote_url=registry_url)
        pipeline = DeploymentPipeline(
            service=service,
            registry=TomlRegistry(registry_dir),
            stager=stager,
            registry_clone=RegistryClone(clone_dir=registry_dir, remote_url=registry_url),
            policy=policy,
            logger=logger,
        )
    request = DeployRequest(
        package=package,
        version=_as_version(version),
        repo=deploy_repo,
        code_dir=code_dir or storage / "dev" / package,
        products_dir=output_dir,
        dependencies=tuple(dependencies),
        register=register,
        registry_repo=registry_repo,
    )
    return pipeline.deploy(request, build=run_build)


def _as_version(version: BuildVersion | str) -> BuildVersion:
    return version if isinstance(version, BuildVersion) else BuildVersion.parse(version)


def _as_platform(platform: Platform | str) -> Platform:
    return platform if isinstance(platform, Platform) else Platform.parse(platform)
