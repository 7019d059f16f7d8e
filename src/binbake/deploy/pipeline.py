"""Build, publish wrapper code, register and upload one package release."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from tenacity import RetryError, Retrying, retry_if_exception_type, stop_after_attempt

from binbake.deploy.credentials import scoped_credentials
from binbake.deploy.git import clone_repo, commit_all, init_repo, push, tree_hash
from binbake.deploy.github import RemoteService
from binbake.deploy.registration import RegistryClone, RegistryStager
from binbake.deploy.wrappers import ArtifactsManifestGenerator, WrapperGenerator
from binbake.errors import BinbakeError, RegistrationFailure, UploadFailure
from binbake.models import BuildOutputMeta, BuildVersion, DeployRequest, DeployResult
from binbake.observability import StructuredLogger
from binbake.policy import Policy, ensure_network_allowed
from binbake.registry import Registry
from binbake.versioning import next_build_version, release_tag

logger = logging.getLogger(__name__)

BuildCallable = Callable[[BuildVersion], BuildOutputMeta]


@dataclass(slots=True)
class DeploymentPipeline:
    """Runs the deployment stages strictly in order.

    1. ensure the wrapper repository exists remotely and locally
    2. sync the registry clone, then negotiate the build version against it
    3. build every platform
    4. generate wrapper code
    5. commit and push the wrapper code
    6. compute the wrapper tree hash
    7. stage a registry entry and open a pull request (advisory)
    8. upload the tarballs as release assets, with retries

    Any failure before stage 7 aborts the deployment.  Registration problems
    are recorded on the result and the upload still happens.
    """

    service: RemoteService
    registry: Registry
    stager: RegistryStager | None = None
    registry_clone: RegistryClone | None = None
    generator: WrapperGenerator = field(default_factory=ArtifactsManifestGenerator)
    policy: Policy = field(default_factory=Policy)
    logger: StructuredLogger = field(default_factory=StructuredLogger)

    def deploy(self, request: DeployRequest, build: BuildCallable) -> DeployResult:
        ensure_network_allowed(policy=self.policy, operation="deploy")
        self.ensure_repository(request)

        self.sync_registry(request)
        version = next_build_version(self.registry, request.package, request.version)
        tag = release_tag(request.package, version)
        self._log(request, "version", f"Building and deploying version {version} to {request.repo}")

        build_output = build(version)

        self.generator.generate(
            package=request.package,
            version=version,
            code_dir=request.code_dir,
            build_output=build_output,
            dependencies=request.dependencies,
            download_url=self.service.release_download_url(request.repo, tag),
        )

        self._log(request, "publish", f"Committing and pushing wrapper code version {version}")
        commit_all(request.code_dir, f"{request.package} build {version}")
        with scoped_credentials(self.service.username(), self.service.token()) as credentials:
            push(
                request.code_dir,
                self.service.remote_url(request.repo),
                request.branch,
                credentials=credentials,
            )

        result = DeployResult(
            version=version,
            tag=tag,
            tree_hash=tree_hash(request.code_dir),
            build_output=build_output,
        )

        if request.register:
            self.register(request, result)

        self._log(request, "upload", f"Deploying binaries to release {tag} on {request.repo}")
        upload_with_retry(
            self.service,
            request.repo,
            tag,
            request.products_dir,
            attempts=self.policy.upload_attempts,
        )
        return result

    def ensure_repository(self, request: DeployRequest) -> None:
        if self.service.repo_exists(request.repo):
            if not request.code_dir.is_dir():
                self._log(request, "repository", f"Cloning wrapper code repo into {request.code_dir}")
                clone_repo(self.service.remote_url(request.repo), request.code_dir)
            return
        self._log(request, "repository", f"Creating new wrapper code repo {request.repo}")
        self.service.create_repo(request.repo)
        init_repo(request.code_dir, branch=request.branch)

    def sync_registry(self, request: DeployRequest) -> None:
        if self.registry_clone is None:
            return
        self._log(request, "version", f"Updating registry clone from {self.registry_clone.remote_url}")
        with scoped_credentials(self.service.username(), self.service.token()) as credentials:
            self.registry_clone.sync(credentials=credentials)

    def register(self, request: DeployRequest, result: DeployResult) -> None:
        """Stage the registry entry, recording any failure on ``result`` instead of raising."""
        try:
            if self.stager is None:
                raise RegistrationFailure(
                    "Registration requested but no registry stager is configured.",
                    context={"package": request.package},
                )
            with scoped_credentials(self.service.username(), self.service.token()) as credentials:
                staged = self.stager.stage(
                    package=request.package,
                    version=result.version,
                    repo_url=self.service.remote_url(request.repo),
                    tree_hash=result.tree_hash,
                    dependencies=request.dependencies,
                    credentials=credentials,
                )
            result.registration_branch = staged.branch
            result.pull_request_url = self.service.create_pull_request(
                request.registry_repo,
                head=staged.branch,
                base=request.registry_branch,
                title=f"Registration: {request.repo}-v{result.version}",
                body=(
                    "Autogenerated package registration\n\n"
                    f"* Registering package {request.package}\n"
                    f"* Repository: {self.service.remote_url(request.repo)}\n"
                    f"* Version: v{result.version}\n"
                ),
            )
        except (BinbakeError, OSError) as exc:
            failure = exc
            if not isinstance(exc, RegistrationFailure):
                failure = RegistrationFailure(
                    "Registration did not complete; submit it manually.",
                    context={
                        "package": request.package,
                        "version": str(result.version),
                        "error": str(exc),
                    },
                )
                failure.__cause__ = exc
            result.registration_error = failure
            self._log(request, "register", str(failure), level="error")

    def _log(self, request: DeployRequest, phase: str, message: str, *, level: str = "info") -> None:
        self.logger.log(
            operation="deploy",
            package=request.package,
            platform=None,
            phase=phase,
            message=message,
            level=level,
        )


def upload_with_retry(
    service: RemoteService,
    repo: str,
    tag: str,
    path: Path,
    *,
    attempts: int = 3,
) -> None:
    """Upload ``path`` to release ``tag``, trying at most ``attempts`` times.

    Package errors and I/O errors from the service are retried.  Only the
    final failure surfaces, wrapped in ``UploadFailure``.
    """
    retrying = Retrying(
        stop=stop_after_attempt(attempts),
        retry=retry_if_exception_type((BinbakeError, OSError)),
        reraise=False,
    )
    try:
        for attempt in retrying:
            with attempt:
                number = attempt.retry_state.attempt_number
                if number > 1:
                    logger.info("Release upload failed, beginning attempt #%d", number)
                service.upload_release(repo, tag, path)
    except RetryError as exc:
        last_error = exc.last_attempt.exception()
        raise UploadFailure(
            f"Unable to upload {path} to {repo} on tag {tag}.",
            hint="Re-run the upload once the release host is reachable.",
            context={
                "repo": repo,
                "tag": tag,
                "attempts": str(attempts),
                "error": str(last_error),
            },
        ) from last_error
