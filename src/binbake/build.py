"""The per-platform build, audit, verify and package loop."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from binbake.audit import AuditOptions, Auditor, PathLeakAuditor
from binbake.backends.base import BuildHooks, BuildRunner, CompilerConfig, RunRequest
from binbake.dependencies import Materializer, SymlinkMaterializer
from binbake.errors import AuditFailure, BuildFailure, InvalidInputError
from binbake.heartbeat import Heartbeat
from binbake.hooks import default_hooks
from binbake.models import (
    ArtifactMeta,
    BuildOutputMeta,
    BuildRequest,
    LibraryProduct,
    Platform,
    Product,
    ProductInfo,
)
from binbake.observability import StructuredLogger
from binbake.packaging import package, prune_empty_dirs
from binbake.policy import Policy
from binbake.products import describe, locate, soname
from binbake.workspace import Workspace, create_workspace, destroy_workspace, unpack_sources


@dataclass(slots=True)
class PlatformBuildLoop:
    """Builds one package for each requested platform, strictly in order.

    Each platform gets a fresh workspace that is torn down once its tarball has
    been written.  The first failure aborts the whole run and leaves the failing
    workspace on disk for inspection.
    """

    runner: BuildRunner
    auditor: Auditor = field(default_factory=PathLeakAuditor)
    materializer: Materializer = field(default_factory=SymlinkMaterializer)
    policy: Policy = field(default_factory=Policy)
    logger: StructuredLogger = field(default_factory=StructuredLogger)
    hooks: BuildHooks = field(default_factory=default_hooks)
    compiler: CompilerConfig = field(default_factory=CompilerConfig)
    env: Mapping[str, str] | None = None

    def run(self, request: BuildRequest) -> BuildOutputMeta:
        output = BuildOutputMeta()
        request.output_dir.mkdir(parents=True, exist_ok=True)
        heartbeat: Heartbeat | None = None
        if self.policy.heartbeat_enabled(self.env):
            heartbeat = Heartbeat(interval=self.policy.heartbeat_interval).start()
        try:
            for platform in request.platforms:
                output.record(platform, self.build_platform(request, platform))
        finally:
            if heartbeat is not None:
                heartbeat.stop()
            self.logger.to_json_lines(request.build_root / f"{request.package}.report.jsonl")
        return output

    def build_platform(self, request: BuildRequest, platform: Platform) -> ArtifactMeta:
        triplet = platform.triplet
        workspace = create_workspace(request.build_root, platform)
        self._log(request, platform, "setup", f"Created workspace {workspace.root}")
        unpack_sources(workspace, request.sources)
        handles = self.materializer.attach(workspace, request.dependencies, platform)

        run_request = RunRequest(
            package=request.package,
            workspace=workspace,
            platform=platform,
            script=request.script,
            log_path=workspace.destdir / "logs" / f"{request.package}.log",
            compiler=self.compiler,
            verbose=self.policy.verbose,
        )
        self._log(request, platform, "build", f"Running build with {self.runner.name}")
        if not self.runner.run(run_request, self.hooks):
            if self.policy.debug:
                self._log(
                    request,
                    platform,
                    "build",
                    "Build failed, launching debug shell",
                    level="warning",
                )
                self.runner.run_interactive(run_request)
            raise BuildFailure(
                f"Build for {request.package} on {triplet} did not complete successfully.",
                hint="Inspect the build log, or rerun with debug enabled for a shell.",
                context={
                    "package": request.package,
                    "platform": triplet,
                    "log": str(run_request.log_path),
                },
            )

        self._audit(request, platform, workspace)
        self._verify_products(request, platform, workspace)
        products_info = self._products_info(request.products, workspace, platform)

        self.materializer.detach(handles)
        if not self.policy.skip_audit:
            for removed in prune_empty_dirs(workspace.destdir):
                self.logger.logger.debug("Removed empty directory %s", removed)

        result = package(
            workspace.destdir,
            request.output_dir / request.package,
            request.version,
            platform,
        )
        self._log(
            request,
            platform,
            "package",
            f"Packaged {result.tarball_path.name}",
            extra={"sha256": result.sha256, "tree_hash": result.tree_hash},
        )
        destroy_workspace(workspace)
        return ArtifactMeta(
            tarball_name=result.tarball_path.name,
            tarball_sha256=result.sha256,
            tree_hash=result.tree_hash,
            products_info=products_info,
        )

    def _audit(self, request: BuildRequest, platform: Platform, workspace: Workspace) -> None:
        if self.policy.skip_audit:
            return
        options = AuditOptions(
            autofix=self.policy.autofix,
            require_license=self.policy.require_license,
        )
        if self.auditor.audit(workspace.destdir, request.package, platform, options=options):
            return
        if self.policy.ignore_audit_errors:
            self._log(
                request,
                platform,
                "audit",
                "Audit failed, continuing because audit errors are ignored",
                level="warning",
            )
            return
        raise AuditFailure(
            f"Audit failed for {workspace.destdir}.",
            hint="Fix the reported problems, or set ignore_audit_errors to proceed anyway.",
            context={"package": request.package, "platform": platform.triplet},
        )

    def _verify_products(
        self, request: BuildRequest, platform: Platform, workspace: Workspace
    ) -> None:
        missing = [
            product
            for product in request.products
            if not locate(product, workspace.destdir, platform, verbose=self.policy.verbose)
        ]
        for product in missing:
            if not self.policy.verbose:
                locate(product, workspace.destdir, platform, verbose=True)
            self._log(
                request,
                platform,
                "verify",
                f"Built {request.package} but {describe(product)} still unsatisfied",
                level="error",
            )
        if missing:
            raise InvalidInputError(
                "Cannot continue with unsatisfied build products.",
                hint="Check the product declarations against the installed tree.",
                context={
                    "package": request.package,
                    "platform": platform.triplet,
                    "products": ", ".join(product.variable for product in missing),
                },
            )

    def _products_info(
        self,
        products: tuple[Product, ...],
        workspace: Workspace,
        platform: Platform,
    ) -> dict[Product, ProductInfo]:
        info: dict[Product, ProductInfo] = {}
        for product in products:
            path = locate(product, workspace.destdir, platform)
            if path is None:
                raise InvalidInputError(
                    f"Product {product.variable} disappeared after verification.",
                    context={"platform": platform.triplet, "product": product.variable},
                )
            relative = path.relative_to(workspace.destdir).as_posix()
            if isinstance(product, LibraryProduct):
                info[product] = ProductInfo(path=relative, soname=soname(path, platform) or path.name)
            else:
                info[product] = ProductInfo(path=relative)
        return info

    def _log(
        self,
        request: BuildRequest,
        platform: Platform,
        phase: str,
        message: str,
        *,
        level: str = "info",
        extra: dict[str, str] | None = None,
    ) -> None:
        self.logger.log(
            operation="build_platform",
            package=request.package,
            platform=platform.triplet,
            phase=phase,
            message=message,
            level=level,
            extra=extra,
        )
