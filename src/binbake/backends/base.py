"""Protocol for build runners and the lifecycle hooks they invoke."""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from binbake.models import Platform
from binbake.workspace import Workspace


@dataclass(frozen=True, slots=True)
class CompilerConfig:
    compilers: tuple[str, ...] = ("c",)
    preferred_gcc_version: str | None = None
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RunRequest:
    package: str
    workspace: Workspace
    platform: Platform
    script: str
    log_path: Path
    compiler: CompilerConfig = field(default_factory=CompilerConfig)
    verbose: bool = False


@dataclass(frozen=True, slots=True)
class HookContext:
    request: RunRequest
    env: Mapping[str, str]
    returncode: int


Hook = Callable[[HookContext], None]


@dataclass(frozen=True, slots=True)
class BuildHooks:
    """Callbacks fired after the script ends: ``on_error`` on failure, ``on_exit`` otherwise."""

    on_error: tuple[Hook, ...] = ()
    on_exit: tuple[Hook, ...] = ()

    def fire(self, context: HookContext) -> None:
        hooks = self.on_exit if context.returncode == 0 else self.on_error
        for hook in hooks:
            hook(context)


class BuildRunner(Protocol):
    name: str

    def run(self, request: RunRequest, hooks: BuildHooks) -> bool:
        """Run the build script to completion and report whether it exited cleanly."""

    def run_interactive(self, request: RunRequest) -> None:
        """Open an interactive session inside the same workspace."""


def build_environment(request: RunRequest) -> dict[str, str]:
    """Variables exposed to build scripts on top of the runner's base environment."""
    platform = request.platform
    workspace = request.workspace
    env = {
        "WORKSPACE": str(workspace.root),
        "srcdir": str(workspace.srcdir),
        "prefix": str(workspace.destdir),
        "metadir": str(workspace.metadir),
        "bindir": str(workspace.destdir / "bin"),
        "libdir": str(workspace.destdir / platform.libdir),
        "includedir": str(workspace.destdir / "include"),
        "target": platform.triplet,
        "dlext": platform.dlext,
        "exeext": platform.exeext,
        "nproc": str(os.cpu_count() or 1),
        "SRC_NAME": request.package,
        "SOURCE_DATE_EPOCH": "0",
    }
    if request.compiler.preferred_gcc_version:
        env["BINBAKE_GCC_VERSION"] = request.compiler.preferred_gcc_version
    env["BINBAKE_COMPILERS"] = ",".join(request.compiler.compilers)
    env.update(request.compiler.env)
    return env
