"""In-process build runner for testing and development.

Runs the "build script" as a Python callable against the workspace instead of
spawning a shell.  This makes it suitable for:
- Unit tests that exercise the full build loop
- Development environments without a cross toolchain
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from binbake.backends.base import BuildHooks, HookContext, RunRequest, build_environment

BuildFunction = Callable[[RunRequest], int | None]


@dataclass(slots=True)
class InProcessRunner:
    """Runner that invokes ``build(request)`` and treats its return value as an exit code."""

    build: BuildFunction
    name: str = "inprocess"
    invocations: list[RunRequest] = field(default_factory=list)
    interactive_sessions: list[RunRequest] = field(default_factory=list)

    def run(self, request: RunRequest, hooks: BuildHooks) -> bool:
        self.invocations.append(request)
        request.log_path.parent.mkdir(parents=True, exist_ok=True)
        returncode = self.build(request) or 0
        request.log_path.write_text(
            f"inprocess build: package={request.package} platform={request.platform.triplet}\n"
            f"exit={returncode}\n",
            encoding="utf-8",
        )
        hooks.fire(HookContext(request=request, env=build_environment(request), returncode=returncode))
        return returncode == 0

    def run_interactive(self, request: RunRequest) -> None:
        self.interactive_sessions.append(request)
