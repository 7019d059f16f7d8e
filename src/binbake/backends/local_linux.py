"""Native Linux build execution via bash.

Runs the build script directly on the host inside the per-platform workspace.
There is no sandbox: the script sees the host toolchain, so this runner is only
suitable for native or already-configured cross toolchains.  Command history
is captured through bash xtrace into ``metadir/history``.
"""

from __future__ import annotations

import os
import shlex
import shutil
import subprocess
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from binbake.backends.base import BuildHooks, HookContext, RunRequest, build_environment
from binbake.errors import BuildFailure

_HOST_ENV_PASSTHROUGH = ("PATH", "HOME", "LANG", "TERM", "TMPDIR")
FINAL_ENV_NAME = "final-env"


@dataclass(slots=True)
class LocalLinuxRunner:
    name: str = "local_linux"
    shell: str = "bash"

    def run(self, request: RunRequest, hooks: BuildHooks) -> bool:
        self._ensure_local_prerequisites(request)
        workspace = request.workspace
        env = self._environment(request)

        script_path = workspace.metadir / "build.sh"
        final_env_path = workspace.metadir / FINAL_ENV_NAME
        final_env_path.unlink(missing_ok=True)
        script_path.write_text(
            f"trap \"env -0 > {shlex.quote(str(final_env_path))}\" EXIT\nset -e\n{request.script}\n",
            encoding="utf-8",
        )
        history_path = workspace.metadir / "history"
        request.log_path.parent.mkdir(parents=True, exist_ok=True)

        with request.log_path.open("w", encoding="utf-8") as log, history_path.open(
            "w", encoding="utf-8"
        ) as history:
            env["BASH_XTRACEFD"] = str(history.fileno())
            with subprocess.Popen(
                [self.shell, "-x", str(script_path)],
                cwd=str(workspace.srcdir),
                env=env,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                pass_fds=(history.fileno(),),
            ) as process:
                for line in process.stdout or ():
                    log.write(line)
                    if request.verbose:
                        sys.stdout.write(line)
                returncode = process.wait()

        env.pop("BASH_XTRACEFD", None)
        final_env = read_env_dump(final_env_path, fallback=env)
        hooks.fire(HookContext(request=request, env=final_env, returncode=returncode))
        return returncode == 0

    def run_interactive(self, request: RunRequest) -> None:
        self._ensure_local_prerequisites(request)
        subprocess.run(
            [self.shell, "-i"],
            cwd=str(request.workspace.srcdir),
            env=self._environment(request),
            check=False,
        )

    def _environment(self, request: RunRequest) -> dict[str, str]:
        env = {key: os.environ[key] for key in _HOST_ENV_PASSTHROUGH if key in os.environ}
        env.update(build_environment(request))
        return env

    def _ensure_local_prerequisites(self, request: RunRequest) -> None:
        if not sys.platform.startswith("linux"):
            raise BuildFailure(
                "Local Linux runner requires a Linux host.",
                hint="Provide a sandboxed runner for non-Linux hosts.",
                context={
                    "runner": self.name,
                    "package": request.package,
                    "platform": request.platform.triplet,
                },
            )
        if shutil.which(self.shell) is None:
            raise BuildFailure(
                f"Local Linux runner requires `{self.shell}` in PATH.",
                hint="Install the shell or configure LocalLinuxRunner(shell=...).",
                context={
                    "runner": self.name,
                    "package": request.package,
                    "platform": request.platform.triplet,
                },
            )


def read_env_dump(path: Path, *, fallback: Mapping[str, str]) -> dict[str, str]:
    """Parse an ``env -0`` dump, or return ``fallback`` when the script never wrote one."""
    if not path.is_file():
        return dict(fallback)
    env: dict[str, str] = {}
    for entry in path.read_bytes().decode("utf-8", errors="replace").split("\0"):
        key, sep, value = entry.partition("=")
        if sep and key:
            env[key] = value
    env.pop("BASH_XTRACEFD", None)
    return env
