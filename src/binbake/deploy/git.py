"""Git plumbing for the wrapper code repository and registry clones."""

from __future__ import annotations

import os
import subprocess
from pathlib import Path

from binbake.deploy.credentials import Credentials, git_auth_env
from binbake.errors import DeploymentError

COMMITTER_NAME = "binbake"
COMMITTER_EMAIL = "binbake@users.noreply.github.com"


def init_repo(path: Path, *, branch: str = "master") -> None:
    path.mkdir(parents=True, exist_ok=True)
    _run_git(["init", "--quiet", f"--initial-branch={branch}"], cwd=path)


def clone_repo(url: str, destination: Path, *, credentials: Credentials | None = None) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    _run_git(["clone", "--quiet", url, str(destination)], credentials=credentials)


def fetch_origin(path: Path, *, credentials: Credentials | None = None) -> None:
    _run_git(["fetch", "--quiet", "origin"], cwd=path, credentials=credentials)


def checkout_branch(path: Path, branch: str, *, start_point: str, force: bool = False) -> None:
    flags = ["--force"] if force else []
    _run_git(["checkout", "--quiet", *flags, "-B", branch, start_point], cwd=path)


def commit_all(path: Path, message: str) -> str:
    """Stage everything under ``path`` and commit it, returning the new commit id."""
    _run_git(["add", "--all", "."], cwd=path)
    _run_git(
        [
            "-c",
            f"user.name={COMMITTER_NAME}",
            "-c",
            f"user.email={COMMITTER_EMAIL}",
            "commit",
            "--quiet",
            "--allow-empty",
            "-m",
            message,
        ],
        cwd=path,
    )
    return _run_git(["rev-parse", "HEAD"], cwd=path)


def push(
    path: Path,
    remote_url: str,
    branch: str,
    *,
    credentials: Credentials,
    force: bool = False,
) -> None:
    flags = ["--force"] if force else []
    _run_git(
        ["push", "--quiet", *flags, remote_url, f"HEAD:refs/heads/{branch}"],
        cwd=path,
        credentials=credentials,
    )


def tree_hash(path: Path) -> str:
    """Git tree id of the committed ``HEAD`` of ``path``."""
    return _run_git(["rev-parse", "HEAD^{tree}"], cwd=path)


def _run_git(
    argv: list[str],
    *,
    cwd: Path | None = None,
    credentials: Credentials | None = None,
) -> str:
    command = ["git", *argv]
    env = None
    if credentials is not None:
        env = {**os.environ, **git_auth_env(credentials)}
    completed = subprocess.run(
        command,
        cwd=cwd,
        env=env,
        check=False,
        text=True,
        capture_output=True,
    )
    if completed.returncode != 0:
        raise DeploymentError(
            "Git command failed.",
            hint="Check the repository state and that the remote accepts these credentials.",
            context={
                "argv": " ".join(command),
                "cwd": str(cwd) if cwd is not None else "",
                "stderr": completed.stderr.strip()[:2000],
            },
        )
    return completed.stdout.strip()
