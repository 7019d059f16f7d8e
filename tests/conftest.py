"""Shared test fixtures."""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from binbake.backends.base import RunRequest
from binbake.backends.inprocess import InProcessRunner
from binbake.models import BuildRequest, BuildVersion, ExecutableProduct, Platform
from binbake.policy import Policy


def install_hello(request: RunRequest) -> int:
    """Build function that installs a single executable into the prefix."""
    bindir = request.workspace.destdir / "bin"
    bindir.mkdir(parents=True, exist_ok=True)
    exe = bindir / f"hello{request.platform.exeext}"
    exe.write_text("#!/bin/sh\necho hello\n", encoding="utf-8")
    exe.chmod(0o755)
    return 0


@pytest.fixture
def inprocess_runner() -> InProcessRunner:
    """Provide an in-process runner for tests that drive the build loop."""
    return InProcessRunner(build=install_hello)


@pytest.fixture
def quiet_policy() -> Policy:
    return Policy(require_license=False, ignore_audit_errors=False)


@pytest.fixture
def linux() -> Platform:
    return Platform.parse("x86_64-linux-gnu")


@pytest.fixture
def hello_request(tmp_path: Path, linux: Platform) -> BuildRequest:
    return BuildRequest(
        package="hello",
        version=BuildVersion.parse("1.0.0"),
        sources=(),
        script="make install",
        platforms=(linux,),
        products=(ExecutableProduct(names=("hello",), variable="hello"),),
        build_root=tmp_path / "build",
        output_dir=tmp_path / "products",
    )


def run_git(argv: list[str], *, cwd: Path) -> str:
    completed = subprocess.run(
        ["git", *argv],
        cwd=cwd,
        check=False,
        text=True,
        capture_output=True,
    )
    if completed.returncode != 0:
        raise RuntimeError(f"git {' '.join(argv)} failed: {completed.stderr.strip()}")
    return completed.stdout.strip()


def create_repo(path: Path, *, files: dict[str, str] | None = None) -> str:
    """Create a git repository with one commit and return the commit id."""
    path.mkdir(parents=True, exist_ok=True)
    run_git(["init", "--quiet", "--initial-branch=main"], cwd=path)
    run_git(["config", "user.email", "binbake@example.com"], cwd=path)
    run_git(["config", "user.name", "Binbake Test"], cwd=path)
    for name, content in (files or {"README.md": "hello repo\n"}).items():
        target = path / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    run_git(["add", "--all"], cwd=path)
    run_git(["commit", "--quiet", "-m", "initial"], cwd=path)
    return run_git(["rev-parse", "HEAD"], cwd=path)
