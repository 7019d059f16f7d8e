"""Bare git mirror cache keyed by repository basename.

The mirror cache performs no locking.  Two processes resolving the same
repository concurrently may race on clone/delete; the only discipline applied
is to verify the mirror's recorded origin before reuse and to destroy and
reclone it on mismatch.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from binbake.errors import InvalidInputError
from binbake.policy import Policy, ensure_network_allowed

logger = logging.getLogger(__name__)

GIT_SUFFIX = ".git"

MirrorAction = Literal["cloned", "fetched", "recloned"]


@dataclass(frozen=True, slots=True)
class GitMirrorResult:
    path: Path
    url: str
    action: MirrorAction


def mirror_name(url: str) -> str:
    return url.rstrip("/").rsplit("/", 1)[-1]


def fetch_git_mirror(
    url: str,
    *,
    cache_dir: str | Path,
    policy: Policy | None = None,
) -> GitMirrorResult:
    """Clone or refresh a bare mirror of ``url`` under ``cache_dir``."""
    if not url.endswith(GIT_SUFFIX):
        raise InvalidInputError(
            "Git sources must end in `.git`.",
            context={"operation": "fetch_git_mirror", "url": url},
        )
    if policy is not None:
        ensure_network_allowed(policy=policy, operation="fetch_git_mirror")

    cache_root = Path(cache_dir)
    cache_root.mkdir(parents=True, exist_ok=True)
    mirror_path = cache_root / mirror_name(url)

    recloned = False
    if mirror_path.exists():
        origin = _origin_url(mirror_path)
        if origin != url:
            logger.warning(
                "Discarding git mirror %s: origin %r does not match %r",
                mirror_path,
                origin,
                url,
            )
            shutil.rmtree(mirror_path)
            recloned = True

    if mirror_path.exists():
        _run_git(["fetch", "--quiet", "--prune", "origin"], cwd=mirror_path)
        return GitMirrorResult(path=mirror_path, url=url, action="fetched")

    _run_git(["clone", "--quiet", "--mirror", url, str(mirror_path)])
    return GitMirrorResult(
        path=mirror_path,
        url=url,
        action="recloned" if recloned else "cloned",
    )


def checkout_mirror(mirror_path: Path, destination: Path, *, ref: str | None = None) -> Path:
    """Materialize a working tree from a cached mirror, optionally at ``ref``."""
    _run_git(["clone", "--quiet", str(mirror_path), str(destination)])
    if ref:
        _run_git(["checkout", "--quiet", ref], cwd=destination)
    return destination


def _origin_url(mirror_path: Path) -> str | None:
    completed = subprocess.run(
        ["git", "config", "--get", "remote.origin.url"],
        cwd=mirror_path,
        check=False,
        text=True,
        capture_output=True,
    )
    if completed.returncode != 0:
        return None
    return completed.stdout.strip()


def _run_git(argv: list[str], cwd: Path | None = None) -> str:
    command = ["git", *argv]
    completed = subprocess.run(
        command,
        cwd=cwd,
        check=False,
        text=True,
        capture_output=True,
    )
    if completed.returncode != 0:
        raise InvalidInputError(
            "Git command failed.",
            hint="Inspect repository URL/ref inputs and git installation.",
            context={
                "operation": "fetch_git_mirror",
                "argv": " ".join(command),
                "stderr": completed.stderr.strip(),
            },
        )
    return completed.stdout.strip()
