"""GitHub transport backed by the ``gh`` and ``ghr`` command line tools."""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from binbake.errors import DeploymentError, UploadFailure


class RemoteService(Protocol):
    name: str

    def username(self) -> str:
        """Login of the authenticated account."""

    def token(self) -> str:
        """API token of the authenticated account."""

    def repo_exists(self, repo: str) -> bool:
        """Whether ``owner/name`` exists remotely."""

    def create_repo(self, repo: str) -> None:
        """Create an empty public ``owner/name`` repository."""

    def remote_url(self, repo: str) -> str:
        """HTTPS URL used to clone and push ``repo``."""

    def release_download_url(self, repo: str, tag: str) -> str:
        """Base URL release assets of ``tag`` are downloadable from."""

    def upload_release(self, repo: str, tag: str, path: Path) -> None:
        """Upload every file in ``path`` as an asset of release ``tag``."""

    def create_pull_request(
        self,
        repo: str,
        *,
        head: str,
        base: str,
        title: str,
        body: str,
    ) -> str:
        """Open (or find the already open) pull request and return its URL."""


@dataclass(slots=True)
class GitHubCliService:
    name: str = "github"
    host: str = "github.com"
    gh: str = "gh"
    ghr: str = "ghr"

    def username(self) -> str:
        return self._run_gh(["api", "user", "--jq", ".login"], operation="username")

    def token(self) -> str:
        return self._run_gh(["auth", "token"], operation="token")

    def repo_exists(self, repo: str) -> bool:
        self._ensure_tool(self.gh)
        completed = subprocess.run(
            [self.gh, "repo", "view", repo, "--json", "name"],
            check=False,
            text=True,
            capture_output=True,
        )
        return completed.returncode == 0

    def create_repo(self, repo: str) -> None:
        self._run_gh(["repo", "create", repo, "--public"], operation="create_repo")

    def remote_url(self, repo: str) -> str:
        return f"https://{self.host}/{repo}.git"

    def release_download_url(self, repo: str, tag: str) -> str:
        return f"https://{self.host}/{repo}/releases/download/{tag}"

    def upload_release(self, repo: str, tag: str, path: Path) -> None:
        self._ensure_tool(self.ghr)
        owner, _, name = repo.partition("/")
        command = [self.ghr, "-replace", "-u", owner, "-r", name, tag, str(path)]
        completed = subprocess.run(command, check=False, text=True, capture_output=True)
        if completed.returncode != 0:
            raise UploadFailure(
                "`ghr` upload failed.",
                context={
                    "repo": repo,
                    "tag": tag,
                    "path": str(path),
                    "stderr": completed.stderr.strip()[:2000],
                },
            )

    def create_pull_request(
        self,
        repo: str,
        *,
        head: str,
        base: str,
        title: str,
        body: str,
    ) -> str:
        try:
            return self._run_gh(
                [
                    "pr",
                    "create",
                    "--repo",
                    repo,
                    "--head",
                    head,
                    "--base",
                    base,
                    "--title",
                    title,
                    "--body",
                    body,
                ],
                operation="create_pull_request",
            )
        except DeploymentError:
            # A pull request for this branch may already be open; reuse it.
            return self._run_gh(
                ["pr", "view", head, "--repo", repo, "--json", "url", "--jq", ".url"],
                operation="view_pull_request",
            )

    def _run_gh(self, argv: list[str], *, operation: str) -> str:
        self._ensure_tool(self.gh)
        completed = subprocess.run(
            [self.gh, *argv],
            check=False,
            text=True,
            capture_output=True,
        )
        if completed.returncode != 0:
            raise DeploymentError(
                "GitHub CLI command failed.",
                hint="Run `gh auth status` to check authentication.",
                context={
                    "service": self.name,
                    "operation": operation,
                    "stderr": completed.stderr.strip()[:2000],
                },
            )
        return completed.stdout.strip()

    def _ensure_tool(self, tool: str) -> None:
        if shutil.which(tool) is None:
            raise DeploymentError(
                f"GitHub deployment requires `{tool}` in PATH.",
                hint=f"Install `{tool}` and ensure it is available before deploying.",
                context={"service": self.name, "tool": tool},
            )
