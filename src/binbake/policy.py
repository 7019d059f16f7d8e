"""Policy configuration and enforcement helpers."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from binbake.errors import PolicyError

NetworkMode = Literal["online", "offline"]

CI_ENV_MARKERS = ("CI", "TRAVIS")
STORAGE_ENV_VAR = "BINBAKE_STORAGE_DIR"


@dataclass(frozen=True, slots=True)
class Policy:
    verbose: bool = False
    debug: bool = False
    skip_audit: bool = False
    ignore_audit_errors: bool = True
    autofix: bool = True
    require_license: bool = True
    network_mode: NetworkMode = "online"
    upload_attempts: int = 3
    heartbeat_interval: float = 4.0

    def heartbeat_enabled(self, env: Mapping[str, str] | None = None) -> bool:
        """Return True when running non-verbosely under a CI supervisor."""
        environ = os.environ if env is None else env
        if self.verbose:
            return False
        return any(marker in environ for marker in CI_ENV_MARKERS)


def ensure_network_allowed(*, policy: Policy, operation: str) -> None:
    if policy.network_mode == "offline":
        raise PolicyError(
            "Network operations are disabled by policy.",
            hint="Switch policy.network_mode to 'online' for this operation.",
            context={"operation": operation},
        )


def storage_dir(env: Mapping[str, str] | None = None) -> Path:
    environ = os.environ if env is None else env
    override = environ.get(STORAGE_ENV_VAR)
    if override:
        return Path(override)
    return Path.home() / ".cache" / "binbake"
