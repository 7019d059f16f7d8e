"""Build runner contracts and implementations."""

from .base import (
    BuildHooks,
    BuildRunner,
    CompilerConfig,
    HookContext,
    RunRequest,
    build_environment,
)
from .inprocess import InProcessRunner
from .local_linux import LocalLinuxRunner

__all__ = [
    "BuildHooks",
    "BuildRunner",
    "CompilerConfig",
    "HookContext",
    "InProcessRunner",
    "LocalLinuxRunner",
    "RunRequest",
    "build_environment",
]
