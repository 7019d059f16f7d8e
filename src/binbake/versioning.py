"""Negotiate a collision-free build version against registry state.

Negotiation reads the registry without any lock.  Two deployments of the same
package and version running concurrently can both observe the same maximum
build number and pick the same successor; callers that deploy in parallel must
serialize per package themselves.
"""

from __future__ import annotations

from binbake.models import BuildVersion
from binbake.registry import Registry


def next_build_version(registry: Registry, package: str, version: BuildVersion) -> BuildVersion:
    """Return ``version`` with the smallest build number not yet registered."""
    build_numbers = [
        existing.build_number
        for existing in registry.list_versions(package)
        if existing.core == version.core and existing.build_number is not None
    ]
    build_number = max(build_numbers) + 1 if build_numbers else 0
    return version.with_build(build_number)


def release_tag(package: str, version: BuildVersion) -> str:
    return f"{package}-v{version}"
