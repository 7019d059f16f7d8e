"""Package local source directories into hash-named tarballs."""

from __future__ import annotations

import os
from pathlib import Path

from binbake.errors import InvalidInputError
from binbake.models import ResolvedSource
from binbake.packaging import archive_directory, sha256_file


def archive_local_dir(path: str | Path, *, work_dir: Path) -> ResolvedSource:
    source = Path(path)
    if not source.is_dir():
        raise InvalidInputError(
            "Local sources must be existing directories.",
            hint="Pass a (url, hash) pair for files or remote archives.",
            context={"operation": "archive_local_dir", "path": str(source)},
        )
    name = source.resolve().name
    work_dir.mkdir(parents=True, exist_ok=True)
    staging = work_dir / f"{name}.tar.gz"
    archive_directory(source, staging, root_name=name)
    digest = sha256_file(staging)

    # Same-named directories from different locations must not collide.
    final = work_dir / f"{digest}-{name}.tar.gz"
    os.replace(staging, final)
    return ResolvedSource(path=final, digest=digest, kind="archive", name=name)
