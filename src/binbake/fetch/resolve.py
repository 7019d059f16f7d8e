"""Turn source descriptors into verified local content."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from binbake.errors import InvalidInputError
from binbake.fetch.archive import fetch_archive, url_basename
from binbake.fetch.git import GIT_SUFFIX, fetch_git_mirror, mirror_name
from binbake.fetch.local import archive_local_dir
from binbake.models import GitRepo, LocalDir, RemoteArchive, ResolvedSource, SourceSpec
from binbake.observability import StructuredLogger
from binbake.policy import Policy

ARCHIVE_SUFFIXES = (
    ".tar.gz",
    ".tgz",
    ".tar.xz",
    ".txz",
    ".tar.bz2",
    ".tbz2",
    ".tar",
    ".zip",
)


def parse_source(raw: object) -> SourceSpec:
    """Normalize a user-supplied source descriptor into a tagged SourceSpec."""
    if isinstance(raw, (RemoteArchive, GitRepo, LocalDir)):
        return raw
    if isinstance(raw, (str, Path)):
        return LocalDir(Path(raw))
    if (
        isinstance(raw, tuple)
        and len(raw) == 2
        and isinstance(raw[0], str)
        and isinstance(raw[1], str)
    ):
        url, digest = raw
        if url.endswith(GIT_SUFFIX):
            return GitRepo(url=url, ref=digest or None)
        return RemoteArchive(url=url, sha256=digest)
    raise InvalidInputError(
        "Sources must be a (url, hash) pair or a path to a local directory.",
        context={"operation": "parse_source", "source": repr(raw)},
    )


def resolve_sources(
    sources: Sequence[object],
    *,
    storage_dir: Path,
    work_dir: Path,
    policy: Policy | None = None,
    logger: StructuredLogger | None = None,
) -> list[ResolvedSource]:
    """Resolve every source, index-aligned with the input.

    All descriptors are parsed before anything touches the network or disk, so
    a malformed entry late in the list still fails fast.
    """
    specs = [parse_source(raw) for raw in sources]
    downloads = storage_dir / "downloads"
    resolved: list[ResolvedSource] = []
    for spec in specs:
        item = resolve_source(spec, downloads_dir=downloads, work_dir=work_dir, policy=policy)
        if logger is not None:
            logger.log(
                operation="resolve_source",
                package=None,
                platform=None,
                phase="sources",
                message=f"Resolved {item.name}",
                level="debug",
                extra={"path": str(item.path), "digest": item.digest, "kind": item.kind},
            )
        resolved.append(item)
    return resolved


def resolve_source(
    spec: SourceSpec,
    *,
    downloads_dir: Path,
    work_dir: Path,
    policy: Policy | None = None,
) -> ResolvedSource:
    if isinstance(spec, LocalDir):
        return archive_local_dir(spec.path, work_dir=work_dir)
    if isinstance(spec, GitRepo):
        mirror = fetch_git_mirror(spec.url, cache_dir=downloads_dir, policy=policy)
        return ResolvedSource(
            path=mirror.path,
            digest=spec.ref or "",
            kind="git",
            name=mirror_name(spec.url).removesuffix(GIT_SUFFIX),
            ref=spec.ref,
        )
    if isinstance(spec, RemoteArchive):
        path = fetch_archive(spec.url, sha256=spec.sha256, cache_dir=downloads_dir, policy=policy)
        name = url_basename(spec.url)
        kind = "archive" if name.endswith(ARCHIVE_SUFFIXES) else "file"
        return ResolvedSource(path=path, digest=spec.sha256, kind=kind, name=name)
    raise InvalidInputError(
        "Unsupported source descriptor.",
        context={"operation": "resolve_source", "source": repr(spec)},
    )
