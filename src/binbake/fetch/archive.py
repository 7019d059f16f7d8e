"""Integrity-enforced archive fetch into a content-addressed download cache."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from urllib.error import URLError
from urllib.parse import urlparse
from urllib.request import urlopen

from binbake.errors import IntegrityError, InvalidInputError
from binbake.packaging import sha256_file
from binbake.policy import Policy, ensure_network_allowed

_CHUNK_SIZE = 1 << 20


def cache_entry_name(url: str, sha256: str) -> str:
    return f"{sha256}-{url_basename(url)}"


def url_basename(url: str) -> str:
    parsed = urlparse(url)
    path = parsed.path if parsed.scheme else url
    name = path.rstrip("/").rsplit("/", 1)[-1]
    return name or "source"


def fetch_archive(
    url: str,
    *,
    sha256: str,
    cache_dir: str | Path,
    policy: Policy | None = None,
) -> Path:
    """Return a verified local path for ``url``, downloading into the cache if needed.

    A cache entry that already exists under ``<sha256>-<basename>`` is trusted
    as-is.  A ``url`` that names an existing local file is verified in place and
    never copied.  Anything else is streamed into the cache while hashing.
    """
    if not sha256:
        raise InvalidInputError(
            "Remote archive sources require a sha256 value.",
            context={"url": url},
        )
    cache_root = Path(cache_dir)
    cache_root.mkdir(parents=True, exist_ok=True)
    artifact_path = cache_root / cache_entry_name(url, sha256)

    if artifact_path.exists():
        return artifact_path

    if os.path.isfile(url):
        local_path = Path(url).resolve()
        _assert_hash_matches(local_path, expected_sha256=sha256, url=url)
        return local_path

    if policy is not None:
        ensure_network_allowed(policy=policy, operation="fetch_archive")
    _download_verified(url, sha256=sha256, destination=artifact_path)
    return artifact_path


def _download_verified(url: str, *, sha256: str, destination: Path) -> None:
    temp_path = destination.with_name(destination.name + ".part")
    digest = hashlib.sha256()
    try:
        try:
            with urlopen(url) as response, temp_path.open("wb") as handle:  # noqa: S310
                for chunk in iter(lambda: response.read(_CHUNK_SIZE), b""):
                    digest.update(chunk)
                    handle.write(chunk)
        except (URLError, ValueError) as exc:
            raise InvalidInputError(
                "Unable to download source archive.",
                hint="Ensure the URL is reachable or point it at a local file.",
                context={"operation": "fetch_archive", "url": url, "error": str(exc)},
            ) from exc

        actual_sha256 = digest.hexdigest()
        if actual_sha256 != sha256:
            raise IntegrityError(
                "Fetched content hash mismatch.",
                hint="Update the expected hash or source URL to a trusted immutable artifact.",
                context={
                    "operation": "fetch_archive",
                    "url": url,
                    "expected": sha256,
                    "actual": actual_sha256,
                },
            )
        os.replace(temp_path, destination)
    finally:
        temp_path.unlink(missing_ok=True)


def _assert_hash_matches(path: Path, *, expected_sha256: str, url: str) -> None:
    actual_sha256 = sha256_file(path)
    if actual_sha256 != expected_sha256:
        raise IntegrityError(
            "Local archive hash mismatch.",
            hint="Update the expected hash or replace the local file.",
            context={
                "operation": "fetch_archive",
                "url": url,
                "path": str(path),
                "expected": expected_sha256,
                "actual": actual_sha256,
            },
        )
