"""Source resolution: archives, git mirrors and local directories."""

from .archive import cache_entry_name, fetch_archive
from .git import GitMirrorResult, checkout_mirror, fetch_git_mirror
from .local import archive_local_dir
from .resolve import parse_source, resolve_source, resolve_sources

__all__ = [
    "GitMirrorResult",
    "archive_local_dir",
    "cache_entry_name",
    "checkout_mirror",
    "fetch_archive",
    "fetch_git_mirror",
    "parse_source",
    "resolve_source",
    "resolve_sources",
]
