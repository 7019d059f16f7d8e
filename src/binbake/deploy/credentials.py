"""Short-lived credentials for authenticated git and release operations.

The token is copied into a ``bytearray`` so it can be overwritten in place once
the scope ends.  It is handed to git through ``GIT_CONFIG_*`` environment
variables and never appears on a command line.
"""

from __future__ import annotations

import base64
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass


@dataclass(slots=True)
class Credentials:
    username: str
    token: bytearray

    @property
    def zeroed(self) -> bool:
        return not any(self.token)

    def zero(self) -> None:
        for index in range(len(self.token)):
            self.token[index] = 0

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, token=<redacted>)"


@contextmanager
def scoped_credentials(username: str, token: str | bytes | bytearray) -> Iterator[Credentials]:
    """Yield credentials whose token is zeroed when the block exits, even on error."""
    raw = token.encode("utf-8") if isinstance(token, str) else token
    credentials = Credentials(username=username, token=bytearray(raw))
    try:
        yield credentials
    finally:
        credentials.zero()


def git_auth_env(credentials: Credentials) -> dict[str, str]:
    """Environment that makes git send a Basic auth header for HTTP(S) remotes."""
    pair = credentials.username.encode("utf-8") + b":" + bytes(credentials.token)
    header = "Authorization: Basic " + base64.b64encode(pair).decode("ascii")
    return {
        "GIT_CONFIG_COUNT": "1",
        "GIT_CONFIG_KEY_0": "http.extraHeader",
        "GIT_CONFIG_VALUE_0": header,
        "GIT_TERMINAL_PROMPT": "0",
    }
