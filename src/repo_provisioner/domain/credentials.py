from __future__ import annotations
"""Credential protocol used when the backend demands interactive authentication."""

from dataclasses import dataclass, field
from typing import Callable, TextIO
from urllib.parse import urlsplit


@dataclass(frozen=True, slots=True)
class Credentials:
    """Username/secret pair handed to the backend.

    `password` holds whatever secret the transport needs (HTTPS password or
    token, SSH key passphrase). It is excluded from `repr` so credentials
    never end up in logs by accident.
    """

    username: str
    password: str = field(repr=False)

    @property
    def is_empty(self) -> bool:
        return not self.username and not self.password


AskUserPassword = Callable[[TextIO, TextIO, str], "Credentials | None"]
"""Callback `(output, input, url) -> Credentials | None`.

Prompts on `output`, reads the answer from `input`, and returns the
credentials for `url`. Returning `None` declines the prompt.
"""


def credential_host(url: str) -> str | None:
    """Host (and port) that `url` authenticates against, `None` for local paths.

    Handles `scheme://[user@]host[:port]/path` URLs and the scp-like
    `user@host:path` form used by SSH remotes.
    """
    if "://" in url:
        parts = urlsplit(url)
        if parts.scheme == "file":
            return None
        return parts.netloc.rsplit("@", 1)[-1] or None
    user_host, separator, _ = url.partition(":")
    if separator and "/" not in user_host:
        return user_host.rsplit("@", 1)[-1] or None
    return None


def credential_scope(url: str) -> str:
    """Scheme and host of `url`; credentials obtained for one URL apply to its whole scope."""
    host = credential_host(url)
    if host is None:
        return url
    scheme = urlsplit(url).scheme if "://" in url else "ssh"
    return f"{scheme.lower()}://{host.lower()}"
