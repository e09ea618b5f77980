from __future__ import annotations
"""Stream-based implementation of the `AskUserPassword` callback."""

import getpass
from typing import TextIO

from repo_provisioner.domain.credentials import Credentials


def ask_user_password(output: TextIO, input: TextIO, url: str) -> Credentials | None:
    """Prompt for username and password on the given streams.

    The password is read without echo when `input` is an interactive
    terminal; otherwise (pipes, tests) a plain line is read. Returns `None`
    when the input stream is exhausted before a username is given.
    """
    output.write(f"Username for '{url}': ")
    output.flush()
    username_line = input.readline()
    if not username_line:
        return None
    username = username_line.strip()

    prompt = f"Password for '{url}': "
    if _is_interactive(input):
        password = getpass.getpass(prompt, stream=output)
    else:
        output.write(prompt)
        output.flush()
        password = input.readline().rstrip("\r\n")
        output.write("\n")

    return Credentials(username=username, password=password)


def _is_interactive(stream: TextIO) -> bool:
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())
