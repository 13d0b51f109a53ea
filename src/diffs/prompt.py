from __future__ import annotations

from typing import TextIO

AFFIRMATIVE = "y"


def confirm(
    message: str,
    stdin: TextIO,
    stdout: TextIO,
    *,
    affirmative: str = AFFIRMATIVE,
) -> bool:
    """Show `message` and block for a single answer line.

    Only an exact (whitespace-trimmed, case-sensitive) match of `affirmative`
    confirms. A stream that ends before a full line is read raises `EOFError`.
    """
    stdout.write(message)
    stdout.flush()

    line = stdin.readline()
    if not line.endswith("\n"):
        raise EOFError("EOF")

    return line.strip() == affirmative
