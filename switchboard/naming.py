"""switchboard/naming.py

Reversible namespacing of (provider id, tool name) pairs.

A namespaced name is ``"<n>_<provider id>_<tool name>"`` where ``n`` is the
length of the provider id in canonical decimal. The length prefix records the
boundary, so both parts may contain underscores (or any other character)
without making the split ambiguous:

    >>> encode("fs", "read_file")
    '2_fs_read_file'
    >>> decode("2_fs_read_file")
    ('fs', 'read_file')
"""

from __future__ import annotations

# Local Modules
from switchboard.errors import MalformedToolNameError

SEPARATOR = "_"


def encode(provider_id: str, tool_name: str) -> str:
    """Combine a provider id and a tool name into one namespaced name."""
    return f"{len(provider_id)}{SEPARATOR}{provider_id}{SEPARATOR}{tool_name}"


def decode(name: str) -> tuple[str, str]:
    """Split a namespaced name back into (provider id, tool name).

    Args:
        name: A name produced by :func:`encode`.

    Returns:
        The original ``(provider_id, tool_name)`` pair.

    Raises:
        MalformedToolNameError: If ``name`` was not produced by :func:`encode`.
    """
    prefix, sep, rest = name.partition(SEPARATOR)
    if not sep:
        raise MalformedToolNameError(name, "missing length prefix")
    if not prefix.isdigit() or not prefix.isascii():
        raise MalformedToolNameError(name, "length prefix is not a number")
    if prefix != str(int(prefix)):
        raise MalformedToolNameError(name, "length prefix is not canonical")

    length = int(prefix)
    if len(rest) < length + 1:
        raise MalformedToolNameError(name, "shorter than its length prefix")
    if rest[length] != SEPARATOR:
        raise MalformedToolNameError(name, "no separator after provider id")
    return rest[:length], rest[length + 1 :]
