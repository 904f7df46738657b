"""Destination name sanitizing for filesystems with Windows naming rules."""

from __future__ import annotations

MAX_COMPONENT_CHARS = 60

# https://docs.microsoft.com/en-us/windows/win32/fileio/naming-a-file
_RESERVED = {
    ":": "%3A",
    "<": "%3C",
    ">": "%3E",
    '"': "%22",
    "/": "%2F",
    "\\": "%5C",
    "|": "%7C",
    "?": "%3F",
    "*": "%2A",
}


def sanitize_component(name: str) -> str:
    """Return *name* rewritten so Windows filesystems accept it.

    Control characters become spaces, reserved characters are percent
    escaped, long names are shortened to 60 characters while keeping the
    extension, and trailing dots and spaces are dropped.
    """
    if name in (".", ".."):
        return name

    chars = []
    for c in name:
        if c <= "\x20":
            chars.append(" ")
        else:
            chars.append(_RESERVED.get(c, c))
    result = "".join(chars)

    if len(result) > MAX_COMPONENT_CHARS:
        dot = result.rfind(".")
        ext = result[dot:] if dot > 0 else ""
        if ext and len(ext) < MAX_COMPONENT_CHARS:
            result = result[: MAX_COMPONENT_CHARS - len(ext)] + ext
        else:
            result = result[:MAX_COMPONENT_CHARS]

    result = result.rstrip(". ")
    # a name made only of dots and spaces would otherwise vanish
    return result or "_"


def sanitize_relpath(rel_path: str) -> str:
    """Sanitize each component of a POSIX relative path."""
    return "/".join(sanitize_component(part) for part in rel_path.split("/"))
