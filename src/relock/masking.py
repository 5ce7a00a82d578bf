"""Reversible masking of manifest directives that point at local paths.

A ``replace example.com/mod => ../mod`` directive cannot be resolved when the
toolchain runs from another root (or inside a container), so before the run
each such line is turned into a comment carrying :data:`MASK_MARKER`. After the
run the marker is stripped again, restoring the line byte for byte. Lines the
toolchain rewrote in the meantime are left as they are apart from the marker.
"""

from __future__ import annotations

import re
from typing import Pattern

MASK_MARKER = "// relock-replace "

_LOCAL_REPLACE: Pattern[str] = re.compile(
    r"^(replace[ \t]+\S+(?:[ \t]+\S+)?[ \t]+=>[ \t]+\.{1,2}/.*)$",
    re.MULTILINE,
)
_MASKED_LINE: Pattern[str] = re.compile(
    r"^([ \t]*)" + re.escape(MASK_MARKER) + r"(?=replace\b|" + re.escape(MASK_MARKER) + r")",
    re.MULTILINE,
)


def mask_local_replaces(content: str) -> str:
    """Comment out every local-path ``replace`` directive in ``content``.

    Lines that already look masked get one more marker so that unmasking
    removes exactly one layer.
    """
    escaped = _MASKED_LINE.sub(lambda match: match.group(0) + MASK_MARKER, content)
    return _LOCAL_REPLACE.sub(lambda match: MASK_MARKER + match.group(1), escaped)


def unmask_local_replaces(content: str) -> str:
    """Strip :data:`MASK_MARKER` from masked directives in ``content``."""
    return _MASKED_LINE.sub(lambda match: match.group(1), content)


def has_local_replaces(content: str) -> bool:
    return _LOCAL_REPLACE.search(content) is not None


__all__ = ["MASK_MARKER", "has_local_replaces", "mask_local_replaces", "unmask_local_replaces"]
