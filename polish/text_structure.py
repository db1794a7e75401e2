"""
Text Structure Codec - Separate a fragment's formatting envelope from its content.

A selected fragment usually carries incidental formatting that the completion
service should never see or reproduce: blank lines around the selection and
the indentation shared by its lines. This module splits a raw fragment into
bare content plus a ``TextStructure`` describing that envelope, and puts the
envelope back around whatever content the service returns.

Only ``\\n`` line breaks are examined. CRLF fragments keep their ``\\r``
characters inside the content lines, so the newline runs and indentation of
such fragments are not recovered exactly.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_INDENT_PATTERN = re.compile(r"[ \t]*")


@dataclass(frozen=True)
class TextStructure:
    """Formatting envelope extracted from a raw fragment."""

    leading_newlines: str
    trailing_newlines: str
    base_indent: str
    content: str


def extract_text_structure(text: str) -> TextStructure:
    """
    Split ``text`` into bare content and its formatting envelope.

    The leading and trailing newline runs are measured independently, so a
    fragment made only of newlines reports the whole string for both runs and
    an empty content. The base indent is the space/tab prefix of the first
    remaining line, even when that line is otherwise empty. Lines that do not
    start with the base indent are kept as they are.

    Args:
        text: Raw fragment as selected in the document

    Returns:
        TextStructure with ``content`` stripped of the envelope
    """
    leading_newlines = text[: len(text) - len(text.lstrip("\n"))]
    trailing_newlines = text[len(text.rstrip("\n")):]

    inner = text[len(leading_newlines): len(text) - len(trailing_newlines)]

    base_indent = _INDENT_PATTERN.match(inner).group(0)

    lines = []
    for line in inner.split("\n"):
        if line.startswith(base_indent):
            line = line[len(base_indent):]
        lines.append(line)

    return TextStructure(
        leading_newlines=leading_newlines,
        trailing_newlines=trailing_newlines,
        base_indent=base_indent,
        content="\n".join(lines),
    )


def restore_text_structure(text: str, structure: TextStructure) -> str:
    """
    Wrap ``text`` in the envelope described by ``structure``.

    Every non-empty line gets the base indent back; empty lines stay empty so
    restored blank lines never turn into whitespace-only lines.
    """
    lines = [
        structure.base_indent + line if line else line
        for line in text.split("\n")
    ]
    return structure.leading_newlines + "\n".join(lines) + structure.trailing_newlines
