"""Operand markup and comment flag codecs.

Operand text is stored with non-printable marker characters announcing the
type of the literal run that follows, e.g. ``"\\x05ebp\\x08, \\x05esp"``.
In memory the text is always a tuple of :class:`MarkupRun`; it is flattened
only when a record goes to the wire.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable

from binexport.errors import EncodeInvariantViolation, MarkupDecodeError


class MarkupType(IntEnum):
    MNEMONIC = 0
    SYMBOL = 1
    IMMEDIATE_INT = 2
    IMMEDIATE_FLOAT = 3
    OPERATOR = 4
    REGISTER = 5
    SIZEPREFIX = 6
    DEREFERENCE = 7
    NEWOPERAND = 8
    STACKVARIABLE = 9
    GLOBALVARIABLE = 10
    JUMPLABEL = 11
    FUNCTION = 12


class CommentType(IntEnum):
    REGULAR = 0
    ENUM = 1
    ANTERIOR = 2
    POSTERIOR = 3
    FUNCTION = 4
    LOCATION = 5
    GLOBALREFERENCE = 6
    LOCALREFERENCE = 7


@dataclass(frozen=True)
class MarkupRun:
    """A typed run of operand text. ``tag`` is None only for leading plain text."""

    tag: MarkupType | None
    text: str


_MARKERS = {int(t) for t in MarkupType}


def _is_control(ch: str) -> bool:
    code = ord(ch)
    return code < 0x20 or code == 0x7F


def encode_markup(runs: Iterable[MarkupRun]) -> str:
    """Flatten markup runs into the annotated wire string."""
    parts: list[str] = []
    for i, run in enumerate(runs):
        for ch in run.text:
            if _is_control(ch):
                raise EncodeInvariantViolation(
                    f"markup run {i} contains control character {ord(ch):#04x}"
                )
        if run.tag is None:
            if i != 0:
                raise EncodeInvariantViolation(f"untyped markup run at position {i}")
            if not run.text:
                raise EncodeInvariantViolation("empty untyped markup run")
            parts.append(run.text)
        else:
            parts.append(chr(MarkupType(run.tag)))
            parts.append(run.text)
    return "".join(parts)


def decode_markup(text: str) -> tuple[MarkupRun, ...]:
    """Split an annotated operand string back into typed runs."""
    runs: list[MarkupRun] = []
    tag: MarkupType | None = None
    start = 0
    for pos, ch in enumerate(text):
        if not _is_control(ch):
            continue
        if ord(ch) not in _MARKERS:
            raise MarkupDecodeError(f"unknown markup byte {ord(ch):#04x}", pos)
        if pos > 0 or tag is not None:
            runs.append(MarkupRun(tag, text[start:pos]))
        tag = MarkupType(ord(ch))
        start = pos + 1
    if tag is not None or start < len(text):
        runs.append(MarkupRun(tag, text[start:]))
    return tuple(runs)


def markup_text(runs: Iterable[MarkupRun]) -> str:
    """Plain display text of the runs, markers stripped."""
    return "".join(run.text for run in runs)


# Comment flags: repeatable | (type << 1) | (operand_id << 16), bits 4..15 reserved

_REPEATABLE_MASK = 0x1
_TYPE_MASK = 0xE
_OPERAND_MASK = 0xFFFF0000
RESERVED_FLAGS_MASK = 0xFFF0


def pack_comment_flags(repeatable: bool | int, comment_type: int, operand_id: int) -> int:
    if int(repeatable) not in (0, 1):
        raise ValueError(f"repeatable must be 0 or 1, got {repeatable!r}")
    if not 0 <= int(comment_type) <= 7:
        raise ValueError(f"comment type out of range: {comment_type!r}")
    if not 0 <= operand_id <= 0xFFFF:
        raise ValueError(f"operand id out of range: {operand_id!r}")
    return int(repeatable) | (int(comment_type) << 1) | (operand_id << 16)


def unpack_comment_flags(flags: int) -> tuple[int, CommentType, int]:
    """Inverse of :func:`pack_comment_flags`: ``(repeatable, type, operand_id)``."""
    return (
        flags & _REPEATABLE_MASK,
        CommentType((flags & _TYPE_MASK) >> 1),
        (flags & _OPERAND_MASK) >> 16,
    )
