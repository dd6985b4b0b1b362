"""Tests for operand markup and comment flag packing."""

import itertools

import pytest

from binexport.errors import EncodeInvariantViolation, MarkupDecodeError
from binexport.markup import (
    CommentType,
    MarkupRun,
    MarkupType,
    decode_markup,
    encode_markup,
    markup_text,
    pack_comment_flags,
    unpack_comment_flags,
)


def test_encode_reference_example():
    runs = (
        MarkupRun(MarkupType.REGISTER, "ebp"),
        MarkupRun(MarkupType.NEWOPERAND, ", "),
        MarkupRun(MarkupType.REGISTER, "esp"),
    )
    assert encode_markup(runs) == "\x05ebp\x08, \x05esp"


def test_decode_reference_example():
    runs = decode_markup("\x05ebp\x08, \x05esp")
    assert runs == (
        MarkupRun(MarkupType.REGISTER, "ebp"),
        MarkupRun(MarkupType.NEWOPERAND, ", "),
        MarkupRun(MarkupType.REGISTER, "esp"),
    )
    assert markup_text(runs) == "ebp, esp"


def test_decode_every_marker():
    text = "".join(chr(t) + t.name.lower() for t in MarkupType)
    runs = decode_markup(text)
    assert [r.tag for r in runs] == list(MarkupType)
    assert encode_markup(runs) == text


def test_empty_runs_and_empty_text():
    assert decode_markup("") == ()
    assert encode_markup(()) == ""
    runs = decode_markup("\x07\x07")
    assert runs == (MarkupRun(MarkupType.DEREFERENCE, ""), MarkupRun(MarkupType.DEREFERENCE, ""))


def test_leading_plain_text_is_untyped():
    runs = decode_markup("dword ptr\x05eax")
    assert runs[0] == MarkupRun(None, "dword ptr")
    assert encode_markup(runs) == "dword ptr\x05eax"


@pytest.mark.parametrize("marker", ["\x0d", "\x1f", "\x7f"])
def test_unknown_marker_fails(marker):
    with pytest.raises(MarkupDecodeError) as excinfo:
        decode_markup("\x05eax" + marker + "x")
    assert excinfo.value.position == 4


def test_encode_rejects_control_characters_in_text():
    with pytest.raises(EncodeInvariantViolation):
        encode_markup([MarkupRun(MarkupType.SYMBOL, "a\tb")])


def test_encode_rejects_untyped_run_after_first():
    with pytest.raises(EncodeInvariantViolation):
        encode_markup([MarkupRun(MarkupType.SYMBOL, "a"), MarkupRun(None, "b")])


def test_pack_comment_flags_layout():
    assert pack_comment_flags(1, CommentType.ANTERIOR, 1) == 1 | (2 << 1) | (1 << 16)
    assert pack_comment_flags(False, CommentType.REGULAR, 0) == 0


def test_comment_flags_bijection():
    for repeatable, ctype, operand in itertools.product(
        (0, 1), range(8), (0, 1, 2, 0x7FFF, 0xFFFF)
    ):
        flags = pack_comment_flags(repeatable, ctype, operand)
        assert unpack_comment_flags(flags) == (repeatable, ctype, operand)


def test_unpack_ignores_reserved_bits():
    flags = pack_comment_flags(1, CommentType.LOCATION, 3) | 0xFFF0
    assert unpack_comment_flags(flags) == (1, CommentType.LOCATION, 3)


@pytest.mark.parametrize(
    "args",
    [(2, 0, 0), (0, 8, 0), (0, -1, 0), (0, 0, 0x10000), (0, 0, -1)],
)
def test_pack_rejects_out_of_range(args):
    with pytest.raises(ValueError):
        pack_comment_flags(*args)


def test_encode_rejects_empty_untyped_run():
    with pytest.raises(EncodeInvariantViolation):
        encode_markup([MarkupRun(None, "")])
    with pytest.raises(EncodeInvariantViolation):
        encode_markup([MarkupRun(None, ""), MarkupRun(MarkupType.REGISTER, "eax")])
