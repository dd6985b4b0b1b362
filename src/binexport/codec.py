"""Record <-> payload conversion for Meta, Callgraph and Flowgraph records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from google.protobuf.message import DecodeError, EncodeError

from binexport.errors import (
    EncodeInvariantViolation,
    MarkupDecodeError,
    RecordDecodeError,
)
from binexport.markup import (
    RESERVED_FLAGS_MASK,
    MarkupRun,
    decode_markup,
    encode_markup,
    unpack_comment_flags,
)
from binexport.records import (
    BasicBlock,
    Callgraph,
    CallgraphEdge,
    CallgraphVertex,
    Comment,
    EdgeType,
    Flowgraph,
    FlowgraphEdge,
    FunctionType,
    Instruction,
    Meta,
)
from binexport.schema import CallgraphMessage, FlowgraphMessage, MetaMessage
from binexport.utils.logging import get_logger

log = get_logger(__name__)

META_FIELDS = (
    "input_binary",
    "input_hash",
    "input_address_space",
    "architecture_name",
    "max_mnemonic_len",
    "num_instructions",
    "num_functions",
    "num_basicblocks",
    "num_edges",
)


@dataclass(frozen=True)
class EncodedFlowgraph:
    """A flow graph payload ready to be appended to a container."""

    address: int
    payload: bytes


def _serialize(kind: str, build) -> bytes:
    try:
        return build().SerializeToString()
    except EncodeInvariantViolation:
        raise
    except (ValueError, TypeError, EncodeError) as exc:
        raise EncodeInvariantViolation(f"{kind}: {exc}") from exc


def _optional(msg: Any, name: str) -> Any:
    return getattr(msg, name) if msg.HasField(name) else None


def _text(value: Any, kind: str, name: str) -> Any:
    # protobuf hands back bytes for string fields that are not valid UTF-8
    if isinstance(value, bytes):
        raise RecordDecodeError(kind, f"invalid UTF-8 in {name}")
    return value


def _parse(message_cls, kind: str, data: bytes):
    msg = message_cls()
    try:
        msg.ParseFromString(data)
    except (DecodeError, ValueError) as exc:
        raise RecordDecodeError(kind, f"corrupt payload: {exc}") from exc
    if not msg.IsInitialized():
        missing = ", ".join(msg.FindInitializationErrors())
        raise RecordDecodeError(kind, f"missing required fields: {missing}")
    return msg


# -- Meta --


def encode_meta(meta: Meta) -> bytes:
    def build():
        msg = MetaMessage()
        for name in META_FIELDS:
            value = getattr(meta, name)
            if value is not None:
                setattr(msg, name, value)
        return msg

    return _serialize("meta", build)


def decode_meta(data: bytes) -> Meta:
    msg = _parse(MetaMessage, "meta", data)
    values = {name: _optional(msg, name) for name in META_FIELDS}
    for name in ("input_binary", "architecture_name"):
        _text(values[name], "meta", name)
    return Meta(**values)


# -- Callgraph --


def encode_callgraph(callgraph: Callgraph) -> bytes:
    def build():
        msg = CallgraphMessage()
        for v in callgraph.vertices:
            vertex = msg.vertices.add()
            vertex.address = v.address
            vertex.prime = v.prime
            vertex.function_type = int(v.function_type)
            vertex.has_real_name = bool(v.has_real_name)
            if v.mangled_name is not None:
                vertex.mangled_name = v.mangled_name
            if v.demangled_name is not None:
                vertex.demangled_name = v.demangled_name
        for e in callgraph.edges:
            edge = msg.edges.add()
            edge.source_function_address = e.source_function_address
            edge.source_instruction_address = e.source_instruction_address
            edge.target_address = e.target_address
        return msg

    return _serialize("callgraph", build)


def decode_callgraph(data: bytes) -> Callgraph:
    msg = _parse(CallgraphMessage, "callgraph", data)
    vertices = tuple(
        CallgraphVertex(
            address=v.address,
            prime=v.prime,
            function_type=FunctionType(v.function_type),
            has_real_name=v.has_real_name,
            mangled_name=_text(_optional(v, "mangled_name"), "callgraph", "mangled_name"),
            demangled_name=_text(
                _optional(v, "demangled_name"), "callgraph", "demangled_name"
            ),
        )
        for v in msg.vertices
    )
    edges = tuple(
        CallgraphEdge(
            source_function_address=e.source_function_address,
            source_instruction_address=e.source_instruction_address,
            target_address=e.target_address,
        )
        for e in msg.edges
    )
    return Callgraph(vertices=vertices, edges=edges)


# -- Flowgraph --


def check_flowgraph(flowgraph: Flowgraph) -> None:
    """Raise EncodeInvariantViolation if there are no basic blocks or one is empty."""
    if not flowgraph.basic_blocks:
        raise EncodeInvariantViolation(
            f"flowgraph {flowgraph.address:#x} has no basic blocks"
        )
    for i, bb in enumerate(flowgraph.basic_blocks):
        if not bb.instructions:
            raise EncodeInvariantViolation(
                f"flowgraph {flowgraph.address:#x}: basic block {i} has no instructions"
            )


def _fill_instruction(msg: Any, insn: Instruction) -> None:
    msg.address = insn.address
    msg.prime = insn.prime
    if insn.string_reference:
        msg.string_reference = insn.string_reference
    if insn.mnemonic is not None:
        msg.mnemonic = insn.mnemonic
    if insn.operands is not None:
        msg.operands = encode_markup(insn.operands)
    elif insn.raw_operands is not None:
        msg.operands = insn.raw_operands
    if insn.raw_bytes is not None:
        msg.raw_bytes = insn.raw_bytes
    msg.call_targets.extend(insn.call_targets)
    for c in insn.comments:
        comment = msg.comments.add()
        comment.comment = c.text
        comment.flags = c.flags


def encode_flowgraph(flowgraph: Flowgraph) -> bytes:
    check_flowgraph(flowgraph)

    def build():
        msg = FlowgraphMessage()
        msg.address = flowgraph.address
        for bb in flowgraph.basic_blocks:
            vertex = msg.vertices.add()
            vertex.prime = bb.prime
            for insn in bb.instructions:
                _fill_instruction(vertex.instructions.add(), insn)
        for e in flowgraph.edges:
            edge = msg.edges.add()
            edge.source_address = e.source_address
            edge.target_address = e.target_address
            edge.type = int(e.edge_type)
        return msg

    return _serialize(f"flowgraph {flowgraph.address:#x}", build)


def prepare_flowgraph(flowgraph: Flowgraph) -> EncodedFlowgraph:
    """Encode a flow graph ahead of writing, e.g. on a worker."""
    return EncodedFlowgraph(address=flowgraph.address, payload=encode_flowgraph(flowgraph))


def _decode_comment(msg: Any) -> Comment:
    repeatable, comment_type, operand_id = unpack_comment_flags(msg.flags)
    return Comment(
        text=_text(msg.comment, "flowgraph", "comment"),
        repeatable=bool(repeatable),
        comment_type=comment_type,
        operand_id=operand_id,
        reserved_flags=msg.flags & RESERVED_FLAGS_MASK,
    )


def _decode_operands(text: str | bytes) -> tuple[MarkupRun, ...]:
    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MarkupDecodeError("invalid UTF-8", exc.start) from exc
    return decode_markup(text)


def _decode_instruction(msg: Any, strict_markup: bool) -> Instruction:
    operands = None
    raw_operands = None
    if msg.HasField("operands"):
        try:
            operands = _decode_operands(msg.operands)
        except MarkupDecodeError as exc:
            if strict_markup:
                raise RecordDecodeError(
                    "flowgraph", f"instruction {msg.address:#x}: {exc}"
                ) from exc
            log.warning(
                "operand_markup_undecodable",
                address=hex(msg.address),
                position=exc.position,
            )
            raw_operands = msg.operands
            if isinstance(raw_operands, bytes):
                raw_operands = raw_operands.decode("utf-8", errors="backslashreplace")
    return Instruction(
        address=msg.address,
        prime=msg.prime,
        string_reference=msg.string_reference,
        mnemonic=_text(_optional(msg, "mnemonic"), "flowgraph", "mnemonic"),
        operands=operands,
        raw_bytes=_optional(msg, "raw_bytes"),
        call_targets=tuple(msg.call_targets),
        comments=tuple(_decode_comment(c) for c in msg.comments),
        raw_operands=raw_operands,
    )


def decode_flowgraph(data: bytes, strict_markup: bool = False) -> Flowgraph:
    msg = _parse(FlowgraphMessage, "flowgraph", data)
    if not msg.vertices:
        raise RecordDecodeError("flowgraph", f"flowgraph {msg.address:#x} has no basic blocks")
    blocks = []
    for i, vertex in enumerate(msg.vertices):
        if not vertex.instructions:
            raise RecordDecodeError(
                "flowgraph", f"basic block {i} of {msg.address:#x} has no instructions"
            )
        blocks.append(
            BasicBlock(
                prime=vertex.prime,
                instructions=tuple(
                    _decode_instruction(insn, strict_markup) for insn in vertex.instructions
                ),
            )
        )
    edges = tuple(
        FlowgraphEdge(
            source_address=e.source_address,
            target_address=e.target_address,
            edge_type=EdgeType(e.type),
        )
        for e in msg.edges
    )
    return Flowgraph(address=msg.address, basic_blocks=tuple(blocks), edges=edges)
