"""Frozen dataclasses for the Meta, Callgraph and Flowgraph records."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from binexport.markup import RESERVED_FLAGS_MASK, CommentType, MarkupRun, pack_comment_flags


class FunctionType(IntEnum):
    NORMAL = 0
    LIBRARY = 1  # recognized library function (e.g. by signature matching)
    IMPORTED = 2  # imported from a dynamic library
    THUNK = 3
    INVALID = 4


class EdgeType(IntEnum):
    CONDITION_TRUE = 1
    CONDITION_FALSE = 2
    UNCONDITIONAL = 3
    SWITCH = 4


@dataclass(frozen=True)
class Meta:
    """File-level metadata. Counts cover non-library functions only."""

    input_binary: str | None = None
    input_hash: bytes | None = None
    input_address_space: int | None = None
    architecture_name: str | None = None
    max_mnemonic_len: int | None = None
    num_instructions: int | None = None
    num_functions: int | None = None
    num_basicblocks: int | None = None
    num_edges: int | None = None


@dataclass(frozen=True)
class CallgraphVertex:
    address: int
    prime: int
    function_type: FunctionType = FunctionType.NORMAL
    has_real_name: bool = False
    mangled_name: str | None = None
    demangled_name: str | None = None


@dataclass(frozen=True)
class CallgraphEdge:
    source_function_address: int
    source_instruction_address: int
    target_address: int


@dataclass(frozen=True)
class Callgraph:
    vertices: tuple[CallgraphVertex, ...] = ()
    edges: tuple[CallgraphEdge, ...] = ()

    def vertex(self, address: int) -> CallgraphVertex | None:
        for v in self.vertices:
            if v.address == address:
                return v
        return None


@dataclass(frozen=True)
class Comment:
    text: str
    repeatable: bool = False
    comment_type: CommentType = CommentType.REGULAR
    operand_id: int = 0
    # Reserved flag bits read from another producer, written back as is.
    reserved_flags: int = 0

    @property
    def flags(self) -> int:
        if self.reserved_flags & ~RESERVED_FLAGS_MASK:
            raise ValueError(
                f"reserved flags outside {RESERVED_FLAGS_MASK:#x}: {self.reserved_flags:#x}"
            )
        flags = pack_comment_flags(self.repeatable, self.comment_type, self.operand_id)
        return flags | self.reserved_flags


@dataclass(frozen=True)
class Instruction:
    address: int
    prime: int
    string_reference: int = 0
    mnemonic: str | None = None
    operands: tuple[MarkupRun, ...] | None = None
    raw_bytes: bytes | None = None
    call_targets: tuple[int, ...] = ()
    comments: tuple[Comment, ...] = ()
    # Operand text exactly as read when its markup could not be decoded.
    raw_operands: str | None = None


@dataclass(frozen=True)
class BasicBlock:
    prime: int
    instructions: tuple[Instruction, ...]

    @property
    def address(self) -> int:
        return self.instructions[0].address


@dataclass(frozen=True)
class FlowgraphEdge:
    source_address: int
    target_address: int
    edge_type: EdgeType = EdgeType.UNCONDITIONAL


@dataclass(frozen=True)
class Flowgraph:
    """One function's basic blocks (address order) and branches.

    ``address`` is the entry point, which need not be the lowest block.
    """

    address: int
    basic_blocks: tuple[BasicBlock, ...] = ()
    edges: tuple[FlowgraphEdge, ...] = ()

    @property
    def num_instructions(self) -> int:
        return sum(len(bb.instructions) for bb in self.basic_blocks)
