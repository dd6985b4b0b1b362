"""Frozen dataclasses describing a disassembled binary before export."""

from __future__ import annotations

from dataclasses import dataclass

from binexport.markup import MarkupRun
from binexport.records import Comment, EdgeType, FunctionType


@dataclass(frozen=True)
class InstructionArtifact:
    address: int
    mnemonic: str
    raw_bytes: bytes = b""
    operands: tuple[MarkupRun, ...] = ()
    string_data: bytes | None = None  # bytes of referenced string data, if any
    call_targets: tuple[int, ...] = ()
    comments: tuple[Comment, ...] = ()


@dataclass(frozen=True)
class BasicBlockArtifact:
    address: int
    instructions: tuple[InstructionArtifact, ...] = ()


@dataclass(frozen=True)
class BranchArtifact:
    source_address: int  # basic block addresses
    target_address: int
    edge_type: EdgeType = EdgeType.UNCONDITIONAL


@dataclass(frozen=True)
class CallArtifact:
    source_function_address: int
    source_instruction_address: int
    target_address: int


@dataclass(frozen=True)
class FunctionArtifact:
    address: int
    name: str | None = None
    function_type: FunctionType = FunctionType.NORMAL
    has_real_name: bool = False
    demangled_name: str | None = None
    basic_blocks: tuple[BasicBlockArtifact, ...] = ()
    branches: tuple[BranchArtifact, ...] = ()


@dataclass(frozen=True)
class BinaryArtifact:
    name: str
    input_hash: bytes
    architecture: str
    address_space: int = 64
    functions: tuple[FunctionArtifact, ...] = ()
    calls: tuple[CallArtifact, ...] = ()
