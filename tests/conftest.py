"""Shared test fixtures."""

from __future__ import annotations

import io

import pytest

from binexport.config.models import BinExportConfig, ExportConfig, ReaderConfig
from binexport.container.writer import ContainerWriter
from binexport.extraction.binary_artifact import (
    BasicBlockArtifact,
    BinaryArtifact,
    BranchArtifact,
    CallArtifact,
    FunctionArtifact,
    InstructionArtifact,
)
from binexport.fingerprint import additive_prime, mnemonic_prime
from binexport.markup import CommentType, MarkupRun, MarkupType
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


@pytest.fixture
def sample_config() -> BinExportConfig:
    return BinExportConfig(
        export=ExportConfig(progress=False),
        reader=ReaderConfig(strict_markup=True),
    )


def make_flowgraph(address: int, mnemonics: tuple[str, ...] = ("push", "ret")) -> Flowgraph:
    """A single-block flow graph with one instruction per mnemonic."""
    instructions = tuple(
        Instruction(address=address + i, prime=mnemonic_prime(m), mnemonic=m)
        for i, m in enumerate(mnemonics)
    )
    return Flowgraph(
        address=address,
        basic_blocks=(BasicBlock(prime=additive_prime(mnemonics), instructions=instructions),),
    )


@pytest.fixture
def sample_meta() -> Meta:
    return Meta(
        input_binary="a.exe",
        input_hash=b"\x00\xffraw-hash",
        input_address_space=32,
        architecture_name="x86-32",
        max_mnemonic_len=4,
        num_instructions=1,
        num_functions=2,
        num_basicblocks=1,
        num_edges=0,
    )


@pytest.fixture
def sample_callgraph() -> Callgraph:
    return Callgraph(
        vertices=(
            CallgraphVertex(
                address=0x400000,
                prime=mnemonic_prime("call"),
                has_real_name=True,
                mangled_name="_Z4mainv",
                demangled_name="main()",
            ),
            CallgraphVertex(
                address=0x401000,
                prime=0,
                function_type=FunctionType.LIBRARY,
                mangled_name="printf",
            ),
        ),
        edges=(CallgraphEdge(0x400000, 0x400010, 0x401000),),
    )


@pytest.fixture
def rich_flowgraph() -> Flowgraph:
    """A flow graph using every instruction and edge field."""
    entry = Instruction(
        address=0x1000,
        prime=mnemonic_prime("mov"),
        string_reference=6363201,
        mnemonic="mov",
        operands=(
            MarkupRun(MarkupType.REGISTER, "ebp"),
            MarkupRun(MarkupType.NEWOPERAND, ", "),
            MarkupRun(MarkupType.REGISTER, "esp"),
        ),
        raw_bytes=b"\x89\xe5",
        comments=(
            Comment("frame setup", repeatable=True, comment_type=CommentType.ANTERIOR),
            Comment("ebp", comment_type=CommentType.REGULAR, operand_id=1),
        ),
    )
    call = Instruction(
        address=0x1002,
        prime=mnemonic_prime("call"),
        mnemonic="call",
        operands=(
            MarkupRun(MarkupType.DEREFERENCE, "["),
            MarkupRun(MarkupType.REGISTER, "ebp"),
            MarkupRun(MarkupType.OPERATOR, "+"),
            MarkupRun(MarkupType.REGISTER, "eax"),
            MarkupRun(MarkupType.OPERATOR, "*"),
            MarkupRun(MarkupType.IMMEDIATE_INT, "4"),
            MarkupRun(MarkupType.DEREFERENCE, "]"),
        ),
        call_targets=(0x2000, 0x3000),
    )
    jcc = Instruction(address=0x1005, prime=mnemonic_prime("je"), mnemonic="je")
    ret = Instruction(address=0x1007, prime=mnemonic_prime("ret"), mnemonic="ret")
    nop = Instruction(address=0x0FFF, prime=mnemonic_prime("nop"), mnemonic="nop")
    return Flowgraph(
        address=0x1000,
        basic_blocks=(
            # entry is not the lowest block
            BasicBlock(prime=additive_prime(["nop"]), instructions=(nop,)),
            BasicBlock(prime=additive_prime(["mov", "call", "je"]), instructions=(entry, call, jcc)),
            BasicBlock(prime=additive_prime(["ret"]), instructions=(ret,)),
        ),
        edges=(
            FlowgraphEdge(0x1000, 0x1007, EdgeType.CONDITION_TRUE),
            FlowgraphEdge(0x1000, 0x0FFF, EdgeType.CONDITION_FALSE),
            FlowgraphEdge(0x0FFF, 0x1007),
            FlowgraphEdge(0x1007, 0x1000, EdgeType.SWITCH),
        ),
    )


@pytest.fixture
def three_flowgraphs() -> list[Flowgraph]:
    return [
        make_flowgraph(0x1000, ("push", "ret")),
        make_flowgraph(0x2000, ("mov", "add", "ret")),
        make_flowgraph(0x3000, ("xor",)),
    ]


def write_to_bytes(meta, callgraph, flowgraphs, **kwargs) -> bytes:
    stream = io.BytesIO()
    ContainerWriter(stream).write(meta, callgraph, flowgraphs, **kwargs)
    return stream.getvalue()


@pytest.fixture
def three_flowgraph_container(sample_meta, sample_callgraph, three_flowgraphs) -> bytes:
    return write_to_bytes(sample_meta, sample_callgraph, three_flowgraphs)


@pytest.fixture
def sample_artifact() -> BinaryArtifact:
    """A producer-side model: main calls helper and imported puts."""
    main_entry = BasicBlockArtifact(
        address=0x401000,
        instructions=(
            InstructionArtifact(
                address=0x401000,
                mnemonic="push",
                raw_bytes=b"\x55",
                operands=(MarkupRun(MarkupType.REGISTER, "rbp"),),
            ),
            InstructionArtifact(
                address=0x401001,
                mnemonic="lea",
                raw_bytes=b"\x48\x8d\x3d\x00\x10\x00\x00",
                string_data=b"hello",
            ),
            InstructionArtifact(
                address=0x401008,
                mnemonic="call",
                raw_bytes=b"\xe8\x00\x00\x00\x00",
                call_targets=(0x402000,),
            ),
            InstructionArtifact(address=0x40100D, mnemonic="test"),
            InstructionArtifact(address=0x40100F, mnemonic="je"),
        ),
    )
    main_call_puts = BasicBlockArtifact(
        address=0x401011,
        instructions=(
            InstructionArtifact(address=0x401011, mnemonic="call", call_targets=(0x600000,)),
        ),
    )
    main_exit = BasicBlockArtifact(
        address=0x401016,
        instructions=(InstructionArtifact(address=0x401016, mnemonic="ret"),),
    )
    func_main = FunctionArtifact(
        address=0x401000,
        name="main",
        has_real_name=True,
        # deliberately unsorted
        basic_blocks=(main_exit, main_entry, main_call_puts),
        branches=(
            BranchArtifact(0x401000, 0x401016, EdgeType.CONDITION_TRUE),
            BranchArtifact(0x401000, 0x401011, EdgeType.CONDITION_FALSE),
            BranchArtifact(0x401011, 0x401016),
        ),
    )
    func_helper = FunctionArtifact(
        address=0x402000,
        name="_ZN6helper3runEv",
        demangled_name="helper::run()",
        has_real_name=True,
        basic_blocks=(
            BasicBlockArtifact(
                address=0x402000,
                instructions=(
                    InstructionArtifact(address=0x402000, mnemonic="xor"),
                    InstructionArtifact(address=0x402002, mnemonic="ret"),
                ),
            ),
        ),
    )
    func_crt = FunctionArtifact(
        address=0x400F00,
        name="_start",
        function_type=FunctionType.LIBRARY,
        has_real_name=True,
        basic_blocks=(
            BasicBlockArtifact(
                address=0x400F00,
                instructions=(InstructionArtifact(address=0x400F00, mnemonic="hlt"),),
            ),
        ),
    )
    func_puts = FunctionArtifact(
        address=0x600000,
        name="puts",
        demangled_name="puts",
        function_type=FunctionType.IMPORTED,
        has_real_name=True,
    )
    return BinaryArtifact(
        name="sample",
        input_hash=b"a" * 64,
        architecture="x86-64",
        address_space=64,
        functions=(func_helper, func_main, func_puts, func_crt),
        calls=(
            CallArtifact(0x401000, 0x401008, 0x402000),
            CallArtifact(0x401000, 0x401011, 0x600000),
        ),
    )


# Markers
def pytest_configure(config):
    config.addinivalue_line("markers", "integration: end-to-end export and read back")


@pytest.fixture
def flowgraph_factory():
    return make_flowgraph


@pytest.fixture
def container_factory():
    return write_to_bytes
