"""Turn a disassembly model into Meta, Callgraph and Flowgraph records.

The builder never decides what a function, basic block or call is; it only
fingerprints and packages what the model reports.
"""

from __future__ import annotations

from typing import Iterable, Iterator, Protocol

from binexport.extraction.binary_artifact import (
    BasicBlockArtifact,
    BinaryArtifact,
    BranchArtifact,
    CallArtifact,
    FunctionArtifact,
    InstructionArtifact,
)
from binexport.fingerprint import additive_prime, mnemonic_prime, sdbm_hash
from binexport.records import (
    BasicBlock,
    Callgraph,
    CallgraphEdge,
    CallgraphVertex,
    Flowgraph,
    FlowgraphEdge,
    FunctionType,
    Instruction,
    Meta,
)
from binexport.utils.logging import get_logger

log = get_logger(__name__)

# Functions of these types get a flow graph when they have a body.
EXPORTED_TYPES = frozenset({FunctionType.NORMAL, FunctionType.THUNK})


class DisassemblyModel(Protocol):
    """What the exporter needs from a disassembler."""

    def functions(self) -> Iterable[FunctionArtifact]: ...

    def call_edges(self) -> Iterable[CallArtifact]: ...

    def basic_blocks(self, function: FunctionArtifact) -> Iterable[BasicBlockArtifact]: ...

    def flow_edges(self, function: FunctionArtifact) -> Iterable[BranchArtifact]: ...


class ArtifactModel:
    """DisassemblyModel over an in-memory BinaryArtifact."""

    def __init__(self, artifact: BinaryArtifact) -> None:
        self.artifact = artifact

    def functions(self) -> Iterable[FunctionArtifact]:
        return self.artifact.functions

    def call_edges(self) -> Iterable[CallArtifact]:
        return self.artifact.calls

    def basic_blocks(self, function: FunctionArtifact) -> Iterable[BasicBlockArtifact]:
        return function.basic_blocks

    def flow_edges(self, function: FunctionArtifact) -> Iterable[BranchArtifact]:
        return function.branches


def build_instruction(insn: InstructionArtifact) -> Instruction:
    return Instruction(
        address=insn.address,
        prime=mnemonic_prime(insn.mnemonic),
        string_reference=sdbm_hash(insn.string_data) if insn.string_data else 0,
        mnemonic=insn.mnemonic,
        operands=tuple(insn.operands) if insn.operands else None,
        raw_bytes=insn.raw_bytes or None,
        call_targets=tuple(insn.call_targets),
        comments=tuple(insn.comments),
    )


def build_basic_block(block: BasicBlockArtifact) -> BasicBlock:
    return BasicBlock(
        prime=additive_prime(i.mnemonic for i in block.instructions),
        instructions=tuple(build_instruction(i) for i in block.instructions),
    )


class GraphBuilder:
    """Builds records from a :class:`DisassemblyModel`.

    Flow graphs are produced lazily, one function at a time, in ascending
    entry address order.
    """

    def __init__(self, model: DisassemblyModel) -> None:
        self.model = model

    def _sorted_functions(self) -> list[FunctionArtifact]:
        return sorted(self.model.functions(), key=lambda f: f.address)

    def _blocks(self, function: FunctionArtifact) -> list[BasicBlockArtifact]:
        return sorted(self.model.basic_blocks(function), key=lambda b: b.address)

    def _is_exported(self, function: FunctionArtifact) -> bool:
        if function.function_type not in EXPORTED_TYPES:
            return False
        return any(True for _ in self.model.basic_blocks(function))

    def exported_functions(self) -> Iterator[FunctionArtifact]:
        for function in self._sorted_functions():
            if self._is_exported(function):
                yield function

    def flowgraph_count(self) -> int:
        return sum(1 for _ in self.exported_functions())

    def build_meta(
        self,
        input_binary: str | None = None,
        input_hash: bytes | None = None,
        address_space: int | None = None,
        architecture: str | None = None,
    ) -> Meta:
        """Meta with counts over exported (non-library) functions only."""
        num_functions = num_blocks = num_instructions = num_edges = 0
        max_mnemonic = 0
        for function in self.exported_functions():
            num_functions += 1
            for block in self.model.basic_blocks(function):
                num_blocks += 1
                num_instructions += len(block.instructions)
                for insn in block.instructions:
                    max_mnemonic = max(max_mnemonic, len(insn.mnemonic))
            num_edges += sum(1 for _ in self.model.flow_edges(function))

        return Meta(
            input_binary=input_binary,
            input_hash=input_hash,
            input_address_space=address_space,
            architecture_name=architecture,
            max_mnemonic_len=max_mnemonic,
            num_instructions=num_instructions,
            num_functions=num_functions,
            num_basicblocks=num_blocks,
            num_edges=num_edges,
        )

    def build_callgraph(self) -> Callgraph:
        vertices = []
        for function in self._sorted_functions():
            prime = additive_prime(
                insn.mnemonic
                for block in self.model.basic_blocks(function)
                for insn in block.instructions
            )
            demangled = function.demangled_name
            if demangled == function.name:
                demangled = None
            vertices.append(
                CallgraphVertex(
                    address=function.address,
                    prime=prime,
                    function_type=function.function_type,
                    has_real_name=function.has_real_name,
                    mangled_name=function.name,
                    demangled_name=demangled,
                )
            )
        edges = tuple(
            CallgraphEdge(
                source_function_address=c.source_function_address,
                source_instruction_address=c.source_instruction_address,
                target_address=c.target_address,
            )
            for c in self.model.call_edges()
        )
        log.debug("callgraph_built", vertices=len(vertices), edges=len(edges))
        return Callgraph(vertices=tuple(vertices), edges=edges)

    def build_flowgraph(self, function: FunctionArtifact) -> Flowgraph:
        return Flowgraph(
            address=function.address,
            basic_blocks=tuple(build_basic_block(b) for b in self._blocks(function)),
            edges=tuple(
                FlowgraphEdge(
                    source_address=e.source_address,
                    target_address=e.target_address,
                    edge_type=e.edge_type,
                )
                for e in self.model.flow_edges(function)
            ),
        )

    def iter_flowgraphs(self) -> Iterator[Flowgraph]:
        for function in self.exported_functions():
            yield self.build_flowgraph(function)


def build_records(
    artifact: BinaryArtifact,
) -> tuple[Meta, Callgraph, list[Flowgraph]]:
    """Convenience for small artifacts: build every record eagerly."""
    builder = GraphBuilder(ArtifactModel(artifact))
    meta = builder.build_meta(
        input_binary=artifact.name,
        input_hash=artifact.input_hash,
        address_space=artifact.address_space,
        architecture=artifact.architecture,
    )
    return meta, builder.build_callgraph(), list(builder.iter_flowgraphs())
