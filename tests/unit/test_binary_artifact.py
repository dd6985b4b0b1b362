"""Tests for frozen binary artifact dataclasses."""

from dataclasses import FrozenInstanceError

import pytest

from binexport.extraction.binary_artifact import (
    BasicBlockArtifact,
    BranchArtifact,
    FunctionArtifact,
    InstructionArtifact,
)
from binexport.records import EdgeType, FunctionType


def test_instruction_artifact_frozen():
    insn = InstructionArtifact(address=0x1000, mnemonic="mov")
    with pytest.raises(FrozenInstanceError):
        insn.address = 0x2000


def test_instruction_artifact_defaults():
    insn = InstructionArtifact(address=0x1000, mnemonic="ret")
    assert insn.raw_bytes == b""
    assert insn.operands == ()
    assert insn.string_data is None
    assert insn.call_targets == ()


def test_branch_defaults_to_unconditional():
    branch = BranchArtifact(0x1000, 0x1010)
    assert branch.edge_type is EdgeType.UNCONDITIONAL


def test_function_artifact():
    func = FunctionArtifact(
        address=0x401000,
        name="main",
        basic_blocks=(BasicBlockArtifact(0x401000),),
    )
    assert func.function_type is FunctionType.NORMAL
    assert not func.has_real_name
    assert func.branches == ()


def test_binary_artifact(sample_artifact):
    assert sample_artifact.name == "sample"
    assert sample_artifact.input_hash == b"a" * 64
    assert len(sample_artifact.functions) == 4
    assert sample_artifact.architecture == "x86-64"


def test_binary_artifact_frozen(sample_artifact):
    with pytest.raises(FrozenInstanceError):
        sample_artifact.name = "modified"
