"""ELF model provider using pyelftools + capstone (x86 / x86-64)."""

from __future__ import annotations

import hashlib
import re
from pathlib import Path
from typing import Any, Sequence

from capstone import CS_ARCH_X86, CS_GRP_CALL, CS_GRP_JUMP, CS_GRP_RET, CS_MODE_32, CS_MODE_64, Cs
from capstone.x86 import X86_OP_IMM, X86_OP_MEM, X86_OP_REG, X86_REG_RIP
from elftools.elf.elffile import ELFFile
from elftools.elf.relocation import RelocationSection
from elftools.elf.sections import SymbolTableSection

from binexport.config.defaults import DEFAULT_LIBRARY_PREFIXES
from binexport.extraction.binary_artifact import (
    BasicBlockArtifact,
    BinaryArtifact,
    BranchArtifact,
    CallArtifact,
    FunctionArtifact,
    InstructionArtifact,
)
from binexport.markup import MarkupRun, MarkupType
from binexport.records import EdgeType, FunctionType
from binexport.utils.logging import get_logger

log = get_logger(__name__)

PLT_ENTRY_SIZE = 16
MAX_STRING_LEN = 256

_SIZE_PREFIXES = frozenset(
    {"byte", "word", "dword", "fword", "qword", "tbyte", "oword", "xmmword", "ymmword", "zmmword", "ptr"}
)
_TOKEN = re.compile(r"\s*,\s*|[\[\]]|\s*[+\-*:]\s*|\s+|[^\s,\[\]+\-*:]+")
_INT = re.compile(r"^(0x[0-9a-fA-F]+|[0-9]+)$")
_FLOAT = re.compile(r"^[0-9]+\.[0-9]*(e[+-]?[0-9]+)?$")
_TERMINATORS = frozenset({"hlt", "ud2"})


def load_elf(
    path: Path, library_prefixes: Sequence[str] = DEFAULT_LIBRARY_PREFIXES
) -> BinaryArtifact | None:
    """Disassemble the functions of an x86 ELF binary into a BinaryArtifact."""
    path = Path(path)
    if not path.exists():
        log.warning("elf_not_found", path=str(path))
        return None

    input_hash = hashlib.sha256(path.read_bytes()).hexdigest().encode("ascii")

    try:
        with open(path, "rb") as f:
            elf = ELFFile(f)
            machine = elf.header.e_machine
            if machine not in ("EM_X86_64", "EM_386"):
                log.error("unsupported_architecture", path=str(path), machine=machine)
                return None
            md = Cs(CS_ARCH_X86, CS_MODE_64 if elf.elfclass == 64 else CS_MODE_32)
            md.detail = True

            symbols = _get_symbols(elf)
            imports = _get_plt_imports(elf)
            functions, calls = _get_functions(elf, md, symbols, imports, tuple(library_prefixes))
            address_space = elf.elfclass
            architecture = "x86-64" if machine == "EM_X86_64" else "x86-32"
    except Exception as exc:
        log.error("elf_load_failed", path=str(path), error=str(exc))
        return None

    log.info(
        "elf_loaded",
        path=str(path),
        functions=len(functions),
        calls=len(calls),
        imports=len(imports),
    )

    return BinaryArtifact(
        name=path.name,
        input_hash=input_hash,
        architecture=architecture,
        address_space=address_space,
        functions=tuple(functions),
        calls=tuple(calls),
    )


def _get_symbols(elf: ELFFile) -> dict[int, tuple[str, int]]:
    """FUNC symbols from .symtab/.dynsym keyed by address: (name, size)."""
    symbols: dict[int, tuple[str, int]] = {}
    for section in elf.iter_sections():
        if not isinstance(section, SymbolTableSection):
            continue
        for sym in section.iter_symbols():
            addr = sym.entry.st_value
            if (
                sym.name
                and addr
                and sym.entry.st_info.type == "STT_FUNC"
                and sym.entry.st_size > 0
                and addr not in symbols
            ):
                symbols[addr] = (sym.name, sym.entry.st_size)
    return symbols


def _get_plt_imports(elf: ELFFile) -> dict[int, str]:
    """PLT stub address -> imported symbol name, from .rela.plt order."""
    imports: dict[int, str] = {}
    plt = elf.get_section_by_name(".plt")
    dynsym = elf.get_section_by_name(".dynsym")
    rela_plt = elf.get_section_by_name(".rela.plt") or elf.get_section_by_name(".rel.plt")
    if plt is None or dynsym is None or not isinstance(rela_plt, RelocationSection):
        return imports

    for i, rel in enumerate(rela_plt.iter_relocations()):
        sym = dynsym.get_symbol(rel.entry.r_info_sym)
        if sym is not None and sym.name:
            # PLT[0] is the resolver stub
            imports[plt["sh_addr"] + (i + 1) * PLT_ENTRY_SIZE] = sym.name
    return imports


def _rodata_string(elf: ELFFile, address: int) -> bytes | None:
    rodata = elf.get_section_by_name(".rodata")
    if rodata is None:
        return None
    base = rodata["sh_addr"]
    if not base <= address < base + rodata["sh_size"]:
        return None
    data = rodata.data()
    start = address - base
    end = data.find(b"\x00", start, start + MAX_STRING_LEN)
    raw = data[start : end if end != -1 else start + MAX_STRING_LEN]
    return raw if len(raw) >= 2 else None


def _get_functions(
    elf: ELFFile,
    md: Cs,
    symbols: dict[int, tuple[str, int]],
    imports: dict[int, str],
    library_prefixes: tuple[str, ...],
) -> tuple[list[FunctionArtifact], list[CallArtifact]]:
    text = elf.get_section_by_name(".text")
    if text is None:
        return [], []
    text_data = text.data()
    text_base = text["sh_addr"]

    in_text = {
        addr: info
        for addr, info in symbols.items()
        if text_base <= addr < text_base + len(text_data)
    }
    known = set(in_text) | set(imports)

    functions: list[FunctionArtifact] = []
    calls: list[CallArtifact] = []
    for addr in sorted(in_text):
        name, size = in_text[addr]
        offset = addr - text_base
        blocks, branches, call_sites = disassemble_function(
            md,
            text_data[offset : offset + size],
            addr,
            functions=known,
            strings=lambda target: _rodata_string(elf, target),
        )
        calls.extend(
            CallArtifact(addr, site, target) for site, target in call_sites if target in known
        )
        functions.append(
            FunctionArtifact(
                address=addr,
                name=name,
                function_type=(
                    FunctionType.LIBRARY if name.startswith(library_prefixes) else FunctionType.NORMAL
                ),
                has_real_name=True,
                basic_blocks=tuple(blocks),
                branches=tuple(branches),
            )
        )

    for addr, name in sorted(imports.items()):
        if addr not in in_text:
            functions.append(
                FunctionArtifact(
                    address=addr,
                    name=name,
                    function_type=FunctionType.IMPORTED,
                    has_real_name=True,
                )
            )
    return functions, calls


def _direct_target(insn: Any) -> int | None:
    for op in insn.operands:
        if op.type == X86_OP_IMM:
            return op.imm
    return None


def _operand_registers(insn: Any) -> set[str]:
    names = set()
    for op in insn.operands:
        if op.type == X86_OP_REG:
            names.add(insn.reg_name(op.reg))
        elif op.type == X86_OP_MEM:
            for reg in (op.mem.segment, op.mem.base, op.mem.index):
                if reg:
                    names.add(insn.reg_name(reg))
    return names


def _string_reference(insn: Any, strings) -> bytes | None:
    if insn.mnemonic != "lea" or len(insn.operands) < 2:
        return None
    op = insn.operands[1]
    if op.type != X86_OP_MEM or op.mem.base != X86_REG_RIP:
        return None
    return strings(insn.address + insn.size + op.mem.disp)


def disassemble_function(
    md: Cs,
    code: bytes,
    address: int,
    functions: set[int] = frozenset(),
    strings=lambda target: None,
) -> tuple[list[BasicBlockArtifact], list[BranchArtifact], list[tuple[int, int]]]:
    """Split one function's code into basic blocks and typed branches.

    Returns ``(blocks, branches, call_sites)``; call sites are
    ``(instruction address, target)`` for direct calls.
    """
    insns = list(md.disasm(code, address))
    if not insns:
        return [], [], []
    end = address + len(code)
    starts = {insn.address for insn in insns}

    leaders = {address}
    for i, insn in enumerate(insns):
        ends_block = (
            insn.group(CS_GRP_JUMP) or insn.group(CS_GRP_RET) or insn.mnemonic in _TERMINATORS
        )
        if not ends_block:
            continue
        if insn.group(CS_GRP_JUMP):
            target = _direct_target(insn)
            if target is not None and target in starts:
                leaders.add(target)
        if i + 1 < len(insns):
            leaders.add(insns[i + 1].address)

    groups: list[list[Any]] = []
    for insn in insns:
        if insn.address in leaders or not groups:
            groups.append([])
        groups[-1].append(insn)
    block_starts = {group[0].address for group in groups}
    jump_labels = block_starts

    blocks: list[BasicBlockArtifact] = []
    branches: list[BranchArtifact] = []
    call_sites: list[tuple[int, int]] = []
    for n, group in enumerate(groups):
        instructions = []
        for insn in group:
            call_targets: tuple[int, ...] = ()
            if insn.group(CS_GRP_CALL):
                target = _direct_target(insn)
                if target is not None:
                    call_targets = (target,)
                    call_sites.append((insn.address, target))
            instructions.append(
                InstructionArtifact(
                    address=insn.address,
                    mnemonic=insn.mnemonic,
                    raw_bytes=bytes(insn.bytes),
                    operands=tokenize_operands(
                        insn.op_str, _operand_registers(insn), jump_labels, functions
                    ),
                    string_data=_string_reference(insn, strings),
                    call_targets=call_targets,
                )
            )
        block_address = group[0].address
        blocks.append(BasicBlockArtifact(address=block_address, instructions=tuple(instructions)))

        last = group[-1]
        fallthrough = groups[n + 1][0].address if n + 1 < len(groups) else None
        if last.group(CS_GRP_JUMP):
            target = _direct_target(last)
            conditional = last.mnemonic not in ("jmp", "ljmp")
            if target is not None and target in block_starts and address <= target < end:
                branches.append(
                    BranchArtifact(
                        block_address,
                        target,
                        EdgeType.CONDITION_TRUE if conditional else EdgeType.UNCONDITIONAL,
                    )
                )
            if conditional and fallthrough is not None:
                branches.append(BranchArtifact(block_address, fallthrough, EdgeType.CONDITION_FALSE))
        elif not last.group(CS_GRP_RET) and last.mnemonic not in _TERMINATORS:
            if fallthrough is not None:
                branches.append(BranchArtifact(block_address, fallthrough, EdgeType.UNCONDITIONAL))

    return blocks, branches, call_sites


def tokenize_operands(
    op_str: str,
    registers: set[str],
    jump_labels: set[int] = frozenset(),
    functions: set[int] = frozenset(),
) -> tuple[MarkupRun, ...]:
    """Split capstone operand text into typed markup runs."""
    runs: list[MarkupRun] = []
    for token in _TOKEN.findall(op_str):
        stripped = token.strip()
        if not stripped:
            if runs:
                runs[-1] = MarkupRun(runs[-1].tag, runs[-1].text + token)
            continue
        tag = _classify(stripped, registers, jump_labels, functions)
        if runs and runs[-1].tag == tag and tag == MarkupType.SIZEPREFIX:
            runs[-1] = MarkupRun(tag, runs[-1].text + token)
        else:
            runs.append(MarkupRun(tag, token))
    return tuple(runs)


def _classify(
    token: str, registers: set[str], jump_labels: set[int], functions: set[int]
) -> MarkupType:
    if token == ",":
        return MarkupType.NEWOPERAND
    if token in ("[", "]"):
        return MarkupType.DEREFERENCE
    if token in ("+", "-", "*", ":"):
        return MarkupType.OPERATOR
    if token.lower() in _SIZE_PREFIXES:
        return MarkupType.SIZEPREFIX
    if token in registers:
        return MarkupType.REGISTER
    if _INT.match(token):
        value = int(token, 16) if token.startswith("0x") else int(token)
        if value in functions:
            return MarkupType.FUNCTION
        if value in jump_labels:
            return MarkupType.JUMPLABEL
        return MarkupType.IMMEDIATE_INT
    if _FLOAT.match(token):
        return MarkupType.IMMEDIATE_FLOAT
    return MarkupType.SYMBOL
