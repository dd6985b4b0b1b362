"""BinExport Quickstart: export an ELF binary and look up one flow graph."""

import sys
from pathlib import Path

from binexport import BinExportContext
from binexport.builder import ArtifactModel, GraphBuilder
from binexport.container.writer import write_container
from binexport.errors import FlowgraphNotFoundError
from binexport.extraction.elf_loader import load_elf
from binexport.markup import markup_text


def main():
    # 1. Load configuration
    ctx = BinExportContext()
    cfg = ctx.ensure_config()

    # 2. Disassemble a binary
    binary = Path(sys.argv[1] if len(sys.argv) > 1 else "/bin/true")
    artifact = load_elf(binary, library_prefixes=cfg.export.library_prefixes)
    if artifact is None:
        print(f"Could not disassemble {binary}")
        return

    # 3. Stream the records into a container
    builder = GraphBuilder(ArtifactModel(artifact))
    out = Path(binary.name + ".BinExport")
    index = write_container(
        out,
        builder.build_meta(
            input_binary=artifact.name,
            input_hash=artifact.input_hash,
            address_space=artifact.address_space,
            architecture=artifact.architecture,
        ),
        builder.build_callgraph(),
        builder.iter_flowgraphs(),
        num_flow_graphs=builder.flowgraph_count(),
    )
    print(f"Wrote {out}: {index.num_flow_graphs} flow graphs")

    # 4. Read it back without loading the whole file
    with ctx.open_reader(out) as reader:
        meta = reader.meta()
        print(f"  {meta.input_binary} ({meta.architecture_name}), {meta.num_functions} functions")

        callgraph = reader.callgraph()
        for vertex in callgraph.vertices[:10]:
            print(f"  {vertex.function_type.name:<8} {vertex.mangled_name} @ {hex(vertex.address)}")

        # 5. Random access by entry address
        addresses = reader.flowgraph_addresses()
        if not addresses:
            return
        try:
            flowgraph = reader.flowgraph_for_address(addresses[0])
        except FlowgraphNotFoundError as e:
            print(f"\nLookup failed: {e}")
            return
        print(f"\nFlow graph {hex(flowgraph.address)}:")
        for block in flowgraph.basic_blocks:
            for insn in block.instructions:
                operands = markup_text(insn.operands) if insn.operands else ""
                print(f"  {hex(insn.address)}  {insn.mnemonic} {operands}")


if __name__ == "__main__":
    main()
