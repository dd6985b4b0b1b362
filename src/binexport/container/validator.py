"""Consistency checks across the records of one container."""

from __future__ import annotations

from dataclasses import dataclass, field

from binexport.container.reader import ContainerReader
from binexport.errors import RecordDecodeError
from binexport.records import FunctionType
from binexport.utils.logging import get_logger

log = get_logger(__name__)

_BODYLESS_TYPES = (FunctionType.LIBRARY, FunctionType.IMPORTED, FunctionType.INVALID)


@dataclass
class ValidationReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    flow_graphs_checked: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors


def validate_container(reader: ContainerReader) -> ValidationReport:
    """Check the call graph, flow graphs and Meta counts against each other.

    Meta and Callgraph decode errors propagate; flow graph decode errors are
    collected so every other record still gets checked.
    """
    report = ValidationReport()
    meta = reader.meta()
    callgraph = reader.callgraph()

    vertices = {}
    for v in callgraph.vertices:
        if v.address in vertices:
            report.errors.append(f"duplicate call graph vertex {v.address:#x}")
        vertices[v.address] = v

    for e in callgraph.edges:
        if e.source_function_address not in vertices:
            report.errors.append(
                f"call edge {e.source_instruction_address:#x} -> {e.target_address:#x} "
                f"has unknown source function {e.source_function_address:#x}"
            )

    instructions = blocks = edges = 0
    for i in range(reader.flowgraph_count()):
        try:
            flowgraph = reader.flowgraph_at(i)
        except RecordDecodeError as exc:
            report.errors.append(str(exc))
            continue
        report.flow_graphs_checked += 1
        instructions += flowgraph.num_instructions
        blocks += len(flowgraph.basic_blocks)
        edges += len(flowgraph.edges)

        vertex = vertices.get(flowgraph.address)
        if vertex is None:
            report.errors.append(f"flow graph {flowgraph.address:#x} has no call graph vertex")
        elif vertex.function_type in _BODYLESS_TYPES:
            report.warnings.append(
                f"flow graph {flowgraph.address:#x} belongs to a "
                f"{vertex.function_type.name} function"
            )

    expected = {
        "num_functions": reader.flowgraph_count(),
        "num_basicblocks": blocks,
        "num_instructions": instructions,
        "num_edges": edges,
    }
    if report.flow_graphs_checked == reader.flowgraph_count():
        for name, actual in expected.items():
            declared = getattr(meta, name)
            if declared is not None and declared != actual:
                report.warnings.append(f"meta {name} is {declared}, flow graphs hold {actual}")

    log.info(
        "container_validated",
        errors=len(report.errors),
        warnings=len(report.warnings),
        flow_graphs=report.flow_graphs_checked,
    )
    return report
