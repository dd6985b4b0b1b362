"""proto2 message types for the container records.

The schema is assembled as a ``FileDescriptorProto`` at import time and
registered in a private descriptor pool, so no generated ``_pb2`` module is
needed. Field numbers, labels and defaults match ``binexport.proto``
(package ``BinExport``) so payloads stay readable by other BinExport tools.
"""

from __future__ import annotations

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

from binexport.records import EdgeType, FunctionType

_F = descriptor_pb2.FieldDescriptorProto

OPTIONAL = _F.LABEL_OPTIONAL
REQUIRED = _F.LABEL_REQUIRED
REPEATED = _F.LABEL_REPEATED

PACKAGE = "BinExport"


def _field(msg, name, number, ftype, label=OPTIONAL, type_name=None, default=None):
    field = msg.field.add()
    field.name = name
    field.number = number
    field.type = ftype
    field.label = label
    if type_name is not None:
        field.type_name = type_name
    if default is not None:
        field.default_value = default
    return field


def _enum(msg, name, values):
    enum = msg.enum_type.add()
    enum.name = name
    for member in values:
        value = enum.value.add()
        value.name = member.name
        value.number = int(member)
    return enum


def _meta(fdp: descriptor_pb2.FileDescriptorProto) -> None:
    meta = fdp.message_type.add()
    meta.name = "Meta"
    _field(meta, "input_binary", 1, _F.TYPE_STRING)
    _field(meta, "input_hash", 2, _F.TYPE_BYTES)
    _field(meta, "input_address_space", 3, _F.TYPE_UINT32)
    _field(meta, "architecture_name", 4, _F.TYPE_STRING)
    _field(meta, "max_mnemonic_len", 5, _F.TYPE_UINT32)
    _field(meta, "num_instructions", 6, _F.TYPE_UINT32)
    _field(meta, "num_functions", 7, _F.TYPE_UINT32)
    _field(meta, "num_basicblocks", 8, _F.TYPE_UINT32)
    _field(meta, "num_edges", 9, _F.TYPE_UINT32)


def _callgraph(fdp: descriptor_pb2.FileDescriptorProto) -> None:
    callgraph = fdp.message_type.add()
    callgraph.name = "Callgraph"

    vertex = callgraph.nested_type.add()
    vertex.name = "Vertex"
    _field(vertex, "address", 1, _F.TYPE_UINT64, REQUIRED)
    _field(vertex, "prime", 2, _F.TYPE_UINT64, REQUIRED)
    _enum(vertex, "FunctionType", FunctionType)
    _field(
        vertex,
        "function_type",
        3,
        _F.TYPE_ENUM,
        type_name=f".{PACKAGE}.Callgraph.Vertex.FunctionType",
        default=FunctionType.NORMAL.name,
    )
    _field(vertex, "has_real_name", 4, _F.TYPE_BOOL, default="false")
    _field(vertex, "mangled_name", 5, _F.TYPE_STRING)
    _field(vertex, "demangled_name", 6, _F.TYPE_STRING)

    edge = callgraph.nested_type.add()
    edge.name = "Edge"
    _field(edge, "source_function_address", 1, _F.TYPE_UINT64, REQUIRED)
    _field(edge, "source_instruction_address", 2, _F.TYPE_UINT64, REQUIRED)
    _field(edge, "target_address", 3, _F.TYPE_UINT64, REQUIRED)

    _field(callgraph, "vertices", 1, _F.TYPE_MESSAGE, REPEATED, f".{PACKAGE}.Callgraph.Vertex")
    _field(callgraph, "edges", 2, _F.TYPE_MESSAGE, REPEATED, f".{PACKAGE}.Callgraph.Edge")


def _flowgraph(fdp: descriptor_pb2.FileDescriptorProto) -> None:
    flowgraph = fdp.message_type.add()
    flowgraph.name = "Flowgraph"

    vertex = flowgraph.nested_type.add()
    vertex.name = "Vertex"

    instruction = vertex.nested_type.add()
    instruction.name = "Instruction"
    comment = instruction.nested_type.add()
    comment.name = "Comment"
    _field(comment, "comment", 1, _F.TYPE_STRING, REQUIRED)
    _field(comment, "flags", 2, _F.TYPE_UINT32, REQUIRED)

    _field(instruction, "address", 1, _F.TYPE_UINT64, REQUIRED)
    _field(instruction, "prime", 2, _F.TYPE_UINT32, REQUIRED)
    _field(instruction, "string_reference", 3, _F.TYPE_UINT32, default="0")
    _field(instruction, "mnemonic", 4, _F.TYPE_STRING)
    _field(instruction, "operands", 5, _F.TYPE_STRING)
    _field(instruction, "raw_bytes", 6, _F.TYPE_BYTES)
    _field(instruction, "call_targets", 7, _F.TYPE_UINT64, REPEATED)
    _field(
        instruction,
        "comments",
        8,
        _F.TYPE_MESSAGE,
        REPEATED,
        f".{PACKAGE}.Flowgraph.Vertex.Instruction.Comment",
    )

    _field(vertex, "prime", 1, _F.TYPE_UINT64, REQUIRED)
    _field(
        vertex,
        "instructions",
        2,
        _F.TYPE_MESSAGE,
        REPEATED,
        f".{PACKAGE}.Flowgraph.Vertex.Instruction",
    )

    edge = flowgraph.nested_type.add()
    edge.name = "Edge"
    _field(edge, "source_address", 1, _F.TYPE_UINT64, REQUIRED)
    _field(edge, "target_address", 2, _F.TYPE_UINT64, REQUIRED)
    _enum(edge, "EdgeType", EdgeType)
    _field(
        edge,
        "type",
        3,
        _F.TYPE_ENUM,
        type_name=f".{PACKAGE}.Flowgraph.Edge.EdgeType",
        default=EdgeType.UNCONDITIONAL.name,
    )

    _field(flowgraph, "address", 1, _F.TYPE_UINT64, REQUIRED)
    _field(flowgraph, "vertices", 2, _F.TYPE_MESSAGE, REPEATED, f".{PACKAGE}.Flowgraph.Vertex")
    _field(flowgraph, "edges", 3, _F.TYPE_MESSAGE, REPEATED, f".{PACKAGE}.Flowgraph.Edge")


def build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    fdp = descriptor_pb2.FileDescriptorProto()
    fdp.name = "binexport/binexport.proto"
    fdp.package = PACKAGE
    fdp.syntax = "proto2"
    _meta(fdp)
    _callgraph(fdp)
    _flowgraph(fdp)
    return fdp


_POOL = descriptor_pool.DescriptorPool()
_POOL.AddSerializedFile(build_file_descriptor().SerializeToString())

MetaMessage = message_factory.GetMessageClass(_POOL.FindMessageTypeByName(f"{PACKAGE}.Meta"))
CallgraphMessage = message_factory.GetMessageClass(
    _POOL.FindMessageTypeByName(f"{PACKAGE}.Callgraph")
)
FlowgraphMessage = message_factory.GetMessageClass(
    _POOL.FindMessageTypeByName(f"{PACKAGE}.Flowgraph")
)
