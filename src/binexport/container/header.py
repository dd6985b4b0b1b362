"""Fixed container header and flow graph offset index.

Layout, little endian::

    uint32 meta_offset
    uint32 call_graph_offset
    uint32 num_flow_graphs
    repeated num_flow_graphs times:
        uint64 flow_graph_entry_address
        uint32 flow_graph_offset
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from binexport.errors import StructuralDecodeError

_PREFIX = struct.Struct("<III")
_ENTRY = struct.Struct("<QI")

PREFIX_SIZE = _PREFIX.size
ENTRY_SIZE = _ENTRY.size
MAX_OFFSET = 0xFFFFFFFF


def header_size(num_flow_graphs: int) -> int:
    return PREFIX_SIZE + num_flow_graphs * ENTRY_SIZE


@dataclass(frozen=True)
class IndexEntry:
    address: int
    offset: int


@dataclass(frozen=True)
class ContainerIndex:
    meta_offset: int
    call_graph_offset: int
    entries: tuple[IndexEntry, ...] = ()

    @property
    def num_flow_graphs(self) -> int:
        return len(self.entries)

    @property
    def size(self) -> int:
        return header_size(len(self.entries))

    def pack(self) -> bytes:
        parts = [_PREFIX.pack(self.meta_offset, self.call_graph_offset, len(self.entries))]
        parts.extend(_ENTRY.pack(e.address, e.offset) for e in self.entries)
        return b"".join(parts)


def unpack_prefix(data: bytes) -> tuple[int, int, int]:
    if len(data) < PREFIX_SIZE:
        raise StructuralDecodeError(
            f"header needs {PREFIX_SIZE} bytes, file has {len(data)}"
        )
    return _PREFIX.unpack_from(data, 0)


def unpack_entries(data: bytes, count: int) -> tuple[IndexEntry, ...]:
    if len(data) < count * ENTRY_SIZE:
        raise StructuralDecodeError(
            f"offset index declares {count} entries but only {len(data)} bytes follow"
        )
    return tuple(
        IndexEntry(*_ENTRY.unpack_from(data, i * ENTRY_SIZE)) for i in range(count)
    )
