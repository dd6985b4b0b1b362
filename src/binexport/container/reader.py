"""Random-access container reader.

Only the header and offset index are read up front. Every record access seeks
to the record's offset and reads up to the next record (or EOF), so at most one
flow graph is resident per call.
"""

from __future__ import annotations

import bisect
import threading
from pathlib import Path
from typing import BinaryIO, Iterator

from binexport.codec import decode_callgraph, decode_flowgraph, decode_meta
from binexport.container.header import (
    PREFIX_SIZE,
    ContainerIndex,
    header_size,
    unpack_entries,
    unpack_prefix,
)
from binexport.errors import (
    FlowgraphNotFoundError,
    IOFailure,
    RecordDecodeError,
    StructuralDecodeError,
)
from binexport.records import Callgraph, Flowgraph, Meta
from binexport.utils.logging import get_logger

log = get_logger(__name__)

_META = -2
_CALLGRAPH = -1


class ContainerReader:
    """Reads records from a container without loading the whole file.

    The offset index keeps the file's order for :meth:`flowgraph_at`; a copy
    sorted by address is built on load so :meth:`flowgraph_for_address` is a
    binary search even for producers that wrote the index unsorted.
    """

    def __init__(self, stream: BinaryIO, strict_markup: bool = False) -> None:
        self._stream = stream
        self._strict_markup = strict_markup
        self._lock = threading.Lock()
        self._owns_stream = False
        self._size = self._measure()
        self.index = self._read_index()

        by_address = sorted(
            (entry.address, i) for i, entry in enumerate(self.index.entries)
        )
        self._sorted_addresses = [address for address, _ in by_address]
        self._sorted_positions = [i for _, i in by_address]

        # Records are laid out meta, callgraph, flow graphs in index order, so
        # ties on offset are broken by that order and give empty records.
        layout = [(self.index.meta_offset, _META), (self.index.call_graph_offset, _CALLGRAPH)]
        layout.extend((e.offset, i) for i, e in enumerate(self.index.entries))
        layout.sort()
        self._ends: dict[int, int] = {}
        for pos, (_, key) in enumerate(layout):
            self._ends[key] = layout[pos + 1][0] if pos + 1 < len(layout) else self._size

    @classmethod
    def open(cls, path: str | Path, strict_markup: bool = False) -> ContainerReader:
        try:
            stream = open(path, "rb")
        except OSError as exc:
            raise IOFailure(f"cannot open {path}: {exc}") from exc
        try:
            reader = cls(stream, strict_markup=strict_markup)
        except BaseException:
            stream.close()
            raise
        reader._owns_stream = True
        return reader

    def close(self) -> None:
        if self._owns_stream:
            self._stream.close()

    def __enter__(self) -> ContainerReader:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -- header --

    def _measure(self) -> int:
        try:
            with self._lock:
                return self._stream.seek(0, 2)
        except OSError as exc:
            raise IOFailure(f"cannot determine container size: {exc}") from exc

    def _read_index(self) -> ContainerIndex:
        meta_offset, call_graph_offset, count = unpack_prefix(self._read_at(0, PREFIX_SIZE))
        end = header_size(count)
        if end > self._size:
            raise StructuralDecodeError(
                f"header declares {count} flow graphs ({end} bytes) "
                f"but the file has {self._size} bytes"
            )
        entries = unpack_entries(self._read_at(PREFIX_SIZE, end - PREFIX_SIZE), count)

        for name, offset in (("meta", meta_offset), ("callgraph", call_graph_offset)):
            if not end <= offset <= self._size:
                raise StructuralDecodeError(
                    f"{name} offset {offset} outside [{end}, {self._size}]"
                )
        for i, entry in enumerate(entries):
            if entry.offset < end:
                raise StructuralDecodeError(
                    f"flow graph #{i} offset {entry.offset} points into the header"
                )
        return ContainerIndex(meta_offset, call_graph_offset, entries)

    # -- raw access --

    def _read_at(self, offset: int, size: int) -> bytes:
        try:
            with self._lock:
                self._stream.seek(offset)
                data = self._stream.read(size)
        except OSError as exc:
            raise IOFailure(f"read of {size} bytes at {offset} failed: {exc}") from exc
        if len(data) < size and offset + size <= self._size:
            raise IOFailure(f"short read at {offset}: {len(data)} of {size} bytes")
        return data

    def _record_bytes(self, kind: str, key: int, offset: int, **context) -> bytes:
        if offset > self._size:
            raise RecordDecodeError(
                kind,
                f"offset past end of file ({self._size} bytes), container truncated",
                offset=offset,
                **context,
            )
        end = min(self._ends[key], self._size)
        return self._read_at(offset, end - offset)

    # -- records --

    def meta(self) -> Meta:
        offset = self.index.meta_offset
        try:
            return decode_meta(self._record_bytes("meta", _META, offset))
        except RecordDecodeError as exc:
            raise RecordDecodeError("meta", exc.detail, offset=offset) from exc

    def callgraph(self) -> Callgraph:
        offset = self.index.call_graph_offset
        try:
            return decode_callgraph(self._record_bytes("callgraph", _CALLGRAPH, offset))
        except RecordDecodeError as exc:
            raise RecordDecodeError("callgraph", exc.detail, offset=offset) from exc

    def flowgraph_count(self) -> int:
        return self.index.num_flow_graphs

    def flowgraph_addresses(self) -> list[int]:
        """Entry addresses in index (file) order."""
        return [e.address for e in self.index.entries]

    def flowgraph_at(self, index: int) -> Flowgraph:
        if not 0 <= index < self.index.num_flow_graphs:
            raise IndexError(f"flow graph index {index} out of range")
        entry = self.index.entries[index]
        context = {"index": index, "address": entry.address}
        try:
            data = self._record_bytes("flowgraph", index, entry.offset, **context)
            flowgraph = decode_flowgraph(data, strict_markup=self._strict_markup)
        except RecordDecodeError as exc:
            if exc.index is not None:
                raise
            raise RecordDecodeError(
                "flowgraph", exc.detail, offset=entry.offset, **context
            ) from exc
        if flowgraph.address != entry.address:
            raise RecordDecodeError(
                "flowgraph",
                f"payload entry point {flowgraph.address:#x} does not match the index",
                offset=entry.offset,
                **context,
            )
        return flowgraph

    def flowgraph_for_address(self, address: int) -> Flowgraph:
        pos = bisect.bisect_left(self._sorted_addresses, address)
        if pos == len(self._sorted_addresses) or self._sorted_addresses[pos] != address:
            raise FlowgraphNotFoundError(address)
        return self.flowgraph_at(self._sorted_positions[pos])

    def has_flowgraph(self, address: int) -> bool:
        pos = bisect.bisect_left(self._sorted_addresses, address)
        return pos < len(self._sorted_addresses) and self._sorted_addresses[pos] == address

    def iter_flowgraphs(self) -> Iterator[Flowgraph]:
        """Yield flow graphs in index order, decoding one at a time."""
        for i in range(self.index.num_flow_graphs):
            yield self.flowgraph_at(i)
