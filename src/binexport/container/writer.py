"""Streaming container writer.

Records are appended one at a time behind a zeroed placeholder header; only
the ``(address, offset)`` index is kept in memory. Once the last flow graph is
written the header is patched in place.
"""

from __future__ import annotations

import os
from collections.abc import Sized
from pathlib import Path
from typing import BinaryIO, Callable, Iterable, Union

from binexport.codec import (
    EncodedFlowgraph,
    encode_callgraph,
    encode_meta,
    prepare_flowgraph,
)
from binexport.container.header import MAX_OFFSET, ContainerIndex, IndexEntry, header_size
from binexport.errors import EncodeInvariantViolation, IOFailure
from binexport.records import Callgraph, Flowgraph, Meta
from binexport.utils.logging import get_logger

log = get_logger(__name__)

FlowgraphSource = Iterable[Union[Flowgraph, EncodedFlowgraph]]


class ContainerWriter:
    """Writes one container to a seekable binary stream."""

    def __init__(
        self,
        stream: BinaryIO,
        on_flowgraph: Callable[[int], None] | None = None,
    ) -> None:
        self._stream = stream
        self._on_flowgraph = on_flowgraph

    def write(
        self,
        meta: Meta,
        callgraph: Callgraph,
        flowgraphs: FlowgraphSource,
        num_flow_graphs: int | None = None,
    ) -> ContainerIndex:
        """Write a complete container and return its index.

        ``num_flow_graphs`` sizes the header up front; it may be omitted when
        ``flowgraphs`` supports ``len()``.
        """
        count = self._resolve_count(flowgraphs, num_flow_graphs)
        meta_payload = encode_meta(meta)
        callgraph_payload = encode_callgraph(callgraph)

        try:
            start = self._stream.tell()
            offsets: list[int] = []

            def begin() -> None:
                # Deferred until the first flow graph encodes cleanly, so a
                # rejected record leaves the stream untouched.
                self._stream.write(b"\x00" * header_size(count))
                offsets.append(self._append(start, meta_payload))
                offsets.append(self._append(start, callgraph_payload))

            entries: list[IndexEntry] = []
            seen: set[int] = set()
            for item in flowgraphs:
                encoded = item if isinstance(item, EncodedFlowgraph) else prepare_flowgraph(item)
                if not offsets:
                    begin()
                if len(entries) >= count:
                    raise EncodeInvariantViolation(
                        f"more flow graphs than the {count} declared"
                    )
                if encoded.address in seen:
                    raise EncodeInvariantViolation(
                        f"duplicate flow graph address {encoded.address:#x}"
                    )
                seen.add(encoded.address)
                offset = self._append(start, encoded.payload)
                entries.append(IndexEntry(encoded.address, offset))
                if self._on_flowgraph is not None:
                    self._on_flowgraph(encoded.address)

            if len(entries) != count:
                raise EncodeInvariantViolation(
                    f"declared {count} flow graphs but received {len(entries)}"
                )
            if not offsets:
                begin()

            meta_offset, call_graph_offset = offsets
            index = ContainerIndex(meta_offset, call_graph_offset, tuple(entries))
            end = self._stream.tell()
            self._stream.seek(start)
            self._stream.write(index.pack())
            self._stream.seek(end)
            self._stream.flush()
        except OSError as exc:
            raise IOFailure(f"writing container failed: {exc}") from exc

        log.debug(
            "container_written",
            flow_graphs=count,
            size=end - start,
        )
        return index

    def _append(self, start: int, payload: bytes) -> int:
        offset = self._stream.tell() - start
        if offset > MAX_OFFSET:
            raise EncodeInvariantViolation(
                f"record offset {offset} does not fit the 32-bit header field"
            )
        self._stream.write(payload)
        return offset

    @staticmethod
    def _resolve_count(flowgraphs: FlowgraphSource, num_flow_graphs: int | None) -> int:
        if num_flow_graphs is not None:
            if num_flow_graphs < 0:
                raise EncodeInvariantViolation("number of flow graphs cannot be negative")
            return num_flow_graphs
        if isinstance(flowgraphs, Sized):
            return len(flowgraphs)
        raise EncodeInvariantViolation(
            "number of flow graphs must be given when streaming from an iterator"
        )


def write_container(
    path: str | Path,
    meta: Meta,
    callgraph: Callgraph,
    flowgraphs: FlowgraphSource,
    num_flow_graphs: int | None = None,
    on_flowgraph: Callable[[int], None] | None = None,
) -> ContainerIndex:
    """Write a container file, removing the partial file on any failure."""
    path = Path(path)
    try:
        with open(path, "wb") as f:
            index = ContainerWriter(f, on_flowgraph).write(
                meta, callgraph, flowgraphs, num_flow_graphs
            )
    except OSError as exc:
        _discard(path)
        if isinstance(exc, IOFailure):
            raise
        raise IOFailure(f"cannot write {path}: {exc}") from exc
    except BaseException:
        _discard(path)
        raise

    log.info("container_written", path=str(path), flow_graphs=index.num_flow_graphs)
    return index


def _discard(path: Path) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
