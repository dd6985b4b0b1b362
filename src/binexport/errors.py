"""Exception taxonomy for encoding, writing and reading containers."""

from __future__ import annotations


class BinExportError(Exception):
    """Base class for all errors raised by binexport."""


class EncodeInvariantViolation(BinExportError, ValueError):
    """A record violates a model invariant and cannot be encoded."""


class IOFailure(BinExportError, OSError):
    """The backing store failed to read, write or seek."""


class StructuralDecodeError(BinExportError):
    """The container header or offset index cannot be trusted."""


class RecordDecodeError(BinExportError):
    """A single record could not be decoded.

    Carries enough context to report which record failed; other records in the
    same container stay readable.
    """

    def __init__(
        self,
        kind: str,
        detail: str,
        *,
        index: int | None = None,
        address: int | None = None,
        offset: int | None = None,
    ) -> None:
        self.kind = kind
        self.detail = detail
        self.index = index
        self.address = address
        self.offset = offset
        super().__init__(self._describe())

    def _describe(self) -> str:
        where = [self.kind]
        if self.index is not None:
            where.append(f"#{self.index}")
        if self.address is not None:
            where.append(f"@{self.address:#x}")
        if self.offset is not None:
            where.append(f"(offset {self.offset})")
        return f"{' '.join(where)}: {self.detail}"


class MarkupDecodeError(BinExportError, ValueError):
    """Operand markup contains a control byte that is not a known marker."""

    def __init__(self, message: str, position: int) -> None:
        self.position = position
        super().__init__(f"{message} at position {position}")


class FlowgraphNotFoundError(BinExportError, KeyError):
    """No flow graph is stored for the requested entry address."""

    def __init__(self, address: int) -> None:
        self.address = address
        super().__init__(address)

    def __str__(self) -> str:
        return f"no flow graph at {self.address:#x}"
