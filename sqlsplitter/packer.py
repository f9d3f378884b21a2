"""Greedy packing of statement spans into size-bounded chunks."""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from sqlsplitter.config import OversizedPolicy
from sqlsplitter.exceptions import InvalidConfigurationError, OversizedStatementError
from sqlsplitter.utils.logging import get_logger

if TYPE_CHECKING:
    from sqlsplitter.progress import ProgressState
    from sqlsplitter.scanner import Statement

__all__ = ("Chunk", "ChunkPacker", "pack")

logger = get_logger("packer")


@dataclass(frozen=True, slots=True)
class Chunk:
    """An ordered batch of consecutive statements destined for one output file."""

    index: int
    statements: "tuple[Statement, ...]"
    total_size: int
    oversized: bool = False

    @property
    def start(self) -> int:
        return self.statements[0].start

    @property
    def end(self) -> int:
        return self.statements[-1].end

    def __len__(self) -> int:
        return len(self.statements)


class ChunkPacker:
    """Accumulates statements until the next one would push the chunk over ``max_size``.

    There is no look-ahead and no rebalancing. A statement is never split: one that
    alone exceeds ``max_size`` either becomes its own oversized chunk or fails the run,
    depending on the oversized policy.
    """

    __slots__ = ("_next_index", "max_size", "oversized", "progress")

    def __init__(
        self,
        max_size: int,
        *,
        oversized: OversizedPolicy = OversizedPolicy.ALLOW,
        progress: "Optional[ProgressState]" = None,
    ) -> None:
        if isinstance(max_size, bool) or not isinstance(max_size, int) or max_size <= 0:
            msg = f"max_size must be a positive number of bytes, got {max_size!r}"
            raise InvalidConfigurationError(msg)
        self.max_size = max_size
        self.oversized = OversizedPolicy(oversized)
        self.progress = progress
        self._next_index = 0

    def pack(self, statements: "Iterable[Statement]") -> Iterator[Chunk]:
        """Group statements into chunks, preserving their order.

        Args:
            statements: Statement spans in script order.

        Raises:
            OversizedStatementError: A statement exceeds ``max_size`` under ``OversizedPolicy.ERROR``.

        Yields:
            Chunks with consecutive indexes starting at 0.
        """
        batch: list[Statement] = []
        batch_size = 0

        for statement in statements:
            if self.progress is not None:
                self.progress.add_statement()
            size = statement.size

            if batch_size + size <= self.max_size:
                batch.append(statement)
                batch_size += size
                continue

            if batch:
                yield self._make_chunk(batch, batch_size)
                batch, batch_size = [], 0

            if size > self.max_size:
                yield self._oversized_chunk(statement)
                continue

            batch.append(statement)
            batch_size = size

        if batch:
            yield self._make_chunk(batch, batch_size)

    def _make_chunk(self, batch: "list[Statement]", size: int, oversized: bool = False) -> Chunk:
        chunk = Chunk(index=self._next_index, statements=tuple(batch), total_size=size, oversized=oversized)
        self._next_index += 1
        logger.debug("Packed chunk %d: %d statements, %d bytes", chunk.index, len(chunk), chunk.total_size)
        return chunk

    def _oversized_chunk(self, statement: "Statement") -> Chunk:
        if self.oversized is OversizedPolicy.ERROR:
            logger.error(
                "Statement at byte %d is %d bytes, over the %d byte limit", statement.start, statement.size, self.max_size
            )
            raise OversizedStatementError(statement.start, statement.size, self.max_size)
        logger.warning(
            "Statement at byte %d is %d bytes, over the %d byte limit; writing it as its own chunk",
            statement.start,
            statement.size,
            self.max_size,
        )
        return self._make_chunk([statement], statement.size, oversized=True)


def pack(
    statements: "Iterable[Statement]",
    max_size: int,
    *,
    oversized: OversizedPolicy = OversizedPolicy.ALLOW,
    progress: "Optional[ProgressState]" = None,
) -> Iterator[Chunk]:
    """Pack statements into chunks of at most ``max_size`` bytes.

    Args:
        statements: Statement spans in script order.
        max_size: Chunk ceiling in bytes.
        oversized: What to do with a single statement larger than ``max_size``.
        progress: Optional counters updated for every statement seen.

    Returns:
        Lazy iterator of chunks in script order.
    """
    return ChunkPacker(max_size, oversized=oversized, progress=progress).pack(statements)
