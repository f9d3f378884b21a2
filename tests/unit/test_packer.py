"""Tests for the greedy chunk packer."""

from __future__ import annotations

import pytest

from sqlsplitter.config import OversizedPolicy
from sqlsplitter.exceptions import InvalidConfigurationError, OversizedStatementError
from sqlsplitter.packer import Chunk, ChunkPacker, pack
from sqlsplitter.progress import ProgressState
from sqlsplitter.scanner import Statement


def spans(*sizes: int) -> list[Statement]:
    """Contiguous statements of the given sizes."""
    statements = []
    offset = 0
    for size in sizes:
        statements.append(Statement(offset, offset + size))
        offset += size
    return statements


def test_all_statements_fit_in_one_chunk() -> None:
    chunks = list(pack(spans(9, 10, 10), max_size=1024))

    assert len(chunks) == 1
    assert chunks[0].index == 0
    assert chunks[0].total_size == 29
    assert len(chunks[0]) == 3
    assert chunks[0].oversized is False


def test_one_statement_per_chunk_when_limit_equals_statement_size() -> None:
    chunks = list(pack(spans(9, 9), max_size=9))

    assert [len(chunk) for chunk in chunks] == [1, 1]
    assert [chunk.index for chunk in chunks] == [0, 1]
    assert all(not chunk.oversized for chunk in chunks)


def test_greedy_accumulation() -> None:
    chunks = list(pack(spans(4, 4, 4, 4, 4), max_size=10))

    assert [chunk.total_size for chunk in chunks] == [8, 8, 4]
    assert [chunk.index for chunk in chunks] == [0, 1, 2]


def test_exact_fit_is_allowed() -> None:
    chunks = list(pack(spans(5, 5, 1), max_size=10))

    assert [chunk.total_size for chunk in chunks] == [10, 1]


def test_chunks_preserve_order_and_contiguity() -> None:
    statements = spans(3, 7, 2, 8, 5, 1, 9)
    chunks = list(pack(statements, max_size=10))

    flattened = [statement for chunk in chunks for statement in chunk.statements]
    assert flattened == statements
    for previous, current in zip(chunks, chunks[1:]):
        assert previous.end == current.start
        assert previous.index + 1 == current.index


def test_size_bound_holds_except_for_oversized_singletons() -> None:
    chunks = list(pack(spans(3, 25, 2, 8, 40, 1, 9), max_size=10))

    for chunk in chunks:
        if chunk.oversized:
            assert len(chunk) == 1
            assert chunk.total_size > 10
        else:
            assert chunk.total_size <= 10


def test_oversized_statement_becomes_its_own_chunk() -> None:
    chunks = list(pack(spans(2, 50, 3), max_size=10))

    assert [chunk.total_size for chunk in chunks] == [2, 50, 3]
    assert [chunk.oversized for chunk in chunks] == [False, True, False]


def test_oversized_statement_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level("WARNING", logger="sqlsplitter"):
        list(pack(spans(50), max_size=10))

    assert "over the 10 byte limit" in caplog.text


def test_oversized_error_policy() -> None:
    chunks = pack(spans(2, 50), max_size=10, oversized=OversizedPolicy.ERROR)

    first = next(chunks)
    assert first.total_size == 2
    with pytest.raises(OversizedStatementError) as exc_info:
        next(chunks)

    assert exc_info.value.offset == 2
    assert exc_info.value.size == 50
    assert exc_info.value.max_size == 10


def test_policy_accepts_plain_string() -> None:
    with pytest.raises(OversizedStatementError):
        list(ChunkPacker(10, oversized="error").pack(spans(11)))  # type: ignore[arg-type]


def test_no_statements_no_chunks() -> None:
    assert list(pack([], max_size=10)) == []


@pytest.mark.parametrize("max_size", [0, -1, True])
def test_invalid_max_size(max_size: int) -> None:
    with pytest.raises(InvalidConfigurationError):
        pack(spans(1), max_size=max_size)


def test_progress_counts_statements() -> None:
    progress = ProgressState()
    list(pack(spans(1, 2, 3), max_size=4, progress=progress))

    assert progress.statements_seen == 3


def test_chunk_boundaries() -> None:
    chunk = Chunk(index=0, statements=(Statement(5, 9), Statement(9, 20)), total_size=15)

    assert chunk.start == 5
    assert chunk.end == 20
