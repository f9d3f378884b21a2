"""End-to-end tests for the split pipeline."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import BinaryIO

import pytest

from sqlsplitter.config import SplitterConfig
from sqlsplitter.exceptions import (
    InputNotFoundError,
    InvalidConfigurationError,
    OutputCollisionError,
    OversizedStatementError,
    UnterminatedLiteralError,
    WriteFailedError,
)
from sqlsplitter.packer import Chunk
from sqlsplitter.progress import ProgressSnapshot
from sqlsplitter.splitter import SQLSplitter, split_file
from sqlsplitter.utils.logging import get_run_id
from sqlsplitter.writer import ChunkWriterPool

MakeConfig = Callable[..., SplitterConfig]


def read_chunks(output_dir: Path) -> list[bytes]:
    return [path.read_bytes() for path in sorted(output_dir.glob("split_*.sql"))]


def kilobyte_statement(fill: str, leading: str = "") -> str:
    """A statement of exactly 1024 bytes, including ``leading``."""
    return f"{leading}SELECT '{fill * (1024 - len(leading) - 10)}';"


class TestSplitFile:
    def test_small_script_yields_one_file(self, make_config: MakeConfig, output_dir: Path) -> None:
        script = "SELECT 1; SELECT 2; SELECT 3;"
        result = split_file(make_config(script, max_size_kb=1))

        assert result.file_count == 1
        assert result.statements == 3
        assert result.files == (output_dir / "split_001.sql",)
        assert read_chunks(output_dir) == [script.encode()]

    def test_statement_at_the_limit_gets_its_own_file(self, make_config: MakeConfig, output_dir: Path) -> None:
        first = kilobyte_statement("a")
        second = kilobyte_statement("b", leading="\n")
        assert len(first) == len(second) == 1024

        result = split_file(make_config(first + second, max_size_kb=1))

        assert result.file_count == 2
        assert result.oversized_chunks == 0
        assert read_chunks(output_dir) == [first.encode(), second.encode()]

    def test_concatenation_reproduces_input(self, make_config: MakeConfig, output_dir: Path) -> None:
        script = "".join(
            f"-- row {n}\nINSERT INTO notes VALUES ({n}, 'semi;colon {n}', $body${'x' * n};$body$);\n"
            for n in range(400)
        )
        script += "/* trailing; comment */\n"

        result = split_file(make_config(script, max_size_kb=2, concurrency=3))

        assert result.file_count > 1
        assert b"".join(read_chunks(output_dir)) == script.encode()
        assert result.bytes_written == len(script.encode())
        for chunk in read_chunks(output_dir):
            assert len(chunk) <= 2 * 1024

    def test_oversized_statement_is_written_alone(self, make_config: MakeConfig, output_dir: Path) -> None:
        big = f"INSERT INTO blobs VALUES ('{'z' * 3000}');"
        result = split_file(make_config(f"SELECT 1;{big}SELECT 2;", max_size_kb=1))

        assert result.oversized_chunks == 1
        assert read_chunks(output_dir) == [b"SELECT 1;", big.encode(), b"SELECT 2;"]

    def test_oversized_statement_error_policy(self, make_config: MakeConfig) -> None:
        big = f"INSERT INTO blobs VALUES ('{'z' * 3000}');"

        with pytest.raises(OversizedStatementError):
            split_file(make_config(big, max_size_kb=1, oversized="error"))

    def test_empty_script_writes_nothing(self, make_config: MakeConfig, output_dir: Path) -> None:
        result = split_file(make_config("  \n-- nothing here\n"))

        assert result.file_count == 0
        assert output_dir.is_dir()
        assert list(output_dir.iterdir()) == []

    def test_custom_names(self, make_config: MakeConfig, output_dir: Path) -> None:
        result = split_file(make_config("SELECT 1;", prefix="part-", suffix=".pgsql", min_digits=5))

        assert [path.name for path in result.files] == ["part-00001.pgsql"]

    def test_reporter_sees_final_progress(self, make_config: MakeConfig) -> None:
        snapshots: list[ProgressSnapshot] = []
        script = "SELECT 1; SELECT 2;"

        split_file(make_config(script), reporter=snapshots.append)

        assert snapshots
        final = snapshots[-1]
        assert final.total_bytes == len(script)
        assert final.bytes_scanned == len(script)
        assert final.bytes_written == len(script)
        assert final.statements_seen == 2
        assert final.chunks_written == 1
        assert final.fraction == 1.0


class TestSplitFailures:
    def test_unterminated_literal_writes_no_truncated_files(self, make_config: MakeConfig, output_dir: Path) -> None:
        with pytest.raises(UnterminatedLiteralError) as exc_info:
            split_file(make_config("SELECT 1;\nSELECT 'never closed;\nSELECT 2;"))

        assert exc_info.value.offset == 17
        assert exc_info.value.line == 2
        assert list(output_dir.iterdir()) == []

    def test_missing_input(self, tmp_path: Path, output_dir: Path) -> None:
        config = SplitterConfig(input_path=tmp_path / "missing.sql", output_dir=output_dir)

        with pytest.raises(InputNotFoundError):
            split_file(config)

        assert not output_dir.exists()

    def test_invalid_configuration_before_io(self, make_config: MakeConfig, output_dir: Path) -> None:
        with pytest.raises(InvalidConfigurationError):
            split_file(make_config("SELECT 1;", max_size_kb=0))

        assert not output_dir.exists()

    def test_output_path_is_a_file(self, make_config: MakeConfig, output_dir: Path) -> None:
        config = make_config("SELECT 1;")
        output_dir.write_text("not a directory")

        with pytest.raises(InvalidConfigurationError, match="not a directory"):
            split_file(config)

    def test_existing_output_is_not_overwritten(self, make_config: MakeConfig, output_dir: Path) -> None:
        output_dir.mkdir()
        (output_dir / "split_001.sql").write_bytes(b"previous run")

        with pytest.raises(OutputCollisionError):
            split_file(make_config("SELECT 1;"))

        assert (output_dir / "split_001.sql").read_bytes() == b"previous run"

    def test_file_name_too_long(self, make_config: MakeConfig, output_dir: Path) -> None:
        with pytest.raises(WriteFailedError) as exc_info:
            split_file(make_config("SELECT 1; SELECT 2;", prefix="a" * 300))

        assert isinstance(exc_info.value.cause, OSError)
        assert exc_info.value.path.name.startswith("a" * 300)
        assert list(output_dir.iterdir()) == []

    @pytest.mark.parametrize("keep_partial", [False, True])
    def test_write_failure_handles_partial_files(
        self, make_config: MakeConfig, output_dir: Path, monkeypatch: pytest.MonkeyPatch, keep_partial: bool
    ) -> None:
        original = ChunkWriterPool._write_statements

        def failing(self: ChunkWriterPool, fh: BinaryIO, chunk: Chunk) -> None:
            if chunk.index == 1:
                fh.write(b"SELECT")
                raise OSError(5, "Input/output error")
            original(self, fh, chunk)

        monkeypatch.setattr(ChunkWriterPool, "_write_statements", failing)
        script = kilobyte_statement("a") + kilobyte_statement("b") + kilobyte_statement("c")

        with pytest.raises(WriteFailedError) as exc_info:
            split_file(make_config(script, max_size_kb=1, concurrency=1, keep_partial=keep_partial))

        partial = output_dir / ".split_002.sql.partial"
        assert exc_info.value.partial_path == partial
        assert partial.exists() is keep_partial
        assert not (output_dir / "split_002.sql").exists()
        assert not (output_dir / "split_003.sql").exists()
        assert (output_dir / "split_001.sql").read_bytes() == kilobyte_statement("a").encode()


@pytest.mark.anyio
class TestSQLSplitter:
    async def test_run_in_event_loop(self, make_config: MakeConfig, output_dir: Path) -> None:
        result = await SQLSplitter(make_config("SELECT 1; SELECT 2;", concurrency=1)).run()

        assert result.file_count == 1
        assert result.input_size == 19
        assert result.elapsed >= 0
        assert get_run_id() is not None

    async def test_periodic_progress_reports(self, make_config: MakeConfig) -> None:
        calls: list[ProgressSnapshot] = []
        script = "".join(f"INSERT INTO t VALUES ({n});\n" for n in range(2000))

        await SQLSplitter(make_config(script, max_size_kb=1, progress_interval=0.001)).run(calls.append)

        assert len(calls) >= 2
        written = [snapshot.bytes_written for snapshot in calls]
        assert written == sorted(written)
        assert written[-1] == len(script)
