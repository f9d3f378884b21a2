"""Pipeline orchestration: scanner -> packer -> writer pool."""

import logging
import time
import uuid
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import anyio
from anyio import to_thread

from sqlsplitter.config import SplitterConfig
from sqlsplitter.exceptions import InvalidConfigurationError, SQLSplitterError, WriteFailedError
from sqlsplitter.naming import ChunkNaming
from sqlsplitter.packer import Chunk, ChunkPacker
from sqlsplitter.progress import ProgressSnapshot, ProgressState
from sqlsplitter.scanner import scan
from sqlsplitter.source import InputSource
from sqlsplitter.utils.logging import get_logger, log_with_context, set_run_id
from sqlsplitter.writer import ChunkWriterPool

__all__ = ("ProgressReporter", "SQLSplitter", "SplitResult", "split_file")

logger = get_logger("splitter")

ProgressReporter = Callable[[ProgressSnapshot], None]


@dataclass(frozen=True, slots=True)
class SplitResult:
    """Outcome of a successful split run."""

    files: "tuple[Path, ...]"
    input_size: int
    statements: int
    chunks_written: int
    bytes_written: int
    oversized_chunks: int
    elapsed: float

    @property
    def file_count(self) -> int:
        return len(self.files)


class SQLSplitter:
    """Splits one SQL script into size-bounded chunk files.

    Scanning and packing are sequential and run one chunk at a time in a worker
    thread, which keeps the event loop free to drive the writer pool. The first
    fatal error from any stage ends the run. Chunk files that were already
    completed stay on disk.
    """

    __slots__ = ("config",)

    def __init__(self, config: SplitterConfig) -> None:
        self.config = config

    async def run(self, reporter: Optional[ProgressReporter] = None) -> SplitResult:
        """Run the split.

        Args:
            reporter: Called with a progress snapshot every ``progress_interval`` seconds and once at the end.

        Raises:
            InvalidConfigurationError: The configuration is out of range.
            InputError: The input cannot be opened.
            UnterminatedLiteralError: The script ends inside a literal or block comment.
            OversizedStatementError: A statement is too large under the ``error`` policy.
            OutputError: A chunk file collides with an existing file or cannot be written.

        Returns:
            Summary of the files written.
        """
        config = self.config
        config.validate()
        set_run_id(uuid.uuid4().hex[:12])
        started = time.perf_counter()

        with InputSource.open(config.input_path) as source:
            output_dir = self._prepare_output_dir()
            progress = ProgressState(source.size)
            log_with_context(
                logger,
                logging.INFO,
                f"Splitting {source.name} ({source.size} bytes) into {output_dir}",
                max_size_kb=config.max_size_kb,
                concurrency=config.concurrency,
            )
            naming = ChunkNaming.for_input(
                source.size,
                config.max_size_bytes,
                prefix=config.prefix,
                suffix=config.suffix,
                min_digits=config.min_digits,
            )
            statements = scan(source, backslash_escapes=config.backslash_escapes, progress=progress)
            chunks = ChunkPacker(config.max_size_bytes, oversized=config.oversized, progress=progress).pack(
                statements
            )
            pool = ChunkWriterPool(
                source, output_dir, concurrency=config.concurrency, naming=naming, progress=progress
            )

            error: Optional[SQLSplitterError] = None
            files: list[Path] = []
            oversized = 0
            async with anyio.create_task_group() as task_group:
                if reporter is not None:
                    task_group.start_soon(self._report_progress, progress, reporter)
                try:
                    files, oversized = await self._pump(chunks, pool)
                    progress.scanned_to(source.size)
                except SQLSplitterError as exc:
                    error = exc
                finally:
                    task_group.cancel_scope.cancel()

            if reporter is not None:
                reporter(progress.snapshot())

            if error is not None:
                self._discard_partials(pool)
                logger.error("Split of %s failed: %s", source.name, error)
                raise error

            snapshot = progress.snapshot()
            result = SplitResult(
                files=tuple(files),
                input_size=source.size,
                statements=snapshot.statements_seen,
                chunks_written=snapshot.chunks_written,
                bytes_written=snapshot.bytes_written,
                oversized_chunks=oversized,
                elapsed=time.perf_counter() - started,
            )

        logger.info(
            "Split %s into %d files (%d statements) in %.2fs",
            config.input_path,
            result.file_count,
            result.statements,
            result.elapsed,
        )
        return result

    async def _pump(self, chunks: Iterator[Chunk], pool: ChunkWriterPool) -> "tuple[list[Path], int]":
        oversized = 0
        async with pool:
            while (chunk := await to_thread.run_sync(next, chunks, None)) is not None:
                oversized += chunk.oversized
                await pool.submit(chunk)
            files = await pool.drain()
        return files, oversized

    def _prepare_output_dir(self) -> Path:
        output_dir = self.config.output_dir
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except FileExistsError as exc:
            msg = f"Output path exists and is not a directory: {output_dir}"
            raise InvalidConfigurationError(msg) from exc
        except OSError as exc:
            raise WriteFailedError(output_dir, exc) from exc
        return output_dir

    def _discard_partials(self, pool: ChunkWriterPool) -> None:
        if self.config.keep_partial:
            for path in pool.partial_paths:
                logger.warning("Keeping partial file %s", path)
            return
        for path in pool.partial_paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Could not remove partial file %s: %s", path, exc)
            else:
                logger.debug("Removed partial file %s", path)

    async def _report_progress(self, progress: ProgressState, reporter: ProgressReporter) -> None:
        while True:
            reporter(progress.snapshot())
            await anyio.sleep(self.config.progress_interval)


def split_file(config: SplitterConfig, *, reporter: Optional[ProgressReporter] = None) -> SplitResult:
    """Split a SQL script synchronously.

    Args:
        config: Run settings.
        reporter: Optional progress callback.

    Returns:
        Summary of the files written.
    """
    return anyio.run(SQLSplitter(config).run, reporter)
