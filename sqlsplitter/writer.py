"""Bounded-concurrency writer pool that persists chunks to numbered files.

A fixed set of worker tasks pulls write tasks from a zero-buffer memory object
stream, so :meth:`ChunkWriterPool.submit` suspends while every worker is busy.
That is the backpressure that keeps the packer from running ahead of the disk.
The file I/O itself happens in worker threads.
"""

import os
from contextlib import AsyncExitStack
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, BinaryIO, Optional, Union

import anyio
from anyio import to_thread
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mypy_extensions import mypyc_attr

from sqlsplitter.exceptions import (
    InvalidConfigurationError,
    OutputCollisionError,
    OutputError,
    WriteFailedError,
)
from sqlsplitter.naming import ChunkNaming
from sqlsplitter.utils.logging import get_logger

if TYPE_CHECKING:
    from sqlsplitter.packer import Chunk
    from sqlsplitter.progress import ProgressState
    from sqlsplitter.source import InputSource

__all__ = ("ChunkWriterPool", "WriteTask")

logger = get_logger("writer")


@dataclass(frozen=True, slots=True)
class WriteTask:
    """A chunk together with its destination file."""

    chunk: "Chunk"
    path: Path
    partial_path: Path


@mypyc_attr(allow_interpreted_subclasses=True)
class ChunkWriterPool:
    """Writes chunks to ``output_dir`` with at most ``concurrency`` writes in flight.

    Use it as an async context manager. Every chunk is first written to a hidden
    partial file, fsynced and only then hard-linked into place, so a chunk file is either
    complete or absent. An existing destination is never overwritten.

    The first failed write is remembered: no further writes start, writes already in
    flight run to completion, and the failure is raised from every later
    :meth:`submit` and from :meth:`drain`.
    """

    def __init__(
        self,
        source: "InputSource",
        output_dir: "Union[str, Path]",
        *,
        concurrency: int = 4,
        naming: Optional[ChunkNaming] = None,
        progress: "Optional[ProgressState]" = None,
    ) -> None:
        if isinstance(concurrency, bool) or not isinstance(concurrency, int) or concurrency < 1:
            msg = f"concurrency must be at least 1, got {concurrency!r}"
            raise InvalidConfigurationError(msg)
        self.source = source
        self.output_dir = Path(output_dir)
        self.concurrency = concurrency
        self.naming = naming or ChunkNaming()
        self.progress = progress
        self.partial_paths: list[Path] = []
        self.max_in_flight = 0
        self._in_flight = 0
        self._written: dict[int, Path] = {}
        self._failure: Optional[OutputError] = None
        self._send: Optional[MemoryObjectSendStream[WriteTask]] = None
        self._exit_stack: Optional[AsyncExitStack] = None
        self._draining = False
        self._limiter: Optional[anyio.CapacityLimiter] = None

    @property
    def failure(self) -> Optional[OutputError]:
        return self._failure

    @property
    def written(self) -> list[Path]:
        """Completed chunk files in index order."""
        return [self._written[index] for index in sorted(self._written)]

    async def __aenter__(self) -> "ChunkWriterPool":
        if self._exit_stack is not None or self._draining:
            msg = "ChunkWriterPool cannot be entered more than once"
            raise RuntimeError(msg)
        self._limiter = anyio.CapacityLimiter(self.concurrency)
        stack = AsyncExitStack()
        task_group = await stack.enter_async_context(anyio.create_task_group())
        send, receive = anyio.create_memory_object_stream[WriteTask](max_buffer_size=0)
        for worker_id in range(self.concurrency):
            task_group.start_soon(self._worker, receive.clone(), name=f"chunk-writer-{worker_id}")
        receive.close()
        self._send = send
        self._exit_stack = stack
        logger.debug("Started %d chunk writers for %s", self.concurrency, self.output_dir)
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        await self._shutdown()

    async def submit(self, chunk: "Chunk") -> Path:
        """Hand a chunk to the next free writer, waiting while all writers are busy.

        Args:
            chunk: The chunk to persist.

        Raises:
            OutputError: An earlier write failed; no new writes are accepted.
            RuntimeError: The pool is not running.

        Returns:
            The path the chunk will be written to.
        """
        if self._failure is not None:
            raise self._failure
        if self._send is None or self._draining:
            msg = "ChunkWriterPool is not accepting submissions"
            raise RuntimeError(msg)
        index = chunk.index
        task = WriteTask(
            chunk=chunk,
            path=self.output_dir / self.naming.filename(index),
            partial_path=self.output_dir / self.naming.partial_filename(index),
        )
        await self._send.send(task)
        return task.path

    async def drain(self) -> list[Path]:
        """Stop accepting chunks and wait for every submitted write to finish.

        Raises:
            OutputError: The first write failure, if any occurred.

        Returns:
            Completed chunk files in index order.
        """
        await self._shutdown()
        if self._failure is not None:
            raise self._failure
        return self.written

    async def _shutdown(self) -> None:
        self._draining = True
        stack, self._exit_stack = self._exit_stack, None
        if stack is None:
            return
        if self._send is not None:
            await self._send.aclose()
        # Workers finish the writes in flight once the stream is closed; nothing is cancelled.
        await stack.aclose()

    async def _worker(self, receive: MemoryObjectReceiveStream[WriteTask]) -> None:
        async with receive:
            async for task in receive:
                if self._failure is not None:
                    logger.debug("Not writing chunk %d after an earlier failure", task.chunk.index)
                    continue
                self._in_flight += 1
                self.max_in_flight = max(self.max_in_flight, self._in_flight)
                try:
                    await to_thread.run_sync(self._write, task, limiter=self._limiter)
                except OutputError as exc:
                    self._record_failure(exc)
                    continue
                finally:
                    self._in_flight -= 1
                self._written[task.chunk.index] = task.path
                if self.progress is not None:
                    self.progress.add_chunk(task.chunk.total_size)
                logger.debug("Wrote chunk %d to %s (%d bytes)", task.chunk.index, task.path, task.chunk.total_size)

    def _record_failure(self, exc: OutputError) -> None:
        if isinstance(exc, WriteFailedError) and exc.partial_path is not None:
            self.partial_paths.append(exc.partial_path)
        if self._failure is None:
            self._failure = exc
            logger.error("%s; no further chunks will be written", exc)
        else:
            logger.error("Additional write failure: %s", exc)

    def _write(self, task: WriteTask) -> None:
        try:
            exists = task.path.exists()
        except OSError as exc:
            raise WriteFailedError(task.path, exc) from exc
        if exists:
            raise OutputCollisionError(task.path)
        try:
            fh = task.partial_path.open("xb")
        except FileExistsError as exc:
            raise OutputCollisionError(task.partial_path) from exc
        except OSError as exc:
            raise WriteFailedError(task.path, exc) from exc

        try:
            with fh:
                self._write_statements(fh, task.chunk)
                fh.flush()
                os.fsync(fh.fileno())
            # link() refuses an existing destination
            os.link(task.partial_path, task.path)
        except FileExistsError as exc:
            self._remove_partial(task.partial_path)
            raise OutputCollisionError(task.path) from exc
        except OSError as exc:
            raise WriteFailedError(task.path, exc, partial_path=task.partial_path) from exc
        self._remove_partial(task.partial_path)

    @staticmethod
    def _remove_partial(partial_path: Path) -> None:
        try:
            partial_path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove partial file %s: %s", partial_path, exc)

    def _write_statements(self, fh: BinaryIO, chunk: "Chunk") -> None:
        for statement in chunk.statements:
            fh.write(self.source.read_statement(statement))
