"""Read-only, addressable access to the input script."""

import mmap
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, BinaryIO, Optional, Union

from sqlsplitter.exceptions import InputNotFoundError, InputUnreadableError
from sqlsplitter.utils.logging import get_logger

if TYPE_CHECKING:
    from sqlsplitter.scanner import Statement

__all__ = ("InputSource",)

logger = get_logger("source")

Buffer = Union[bytes, mmap.mmap]


class InputSource:
    """An ordered byte sequence of known length that the scanner walks and the writers slice.

    Files are memory mapped read-only so arbitrarily large scripts never have to be read
    into memory at once. Slicing the mapping is safe from several writer threads.
    """

    __slots__ = ("_buffer", "_file", "name", "path", "size")

    def __init__(self, buffer: Buffer, *, name: str = "<memory>", path: Optional[Path] = None) -> None:
        self._buffer: Optional[Buffer] = buffer
        self._file: Optional[BinaryIO] = None
        self.name = name
        self.path = path
        self.size = len(buffer)

    @classmethod
    def from_bytes(cls, data: bytes, name: str = "<memory>") -> "InputSource":
        """Wrap a script that is already held in memory."""
        return cls(bytes(data), name=name)

    @classmethod
    def open(cls, path: "Union[str, Path]") -> "InputSource":
        """Open and map a script file read-only.

        Args:
            path: Location of the SQL script.

        Raises:
            InputNotFoundError: The path does not exist.
            InputUnreadableError: The path is not a regular readable file.

        Returns:
            The mapped input source. Close it, or use it as a context manager, when done.
        """
        path = Path(path)
        try:
            fh = path.open("rb")
        except FileNotFoundError as exc:
            raise InputNotFoundError(path) from exc
        except OSError as exc:
            raise InputUnreadableError(path, exc) from exc

        try:
            size = path.stat().st_size
            # mmap refuses zero-length files
            buffer: Buffer = mmap.mmap(fh.fileno(), 0, access=mmap.ACCESS_READ) if size else b""
        except (OSError, ValueError) as exc:
            fh.close()
            raise InputUnreadableError(path, exc) from exc

        source = cls(buffer, name=str(path), path=path)
        source._file = fh
        logger.debug("Opened %s (%d bytes)", path, source.size)
        return source

    @property
    def buffer(self) -> Buffer:
        if self._buffer is None:
            msg = f"Input source {self.name} is closed"
            raise ValueError(msg)
        return self._buffer

    def read_statement(self, statement: "Statement") -> bytes:
        return self.buffer[statement.start : statement.end]

    def line_of(self, offset: int) -> int:
        """1-based line number of a byte offset."""
        return self.buffer[:offset].count(b"\n") + 1

    def close(self) -> None:
        if isinstance(self._buffer, mmap.mmap):
            self._buffer.close()
        self._buffer = None
        if self._file is not None:
            self._file.close()
            self._file = None

    def __len__(self) -> int:
        return self.size

    def __enter__(self) -> "InputSource":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"InputSource({self.name!r}, size={self.size})"
