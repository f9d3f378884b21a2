"""sqlsplitter: split large SQL scripts into size-bounded files without breaking statements."""

from sqlsplitter import exceptions, utils
from sqlsplitter.__metadata__ import __version__
from sqlsplitter.config import OversizedPolicy, SplitterConfig
from sqlsplitter.exceptions import (
    InputError,
    InputNotFoundError,
    InputUnreadableError,
    InvalidConfigurationError,
    OutputCollisionError,
    OutputError,
    OversizedStatementError,
    SQLSplitterError,
    UnterminatedLiteralError,
    WriteFailedError,
)
from sqlsplitter.naming import ChunkNaming
from sqlsplitter.packer import Chunk, ChunkPacker, pack
from sqlsplitter.progress import ProgressSnapshot, ProgressState
from sqlsplitter.scanner import LexState, Statement, StatementScanner, scan
from sqlsplitter.source import InputSource
from sqlsplitter.splitter import SplitResult, SQLSplitter, split_file
from sqlsplitter.writer import ChunkWriterPool, WriteTask

__all__ = (
    "Chunk",
    "ChunkNaming",
    "ChunkPacker",
    "ChunkWriterPool",
    "InputError",
    "InputNotFoundError",
    "InputSource",
    "InputUnreadableError",
    "InvalidConfigurationError",
    "LexState",
    "OutputCollisionError",
    "OutputError",
    "OversizedPolicy",
    "OversizedStatementError",
    "ProgressSnapshot",
    "ProgressState",
    "SQLSplitter",
    "SQLSplitterError",
    "SplitResult",
    "SplitterConfig",
    "Statement",
    "StatementScanner",
    "UnterminatedLiteralError",
    "WriteFailedError",
    "WriteTask",
    "__version__",
    "exceptions",
    "pack",
    "scan",
    "split_file",
    "utils",
)
