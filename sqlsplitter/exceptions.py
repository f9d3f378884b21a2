from pathlib import Path
from typing import Any, Optional

__all__ = (
    "InputError",
    "InputNotFoundError",
    "InputUnreadableError",
    "InvalidConfigurationError",
    "OutputCollisionError",
    "OutputError",
    "OversizedStatementError",
    "SQLSplitterError",
    "UnterminatedLiteralError",
    "WriteFailedError",
)


class SQLSplitterError(Exception):
    """Base exception class from which all sqlsplitter exceptions inherit."""

    detail: str

    def __init__(self, *args: Any, detail: str = "") -> None:
        """Initialize ``SQLSplitterError``.

        Args:
            *args: args are converted to :class:`str` before passing to :class:`Exception`
            detail: detail of the exception.
        """
        str_args = [str(arg) for arg in args if arg]
        if not detail:
            if str_args:
                detail, *str_args = str_args
            elif hasattr(self, "detail"):
                detail = self.detail
        self.detail = detail
        super().__init__(*str_args)

    def __repr__(self) -> str:
        if self.detail:
            return f"{self.__class__.__name__} - {self.detail}"
        return self.__class__.__name__

    def __str__(self) -> str:
        return " ".join((*self.args, self.detail)).strip()


class InvalidConfigurationError(SQLSplitterError, ValueError):
    """Invalid splitter configuration.

    Raised before any I/O takes place, e.g. for a non-positive size ceiling or a concurrency below one.
    """

    def __init__(self, message: Optional[str] = None) -> None:
        if message is None:
            message = "Invalid splitter configuration."
        super().__init__(message)


# -- Input Errors --
class InputError(SQLSplitterError):
    """Base class for problems opening the input script."""

    path: Path

    def __init__(self, message: str, path: "Path | str") -> None:
        self.path = Path(path)
        super().__init__(detail=f"{message}: {self.path}")


class InputNotFoundError(InputError):
    """The input script does not exist."""

    def __init__(self, path: "Path | str") -> None:
        super().__init__("Input file not found", path)


class InputUnreadableError(InputError):
    """The input script exists but cannot be opened or mapped for reading."""

    cause: Optional[BaseException]

    def __init__(self, path: "Path | str", cause: Optional[BaseException] = None) -> None:
        self.cause = cause
        message = "Input file is not readable"
        if cause is not None:
            message = f"{message} ({cause})"
        super().__init__(message, path)


# -- Scanner Errors --
class UnterminatedLiteralError(SQLSplitterError):
    """Input ended inside a quoted string, quoted identifier, block comment or dollar-quoted body.

    ``offset`` is the 0-based byte offset of the opening delimiter and ``line`` its 1-based line number.
    """

    state: str
    offset: int
    line: int

    def __init__(self, state: str, offset: int, line: int) -> None:
        self.state = state
        self.offset = offset
        self.line = line
        super().__init__(detail=f"Unterminated {state.replace('_', ' ')} starting at byte {offset} (line {line})")


# -- Packer Errors --
class OversizedStatementError(SQLSplitterError):
    """A single statement exceeds the size ceiling and the oversized policy forbids emitting it alone."""

    offset: int
    size: int
    max_size: int

    def __init__(self, offset: int, size: int, max_size: int) -> None:
        self.offset = offset
        self.size = size
        self.max_size = max_size
        super().__init__(
            detail=f"Statement at byte {offset} is {size} bytes, larger than the {max_size} byte chunk limit"
        )


# -- Output Errors --
class OutputError(SQLSplitterError):
    """Base class for problems writing chunk files."""

    path: Path

    def __init__(self, message: str, path: "Path | str") -> None:
        self.path = Path(path)
        super().__init__(detail=f"{message}: {self.path}")


class OutputCollisionError(OutputError):
    """The destination file already exists and will not be overwritten."""

    def __init__(self, path: "Path | str") -> None:
        super().__init__("Output file already exists", path)


class WriteFailedError(OutputError):
    """Writing a chunk file failed part way."""

    cause: Optional[BaseException]
    partial_path: Optional[Path]

    def __init__(
        self, path: "Path | str", cause: Optional[BaseException] = None, partial_path: "Path | str | None" = None
    ) -> None:
        self.cause = cause
        self.partial_path = Path(partial_path) if partial_path is not None else None
        message = "Failed to write chunk file"
        if cause is not None:
            message = f"{message} ({cause})"
        super().__init__(message, path)
