# ruff: noqa: PLR6301
"""SQL script statement scanner driven by a byte-oriented lexical state machine.

The scanner walks the raw bytes of a script once and yields the byte span of
every complete statement. Only ASCII delimiters are significant (quotes, ``;``,
``$``, ``-``, ``/`` and ``*``), so any ASCII-compatible encoding such as UTF-8
passes through untouched.

Spans are contiguous: whitespace and comments in front of a statement belong to
that statement, and trailing whitespace or comments after the last terminator
are folded into the last statement. Concatenating every span therefore
reproduces the script exactly.
"""

import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from mypy_extensions import mypyc_attr

from sqlsplitter.exceptions import UnterminatedLiteralError
from sqlsplitter.utils.logging import get_logger

if TYPE_CHECKING:
    from sqlsplitter.progress import ProgressState
    from sqlsplitter.source import InputSource

__all__ = ("LexState", "Statement", "StatementScanner", "scan")

logger = get_logger("scanner")

_SEMICOLON = ord(";")
_SINGLE_QUOTE = ord("'")
_DOUBLE_QUOTE = ord('"')
_DASH = ord("-")
_SLASH = ord("/")
_STAR = ord("*")
_DOLLAR = ord("$")
_BACKSLASH = ord("\\")

_NORMAL_SPECIAL = re.compile(rb"[;'\"$/-]")
_NON_SPACE = re.compile(rb"\S")
# PostgreSQL dollar quote opener: $$ or $tag$, tag cannot start with a digit.
_DOLLAR_TAG = re.compile(rb"\$(?:[A-Za-z_\x80-\xff][A-Za-z0-9_\x80-\xff]*)?\$")
_IDENTIFIER_BYTES = frozenset(b"ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789_") | frozenset(
    range(0x80, 0x100)
)


class LexState(Enum):
    """Lexical mode of the scanner at the current position."""

    NORMAL = "normal"
    SINGLE_QUOTED = "single_quoted_string"
    DOUBLE_QUOTED = "double_quoted_identifier"
    LINE_COMMENT = "line_comment"
    BLOCK_COMMENT = "block_comment"
    DOLLAR_QUOTED = "dollar_quoted_string"


UNTERMINATED_STATES = frozenset({
    LexState.SINGLE_QUOTED,
    LexState.DOUBLE_QUOTED,
    LexState.BLOCK_COMMENT,
    LexState.DOLLAR_QUOTED,
})


@dataclass(frozen=True, slots=True)
class Statement:
    """Byte span ``[start, end)`` of one complete statement, terminator included."""

    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start


StepResult = tuple[int, Optional[Statement]]


@mypyc_attr(allow_interpreted_subclasses=True)
class StatementScanner:
    """Splits a script into statement spans using a lexer-driven state machine.

    Each lexical state has its own handler. A handler receives the current
    position, consumes as much input as it can in one step, and returns the new
    position plus the statement it closed, if any. Adding a quoting dialect
    means adding a state and a handler.
    """

    __slots__ = (
        "_buffer",
        "_dollar_tag",
        "_handlers",
        "_has_content",
        "_literal_start",
        "_progress",
        "_quote_patterns",
        "_size",
        "_source",
        "_span_start",
        "_started",
        "_state",
        "backslash_escapes",
    )

    def __init__(
        self, source: "InputSource", *, backslash_escapes: bool = False, progress: "Optional[ProgressState]" = None
    ) -> None:
        """Initialize the scanner over an input source.

        Args:
            source: The script to scan.
            backslash_escapes: Treat ``\\`` as an escape character inside quoted strings (MySQL style).
            progress: Optional counters updated as statements are produced.
        """
        self._source = source
        self._buffer = source.buffer
        self._size = source.size
        self._progress = progress
        self.backslash_escapes = backslash_escapes
        self._state = LexState.NORMAL
        self._span_start = 0
        self._literal_start = 0
        self._has_content = False
        self._dollar_tag = b""
        self._started = False
        self._quote_patterns = {
            LexState.SINGLE_QUOTED: re.compile(rb"[\\']" if backslash_escapes else rb"'"),
            LexState.DOUBLE_QUOTED: re.compile(rb'[\\"]' if backslash_escapes else rb'"'),
        }
        self._handlers: dict[LexState, Callable[[int], StepResult]] = {
            LexState.NORMAL: self._scan_normal,
            LexState.SINGLE_QUOTED: self._scan_quoted,
            LexState.DOUBLE_QUOTED: self._scan_quoted,
            LexState.LINE_COMMENT: self._scan_line_comment,
            LexState.BLOCK_COMMENT: self._scan_block_comment,
            LexState.DOLLAR_QUOTED: self._scan_dollar_quoted,
        }

    def statements(self) -> Iterator[Statement]:
        """Return the lazy, single-pass sequence of statement spans.

        Raises:
            RuntimeError: If the scanner has already been consumed.
        """
        if self._started:
            msg = "StatementScanner is single-pass and has already been started"
            raise RuntimeError(msg)
        self._started = True
        return self._iter_statements()

    __iter__ = statements

    def _iter_statements(self) -> Iterator[Statement]:
        # One statement is held back so trailing comments and whitespace can be folded into it.
        pending: Optional[Statement] = None
        pos = 0
        while pos < self._size:
            pos, statement = self._handlers[self._state](pos)
            if statement is not None:
                if pending is not None:
                    yield self._emit(pending)
                pending = statement

        if self._state in UNTERMINATED_STATES:
            raise self._unterminated()

        if self._span_start < self._size:
            if self._has_content:
                if pending is not None:
                    yield self._emit(pending)
                pending = Statement(self._span_start, self._size)
            elif pending is not None:
                pending = Statement(pending.start, self._size)
            else:
                logger.debug("Script holds no statements, discarding %d bytes of comments/whitespace", self._size)

        if pending is not None:
            yield self._emit(pending)

    def _emit(self, statement: Statement) -> Statement:
        if self._progress is not None:
            self._progress.scanned_to(statement.end)
        return statement

    def _enter(self, state: LexState, offset: int) -> None:
        self._state = state
        self._literal_start = offset
        if state not in {LexState.LINE_COMMENT, LexState.BLOCK_COMMENT}:
            self._has_content = True

    def _peek(self, pos: int) -> int:
        if pos < self._size:
            return self._buffer[pos]
        return -1

    def _scan_normal(self, pos: int) -> StepResult:
        buf = self._buffer
        match = _NORMAL_SPECIAL.search(buf, pos)
        here = self._size if match is None else match.start()
        if not self._has_content and _NON_SPACE.search(buf, pos, here) is not None:
            self._has_content = True
        if match is None:
            return self._size, None

        char = buf[here]
        if char == _SEMICOLON:
            end = here + 1
            statement = Statement(self._span_start, end)
            self._span_start = end
            self._has_content = False
            return end, statement
        if char == _SINGLE_QUOTE:
            self._enter(LexState.SINGLE_QUOTED, here)
            return here + 1, None
        if char == _DOUBLE_QUOTE:
            self._enter(LexState.DOUBLE_QUOTED, here)
            return here + 1, None
        if char == _DASH and self._peek(here + 1) == _DASH:
            self._enter(LexState.LINE_COMMENT, here)
            return here + 2, None
        if char == _SLASH and self._peek(here + 1) == _STAR:
            self._enter(LexState.BLOCK_COMMENT, here)
            return here + 2, None
        if char == _DOLLAR and (here == 0 or buf[here - 1] not in _IDENTIFIER_BYTES):
            tag = _DOLLAR_TAG.match(buf, here)
            if tag is not None:
                self._dollar_tag = tag.group(0)
                self._enter(LexState.DOLLAR_QUOTED, here)
                return tag.end(), None

        self._has_content = True
        return here + 1, None

    def _scan_quoted(self, pos: int) -> StepResult:
        match = self._quote_patterns[self._state].search(self._buffer, pos)
        if match is None:
            return self._size, None
        here = match.start()
        char = self._buffer[here]
        if char == _BACKSLASH:
            return here + 2, None
        if self._peek(here + 1) == char:
            # doubled quote is an escaped quote
            return here + 2, None
        self._state = LexState.NORMAL
        return here + 1, None

    def _scan_line_comment(self, pos: int) -> StepResult:
        newline = self._buffer.find(b"\n", pos)
        self._state = LexState.NORMAL
        if newline == -1:
            return self._size, None
        return newline + 1, None

    def _scan_block_comment(self, pos: int) -> StepResult:
        close = self._buffer.find(b"*/", pos)
        if close == -1:
            return self._size, None
        self._state = LexState.NORMAL
        return close + 2, None

    def _scan_dollar_quoted(self, pos: int) -> StepResult:
        close = self._buffer.find(self._dollar_tag, pos)
        if close == -1:
            return self._size, None
        self._state = LexState.NORMAL
        return close + len(self._dollar_tag), None

    def _unterminated(self) -> UnterminatedLiteralError:
        line = self._source.line_of(self._literal_start)
        logger.error(
            "Input %s ends inside a %s opened at byte %d (line %d)",
            self._source.name,
            self._state.value.replace("_", " "),
            self._literal_start,
            line,
        )
        return UnterminatedLiteralError(self._state.value, self._literal_start, line)


def scan(
    source: "InputSource", *, backslash_escapes: bool = False, progress: "Optional[ProgressState]" = None
) -> Iterator[Statement]:
    """Scan a script into statement spans.

    Args:
        source: The script to scan.
        backslash_escapes: Treat ``\\`` as an escape character inside quoted strings.
        progress: Optional counters updated as statements are produced.

    Raises:
        UnterminatedLiteralError: If the script ends inside a string, quoted identifier,
            block comment or dollar-quoted body.

    Returns:
        Lazy iterator of statements in script order.
    """
    return StatementScanner(source, backslash_escapes=backslash_escapes, progress=progress).statements()
