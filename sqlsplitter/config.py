"""Configuration objects for a split run."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from sqlsplitter.exceptions import InvalidConfigurationError

__all__ = (
    "DEFAULT_CONCURRENCY",
    "DEFAULT_MAX_SIZE_KB",
    "OversizedPolicy",
    "SplitterConfig",
)

DEFAULT_MAX_SIZE_KB = 1000
DEFAULT_CONCURRENCY = 4
KILOBYTE = 1024


class OversizedPolicy(str, Enum):
    """What to do with a single statement that is larger than the chunk ceiling."""

    ALLOW = "allow"
    """Emit the statement alone as an oversized chunk."""
    ERROR = "error"
    """Fail the run with :class:`~sqlsplitter.exceptions.OversizedStatementError`."""

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class SplitterConfig:
    """Settings for splitting one SQL script into size-bounded chunk files."""

    input_path: Path
    output_dir: Path
    max_size_kb: int = DEFAULT_MAX_SIZE_KB
    concurrency: int = DEFAULT_CONCURRENCY
    oversized: OversizedPolicy = OversizedPolicy.ALLOW
    backslash_escapes: bool = False
    prefix: str = "split_"
    suffix: str = ".sql"
    min_digits: int = 3
    keep_partial: bool = False
    progress_interval: float = 0.1

    def __post_init__(self) -> None:
        self.input_path = Path(self.input_path)
        self.output_dir = Path(self.output_dir)
        if not isinstance(self.oversized, OversizedPolicy):
            try:
                self.oversized = OversizedPolicy(self.oversized)
            except ValueError as exc:
                msg = f"Unknown oversized policy {self.oversized!r}; expected one of: allow, error"
                raise InvalidConfigurationError(msg) from exc

    @property
    def max_size_bytes(self) -> int:
        """Chunk ceiling in bytes."""
        return self.max_size_kb * KILOBYTE

    def validate(self) -> None:
        """Check the settings before any I/O is attempted.

        Raises:
            InvalidConfigurationError: If a setting is out of range.
        """
        if isinstance(self.max_size_kb, bool) or not isinstance(self.max_size_kb, int) or self.max_size_kb <= 0:
            msg = f"max_size_kb must be a positive integer, got {self.max_size_kb!r}"
            raise InvalidConfigurationError(msg)
        if isinstance(self.concurrency, bool) or not isinstance(self.concurrency, int) or self.concurrency < 1:
            msg = f"concurrency must be at least 1, got {self.concurrency!r}"
            raise InvalidConfigurationError(msg)
        if self.min_digits < 1:
            msg = f"min_digits must be at least 1, got {self.min_digits!r}"
            raise InvalidConfigurationError(msg)
        if not self.prefix and not self.suffix:
            msg = "prefix and suffix cannot both be empty"
            raise InvalidConfigurationError(msg)
        if "/" in self.prefix or "/" in self.suffix:
            msg = "prefix and suffix must not contain path separators"
            raise InvalidConfigurationError(msg)
        if self.progress_interval <= 0:
            msg = f"progress_interval must be positive, got {self.progress_interval!r}"
            raise InvalidConfigurationError(msg)
