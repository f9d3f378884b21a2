"""Run-wide progress counters shared by the scanner, packer and writer pool."""

import threading
from dataclasses import dataclass

__all__ = ("ProgressSnapshot", "ProgressState")


@dataclass(frozen=True, slots=True)
class ProgressSnapshot:
    """Point-in-time copy of the progress counters."""

    total_bytes: int
    bytes_scanned: int = 0
    statements_seen: int = 0
    chunks_written: int = 0
    bytes_written: int = 0

    @property
    def fraction(self) -> float:
        """Share of the input that has been written, between 0.0 and 1.0."""
        if self.total_bytes <= 0:
            return 1.0
        return min(self.bytes_written / self.total_bytes, 1.0)


class ProgressState:
    """Monotonically non-decreasing counters for one split run.

    The scanner and packer run in a worker thread while writes complete in others,
    so every update happens under a lock.
    """

    __slots__ = ("_bytes_scanned", "_bytes_written", "_chunks_written", "_lock", "_statements_seen", "total_bytes")

    def __init__(self, total_bytes: int = 0) -> None:
        self.total_bytes = total_bytes
        self._lock = threading.Lock()
        self._bytes_scanned = 0
        self._statements_seen = 0
        self._chunks_written = 0
        self._bytes_written = 0

    def scanned_to(self, offset: int) -> None:
        """Record that the scanner has consumed the input up to ``offset``."""
        with self._lock:
            if offset > self._bytes_scanned:
                self._bytes_scanned = offset

    def add_statement(self) -> None:
        with self._lock:
            self._statements_seen += 1

    def add_chunk(self, size: int) -> None:
        """Record a completed chunk file of ``size`` bytes."""
        with self._lock:
            self._chunks_written += 1
            self._bytes_written += size

    @property
    def bytes_scanned(self) -> int:
        return self._bytes_scanned

    @property
    def statements_seen(self) -> int:
        return self._statements_seen

    @property
    def chunks_written(self) -> int:
        return self._chunks_written

    @property
    def bytes_written(self) -> int:
        return self._bytes_written

    def snapshot(self) -> ProgressSnapshot:
        with self._lock:
            return ProgressSnapshot(
                total_bytes=self.total_bytes,
                bytes_scanned=self._bytes_scanned,
                statements_seen=self._statements_seen,
                chunks_written=self._chunks_written,
                bytes_written=self._bytes_written,
            )
