"""Deterministic, sortable chunk file names."""

import math
from dataclasses import dataclass

__all__ = ("ChunkNaming",)


@dataclass(frozen=True, slots=True)
class ChunkNaming:
    """Builds ``{prefix}{number}{suffix}`` names, numbered from 1 and zero padded to ``digits``."""

    prefix: str = "split_"
    suffix: str = ".sql"
    digits: int = 3

    @classmethod
    def for_input(
        cls, input_size: int, max_size: int, *, prefix: str = "split_", suffix: str = ".sql", min_digits: int = 3
    ) -> "ChunkNaming":
        """Pick a padding wide enough that lexical order always equals chunk order.

        Two consecutive greedy chunks always hold more than ``max_size`` bytes together,
        so a script can never produce more than ``2 * ceil(input_size / max_size) + 1`` chunks.
        """
        bound = 2 * math.ceil(max(input_size, 1) / max_size) + 1
        return cls(prefix=prefix, suffix=suffix, digits=max(min_digits, len(str(bound))))

    def filename(self, index: int) -> str:
        return f"{self.prefix}{index + 1:0{self.digits}d}{self.suffix}"

    def partial_filename(self, index: int) -> str:
        return f".{self.filename(index)}.partial"
