from __future__ import annotations

import logging
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from sqlsplitter.config import SplitterConfig


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def _propagate_sqlsplitter_logs() -> Generator[None, None, None]:
    """configure_logging() stops propagation; restore it so caplog keeps working between tests."""
    root_logger = logging.getLogger("sqlsplitter")
    yield
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.propagate = True
    root_logger.setLevel(logging.NOTSET)


@pytest.fixture
def write_sql(tmp_path: Path) -> Callable[..., Path]:
    """Write a script into the temporary directory and return its path."""

    def _write(content: str | bytes, name: str = "input.sql") -> Path:
        path = tmp_path / name
        if isinstance(content, str):
            path.write_bytes(content.encode("utf-8"))
        else:
            path.write_bytes(content)
        return path

    return _write


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    return tmp_path / "out"


@pytest.fixture
def make_config(write_sql: Callable[..., Path], output_dir: Path) -> Callable[..., SplitterConfig]:
    def _make(content: str | bytes, **overrides: object) -> SplitterConfig:
        input_path = write_sql(content)
        return SplitterConfig(input_path=input_path, output_dir=output_dir, **overrides)  # type: ignore[arg-type]

    return _make
