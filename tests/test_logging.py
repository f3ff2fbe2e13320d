from pathlib import Path

import pytest

from outline_manager.observability import LogConfig, setup_logging, teardown_logging
from outline_manager.retry import retry

pytestmark = [pytest.mark.unit]


@pytest.mark.asyncio
async def test_library_records_reach_file(tmp_path: Path):
    log_file = tmp_path / "logs" / "outline.log"
    handler_ids = setup_logging(LogConfig(file=str(log_file)))
    failures = [ConnectionError("reset")]

    @retry(on=ConnectionError, base_delay=0)
    async def fetch() -> None:
        if failures:
            raise failures.pop()

    try:
        await fetch()
    finally:
        teardown_logging(handler_ids)

    text = log_file.read_text()
    assert "WARNING" in text
    assert "Retry 1/5" in text
    assert "outline_manager.retry" in text


def test_console_disabled_by_default():
    handler_ids = setup_logging(LogConfig(file=None))
    assert handler_ids == []


def test_console_and_file(tmp_path: Path):
    handler_ids = setup_logging(LogConfig(console=True, file=str(tmp_path / "a.log")))
    try:
        assert len(handler_ids) == 2
    finally:
        teardown_logging(handler_ids)
