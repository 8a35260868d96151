"""Writing rendered pages to disk."""
from __future__ import annotations

import os
from contextlib import suppress
from pathlib import Path

import structlog

from spa_prerender.errors import WriteFailure

logger = structlog.get_logger()


def write_page(path: Path, content: str) -> int:
    """Write content to path atomically and return the number of bytes written.

    The page is written to a sibling temp file and renamed into place, so an
    interrupted run never leaves a partial file that a resumed run would skip.

    Raises:
        WriteFailure: If the directory or file cannot be written.
    """
    data = content.encode("utf-8")
    temp_path = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path.write_bytes(data)
        os.replace(temp_path, path)
    except OSError as exc:
        _discard(temp_path)
        raise WriteFailure(str(path), exc.strerror or str(exc)) from exc
    except BaseException:
        # Also covers interrupts raised by the signal handler.
        _discard(temp_path)
        raise

    logger.debug("file_written", path=str(path), bytes=len(data), component="writer")
    return len(data)


def _discard(temp_path: Path) -> None:
    with suppress(OSError):
        temp_path.unlink(missing_ok=True)
