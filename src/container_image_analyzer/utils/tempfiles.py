"""Scoped temporary archive files."""

import logging
import os
import tempfile
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)


@asynccontextmanager
async def temporary_archive(
    suffix: str = ".tar", temp_dir: Optional[str] = None
) -> AsyncIterator[Path]:
    """Yield a path for a temporary archive and remove it on exit.

    The file is removed whether the body returns or raises. Nothing is created
    up front; whoever writes the archive creates the file.
    """
    directory = Path(temp_dir or tempfile.gettempdir())
    path = directory / f"image-{uuid.uuid4().hex}{suffix}"
    try:
        yield path
    finally:
        if await aiofiles.os.path.exists(path):
            try:
                await aiofiles.os.remove(path)
            except FileNotFoundError:
                pass
            else:
                logger.debug(f"Removed temporary archive {path}")


async def write_chunks(path: os.PathLike, chunks: AsyncIterator[bytes]) -> int:
    """Write an async stream of chunks to ``path``.

    Returns:
        Number of bytes written
    """
    written = 0
    async with aiofiles.open(path, "wb") as handle:
        async for chunk in chunks:
            await handle.write(chunk)
            written += len(chunk)
    return written
