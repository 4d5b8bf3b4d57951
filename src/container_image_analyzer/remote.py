"""Fetching image archives over HTTP into scoped temporary files."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiohttp

from .config import ExtractorConfig
from .exceptions import ArchiveDownloadError
from .utils.tempfiles import temporary_archive, write_chunks

logger = logging.getLogger(__name__)


class ArchiveDownloader:
    """Async HTTP client that streams image archives to disk."""

    def __init__(
        self,
        timeout: int = 300,
        chunk_size: int = 64 * 1024,
        connector: Optional[aiohttp.TCPConnector] = None,
    ) -> None:
        """Initialize the downloader.

        Args:
            timeout: Total timeout of one download in seconds
            chunk_size: Bytes read from the response per step
            connector: aiohttp connector for connection pooling
        """
        self.timeout = timeout
        self.chunk_size = chunk_size
        self.connector = connector
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "ArchiveDownloader":
        """Enter async context manager."""
        if not self.session:
            self.session = aiohttp.ClientSession(
                connector=self.connector,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()

    async def close(self) -> None:
        """Close the client session."""
        if self.session and not self.session.closed:
            await self.session.close()

    async def download(self, url: str, destination: Path) -> int:
        """Stream ``url`` into ``destination``.

        Returns:
            Number of bytes written

        Raises:
            ArchiveDownloadError: If the request fails or returns an error status
        """
        if not self.session:
            raise ArchiveDownloadError("Downloader session is not open")

        try:
            async with self.session.get(url) as resp:
                resp.raise_for_status()
                size = await write_chunks(
                    destination, resp.content.iter_chunked(self.chunk_size)
                )
        except aiohttp.ClientError as e:
            raise ArchiveDownloadError(f"Failed to download {url}: {e}") from e
        except OSError as e:
            raise ArchiveDownloadError(f"Failed to write {destination}: {e}") from e

        logger.info(f"Downloaded {size} bytes from {url}")
        return size


@asynccontextmanager
async def download_archive(
    url: str,
    config: Optional[ExtractorConfig] = None,
    timeout: int = 300,
) -> AsyncIterator[Path]:
    """Download an image archive and yield its temporary path.

    The file is removed when the block exits, including on errors.

    Example:
        async with download_archive("https://example.com/image.tar") as path:
            result = await extract_image_content(str(path), actions)
    """
    config = config or ExtractorConfig()
    async with temporary_archive(".tar", config.temp_dir) as path:
        async with ArchiveDownloader(timeout, config.chunk_size) as downloader:
            await downloader.download(url, path)
        yield path
