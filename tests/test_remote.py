"""Tests for downloading archives and temporary archive files."""

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from container_image_analyzer import ExtractorConfig, extract_image_content
from container_image_analyzer.exceptions import ArchiveDownloadError
from container_image_analyzer.remote import ArchiveDownloader, download_archive
from container_image_analyzer.tar import ExtractAction
from container_image_analyzer.utils.streams import stream_to_string
from container_image_analyzer.utils.tempfiles import temporary_archive, write_chunks


async def chunks(*parts):
    for part in parts:
        yield part


@pytest_asyncio.fixture
async def archive_server(debian_archive):
    """HTTP server exposing the debian test archive at /image.tar."""

    async def image(request):
        return web.FileResponse(debian_archive)

    app = web.Application()
    app.router.add_get("/image.tar", image)
    server = TestServer(app)
    await server.start_server()
    try:
        yield server
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_temporary_archive_is_removed(tmp_path):
    """Test that the file is removed after the block."""
    async with temporary_archive(".tar", str(tmp_path)) as path:
        assert path.parent == tmp_path
        assert path.suffix == ".tar"
        assert not path.exists()
        written = await write_chunks(path, chunks(b"abc", b"def"))
        assert written == 6
        assert path.read_bytes() == b"abcdef"

    assert not path.exists()
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_temporary_archive_is_removed_on_error(tmp_path):
    """Test cleanup when the body raises."""
    with pytest.raises(RuntimeError):
        async with temporary_archive(".tar", str(tmp_path)) as path:
            path.write_bytes(b"partial")
            raise RuntimeError("boom")

    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_temporary_archive_never_written(tmp_path):
    """Test that an unused path is not an error."""
    async with temporary_archive(".tar.gz", str(tmp_path)) as path:
        assert path.name.endswith(".tar.gz")
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_download_and_extract(archive_server, debian_archive, tmp_path):
    """Test downloading an archive and extracting from the downloaded copy."""
    temp_dir = tmp_path / "downloads"
    temp_dir.mkdir()
    config = ExtractorConfig(temp_dir=str(temp_dir))
    action = ExtractAction.for_paths("os", ["/etc/os-release"], stream_to_string)

    async with download_archive(str(archive_server.make_url("/image.tar")), config) as path:
        assert path.read_bytes() == debian_archive.read_bytes()
        result = await extract_image_content(str(path), [action], config=config)

    assert "ID=debian" in result.extracted_layers["/etc/os-release"]["os"]
    assert list(temp_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_download_not_found(archive_server, tmp_path):
    """Test that an error status raises and leaves nothing behind."""
    temp_dir = tmp_path / "downloads"
    temp_dir.mkdir()
    config = ExtractorConfig(temp_dir=str(temp_dir))

    with pytest.raises(ArchiveDownloadError):
        async with download_archive(str(archive_server.make_url("/missing.tar")), config):
            pass

    assert list(temp_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_downloader_requires_session(tmp_path):
    """Test that download outside the context manager is rejected."""
    downloader = ArchiveDownloader()

    with pytest.raises(ArchiveDownloadError):
        await downloader.download("http://localhost/image.tar", tmp_path / "image.tar")
