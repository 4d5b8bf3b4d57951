"""Tests for entry streams and the callback fan-out."""

import asyncio

import pytest

from container_image_analyzer.tar.entry_stream import EntryFanout, EntryStream


def chunk_reader(chunks):
    """Return an async read function yielding ``chunks`` then b""."""
    remaining = list(chunks)

    async def read_chunk():
        return remaining.pop(0) if remaining else b""

    return read_chunk


@pytest.mark.asyncio
async def test_entry_stream_read_sizes():
    """Test partial reads across chunk boundaries."""
    stream = EntryStream("/file", 6)
    for chunk in (b"abc", b"def", None):
        stream._queue.put_nowait(chunk)

    assert await stream.read(2) == b"ab"
    assert await stream.read(3) == b"cde"
    assert not stream.at_eof
    assert await stream.read() == b"f"
    assert stream.at_eof
    assert await stream.read() == b""


@pytest.mark.asyncio
async def test_entry_stream_async_iteration():
    """Test iterating over chunks."""
    stream = EntryStream("/file", 4)
    for chunk in (b"ab", b"cd", None):
        stream._queue.put_nowait(chunk)

    assert [chunk async for chunk in stream] == [b"ab", b"cd"]


@pytest.mark.asyncio
async def test_fanout_gives_each_callback_full_content():
    """Test that every callback reads the whole entry independently."""

    async def read_all(stream):
        return await stream.read()

    async def read_by_chunks(stream):
        return b"".join([chunk async for chunk in stream])

    fanout = EntryFanout("/file", 6, [read_all, read_by_chunks], 1, buffered=False)
    total = await fanout.feed(chunk_reader([b"aa", b"bb", b"cc"]))
    results = await asyncio.gather(*fanout.tasks)

    assert total == 6
    assert results == [b"aabbcc", b"aabbcc"]


@pytest.mark.asyncio
async def test_fanout_skips_callback_that_stopped_reading():
    """Test that a callback returning early does not block the others."""

    async def read_header(stream):
        return await stream.read(2)

    async def read_all(stream):
        return await stream.read()

    chunks = [bytes([i]) * 16 for i in range(50)]
    fanout = EntryFanout("/big", 800, [read_header, read_all], 1, buffered=False)

    await asyncio.wait_for(fanout.feed(chunk_reader(chunks)), timeout=5)
    header, content = await asyncio.gather(*fanout.tasks)

    assert header == b"\x00\x00"
    assert content == b"".join(chunks)


@pytest.mark.asyncio
async def test_fanout_isolates_failing_callback():
    """Test that a raising callback does not stop delivery to others."""

    async def fail(stream):
        raise ValueError("broken callback")

    async def read_all(stream):
        return await stream.read()

    fanout = EntryFanout("/file", 4, [fail, read_all], 1, buffered=False)
    await asyncio.wait_for(fanout.feed(chunk_reader([b"ab", b"cd"])), timeout=5)
    results = await asyncio.gather(*fanout.tasks, return_exceptions=True)

    assert isinstance(results[0], ValueError)
    assert results[1] == b"abcd"


@pytest.mark.asyncio
async def test_buffered_fanout_does_not_wait_for_readers():
    """Test that buffered entries are queued without back-pressure."""
    release = asyncio.Event()

    async def slow_reader(stream):
        await release.wait()
        return await stream.read()

    fanout = EntryFanout("/small", 6, [slow_reader], 1, buffered=True)
    await asyncio.wait_for(fanout.feed(chunk_reader([b"a", b"b", b"c"])), timeout=5)
    release.set()

    assert await fanout.tasks[0] == b"abc"
