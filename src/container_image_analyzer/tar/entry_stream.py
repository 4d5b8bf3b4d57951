"""Independent async read views over a single tar entry.

Several extract actions may match the same entry. Each gets its own
``EntryStream`` fed by one ``EntryFanout``, so no read cursor is shared
between callbacks.
"""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional

_EOF = None


class EntryStream:
    """Async byte stream handed to an extract action callback.

    Supports ``async for chunk in stream`` and ``await stream.read(n)``.
    """

    def __init__(self, path: str, size: int, max_pending: int = 0) -> None:
        self.path = path
        self.size = size
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self._buffer = b""
        self._eof = False

    def __aiter__(self) -> "EntryStream":
        return self

    async def __anext__(self) -> bytes:
        chunk = await self._next_chunk()
        if chunk is None:
            raise StopAsyncIteration
        return chunk

    async def _next_chunk(self) -> Optional[bytes]:
        if self._buffer:
            chunk, self._buffer = self._buffer, b""
            return chunk
        if self._eof:
            return None
        chunk = await self._queue.get()
        if chunk is _EOF:
            self._eof = True
        return chunk

    async def read(self, n: int = -1) -> bytes:
        """Read up to ``n`` bytes, or everything that is left when ``n`` < 0."""
        if n < 0:
            parts = []
            while True:
                chunk = await self._next_chunk()
                if chunk is None:
                    return b"".join(parts)
                parts.append(chunk)

        parts = []
        remaining = n
        while remaining > 0:
            chunk = await self._next_chunk()
            if chunk is None:
                break
            if len(chunk) > remaining:
                self._buffer = chunk[remaining:]
                chunk = chunk[:remaining]
            parts.append(chunk)
            remaining -= len(chunk)
        return b"".join(parts)

    @property
    def at_eof(self) -> bool:
        return self._eof and not self._buffer


StreamCallback = Callable[[EntryStream], Awaitable[Any]]


class _Branch:
    def __init__(self, stream: EntryStream, task: "asyncio.Task[Any]") -> None:
        self.stream = stream
        self.task = task


class EntryFanout:
    """Feed one entry's bytes to several callbacks running as tasks.

    Small entries are read once and queued to every branch without bounds.
    Larger entries use bounded queues so a slow callback throttles reading;
    a branch whose callback has already returned is simply skipped.
    """

    def __init__(
        self,
        path: str,
        size: int,
        callbacks: List[StreamCallback],
        max_pending: int,
        buffered: bool,
    ) -> None:
        self.path = path
        self.size = size
        self.buffered = buffered
        self._branches: List[_Branch] = []
        for callback in callbacks:
            stream = EntryStream(path, size, 0 if buffered else max_pending)
            task = asyncio.ensure_future(callback(stream))
            self._branches.append(_Branch(stream, task))

    @property
    def tasks(self) -> List["asyncio.Task[Any]"]:
        return [branch.task for branch in self._branches]

    async def feed(self, read_chunk: Callable[[], Awaitable[bytes]]) -> int:
        """Pump chunks from ``read_chunk`` into every branch until it returns b"".

        Returns the number of bytes read. All branches receive end-of-stream
        before this returns, so the caller may advance the underlying tar.
        """
        total = 0
        while True:
            chunk = await read_chunk()
            if not chunk:
                break
            total += len(chunk)
            for branch in self._branches:
                await self._offer(branch, chunk)
        for branch in self._branches:
            await self._offer(branch, _EOF)
        return total

    async def _offer(self, branch: _Branch, chunk: Optional[bytes]) -> None:
        if branch.task.done():
            return
        queue = branch.stream._queue
        try:
            queue.put_nowait(chunk)
            return
        except asyncio.QueueFull:
            pass

        put = asyncio.ensure_future(queue.put(chunk))
        await asyncio.wait({put, branch.task}, return_when=asyncio.FIRST_COMPLETED)
        if not put.done():
            put.cancel()
