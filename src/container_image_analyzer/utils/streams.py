"""Converters from an entry stream to a callback result."""

import json
from typing import TYPE_CHECKING, Any

from .digest import new_hasher

if TYPE_CHECKING:
    from ..tar.entry_stream import EntryStream

HASH_ALGORITHM_SHA256 = "sha256"
HASH_ALGORITHM_SHA1 = "sha1"


async def stream_to_bytes(stream: "EntryStream") -> bytes:
    """Collect the whole stream into bytes."""
    return await stream.read()


async def stream_to_string(stream: "EntryStream", encoding: str = "utf-8") -> str:
    """Decode the whole stream as text, replacing undecodable bytes."""
    data = await stream.read()
    return data.decode(encoding, errors="replace")


async def stream_to_json(stream: "EntryStream") -> Any:
    """Parse the stream as a JSON document."""
    return json.loads(await stream_to_string(stream))


async def stream_to_hash(
    stream: "EntryStream", algorithm: str = HASH_ALGORITHM_SHA256
) -> str:
    """Hash the stream chunk by chunk, returning the hex digest."""
    hasher = new_hasher(algorithm)
    async for chunk in stream:
        hasher.update(chunk)
    return hasher.hexdigest()


async def stream_to_sha256(stream: "EntryStream") -> str:
    return await stream_to_hash(stream, HASH_ALGORITHM_SHA256)


async def stream_to_sha1(stream: "EntryStream") -> str:
    return await stream_to_hash(stream, HASH_ALGORITHM_SHA1)
