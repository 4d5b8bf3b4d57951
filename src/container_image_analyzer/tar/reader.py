"""Streaming extraction of matched files from a single layer tar."""

import asyncio
import logging
import tarfile
import zlib
from dataclasses import dataclass
from functools import partial
from typing import IO, Any, List, Optional, Sequence

from ..config import ExtractorConfig
from ..exceptions import LayerReadError
from ..models import ExtractionWarning
from ..utils.streams import stream_to_bytes
from .entry_stream import EntryFanout
from .models import ExtractAction, LayerContents
from .whiteouts import classify_whiteout, is_whiteout, normalize_entry_path

logger = logging.getLogger(__name__)

# errors a broken or truncated (possibly compressed) tar stream can raise
TAR_STREAM_ERRORS = (tarfile.TarError, EOFError, OSError, zlib.error)


@dataclass
class _PendingEntry:
    path: str
    action_names: List[str]
    tasks: List["asyncio.Task[Any]"]


class TarStreamExtractor:
    """Async reader that runs extract actions over one tar stream.

    The tar is read strictly front to back (``r|*`` mode), so gzip, bzip2 and
    xz compressed layers work transparently and nothing is seeked. Entries no
    action matches are skipped by the tar reader without being buffered.
    """

    def __init__(
        self,
        actions: Sequence[ExtractAction],
        config: Optional[ExtractorConfig] = None,
    ) -> None:
        """Initialize the extractor.

        Args:
            actions: Extract actions evaluated against every regular file
            config: Extraction settings
        """
        self.actions = list(actions)
        self.config = config or ExtractorConfig()

    async def extract(self, fileobj: IO[bytes], digest: str = "") -> LayerContents:
        """Extract matched files and whiteout markers from a layer.

        Args:
            fileobj: Readable binary stream of the layer tar
            digest: Layer identifier, used for reporting

        Returns:
            LayerContents for this layer alone (no overlay applied)

        Raises:
            LayerReadError: If the stream is not a readable tar
        """
        loop = asyncio.get_event_loop()
        contents = LayerContents(digest=digest)
        pending: List[_PendingEntry] = []

        try:
            tar = await loop.run_in_executor(
                None, partial(tarfile.open, fileobj=fileobj, mode="r|*")
            )
        except TAR_STREAM_ERRORS as e:
            raise LayerReadError(f"Failed to open layer {digest}: {e}") from e

        try:
            while True:
                member = await loop.run_in_executor(None, tar.next)
                if member is None:
                    break
                contents.entry_count += 1

                path = normalize_entry_path(member.name)
                if is_whiteout(path):
                    self._record_whiteout(path, contents)
                    continue
                contents.replaced_paths.add(path)

                # symlinks and hardlinks are not followed
                if not member.isfile():
                    continue

                matched = [
                    action for action in self.actions if action.file_path_matches(path)
                ]
                if not matched:
                    continue

                pending.append(await self._dispatch(tar, member, path, matched))
        except TAR_STREAM_ERRORS as e:
            _cancel(pending)
            raise LayerReadError(f"Failed to read layer {digest}: {e}") from e
        except asyncio.CancelledError:
            _cancel(pending)
            raise
        finally:
            await loop.run_in_executor(None, tar.close)

        await self._collect(pending, contents)
        logger.debug(
            f"Layer {digest or '<unnamed>'}: {contents.entry_count} entries, "
            f"{len(contents.files)} matched, {len(contents.whiteouts)} whiteouts, "
            f"{len(contents.opaque_dirs)} opaque directories"
        )
        return contents

    def _record_whiteout(self, path: str, contents: LayerContents) -> None:
        kind, target = classify_whiteout(path)
        if kind == "opaque":
            contents.opaque_dirs.add(target)
        elif kind == "file":
            contents.whiteouts.add(target)

    async def _dispatch(
        self,
        tar: tarfile.TarFile,
        member: tarfile.TarInfo,
        path: str,
        matched: List[ExtractAction],
    ) -> _PendingEntry:
        """Start every matching callback and feed them the entry's bytes.

        Returns once the entry has been read to the end; the callbacks may
        still be running.
        """
        loop = asyncio.get_event_loop()
        entry = await loop.run_in_executor(None, tar.extractfile, member)
        buffered = member.size <= self.config.buffer_threshold
        read_size = member.size if buffered else self.config.chunk_size

        fanout = EntryFanout(
            path,
            member.size,
            [action.callback or stream_to_bytes for action in matched],
            max_pending=self.config.max_pending_chunks,
            buffered=buffered,
        )

        async def read_chunk() -> bytes:
            if read_size == 0:
                return b""
            return await loop.run_in_executor(None, entry.read, read_size)

        try:
            await fanout.feed(read_chunk)
        except BaseException:
            _cancel_tasks(fanout.tasks)
            raise

        return _PendingEntry(
            path=path,
            action_names=[action.action_name for action in matched],
            tasks=fanout.tasks,
        )

    async def _collect(
        self, pending: List[_PendingEntry], contents: LayerContents
    ) -> None:
        """Wait for callbacks and store their results, isolating failures."""
        for entry in pending:
            results = await asyncio.gather(*entry.tasks, return_exceptions=True)
            entry_results = {}
            for action_name, result in zip(entry.action_names, results):
                if isinstance(result, BaseException):
                    message = f"{type(result).__name__}: {result}"
                    logger.warning(
                        f"Extract action '{action_name}' failed on {entry.path}: {message}"
                    )
                    contents.warnings.append(
                        ExtractionWarning(entry.path, action_name, message)
                    )
                    continue
                if result is None:
                    continue
                entry_results[action_name] = result

            if entry_results:
                contents.files[entry.path] = entry_results


async def extract_layer(
    fileobj: IO[bytes],
    actions: Sequence[ExtractAction],
    digest: str = "",
    config: Optional[ExtractorConfig] = None,
) -> LayerContents:
    """Run ``actions`` over one layer tar stream.

    Args:
        fileobj: Readable binary stream of the layer tar
        actions: Extract actions to apply
        digest: Layer identifier
        config: Extraction settings

    Returns:
        LayerContents of the layer

    Raises:
        LayerReadError: If the stream is not a readable tar
    """
    return await TarStreamExtractor(actions, config).extract(fileobj, digest)


def _cancel(pending: List[_PendingEntry]) -> None:
    for entry in pending:
        _cancel_tasks(entry.tasks)


def _cancel_tasks(tasks: List["asyncio.Task[Any]"]) -> None:
    for task in tasks:
        if not task.done():
            task.cancel()
