"""Async random-access reader for top-level image archives."""

import asyncio
import json
import posixpath
import tarfile
from pathlib import Path
from typing import IO, Any, Callable, Dict, Optional

from ..exceptions import ArchiveNotFoundError, InvalidArchiveError, ManifestError


class ArchiveReader:
    """Async reader for docker save, OCI layout and kaniko tar files.

    Member names are normalized (no leading ``./`` or ``/``) so lookups work
    the same whichever tool wrote the archive.
    """

    def __init__(self, archive_path: str) -> None:
        """Initialize archive reader.

        Args:
            archive_path: Path to the archive file

        Raises:
            ArchiveNotFoundError: If the path is missing or not a regular file
        """
        self.archive_path = Path(archive_path)
        if not self.archive_path.exists():
            raise ArchiveNotFoundError(f"Archive not found: {archive_path}")
        if not self.archive_path.is_file():
            raise ArchiveNotFoundError(f"Archive is not a regular file: {archive_path}")
        self._tar_file: Optional[tarfile.TarFile] = None
        self._members: Dict[str, tarfile.TarInfo] = {}

    async def __aenter__(self) -> "ArchiveReader":
        """Enter async context manager."""
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()

    async def open(self) -> None:
        """Open the archive and index its members."""
        loop = asyncio.get_event_loop()
        try:
            self._tar_file = await loop.run_in_executor(
                None, tarfile.open, str(self.archive_path), "r:*"
            )
            members = await loop.run_in_executor(None, self._tar_file.getmembers)
        except (tarfile.TarError, EOFError, OSError) as e:
            await self.close()
            raise InvalidArchiveError(
                f"Failed to read archive {self.archive_path}: {e}"
            ) from e

        for member in members:
            self._members[normalize_member_name(member.name)] = member

    async def close(self) -> None:
        """Close the tar file."""
        if self._tar_file:
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(None, self._tar_file.close)
            self._tar_file = None

    @property
    def names(self) -> list[str]:
        """Normalized names of all members, in archive order."""
        return list(self._members)

    def has_file(self, name: str) -> bool:
        member = self._members.get(normalize_member_name(name))
        return member is not None and member.isfile()

    def get_member(self, name: str) -> Optional[tarfile.TarInfo]:
        return self._members.get(normalize_member_name(name))

    def opener(self, name: str) -> Callable[[], IO[bytes]]:
        """Return a blocking callable that opens member ``name`` for reading."""
        member = self.get_member(name)
        if member is None or not member.isfile():
            raise InvalidArchiveError(f"File {name} not found in archive")

        def open_member() -> IO[bytes]:
            if not self._tar_file:
                raise InvalidArchiveError("Archive not opened")
            file_obj = self._tar_file.extractfile(member)
            if file_obj is None:
                raise InvalidArchiveError(f"Could not extract {name}")
            return file_obj

        return open_member

    def whole_archive_opener(self) -> Callable[[], IO[bytes]]:
        """Return a callable opening the archive file itself as one stream."""
        return partial_open(self.archive_path)

    async def read_bytes(self, name: str) -> bytes:
        """Read a whole member.

        Raises:
            InvalidArchiveError: If the member does not exist
        """
        loop = asyncio.get_event_loop()
        open_member = self.opener(name)

        def read() -> bytes:
            with open_member() as file_obj:
                return file_obj.read()

        try:
            return await loop.run_in_executor(None, read)
        except (tarfile.TarError, OSError) as e:
            raise InvalidArchiveError(f"Failed to extract {name}: {e}") from e

    async def read_json(self, name: str) -> Any:
        """Read and parse a JSON member.

        Raises:
            InvalidArchiveError: If the member does not exist
            ManifestError: If the member is not valid JSON
        """
        content = await self.read_bytes(name)
        try:
            return json.loads(content.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ManifestError(f"Invalid JSON in {name}: {e}") from e


def normalize_member_name(name: str) -> str:
    """Strip leading ``./`` and ``/`` from an archive member name."""
    normalized = posixpath.normpath(name)
    return normalized.lstrip("/") if normalized != "." else ""


def partial_open(path: Path) -> Callable[[], IO[bytes]]:
    def open_file() -> IO[bytes]:
        return open(path, "rb")

    return open_file
