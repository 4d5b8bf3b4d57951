"""Top-level image archive formats.

``open_archive`` sniffs (or trusts) the archive type once and dispatches to
the matching loader. Every loader returns the same ``ImageArchive`` shape.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional, Union

from ..config import ExtractorConfig
from ..exceptions import InvalidArchiveError, ManifestError
from ..models import ImageArchive, ImageType
from .docker import MANIFEST_FILE, load_docker_archive
from .kaniko import is_kaniko_manifest, load_kaniko_archive
from .oci import INDEX_FILE, load_oci_archive
from .platform import Platform
from .reader import ArchiveReader

logger = logging.getLogger(__name__)

UNSUPPORTED_ARCHIVE_MESSAGE = (
    "Unsupported archive type. Please use a Docker archive, "
    "OCI image layout, or Kaniko-compatible tarball."
)

Loader = Callable[[ArchiveReader], Awaitable[ImageArchive]]


async def detect_image_type(reader: ArchiveReader) -> ImageType:
    """Guess the archive format from its top-level structure.

    ``index.json`` means OCI; ``manifest.json`` means docker save, unless all
    its layers are ``.tar.gz`` files, which is how kaniko writes them.
    Anything else is treated as a flat kaniko filesystem tarball.
    """
    if reader.has_file(INDEX_FILE):
        return ImageType.OCI_ARCHIVE
    if reader.has_file(MANIFEST_FILE):
        try:
            manifest_data = await reader.read_json(MANIFEST_FILE)
        except (InvalidArchiveError, ManifestError):
            return ImageType.DOCKER_ARCHIVE
        if is_kaniko_manifest(manifest_data):
            return ImageType.KANIKO_ARCHIVE
        return ImageType.DOCKER_ARCHIVE
    return ImageType.KANIKO_ARCHIVE


def _loaders(
    requested_platform: Optional[Platform], oci_platform: Platform
) -> Dict[ImageType, Loader]:
    async def docker(reader: ArchiveReader) -> ImageArchive:
        return await load_docker_archive(reader, requested_platform)

    async def oci(reader: ArchiveReader) -> ImageArchive:
        return await load_oci_archive(reader, oci_platform)

    return {
        ImageType.DOCKER_ARCHIVE: docker,
        ImageType.OCI_ARCHIVE: oci,
        ImageType.KANIKO_ARCHIVE: load_kaniko_archive,
    }


def _parse_image_type(image_type: Optional[Union[ImageType, str]]) -> ImageType:
    if not image_type:
        return ImageType.UNKNOWN
    try:
        return ImageType(image_type)
    except ValueError as e:
        raise InvalidArchiveError(f"{UNSUPPORTED_ARCHIVE_MESSAGE} Got: {image_type}") from e


async def load_archive(
    reader: ArchiveReader,
    image_type: Optional[Union[ImageType, str]] = None,
    platform: Optional[str] = None,
    config: Optional[ExtractorConfig] = None,
) -> ImageArchive:
    """Read layers and config from an opened archive.

    A declared type that turns out not to fit the archive falls back to the
    detected one, since callers often only guess the type from a file name.

    Args:
        reader: Opened archive
        image_type: Declared archive type, detected when None or UNKNOWN
        platform: Requested platform; overrides ``config.platform``
        config: Extraction settings

    Returns:
        ImageArchive with layers oldest first

    Raises:
        InvalidArchiveError: If no supported format fits the archive
        PlatformNotFoundError: If the requested platform is not in the image
        ConfigurationError: If ``platform`` is malformed
    """
    config = (config or ExtractorConfig()).with_platform(platform)
    requested_platform = Platform.parse(platform) if platform else None
    loaders = _loaders(requested_platform, Platform.parse(config.platform))

    declared = _parse_image_type(image_type)
    detected = await detect_image_type(reader)
    logger.debug(
        f"Archive {reader.archive_path}: declared {declared.value}, "
        f"detected {detected.value}"
    )

    if declared in loaders and declared != detected:
        try:
            return await loaders[declared](reader)
        except InvalidArchiveError as e:
            logger.warning(
                f"Archive is not a valid {declared.value} ({e}), trying {detected.value}"
            )

    try:
        return await loaders[detected](reader)
    except InvalidArchiveError as e:
        raise InvalidArchiveError(f"{UNSUPPORTED_ARCHIVE_MESSAGE} ({e})") from e


@asynccontextmanager
async def open_archive(
    archive_path: str,
    image_type: Optional[Union[ImageType, str]] = None,
    platform: Optional[str] = None,
    config: Optional[ExtractorConfig] = None,
) -> AsyncIterator[ImageArchive]:
    """Open an image archive and yield its layers and config.

    Layer openers are only valid inside the ``async with`` block.

    Example:
        async with open_archive("image.tar") as image:
            for layer in image.layers:
                print(layer.digest)
    """
    async with ArchiveReader(archive_path) as reader:
        yield await load_archive(reader, image_type, platform, config)


__all__ = [
    "ArchiveReader",
    "Platform",
    "detect_image_type",
    "load_archive",
    "open_archive",
]
