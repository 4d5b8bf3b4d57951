"""Docker save (and skopeo docker-archive) format."""

import logging
from typing import Any, Dict, List, Optional

from ..exceptions import InvalidArchiveError, PlatformNotFoundError
from ..models import ImageArchive, ImageConfig, ImageType, LayerRef
from ..utils.digest import digest_from_path
from .platform import Platform, matches_platform
from .reader import ArchiveReader

logger = logging.getLogger(__name__)

MANIFEST_FILE = "manifest.json"
DEFAULT_LAYER_MEDIA_TYPE = "application/vnd.docker.image.rootfs.diff.tar"


def validate_manifest_data(manifest_data: Any) -> List[Dict[str, Any]]:
    """Check the manifest.json structure.

    Raises:
        InvalidArchiveError: If it is not a non-empty list of entries with
            ``Config`` and ``Layers``
    """
    if not isinstance(manifest_data, list) or not manifest_data:
        raise InvalidArchiveError("manifest.json must be a non-empty array")
    for entry in manifest_data:
        if not isinstance(entry, dict):
            raise InvalidArchiveError("Invalid manifest entry structure")
        if "Config" not in entry or not isinstance(entry.get("Layers"), list):
            raise InvalidArchiveError("Manifest entry needs Config and Layers")
    return manifest_data


def get_image_id(manifest_entry: Dict[str, Any]) -> str:
    """Image ID from the ``Config`` member name."""
    return digest_from_path(manifest_entry["Config"])


async def _select_entry(
    reader: ArchiveReader,
    entries: List[Dict[str, Any]],
    platform: Optional[Platform],
) -> tuple:
    if platform is None:
        entry = entries[0]
        return entry, await reader.read_json(entry["Config"])

    for entry in entries:
        config_data = await reader.read_json(entry["Config"])
        if matches_platform(config_data, platform):
            return entry, config_data

    raise PlatformNotFoundError(
        f"Image does not support the requested platform {platform}"
    )


def _layer_refs(reader: ArchiveReader, entry: Dict[str, Any]) -> List[LayerRef]:
    layer_sources = entry.get("LayerSources") or {}
    layers = []
    for layer_path in entry["Layers"]:
        member = reader.get_member(layer_path)
        if member is None or not member.isfile():
            logger.warning(f"Layer {layer_path} listed in manifest.json is missing")
            continue

        digest = digest_from_path(layer_path)
        source = layer_sources.get(digest, {})
        layers.append(
            LayerRef(
                digest=digest,
                tar_path=layer_path,
                opener=reader.opener(layer_path),
                media_type=source.get("mediaType", DEFAULT_LAYER_MEDIA_TYPE),
                size=source.get("size", member.size),
            )
        )
    return layers


async def load_docker_archive(
    reader: ArchiveReader, platform: Optional[Platform] = None
) -> ImageArchive:
    """Read a docker save archive.

    Layer order comes from the ``Layers`` array of manifest.json. When the
    archive holds several images, the first one is used unless ``platform`` is
    given, in which case the first image whose config matches it wins.

    Args:
        reader: Opened archive
        platform: Optional platform to select among several images

    Returns:
        ImageArchive with layers oldest first

    Raises:
        InvalidArchiveError: If the archive is not a valid docker archive
        PlatformNotFoundError: If no image matches ``platform``
    """
    if not reader.has_file(MANIFEST_FILE):
        raise InvalidArchiveError("Invalid Docker archive: manifest.json not found")

    entries = validate_manifest_data(await reader.read_json(MANIFEST_FILE))
    entry, config_data = await _select_entry(reader, entries, platform)
    if not isinstance(config_data, dict):
        raise InvalidArchiveError(f"Cannot read config file: {entry['Config']}")

    layers = _layer_refs(reader, entry)
    if not layers:
        raise InvalidArchiveError("We found no layers in the provided image")

    return ImageArchive(
        image_type=ImageType.DOCKER_ARCHIVE,
        layers=layers,
        config=ImageConfig.from_dict(config_data),
        image_id=get_image_id(entry),
        manifest_layers=list(entry["Layers"]),
        repo_tags=entry.get("RepoTags") or [],
    )
