"""OCI image layout format (index.json + content-addressed blobs)."""

import logging
from typing import Any, Dict, List, Optional, Set

from ..exceptions import InvalidArchiveError, ManifestError, PlatformNotFoundError
from ..models import ImageArchive, ImageConfig, ImageType, LayerRef
from ..utils.digest import digest_to_blob_path, validate_digest
from .platform import Platform, best_match
from .reader import ArchiveReader

logger = logging.getLogger(__name__)

INDEX_FILE = "index.json"

MEDIATYPE_DOCKER_MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"
MEDIATYPE_DOCKER_MANIFEST_LIST_V2 = (
    "application/vnd.docker.distribution.manifest.list.v2+json"
)
MEDIATYPE_OCI_MANIFEST_V1 = "application/vnd.oci.image.manifest.v1+json"
MEDIATYPE_OCI_INDEX_V1 = "application/vnd.oci.image.index.v1+json"

MANIFEST_MEDIA_TYPES = {MEDIATYPE_OCI_MANIFEST_V1, MEDIATYPE_DOCKER_MANIFEST_V2}
INDEX_MEDIA_TYPES = {MEDIATYPE_OCI_INDEX_V1, MEDIATYPE_DOCKER_MANIFEST_LIST_V2}

ATTESTATION_REFERENCE_TYPE = "attestation-manifest"
REFERENCE_TYPE_ANNOTATION = "vnd.docker.reference.type"


def is_layer_media_type(media_type: str) -> bool:
    """True for filesystem layer blobs (tar, optionally compressed).

    Descriptors without a media type are assumed to be layers.
    """
    if not media_type:
        return True
    return ".tar" in media_type or "rootfs.diff" in media_type


def is_attestation(descriptor: Dict[str, Any]) -> bool:
    """True for attestation manifests attached to an index."""
    annotations = descriptor.get("annotations") or {}
    if annotations.get(REFERENCE_TYPE_ANNOTATION) == ATTESTATION_REFERENCE_TYPE:
        return True
    platform = descriptor.get("platform") or {}
    return platform.get("os") == "unknown" and platform.get("architecture") == "unknown"


async def _read_blob(reader: ArchiveReader, digest: str) -> Any:
    if not validate_digest(digest):
        raise ManifestError(f"Invalid digest format: {digest}")
    blob_path = digest_to_blob_path(digest)
    if not reader.has_file(blob_path):
        raise InvalidArchiveError(f"Blob {digest} not found in OCI archive")
    return await reader.read_json(blob_path)


async def collect_manifest_descriptors(
    reader: ArchiveReader,
    index: Dict[str, Any],
    seen: Optional[Set[str]] = None,
) -> List[Dict[str, Any]]:
    """Flatten an index (and any nested indexes) into manifest descriptors.

    Attestation manifests are dropped here, before their blobs are read.
    """
    seen = set() if seen is None else seen
    manifests = index.get("manifests")
    if not isinstance(manifests, list):
        raise InvalidArchiveError("Invalid OCI index: manifests must be a list")

    descriptors = []
    for descriptor in manifests:
        digest = descriptor.get("digest", "")
        media_type = descriptor.get("mediaType", "")
        if is_attestation(descriptor):
            logger.debug(f"Skipping attestation manifest {digest}")
            continue
        if media_type in MANIFEST_MEDIA_TYPES:
            descriptors.append(descriptor)
        elif media_type in INDEX_MEDIA_TYPES:
            if digest in seen:
                continue
            seen.add(digest)
            nested = await _read_blob(reader, digest)
            descriptors.extend(
                await collect_manifest_descriptors(reader, nested, seen)
            )
        else:
            logger.debug(f"Skipping descriptor {digest} with media type {media_type!r}")
    return descriptors


def select_manifest(
    descriptors: List[Dict[str, Any]], platform: Platform
) -> Dict[str, Any]:
    """Choose the manifest for ``platform``.

    A lone manifest without platform information is taken as is, which is
    what docker produces when no platform was requested at build time.

    Raises:
        PlatformNotFoundError: If no descriptor matches
    """
    if len(descriptors) == 1 and not descriptors[0].get("platform"):
        return descriptors[0]

    match = best_match(descriptors, platform, lambda item: item.get("platform") or {})
    if match is None:
        raise PlatformNotFoundError(
            f"Image does not support type of CPU architecture or operating system: {platform}"
        )
    return match


def _layer_refs(reader: ArchiveReader, manifest: Dict[str, Any]) -> List[LayerRef]:
    layers = []
    for descriptor in manifest["layers"]:
        digest = descriptor.get("digest", "")
        media_type = descriptor.get("mediaType", "")
        if not is_layer_media_type(media_type):
            logger.warning(f"Skipping non-layer blob {digest} ({media_type})")
            continue
        if not validate_digest(digest):
            raise ManifestError(f"Invalid layer digest: {digest}")

        blob_path = digest_to_blob_path(digest)
        if not reader.has_file(blob_path):
            logger.warning(f"Layer blob {digest} is not present in the archive")
            continue

        layers.append(
            LayerRef(
                digest=digest,
                tar_path=blob_path,
                opener=reader.opener(blob_path),
                media_type=media_type,
                size=descriptor.get("size", 0),
            )
        )
    return layers


async def load_oci_archive(reader: ArchiveReader, platform: Platform) -> ImageArchive:
    """Read an OCI image layout archive.

    Args:
        reader: Opened archive
        platform: Platform used to pick a manifest from the index

    Returns:
        ImageArchive with layers oldest first

    Raises:
        InvalidArchiveError: If the archive is not a valid OCI layout
        PlatformNotFoundError: If no manifest matches ``platform``
    """
    if not reader.has_file(INDEX_FILE):
        raise InvalidArchiveError("Invalid OCI archive: index.json not found")

    index = await reader.read_json(INDEX_FILE)
    if not isinstance(index, dict):
        raise InvalidArchiveError("Invalid OCI archive: index.json is not an object")

    descriptors = await collect_manifest_descriptors(reader, index)
    if not descriptors:
        raise InvalidArchiveError("Invalid OCI archive: no image manifests found")

    descriptor = select_manifest(descriptors, platform)
    manifest = await _read_blob(reader, descriptor["digest"])
    if not isinstance(manifest, dict) or not isinstance(manifest.get("layers"), list):
        raise InvalidArchiveError(f"Invalid image manifest {descriptor['digest']}")

    config_digest = (manifest.get("config") or {}).get("digest", "")
    config_data = await _read_blob(reader, config_digest)
    if not isinstance(config_data, dict):
        raise InvalidArchiveError(f"Cannot read config blob: {config_digest}")

    layers = _layer_refs(reader, manifest)
    if not layers:
        raise InvalidArchiveError("We found no layers in the provided image")

    annotations = descriptor.get("annotations") or {}
    repo_tag = annotations.get("io.containerd.image.name")

    return ImageArchive(
        image_type=ImageType.OCI_ARCHIVE,
        layers=layers,
        config=ImageConfig.from_dict(config_data),
        image_id=config_digest,
        manifest_layers=[layer.get("digest", "") for layer in manifest["layers"]],
        repo_tags=[repo_tag] if repo_tag else [],
    )
