"""Kaniko tarballs.

Two shapes are handled:

- a ``manifest.json`` listing ``*.tar.gz`` layers next to a ``sha256:<hex>``
  config file, as written by ``kaniko --tar-path``;
- a flat tarball of the final filesystem with no layer boundaries, which is
  read as one synthetic layer.
"""

import posixpath
from typing import Any, Dict, List

from ..exceptions import InvalidArchiveError
from ..models import ImageArchive, ImageConfig, ImageType, LayerRef
from .docker import MANIFEST_FILE, validate_manifest_data
from .reader import ArchiveReader, normalize_member_name

FLAT_LAYER_DIGEST = "flat-filesystem"
KANIKO_LAYER_SUFFIX = ".tar.gz"


def is_kaniko_manifest(manifest_data: Any) -> bool:
    """True if every layer listed in manifest.json is a ``.tar.gz`` file."""
    if not isinstance(manifest_data, list) or not manifest_data:
        return False
    entry = manifest_data[0]
    if not isinstance(entry, dict):
        return False
    layers = entry.get("Layers")
    return (
        isinstance(layers, list)
        and bool(layers)
        and all(
            isinstance(layer, str) and layer.endswith(KANIKO_LAYER_SUFFIX)
            for layer in layers
        )
    )


def get_image_id(manifest_entry: Dict[str, Any]) -> str:
    image_id = manifest_entry["Config"]
    if ":" in image_id:
        return image_id
    return f"sha256:{image_id}"


async def _load_layered(reader: ArchiveReader) -> ImageArchive:
    entry = validate_manifest_data(await reader.read_json(MANIFEST_FILE))[0]

    config = ImageConfig()
    if reader.has_file(entry["Config"]):
        config_data = await reader.read_json(entry["Config"])
        if isinstance(config_data, dict):
            config = ImageConfig.from_dict(config_data)

    manifest_layers = [normalize_member_name(layer) for layer in entry["Layers"]]
    layers: List[LayerRef] = []
    for layer_path in manifest_layers:
        member = reader.get_member(layer_path)
        if member is None or not member.isfile():
            continue
        layers.append(
            LayerRef(
                digest=posixpath.basename(layer_path)[: -len(KANIKO_LAYER_SUFFIX)],
                tar_path=layer_path,
                opener=reader.opener(layer_path),
                media_type="application/vnd.docker.image.rootfs.diff.tar.gzip",
                size=member.size,
            )
        )

    if not layers:
        raise InvalidArchiveError("We found no layers in the provided image")

    return ImageArchive(
        image_type=ImageType.KANIKO_ARCHIVE,
        layers=layers,
        config=config,
        image_id=get_image_id(entry),
        manifest_layers=manifest_layers,
        repo_tags=entry.get("RepoTags") or [],
    )


def _load_flat(reader: ArchiveReader) -> ImageArchive:
    if not reader.names:
        raise InvalidArchiveError("Invalid Kaniko archive: archive is empty")

    layer = LayerRef(
        digest=FLAT_LAYER_DIGEST,
        tar_path=str(reader.archive_path),
        opener=reader.whole_archive_opener(),
        media_type="application/x-tar",
        size=reader.archive_path.stat().st_size,
    )
    return ImageArchive(
        image_type=ImageType.KANIKO_ARCHIVE,
        layers=[layer],
        config=ImageConfig(),
    )


async def load_kaniko_archive(reader: ArchiveReader) -> ImageArchive:
    """Read a kaniko tarball, layered or flat.

    Raises:
        InvalidArchiveError: If the archive is empty or lists no readable layers
    """
    if reader.has_file(MANIFEST_FILE):
        if is_kaniko_manifest(await reader.read_json(MANIFEST_FILE)):
            return await _load_layered(reader)
        raise InvalidArchiveError("Invalid Kaniko archive: layers are not .tar.gz files")
    return _load_flat(reader)
