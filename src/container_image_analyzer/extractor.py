"""Pull requested files out of an image archive in their final, merged state."""

import logging
from typing import Any, Optional, Sequence, Union

from .archive import open_archive
from .config import ExtractorConfig
from .models import ExtractedLayers, ExtractionResult, ImageType
from .tar import ExtractAction, resolve_layers

logger = logging.getLogger(__name__)


async def extract_image_content(
    archive_path: str,
    actions: Sequence[ExtractAction],
    image_type: Optional[Union[ImageType, str]] = None,
    platform: Optional[str] = None,
    config: Optional[ExtractorConfig] = None,
) -> ExtractionResult:
    """Run ``actions`` over every layer of an image and merge the results.

    Args:
        archive_path: Path to a docker save, OCI layout or kaniko tarball
        actions: Extract actions; their names key the per-path results
        image_type: Declared archive type, detected when omitted
        platform: Platform to select from a multi-platform image
        config: Extraction settings

    Returns:
        ExtractionResult holding only the requested paths as they appear in
        the final filesystem, plus image metadata

    Raises:
        ArchiveNotFoundError: If the archive does not exist
        InvalidArchiveError: If the archive format is not supported
        PlatformNotFoundError: If the platform is not in the image
        LayerReadError: If a layer is not a readable tar
    """
    config = config or ExtractorConfig()

    async with open_archive(archive_path, image_type, platform, config) as image:
        logger.info(
            f"Extracting {len(actions)} actions from {len(image.layers)} layers "
            f"of {image.image_type.value} {archive_path}"
        )
        resolved = await resolve_layers(image.layers, actions, config)

    if resolved.warnings:
        logger.warning(
            f"{len(resolved.warnings)} extract callbacks failed on {archive_path}"
        )

    image_config = image.config
    return ExtractionResult(
        image_type=image.image_type,
        image_id=image.image_id,
        manifest_layers=image.manifest_layers,
        extracted_layers=resolved.extracted_layers,
        rootfs_layers=image_config.diff_ids or resolved.layer_digests,
        platform=image_config.platform,
        image_creation_time=image_config.created,
        image_labels=image_config.labels,
        image_config=image_config,
        repo_tags=image.repo_tags,
        warnings=resolved.warnings,
    )


def get_content(
    extracted_layers: ExtractedLayers, action: ExtractAction
) -> Optional[Any]:
    """Result of ``action`` for the first extracted path it matches."""
    for path, results in extracted_layers.items():
        if action.action_name in results and action.file_path_matches(path):
            return results[action.action_name]
    return None


def get_content_as_string(
    extracted_layers: ExtractedLayers, action: ExtractAction
) -> Optional[str]:
    """Like ``get_content`` but decodes bytes results as UTF-8."""
    content = get_content(extracted_layers, action)
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    if content is None or isinstance(content, str):
        return content
    return str(content)


def get_content_as_bytes(
    extracted_layers: ExtractedLayers, action: ExtractAction
) -> Optional[bytes]:
    """Like ``get_content`` but returns bytes, encoding str results as UTF-8."""
    content = get_content(extracted_layers, action)
    if isinstance(content, str):
        return content.encode("utf-8")
    if content is None or isinstance(content, bytes):
        return content
    return None
