"""Overlay resolution across an ordered layer stack."""

import asyncio
import logging
from typing import Iterable, Optional, Sequence

from ..config import ExtractorConfig
from ..models import ExtractedLayers, LayerRef
from .models import ExtractAction, LayerContents, ResolvedLayers
from .reader import TarStreamExtractor
from .whiteouts import is_path_under

logger = logging.getLogger(__name__)


def apply_layer(merged: ExtractedLayers, layer: LayerContents) -> None:
    """Overlay ``layer`` on top of ``merged`` in place.

    Deletions (opaque directories, then whiteouts) hit only what older layers
    contributed. Any entry of the layer shadows an older version of its path,
    even when nothing was extracted from it (a symlink, a directory, a failed
    callback); the layer's own results are added afterwards.
    """
    if layer.opaque_dirs or layer.whiteouts:
        for path in list(merged):
            if _is_deleted(path, layer):
                del merged[path]

    for path in layer.replaced_paths:
        merged.pop(path, None)

    for path, results in layer.files.items():
        merged[path] = dict(results)


def _is_deleted(path: str, layer: LayerContents) -> bool:
    if path in layer.whiteouts:
        return True
    for hidden in layer.whiteouts:
        if is_path_under(path, hidden):
            return True
    for directory in layer.opaque_dirs:
        if is_path_under(path, directory):
            return True
    return False


def merge_layers(layers: Iterable[LayerContents]) -> ExtractedLayers:
    """Merge per-layer contents, oldest layer first, into the final view."""
    merged: ExtractedLayers = {}
    for layer in layers:
        apply_layer(merged, layer)
    return merged


async def resolve_layers(
    layers: Sequence[LayerRef],
    actions: Sequence[ExtractAction],
    config: Optional[ExtractorConfig] = None,
) -> ResolvedLayers:
    """Extract ``actions`` from every layer and merge them in overlay order.

    Layers are read one at a time, oldest first. A layer that cannot be read
    aborts the whole resolution since later layers cannot be merged safely
    without it.

    Args:
        layers: Layer references, oldest first
        actions: Extract actions to apply to every layer
        config: Extraction settings

    Returns:
        ResolvedLayers with the merged files and all callback warnings

    Raises:
        LayerReadError: If any layer is not a readable tar
    """
    loop = asyncio.get_event_loop()
    extractor = TarStreamExtractor(actions, config)
    resolved = ResolvedLayers(extracted_layers={})

    for index, layer in enumerate(layers):
        logger.debug(f"Extracting layer {index + 1}/{len(layers)}: {layer.digest}")
        fileobj = await loop.run_in_executor(None, layer.opener)
        try:
            contents = await extractor.extract(fileobj, layer.digest)
        finally:
            await loop.run_in_executor(None, fileobj.close)

        apply_layer(resolved.extracted_layers, contents)
        resolved.layer_digests.append(layer.digest)
        resolved.warnings.extend(contents.warnings)

    return resolved
