"""Layer tar extraction and overlay resolution."""

from .entry_stream import EntryStream
from .layers import apply_layer, merge_layers, resolve_layers
from .models import ExtractAction, LayerContents, ResolvedLayers
from .reader import TarStreamExtractor, extract_layer

__all__ = [
    "EntryStream",
    "ExtractAction",
    "LayerContents",
    "ResolvedLayers",
    "TarStreamExtractor",
    "apply_layer",
    "extract_layer",
    "merge_layers",
    "resolve_layers",
]
