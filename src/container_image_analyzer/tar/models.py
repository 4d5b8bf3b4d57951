"""Data models for tar extraction."""

from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Set

from ..models import ExtractedLayers, ExtractionWarning
from ..utils.glob import make_path_matcher
from .entry_stream import StreamCallback


@dataclass(frozen=True)
class ExtractAction:
    """What to pull out of an image and how to convert it.

    Attributes:
        action_name: Key under which the callback result is stored; should be
            unique across the actions of one extraction
        file_path_matches: Predicate over the absolute entry path
        callback: Converts the entry stream into a result; raw bytes when None
    """

    action_name: str
    file_path_matches: Callable[[str], bool]
    callback: Optional[StreamCallback] = None

    @classmethod
    def for_paths(
        cls,
        action_name: str,
        paths: Iterable[str],
        callback: Optional[StreamCallback] = None,
    ) -> "ExtractAction":
        """Match a fixed set of absolute paths."""
        wanted = frozenset(paths)
        return cls(action_name, wanted.__contains__, callback)

    @classmethod
    def for_globs(
        cls,
        action_name: str,
        include: Iterable[str],
        exclude: Iterable[str] = (),
        callback: Optional[StreamCallback] = None,
    ) -> "ExtractAction":
        """Match include globs that no exclude glob matches."""
        return cls(action_name, make_path_matcher(include, exclude), callback)


@dataclass
class LayerContents:
    """What one layer contributed: matched files and deletion markers."""

    digest: str
    files: ExtractedLayers = field(default_factory=dict)
    whiteouts: Set[str] = field(default_factory=set)
    opaque_dirs: Set[str] = field(default_factory=set)
    # every non-whiteout path the layer holds, matched or not
    replaced_paths: Set[str] = field(default_factory=set)
    warnings: List[ExtractionWarning] = field(default_factory=list)
    entry_count: int = 0


@dataclass
class ResolvedLayers:
    """Merged view over an ordered layer stack."""

    extracted_layers: ExtractedLayers
    layer_digests: List[str] = field(default_factory=list)
    warnings: List[ExtractionWarning] = field(default_factory=list)
