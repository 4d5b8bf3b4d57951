"""Container Image Analyzer - Async static analysis of container image archives."""

__version__ = "0.1.0"

from .config import ExtractorConfig
from .exceptions import (
    ArchiveDownloadError,
    ArchiveError,
    ArchiveNotFoundError,
    ConfigurationError,
    ImageAnalyzerError,
    InvalidArchiveError,
    LayerReadError,
    ManifestError,
    OSReleaseError,
    PlatformNotFoundError,
)
from .extractor import (
    extract_image_content,
    get_content_as_bytes,
    get_content_as_string,
)
from .models import ExtractionResult, ExtractionWarning, ImageType
from .static_analyzer import StaticAnalysis, analyze
from .tar import EntryStream, ExtractAction

__all__ = [
    "ExtractorConfig",
    "ExtractAction",
    "EntryStream",
    "ExtractionResult",
    "ExtractionWarning",
    "ImageType",
    "StaticAnalysis",
    "analyze",
    "extract_image_content",
    "get_content_as_bytes",
    "get_content_as_string",
    "ImageAnalyzerError",
    "ConfigurationError",
    "ArchiveError",
    "ArchiveNotFoundError",
    "InvalidArchiveError",
    "PlatformNotFoundError",
    "LayerReadError",
    "ManifestError",
    "OSReleaseError",
    "ArchiveDownloadError",
]
