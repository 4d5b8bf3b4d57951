"""Custom exceptions for the container image analyzer."""


class ImageAnalyzerError(Exception):
    """Base exception for all analyzer errors."""

    pass


class ConfigurationError(ImageAnalyzerError):
    """Raised when a configuration value is invalid."""

    pass


class ArchiveError(ImageAnalyzerError):
    """Base exception for errors that abort the whole extraction."""

    pass


class ArchiveNotFoundError(ArchiveError):
    """Raised when the image archive is missing or not a regular file."""

    pass


class InvalidArchiveError(ArchiveError):
    """Raised when the archive does not match any supported image format."""

    pass


class PlatformNotFoundError(ArchiveError):
    """Raised when no manifest matches the requested platform."""

    pass


class LayerReadError(ArchiveError):
    """Raised when a layer cannot be decompressed or parsed as tar."""

    pass


class ManifestError(ImageAnalyzerError):
    """Raised when a manifest, index or config document is malformed."""

    pass


class ArchiveDownloadError(ImageAnalyzerError):
    """Raised when a remote image archive cannot be downloaded."""

    pass


class OSReleaseError(ImageAnalyzerError):
    """Raised when release files exist but none of them can be parsed."""

    pass
