"""Runtime configuration for image extraction."""

import os
import tempfile
from dataclasses import dataclass, field, replace

from .exceptions import ConfigurationError

ENV_PREFIX = "CONTAINER_IMAGE_ANALYZER_"

DEFAULT_PLATFORM = "linux/amd64"
DEFAULT_CHUNK_SIZE = 64 * 1024
DEFAULT_BUFFER_THRESHOLD = 8 * 1024 * 1024
DEFAULT_MAX_PENDING_CHUNKS = 8


@dataclass(frozen=True)
class ExtractorConfig:
    """Extraction settings.

    Attributes:
        platform: Platform used to pick a manifest out of an OCI index
            (``os/arch`` or ``os/arch/variant``)
        chunk_size: Number of bytes read from a tar entry per step
        buffer_threshold: Entries at or below this size are read once and
            handed to every matching callback from memory
        max_pending_chunks: Queue depth of each callback fork for entries
            larger than ``buffer_threshold``
        temp_dir: Directory for temporary archive files
    """

    platform: str = DEFAULT_PLATFORM
    chunk_size: int = DEFAULT_CHUNK_SIZE
    buffer_threshold: int = DEFAULT_BUFFER_THRESHOLD
    max_pending_chunks: int = DEFAULT_MAX_PENDING_CHUNKS
    temp_dir: str = field(default_factory=tempfile.gettempdir)

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ConfigurationError(f"chunk_size must be positive: {self.chunk_size}")
        if self.buffer_threshold < 0:
            raise ConfigurationError(
                f"buffer_threshold must not be negative: {self.buffer_threshold}"
            )
        if self.max_pending_chunks <= 0:
            raise ConfigurationError(
                f"max_pending_chunks must be positive: {self.max_pending_chunks}"
            )
        if len(self.platform.split("/")) not in (2, 3):
            raise ConfigurationError(f"Invalid platform: {self.platform}")

    @classmethod
    def from_env(cls, **overrides) -> "ExtractorConfig":
        """Build a config from ``CONTAINER_IMAGE_ANALYZER_*`` variables.

        Keyword arguments win over environment values.
        """
        values = {}
        platform = os.getenv(f"{ENV_PREFIX}PLATFORM")
        if platform:
            values["platform"] = platform
        for name in ("chunk_size", "buffer_threshold", "max_pending_chunks"):
            raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None:
                values[name] = _parse_int(name, raw)
        temp_dir = os.getenv(f"{ENV_PREFIX}TEMP_DIR")
        if temp_dir:
            values["temp_dir"] = temp_dir
        values.update(overrides)
        return cls(**values)

    def with_platform(self, platform: str | None) -> "ExtractorConfig":
        """Return a copy with another target platform."""
        if not platform:
            return self
        return replace(self, platform=platform)


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{ENV_PREFIX}{name.upper()} must be an integer: {raw}") from e
