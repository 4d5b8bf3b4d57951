"""Data models describing container images and extraction results."""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import IO, Any, Callable, Dict, List, Optional

# RFC3339 fractions may carry nanoseconds, datetime only keeps microseconds
_FRACTION_PATTERN = re.compile(r"(\.\d{6})\d+")


class ImageType(str, Enum):
    """Supported top-level archive formats."""

    DOCKER_ARCHIVE = "docker-archive"
    OCI_ARCHIVE = "oci-archive"
    KANIKO_ARCHIVE = "kaniko-archive"
    UNKNOWN = "unknown"


@dataclass
class HistoryEntry:
    """One entry of the image config history."""

    created: Optional[datetime] = None
    created_by: str = ""
    comment: str = ""
    empty_layer: bool = False


@dataclass
class ImageConfig:
    """Docker/OCI image configuration."""

    architecture: str = ""
    os: str = ""
    variant: Optional[str] = None
    created: Optional[datetime] = None
    cmd: List[str] = field(default_factory=list)
    entrypoint: List[str] = field(default_factory=list)
    env: List[str] = field(default_factory=list)
    user: str = ""
    working_dir: Optional[str] = None
    exposed_ports: Dict[str, Any] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)
    diff_ids: List[str] = field(default_factory=list)
    history: List[HistoryEntry] = field(default_factory=list)

    @property
    def platform(self) -> Optional[str]:
        """Platform in ``os/arch`` form, None when either part is unknown."""
        if self.os and self.architecture:
            return f"{self.os}/{self.architecture}"
        return None

    @classmethod
    def from_dict(cls, config_data: Dict[str, Any]) -> "ImageConfig":
        """Parse an image config JSON document."""
        runtime_config = config_data.get("config") or {}
        rootfs = config_data.get("rootfs") or {}

        history = [
            HistoryEntry(
                created=parse_timestamp(entry.get("created")),
                created_by=entry.get("created_by", ""),
                comment=entry.get("comment", ""),
                empty_layer=bool(entry.get("empty_layer", False)),
            )
            for entry in config_data.get("history") or []
            if isinstance(entry, dict)
        ]

        return cls(
            architecture=config_data.get("architecture", ""),
            os=config_data.get("os", ""),
            variant=config_data.get("variant"),
            created=parse_timestamp(config_data.get("created")),
            cmd=runtime_config.get("Cmd") or [],
            entrypoint=runtime_config.get("Entrypoint") or [],
            env=runtime_config.get("Env") or [],
            user=runtime_config.get("User", ""),
            working_dir=runtime_config.get("WorkingDir"),
            exposed_ports=runtime_config.get("ExposedPorts") or {},
            labels=runtime_config.get("Labels") or {},
            diff_ids=rootfs.get("diff_ids") or [],
            history=history,
        )


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an RFC3339 timestamp, returning None when it is absent or invalid."""
    if not value or not isinstance(value, str):
        return None
    normalized = _FRACTION_PATTERN.sub(r"\1", value.replace("Z", "+00:00"))
    try:
        return datetime.fromisoformat(normalized)
    except ValueError:
        return None


@dataclass
class LayerRef:
    """A layer blob inside an image archive.

    ``opener`` returns a readable binary file object positioned at the start of
    the (possibly compressed) layer tar. It performs blocking I/O.
    """

    digest: str
    tar_path: str
    opener: Callable[[], IO[bytes]] = field(repr=False)
    media_type: str = ""
    size: int = 0


@dataclass
class ImageArchive:
    """Layers and metadata read from an image archive, oldest layer first."""

    image_type: ImageType
    layers: List[LayerRef]
    config: ImageConfig
    image_id: Optional[str] = None
    manifest_layers: List[str] = field(default_factory=list)
    repo_tags: List[str] = field(default_factory=list)


@dataclass
class ExtractionWarning:
    """A non-fatal failure while handling one tar entry."""

    path: str
    action_name: str
    message: str


# path -> action name -> callback result
ExtractedLayers = Dict[str, Dict[str, Any]]


@dataclass
class ExtractionResult:
    """Merged view of the requested files plus image metadata."""

    image_type: ImageType
    image_id: Optional[str]
    manifest_layers: List[str]
    extracted_layers: ExtractedLayers
    rootfs_layers: List[str] = field(default_factory=list)
    platform: Optional[str] = None
    image_creation_time: Optional[datetime] = None
    image_labels: Dict[str, str] = field(default_factory=dict)
    image_config: ImageConfig = field(default_factory=ImageConfig)
    repo_tags: List[str] = field(default_factory=list)
    warnings: List[ExtractionWarning] = field(default_factory=list)
