"""Platform parsing and matching."""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, TypeVar

from ..exceptions import ConfigurationError

T = TypeVar("T")


@dataclass(frozen=True)
class Platform:
    """Target platform, e.g. ``linux/arm64/v8``."""

    os: str
    architecture: str
    variant: Optional[str] = None

    @classmethod
    def parse(cls, value: str) -> "Platform":
        parts = value.split("/")
        if len(parts) not in (2, 3) or not all(parts):
            raise ConfigurationError(f"Invalid platform: {value}")
        return cls(*parts)

    def __str__(self) -> str:
        parts = [self.os, self.architecture]
        if self.variant:
            parts.append(self.variant)
        return "/".join(parts)


def matches_platform(data: Dict[str, Any], platform: Platform) -> bool:
    """True if a config or index ``platform`` dict has the same os and architecture."""
    return (
        data.get("os") == platform.os
        and data.get("architecture") == platform.architecture
    )


def best_match(
    candidates: Iterable[T],
    platform: Platform,
    get_platform: Callable[[T], Dict[str, Any]],
) -> Optional[T]:
    """Pick the candidate matching ``platform``.

    Candidates must match os and architecture; when several do, the variant
    decides.
    """
    matches = [item for item in candidates if matches_platform(get_platform(item), platform)]
    if len(matches) > 1:
        for item in matches:
            if get_platform(item).get("variant") == platform.variant:
                return item
        return None
    return matches[0] if matches else None
