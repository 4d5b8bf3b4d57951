"""Operating system detection from release files in the image."""

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from .exceptions import OSReleaseError
from .extractor import get_content_as_string
from .models import ExtractedLayers
from .tar import ExtractAction
from .utils.streams import stream_to_string

logger = logging.getLogger(__name__)

OS_RELEASE_PATH = "/etc/os-release"
# /etc/os-release is usually a symlink to this one, and symlinks are not followed
OS_RELEASE_FALLBACK_PATH = "/usr/lib/os-release"
LSB_RELEASE_PATH = "/etc/lsb-release"
DEBIAN_VERSION_PATH = "/etc/debian_version"
ALPINE_RELEASE_PATH = "/etc/alpine-release"
ORACLE_RELEASE_PATH = "/etc/oracle-release"
REDHAT_RELEASE_PATH = "/etc/redhat-release"
CENTOS_RELEASE_PATH = "/etc/centos-release"


@dataclass
class OSRelease:
    """Distribution name (an os-release ``ID``) and version."""

    name: str
    version: str
    pretty_name: str = ""


UNKNOWN_OS = OSRelease(name="unknown", version="0.0")


def _match(pattern: str, text: str) -> Optional[str]:
    match = re.search(pattern, text, re.MULTILINE)
    if not match:
        return None
    return match.group(1).strip().replace('"', "").replace("'", "")


def parse_os_release(text: str) -> Optional[OSRelease]:
    if not text:
        return None
    name = _match(r"^ID=(.+)$", text)
    if not name:
        raise ValueError("Failed to parse os-release: no ID")
    return OSRelease(
        name=name,
        version=_match(r"^VERSION_ID=(.+)$", text) or "unstable",
        pretty_name=_match(r"^PRETTY_NAME=(.+)$", text) or "",
    )


def parse_lsb_release(text: str) -> Optional[OSRelease]:
    if not text:
        return None
    name = _match(r"^DISTRIB_ID=(.+)$", text)
    version = _match(r"^DISTRIB_RELEASE=(.+)$", text)
    if not name or not version:
        raise ValueError("Failed to parse lsb-release")
    return OSRelease(
        name=name.lower(),
        version=version,
        pretty_name=_match(r"^DISTRIB_DESCRIPTION=(.+)$", text) or "",
    )


def parse_debian_version(text: str) -> Optional[OSRelease]:
    text = text.strip()
    if not text:
        return None
    if len(text) < 2:
        raise ValueError("Failed to parse debian_version")
    return OSRelease(name="debian", version=text.split(".")[0])


def parse_alpine_release(text: str) -> Optional[OSRelease]:
    text = text.strip()
    if not text:
        return None
    if len(text) < 2:
        raise ValueError("Failed to parse alpine-release")
    return OSRelease(name="alpine", version=text)


def parse_redhat_release(text: str) -> Optional[OSRelease]:
    """Parse ``<Name> ... release <major>.<minor>`` style files."""
    text = text.strip()
    if not text:
        return None
    name = _match(r"^(\S+)", text)
    version = _match(r"(\d+)\.", text)
    if not name or not version:
        raise ValueError("Failed to parse release file")
    name = name.lower()
    if name == "red":
        name = "rhel"
    return OSRelease(name=name, version=version, pretty_name=text.splitlines()[0])


def parse_oracle_release(text: str) -> Optional[OSRelease]:
    release = parse_redhat_release(text)
    if release is not None:
        release.name = "oracle"
    return release


ReleaseParser = Callable[[str], Optional[OSRelease]]

# Checked in order; the first file that parses wins.
RELEASE_FILES: List[Tuple[str, str, ReleaseParser]] = [
    ("os-release", OS_RELEASE_PATH, parse_os_release),
    ("os-release-fallback", OS_RELEASE_FALLBACK_PATH, parse_os_release),
    ("lsb-release", LSB_RELEASE_PATH, parse_lsb_release),
    ("debian-version", DEBIAN_VERSION_PATH, parse_debian_version),
    ("alpine-release", ALPINE_RELEASE_PATH, parse_alpine_release),
    ("oracle-release", ORACLE_RELEASE_PATH, parse_oracle_release),
    ("redhat-release", REDHAT_RELEASE_PATH, parse_redhat_release),
    ("centos-release", CENTOS_RELEASE_PATH, parse_redhat_release),
]

OS_RELEASE_ACTIONS = [
    ExtractAction.for_paths(action_name, [path], stream_to_string)
    for action_name, path, _ in RELEASE_FILES
]


def detect_os_release(extracted_layers: ExtractedLayers) -> OSRelease:
    """Work out the distribution from the extracted release files.

    Returns ``unknown``/``0.0`` when the image has no release file at all.

    Raises:
        OSReleaseError: If release files exist but none can be parsed
    """
    found_release_file = False
    release: Optional[OSRelease] = None

    for action, (_, path, parser) in zip(OS_RELEASE_ACTIONS, RELEASE_FILES):
        text = get_content_as_string(extracted_layers, action)
        if not text:
            continue
        found_release_file = True
        try:
            release = parser(text)
        except ValueError as e:
            logger.debug(f"Malformed release file {path}: {e}")
            continue
        if release is not None:
            break

    if release is None:
        if found_release_file:
            raise OSReleaseError("Failed to parse OS release file")
        return OSRelease(UNKNOWN_OS.name, UNKNOWN_OS.version)

    # Oracle Linux identifies itself as "ol"
    if release.name == "ol":
        release.name = "oracle"
    # SLES 15 -> 15.0
    if release.name == "sles" and release.version and "." not in release.version:
        release.version += ".0"

    return release
