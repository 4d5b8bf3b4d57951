"""Extract actions for package databases and accessors for their content."""

from dataclasses import dataclass
from typing import List, Optional

from ..extractor import get_content_as_bytes, get_content_as_string
from ..models import ExtractedLayers
from ..tar import ExtractAction
from ..utils.streams import stream_to_bytes, stream_to_string

APK_DB_PATH = "/lib/apk/db/installed"
DPKG_STATUS_PATH = "/var/lib/dpkg/status"
APT_EXTENDED_STATES_PATH = "/var/lib/apt/extended_states"
DISTROLESS_STATUS_DIR = "/var/lib/dpkg/status.d/"
RPM_DB_PATHS = ("/var/lib/rpm/Packages", "/usr/lib/sysimage/rpm/Packages")
# rpm 4.16+ (RHEL 9, Fedora 33+) keeps the database in SQLite
RPM_SQLITE_DB_PATHS = (
    "/var/lib/rpm/rpmdb.sqlite",
    "/usr/lib/sysimage/rpm/rpmdb.sqlite",
    "/usr/lib/sysimage/rpm/Packages.db",
)

# node distroless images register the node tarball as a deb in status.d
DISTROLESS_IGNORED_FILES = frozenset({DISTROLESS_STATUS_DIR + "nodejs"})

APK_DB_ACTION = ExtractAction.for_paths("apk-db", [APK_DB_PATH], stream_to_string)
DPKG_STATUS_ACTION = ExtractAction.for_paths("dpkg", [DPKG_STATUS_PATH], stream_to_string)
APT_EXTENDED_STATES_ACTION = ExtractAction.for_paths(
    "ext", [APT_EXTENDED_STATES_PATH], stream_to_string
)
DISTROLESS_STATUS_ACTION = ExtractAction(
    "dpkg-status-d",
    lambda path: path.startswith(DISTROLESS_STATUS_DIR),
    stream_to_string,
)
RPM_DB_ACTION = ExtractAction.for_paths("rpm-db", RPM_DB_PATHS, stream_to_bytes)
RPM_SQLITE_DB_ACTION = ExtractAction.for_paths(
    "rpm-sqlite-db", RPM_SQLITE_DB_PATHS, stream_to_bytes
)


@dataclass
class AptFiles:
    """Raw dpkg status and apt extended_states text; empty when absent."""

    dpkg_file: str = ""
    ext_file: str = ""


def package_manager_actions(distroless: bool = False) -> List[ExtractAction]:
    """Actions pulling every supported package database out of an image."""
    actions = [
        APK_DB_ACTION,
        DPKG_STATUS_ACTION,
        APT_EXTENDED_STATES_ACTION,
        RPM_DB_ACTION,
        RPM_SQLITE_DB_ACTION,
    ]
    if distroless:
        actions.append(DISTROLESS_STATUS_ACTION)
    return actions


def get_apk_db_content(extracted_layers: ExtractedLayers) -> str:
    return get_content_as_string(extracted_layers, APK_DB_ACTION) or ""


def get_apt_db_content(extracted_layers: ExtractedLayers) -> AptFiles:
    return AptFiles(
        dpkg_file=get_content_as_string(extracted_layers, DPKG_STATUS_ACTION) or "",
        ext_file=get_content_as_string(extracted_layers, APT_EXTENDED_STATES_ACTION)
        or "",
    )


def get_distroless_status_files(extracted_layers: ExtractedLayers) -> List[str]:
    """Contents of every ``status.d`` entry, in path order."""
    files = []
    for path in sorted(extracted_layers):
        if path in DISTROLESS_IGNORED_FILES:
            continue
        content = extracted_layers[path].get(DISTROLESS_STATUS_ACTION.action_name)
        if content is not None:
            files.append(content)
    return files


def get_rpm_db_content(extracted_layers: ExtractedLayers) -> Optional[bytes]:
    """Raw Berkeley DB rpm database, for an rpm query to turn into text."""
    return get_content_as_bytes(extracted_layers, RPM_DB_ACTION)


def get_rpm_sqlite_db_content(extracted_layers: ExtractedLayers) -> Optional[bytes]:
    """Raw SQLite rpm database (starts with ``SQLite format 3``)."""
    return get_content_as_bytes(extracted_layers, RPM_SQLITE_DB_ACTION)
