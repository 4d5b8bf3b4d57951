"""Static analysis of an image archive: OS, packages, binaries and trees."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Sequence

from .binaries import BINARY_ACTIONS, BinaryFileData, get_binaries_hashes
from .config import ExtractorConfig
from .dependency_tree import DependencyTree, build_tree
from .extractor import extract_image_content
from .file_patterns import ManifestFile, find_files_action, get_matching_files
from .models import ExtractionWarning, ImageType
from .os_release import OS_RELEASE_ACTIONS, UNKNOWN_OS, OSRelease, detect_os_release
from .packages import apk, apt, rpm
from .packages.inputs import (
    get_apk_db_content,
    get_apt_db_content,
    get_distroless_status_files,
    get_rpm_db_content,
    get_rpm_sqlite_db_content,
    package_manager_actions,
)
from .packages.models import ImagePackagesAnalysis
from .packages.purl import PURL_TYPES, assign_purls
from .tar import ExtractAction

logger = logging.getLogger(__name__)

# Turns a raw rpm database, Berkeley DB or SQLite, into query output
# (see packages.rpm.QUERY_FORMAT)
RpmQuery = Callable[[bytes], Awaitable[str]]


@dataclass
class StaticAnalysis:
    """Everything found in one image."""

    image_id: Optional[str]
    os_release: OSRelease
    results: List[ImagePackagesAnalysis]
    dependency_trees: List[DependencyTree] = field(default_factory=list)
    binaries: List[BinaryFileData] = field(default_factory=list)
    image_layers: List[str] = field(default_factory=list)
    rootfs_layers: List[str] = field(default_factory=list)
    manifest_files: List[ManifestFile] = field(default_factory=list)
    platform: Optional[str] = None
    warnings: List[ExtractionWarning] = field(default_factory=list)


def static_analysis_actions(
    distroless: bool = False,
    globs_include: Sequence[str] = (),
    globs_exclude: Sequence[str] = (),
) -> List[ExtractAction]:
    actions = package_manager_actions(distroless)
    actions.extend(OS_RELEASE_ACTIONS)
    actions.extend(BINARY_ACTIONS)
    if globs_include:
        actions.append(find_files_action(globs_include, globs_exclude))
    return actions


async def _query_rpm(
    databases: Sequence[Optional[bytes]], rpm_query: Optional[RpmQuery]
) -> str:
    found = [database for database in databases if database]
    if not found:
        return ""
    if rpm_query is None:
        logger.warning("Image has an rpm database but no rpm query was provided")
        return ""
    outputs = [await rpm_query(database) for database in found]
    return "\n".join(outputs)


async def analyze(
    target_image: str,
    archive_path: str,
    image_type: Optional[ImageType] = None,
    platform: Optional[str] = None,
    distroless: bool = False,
    globs_include: Sequence[str] = (),
    globs_exclude: Sequence[str] = (),
    rpm_query: Optional[RpmQuery] = None,
    config: Optional[ExtractorConfig] = None,
) -> StaticAnalysis:
    """Analyze an image archive without running it.

    Args:
        target_image: Image name used in results and tree roots
        archive_path: Path to the image archive
        image_type: Declared archive type, detected when omitted
        platform: Platform to select from a multi-platform image
        distroless: Also read the per-package files of ``/var/lib/dpkg/status.d``
        globs_include: Globs of extra files to collect verbatim
        globs_exclude: Globs excluded from ``globs_include``
        rpm_query: Converts an rpm database into query output. It is called
            once per database found, Berkeley DB first, then SQLite. rpm
            packages are not reported without it
        config: Extraction settings

    Returns:
        StaticAnalysis of the image

    Raises:
        ArchiveError: If the archive cannot be read (see ``extract_image_content``)
        OSReleaseError: If release files exist but cannot be parsed
    """
    actions = static_analysis_actions(distroless, globs_include, globs_exclude)
    extraction = await extract_image_content(
        archive_path, actions, image_type, platform, config
    )
    extracted_layers = extraction.extracted_layers

    os_release = detect_os_release(extracted_layers)
    apt_files = get_apt_db_content(extracted_layers)
    distroless_files = []
    if distroless:
        distroless_files = get_distroless_status_files(extracted_layers)
    rpm_output = await _query_rpm(
        [
            get_rpm_db_content(extracted_layers),
            get_rpm_sqlite_db_content(extracted_layers),
        ],
        rpm_query,
    )

    loop = asyncio.get_event_loop()
    results = list(
        await asyncio.gather(
            loop.run_in_executor(
                None, apk.analyze, target_image, get_apk_db_content(extracted_layers)
            ),
            loop.run_in_executor(
                None,
                apt.analyze,
                target_image,
                apt_files.dpkg_file,
                apt_files.ext_file,
            ),
            loop.run_in_executor(None, rpm.analyze, target_image, rpm_output),
            loop.run_in_executor(
                None, apt.analyze_distroless, target_image, distroless_files
            ),
        )
    )

    distro = os_release.name if os_release.name != UNKNOWN_OS.name else None
    trees = []
    for result in results:
        if not result.analysis:
            continue
        assign_purls(result.analysis, result.analyze_type, distro, os_release.version)
        trees.append(
            build_tree(
                target_image,
                PURL_TYPES[result.analyze_type],
                result.analysis,
                os_release,
            )
        )

    logger.info(
        f"{target_image}: {os_release.name} {os_release.version}, "
        f"{sum(len(result.analysis) for result in results)} packages"
    )

    return StaticAnalysis(
        image_id=extraction.image_id,
        os_release=os_release,
        results=results,
        dependency_trees=trees,
        binaries=get_binaries_hashes(extracted_layers),
        image_layers=extraction.manifest_layers,
        rootfs_layers=extraction.rootfs_layers,
        manifest_files=get_matching_files(extracted_layers),
        platform=extraction.platform,
        warnings=extraction.warnings,
    )
