"""Package URLs (https://github.com/package-url/purl-spec) for OS packages."""

from typing import Iterable, Optional

from packageurl import PackageURL

from .models import AnalysisType, AnalyzedPackage

PURL_TYPES = {
    AnalysisType.APK: "apk",
    AnalysisType.APT: "deb",
    AnalysisType.RPM: "rpm",
}


def package_url(
    package: AnalyzedPackage,
    analysis_type: AnalysisType,
    distro: Optional[str] = None,
    distro_version: Optional[str] = None,
) -> str:
    """Build the purl of an installed package.

    ``distro`` becomes the namespace (``pkg:deb/debian/...``); the source
    package, when it differs, is kept in the ``upstream`` qualifier.
    """
    qualifiers = {}
    if package.source and package.source != package.name:
        upstream = package.source
        if package.source_version:
            upstream = f"{upstream}@{package.source_version}"
        qualifiers["upstream"] = upstream
    if distro and distro_version:
        qualifiers["distro"] = f"{distro}-{distro_version}"

    return PackageURL(
        type=PURL_TYPES[analysis_type],
        namespace=distro or None,
        name=package.name,
        version=package.version or None,
        qualifiers=qualifiers or None,
    ).to_string()


def assign_purls(
    packages: Iterable[AnalyzedPackage],
    analysis_type: AnalysisType,
    distro: Optional[str] = None,
    distro_version: Optional[str] = None,
) -> None:
    """Fill ``purl`` on every package in place."""
    for package in packages:
        package.purl = package_url(package, analysis_type, distro, distro_version)
