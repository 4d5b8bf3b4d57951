"""Data models for installed OS packages."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class AnalysisType(str, Enum):
    """Package manager an analysis came from."""

    APK = "Apk"
    APT = "Apt"
    RPM = "Rpm"


@dataclass
class AnalyzedPackage:
    """One installed package as read from a package database.

    Attributes:
        name: Binary package name
        version: Installed version, None when the database omits it
        source: Source package the binary was built from (dpkg ``Source:``,
            apk ``o:``)
        source_version: Source package version when it differs from ``version``
        provides: Virtual package names this package satisfies
        deps: Names of packages this one depends on; constraints are dropped
        auto_installed: True if pulled in as a dependency, None when unknown
        purl: Package URL, filled in once the distribution is known
    """

    name: str
    version: Optional[str] = None
    source: Optional[str] = None
    source_version: Optional[str] = None
    provides: List[str] = field(default_factory=list)
    deps: Dict[str, bool] = field(default_factory=dict)
    auto_installed: Optional[bool] = None
    purl: Optional[str] = None

    @property
    def full_name(self) -> str:
        """``source/name`` when a source package is known, else ``name``."""
        if self.source:
            return f"{self.source}/{self.name}"
        return self.name


@dataclass
class ImagePackagesAnalysis:
    """Packages of one package manager found in an image."""

    image: str
    analyze_type: AnalysisType
    analysis: List[AnalyzedPackage] = field(default_factory=list)
