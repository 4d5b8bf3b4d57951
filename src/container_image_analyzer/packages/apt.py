"""Parsers for the dpkg status database and apt's extended_states file."""

import re
from typing import Dict, Iterable, List, Optional

from .models import AnalysisType, AnalyzedPackage, ImagePackagesAnalysis

# "Source: glibc (2.31-13)" -> name, version
_SOURCE_PATTERN = re.compile(r"^(\S+)(?:\s+\((.+)\))?")


def parse_dpkg_status(text: str) -> List[AnalyzedPackage]:
    """Parse a dpkg status file (or a distroless ``status.d`` entry).

    Records are ``Key: value`` blocks; a ``Package:`` line starts a new one.
    Continuation lines and unknown keys are ignored. Version constraints
    are stripped from ``Depends``/``Pre-Depends``/``Provides`` and every
    alternative of an ``a | b`` group is recorded.
    """
    packages: List[AnalyzedPackage] = []
    current: Optional[AnalyzedPackage] = None

    for line in text.split("\n"):
        key, sep, value = line.partition(": ")
        if not sep:
            continue

        if key == "Package":
            current = AnalyzedPackage(name=value.strip())
            packages.append(current)
            continue
        if current is None:
            continue

        if key == "Version":
            current.version = value.strip()
        elif key == "Source":
            match = _SOURCE_PATTERN.match(value.strip())
            if match:
                current.source, current.source_version = match.groups()
        elif key == "Provides":
            for name in value.split(","):
                name = _first_token(name)
                if name:
                    current.provides.append(name)
        elif key in ("Depends", "Pre-Depends"):
            for group in value.split(","):
                for name in group.split("|"):
                    name = _first_token(name)
                    if name:
                        current.deps[name] = True

    return packages


def _first_token(value: str) -> str:
    parts = value.split()
    if not parts:
        return ""
    # multiarch qualifiers, e.g. "python3:any"
    return parts[0].split(":")[0]


def parse_extended_states(text: str) -> Dict[str, bool]:
    """Names of packages apt marked ``Auto-Installed: 1``."""
    auto_installed: Dict[str, bool] = {}
    current: Optional[str] = None

    for line in text.split("\n"):
        key, sep, value = line.partition(": ")
        if not sep:
            continue
        if key == "Package":
            current = value.strip()
        elif key == "Auto-Installed" and current is not None:
            if value.strip() == "1":
                auto_installed[current] = True

    return auto_installed


def set_auto_installed(packages: Iterable[AnalyzedPackage], ext_file: str) -> None:
    """Flag packages listed as auto-installed in ``ext_file``.

    Packages the file does not mention keep ``auto_installed`` unset.
    """
    auto_installed = parse_extended_states(ext_file)
    for package in packages:
        if auto_installed.get(package.name):
            package.auto_installed = True


def analyze(
    target_image: str, dpkg_file: str, ext_file: str = ""
) -> ImagePackagesAnalysis:
    packages = parse_dpkg_status(dpkg_file)
    if ext_file:
        set_auto_installed(packages, ext_file)
    return ImagePackagesAnalysis(
        image=target_image, analyze_type=AnalysisType.APT, analysis=packages
    )


def analyze_distroless(
    target_image: str, status_files: Iterable[str]
) -> ImagePackagesAnalysis:
    """Combine the per-package files of a distroless ``status.d`` directory."""
    packages: List[AnalyzedPackage] = []
    for content in status_files:
        packages.extend(parse_dpkg_status(content))
    return ImagePackagesAnalysis(
        image=target_image, analyze_type=AnalysisType.APT, analysis=packages
    )
