"""Installed OS package databases: extract actions, parsers and models."""

from .apk import parse_apk_database
from .apt import parse_dpkg_status, parse_extended_states, set_auto_installed
from .models import AnalysisType, AnalyzedPackage, ImagePackagesAnalysis
from .purl import assign_purls, package_url
from .rpm import parse_rpm_output

__all__ = [
    "AnalysisType",
    "AnalyzedPackage",
    "ImagePackagesAnalysis",
    "assign_purls",
    "package_url",
    "parse_apk_database",
    "parse_dpkg_status",
    "parse_extended_states",
    "parse_rpm_output",
    "set_auto_installed",
]
