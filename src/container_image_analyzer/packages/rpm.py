"""Parser for rpm query output.

The text is what ``rpm -qa --queryformat "%{NAME}\\t%{VERSION}-%{RELEASE}\\t%{SIZE}\\n"``
prints: one tab-separated line per package. Reading the binary rpm database
itself is left to whoever produces that text.
"""

from typing import List

from .models import AnalysisType, AnalyzedPackage, ImagePackagesAnalysis

QUERY_FORMAT = "%{NAME}\t%{VERSION}-%{RELEASE}\t%{SIZE}\n"


def parse_rpm_output(text: str) -> List[AnalyzedPackage]:
    """Parse query output; lines without all three fields are skipped."""
    packages = []
    for line in text.split("\n"):
        fields = line.split("\t")
        if len(fields) < 3:
            continue
        name, version, size = fields[:3]
        if name and version and size:
            packages.append(AnalyzedPackage(name=name, version=version))
    return packages


def analyze(target_image: str, rpm_output: str) -> ImagePackagesAnalysis:
    return ImagePackagesAnalysis(
        image=target_image,
        analyze_type=AnalysisType.RPM,
        analysis=parse_rpm_output(rpm_output),
    )
