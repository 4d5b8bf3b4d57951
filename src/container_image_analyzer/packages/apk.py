"""Parser for the apk installed database (``/lib/apk/db/installed``).

Each line is ``<letter>:<value>``; a ``P:`` line starts a new package. See
https://wiki.alpinelinux.org/wiki/Apk_spec for the field letters.
"""

from typing import List, Optional

from .models import AnalysisType, AnalyzedPackage, ImagePackagesAnalysis


def parse_apk_database(text: str) -> List[AnalyzedPackage]:
    """Parse the apk database into package records.

    Lines before the first ``P:`` and unknown field letters are ignored.
    """
    packages: List[AnalyzedPackage] = []
    current: Optional[AnalyzedPackage] = None

    for line in text.split("\n"):
        if len(line) < 2 or line[1] != ":":
            continue
        key = line[0]
        value = line[2:].strip()

        if key == "P":
            current = AnalyzedPackage(name=value)
            packages.append(current)
            continue
        if current is None:
            continue

        if key == "V":
            current.version = value
        elif key == "o":
            current.source = value or None
        elif key == "p":
            for name in value.split():
                current.provides.append(name.split("=")[0])
        elif key in ("D", "r"):
            for name in value.split():
                # "!name" declares a conflict, not a dependency
                if name.startswith("!"):
                    continue
                current.deps[_strip_constraint(name)] = True

    return packages


def _strip_constraint(name: str) -> str:
    for operator in ("=", "<", ">", "~"):
        name = name.split(operator)[0]
    return name


def analyze(target_image: str, apk_db: str) -> ImagePackagesAnalysis:
    return ImagePackagesAnalysis(
        image=target_image,
        analyze_type=AnalysisType.APK,
        analysis=parse_apk_database(apk_db),
    )
