"""Example: static analysis of a saved image archive.

    docker save debian:12 -o debian.tar
    python examples/analyze_image.py debian.tar debian:12
"""

import asyncio
import json
import logging
import sys

from container_image_analyzer import ImageAnalyzerError, analyze

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def main(archive_path: str, image_name: str) -> int:
    try:
        result = await analyze(image_name, archive_path)
    except ImageAnalyzerError as e:
        logger.error(f"Analysis failed: {e}")
        return 1

    logger.info(f"OS: {result.os_release.name} {result.os_release.version}")
    for packages in result.results:
        if packages.analysis:
            logger.info(f"{packages.analyze_type.value}: {len(packages.analysis)} packages")
    for binary in result.binaries:
        logger.info(f"Binary {binary.path} {binary.hash_type}:{binary.hash}")
    for warning in result.warnings:
        logger.warning(f"{warning.path}: {warning.message}")

    for tree in result.dependency_trees:
        print(json.dumps(tree.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("usage: analyze_image.py <archive> <image-name>")
        sys.exit(2)
    sys.exit(asyncio.run(main(sys.argv[1], sys.argv[2])))
