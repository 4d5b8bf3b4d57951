"""Hashes of runtime binaries and jars, for matching unpackaged software."""

from dataclasses import dataclass
from typing import List

from .models import ExtractedLayers
from .tar import ExtractAction
from .utils.streams import (
    HASH_ALGORITHM_SHA1,
    HASH_ALGORITHM_SHA256,
    stream_to_sha1,
    stream_to_sha256,
)

NODE_BINARY_ACTION = ExtractAction.for_globs(
    "node", ["**/node"], callback=stream_to_sha256
)
JAVA_BINARY_ACTION = ExtractAction.for_globs(
    "java", ["**/java"], callback=stream_to_sha256
)
JAR_ACTION = ExtractAction.for_globs("jar", ["**/*.jar"], callback=stream_to_sha1)

BINARY_ACTIONS = [NODE_BINARY_ACTION, JAVA_BINARY_ACTION, JAR_ACTION]

HASH_TYPES = {
    NODE_BINARY_ACTION.action_name: HASH_ALGORITHM_SHA256,
    JAVA_BINARY_ACTION.action_name: HASH_ALGORITHM_SHA256,
    JAR_ACTION.action_name: HASH_ALGORITHM_SHA1,
}


@dataclass
class BinaryFileData:
    """A hashed file found in the image."""

    name: str
    path: str
    hash_type: str
    hash: str


def get_binaries_hashes(extracted_layers: ExtractedLayers) -> List[BinaryFileData]:
    """One entry per file and binary action that hashed it."""
    binaries = []
    for path in sorted(extracted_layers):
        for action_name, result in extracted_layers[path].items():
            hash_type = HASH_TYPES.get(action_name)
            if hash_type is None:
                continue
            if not isinstance(result, str):
                raise TypeError(
                    f"Expected a hex digest for {path}, got {type(result).__name__}"
                )
            binaries.append(BinaryFileData(path, path, hash_type, result))
    return binaries
