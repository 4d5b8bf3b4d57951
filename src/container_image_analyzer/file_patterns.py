"""User supplied include/exclude globs for collecting arbitrary files."""

import posixpath
from dataclasses import dataclass
from typing import List, Sequence

from .models import ExtractedLayers
from .tar import ExtractAction
from .utils.streams import stream_to_bytes

FIND_FILES_ACTION_NAME = "find-files-by-pattern"


@dataclass
class ManifestFile:
    """A file collected by pattern; ``path`` is its directory."""

    name: str
    path: str
    contents: bytes


def find_files_action(
    include: Sequence[str], exclude: Sequence[str] = ()
) -> ExtractAction:
    """Action returning the raw bytes of every file matching the globs."""
    return ExtractAction.for_globs(
        FIND_FILES_ACTION_NAME, include, exclude, callback=stream_to_bytes
    )


def get_matching_files(extracted_layers: ExtractedLayers) -> List[ManifestFile]:
    files = []
    for file_path in sorted(extracted_layers):
        contents = extracted_layers[file_path].get(FIND_FILES_ACTION_NAME)
        if contents is None:
            continue
        if not isinstance(contents, bytes):
            raise TypeError(f"Expected bytes for {file_path}")
        files.append(
            ManifestFile(
                name=posixpath.basename(file_path),
                path=posixpath.dirname(file_path),
                contents=contents,
            )
        )
    return files
