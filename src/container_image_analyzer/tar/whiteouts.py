"""Whiteout marker handling.

See https://github.com/opencontainers/image-spec/blob/main/layer.md#whiteouts
"""

import posixpath

WHITEOUT_PREFIX = ".wh."
OPAQUE_WHITEOUT = ".wh..wh..opq"
# aufs bookkeeping entries (.wh..wh.plnk, .wh..wh.aufs) are not deletions
METADATA_PREFIX = ".wh..wh."


def normalize_entry_path(name: str) -> str:
    """Turn a tar member name into an absolute POSIX path."""
    return posixpath.normpath(posixpath.join("/", name))


def is_whiteout(path: str) -> bool:
    return posixpath.basename(path).startswith(WHITEOUT_PREFIX)


def is_opaque_whiteout(path: str) -> bool:
    return posixpath.basename(path) == OPAQUE_WHITEOUT


def whiteout_target(path: str) -> str:
    """Path hidden by the whiteout marker at ``path``."""
    directory, name = posixpath.split(path)
    return posixpath.join(directory, name[len(WHITEOUT_PREFIX) :])


def is_path_under(path: str, directory: str) -> bool:
    """True if ``path`` is strictly inside ``directory``."""
    if directory == "/":
        return path != "/"
    return path.startswith(directory.rstrip("/") + "/")


def classify_whiteout(path: str) -> tuple:
    """Classify a whiteout entry.

    Returns:
        ("opaque", directory), ("file", hidden_path) or ("metadata", path)
    """
    if is_opaque_whiteout(path):
        return "opaque", posixpath.dirname(path)
    if posixpath.basename(path).startswith(METADATA_PREFIX):
        return "metadata", path
    return "file", whiteout_target(path)
