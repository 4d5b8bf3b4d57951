"""Digest parsing and validation utilities."""

import hashlib
import posixpath
import re

# Regex pattern for valid digest format (algorithm:hex)
DIGEST_PATTERN = re.compile(r"^[a-z0-9]+:[a-f0-9]+$")
HEX_PATTERN = re.compile(r"^[a-f0-9]{32,128}$")

SUPPORTED_ALGORITHMS = ["sha256", "sha512", "sha1", "md5"]


def new_hasher(algorithm: str = "sha256") -> "hashlib._Hash":
    """Create a hash object for incremental digest calculation.

    Args:
        algorithm: Hash algorithm (default: sha256)

    Returns:
        A fresh hashlib object

    Raises:
        ValueError: If algorithm is not supported
    """
    if algorithm not in hashlib.algorithms_available:
        raise ValueError(f"Unsupported algorithm: {algorithm}")
    return hashlib.new(algorithm)


def validate_digest(digest: str) -> bool:
    """Validate digest format.

    Args:
        digest: Digest string to validate

    Returns:
        True if valid digest format
    """
    if not isinstance(digest, str):
        return False

    if not DIGEST_PATTERN.match(digest):
        return False

    algorithm, _ = digest.split(":", 1)
    return algorithm in SUPPORTED_ALGORITHMS


def digest_to_blob_path(digest: str) -> str:
    """Map ``algorithm:hex`` to the OCI layout path ``blobs/algorithm/hex``."""
    if not validate_digest(digest):
        raise ValueError(f"Invalid digest format: {digest}")
    algorithm, value = digest.split(":", 1)
    return f"blobs/{algorithm}/{value}"


def digest_from_path(path: str) -> str:
    """Derive a digest from an archive member path.

    Handles the names docker save and skopeo produce:

        blobs/sha256/<hex>       -> sha256:<hex>
        <hex>.json / <hex>.tar   -> sha256:<hex>
        <id>/layer.tar           -> <id>
        sha256:<hex>             -> sha256:<hex>

    Anything else is returned unchanged.
    """
    normalized = posixpath.normpath(path).lstrip("/")
    parts = normalized.split("/")

    if len(parts) >= 3 and parts[-3] == "blobs":
        return f"{parts[-2]}:{parts[-1]}"

    if validate_digest(parts[-1]):
        return parts[-1]

    name = parts[-1]
    for suffix in (".tar.gz", ".json", ".tar"):
        if name.endswith(suffix):
            stem = name[: -len(suffix)]
            if validate_digest(stem):
                return stem
            if HEX_PATTERN.match(stem):
                return f"sha256:{stem}"

    if name == "layer.tar" and len(parts) >= 2:
        return parts[-2]

    return normalized
