"""Tests for digest utilities."""

import pytest

from container_image_analyzer.utils.digest import (
    digest_from_path,
    digest_to_blob_path,
    new_hasher,
    validate_digest,
)

HEX = "a" * 64


def test_validate_digest():
    """Test digest validation."""
    assert validate_digest(f"sha256:{HEX}")
    assert validate_digest(f"sha512:{'b' * 128}")
    assert not validate_digest(HEX)
    assert not validate_digest(f"sha256:{HEX.upper()}")
    assert not validate_digest(f"crc32:{HEX}")
    assert not validate_digest(None)


@pytest.mark.parametrize(
    "path,expected",
    [
        (f"blobs/sha256/{HEX}", f"sha256:{HEX}"),
        (f"./blobs/sha256/{HEX}", f"sha256:{HEX}"),
        (f"{HEX}.json", f"sha256:{HEX}"),
        (f"{HEX}.tar", f"sha256:{HEX}"),
        (f"sha256:{HEX}.tar.gz", f"sha256:{HEX}"),
        (f"sha256:{HEX}", f"sha256:{HEX}"),
        ("0123abcd/layer.tar", "0123abcd"),
        ("layers/custom.tar", "layers/custom.tar"),
    ],
)
def test_digest_from_path(path, expected):
    """Test digests derived from archive member names."""
    assert digest_from_path(path) == expected


def test_digest_to_blob_path():
    assert digest_to_blob_path(f"sha256:{HEX}") == f"blobs/sha256/{HEX}"

    with pytest.raises(ValueError):
        digest_to_blob_path("not-a-digest")


def test_new_hasher():
    assert new_hasher("sha1").name == "sha1"

    with pytest.raises(ValueError):
        new_hasher("not-an-algorithm")
