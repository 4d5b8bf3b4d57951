"""Tests for extracting merged file content from image archives."""

import gzip

import pytest

from container_image_analyzer import (
    ExtractAction,
    ImageType,
    extract_image_content,
    get_content_as_bytes,
    get_content_as_string,
)
from container_image_analyzer.exceptions import ArchiveNotFoundError, LayerReadError
from container_image_analyzer.utils.streams import stream_to_bytes, stream_to_string
from tests.helpers import (
    OCI_LAYER_GZIP,
    layer_tar,
    sha256_digest,
    write_docker_archive,
    write_flat_archive,
    write_oci_archive,
)

OS_RELEASE = ExtractAction.for_paths("os-release", ["/etc/os-release"], stream_to_string)
REMOVED = ExtractAction.for_paths("removed", ["/tmp/removed.txt"], stream_to_bytes)


@pytest.mark.asyncio
async def test_extract_docker_archive(debian_archive):
    """Test merged extraction and image metadata for a docker archive."""
    result = await extract_image_content(str(debian_archive), [OS_RELEASE, REMOVED])

    assert result.image_type == ImageType.DOCKER_ARCHIVE
    assert result.image_id.startswith("sha256:")
    assert list(result.extracted_layers) == ["/etc/os-release"]
    assert "ID=debian" in result.extracted_layers["/etc/os-release"]["os-release"]
    assert len(result.manifest_layers) == 2
    assert len(result.rootfs_layers) == 2
    assert result.platform == "linux/amd64"
    assert result.image_creation_time.year == 2024
    assert result.image_config.cmd == ["/bin/sh"]
    assert result.repo_tags == ["test/image:latest"]
    assert result.warnings == []


@pytest.mark.asyncio
async def test_extract_oci_archive_with_gzip_layers(tmp_path):
    """Test extraction through OCI blobs with compressed layers."""
    base = layer_tar({"etc/os-release": "ID=alpine\n"})
    top = layer_tar({"etc/os-release": "ID=alpine\nVERSION_ID=3.19.1\n"})
    layers = [gzip.compress(base), gzip.compress(top)]
    path = write_oci_archive(tmp_path / "oci.tar", layers, layer_media_type=OCI_LAYER_GZIP)

    result = await extract_image_content(str(path), [OS_RELEASE])

    assert result.image_type == ImageType.OCI_ARCHIVE
    assert get_content_as_string(result.extracted_layers, OS_RELEASE) == (
        "ID=alpine\nVERSION_ID=3.19.1\n"
    )
    assert result.rootfs_layers == [sha256_digest(layer) for layer in layers]


@pytest.mark.asyncio
async def test_extract_oci_archive_repo_tags(tmp_path):
    """Test that the image name annotation is reported as a repository tag."""
    path = write_oci_archive(
        tmp_path / "oci.tar",
        [layer_tar({"etc/os-release": "ID=alpine\n"})],
        annotations={"io.containerd.image.name": "docker.io/library/alpine:3.19"},
    )

    result = await extract_image_content(str(path), [OS_RELEASE])

    assert result.repo_tags == ["docker.io/library/alpine:3.19"]


@pytest.mark.asyncio
async def test_extract_flat_archive(tmp_path):
    """Test a flat filesystem tarball without layer metadata."""
    path = write_flat_archive(tmp_path / "rootfs.tar", {"etc/os-release": "ID=wolfi\n"})

    result = await extract_image_content(str(path), [OS_RELEASE])

    assert result.image_type == ImageType.KANIKO_ARCHIVE
    assert result.image_id is None
    assert result.platform is None
    assert result.rootfs_layers == ["flat-filesystem"]
    assert result.repo_tags == []
    assert result.extracted_layers["/etc/os-release"]["os-release"] == "ID=wolfi\n"


@pytest.mark.asyncio
async def test_missing_file_is_absent_not_error(debian_archive):
    """Test that a requested file found in no layer is simply absent."""
    action = ExtractAction.for_paths("apk", ["/lib/apk/db/installed"], stream_to_string)

    result = await extract_image_content(str(debian_archive), [action])

    assert result.extracted_layers == {}
    assert get_content_as_string(result.extracted_layers, action) is None


@pytest.mark.asyncio
async def test_corrupt_layer_in_archive(tmp_path):
    """Test that a broken layer aborts extraction with a layer error."""
    path = write_docker_archive(
        tmp_path / "image.tar", [layer_tar({"a": "1"}), b"corrupt layer" * 100]
    )

    with pytest.raises(LayerReadError):
        await extract_image_content(str(path), [OS_RELEASE])


@pytest.mark.asyncio
async def test_missing_archive(tmp_path):
    """Test that a missing archive path raises."""
    with pytest.raises(ArchiveNotFoundError):
        await extract_image_content(str(tmp_path / "missing.tar"), [OS_RELEASE])


def test_content_getters_convert_types():
    """Test string and bytes accessors."""
    raw = ExtractAction.for_paths("raw", ["/a"], stream_to_bytes)
    text = ExtractAction.for_paths("text", ["/b"], stream_to_string)
    extracted = {"/a": {"raw": b"bytes"}, "/b": {"text": "text"}}

    assert get_content_as_string(extracted, raw) == "bytes"
    assert get_content_as_bytes(extracted, raw) == b"bytes"
    assert get_content_as_bytes(extracted, text) == b"text"
    assert get_content_as_string(extracted, text) == "text"


def test_content_getter_requires_matching_path():
    """Test that a result stored under another path is ignored."""
    action = ExtractAction.for_paths("text", ["/etc/os-release"], stream_to_string)
    extracted = {"/usr/lib/os-release": {"text": "ID=debian\n"}}

    assert get_content_as_string(extracted, action) is None
