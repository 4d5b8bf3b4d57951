"""Builders for synthetic layer tars and image archives."""

import gzip
import hashlib
import io
import json
import tarfile
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
OCI_INDEX = "application/vnd.oci.image.index.v1+json"
OCI_CONFIG = "application/vnd.oci.image.config.v1+json"
OCI_LAYER = "application/vnd.oci.image.layer.v1.tar"
OCI_LAYER_GZIP = "application/vnd.oci.image.layer.v1.tar+gzip"
IN_TOTO = "application/vnd.in-toto+json"


class Symlink:
    """Marks a symlink entry in ``layer_tar``."""

    def __init__(self, target: str) -> None:
        self.target = target


DIRECTORY = object()

Entry = Union[bytes, str, Symlink, object]


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def sha256_digest(data: bytes) -> str:
    return f"sha256:{sha256_hex(data)}"


def add_bytes(tar: tarfile.TarFile, name: str, data: bytes) -> None:
    info = tarfile.TarInfo(name)
    info.size = len(data)
    tar.addfile(info, io.BytesIO(data))


def layer_tar(files: Dict[str, Entry], compression: str = "") -> bytes:
    """Build a layer tar in memory.

    Values are file contents (bytes or str), ``DIRECTORY`` or a ``Symlink``.
    Whiteouts are just files named ``.wh.<name>``.
    """
    buffer = io.BytesIO()
    mode = f"w:{compression}" if compression else "w"
    with tarfile.open(fileobj=buffer, mode=mode) as tar:
        for name, content in files.items():
            if content is DIRECTORY:
                info = tarfile.TarInfo(name)
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                tar.addfile(info)
            elif isinstance(content, Symlink):
                info = tarfile.TarInfo(name)
                info.type = tarfile.SYMTYPE
                info.linkname = content.target
                tar.addfile(info)
            else:
                data = content.encode() if isinstance(content, str) else content
                add_bytes(tar, name, data)
    return buffer.getvalue()


ZERO_BLOCK = bytes(1024 * 1024)


class GeneratedTar(io.RawIOBase):
    """Uncompressed tar stream produced while it is read.

    Contents are bytes, str or an int standing for that many zero bytes, so
    entries of several gigabytes never sit in memory.
    """

    def __init__(self, entries: Dict[str, Union[bytes, str, int]]) -> None:
        self._blocks = self._generate(entries)
        self._current = memoryview(b"")

    @staticmethod
    def _generate(entries):
        zeros = memoryview(ZERO_BLOCK)
        for name, content in entries.items():
            if isinstance(content, str):
                content = content.encode()
            size = content if isinstance(content, int) else len(content)
            info = tarfile.TarInfo(name)
            info.size = size
            yield info.tobuf(format=tarfile.GNU_FORMAT)
            if isinstance(content, int):
                remaining = size
                while remaining > 0:
                    step = min(remaining, len(ZERO_BLOCK))
                    yield zeros[:step]
                    remaining -= step
            else:
                yield content
            yield bytes(-size % tarfile.BLOCKSIZE)
        yield bytes(tarfile.RECORDSIZE)

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        while not len(self._current):
            block = next(self._blocks, None)
            if block is None:
                return 0
            self._current = memoryview(block)
        size = min(len(buffer), len(self._current))
        buffer[:size] = self._current[:size]
        self._current = self._current[size:]
        return size


def image_config(
    architecture: str = "amd64",
    os_name: str = "linux",
    variant: Optional[str] = None,
    diff_ids: Sequence[str] = (),
    labels: Optional[Dict[str, str]] = None,
) -> dict:
    config = {
        "architecture": architecture,
        "os": os_name,
        "created": "2024-03-01T12:00:00.123456789Z",
        "config": {
            "Env": ["PATH=/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin"],
            "Cmd": ["/bin/sh"],
            "Labels": labels or {},
        },
        "rootfs": {"type": "layers", "diff_ids": list(diff_ids)},
        "history": [{"created": "2024-03-01T12:00:00Z", "created_by": "ADD rootfs /"}],
    }
    if variant:
        config["variant"] = variant
    return config


def write_docker_archive(
    path: Path,
    layers: List[bytes],
    config: Optional[dict] = None,
    layer_style: str = "dir",
    repo_tags: Sequence[str] = ("test/image:latest",),
    extra_images: Sequence[dict] = (),
) -> Path:
    """Write a docker save archive.

    ``layer_style`` is ``dir`` (``<id>/layer.tar``), ``hex`` (``<hex>.tar``)
    or ``blobs`` (``blobs/sha256/<hex>``). ``extra_images`` are further
    manifest entries, each a dict with ``config`` and ``layers``.
    """
    images = [{"config": config, "layers": layers, "repo_tags": repo_tags}]
    images.extend(extra_images)

    with tarfile.open(path, "w") as tar:
        manifest = []
        for image in images:
            image_layers = image["layers"]
            data = json.dumps(
                image.get("config")
                or image_config(diff_ids=[sha256_digest(layer) for layer in image_layers])
            ).encode()
            config_name = f"{sha256_hex(data)}.json"
            add_bytes(tar, config_name, data)

            layer_names = []
            for layer in image_layers:
                hex_digest = sha256_hex(layer)
                if layer_style == "dir":
                    name = f"{hex_digest}/layer.tar"
                elif layer_style == "hex":
                    name = f"{hex_digest}.tar"
                else:
                    name = f"blobs/sha256/{hex_digest}"
                if name not in tar.getnames():
                    add_bytes(tar, name, layer)
                layer_names.append(name)

            manifest.append(
                {
                    "Config": config_name,
                    "RepoTags": list(image.get("repo_tags", [])),
                    "Layers": layer_names,
                }
            )
        add_bytes(tar, "manifest.json", json.dumps(manifest).encode())
    return path


def _blob(tar: tarfile.TarFile, data: bytes) -> str:
    digest = sha256_digest(data)
    name = f"blobs/sha256/{sha256_hex(data)}"
    if name not in tar.getnames():
        add_bytes(tar, name, data)
    return digest


def write_oci_image(
    tar: tarfile.TarFile,
    layers: List[bytes],
    config: Optional[dict] = None,
    layer_media_type: str = OCI_LAYER,
    extra_layers: Sequence[dict] = (),
) -> dict:
    """Add config, layers and manifest blobs; return the manifest descriptor."""
    config_data = json.dumps(
        config or image_config(diff_ids=[sha256_digest(layer) for layer in layers])
    ).encode()
    layer_descriptors = [
        {"mediaType": layer_media_type, "digest": _blob(tar, layer), "size": len(layer)}
        for layer in layers
    ]
    layer_descriptors.extend(extra_layers)
    manifest = {
        "schemaVersion": 2,
        "mediaType": OCI_MANIFEST,
        "config": {
            "mediaType": OCI_CONFIG,
            "digest": _blob(tar, config_data),
            "size": len(config_data),
        },
        "layers": layer_descriptors,
    }
    manifest_data = json.dumps(manifest).encode()
    return {
        "mediaType": OCI_MANIFEST,
        "digest": _blob(tar, manifest_data),
        "size": len(manifest_data),
    }


def add_blob(tar: tarfile.TarFile, data: bytes) -> str:
    return _blob(tar, data)


def write_index(tar: tarfile.TarFile, descriptors: List[dict], name: str = "index.json") -> bytes:
    index = {"schemaVersion": 2, "mediaType": OCI_INDEX, "manifests": descriptors}
    data = json.dumps(index).encode()
    add_bytes(tar, name, data)
    return data


def write_oci_archive(
    path: Path,
    layers: List[bytes],
    config: Optional[dict] = None,
    layer_media_type: str = OCI_LAYER,
    annotations: Optional[Dict[str, str]] = None,
) -> Path:
    """Write a single-manifest OCI layout archive."""
    with tarfile.open(path, "w") as tar:
        add_bytes(tar, "oci-layout", b'{"imageLayoutVersion": "1.0.0"}')
        descriptor = write_oci_image(tar, layers, config, layer_media_type)
        if annotations:
            descriptor["annotations"] = annotations
        write_index(tar, [descriptor])
    return path


def write_kaniko_archive(path: Path, layers: List[bytes]) -> Path:
    """Write a kaniko archive; ``layers`` must be gzip compressed tars."""
    with tarfile.open(path, "w") as tar:
        config_data = json.dumps(
            image_config(diff_ids=[sha256_digest(gzip.decompress(layer)) for layer in layers])
        ).encode()
        config_name = f"sha256:{sha256_hex(config_data)}"
        add_bytes(tar, config_name, config_data)
        layer_names = []
        for layer in layers:
            name = f"{sha256_hex(layer)}.tar.gz"
            add_bytes(tar, name, layer)
            layer_names.append(name)
        manifest = [{"Config": config_name, "RepoTags": None, "Layers": layer_names}]
        add_bytes(tar, "manifest.json", json.dumps(manifest).encode())
    return path


def write_flat_archive(path: Path, files: Dict[str, Entry]) -> Path:
    path.write_bytes(layer_tar(files))
    return path
