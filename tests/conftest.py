"""Test configuration and fixtures."""

import pytest

from tests.helpers import layer_tar, write_docker_archive

DPKG_STATUS = """Package: libc6
Status: install ok installed
Version: 2.36-9
Source: glibc
Depends: libgcc-s1
Description: GNU C Library
 continuation line that is ignored

Package: libgcc-s1
Version: 12.2.0-14
Source: gcc-12 (12.2.0-14)
Depends: gcc-12-base (= 12.2.0-14), libc6 (>= 2.35)
Provides: libgcc1 (= 1:12.2.0-14)

Package: gcc-12-base
Version: 12.2.0-14
Source: gcc-12

Package: curl
Version: 7.88.1-10
Depends: libc6 (>= 2.34), libcurl4 | libcurl3
"""

EXTENDED_STATES = """Package: libgcc-s1
Architecture: amd64
Auto-Installed: 1

Package: gcc-12-base
Architecture: amd64
Auto-Installed: 1

Package: curl
Architecture: amd64
Auto-Installed: 0
"""

APK_INSTALLED = """C:Q1abc=
P:musl
V:1.2.4-r2
o:musl
p:so:libc.musl-x86_64.so.1=1

P:busybox
V:1.36.1-r5
o:busybox
D:so:libc.musl-x86_64.so.1 !busybox-initscripts
"""

OS_RELEASE_DEBIAN = """PRETTY_NAME="Debian GNU/Linux 12 (bookworm)"
NAME="Debian GNU/Linux"
VERSION_ID="12"
ID=debian
"""


@pytest.fixture
def debian_archive(tmp_path):
    """Two-layer docker archive with a dpkg database and a whited-out file."""
    base = layer_tar(
        {
            "etc/os-release": OS_RELEASE_DEBIAN,
            "var/lib/dpkg/status": DPKG_STATUS,
            "var/lib/apt/extended_states": EXTENDED_STATES,
            "usr/bin/node": b"\x7fELF node binary",
            "tmp/removed.txt": "gone",
        }
    )
    top = layer_tar({"tmp/.wh.removed.txt": b"", "app/lib/app.jar": b"PK\x03\x04jar"})
    return write_docker_archive(tmp_path / "debian.tar", [base, top])


def pytest_configure(config):
    """Configure pytest markers and settings."""
    config.addinivalue_line("markers", "slow: mark test as slow (large synthetic entries)")
    config.addinivalue_line("markers", "unit: mark test as unit test (default)")
