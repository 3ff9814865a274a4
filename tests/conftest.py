from pathlib import Path
from textwrap import dedent

import pytest

from aptshowversions.cache import PackageCache
from aptshowversions.models import CurrentState, Package, RepositoryFile, SelectionState, Version

LIST_PREFIX = "deb.debian.org_debian_dists_bookworm_"

STATUS = """\
Package: dpkg
Status: install ok installed
Architecture: amd64
Version: 1.21.22

Package: foo
Status: install ok installed
Architecture: amd64
Version: 1.0

Package: bar
Status: install ok installed
Architecture: all
Version: 2.0

Package: baz
Status: hold ok installed
Architecture: amd64
Version: 3.0

Package: old
Status: deinstall ok config-files
Architecture: amd64
Version: 0.9
"""

RELEASE = """\
Origin: Debian
Label: Debian
Suite: stable
Codename: bookworm
Components: main
Architectures: amd64
"""

PACKAGES = """\
Package: dpkg
Version: 1.21.22
Architecture: amd64

Package: foo
Version: 1.2
Architecture: amd64

Package: foo
Version: 1.0
Architecture: amd64

Package: baz
Version: 3.0
Architecture: amd64

Package: qux
Version: 5.0
Architecture: all
"""


class Builder:
    """Builds small synthetic caches for tests."""

    def __init__(self, native_arch: str = "amd64"):
        self.cache = PackageCache(native_arch=native_arch)
        self.status = self.cache.add_file("/var/lib/dpkg/status", archive="now", not_source=True)

    def repo(self, archive: str | None, codename: str | None = None, **attrs) -> RepositoryFile:
        name = codename or archive or "local"
        attrs.setdefault("site", "deb.debian.org")
        return self.cache.add_file(
            f"/var/lib/apt/lists/deb.debian.org_debian_dists_{name}_main_binary-amd64_Packages",
            archive=archive,
            codename=codename,
            **attrs,
        )

    def package(
        self,
        name: str,
        installed: str | None = None,
        available: dict[str, list[RepositoryFile]] | None = None,
        arch: str = "amd64",
        selection: SelectionState = SelectionState.INSTALL,
    ) -> Package:
        package = self.cache.package(name, arch)
        package.selection = selection
        if installed is not None:
            package.state = CurrentState.INSTALLED
            package.installed = self.cache.add_version(package, installed, self.status)
        for version, files in (available or {}).items():
            for file in files:
                self.cache.add_version(package, version, file)
        package.sort_versions()
        return package

    def version(self, package: Package, version: str) -> Version:
        return package.find_version(version)


@pytest.fixture
def builder() -> Builder:
    return Builder()


@pytest.fixture
def apt_root(tmp_path: Path) -> Path:
    """A minimal system with one Debian bookworm source."""
    status = tmp_path / "var/lib/dpkg/status"
    status.parent.mkdir(parents=True)
    status.write_text(STATUS)

    lists = tmp_path / "var/lib/apt/lists"
    lists.mkdir(parents=True)
    (lists / f"{LIST_PREFIX}InRelease").write_text(RELEASE)
    (lists / f"{LIST_PREFIX}main_binary-amd64_Packages").write_text(PACKAGES)
    (lists / "lock").write_text("")

    sources = tmp_path / "etc/apt/sources.list"
    sources.parent.mkdir(parents=True)
    sources.write_text(
        dedent(
            """\
            # main archive
            deb http://deb.debian.org/debian bookworm main
            # deb http://deb.debian.org/debian bookworm-backports main
            """
        )
    )
    return tmp_path
