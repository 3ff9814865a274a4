"""Read-only package cache built from the dpkg status file and apt's downloaded lists."""

import itertools
import logging
import lzma
import re
from collections.abc import Iterator
from enum import StrEnum
from fnmatch import fnmatchcase
from pathlib import Path

from debian import deb822
from debian.debian_support import Version as DebianVersion

from aptshowversions.config import Settings
from aptshowversions.constants import LIST_SUFFIXES
from aptshowversions.errors import CacheLoadError
from aptshowversions.models import (
    CurrentState,
    InstallFlag,
    Package,
    RepositoryFile,
    SelectionState,
    Version,
    VersionFile,
)
from aptshowversions.sources import strip_list_suffix
from aptshowversions.utils import iter_paragraphs, string_to_bool

logger = logging.getLogger(__name__)

GLOB_CHARS = set("*?[")
REGEX_CHARS = set(".?+*|[^$")

# dpkg's spelling of the install flag -> apt's
_FLAGS = {
    "ok": InstallFlag.OK,
    "reinstreq": InstallFlag.REINST_REQUIRED,
    "hold": InstallFlag.HOLD_INSTALL,
    "hold-reinstreq": InstallFlag.HOLD_REINST_REQUIRED,
}
_NOT_CURRENT = (CurrentState.NOT_INSTALLED, CurrentState.CONFIG_FILES)


def is_valid_version(version: str) -> bool:
    try:
        DebianVersion(version)
    except ValueError:
        return False
    return True


class MatchKind(StrEnum):
    """How a command line argument selected its packages."""

    NAME = "name"
    GLOB = "glob"
    REGEX = "regex"


def parse_status(status: str) -> tuple[SelectionState, InstallFlag, CurrentState]:
    """Split a dpkg ``Status:`` field ("install ok installed") into its three states."""
    try:
        want, flag, state = status.split()
        return SelectionState(want), _FLAGS[flag], CurrentState(state)
    except (ValueError, KeyError) as e:
        raise CacheLoadError(f"Invalid dpkg status '{status}'") from e


class PackageCache:
    """Every package known from the status file and the lists directory.

    Packages are kept in the order they were first seen; each package's
    versions are kept newest first.
    """

    def __init__(self, native_arch: str | None = None):
        self.native_arch = native_arch
        self.packages: dict[tuple[str, str], Package] = {}
        self.files: list[RepositoryFile] = []
        self._file_ids = itertools.count(1)
        self._version_ids = itertools.count(1)

    def __iter__(self) -> Iterator[Package]:
        return iter(self.packages.values())

    def __len__(self) -> int:
        return len(self.packages)

    def __getitem__(self, key: tuple[str, str]) -> Package:
        return self.packages[key]

    def __contains__(self, key: tuple[str, str]) -> bool:
        return key in self.packages

    def sorted_packages(self) -> list[Package]:
        return sorted(self, key=lambda p: p.key)

    def add_file(self, filename: str, **attrs) -> RepositoryFile:
        file = RepositoryFile(id=next(self._file_ids), filename=filename, **attrs)
        self.files.append(file)
        return file

    def package(self, name: str, architecture: str) -> Package:
        """Return the package for ``name`` and ``architecture``, creating it if needed."""
        if architecture == "all" and self.native_arch:
            architecture = self.native_arch
        key = (name, architecture)
        if key not in self.packages:
            self.packages[key] = Package(name=name, architecture=architecture)
        return self.packages[key]

    def add_version(self, package: Package, version: str, file: RepositoryFile) -> Version:
        """Record that ``file`` provides ``version`` of ``package``.

        Identical version strings of one package are merged into a single
        version with several file records. APT only merges records whose
        package contents hash the same, so two different builds sharing a
        version string are kept apart there but not here.
        """
        existing = package.find_version(version)
        if existing is None:
            existing = Version(
                id=next(self._version_ids),
                version=version,
                package=package.name,
                architecture=package.architecture,
            )
            package.versions.append(existing)
        if not any(vf.file.id == file.id for vf in existing.files):
            existing.files.append(VersionFile(file=file))
        return existing

    def finalize(self) -> None:
        for package in self:
            package.sort_versions()

    @classmethod
    def load(cls, settings: Settings) -> "PackageCache":
        """Build the cache from the files named in ``settings``.

        Raises:
            CacheLoadError: If the dpkg status file cannot be read
        """
        try:
            status = list(iter_paragraphs(settings.status_file))
        except OSError as e:
            raise CacheLoadError(f"Unable to read the dpkg status file {settings.status_file}: {e}") from e

        native_arch = settings.architecture or next(
            (s.get("Architecture") for s in status if s.get("Package") == "dpkg"), None
        )
        cache = cls(native_arch=native_arch)
        cache._load_status(settings.status_file, status)
        cache._load_lists(settings.lists_dir)
        cache.finalize()
        logger.info(f"Loaded {len(cache)} packages from {len(cache.files)} files (native architecture {native_arch})")
        return cache

    def _load_status(self, path: Path, stanzas: list[deb822.Packages]) -> None:
        status_file = self.add_file(str(path), archive="now", not_source=True)
        for stanza in stanzas:
            name = stanza.get("Package")
            if not name:
                raise CacheLoadError(f"{path}: stanza without a Package field")
            package = self.package(name, stanza.get("Architecture", self.native_arch or "all"))
            package.selection, package.flag, package.state = parse_status(stanza.get("Status", ""))
            version = stanza.get("Version")
            if version and package.state not in _NOT_CURRENT:
                if not is_valid_version(version):
                    raise CacheLoadError(f"{path}: invalid version '{version}' for {name}")
                package.installed = self.add_version(package, version, status_file)

    def _load_lists(self, lists_dir: Path) -> None:
        if not lists_dir.is_dir():
            logger.warning(f"Lists directory {lists_dir} does not exist; only installed versions are known")
            return

        releases = {}
        for path in lists_dir.iterdir():
            name = strip_list_suffix(path.name)
            for suffix in ("_InRelease", "_Release"):
                if name.endswith(suffix):
                    releases.setdefault(name[: -len(suffix) + 1], path)

        for path in sorted(lists_dir.iterdir()):
            name = strip_list_suffix(path.name)
            if not name.endswith("_Packages"):
                continue
            if path.suffix in (".lz4", ".zst"):
                logger.warning(f"Skipping {path}: unsupported compression")
                continue
            prefix = max((p for p in releases if name.startswith(p)), key=len, default=None)
            release = self._read_release(releases[prefix]) if prefix else {}
            file = self._add_list_file(path, name, prefix or "", release)
            self._load_packages_file(path, file)

    def _read_release(self, path: Path) -> dict:
        try:
            with path.open(encoding="utf-8", errors="replace") as f:
                return dict(deb822.Release(f))
        except OSError as e:
            logger.warning(f"Could not read release file {path}: {e}")
            return {}

    def _add_list_file(self, path: Path, name: str, prefix: str, release: dict) -> RepositoryFile:
        # what is left is "main_binary-amd64_Packages", or just "Packages" for flat repositories
        component = architecture = None
        parts = name[len(prefix) :].split("_")
        if len(parts) == 3 and parts[1].startswith("binary-"):
            component, architecture = parts[0], parts[1][len("binary-") :]
        return self.add_file(
            str(path),
            archive=release.get("Suite"),
            codename=release.get("Codename"),
            origin=release.get("Origin"),
            label=release.get("Label"),
            version=release.get("Version"),
            site=name.split("_", 1)[0],
            component=component,
            architecture=architecture,
            not_automatic=string_to_bool(release.get("NotAutomatic")),
            but_automatic_upgrades=string_to_bool(release.get("ButAutomaticUpgrades")),
        )

    def _load_packages_file(self, path: Path, file: RepositoryFile) -> None:
        count = 0
        try:
            for stanza in iter_paragraphs(path):
                name, version = stanza.get("Package"), stanza.get("Version")
                if not name or not version:
                    continue
                if not is_valid_version(version):
                    logger.warning(f"{path.name}: skipping {name} with invalid version '{version}'")
                    continue
                package = self.package(name, stanza.get("Architecture", file.architecture or "all"))
                self.add_version(package, version, file)
                count += 1
        except (OSError, EOFError, lzma.LZMAError) as e:
            logger.warning(f"Could not read package list {path}: {e}")
        logger.debug(f"Read {count} versions from {path.name}")

    def resolve(self, pattern: str) -> tuple[MatchKind, list[Package]]:
        """Find the packages an argument refers to.

        Tried in order: an exact name (optionally ``name:arch``), a shell glob
        and finally a regular expression searched in package names.

        Returns:
            How the argument was interpreted and the matching packages, in cache order
        """
        name, _, arch = pattern.partition(":")
        exact = [p for p in self if p.name == name and (not arch or p.architecture == arch)]
        if exact:
            if not arch and len(exact) > 1:
                native = [p for p in exact if p.architecture == self.native_arch]
                exact = native or exact
            return MatchKind.NAME, exact

        if GLOB_CHARS & set(pattern):
            if matches := [p for p in self if fnmatchcase(p.name, pattern)]:
                return MatchKind.GLOB, matches

        if REGEX_CHARS & set(pattern):
            try:
                regex = re.compile(pattern)
            except re.error as e:
                logger.warning(f"Invalid regular expression '{pattern}': {e}")
                return MatchKind.REGEX, []
            return MatchKind.REGEX, [p for p in self if regex.search(p.name)]

        return MatchKind.NAME, []
