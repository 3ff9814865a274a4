"""Data models for the package cache: packages, versions and the files providing them."""

from collections.abc import Iterator
from enum import StrEnum

from debian.debian_support import Version as DebianVersion
from pydantic import BaseModel, Field


class SelectionState(StrEnum):
    """What the administrator asked dpkg to do with a package."""

    UNKNOWN = "unknown"
    INSTALL = "install"
    HOLD = "hold"
    DEINSTALL = "deinstall"
    PURGE = "purge"


class InstallFlag(StrEnum):
    OK = "ok"
    REINST_REQUIRED = "reinst-required"
    HOLD_INSTALL = "hold-install"
    HOLD_REINST_REQUIRED = "hold-reinst-required"


class CurrentState(StrEnum):
    """dpkg's view of how far a package got through installation."""

    NOT_INSTALLED = "not-installed"
    UNPACKED = "unpacked"
    HALF_CONFIGURED = "half-configured"
    HALF_INSTALLED = "half-installed"
    CONFIG_FILES = "config-files"
    INSTALLED = "installed"
    TRIGGERS_AWAITED = "triggers-awaited"
    TRIGGERS_PENDING = "triggers-pending"


class RepositoryFile(BaseModel):
    """One index file (or the dpkg status file) that contributed versions to the cache."""

    id: int
    filename: str
    archive: str | None = None
    codename: str | None = None
    origin: str | None = None
    label: str | None = None
    version: str | None = None
    site: str | None = None
    component: str | None = None
    architecture: str | None = None
    not_automatic: bool = False
    but_automatic_upgrades: bool = False
    not_source: bool = False


class VersionFile(BaseModel):
    """A repository file providing a version, and the priority the policy gave that file."""

    file: RepositoryFile
    priority: int = 0


class Version(BaseModel):
    """A single version of a package. Identity is the ``id``, never the version string."""

    id: int
    version: str
    package: str
    architecture: str
    files: list[VersionFile] = Field(default_factory=list)

    @property
    def debian_version(self) -> DebianVersion:
        return DebianVersion(self.version)

    def source_files(self) -> Iterator[VersionFile]:
        """Yield the file records that can actually provide this version."""
        for vf in self.files:
            if not vf.file.not_source:
                yield vf

    @property
    def downloadable(self) -> bool:
        """Whether some repository still provides this version."""
        return any(True for _ in self.source_files())

    def is_same(self, other: "Version | None") -> bool:
        return other is not None and other.id == self.id


class Package(BaseModel):
    """A package as known to the cache, keyed by name and architecture."""

    name: str
    architecture: str
    versions: list[Version] = Field(default_factory=list)
    installed: Version | None = None
    selection: SelectionState = SelectionState.UNKNOWN
    flag: InstallFlag = InstallFlag.OK
    state: CurrentState = CurrentState.NOT_INSTALLED

    @property
    def key(self) -> tuple[str, str]:
        return (self.name, self.architecture)

    @property
    def held(self) -> bool:
        return self.selection == SelectionState.HOLD

    def full_name(self, native_arch: str | None = None) -> str:
        """Return the package name, qualified with the architecture when it is not obvious.

        Args:
            native_arch: The native architecture of the system; packages of this
                architecture (or ``all``) are shown without a qualifier.

        Returns:
            ``name`` or ``name:arch``
        """
        if native_arch is None or self.architecture in ("all", native_arch):
            return self.name
        return f"{self.name}:{self.architecture}"

    def find_version(self, version: str) -> Version | None:
        return next((v for v in self.versions if v.version == version), None)

    def sort_versions(self) -> None:
        """Order the version list newest first, keeping load order among equal versions."""
        self.versions.sort(key=lambda v: v.debian_version, reverse=True)
