"""Pin priorities and candidate selection."""

import logging
import re
from collections.abc import Iterable
from enum import StrEnum
from fnmatch import fnmatchcase
from pathlib import Path

from debian import deb822
from pydantic import BaseModel, Field

from aptshowversions import constants
from aptshowversions.models import Package, RepositoryFile, Version

logger = logging.getLogger(__name__)

# keys of "Pin: release ..." and the repository file attribute each one compares
RELEASE_KEYS = {
    "a": "archive",
    "v": "version",
    "n": "codename",
    "o": "origin",
    "l": "label",
    "c": "component",
    "b": "architecture",
}


def _match(pattern: str, value: str | None) -> bool:
    value = value or ""
    if len(pattern) > 1 and pattern.startswith("/") and pattern.endswith("/"):
        return re.search(pattern[1:-1], value) is not None
    return fnmatchcase(value, pattern)


class PinType(StrEnum):
    RELEASE = "release"
    ORIGIN = "origin"
    VERSION = "version"


class Pin(BaseModel):
    """One stanza of an apt preferences file."""

    packages: list[str]
    type: PinType
    data: str = ""
    priority: int
    conditions: dict[str, str] = Field(default_factory=dict)

    @property
    def generic(self) -> bool:
        return self.packages == ["*"]

    @classmethod
    def parse(cls, stanza: deb822.Deb822, source: str = "") -> "Pin | None":
        """Turn a preferences stanza into a pin, or None if it is unusable."""
        packages = stanza.get("Package", "").split()
        pin = stanza.get("Pin", "").strip()
        if not packages or not pin:
            logger.warning(f"{source}: ignoring stanza without Package or Pin: {dict(stanza)}")
            return None
        try:
            priority = int(stanza.get("Pin-Priority", ""))
        except ValueError:
            logger.warning(f"{source}: ignoring pin for {' '.join(packages)} without a valid Pin-Priority")
            return None

        kind, _, data = pin.partition(" ")
        try:
            pin_type = PinType(kind)
        except ValueError:
            logger.warning(f"{source}: unknown pin type '{kind}'")
            return None

        data = data.strip()
        conditions: dict[str, str] = {}
        if pin_type == PinType.RELEASE:
            for item in data.split(","):
                key, sep, value = item.strip().partition("=")
                if not sep:
                    # a bare value is the release version, as in "release 12"
                    key, value = "v", key
                if key not in RELEASE_KEYS:
                    logger.debug(f"{source}: ignoring unsupported release key '{key}'")
                    continue
                conditions[key] = value.strip()
        elif pin_type == PinType.ORIGIN:
            data = data.strip('"')

        return cls(packages=packages, type=pin_type, data=data, priority=priority, conditions=conditions)

    def matches_package(self, package: Package) -> bool:
        return any(_match(p, package.name) for p in self.packages)

    def matches_file(self, file: RepositoryFile) -> bool:
        match self.type:
            case PinType.RELEASE:
                return all(_match(value, getattr(file, RELEASE_KEYS[key])) for key, value in self.conditions.items())
            case PinType.ORIGIN:
                return (file.site or "") == self.data
        return False

    def matches_version(self, version: Version) -> bool:
        if self.type == PinType.VERSION:
            return _match(self.data, version.version)
        return any(self.matches_file(vf.file) for vf in version.files)


class Policy:
    """Assigns priorities to repository files and versions, and picks candidates.

    Without any pins, list files get 500, the dpkg status file 100 and
    ``NotAutomatic`` archives 1 (or 100 with ``ButAutomaticUpgrades``).
    """

    def __init__(self, pins: Iterable[Pin] = ()):
        self.pins = list(pins)
        self._file_priorities: dict[int, int] = {}

    @classmethod
    def load(cls, preferences: Path | None, preferences_parts: Path | None = None) -> "Policy":
        """Read the preferences file and the preferences.d directory."""
        paths = []
        if preferences is not None and preferences.is_file():
            paths.append(preferences)
        if preferences_parts is not None and preferences_parts.is_dir():
            # like apt, only files without an extension or with .pref
            paths.extend(p for p in sorted(preferences_parts.iterdir()) if p.suffix in ("", ".pref") and p.is_file())

        pins = []
        for path in paths:
            try:
                with path.open(encoding="utf-8") as f:
                    for stanza in deb822.Deb822.iter_paragraphs(f):
                        if pin := Pin.parse(stanza, str(path)):
                            pins.append(pin)
            except OSError as e:
                logger.warning(f"Could not read preferences file '{path}': {e}")
        logger.debug(f"Loaded {len(pins)} pins from {len(paths)} preferences files")
        return cls(pins)

    def file_priority(self, file: RepositoryFile) -> int:
        if (priority := self._file_priorities.get(file.id)) is not None:
            return priority

        pin = next((p for p in self.pins if p.generic and p.type != PinType.VERSION and p.matches_file(file)), None)
        if pin is not None:
            priority = pin.priority
        elif file.not_source:
            priority = constants.STATUS_PRIORITY
        elif file.not_automatic:
            if file.but_automatic_upgrades:
                priority = constants.BUT_AUTOMATIC_UPGRADES_PRIORITY
            else:
                priority = constants.NOT_AUTOMATIC_PRIORITY
        else:
            priority = constants.DEFAULT_PRIORITY
        self._file_priorities[file.id] = priority
        return priority

    def version_priority(self, package: Package, version: Version) -> int:
        """Priority of a version: a matching package-specific pin, else its best file."""
        for pin in self.pins:
            if pin.generic and pin.type != PinType.VERSION:
                continue
            if pin.matches_package(package) and pin.matches_version(version):
                return pin.priority
        return max((self.file_priority(vf.file) for vf in version.files), default=0)

    def apply(self, packages: Iterable[Package]) -> None:
        """Store each file's priority on the version file records."""
        for package in packages:
            for version in package.versions:
                for vf in version.files:
                    vf.priority = self.file_priority(vf.file)

    def candidate(self, package: Package) -> Version | None:
        """Return the version apt would install for ``package``, if any.

        The highest priority wins, newer versions win ties. Versions with a
        negative priority are never chosen, except the installed one, and an
        installed version is only replaced by an older one pinned at 1000 or more.
        """
        installed = package.installed
        best: Version | None = None
        best_priority = 0
        for version in package.versions:
            priority = self.version_priority(package, version)
            if priority < 0 and not version.is_same(installed):
                continue
            if best is None or priority > best_priority:
                best, best_priority = version, priority

        if installed is not None and best is not None and not best.is_same(installed):
            if best.debian_version < installed.debian_version and best_priority < constants.DOWNGRADE_PRIORITY:
                return installed
        return best
