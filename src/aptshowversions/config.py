"""Configuration: APT-style configuration items, file locations and report options."""

import logging
import re
from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel

from aptshowversions import constants
from aptshowversions.errors import ConfigurationError
from aptshowversions.utils import string_to_bool

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r'"(?:[^"\\]|\\.)*"|/\*.*?\*/|[{};]|[^\s{};"]+', re.DOTALL)


def _strip_comment(line: str) -> str:
    """Cut ``line`` at the first ``#`` or ``//`` that is not inside a quoted value."""
    quoted = False
    i = 0
    while i < len(line):
        char = line[i]
        if quoted and char == "\\":
            i += 2
            continue
        if char == '"':
            quoted = not quoted
        elif not quoted and (char == "#" or line.startswith("//", i)):
            return line[:i]
        i += 1
    return line


class AptConfig:
    """A flat, case-insensitive store of ``Scope::Key`` configuration items."""

    def __init__(self, items: dict[str, str] | None = None):
        self._items: dict[str, str] = {}
        for key, value in (items or {}).items():
            self.set(key, value)

    def __contains__(self, key: str) -> bool:
        return key.lower() in self._items

    def set(self, key: str, value: str) -> None:
        self._items[key.lower()] = value

    def find(self, key: str, default: str | None = None) -> str | None:
        return self._items.get(key.lower(), default)

    def find_b(self, key: str, default: bool = False) -> bool:
        return string_to_bool(self.find(key), default)

    def parse_option(self, item: str) -> None:
        """Apply a ``-o Key=Value`` command line item."""
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ConfigurationError(f"Option {item} is not of the form Key=Value")
        self.set(key.strip(), value.strip())

    def read_file(self, path: Path) -> None:
        """Read a configuration file in apt.conf syntax.

        Supports ``Key "value";`` items, nested ``Scope { ... };`` blocks and
        ``//``, ``#`` and ``/* */`` comments. ``#include`` and ``#clear``
        directives are not supported and are ignored.
        """
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Unable to read configuration file {path}: {e}") from e

        lines = []
        for line in text.splitlines():
            stripped = line.strip()
            if stripped.startswith(("#include", "#clear")):
                logger.warning(f"{path}: ignoring unsupported directive '{stripped}'")
                continue
            lines.append(_strip_comment(line))

        scope: list[str] = []
        pending: list[str] = []
        for token in _TOKEN_RE.findall("\n".join(lines)):
            if token.startswith("/*"):
                continue
            if token == "{":
                if not pending:
                    raise ConfigurationError(f"{path}: block without a name")
                scope.append(pending[0])
                pending = []
            elif token == "}":
                if not scope:
                    raise ConfigurationError(f"{path}: unbalanced '}}'")
                scope.pop()
                pending = []
            elif token == ";":
                if len(pending) >= 2:
                    self.set("::".join([*scope, pending[0]]), pending[1])
                pending = []
            else:
                pending.append(token[1:-1] if token.startswith('"') else token)
        if scope:
            raise ConfigurationError(f"{path}: unterminated block '{'::'.join(scope)}'")


class Settings(BaseModel):
    """Where the package data lives on disk."""

    root: Path = constants.ROOT_DIR
    status_file: Path = constants.ROOT_DIR / constants.STATUS_FILE
    lists_dir: Path = constants.ROOT_DIR / constants.LISTS_DIR
    source_list: Path = constants.ROOT_DIR / constants.SOURCE_LIST
    source_parts: Path = constants.ROOT_DIR / constants.SOURCE_PARTS
    preferences: Path = constants.ROOT_DIR / constants.PREFERENCES
    preferences_parts: Path = constants.ROOT_DIR / constants.PREFERENCES_PARTS
    architecture: str | None = None

    @classmethod
    def from_root(cls, root: Path, architecture: str | None = None) -> "Settings":
        return cls(
            root=root,
            status_file=root / constants.STATUS_FILE,
            lists_dir=root / constants.LISTS_DIR,
            source_list=root / constants.SOURCE_LIST,
            source_parts=root / constants.SOURCE_PARTS,
            preferences=root / constants.PREFERENCES,
            preferences_parts=root / constants.PREFERENCES_PARTS,
            architecture=architecture,
        )

    @classmethod
    def from_config(cls, config: AptConfig) -> "Settings":
        """Build settings from ``Dir::*`` and ``APT::Architecture`` items.

        Relative paths are taken relative to ``Dir``.
        """
        root = Path(config.find("Dir", str(constants.ROOT_DIR)))

        def path_for(key: str, default: str) -> Path:
            return root / config.find(key, default)

        return cls(
            root=root,
            status_file=path_for("Dir::State::status", constants.STATUS_FILE),
            lists_dir=path_for("Dir::State::Lists", constants.LISTS_DIR),
            source_list=path_for("Dir::Etc::SourceList", constants.SOURCE_LIST),
            source_parts=path_for("Dir::Etc::SourceParts", constants.SOURCE_PARTS),
            preferences=path_for("Dir::Etc::Preferences", constants.PREFERENCES),
            preferences_parts=path_for("Dir::Etc::PreferencesParts", constants.PREFERENCES_PARTS),
            architecture=config.find("APT::Architecture"),
        )


class ReportOptions(BaseModel):
    """What to report and how."""

    upgrades_only: bool = False
    brief: bool = False
    all_versions: bool = False
    no_hold: bool = False
    regex_all: bool = False

    @classmethod
    def from_config(cls, config: AptConfig, **flags: bool) -> "ReportOptions":
        """Combine ``APT::Show-Versions::*`` items with command line flags; a set flag always wins."""
        return cls(
            upgrades_only=flags.get("upgrades_only") or config.find_b("APT::Show-Versions::Upgrades-Only"),
            brief=flags.get("brief") or config.find_b("APT::Show-Versions::Brief"),
            all_versions=flags.get("all_versions") or config.find_b("APT::Show-Versions::All-Versions"),
            no_hold=flags.get("no_hold") or config.find_b("APT::Show-Versions::No-Hold"),
            regex_all=flags.get("regex_all") or config.find_b("APT::Show-Versions::Regex-All"),
        )

    def check(self, patterns: Sequence[str]) -> None:
        """Reject option combinations that make no sense for the given arguments."""
        if patterns and self.no_hold:
            raise ConfigurationError("Cannot specify -n/--no-hold with a package name")
        if not patterns and self.regex_all:
            raise ConfigurationError("Cannot specify -R/--regex-all without a pattern")
