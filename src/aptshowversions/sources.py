"""Source list parsing, and the index files each source entry is responsible for."""

import logging
from collections.abc import Iterator
from pathlib import Path

from debian import deb822
from pydantic import BaseModel, Field

from aptshowversions.constants import LIST_SUFFIXES
from aptshowversions.models import RepositoryFile

logger = logging.getLogger(__name__)

VALID_SOURCE_TYPES = ("deb", "deb-src")

# characters apt percent-encodes when turning a URI into a lists/ file name
_QUOTED_CHARS = set('\\|{}[]<>"^~_=!@#$%&*')


def uri_to_filename(uri: str) -> str:
    """Turn a repository URI into the file name apt uses for it under the lists directory.

    The scheme and any credentials are dropped, unsafe characters are
    percent-encoded and slashes become underscores.

    Examples:
        >>> uri_to_filename("http://deb.debian.org/debian/dists/bookworm/Release")
        'deb.debian.org_debian_dists_bookworm_Release'
    """
    if "://" in uri:
        uri = uri.split("://", 1)[1]
    elif uri.startswith(("file:", "cdrom:", "copy:")):
        uri = uri.split(":", 1)[1]
    host, sep, path = uri.partition("/")
    if "@" in host:
        host = host.rsplit("@", 1)[1]
    uri = host + sep + path
    quoted = "".join(f"%{ord(c):02x}" if c in _QUOTED_CHARS or ord(c) <= 0x20 or ord(c) >= 0x7F else c for c in uri)
    return quoted.replace("/", "_")


def strip_list_suffix(name: str) -> str:
    for suffix in LIST_SUFFIXES:
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return name


class IndexFile(BaseModel):
    """A Packages index that a source entry makes apt download."""

    uri: str
    dist: str
    component: str | None = None
    architectures: list[str] = Field(default_factory=list)

    @property
    def flat(self) -> bool:
        return self.dist.endswith("/")

    @property
    def prefix(self) -> str:
        """The list file name up to (but excluding) the architecture part."""
        base = self.uri if self.uri.endswith("/") else self.uri + "/"
        if self.flat:
            return uri_to_filename(base + self.dist if self.dist != "/" else base)
        return uri_to_filename(f"{base}dists/{self.dist}/{self.component}/binary-")

    def owns(self, file: RepositoryFile) -> bool:
        """Return True if ``file`` was downloaded for this index."""
        if file.not_source:
            return False
        name = strip_list_suffix(Path(file.filename).name)
        if self.flat:
            return name == self.prefix + "Packages"
        prefix = self.prefix
        if not (name.startswith(prefix) and name.endswith("_Packages")):
            return False
        arch = name[len(prefix) : -len("_Packages")]
        if "_" in arch:
            return False
        return not self.architectures or arch in self.architectures or arch == "all"


class SourceEntry(BaseModel):
    """A single repository line (or exploded deb822 stanza) of the source list."""

    type: str = ""
    uri: str = ""
    dist: str = ""
    components: list[str] = Field(default_factory=list)
    architectures: list[str] = Field(default_factory=list)
    disabled: bool = False
    invalid: bool = False
    file: str | None = None

    @staticmethod
    def mysplit(line: str) -> list[str]:
        """Split a source line on whitespace, keeping ``[option=value ...]`` blocks together."""
        pieces: list[str] = []
        tmp = ""
        in_options = False
        for char in line.strip():
            if char == "[" and not tmp:
                in_options = True
            elif char == "]":
                in_options = False
            elif char.isspace() and not in_options:
                if tmp:
                    pieces.append(tmp)
                tmp = ""
                continue
            tmp += char
        if tmp:
            pieces.append(tmp)
        return pieces

    @classmethod
    def from_line(cls, line: str, file: str | None = None) -> "SourceEntry":
        """Parse a one-line style entry from a ``.list`` file."""
        entry = cls(file=file)
        line = line.strip()
        if not line or line == "#":
            entry.invalid = True
            return entry
        if line.startswith("#"):
            entry.disabled = True
            line = line[1:].strip()
            pieces = line.split()
            if not pieces or pieces[0] not in VALID_SOURCE_TYPES:
                entry.invalid = True
                return entry
        if (i := line.find("#")) > 0:
            line = line[:i]

        pieces = cls.mysplit(line)
        if len(pieces) < 3 or pieces[0] not in VALID_SOURCE_TYPES:
            entry.invalid = True
            return entry
        entry.type = pieces[0]

        if pieces[1].startswith("["):
            for option in pieces.pop(1).strip("[]").split():
                key, sep, value = option.partition("=")
                if not sep:
                    entry.invalid = True
                elif key == "arch":
                    entry.architectures = value.split(",")
                # trusted, signed-by, lang, target and friends don't affect index file names
            if len(pieces) < 3:
                entry.invalid = True
                return entry

        entry.uri = pieces[1]
        entry.dist = pieces[2]
        entry.components = pieces[3:]
        return entry

    @classmethod
    def from_deb822(cls, stanza: deb822.Deb822, file: str | None = None) -> list["SourceEntry"]:
        """Explode a deb822 ``.sources`` stanza into one entry per type, URI and suite."""
        disabled = stanza.get("Enabled", "yes").strip().lower() in ("no", "false", "0")
        components = stanza.get("Components", "").split()
        architectures = stanza.get("Architectures", "").split()
        entries = []
        for typ in stanza.get("Types", "").split():
            for uri in stanza.get("URIs", "").split():
                for suite in stanza.get("Suites", "").split():
                    entries.append(
                        cls(
                            type=typ,
                            uri=uri,
                            dist=suite,
                            components=components,
                            architectures=architectures,
                            disabled=disabled,
                            invalid=typ not in VALID_SOURCE_TYPES,
                            file=file,
                        )
                    )
        if not entries:
            logger.warning(f"Ignoring incomplete stanza in {file}: {dict(stanza)}")
        return entries

    def index_files(self) -> list[IndexFile]:
        """Return the binary Packages indexes apt fetches for this entry."""
        if self.invalid or self.disabled or self.type != "deb":
            return []
        if self.dist.endswith("/"):
            return [IndexFile(uri=self.uri, dist=self.dist)]
        return [
            IndexFile(uri=self.uri, dist=self.dist, component=comp, architectures=self.architectures)
            for comp in self.components
        ]


class SourceList:
    """All entries from the main source list and the parts directory."""

    def __init__(self, source_list: Path | None = None, source_parts: Path | None = None):
        self.source_list = source_list
        self.source_parts = source_parts
        self.list: list[SourceEntry] = []

    def __iter__(self) -> Iterator[SourceEntry]:
        yield from self.list

    def __len__(self) -> int:
        return len(self.list)

    def refresh(self) -> "SourceList":
        """(Re)read every configured source file."""
        self.list = []
        if self.source_list is not None and self.source_list.is_file():
            self.load(self.source_list)
        if self.source_parts is not None and self.source_parts.is_dir():
            for path in sorted(self.source_parts.iterdir()):
                if path.suffix in (".list", ".sources"):
                    self.load(path)
        logger.debug(f"Loaded {len(self.list)} source entries")
        return self

    def load(self, path: Path) -> None:
        try:
            with path.open(encoding="utf-8") as f:
                if path.suffix == ".sources":
                    for stanza in deb822.Deb822.iter_paragraphs(f):
                        self.list.extend(SourceEntry.from_deb822(stanza, str(path)))
                else:
                    for line in f:
                        self.list.append(SourceEntry.from_line(line, str(path)))
        except OSError as e:
            logger.warning(f"Could not open source file '{path}': {e}")
