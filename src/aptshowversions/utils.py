import bz2
import gzip
import logging
import lzma
from collections.abc import Iterator
from pathlib import Path
from typing import TextIO

from debian import deb822

logger = logging.getLogger(__name__)

_TRUE = ("yes", "true", "with", "on", "enable", "1")
_FALSE = ("no", "false", "without", "off", "disable", "0")


def string_to_bool(value: str | None, default: bool = False) -> bool:
    """Interpret an APT-style boolean ("yes", "true", "on", "1", ...).

    Args:
        value: The string to interpret, may be None
        default: Returned when the value is missing or not recognised

    Returns:
        The boolean value
    """
    if value is None:
        return default
    value = value.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    logger.debug(f"Not a boolean: '{value}', using {default}")
    return default


def open_text(path: Path) -> TextIO:
    """Open a possibly compressed index file for reading as text."""
    match path.suffix:
        case ".gz":
            return gzip.open(path, "rt", encoding="utf-8", errors="replace")
        case ".xz" | ".lzma":
            return lzma.open(path, "rt", encoding="utf-8", errors="replace")
        case ".bz2":
            return bz2.open(path, "rt", encoding="utf-8", errors="replace")
    return path.open("rt", encoding="utf-8", errors="replace")


def iter_paragraphs(path: Path) -> Iterator[deb822.Packages]:
    """Stream the stanzas of a Packages or status file."""
    with open_text(path) as handle:
        yield from deb822.Packages.iter_paragraphs(handle, use_apt_pkg=False)
