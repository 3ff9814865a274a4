"""Distribution (suite) names for repository files."""

import logging
from collections.abc import Iterable

from aptshowversions.models import RepositoryFile
from aptshowversions.sources import SourceEntry

logger = logging.getLogger(__name__)


class DistributionCache:
    """Memo of repository file id -> distribution name, kept for one run."""

    def __init__(self):
        self._names: dict[int, str] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, file_id: int) -> bool:
        return file_id in self._names

    def lookup(self, file_id: int) -> str | None:
        """Return the memoised name, or None if this file has not been resolved yet."""
        name = self._names.get(file_id)
        if name is None:
            self.misses += 1
        else:
            self.hits += 1
        return name

    def insert(self, file_id: int, name: str) -> str:
        """Remember ``name`` for ``file_id``. The first value stored for a file wins."""
        return self._names.setdefault(file_id, name)


class DistributionResolver:
    """Works out which configured distribution a repository file belongs to.

    The archive label of a Release file is often generic ("stable"), while the
    source list names what the user configured ("bookworm"). A source entry is
    only trusted when the suite it names agrees with the file's own archive or
    codename, otherwise the file's labels are used as they are.
    """

    def __init__(self, sources: Iterable[SourceEntry], cache: DistributionCache | None = None):
        self.sources = list(sources)
        self.cache = cache if cache is not None else DistributionCache()
        self.scans = 0

    def _from_sources(self, file: RepositoryFile) -> str | None:
        self.scans += 1
        for entry in self.sources:
            for index in entry.index_files():
                if not index.owns(file):
                    continue
                # stable/updates and stable are the same suite
                name = entry.dist.split("/", 1)[0]
                if name and name in (file.archive, file.codename):
                    return name
                logger.debug(f"{entry.dist} owns {file.filename} but matches neither {file.archive} nor {file.codename}")
        return None

    def resolve(self, file: RepositoryFile) -> str:
        """Return the distribution name for ``file``, or an empty string if it has none."""
        if (name := self.cache.lookup(file.id)) is not None:
            return name

        name = self._from_sources(file)
        if name is None:
            name = file.archive or file.codename or ""
        logger.debug(f"Resolved {file.filename} to distribution '{name}'")
        return self.cache.insert(file.id, name)
