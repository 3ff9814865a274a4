"""Exceptions raised by apt-show-versions."""


class ShowVersionsError(Exception):
    """Base class of the errors raised by this package."""

    def __repr__(self):
        return f"<{type(self).__module__}.{type(self).__name__} {self.args}>"

    @property
    def message(self) -> str:
        """Return the message passed as an argument."""
        return self.args[0] if self.args else ""


class ConfigurationError(ShowVersionsError):
    """Raised for conflicting options or unusable configuration, before the cache is touched."""


class CacheLoadError(ShowVersionsError):
    """Raised when the package cache cannot be built from the files on disk."""


class InvalidStateError(ShowVersionsError):
    """Raised when a package matches none of the upgrade states. Always a bug."""
