"""Error types raised by pprof-upload.

Every failure that ends a run derives from PprofUploadError, except transport
and server errors from the Google API client, which are propagated unchanged.
"""

from pathlib import Path


class PprofUploadError(Exception):
    """Base class for pprof-upload errors."""


class ProfileReadError(PprofUploadError):
    """A profile file could not be opened or read."""

    def __init__(self, path: Path | str, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"failed to read profile {self.path}: {reason}")


class ProfileFormatError(PprofUploadError):
    """Data could not be decoded as a pprof profile."""

    def __init__(self, message: str, path: Path | str | None = None):
        self.path = str(path) if path is not None else None
        self.reason = message
        if self.path:
            message = f"failed to parse profile {self.path}: {message}"
        super().__init__(message)


class IncompatibleProfilesError(PprofUploadError):
    """Profiles with different sample-type schemas were merged."""


class ClassificationError(PprofUploadError):
    """No sample type of a profile maps to a known profile type."""

    def __init__(self, sample_types: list[str] | tuple[str, ...]):
        self.sample_types = list(sample_types)
        names = ", ".join(self.sample_types)
        super().__init__(f"failed to guess profile type from sample types [{names}]")


class ConfigError(PprofUploadError):
    """The configuration file is unreadable or invalid."""
