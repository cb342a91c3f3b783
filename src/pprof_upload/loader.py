"""Profile Loader for reading pprof files from disk."""

from pathlib import Path
from typing import Sequence
import logging

from pprof_upload.errors import ProfileFormatError, ProfileReadError
from pprof_upload.pprof import Profile, merge, parse

logger = logging.getLogger(__name__)


class ProfileLoader:
    """Loads pprof profile files."""

    def load_file(self, path: Path | str) -> Profile:
        """Load a profile from a pprof file.

        Args:
            path: Path to a gzip-compressed or raw pprof file

        Returns:
            Parsed Profile

        Raises:
            ProfileReadError: If the file cannot be read
            ProfileFormatError: If the contents are not a valid profile
        """
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise ProfileReadError(path, e.strerror or str(e)) from e

        try:
            profile = parse(data)
        except ProfileFormatError as e:
            raise ProfileFormatError(e.reason, path=path) from e

        logger.debug(
            "Read %s: %d bytes, sample types %s, %d samples",
            path,
            len(data),
            profile.sample_type_names(),
            len(profile.samples),
        )
        return profile

    def load_files(self, paths: Sequence[Path | str]) -> list[Profile]:
        """Load profiles in order; the first failure aborts the whole load."""
        return [self.load_file(path) for path in paths]

    def load_merged(self, paths: Sequence[Path | str]) -> tuple[list[Profile], Profile]:
        """Load profiles and merge them.

        A single file is merged as well, so mergeability is always checked.

        Returns:
            The individual profiles and their merge

        Raises:
            ValueError: If no paths are given
            IncompatibleProfilesError: If the profiles cannot be merged
        """
        if not paths:
            raise ValueError("no profile files given")
        profiles = self.load_files(paths)
        return profiles, merge(profiles)


def load_profiles(paths: Sequence[Path | str]) -> Profile:
    """Convenience function to load and merge profile files.

    Args:
        paths: Paths to pprof files with the same sample types

    Returns:
        The merged Profile
    """
    loader = ProfileLoader()
    _, merged = loader.load_merged(paths)
    return merged
