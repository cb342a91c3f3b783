"""Upload Engine - runs one load, classify and upload cycle.

The engine:
- Loads and merges the input profiles
- Infers the profile type before touching the network
- Stamps the current time on every uploaded profile
- Uploads the merged profile, or each input when merging is disabled
"""

from datetime import datetime, timezone
from typing import Any, Callable
import logging
import time

from pprof_upload.config import UploadConfig
from pprof_upload.inference import ProfileType, guess_profile_type
from pprof_upload.loader import ProfileLoader
from pprof_upload.uploader import Uploader, default_version, viewer_url

logger = logging.getLogger(__name__)

# Individually uploaded profiles get distinct microsecond timestamps.
TIMESTAMP_STEP_NANOS = 1000


class UploadResult:
    """Result of an upload run."""

    def __init__(
        self,
        config: UploadConfig,
        profile_type: ProfileType,
        version: str,
        uploaded: int,
    ):
        self.config = config
        self.profile_type = profile_type
        self.version = version
        self.uploaded = uploaded

    @property
    def url(self) -> str:
        return viewer_url(
            self.config.service_name,
            self.profile_type,
            self.version,
            self.config.project_id,
        )

    def summary(self) -> dict[str, Any]:
        return {
            "project_id": self.config.project_id,
            "service_name": self.config.service_name,
            "profile_type": self.profile_type.value,
            "version": self.version,
            "uploaded": self.uploaded,
            "url": self.url,
        }


class UploadEngine:
    """Engine for uploading pprof files to Cloud Profiler."""

    def __init__(
        self,
        config: UploadConfig,
        loader: ProfileLoader | None = None,
        uploader: Uploader | None = None,
        clock: Callable[[], int] = time.time_ns,
        notify: Callable[[str], None] | None = None,
    ):
        self.config = config
        self.loader = loader or ProfileLoader()
        self.uploader = uploader or Uploader(config)
        self._clock = clock
        self._notify = notify or logger.info

    def run(self) -> UploadResult:
        """Load, merge, classify and upload the configured profile files.

        Returns:
            UploadResult describing what was uploaded

        Raises:
            PprofUploadError: For read, format, merge and classification failures
        """
        profiles, merged = self.loader.load_merged(self.config.paths)
        if not self.config.merge:
            self._notify(f"Will upload {len(profiles)} profile(s)")

        profile_type = guess_profile_type(merged)

        to_upload = [merged] if self.config.merge else profiles

        now_ns = self._clock()
        now = datetime.fromtimestamp(now_ns // 1_000_000_000, tz=timezone.utc).astimezone()
        version = self.config.service_version or default_version(now)

        for i, profile in enumerate(to_upload):
            # Keep the profile inside the UI's query window regardless of when
            # it was captured.
            profile.time_nanos = now_ns + i * TIMESTAMP_STEP_NANOS
            self.uploader.upload(profile, version)
            self._notify(f"Uploaded {i + 1} profile(s)")

        return UploadResult(
            config=self.config,
            profile_type=profile_type,
            version=version,
            uploaded=len(to_upload),
        )
