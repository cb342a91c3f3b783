"""Uploader for Cloud Profiler offline profiles.

Builds CreateOfflineProfile requests and sends them through the Cloud Profiler
v2 API using ambient Google credentials.
"""

from datetime import datetime
from typing import Any, Callable
import base64
import logging

from googleapiclient import discovery
from pydantic import BaseModel, ConfigDict, Field
import google.auth

from pprof_upload.config import DEFAULT_API_ADDR, UploadConfig
from pprof_upload.inference import ProfileType, guess_profile_type
from pprof_upload.pprof import Profile, serialize

logger = logging.getLogger(__name__)

SCOPE = "https://www.googleapis.com/auth/monitoring.write"

VIEWER_URL = (
    "https://console.cloud.google.com/profiler/{service};type={profile_type};"
    "version={version}?project={project}"
)


def default_version(now: datetime) -> str:
    """Format an instant as an RFC 3339 version label, e.g. 2023-05-01T10:00:00+00:00."""
    return now.isoformat(timespec="seconds")


def escape_version(version: str) -> str:
    """Escape a version for the viewer URL, where ':' is reserved."""
    return version.replace(":", "~3a")


def viewer_url(service: str, profile_type: ProfileType, version: str, project_id: str) -> str:
    """URL of the uploaded profile in the Cloud Profiler UI."""
    return VIEWER_URL.format(
        service=service,
        profile_type=profile_type.value,
        version=escape_version(version),
        project=project_id,
    )


def endpoint_url(api_addr: str) -> str:
    """Turn a host:port API address into an HTTPS endpoint URL."""
    if "://" in api_addr:
        return api_addr
    host, _, port = api_addr.partition(":")
    if port in ("", "443"):
        return f"https://{host}/"
    return f"https://{api_addr}/"


class UploadRequest(BaseModel):
    """A CreateOfflineProfile request."""

    model_config = ConfigDict(frozen=True)

    project_id: str = Field(..., min_length=1)
    target: str = Field(..., min_length=1, description="Deployment target (service name)")
    version: str = Field(..., description="Value of the 'version' deployment label")
    profile_type: ProfileType
    profile_bytes: bytes = Field(..., repr=False)

    @property
    def parent(self) -> str:
        return f"projects/{self.project_id}"

    @property
    def labels(self) -> dict[str, str]:
        return {"version": self.version}

    def to_body(self) -> dict[str, Any]:
        """JSON body of the request, as expected by the REST API."""
        return {
            "profileType": self.profile_type.value,
            "deployment": {
                "projectId": self.project_id,
                "target": self.target,
                "labels": self.labels,
            },
            "profileBytes": base64.b64encode(self.profile_bytes).decode("ascii"),
        }


class ProfilerClient:
    """Client for the Cloud Profiler v2 API."""

    def __init__(self, api_addr: str = DEFAULT_API_ADDR, credentials: Any = None):
        if credentials is None:
            credentials, _ = google.auth.default(scopes=[SCOPE])
        self.endpoint = endpoint_url(api_addr)
        self._service = discovery.build(
            "cloudprofiler",
            "v2",
            credentials=credentials,
            client_options={"api_endpoint": self.endpoint},
            cache_discovery=False,
        )

    def create_offline_profile(self, request: UploadRequest) -> dict[str, Any]:
        """Send the request and return the created profile resource."""
        logger.debug("CreateOfflineProfile %s at %s", request.parent, self.endpoint)
        return (
            self._service.projects()
            .profiles()
            .createOffline(parent=request.parent, body=request.to_body())
            .execute()
        )


class Uploader:
    """Classifies, serializes and uploads profiles.

    The API client is created on the first upload, so no credentials are
    looked up when a run fails before reaching the network.
    """

    def __init__(
        self,
        config: UploadConfig,
        client_factory: Callable[[str], Any] | None = None,
    ):
        self.config = config
        self._client_factory = client_factory
        self._client: Any = None

    @property
    def client(self) -> Any:
        if self._client is None:
            factory = self._client_factory or ProfilerClient
            self._client = factory(self.config.api_addr)
        return self._client

    def build_request(self, profile: Profile, version: str) -> UploadRequest:
        """Classify and serialize a profile into an UploadRequest.

        Raises:
            ClassificationError: If the profile type cannot be inferred
        """
        profile_type = guess_profile_type(profile)
        return UploadRequest(
            project_id=self.config.project_id,
            target=self.config.service_name,
            version=version,
            profile_type=profile_type,
            profile_bytes=serialize(profile),
        )

    def upload(self, profile: Profile, version: str) -> ProfileType:
        """Upload a profile.

        Errors from classification and from the API are propagated unchanged.

        Returns:
            The inferred profile type
        """
        request = self.build_request(profile, version)
        logger.debug(
            "Uploading %s profile (%d bytes) as %s version %s",
            request.profile_type.value,
            len(request.profile_bytes),
            request.target,
            request.version,
        )
        self.client.create_offline_profile(request)
        return request.profile_type
