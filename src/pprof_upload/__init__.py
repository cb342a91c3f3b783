"""
pprof-upload - Upload pprof profiles to Cloud Profiler for visualization.

Reads one or more locally captured profiles, merges them, infers the profile
type and submits the result through the offline profile ingestion API.
"""

__version__ = "0.1.0"

from pprof_upload.config import UploadConfig
from pprof_upload.engine import UploadEngine, UploadResult
from pprof_upload.inference import ProfileType, classify, guess_profile_type
from pprof_upload.loader import ProfileLoader, load_profiles
from pprof_upload.uploader import Uploader, UploadRequest

__all__ = [
    "UploadConfig",
    "UploadEngine",
    "UploadResult",
    "ProfileType",
    "classify",
    "guess_profile_type",
    "ProfileLoader",
    "load_profiles",
    "Uploader",
    "UploadRequest",
]
