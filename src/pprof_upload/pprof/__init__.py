"""pprof profile codec.

Provides the three operations the uploader needs from the pprof format:
- parse: bytes to Profile
- merge: several compatible profiles to one
- serialize: Profile to gzip-compressed protobuf bytes
"""

from pprof_upload.pprof.profile import (
    Function,
    Line,
    Location,
    Mapping,
    Profile,
    Sample,
    ValueType,
    parse,
    serialize,
)
from pprof_upload.pprof.merge import check_compatible, merge

__all__ = [
    "Function",
    "Line",
    "Location",
    "Mapping",
    "Profile",
    "Sample",
    "ValueType",
    "check_compatible",
    "merge",
    "parse",
    "serialize",
]
