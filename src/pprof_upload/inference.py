"""Profile type inference.

Maps the sample types declared by a profile to the profile type understood by
Cloud Profiler. The first recognized sample type wins.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable
import logging

from pprof_upload.errors import ClassificationError
from pprof_upload.pprof import Profile

logger = logging.getLogger(__name__)


class ProfileType(str, Enum):
    """Cloud Profiler profile types produced by the uploader."""

    UNSPECIFIED = "PROFILE_TYPE_UNSPECIFIED"
    CPU = "CPU"
    WALL = "WALL"
    HEAP = "HEAP"


SAMPLE_TYPE_KINDS: dict[str, ProfileType] = {
    "cpu": ProfileType.CPU,
    "wall": ProfileType.WALL,
    "space": ProfileType.HEAP,
    "inuse_space": ProfileType.HEAP,
}


@dataclass(frozen=True)
class Classified:
    kind: ProfileType


@dataclass(frozen=True)
class Unclassified:
    """No recognized sample type; ``seen`` lists every name scanned."""

    seen: tuple[str, ...]


def classify(sample_type_names: Iterable[str]) -> Classified | Unclassified:
    """Classify a sequence of sample type names.

    Args:
        sample_type_names: Sample type names in declaration order

    Returns:
        Classified with the kind of the first recognized name, or Unclassified
        with all names seen when none is recognized
    """
    seen: list[str] = []
    for name in sample_type_names:
        kind = SAMPLE_TYPE_KINDS.get(name)
        if kind is not None:
            return Classified(kind)
        seen.append(name)
    return Unclassified(tuple(seen))


def guess_profile_type(profile: Profile) -> ProfileType:
    """Infer the profile type from a profile's sample types.

    Raises:
        ClassificationError: If no sample type is recognized
    """
    result = classify(profile.sample_type_names())
    if isinstance(result, Unclassified):
        raise ClassificationError(result.seen)
    logger.debug("Inferred profile type %s", result.kind.value)
    return result.kind
