"""Merging of compatible pprof profiles."""

from typing import Sequence
import logging

from pprof_upload.errors import IncompatibleProfilesError
from pprof_upload.pprof.profile import (
    Function,
    Line,
    Location,
    Mapping,
    Profile,
    Sample,
    ValueType,
)

logger = logging.getLogger(__name__)


def _format_types(value_types: Sequence[ValueType]) -> str:
    return "[" + " ".join(str(vt) for vt in value_types) + "]"


def check_compatible(profile: Profile, other: Profile) -> None:
    """Check that two profiles can be merged.

    Profiles are compatible when their period types are equal and they declare
    the same sample types (name and unit) in the same order.

    Raises:
        IncompatibleProfilesError: If the schemas differ
    """
    # A missing period type is the same as an empty one.
    if (profile.period_type or ValueType()) != (other.period_type or ValueType()):
        raise IncompatibleProfilesError(
            f"incompatible period types {profile.period_type} and {other.period_type}"
        )
    if profile.sample_types != other.sample_types:
        raise IncompatibleProfilesError(
            f"incompatible sample types {_format_types(profile.sample_types)} "
            f"and {_format_types(other.sample_types)}"
        )


def merge(profiles: Sequence[Profile]) -> Profile:
    """Merge profiles into a single new profile.

    Samples with the same stack and labels are combined by adding their
    values. Locations, functions and mappings are de-duplicated and renumbered.
    The inputs are left untouched; nothing is returned if any pair of inputs is
    incompatible.

    Args:
        profiles: Non-empty sequence of profiles with the same sample types

    Returns:
        The merged profile

    Raises:
        ValueError: If no profiles are given
        IncompatibleProfilesError: If the profiles have different schemas
    """
    if not profiles:
        raise ValueError("no profiles to merge")

    first = profiles[0]
    for other in profiles[1:]:
        check_compatible(first, other)

    merger = _ProfileMerger(first)
    for profile in profiles:
        merger.add(profile)

    result = merger.profile
    logger.debug(
        "Merged %d profile(s) into %d samples, %d locations, %d functions",
        len(profiles),
        len(result.samples),
        len(result.locations),
        len(result.functions),
    )
    return result


class _ProfileMerger:
    """Accumulates profiles into one, keyed by content."""

    def __init__(self, template: Profile):
        self.profile = Profile(
            sample_types=[ValueType(st.type, st.unit) for st in template.sample_types],
            period_type=(
                ValueType(template.period_type.type, template.period_type.unit)
                if template.period_type is not None
                else None
            ),
            drop_frames=template.drop_frames,
            keep_frames=template.keep_frames,
            default_sample_type=template.default_sample_type,
        )
        self._samples: dict[tuple, Sample] = {}
        self._locations: dict[tuple, Location] = {}
        self._functions: dict[tuple, Function] = {}
        self._mappings: dict[tuple, Mapping] = {}

    def add(self, source: Profile) -> None:
        result = self.profile

        if source.time_nanos and (not result.time_nanos or source.time_nanos < result.time_nanos):
            result.time_nanos = source.time_nanos
        result.duration_nanos += source.duration_nanos
        result.period = max(result.period, source.period)
        for comment in source.comments:
            if comment not in result.comments:
                result.comments.append(comment)

        # Source objects are hashed by identity, so each is resolved once.
        seen_locations: dict[Location, Location] = {}
        seen_functions: dict[Function, Function] = {}
        seen_mappings: dict[Mapping, Mapping] = {}

        for sample in source.samples:
            locations = []
            for location in sample.locations:
                merged = seen_locations.get(location)
                if merged is None:
                    merged = self._location(location, seen_functions, seen_mappings)
                    seen_locations[location] = merged
                locations.append(merged)
            self._sample(sample, locations)

    def _sample(self, sample: Sample, locations: list[Location]) -> None:
        key = (
            tuple(loc.id for loc in locations),
            tuple(sorted((k, tuple(v)) for k, v in sample.labels.items())),
            tuple(sorted((k, tuple(v)) for k, v in sample.num_labels.items())),
            tuple(sorted((k, tuple(v)) for k, v in sample.num_units.items())),
        )
        existing = self._samples.get(key)
        if existing is not None:
            existing.values = [a + b for a, b in zip(existing.values, sample.values)]
            return

        merged = Sample(
            locations=locations,
            values=list(sample.values),
            labels={k: list(v) for k, v in sample.labels.items()},
            num_labels={k: list(v) for k, v in sample.num_labels.items()},
            num_units={k: list(v) for k, v in sample.num_units.items()},
        )
        self._samples[key] = merged
        self.profile.samples.append(merged)

    def _location(
        self,
        location: Location,
        seen_functions: dict[Function, Function],
        seen_mappings: dict[Mapping, Mapping],
    ) -> Location:
        mapping = None
        if location.mapping is not None:
            mapping = seen_mappings.get(location.mapping)
            if mapping is None:
                mapping = self._mapping(location.mapping)
                seen_mappings[location.mapping] = mapping

        lines = []
        for line in location.lines:
            function = None
            if line.function is not None:
                function = seen_functions.get(line.function)
                if function is None:
                    function = self._function(line.function)
                    seen_functions[line.function] = function
            lines.append(Line(function=function, line=line.line))

        key = (
            mapping.id if mapping else 0,
            location.address,
            tuple((ln.function.id if ln.function else 0, ln.line) for ln in lines),
            location.is_folded,
        )
        merged = self._locations.get(key)
        if merged is None:
            merged = Location(
                id=len(self.profile.locations) + 1,
                mapping=mapping,
                address=location.address,
                lines=lines,
                is_folded=location.is_folded,
            )
            self._locations[key] = merged
            self.profile.locations.append(merged)
        return merged

    def _function(self, function: Function) -> Function:
        key = (function.name, function.system_name, function.filename, function.start_line)
        merged = self._functions.get(key)
        if merged is None:
            merged = Function(
                id=len(self.profile.functions) + 1,
                name=function.name,
                system_name=function.system_name,
                filename=function.filename,
                start_line=function.start_line,
            )
            self._functions[key] = merged
            self.profile.functions.append(merged)
        return merged

    def _mapping(self, mapping: Mapping) -> Mapping:
        key = (mapping.start, mapping.limit, mapping.offset, mapping.file, mapping.build_id)
        merged = self._mappings.get(key)
        if merged is None:
            merged = Mapping(
                id=len(self.profile.mappings) + 1,
                start=mapping.start,
                limit=mapping.limit,
                offset=mapping.offset,
                file=mapping.file,
                build_id=mapping.build_id,
                has_functions=mapping.has_functions,
                has_filenames=mapping.has_filenames,
                has_line_numbers=mapping.has_line_numbers,
                has_inline_frames=mapping.has_inline_frames,
            )
            self._mappings[key] = merged
            self.profile.mappings.append(merged)
        return merged
