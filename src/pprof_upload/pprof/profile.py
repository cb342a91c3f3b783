"""In-memory pprof profile model.

Profiles are decoded from the wire format into plain objects whose string
fields are resolved and whose cross references (sample -> location ->
function/mapping) are object references instead of ids. The string table is
rebuilt when a profile is serialized.
"""

from dataclasses import dataclass, field
from typing import Any
import gzip
import zlib

from google.protobuf.message import DecodeError

from pprof_upload.errors import ProfileFormatError
from pprof_upload.pprof.proto import ProfileMessage

GZIP_MAGIC = b"\x1f\x8b"


@dataclass
class ValueType:
    """A (type, unit) pair such as ("cpu", "nanoseconds")."""

    type: str = ""
    unit: str = ""

    def __str__(self) -> str:
        return f"{self.type}/{self.unit}"


@dataclass(eq=False)
class Mapping:
    """A binary or shared object mapped into the profiled process."""

    id: int
    start: int = 0
    limit: int = 0
    offset: int = 0
    file: str = ""
    build_id: str = ""
    has_functions: bool = False
    has_filenames: bool = False
    has_line_numbers: bool = False
    has_inline_frames: bool = False


@dataclass(eq=False)
class Function:
    id: int
    name: str = ""
    system_name: str = ""
    filename: str = ""
    start_line: int = 0


@dataclass
class Line:
    function: Function | None = None
    line: int = 0


@dataclass(eq=False)
class Location:
    """A program location; lines are ordered innermost (inlined) first."""

    id: int
    mapping: Mapping | None = None
    address: int = 0
    lines: list[Line] = field(default_factory=list)
    is_folded: bool = False


@dataclass
class Sample:
    """One recorded stack with a value per profile sample type."""

    locations: list[Location] = field(default_factory=list)
    values: list[int] = field(default_factory=list)
    labels: dict[str, list[str]] = field(default_factory=dict)
    num_labels: dict[str, list[int]] = field(default_factory=dict)
    num_units: dict[str, list[str]] = field(default_factory=dict)


@dataclass
class Profile:
    """A decoded pprof profile."""

    sample_types: list[ValueType] = field(default_factory=list)
    samples: list[Sample] = field(default_factory=list)
    mappings: list[Mapping] = field(default_factory=list)
    locations: list[Location] = field(default_factory=list)
    functions: list[Function] = field(default_factory=list)
    comments: list[str] = field(default_factory=list)
    drop_frames: str = ""
    keep_frames: str = ""
    time_nanos: int = 0
    duration_nanos: int = 0
    period_type: ValueType | None = None
    period: int = 0
    default_sample_type: str = ""

    def sample_type_names(self) -> list[str]:
        """Names of the sample types, in declaration order."""
        return [st.type for st in self.sample_types]

    def total(self, index: int = 0) -> int:
        """Sum of the sample values for the sample type at ``index``."""
        return sum(s.values[index] for s in self.samples)


def parse(data: bytes) -> Profile:
    """Decode a profile from gzip-compressed or raw protobuf bytes.

    Raises:
        ProfileFormatError: If the data is not a valid pprof profile
    """
    if not data:
        raise ProfileFormatError("empty input")

    if data[:2] == GZIP_MAGIC:
        try:
            data = gzip.decompress(data)
        except (OSError, EOFError, zlib.error) as e:
            raise ProfileFormatError(f"decompressing profile: {e}") from e

    message = ProfileMessage()
    try:
        message.ParseFromString(data)
    except DecodeError as e:
        raise ProfileFormatError(f"decoding profile: {e}") from e

    return _Decoder(message).decode()


def serialize(profile: Profile) -> bytes:
    """Encode a profile as gzip-compressed protobuf, the pprof file format."""
    message = _Encoder().encode(profile)
    return gzip.compress(message.SerializeToString(), mtime=0)


class _Decoder:
    """Resolves string indices and ids of a ProfileMessage."""

    def __init__(self, message: Any):
        self._message = message
        self._strings = list(message.string_table) or [""]

    def _string(self, index: int) -> str:
        if index < 0 or index >= len(self._strings):
            raise ProfileFormatError(
                f"string index {index} out of range (table has {len(self._strings)} entries)"
            )
        return self._strings[index]

    def _value_type(self, message: Any) -> ValueType:
        return ValueType(type=self._string(message.type), unit=self._string(message.unit))

    def decode(self) -> Profile:
        if self._strings[0] != "":
            raise ProfileFormatError("string_table[0] must be ''")

        m = self._message
        profile = Profile(
            sample_types=[self._value_type(st) for st in m.sample_type],
            comments=[self._string(c) for c in m.comment],
            drop_frames=self._string(m.drop_frames),
            keep_frames=self._string(m.keep_frames),
            time_nanos=m.time_nanos,
            duration_nanos=m.duration_nanos,
            period_type=self._value_type(m.period_type) if m.HasField("period_type") else None,
            period=m.period,
            default_sample_type=self._string(m.default_sample_type),
        )

        mappings = self._decode_mappings(profile)
        functions = self._decode_functions(profile)
        locations = self._decode_locations(profile, mappings, functions)
        self._decode_samples(profile, locations)
        return profile

    def _decode_mappings(self, profile: Profile) -> dict[int, Mapping]:
        mappings: dict[int, Mapping] = {}
        for mm in self._message.mapping:
            if mm.id == 0 or mm.id in mappings:
                raise ProfileFormatError(f"invalid or duplicate mapping id {mm.id}")
            mapping = Mapping(
                id=mm.id,
                start=mm.memory_start,
                limit=mm.memory_limit,
                offset=mm.file_offset,
                file=self._string(mm.filename),
                build_id=self._string(mm.build_id),
                has_functions=mm.has_functions,
                has_filenames=mm.has_filenames,
                has_line_numbers=mm.has_line_numbers,
                has_inline_frames=mm.has_inline_frames,
            )
            mappings[mm.id] = mapping
            profile.mappings.append(mapping)
        return mappings

    def _decode_functions(self, profile: Profile) -> dict[int, Function]:
        functions: dict[int, Function] = {}
        for fm in self._message.function:
            if fm.id == 0 or fm.id in functions:
                raise ProfileFormatError(f"invalid or duplicate function id {fm.id}")
            function = Function(
                id=fm.id,
                name=self._string(fm.name),
                system_name=self._string(fm.system_name),
                filename=self._string(fm.filename),
                start_line=fm.start_line,
            )
            functions[fm.id] = function
            profile.functions.append(function)
        return functions

    def _decode_locations(
        self,
        profile: Profile,
        mappings: dict[int, Mapping],
        functions: dict[int, Function],
    ) -> dict[int, Location]:
        locations: dict[int, Location] = {}
        for lm in self._message.location:
            if lm.id == 0 or lm.id in locations:
                raise ProfileFormatError(f"invalid or duplicate location id {lm.id}")
            mapping = None
            if lm.mapping_id:
                mapping = mappings.get(lm.mapping_id)
                if mapping is None:
                    raise ProfileFormatError(
                        f"location {lm.id} references unknown mapping {lm.mapping_id}"
                    )
            lines = []
            for line in lm.line:
                function = None
                if line.function_id:
                    function = functions.get(line.function_id)
                    if function is None:
                        raise ProfileFormatError(
                            f"location {lm.id} references unknown function {line.function_id}"
                        )
                lines.append(Line(function=function, line=line.line))
            location = Location(
                id=lm.id,
                mapping=mapping,
                address=lm.address,
                lines=lines,
                is_folded=lm.is_folded,
            )
            locations[lm.id] = location
            profile.locations.append(location)
        return locations

    def _decode_samples(self, profile: Profile, locations: dict[int, Location]) -> None:
        type_count = len(profile.sample_types)
        for sm in self._message.sample:
            if len(sm.value) != type_count:
                raise ProfileFormatError(
                    f"mismatch: sample has {len(sm.value)} values vs. {type_count} types"
                )
            sample = Sample(values=list(sm.value))
            for location_id in sm.location_id:
                location = locations.get(location_id)
                if location is None:
                    raise ProfileFormatError(f"sample references unknown location {location_id}")
                sample.locations.append(location)
            for label in sm.label:
                key = self._string(label.key)
                if label.str:
                    sample.labels.setdefault(key, []).append(self._string(label.str))
                elif label.num or label.num_unit:
                    sample.num_labels.setdefault(key, []).append(label.num)
                    sample.num_units.setdefault(key, []).append(self._string(label.num_unit))
            profile.samples.append(sample)


class _Encoder:
    """Builds a ProfileMessage and its string table from a Profile."""

    def __init__(self) -> None:
        self._strings: list[str] = [""]
        self._index: dict[str, int] = {"": 0}

    def _string(self, value: str) -> int:
        index = self._index.get(value)
        if index is None:
            index = len(self._strings)
            self._strings.append(value)
            self._index[value] = index
        return index

    def _value_type(self, target: Any, value_type: ValueType) -> None:
        target.type = self._string(value_type.type)
        target.unit = self._string(value_type.unit)

    def encode(self, profile: Profile) -> Any:
        m = ProfileMessage()

        for st in profile.sample_types:
            self._value_type(m.sample_type.add(), st)

        for sample in profile.samples:
            sm = m.sample.add()
            sm.location_id.extend(loc.id for loc in sample.locations)
            sm.value.extend(sample.values)
            for key, values in sample.labels.items():
                for value in values:
                    sm.label.add(key=self._string(key), str=self._string(value))
            for key, nums in sample.num_labels.items():
                units = sample.num_units.get(key, [])
                for i, num in enumerate(nums):
                    unit = units[i] if i < len(units) else ""
                    sm.label.add(key=self._string(key), num=num, num_unit=self._string(unit))

        for mapping in profile.mappings:
            m.mapping.add(
                id=mapping.id,
                memory_start=mapping.start,
                memory_limit=mapping.limit,
                file_offset=mapping.offset,
                filename=self._string(mapping.file),
                build_id=self._string(mapping.build_id),
                has_functions=mapping.has_functions,
                has_filenames=mapping.has_filenames,
                has_line_numbers=mapping.has_line_numbers,
                has_inline_frames=mapping.has_inline_frames,
            )

        for location in profile.locations:
            lm = m.location.add(
                id=location.id,
                mapping_id=location.mapping.id if location.mapping else 0,
                address=location.address,
                is_folded=location.is_folded,
            )
            for line in location.lines:
                lm.line.add(
                    function_id=line.function.id if line.function else 0,
                    line=line.line,
                )

        for function in profile.functions:
            m.function.add(
                id=function.id,
                name=self._string(function.name),
                system_name=self._string(function.system_name),
                filename=self._string(function.filename),
                start_line=function.start_line,
            )

        m.comment.extend(self._string(c) for c in profile.comments)
        m.drop_frames = self._string(profile.drop_frames)
        m.keep_frames = self._string(profile.keep_frames)
        m.time_nanos = profile.time_nanos
        m.duration_nanos = profile.duration_nanos
        if profile.period_type is not None:
            self._value_type(m.period_type, profile.period_type)
        m.period = profile.period
        m.default_sample_type = self._string(profile.default_sample_type)

        m.string_table.extend(self._strings)
        return m
