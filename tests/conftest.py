"""Shared fixtures for building and writing test profiles."""

from pathlib import Path
from typing import Callable, Sequence

import pytest

from pprof_upload.pprof import (
    Function,
    Line,
    Location,
    Mapping,
    Profile,
    Sample,
    ValueType,
    serialize,
)


def build_profile(
    sample_types: Sequence[tuple[str, str]] = (("samples", "count"), ("cpu", "nanoseconds")),
    stacks: Sequence[tuple[Sequence[str], Sequence[int]]] = (
        (("compute", "main"), (2, 20_000_000)),
        (("io_wait", "main"), (1, 10_000_000)),
    ),
    period_type: tuple[str, str] | None = ("cpu", "nanoseconds"),
    period: int = 10_000_000,
    time_nanos: int = 1_600_000_000_000_000_000,
    duration_nanos: int = 1_000_000_000,
) -> Profile:
    """Build a profile whose stacks are lists of function names, leaf first."""
    mapping = Mapping(id=1, start=0x400000, limit=0x500000, file="/usr/bin/app", has_functions=True)
    profile = Profile(
        sample_types=[ValueType(t, u) for t, u in sample_types],
        period_type=ValueType(*period_type) if period_type else None,
        period=period,
        time_nanos=time_nanos,
        duration_nanos=duration_nanos,
        mappings=[mapping],
    )

    locations: dict[str, Location] = {}
    for names, values in stacks:
        sample = Sample(values=list(values))
        for name in names:
            location = locations.get(name)
            if location is None:
                function = Function(id=len(profile.functions) + 1, name=name, filename="app.go")
                profile.functions.append(function)
                location = Location(
                    id=len(profile.locations) + 1,
                    mapping=mapping,
                    address=0x400000 + 0x10 * len(profile.locations),
                    lines=[Line(function=function, line=10 * function.id)],
                )
                profile.locations.append(location)
                locations[name] = location
            sample.locations.append(location)
        profile.samples.append(sample)

    return profile


def stack_values(profile: Profile) -> dict[tuple[str, ...], list[int]]:
    """Map each sample's function-name stack to its values."""
    result = {}
    for sample in profile.samples:
        key = tuple(loc.lines[0].function.name for loc in sample.locations)
        result[key] = list(sample.values)
    return result


@pytest.fixture
def make_profile() -> Callable[..., Profile]:
    return build_profile


@pytest.fixture
def read_stacks() -> Callable[[Profile], dict[tuple[str, ...], list[int]]]:
    return stack_values


@pytest.fixture
def write_profile(tmp_path: Path) -> Callable[[str, Profile], Path]:
    """Serialize a profile into tmp_path and return the file path."""

    def _write(name: str, profile: Profile) -> Path:
        path = tmp_path / name
        path.write_bytes(serialize(profile))
        return path

    return _write
