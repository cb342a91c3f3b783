"""Tests for the pprof codec."""

import gzip

import pytest

from pprof_upload.errors import ProfileFormatError
from pprof_upload.pprof import Profile, ValueType, parse, serialize
from pprof_upload.pprof.proto import ProfileMessage


def _raw(message) -> bytes:
    return message.SerializeToString()


class TestParse:
    """Tests for parse and serialize."""

    def test_serialize_then_parse_preserves_profile(self, make_profile, read_stacks):
        original = make_profile()
        original.comments = ["captured by test"]

        parsed = parse(serialize(original))

        assert parsed.sample_types == original.sample_types
        assert parsed.period_type == ValueType("cpu", "nanoseconds")
        assert parsed.period == original.period
        assert parsed.time_nanos == original.time_nanos
        assert parsed.duration_nanos == original.duration_nanos
        assert parsed.comments == ["captured by test"]
        assert read_stacks(parsed) == read_stacks(original)
        assert [f.name for f in parsed.functions] == ["compute", "main", "io_wait"]
        assert parsed.locations[0].mapping.file == "/usr/bin/app"

    def test_serialize_is_gzip(self, make_profile):
        data = serialize(make_profile())
        assert data[:2] == b"\x1f\x8b"

    def test_parse_raw_protobuf(self, make_profile):
        raw = gzip.decompress(serialize(make_profile()))

        parsed = parse(raw)

        assert parsed.sample_type_names() == ["samples", "cpu"]
        assert len(parsed.samples) == 2

    def test_labels_preserved(self, make_profile):
        profile = make_profile()
        profile.samples[0].labels = {"thread": ["worker-1"]}
        profile.samples[0].num_labels = {"bytes": [4096]}
        profile.samples[0].num_units = {"bytes": ["bytes"]}

        parsed = parse(serialize(profile))

        assert parsed.samples[0].labels == {"thread": ["worker-1"]}
        assert parsed.samples[0].num_labels == {"bytes": [4096]}
        assert parsed.samples[0].num_units == {"bytes": ["bytes"]}

    def test_empty_label_is_dropped(self):
        message = ProfileMessage()
        message.string_table.extend(["", "cpu", "nanoseconds", "thread"])
        message.sample_type.add(type=1, unit=2)
        message.sample.add(value=[5]).label.add(key=3)

        sample = parse(_raw(message)).samples[0]

        assert sample.labels == {}
        assert sample.num_labels == {}
        assert sample.num_units == {}

    def test_total(self, make_profile):
        profile = make_profile()
        assert profile.total(1) == 30_000_000

    def test_empty_profile(self):
        parsed = parse(serialize(Profile()))
        assert parsed.sample_types == []
        assert parsed.period_type is None


class TestParseErrors:
    """Tests for malformed input."""

    def test_empty_input(self):
        with pytest.raises(ProfileFormatError, match="empty"):
            parse(b"")

    def test_bad_gzip(self):
        with pytest.raises(ProfileFormatError, match="decompressing"):
            parse(b"\x1f\x8bthis is not gzip data")

    def test_truncated_protobuf(self):
        # Field 1, length 16, but only one byte follows.
        with pytest.raises(ProfileFormatError, match="decoding"):
            parse(b"\x0a\x10\x01")

    def test_first_string_must_be_empty(self):
        message = ProfileMessage()
        message.string_table.extend(["cpu"])

        with pytest.raises(ProfileFormatError, match="string_table"):
            parse(_raw(message))

    def test_string_index_out_of_range(self):
        message = ProfileMessage()
        message.string_table.extend(["", "cpu"])
        message.sample_type.add(type=7, unit=1)

        with pytest.raises(ProfileFormatError, match="out of range"):
            parse(_raw(message))

    def test_value_count_mismatch(self):
        message = ProfileMessage()
        message.string_table.extend(["", "cpu", "nanoseconds"])
        message.sample_type.add(type=1, unit=2)
        message.sample.add(value=[1, 2])

        with pytest.raises(ProfileFormatError, match="2 values vs. 1 types"):
            parse(_raw(message))

    def test_unknown_location(self):
        message = ProfileMessage()
        message.string_table.extend(["", "cpu", "nanoseconds"])
        message.sample_type.add(type=1, unit=2)
        message.sample.add(value=[1], location_id=[42])

        with pytest.raises(ProfileFormatError, match="unknown location 42"):
            parse(_raw(message))

    def test_zero_function_id(self):
        message = ProfileMessage()
        message.function.add(id=0)

        with pytest.raises(ProfileFormatError, match="function id 0"):
            parse(_raw(message))

    def test_error_has_no_path(self):
        with pytest.raises(ProfileFormatError) as exc_info:
            parse(b"")
        assert exc_info.value.path is None


class TestProfileModel:
    """Tests for the Profile helpers."""

    def test_sample_type_names_in_order(self):
        profile = Profile(sample_types=[ValueType("alloc_space", "bytes"), ValueType("inuse_space", "bytes")])
        assert profile.sample_type_names() == ["alloc_space", "inuse_space"]
