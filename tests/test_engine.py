"""Tests for the Upload Engine."""

from datetime import datetime
from unittest import mock

import pytest

from pprof_upload.config import UploadConfig
from pprof_upload.engine import TIMESTAMP_STEP_NANOS, UploadEngine, UploadResult
from pprof_upload.errors import ClassificationError, IncompatibleProfilesError
from pprof_upload.inference import ProfileType
from pprof_upload.uploader import Uploader, default_version

NOW_NS = 1_682_935_200_123_456_789  # 2023-05-01T10:00:00.123456789Z


@pytest.fixture
def fake_client():
    return mock.Mock()


@pytest.fixture
def run_engine(fake_client):
    """Run an engine with a fake API client and a fixed clock."""

    def _run(config: UploadConfig, notify=None) -> UploadResult:
        uploader = Uploader(config, client_factory=lambda api_addr: fake_client)
        engine = UploadEngine(config, uploader=uploader, clock=lambda: NOW_NS, notify=notify)
        return engine.run()

    return _run


def _requests(fake_client):
    return [c.args[0] for c in fake_client.create_offline_profile.call_args_list]


class TestUploadEngine:
    """Tests for UploadEngine."""

    def test_merged_upload(self, run_engine, fake_client, make_profile, write_profile):
        paths = [write_profile("a.pb.gz", make_profile()), write_profile("b.pb.gz", make_profile())]
        config = UploadConfig(project_id="proj-1", paths=paths)

        result = run_engine(config)

        requests = _requests(fake_client)
        assert len(requests) == 1
        assert requests[0].profile_type == ProfileType.CPU
        assert requests[0].parent == "projects/proj-1"
        assert result.profile_type == ProfileType.CPU
        assert result.uploaded == 1
        assert "type=CPU" in result.url
        assert "project=proj-1" in result.url

    def test_timestamp_is_reset(self, run_engine, fake_client, make_profile, write_profile):
        from pprof_upload.pprof import parse

        path = write_profile("a.pb.gz", make_profile(time_nanos=1))
        run_engine(UploadConfig(project_id="proj-1", paths=[path]))

        uploaded = parse(_requests(fake_client)[0].profile_bytes)
        assert uploaded.time_nanos == NOW_NS

    def test_default_version_is_invocation_time(self, run_engine, fake_client, make_profile, write_profile):
        path = write_profile("a.pb.gz", make_profile())

        result = run_engine(UploadConfig(project_id="proj-1", paths=[path]))

        expected = default_version(datetime.fromtimestamp(NOW_NS // 1_000_000_000).astimezone())
        assert result.version == expected
        assert _requests(fake_client)[0].labels == {"version": expected}
        assert ":" not in result.url.split("version=")[1]

    def test_explicit_version(self, run_engine, fake_client, make_profile, write_profile):
        path = write_profile("a.pb.gz", make_profile())
        config = UploadConfig(project_id="proj-1", service_version="2023-05-01T10:00:00+00:00", paths=[path])

        result = run_engine(config)

        assert _requests(fake_client)[0].version == "2023-05-01T10:00:00+00:00"
        assert "version=2023-05-01T10~3a00~3a00+00~3a00" in result.url

    def test_individual_upload(self, run_engine, fake_client, make_profile, write_profile):
        from pprof_upload.pprof import parse

        paths = [write_profile("a.pb.gz", make_profile()), write_profile("b.pb.gz", make_profile())]
        config = UploadConfig(project_id="proj-1", merge=False, paths=paths)
        messages = []

        result = run_engine(config, notify=messages.append)

        requests = _requests(fake_client)
        assert len(requests) == 2
        assert result.uploaded == 2
        timestamps = [parse(r.profile_bytes).time_nanos for r in requests]
        assert timestamps == [NOW_NS, NOW_NS + TIMESTAMP_STEP_NANOS]
        assert len({r.version for r in requests}) == 1
        assert messages == [
            "Will upload 2 profile(s)",
            "Uploaded 1 profile(s)",
            "Uploaded 2 profile(s)",
        ]

    def test_individual_upload_still_validates_merge(self, run_engine, fake_client, make_profile, write_profile):
        cpu = write_profile("cpu.pb.gz", make_profile())
        wall = write_profile(
            "wall.pb.gz",
            make_profile(sample_types=(("samples", "count"), ("wall", "nanoseconds"))),
        )
        config = UploadConfig(project_id="proj-1", merge=False, paths=[cpu, wall])

        with pytest.raises(IncompatibleProfilesError):
            run_engine(config)

        fake_client.create_offline_profile.assert_not_called()

    def test_unclassified_profile_makes_no_call(self, run_engine, fake_client, make_profile, write_profile):
        path = write_profile(
            "custom.pb.gz",
            make_profile(sample_types=(("custom_metric", "count"),), stacks=((("main",), (1,)),)),
        )

        with pytest.raises(ClassificationError):
            run_engine(UploadConfig(project_id="proj-1", paths=[path]))

        fake_client.create_offline_profile.assert_not_called()

    def test_summary(self, run_engine, make_profile, write_profile):
        path = write_profile("a.pb.gz", make_profile())
        config = UploadConfig(project_id="proj-1", service_name="api", service_version="v1", paths=[path])

        summary = run_engine(config).summary()

        assert summary == {
            "project_id": "proj-1",
            "service_name": "api",
            "profile_type": "CPU",
            "version": "v1",
            "uploaded": 1,
            "url": "https://console.cloud.google.com/profiler/api;type=CPU;version=v1?project=proj-1",
        }
