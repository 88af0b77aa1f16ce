"""
Tests for recording through ffmpeg.
"""

import subprocess
from pathlib import Path

import pytest

from voxloop.core.config import CaptureConfig
from voxloop.core.errors import NoDefaultInputDevice, RecordingFailed, StageTimeout
from voxloop.core.workspace import SessionWorkspace
from voxloop.services.capture import Recorder


def writes_clip(argv):
    Path(argv[-1]).write_bytes(b"ID3" + b"\x00" * 64)


def make_recorder(workspace, device="Built-in Microphone", system="Linux", **config):
    return Recorder(CaptureConfig(**config), workspace, device_lookup=lambda: device, system=system)


class TestRecord:

    def test_records_clip(self, fake_subprocess, workspace):
        fake_subprocess.on("ffmpeg", writes_clip)

        clip = make_recorder(workspace).record(3)

        assert clip.path == workspace.input_clip_path
        assert clip.exists()
        assert clip.duration_seconds == 3
        argv = fake_subprocess.calls[0]
        assert argv[1:] == ["-y", "-f", "pulse", "-i", "default", "-t", "3", str(workspace.input_clip_path)]

    def test_default_duration_from_config(self, fake_subprocess, workspace):
        fake_subprocess.on("ffmpeg", writes_clip)

        clip = make_recorder(workspace, duration_seconds=7).record()

        assert clip.duration_seconds == 7
        assert "7" in fake_subprocess.calls[0]

    def test_output_goes_to_session_log(self, fake_subprocess, workspace):
        fake_subprocess.on("ffmpeg", writes_clip)

        make_recorder(workspace).record(1)

        assert fake_subprocess.kwargs[0]["stderr"] == subprocess.STDOUT
        assert workspace.tool_log_path.exists()

    @pytest.mark.parametrize("system,expected", [
        ("Darwin", ["-f", "avfoundation", "-i", ":0"]),
        ("Linux", ["-f", "pulse", "-i", "default"]),
        ("Windows", ["-f", "dshow", "-i", "audio=Built-in Microphone"]),
    ])
    def test_platform_inputs(self, fake_subprocess, workspace, system, expected):
        fake_subprocess.on("ffmpeg", writes_clip)

        make_recorder(workspace, system=system).record(1)

        assert fake_subprocess.calls[0][2:6] == expected

    def test_configured_input_overrides_platform(self, fake_subprocess, workspace):
        fake_subprocess.on("ffmpeg", writes_clip)

        make_recorder(workspace, input_format="alsa", input_device="hw:1").record(1)

        assert fake_subprocess.calls[0][2:6] == ["-f", "alsa", "-i", "hw:1"]


class TestRecordFailures:

    def test_no_input_device(self, fake_subprocess, workspace):
        with pytest.raises(NoDefaultInputDevice) as exc_info:
            make_recorder(workspace, device=None).record(1)

        assert exc_info.value.code == 10
        assert fake_subprocess.calls == []

    def test_tool_failure(self, fake_subprocess, workspace):
        fake_subprocess.on("ffmpeg", lambda argv: 1)

        with pytest.raises(RecordingFailed) as exc_info:
            make_recorder(workspace).record(1)

        assert exc_info.value.code == 11

    def test_missing_tool(self, monkeypatch, workspace):
        monkeypatch.setattr("voxloop.services.process.shutil.which", lambda name: None)

        with pytest.raises(RecordingFailed):
            make_recorder(workspace, executable="no-such-ffmpeg").record(1)

    def test_never_returns_clip_for_missing_file(self, fake_subprocess, workspace):
        """Exit status 0 without an output file is still a failure."""
        with pytest.raises(RecordingFailed, match="no audio"):
            make_recorder(workspace).record(1)

    def test_empty_file_is_a_failure(self, fake_subprocess, workspace):
        fake_subprocess.on("ffmpeg", lambda argv: Path(argv[-1]).write_bytes(b""))

        with pytest.raises(RecordingFailed):
            make_recorder(workspace).record(1)

    def test_stale_clip_is_not_returned(self, fake_subprocess, workspace):
        workspace.create()
        workspace.input_clip_path.write_bytes(b"old recording")

        with pytest.raises(RecordingFailed):
            make_recorder(workspace).record(1)

        assert not workspace.input_clip_path.exists()

    def test_timeout(self, fake_subprocess, workspace):
        def hang(argv):
            raise subprocess.TimeoutExpired(argv, 11)

        fake_subprocess.on("ffmpeg", hang)

        with pytest.raises(StageTimeout) as exc_info:
            make_recorder(workspace, timeout_grace_seconds=10).record(1)

        assert exc_info.value.stage == "capture"
        assert exc_info.value.code == 16
        assert fake_subprocess.kwargs[0]["timeout"] == 11

    @pytest.mark.parametrize("duration", [0, -3, 2.5, True, "5"])
    def test_invalid_duration(self, fake_subprocess, workspace, duration):
        with pytest.raises(ValueError):
            make_recorder(workspace).record(duration)

        assert fake_subprocess.calls == []

    def test_unusable_work_dir(self, fake_subprocess, tmp_path):
        not_a_dir = tmp_path / "work"
        not_a_dir.write_text("")

        with pytest.raises(RecordingFailed) as exc_info:
            make_recorder(SessionWorkspace(not_a_dir, session_id="s1")).record(1)

        assert isinstance(exc_info.value.__cause__, OSError)
        assert fake_subprocess.calls == []
