"""
Tests for the data passed between stages.
"""

import pytest

from voxloop.core.errors import (
    ErrorKind,
    GenerationFailed,
    NoDefaultInputDevice,
    PlaybackFailed,
    RecordingFailed,
    SpeechError,
    StageTimeout,
    TranscriptionFailed,
    TtsFailed,
    VoxloopError,
)
from voxloop.core.types import (
    AudioClip,
    GenerationRequest,
    GenerationResult,
    SessionState,
    TranscriptionRequest,
    TranscriptionResult,
)


class TestAudioClip:

    def test_exists_requires_content(self, tmp_path):
        clip = AudioClip(tmp_path / "a.mp3")
        assert not clip.exists()

        clip.path.write_bytes(b"")
        assert not clip.exists()

        clip.path.write_bytes(b"ID3")
        assert clip.exists()

    def test_result_path(self, tmp_path):
        assert AudioClip(tmp_path / "input.mp3").result_path == tmp_path / "input.json"


class TestTranscriptionTypes:

    def test_request_validation(self, tmp_path):
        clip = AudioClip(tmp_path / "a.mp3")

        TranscriptionRequest(clip, "small", 5)
        with pytest.raises(ValueError):
            TranscriptionRequest(clip, "small", 0)
        with pytest.raises(ValueError):
            TranscriptionRequest(clip, "", 5)

    def test_result_from_payload(self):
        result = TranscriptionResult.from_payload({"text": " hello", "language": "en", "segments": []})

        assert result == TranscriptionResult(text=" hello", language="en")

    def test_empty_text_is_valid(self):
        assert TranscriptionResult.from_payload({"text": "", "language": "en"}).text == ""


class TestGenerationTypes:

    def test_payload_never_streams(self):
        payload = GenerationRequest("gemma", "hello", stream=True).to_payload()

        assert payload == {"model": "gemma", "prompt": "hello", "stream": False}

    def test_result_from_payload(self):
        result = GenerationResult.from_payload({"model": "gemma", "response": "Hi there!", "done": True})

        assert result.model_name == "gemma"
        assert result.response_text == "Hi there!"


class TestErrors:

    @pytest.mark.parametrize("error_class,code", [
        (NoDefaultInputDevice, 10),
        (RecordingFailed, 11),
        (TranscriptionFailed, 12),
        (GenerationFailed, 13),
        (TtsFailed, 14),
        (PlaybackFailed, 15),
        (StageTimeout, 16),
    ])
    def test_codes(self, error_class, code):
        error = error_class()

        assert error.code == code
        assert isinstance(error, VoxloopError)
        assert str(error)

    def test_custom_message(self):
        assert str(RecordingFailed("mic unplugged")) == "mic unplugged"

    def test_speech_errors_share_a_base(self):
        assert issubclass(TtsFailed, SpeechError)
        assert issubclass(PlaybackFailed, SpeechError)

    def test_kinds_are_unique(self):
        assert len({kind.code for kind in ErrorKind}) == len(ErrorKind)


class TestSessionState:

    def test_terminal_states(self):
        assert SessionState.DONE.is_terminal
        assert SessionState.FAILED.is_terminal
        assert not SessionState.SPEAKING.is_terminal
