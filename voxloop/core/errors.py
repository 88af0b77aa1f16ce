"""
Error taxonomy for the voice loop.

Every stage raises exceptions from a closed hierarchy rooted at
VoxloopError. Each concrete class carries a stable ErrorKind and numeric
code that the CLI reports as the process exit status.
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Stable error kinds with their numeric codes.

    Codes start at 10 so they double as process exit statuses without
    clashing with 1 (generic failure), 2 (usage or configuration error)
    or 130 (interrupted).
    """
    NO_DEFAULT_INPUT_DEVICE = 10
    RECORDING_FAILED = 11
    TRANSCRIPTION_FAILED = 12
    GENERATION_FAILED = 13
    TTS_FAILED = 14
    PLAYBACK_FAILED = 15
    TIMEOUT = 16

    @property
    def code(self) -> int:
        return self.value


class VoxloopError(Exception):
    """Base exception for all pipeline errors."""

    kind: ErrorKind
    default_message = "An error occurred."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def code(self) -> int:
        return self.kind.code

    def __str__(self) -> str:
        return self.message


# Capture

class CaptureError(VoxloopError):
    """Base exception for recording errors."""
    pass


class NoDefaultInputDevice(CaptureError):
    """No input device could be discovered."""
    kind = ErrorKind.NO_DEFAULT_INPUT_DEVICE
    default_message = "No default input device found."


class RecordingFailed(CaptureError):
    """The capture tool is missing, crashed or produced no audio."""
    kind = ErrorKind.RECORDING_FAILED
    default_message = "An error occurred while recording."


# Transcription

class TranscriptionError(VoxloopError):
    """Base exception for transcription errors."""
    pass


class TranscriptionFailed(TranscriptionError):
    """The transcription tool failed or its result file is unusable."""
    kind = ErrorKind.TRANSCRIPTION_FAILED
    default_message = "An error occurred while transcribing."


# Generation

class GenerationError(VoxloopError):
    """Base exception for text generation errors."""
    pass


class GenerationFailed(GenerationError):
    """Server unreachable, non-success status or malformed response."""
    kind = ErrorKind.GENERATION_FAILED
    default_message = "An error occurred while generating the text."


# Speech

class SpeechError(VoxloopError):
    """Base exception for synthesis and playback errors."""
    pass


class TtsFailed(SpeechError):
    """The synthesis tool failed to produce output."""
    kind = ErrorKind.TTS_FAILED
    default_message = "An error occurred while generating speech."


class PlaybackFailed(SpeechError):
    """Output device unavailable, file unreadable or decode failure."""
    kind = ErrorKind.PLAYBACK_FAILED
    default_message = "An error occurred while playing the audio."


class StageTimeout(VoxloopError):
    """An external process or the HTTP call exceeded its deadline."""
    kind = ErrorKind.TIMEOUT
    default_message = "The operation timed out."

    def __init__(self, message: Optional[str] = None, stage: Optional[str] = None,
                 timeout: Optional[float] = None):
        super().__init__(message)
        self.stage = stage
        self.timeout = timeout


class ConfigError(ValueError):
    """Invalid configuration value."""
    pass
