"""
Core Package

Core infrastructure for the voice loop:
- event_bus: session progress pub/sub
- config: configuration management
- errors: error taxonomy
- types: data passed between stages
- workspace: per-session artifact paths
"""

from .event_bus import EventBus, EventType, Event
from .config import ConfigManager, VoxloopConfig
from .errors import (
    ErrorKind,
    VoxloopError,
    CaptureError,
    NoDefaultInputDevice,
    RecordingFailed,
    TranscriptionError,
    TranscriptionFailed,
    GenerationError,
    GenerationFailed,
    SpeechError,
    TtsFailed,
    PlaybackFailed,
    StageTimeout,
    ConfigError,
)
from .types import (
    SessionState,
    AudioClip,
    TranscriptionRequest,
    TranscriptionResult,
    GenerationRequest,
    GenerationResult,
)
from .workspace import SessionWorkspace

__all__ = [
    # Event bus
    'EventBus',
    'EventType',
    'Event',
    # Config
    'ConfigManager',
    'VoxloopConfig',
    # Errors
    'ErrorKind',
    'VoxloopError',
    'CaptureError',
    'NoDefaultInputDevice',
    'RecordingFailed',
    'TranscriptionError',
    'TranscriptionFailed',
    'GenerationError',
    'GenerationFailed',
    'SpeechError',
    'TtsFailed',
    'PlaybackFailed',
    'StageTimeout',
    'ConfigError',
    # Types
    'SessionState',
    'AudioClip',
    'TranscriptionRequest',
    'TranscriptionResult',
    'GenerationRequest',
    'GenerationResult',
    'SessionWorkspace',
]
