"""
Core Types for the voice loop.

Shared data passed between pipeline stages.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional


class SessionState(Enum):
    """States of a single voice session."""
    IDLE = "idle"
    LISTENING = "listening"
    TRANSCRIBING = "transcribing"
    GENERATING = "generating"
    SPEAKING = "speaking"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.DONE, SessionState.FAILED)


@dataclass(frozen=True)
class AudioClip:
    """Reference to a transient audio file on disk."""
    path: Path
    container: str = "mp3"
    duration_seconds: Optional[int] = None

    def exists(self) -> bool:
        """True only if the backing file exists and is non-empty."""
        try:
            return self.path.is_file() and self.path.stat().st_size > 0
        except OSError:
            return False

    @property
    def result_path(self) -> Path:
        """Sibling path of the JSON transcription result."""
        return self.path.with_suffix(".json")


@dataclass(frozen=True)
class TranscriptionRequest:
    """What to transcribe and with which model."""
    source_clip: AudioClip
    model_name: str
    duration_seconds: int

    def __post_init__(self):
        if not isinstance(self.duration_seconds, int) or self.duration_seconds <= 0:
            raise ValueError(f"duration_seconds must be a positive integer, got {self.duration_seconds!r}")
        if not self.model_name:
            raise ValueError("model_name must not be empty")


@dataclass(frozen=True)
class TranscriptionResult:
    """Text recognized from a clip and its detected language."""
    text: str
    language: str

    @classmethod
    def from_payload(cls, data: Any) -> "TranscriptionResult":
        """Build from the tool's JSON output; raises ValueError if fields are missing."""
        if not isinstance(data, dict):
            raise ValueError("transcription result must be a JSON object")
        text = data.get("text")
        language = data.get("language")
        if not isinstance(text, str) or not isinstance(language, str):
            raise ValueError("transcription result requires string 'text' and 'language'")
        return cls(text=text, language=language)


@dataclass(frozen=True)
class GenerationRequest:
    """A single non-streaming completion request."""
    model_name: str
    prompt: str
    stream: bool = False

    def to_payload(self) -> Dict[str, Any]:
        # The pipeline only handles one complete JSON response.
        return {
            "model": self.model_name,
            "prompt": self.prompt,
            "stream": False,
        }


@dataclass(frozen=True)
class GenerationResult:
    """Completion returned by the language-model server."""
    model_name: str
    response_text: str

    @classmethod
    def from_payload(cls, data: Any) -> "GenerationResult":
        if not isinstance(data, dict):
            raise ValueError("generation response must be a JSON object")
        model = data.get("model")
        response = data.get("response")
        if not isinstance(model, str) or not isinstance(response, str):
            raise ValueError("generation response requires string 'model' and 'response'")
        return cls(model_name=model, response_text=response)
