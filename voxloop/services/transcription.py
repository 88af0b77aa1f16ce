"""
Speech-to-text through the openai-whisper command-line tool.

Whisper is asked to write a JSON result next to the clip
(input.mp3 -> input.json), which is parsed into a TranscriptionResult.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from voxloop.core.config import TranscriptionConfig
from voxloop.core.errors import StageTimeout, TranscriptionFailed
from voxloop.core.types import AudioClip, TranscriptionRequest, TranscriptionResult
from voxloop.services.process import ToolFailed, ToolTimeout, run_tool

logger = logging.getLogger(__name__)


class Transcriber:
    """Transcribes recorded clips with whisper."""

    def __init__(self, config: TranscriptionConfig, log_path: Optional[Path] = None):
        self.config = config
        self.log_path = log_path

    def transcribe(self, clip: AudioClip, model_name: Optional[str] = None) -> TranscriptionResult:
        """
        Transcribe the audio file at the clip's path.

        Models are listed at https://github.com/openai/whisper/blob/main/model-card.md

        Raises:
            TranscriptionFailed: If whisper fails or its result file is missing or malformed
            StageTimeout: If whisper exceeds the configured timeout
        """
        model = model_name or self.config.model_name
        log_path = self.log_path or clip.path.parent / "tools.log"

        args = [
            clip.path,
            "--model", model,
            "--output_format", "json",
            "--output_dir", clip.path.parent,
        ]
        if self.config.language:
            args += ["--language", self.config.language]

        logger.info(f"Transcribing {clip.path.name} with whisper model {model!r}")
        try:
            run_tool(self.config.executable, args, log_path=log_path, timeout=self.config.timeout_seconds)
        except ToolTimeout as e:
            raise StageTimeout(
                f"Transcription did not finish within {self.config.timeout_seconds}s.",
                stage="transcription",
                timeout=self.config.timeout_seconds,
            ) from e
        except ToolFailed as e:
            logger.error(f"Transcription tool failed: {e}")
            raise TranscriptionFailed() from e

        return self._read_result(clip)

    def transcribe_request(self, request: TranscriptionRequest) -> TranscriptionResult:
        return self.transcribe(request.source_clip, request.model_name)

    def _read_result(self, clip: AudioClip) -> TranscriptionResult:
        result_path = clip.result_path
        try:
            with open(result_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            result = TranscriptionResult.from_payload(data)
        except OSError as e:
            logger.error(f"Transcription result unreadable: {result_path}: {e}")
            raise TranscriptionFailed() from e
        except ValueError as e:
            # json.JSONDecodeError is a ValueError too
            logger.error(f"Transcription result malformed: {result_path}: {e}")
            raise TranscriptionFailed() from e

        logger.info(f"Transcribed ({result.language}): {result.text!r}")
        return result
