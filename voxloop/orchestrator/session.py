"""
Single-shot voice session orchestrator.

Runs record -> transcribe -> generate -> speak exactly once, as a strict
linear state machine:

    IDLE -> LISTENING -> TRANSCRIBING -> GENERATING -> SPEAKING -> DONE

with a terminal FAILED reachable from any non-terminal state. Capture,
transcription and generation failures abort the session. Speech failures
are reported but the session still completes, since the transcript and the
response have already been shown to the user.

Every transition and stage result is published on the event bus.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from voxloop.core.config import VoxloopConfig
from voxloop.core.errors import VoxloopError
from voxloop.core.event_bus import EventBus, EventType
from voxloop.core.types import (
    GenerationRequest,
    GenerationResult,
    SessionState,
    TranscriptionRequest,
    TranscriptionResult,
)
from voxloop.core.workspace import SessionWorkspace
from voxloop.services.capture import Recorder
from voxloop.services.devices import get_default_input_device
from voxloop.services.generation import OllamaClient
from voxloop.services.speech import Speaker
from voxloop.services.transcription import Transcriber

logger = logging.getLogger(__name__)

TRANSITIONS = {
    SessionState.IDLE: {SessionState.LISTENING, SessionState.FAILED},
    SessionState.LISTENING: {SessionState.TRANSCRIBING, SessionState.FAILED},
    SessionState.TRANSCRIBING: {SessionState.GENERATING, SessionState.FAILED},
    SessionState.GENERATING: {SessionState.SPEAKING, SessionState.FAILED},
    SessionState.SPEAKING: {SessionState.DONE, SessionState.FAILED},
    SessionState.DONE: set(),
    SessionState.FAILED: set(),
}


@dataclass
class SessionOutcome:
    """Final result of a voice session."""
    session_id: str
    state: SessionState
    transcript: Optional[TranscriptionResult] = None
    response: Optional[GenerationResult] = None
    failed_stage: Optional[SessionState] = None
    error: Optional[VoxloopError] = None
    speech_error: Optional[VoxloopError] = None

    @property
    def succeeded(self) -> bool:
        return self.state is SessionState.DONE

    @property
    def degraded(self) -> bool:
        """Completed, but the response could not be spoken."""
        return self.succeeded and self.speech_error is not None

    @property
    def exit_code(self) -> int:
        if self.succeeded:
            return 0
        return self.error.code if self.error else 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "state": self.state.value,
            "transcript": self.transcript.text if self.transcript else None,
            "language": self.transcript.language if self.transcript else None,
            "response": self.response.response_text if self.response else None,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "error": str(self.error) if self.error else None,
            "error_code": self.error.code if self.error else None,
            "speech_error": str(self.speech_error) if self.speech_error else None,
            "degraded": self.degraded,
        }


class VoiceSession:
    """One pass through the voice pipeline."""

    def __init__(
        self,
        config: VoxloopConfig,
        workspace: Optional[SessionWorkspace] = None,
        recorder: Optional[Recorder] = None,
        transcriber: Optional[Transcriber] = None,
        llm: Optional[OllamaClient] = None,
        speaker: Optional[Speaker] = None,
        device_lookup: Callable[[], Optional[str]] = get_default_input_device,
        event_bus: Optional[EventBus] = None,
    ):
        """
        Args:
            config: Session configuration
            workspace: Artifact directory (a fresh one under config.work_dir if omitted)
            recorder, transcriber, llm, speaker: Stage components, built from config if omitted
            device_lookup: Reports the default input device name
            event_bus: Bus for progress events (none are published if omitted)
        """
        self.config = config
        self.workspace = workspace or SessionWorkspace(config.work_dir)
        self.device_lookup = device_lookup
        self.recorder = recorder or Recorder(config.capture, self.workspace, device_lookup=device_lookup)
        self.transcriber = transcriber or Transcriber(config.transcription, log_path=self.workspace.tool_log_path)
        self._owns_llm = llm is None
        self.llm = llm or OllamaClient(config.generation)
        self.speaker = speaker or Speaker(config.speech, self.workspace)
        self.event_bus = event_bus

        self.state = SessionState.IDLE
        self._started = False

    @property
    def session_id(self) -> str:
        return self.workspace.session_id

    async def run(self) -> SessionOutcome:
        """
        Run the session once.

        Returns:
            SessionOutcome in state DONE or FAILED

        Raises:
            RuntimeError: If the session has already been run
        """
        if self._started:
            raise RuntimeError(f"Session {self.session_id} has already been run")
        self._started = True

        start_time = time.time()
        logger.info(f"Starting session {self.session_id}")
        await self._emit(EventType.SESSION_STARTED, {
            "session_id": self.session_id,
            "duration_seconds": self.config.capture.duration_seconds,
            "whisper_model": self.config.transcription.model_name,
            "llm_model": self.config.generation.model_name,
        })

        try:
            outcome = await self._run_stages()
        finally:
            self.workspace.cleanup()
            if self._owns_llm:
                self.llm.close()

        elapsed = time.time() - start_time
        logger.info(f"Session {self.session_id} finished in {elapsed:.2f}s: {outcome.state.value}")
        await self._emit(EventType.SESSION_COMPLETED, {**outcome.to_dict(), "elapsed_time": elapsed})
        return outcome

    async def _run_stages(self) -> SessionOutcome:
        outcome = SessionOutcome(session_id=self.session_id, state=self.state)

        # Reporting the device is best-effort; capture decides whether it is usable.
        device_name = await self._in_executor(self.device_lookup)
        await self._transition(SessionState.LISTENING, device=device_name)

        duration = self.config.capture.duration_seconds
        try:
            clip = await self._in_executor(self.recorder.record, duration)
        except VoxloopError as e:
            return await self._fail(outcome, e)
        await self._emit(EventType.RECORDING_COMPLETED, {
            "path": str(clip.path),
            "duration_seconds": clip.duration_seconds,
            "device": device_name,
        })

        await self._transition(SessionState.TRANSCRIBING)
        request = TranscriptionRequest(
            source_clip=clip,
            model_name=self.config.transcription.model_name,
            duration_seconds=duration,
        )
        try:
            outcome.transcript = await self._in_executor(self.transcriber.transcribe_request, request)
        except VoxloopError as e:
            return await self._fail(outcome, e)
        finally:
            self.workspace.clean_input()

        await self._emit(EventType.SPEECH_DETECTED, {
            "text": outcome.transcript.text,
            "language": outcome.transcript.language,
        })

        await self._transition(SessionState.GENERATING)
        gen_start = time.time()
        try:
            outcome.response = await self.llm.generate(GenerationRequest(
                model_name=self.config.generation.model_name,
                prompt=outcome.transcript.text,
            ))
        except VoxloopError as e:
            return await self._fail(outcome, e)

        await self._emit(EventType.RESPONSE_GENERATED, {
            "response": outcome.response.response_text,
            "model": outcome.response.model_name,
            "elapsed_time": time.time() - gen_start,
        })

        await self._transition(SessionState.SPEAKING)
        try:
            await self._in_executor(self.speaker.speak, outcome.response.response_text, self.config.speech.volume)
        except VoxloopError as e:
            # The response was already shown; the session still completes.
            logger.error(f"Speech stage failed ({e.kind.name}): {e}")
            outcome.speech_error = e
            await self._emit(EventType.ERROR_OCCURRED, {
                "stage": SessionState.SPEAKING.value,
                "error": str(e),
                "code": e.code,
                "fatal": False,
            })
        else:
            await self._emit(EventType.TTS_COMPLETED, {"text": outcome.response.response_text})

        await self._transition(SessionState.DONE)
        outcome.state = self.state
        return outcome

    async def _fail(self, outcome: SessionOutcome, error: VoxloopError) -> SessionOutcome:
        stage = self.state
        logger.error(f"Session failed while {stage.value} ({error.kind.name}): {error}")

        await self._transition(SessionState.FAILED)
        outcome.state = self.state
        outcome.failed_stage = stage
        outcome.error = error
        await self._emit(EventType.ERROR_OCCURRED, {
            "stage": stage.value,
            "error": str(error),
            "code": error.code,
            "fatal": True,
        })
        return outcome

    async def _transition(self, new_state: SessionState, **details: Any) -> None:
        if new_state not in TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal session transition: {self.state.value} -> {new_state.value}")

        old_state = self.state
        self.state = new_state
        logger.debug(f"Session {self.session_id}: {old_state.value} -> {new_state.value}")
        await self._emit(EventType.STATE_CHANGED, {"from": old_state.value, "to": new_state.value, **details})

    async def _in_executor(self, func: Callable, *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    async def _emit(self, event_type: EventType, data: Dict[str, Any]) -> None:
        if self.event_bus is None:
            return
        await self.event_bus.emit(event_type, data, source="session", correlation_id=self.session_id)
