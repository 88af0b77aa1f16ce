"""
Text-to-speech and playback.

The Coqui TTS command-line tool renders the text to a WAV file, which is
decoded with wave and played on the default output device with the
requested volume applied to the samples as they are written. The WAV file
is always deleted once synthesis has produced it.
"""

import logging
import wave
from pathlib import Path
from typing import Any, Callable, Optional

import numpy as np

from voxloop.core.config import SpeechConfig
from voxloop.core.errors import PlaybackFailed, StageTimeout, TtsFailed
from voxloop.core.types import AudioClip
from voxloop.core.workspace import SessionWorkspace, remove_quietly
from voxloop.services.process import ToolFailed, ToolTimeout, run_tool

logger = logging.getLogger(__name__)

# WAV sample width (bytes) -> numpy / PortAudio sample type
SAMPLE_DTYPES = {
    1: ("u1", "uint8"),
    2: ("<i2", "int16"),
    4: ("<i4", "int32"),
}


def apply_volume(frames: bytes, sample_width: int, volume: float) -> bytes:
    """Scale PCM frames by a linear volume factor."""
    if volume >= 1.0:
        return frames

    np_dtype = np.dtype(SAMPLE_DTYPES[sample_width][0])
    samples = np.frombuffer(frames, dtype=np_dtype).astype(np.float64)
    if sample_width == 1:
        # 8-bit WAV is unsigned, centred on 128
        scaled = (samples - 128.0) * volume + 128.0
    else:
        scaled = samples * volume

    info = np.iinfo(np_dtype)
    return np.clip(np.rint(scaled), info.min, info.max).astype(np_dtype).tobytes()


def open_default_output_stream(samplerate: int, channels: int, dtype: str, blocksize: int) -> Any:
    """Open a raw output stream on the default output device."""
    try:
        import sounddevice as sd
    except (ImportError, OSError) as e:
        raise PlaybackFailed("No audio output is available.") from e

    try:
        return sd.RawOutputStream(
            samplerate=samplerate,
            channels=channels,
            dtype=dtype,
            blocksize=blocksize,
        )
    except (sd.PortAudioError, ValueError) as e:
        logger.error(f"Cannot open output device: {e}")
        raise PlaybackFailed() from e


class Speaker:
    """Speaks text through the TTS tool and the default output device."""

    def __init__(
        self,
        config: SpeechConfig,
        workspace: SessionWorkspace,
        output_stream_factory: Callable[[int, int, str, int], Any] = open_default_output_stream,
    ):
        """
        Args:
            config: TTS tool and playback settings
            workspace: Session workspace owning the output file path
            output_stream_factory: Opens a writable stream (samplerate, channels, dtype, blocksize)
        """
        self.config = config
        self.workspace = workspace
        self.output_stream_factory = output_stream_factory

    def speak(self, text: str, volume: Optional[float] = None) -> None:
        """
        Synthesize text and play it, blocking until playback ends.

        Raises:
            ValueError: If volume is outside 0.0-1.0
            TtsFailed: If synthesis fails
            PlaybackFailed: If the audio cannot be decoded or played
            StageTimeout: If the synthesis tool hangs
        """
        volume = self.config.volume if volume is None else volume
        if not (0.0 <= volume <= 1.0):
            raise ValueError(f"volume must be between 0.0 and 1.0, got {volume}")

        clip = self.synthesize(text)
        try:
            self.play(clip.path, volume)
        finally:
            remove_quietly(clip.path)

    def synthesize(self, text: str) -> AudioClip:
        """Render text to the session's speech WAV file."""
        if not text or not text.strip():
            logger.warning("Empty text provided, nothing to speak")
            raise TtsFailed("There is no text to speak.")

        try:
            self.workspace.create()
        except OSError as e:
            logger.error(f"Cannot create session directory {self.workspace.directory}: {e}")
            raise TtsFailed("Cannot create the session directory for speech output.") from e

        clip = AudioClip(path=self.workspace.speech_path, container="wav")
        remove_quietly(clip.path)

        args = ["--text", text, "--out_path", clip.path]
        if self.config.model_name:
            args += ["--model_name", self.config.model_name]

        logger.info(f"Synthesizing: {text[:50]}{'...' if len(text) > 50 else ''}")
        try:
            run_tool(self.config.executable, args, log_path=self.workspace.tool_log_path,
                     timeout=self.config.timeout_seconds)
        except ToolTimeout as e:
            remove_quietly(clip.path)
            raise StageTimeout(
                f"Speech synthesis did not finish within {self.config.timeout_seconds}s.",
                stage="speech",
                timeout=self.config.timeout_seconds,
            ) from e
        except ToolFailed as e:
            remove_quietly(clip.path)
            logger.error(f"Speech synthesis failed: {e}")
            raise TtsFailed() from e

        if not clip.exists():
            raise TtsFailed("The speech synthesizer produced no audio.")
        return clip

    def play(self, path: Path, volume: float = 1.0) -> None:
        """Play a WAV file on the default output device until it ends."""
        try:
            wav = wave.open(str(path), "rb")
        except (OSError, EOFError, wave.Error) as e:
            logger.error(f"Cannot open audio file {path}: {e}")
            raise PlaybackFailed() from e

        with wav:
            sample_width = wav.getsampwidth()
            channels = wav.getnchannels()
            framerate = wav.getframerate()
            if sample_width not in SAMPLE_DTYPES:
                raise PlaybackFailed(f"Unsupported sample width: {sample_width * 8} bits.")

            logger.info(f"Playing audio: {channels} channel(s), {framerate} Hz, "
                        f"{sample_width} bytes/sample, volume {volume:.2f}")

            blocksize = self.config.blocksize
            stream = self.output_stream_factory(framerate, channels, SAMPLE_DTYPES[sample_width][1], blocksize)
            try:
                with stream:
                    while frames := wav.readframes(blocksize):
                        stream.write(apply_volume(frames, sample_width, volume))
            except PlaybackFailed:
                raise
            except Exception as e:
                # PortAudio and decode errors do not share a base class
                logger.error(f"Playback failed: {e}")
                raise PlaybackFailed() from e

        logger.info("Playback completed")
