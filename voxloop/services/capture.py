"""
Audio capture via ffmpeg.

Records a fixed number of seconds from the default input device into the
session's clip path.
"""

import logging
import platform
from typing import Callable, Optional, Tuple

from voxloop.core.config import CaptureConfig
from voxloop.core.errors import NoDefaultInputDevice, RecordingFailed, StageTimeout
from voxloop.core.types import AudioClip
from voxloop.core.workspace import SessionWorkspace, remove_quietly
from voxloop.services.devices import get_default_input_device
from voxloop.services.process import ToolFailed, ToolTimeout, run_tool

logger = logging.getLogger(__name__)

# ffmpeg input format and device for the system default microphone.
# A None device means "use the discovered device name".
PLATFORM_INPUTS = {
    "Darwin": ("avfoundation", ":0"),
    "Linux": ("pulse", "default"),
    "Windows": ("dshow", None),
}


class Recorder:
    """Records clips from the default input device."""

    def __init__(
        self,
        config: CaptureConfig,
        workspace: SessionWorkspace,
        device_lookup: Callable[[], Optional[str]] = get_default_input_device,
        system: Optional[str] = None,
    ):
        self.config = config
        self.workspace = workspace
        self.device_lookup = device_lookup
        self.system = system or platform.system()

    def _input_spec(self, device_name: str) -> Tuple[str, str]:
        """ffmpeg -f/-i values for the current platform."""
        default_format, default_device = PLATFORM_INPUTS.get(self.system, PLATFORM_INPUTS["Linux"])
        input_format = self.config.input_format or default_format
        input_device = self.config.input_device or default_device
        if input_device is None:
            input_device = f"audio={device_name}"
        return input_format, input_device

    def record(self, duration_seconds: Optional[int] = None) -> AudioClip:
        """
        Record for exactly duration_seconds into the session clip path.

        Raises:
            ValueError: If the duration is not a positive integer
            NoDefaultInputDevice: If no input device is discoverable
            RecordingFailed: If the capture tool fails or writes nothing
            StageTimeout: If the capture tool hangs
        """
        duration = self.config.duration_seconds if duration_seconds is None else duration_seconds
        if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
            raise ValueError(f"duration_seconds must be a positive integer, got {duration!r}")

        device_name = self.device_lookup()
        if not device_name:
            raise NoDefaultInputDevice()

        try:
            self.workspace.create()
        except OSError as e:
            logger.error(f"Cannot create session directory {self.workspace.directory}: {e}")
            raise RecordingFailed("Cannot create the session directory for the recording.") from e

        clip = AudioClip(path=self.workspace.input_clip_path, container="mp3", duration_seconds=duration)

        # Overwrite a stale clip if one exists.
        remove_quietly(clip.path)

        input_format, input_device = self._input_spec(device_name)
        args = ["-y", "-f", input_format, "-i", input_device, "-t", duration, clip.path]
        timeout = duration + self.config.timeout_grace_seconds

        logger.info(f"Recording {duration}s from {device_name!r} ({input_format} {input_device})")
        try:
            run_tool(self.config.executable, args, log_path=self.workspace.tool_log_path, timeout=timeout)
        except ToolTimeout as e:
            raise StageTimeout(f"Recording did not finish within {timeout}s.", stage="capture", timeout=timeout) from e
        except ToolFailed as e:
            logger.error(f"Recording failed: {e}")
            raise RecordingFailed() from e

        if not clip.exists():
            logger.error(f"Capture tool produced no audio at {clip.path}")
            raise RecordingFailed("The recording produced no audio.")

        return clip
