"""
Services Package

Pipeline stages and the external tools behind them:
- capture: ffmpeg recording from the default input device
- transcription: whisper CLI
- generation: Ollama HTTP API
- speech: TTS CLI and playback
"""

from .capture import Recorder
from .devices import get_default_input_device, list_audio_devices, print_audio_devices
from .generation import OllamaClient
from .process import ToolFailed, ToolResult, ToolTimeout, run_tool
from .speech import Speaker
from .transcription import Transcriber

__all__ = [
    'Recorder',
    'Transcriber',
    'OllamaClient',
    'Speaker',
    'get_default_input_device',
    'list_audio_devices',
    'print_audio_devices',
    'run_tool',
    'ToolFailed',
    'ToolTimeout',
    'ToolResult',
]
