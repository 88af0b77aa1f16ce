"""
Configuration management for the voice loop.

Configuration hierarchy (later wins):
1. Dataclass defaults
2. config/voxloop.yaml
3. Environment variables (a .env file is loaded first)
4. Explicit overrides, e.g. from command-line flags
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union
from urllib.parse import urlparse

from dotenv import load_dotenv

from .errors import ConfigError
from .service_config import load_yaml_config, merge_configs, parse_env_value

logger = logging.getLogger(__name__)

CONFIG_NAME = "voxloop"

# Environment variable -> dotted config path
ENV_MAPPINGS = {
    "VOXLOOP_LOG_LEVEL": "log_level",
    "VOXLOOP_LOG_FILE": "log_file",
    "VOXLOOP_WORK_DIR": "work_dir",
    "VOXLOOP_DURATION": "capture.duration_seconds",
    "VOXLOOP_CAPTURE_TOOL": "capture.executable",
    "VOXLOOP_INPUT_FORMAT": "capture.input_format",
    "VOXLOOP_INPUT_DEVICE": "capture.input_device",
    "VOXLOOP_WHISPER_TOOL": "transcription.executable",
    "VOXLOOP_WHISPER_MODEL": "transcription.model_name",
    "VOXLOOP_WHISPER_LANGUAGE": "transcription.language",
    "VOXLOOP_WHISPER_TIMEOUT": "transcription.timeout_seconds",
    "OLLAMA_BASE_URL": "generation.base_url",
    "OLLAMA_MODEL": "generation.model_name",
    "OLLAMA_TIMEOUT": "generation.timeout_seconds",
    "TTS_EXECUTABLE": "speech.executable",
    "TTS_MODEL_NAME": "speech.model_name",
    "TTS_VOLUME": "speech.volume",
    "TTS_TIMEOUT": "speech.timeout_seconds",
}


def _value(config: Dict[str, Any], key: str, default: Any) -> Any:
    """Config value, with an explicit null treated as unset."""
    value = config.get(key)
    return default if value is None else value


def _as_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}")


def _as_float(value: Any, name: str) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {value!r}")


def _as_optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


@dataclass
class CaptureConfig:
    """Recording settings."""
    duration_seconds: int = 5
    executable: str = "ffmpeg"
    input_format: Optional[str] = None  # None = platform default
    input_device: Optional[str] = None  # None = platform default
    timeout_grace_seconds: float = 10.0

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "CaptureConfig":
        return cls(
            duration_seconds=_as_int(_value(config, "duration_seconds", cls.duration_seconds), "capture.duration_seconds"),
            executable=str(_value(config, "executable", cls.executable)),
            input_format=_as_optional_str(config.get("input_format")),
            input_device=_as_optional_str(config.get("input_device")),
            timeout_grace_seconds=_as_float(
                _value(config, "timeout_grace_seconds", cls.timeout_grace_seconds), "capture.timeout_grace_seconds"
            ),
        )


@dataclass
class TranscriptionConfig:
    """Whisper CLI settings."""
    executable: str = "whisper"
    model_name: str = "small"
    language: Optional[str] = None  # None = let whisper detect it
    timeout_seconds: float = 300.0

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "TranscriptionConfig":
        return cls(
            executable=str(_value(config, "executable", cls.executable)),
            model_name=str(_value(config, "model_name", cls.model_name)),
            language=_as_optional_str(config.get("language")),
            timeout_seconds=_as_float(_value(config, "timeout_seconds", cls.timeout_seconds), "transcription.timeout_seconds"),
        )


@dataclass
class GenerationConfig:
    """Ollama connection settings."""
    base_url: str = "http://127.0.0.1:11434"
    model_name: str = "gemma"
    timeout_seconds: float = 120.0

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "GenerationConfig":
        return cls(
            base_url=str(_value(config, "base_url", cls.base_url)),
            model_name=str(_value(config, "model_name", cls.model_name)),
            timeout_seconds=_as_float(_value(config, "timeout_seconds", cls.timeout_seconds), "generation.timeout_seconds"),
        )


@dataclass
class SpeechConfig:
    """TTS CLI and playback settings."""
    executable: str = "tts"
    model_name: Optional[str] = None  # None = the tool's default voice
    volume: float = 1.0
    timeout_seconds: float = 120.0
    blocksize: int = 1024

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "SpeechConfig":
        return cls(
            executable=str(_value(config, "executable", cls.executable)),
            model_name=_as_optional_str(config.get("model_name")),
            volume=_as_float(_value(config, "volume", cls.volume), "speech.volume"),
            timeout_seconds=_as_float(_value(config, "timeout_seconds", cls.timeout_seconds), "speech.timeout_seconds"),
            blocksize=_as_int(_value(config, "blocksize", cls.blocksize), "speech.blocksize"),
        )


@dataclass
class VoxloopConfig:
    """Main configuration for a voice session."""
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    transcription: TranscriptionConfig = field(default_factory=TranscriptionConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    speech: SpeechConfig = field(default_factory=SpeechConfig)
    work_dir: Optional[Path] = None  # None = system temp dir
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "VoxloopConfig":
        work_dir = config.get("work_dir")
        log_file = config.get("log_file")
        return cls(
            capture=CaptureConfig.from_dict(config.get("capture") or {}),
            transcription=TranscriptionConfig.from_dict(config.get("transcription") or {}),
            generation=GenerationConfig.from_dict(config.get("generation") or {}),
            speech=SpeechConfig.from_dict(config.get("speech") or {}),
            work_dir=Path(str(work_dir)).expanduser() if work_dir else None,
            log_level=str(config.get("log_level") or "INFO").upper(),
            log_file=Path(str(log_file)).expanduser() if log_file else None,
        )

    def validate(self) -> None:
        """Raise ConfigError listing every invalid value."""
        errors = []

        if self.capture.duration_seconds <= 0:
            errors.append("capture duration must be a positive number of seconds")
        if self.capture.timeout_grace_seconds < 0:
            errors.append("capture timeout grace must not be negative")
        if not self.transcription.model_name:
            errors.append("whisper model name is required")
        if self.transcription.timeout_seconds <= 0:
            errors.append("transcription timeout must be positive")
        if not self.generation.model_name:
            errors.append("LLM model name is required")
        if self.generation.timeout_seconds <= 0:
            errors.append("LLM timeout must be positive")
        if urlparse(self.generation.base_url).scheme not in ("http", "https"):
            errors.append(f"LLM base URL must be http(s): {self.generation.base_url!r}")
        if not (0.0 <= self.speech.volume <= 1.0):
            errors.append("speech volume must be between 0.0 and 1.0")
        if self.speech.timeout_seconds <= 0:
            errors.append("speech timeout must be positive")
        if self.speech.blocksize <= 0:
            errors.append("playback blocksize must be positive")
        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"unknown log level: {self.log_level}")

        if errors:
            raise ConfigError(f"Configuration validation failed: {'; '.join(errors)}")


class ConfigManager:
    """Loads configuration from files, environment and overrides."""

    def __init__(self, config_dir: Optional[Union[str, Path]] = None, env_file: Optional[Union[str, Path]] = None):
        self.config_dir = config_dir
        self._load_env_file(env_file)
        self.config: Optional[VoxloopConfig] = None
        self._env_overrides: Dict[str, str] = {}

    def _load_env_file(self, env_file: Optional[Union[str, Path]]) -> None:
        """Load environment variables from a .env file without overriding the environment."""
        path = Path(env_file) if env_file else Path.cwd() / '.env'
        if path.exists():
            load_dotenv(path)
            logger.info(f"Loaded environment variables from {path}")
        else:
            logger.debug("No .env file found. Using system environment variables or defaults.")

    def load_config(self, overrides: Optional[Dict[str, Any]] = None) -> VoxloopConfig:
        """Load, merge and validate configuration."""
        config_data = load_yaml_config(CONFIG_NAME, self.config_dir)
        config_data = self._apply_env_overrides(config_data)
        if overrides:
            config_data = merge_configs(config_data, overrides)

        config = VoxloopConfig.from_dict(config_data)
        config.validate()
        self.config = config
        logger.debug(f"Configuration loaded: {config}")
        return config

    def _apply_env_overrides(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        result = dict(config_data)
        for env_var, config_path in ENV_MAPPINGS.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                self._set_nested_value(result, config_path, parse_env_value(env_value))
                self._env_overrides[env_var] = env_value
        return result

    @staticmethod
    def _set_nested_value(data: Dict[str, Any], path: str, value: Any) -> None:
        """Set a nested value in a dictionary using dot notation."""
        keys = path.split('.')
        current = data
        for key in keys[:-1]:
            nested = current.get(key)
            current[key] = dict(nested) if isinstance(nested, dict) else {}
            current = current[key]
        current[keys[-1]] = value

    def get_env_overrides(self) -> Dict[str, str]:
        """Get environment variable overrides that were applied."""
        return self._env_overrides.copy()
