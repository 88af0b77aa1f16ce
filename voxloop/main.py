#!/usr/bin/env python3
"""
voxloop - Main Entry Point

Records a short question, transcribes it with whisper, asks a local Ollama
model and speaks the answer. One session per invocation.

Usage:
    voxloop                                 # Run with defaults (5s, whisper small, gemma)
    voxloop --duration 8 --llm-model llama3 # Longer recording, another model
    voxloop --list-devices                  # Show audio devices
    voxloop --check-llm                     # Check the Ollama server

Exit status is 0 when the session completes (even if the answer could not
be spoken), the error code of the failing stage (10-16) otherwise, 2 for invalid
configuration and 130 when interrupted.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from voxloop import __version__
from voxloop.core.config import ConfigManager, VoxloopConfig
from voxloop.core.errors import ConfigError, GenerationFailed
from voxloop.core.event_bus import EventBus
from voxloop.orchestrator.reporter import ConsoleReporter
from voxloop.orchestrator.session import SessionOutcome, VoiceSession
from voxloop.services.devices import print_audio_devices
from voxloop.services.generation import OllamaClient

logger = logging.getLogger(__name__)

EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """Configure logging. Logs go to stderr; stdout is for the conversation."""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='voxloop',
        description='Voice loop: record -> whisper -> Ollama -> TTS',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  voxloop                                  # Run with default settings
  voxloop --duration 8 --whisper-model base
  voxloop --llm-base-url http://localhost:11434 --llm-model llama3
  voxloop --volume 0.5 --tts-model tts_models/en/ljspeech/vits
  voxloop --list-devices                   # List audio devices and exit
"""
    )
    parser.add_argument(
        '--duration',
        type=int,
        help='Recording length in seconds (default: 5)'
    )
    parser.add_argument(
        '--whisper-model',
        type=str,
        help='Whisper model name (default: small)'
    )
    parser.add_argument(
        '--language',
        type=str,
        help='Spoken language passed to whisper (default: auto-detect)'
    )
    parser.add_argument(
        '--llm-model',
        type=str,
        help='Ollama model name (default: gemma)'
    )
    parser.add_argument(
        '--llm-base-url',
        type=str,
        help='Ollama base URL (default: http://127.0.0.1:11434)'
    )
    parser.add_argument(
        '--llm-timeout',
        type=float,
        help='Seconds to wait for the model to answer (default: 120)'
    )
    parser.add_argument(
        '--volume',
        type=float,
        help='Playback volume 0.0-1.0 (default: 1.0)'
    )
    parser.add_argument(
        '--tts-model',
        type=str,
        help='Coqui TTS model name (default: the tool default)'
    )
    parser.add_argument(
        '--work-dir',
        type=str,
        help='Directory for per-session temporary files'
    )
    parser.add_argument(
        '--config-dir',
        type=str,
        help='Directory containing voxloop.yaml (default: ./config)'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable debug logging'
    )
    parser.add_argument(
        '--list-devices',
        action='store_true',
        help='List audio devices and exit'
    )
    parser.add_argument(
        '--check-llm',
        action='store_true',
        help='Check the Ollama server and list its models, then exit'
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )
    return parser


# argparse dest -> dotted config path
CLI_OVERRIDES = {
    "duration": "capture.duration_seconds",
    "whisper_model": "transcription.model_name",
    "language": "transcription.language",
    "llm_model": "generation.model_name",
    "llm_base_url": "generation.base_url",
    "llm_timeout": "generation.timeout_seconds",
    "volume": "speech.volume",
    "tts_model": "speech.model_name",
    "work_dir": "work_dir",
}


def build_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Nested config overrides for the flags that were given."""
    overrides: Dict[str, Any] = {}
    for dest, path in CLI_OVERRIDES.items():
        value = getattr(args, dest, None)
        if value is None:
            continue
        ConfigManager._set_nested_value(overrides, path, value)
    if getattr(args, "verbose", False):
        overrides["log_level"] = "DEBUG"
    return overrides


def check_llm(config: VoxloopConfig) -> int:
    """Print the models available on the Ollama server."""
    client = OllamaClient(config.generation)
    try:
        models = client.check_connection()
    except GenerationFailed as e:
        print(f"❌ {e}")
        return e.code
    finally:
        client.close()

    print(f"✅ Ollama is running at {client.base_url}")
    print(f"   Available models: {len(models)}")
    for name in models:
        marker = " (configured)" if name.split(":")[0] == config.generation.model_name.split(":")[0] else ""
        print(f"   - {name}{marker}")
    return 0


async def async_main(config: VoxloopConfig) -> SessionOutcome:
    """Run one session, printing its progress from the event bus."""
    event_bus = EventBus.get_instance()
    await event_bus.start()
    reporter = ConsoleReporter(event_bus).attach()
    try:
        session = VoiceSession(config, event_bus=event_bus)
        return await session.run()
    finally:
        await event_bus.stop()
        reporter.detach()
        logger.info(f"Event bus stats: {event_bus.get_stats()['metrics']}")


def run(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, run and return the exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = ConfigManager(config_dir=args.config_dir).load_config(build_overrides(args))
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    setup_logging(config.log_level, config.log_file)

    if args.list_devices:
        print_audio_devices()
        return 0

    if args.check_llm:
        return check_llm(config)

    logger.info(f"voxloop {__version__}: {config.capture.duration_seconds}s, "
                f"whisper {config.transcription.model_name}, llm {config.generation.model_name}")

    try:
        outcome = asyncio.run(async_main(config))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        print("\nInterrupted.")
        return EXIT_INTERRUPTED

    if outcome.degraded:
        logger.warning(f"Session completed without speech: {outcome.speech_error}")
    return outcome.exit_code


def main() -> None:
    """Main entry point."""
    sys.exit(run())


if __name__ == "__main__":
    main()
