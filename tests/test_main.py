"""
Tests for the command-line entry point.
"""

import pytest

import voxloop.main as cli
from voxloop.core.config import VoxloopConfig
from voxloop.core.errors import GenerationFailed, RecordingFailed, TtsFailed
from voxloop.core.event_bus import EventBus, EventType
from voxloop.core.types import SessionState
from voxloop.orchestrator.session import SessionOutcome


@pytest.fixture(autouse=True)
def isolated_cli(tmp_path, monkeypatch):
    """Run from an empty directory and leave the root logger alone."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "setup_logging", lambda level, log_file=None: None)


def fake_asyncio_run(outcome=None, error=None):
    def run(coro):
        coro.close()
        if error:
            raise error
        return outcome
    return run


class TestArguments:

    def test_overrides_only_for_given_flags(self):
        args = cli.build_parser().parse_args(["--duration", "8", "--llm-model", "llama3", "--volume", "0.5"])

        assert cli.build_overrides(args) == {
            "capture": {"duration_seconds": 8},
            "generation": {"model_name": "llama3"},
            "speech": {"volume": 0.5},
        }

    def test_no_flags_no_overrides(self):
        assert cli.build_overrides(cli.build_parser().parse_args([])) == {}

    def test_verbose_sets_debug(self):
        args = cli.build_parser().parse_args(["--verbose"])

        assert cli.build_overrides(args) == {"log_level": "DEBUG"}


class TestRun:

    def test_list_devices(self, monkeypatch):
        called = []
        monkeypatch.setattr(cli, "print_audio_devices", lambda: called.append(True))

        assert cli.run(["--list-devices"]) == 0
        assert called == [True]

    def test_invalid_configuration(self, capsys):
        assert cli.run(["--volume", "2"]) == 2
        assert "volume" in capsys.readouterr().err

    def test_completed_session(self, monkeypatch):
        outcome = SessionOutcome(session_id="x", state=SessionState.DONE)
        monkeypatch.setattr(cli.asyncio, "run", fake_asyncio_run(outcome))

        assert cli.run([]) == 0

    def test_degraded_session_exits_zero(self, monkeypatch):
        outcome = SessionOutcome(session_id="x", state=SessionState.DONE, speech_error=TtsFailed())
        monkeypatch.setattr(cli.asyncio, "run", fake_asyncio_run(outcome))

        assert cli.run([]) == 0

    def test_failed_session_exits_with_error_code(self, monkeypatch):
        outcome = SessionOutcome(
            session_id="x",
            state=SessionState.FAILED,
            failed_stage=SessionState.LISTENING,
            error=RecordingFailed(),
        )
        monkeypatch.setattr(cli.asyncio, "run", fake_asyncio_run(outcome))

        assert cli.run([]) == 11

    def test_capture_failure_and_bad_config_exit_differently(self, monkeypatch):
        outcome = SessionOutcome(
            session_id="x",
            state=SessionState.FAILED,
            failed_stage=SessionState.LISTENING,
            error=RecordingFailed(),
        )
        monkeypatch.setattr(cli.asyncio, "run", fake_asyncio_run(outcome))

        capture_status = cli.run([])
        config_status = cli.run(["--volume", "5"])

        assert capture_status != config_status
        assert config_status == cli.EXIT_CONFIG_ERROR
        assert capture_status not in (0, 1, cli.EXIT_CONFIG_ERROR, cli.EXIT_INTERRUPTED)

    def test_interrupted(self, monkeypatch):
        monkeypatch.setattr(cli.asyncio, "run", fake_asyncio_run(error=KeyboardInterrupt()))

        assert cli.run([]) == 130

    def test_main_exits_with_status(self, monkeypatch):
        monkeypatch.setattr(cli, "run", lambda: 4)

        with pytest.raises(SystemExit) as exc_info:
            cli.main()

        assert exc_info.value.code == 4


class TestCheckLlm:

    def test_reachable(self, monkeypatch, capsys):
        monkeypatch.setattr(cli.OllamaClient, "check_connection", lambda self: ["gemma:latest", "llama3:8b"])

        assert cli.run(["--check-llm"]) == 0
        out = capsys.readouterr().out
        assert "gemma:latest (configured)" in out
        assert "llama3:8b" in out

    def test_unreachable(self, monkeypatch):
        def fail(self):
            raise GenerationFailed("Cannot reach the language model server.")

        monkeypatch.setattr(cli.OllamaClient, "check_connection", fail)

        assert cli.run(["--check-llm"]) == 13


class TestAsyncMain:

    @pytest.mark.asyncio
    async def test_progress_is_printed_from_events(self, monkeypatch, tmp_path, capsys):
        class EmittingSession:
            def __init__(self, config, event_bus=None):
                self.event_bus = event_bus

            async def run(self):
                await self.event_bus.emit(EventType.STATE_CHANGED, {"from": "idle", "to": "listening", "device": "Mic"})
                await self.event_bus.emit(EventType.SPEECH_DETECTED, {"text": "hello world", "language": "en"})
                await self.event_bus.emit(EventType.RESPONSE_GENERATED, {"response": "Hi there!", "model": "gemma"})
                return SessionOutcome(session_id="x", state=SessionState.DONE)

        EventBus.reset_instance()
        monkeypatch.setattr(cli, "VoiceSession", EmittingSession)

        try:
            outcome = await cli.async_main(VoxloopConfig(work_dir=tmp_path))
            bus = EventBus.get_instance()
        finally:
            EventBus.reset_instance()

        assert outcome.succeeded
        assert capsys.readouterr().out.splitlines() == [
            "Listening with 'Mic', Say something!",
            "You said: hello world",
            "Response: Hi there!",
        ]
        assert not bus.is_running
        assert bus.get_stats()["total_handlers"] == 0
