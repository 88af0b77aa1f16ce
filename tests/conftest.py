"""
Shared fixtures.

External tools, the Ollama server and audio devices are all faked, so the
suite runs without ffmpeg, whisper, tts, a network or a sound card.
"""

import json
import subprocess
import wave
from pathlib import Path
from typing import Callable, Dict, List, Optional

import numpy as np
import pytest

from voxloop.core.config import ENV_MAPPINGS, VoxloopConfig
from voxloop.core.event_bus import EventBus
from voxloop.core.workspace import SessionWorkspace


def write_wav(path: Path, samples: np.ndarray, framerate: int = 16000, channels: int = 1) -> Path:
    """Write 16-bit PCM samples to a WAV file."""
    with wave.open(str(path), "wb") as wav:
        wav.setnchannels(channels)
        wav.setsampwidth(2)
        wav.setframerate(framerate)
        wav.writeframes(samples.astype("<i2").tobytes())
    return path


def arg_after(argv: List[str], flag: str) -> str:
    return argv[argv.index(flag) + 1]


class FakeSubprocess:
    """Stands in for subprocess.run, dispatching on the tool name."""

    def __init__(self):
        self.calls: List[List[str]] = []
        self.kwargs: List[dict] = []
        self.handlers: Dict[str, Callable[[List[str]], Optional[int]]] = {}
        self.stdout = ""

    def on(self, tool: str, handler: Callable[[List[str]], Optional[int]]) -> None:
        self.handlers[tool] = handler

    def tools_called(self) -> List[str]:
        return [Path(argv[0]).name for argv in self.calls]

    def __call__(self, argv, **kwargs):
        self.calls.append(list(argv))
        self.kwargs.append(kwargs)
        handler = self.handlers.get(Path(argv[0]).name)
        returncode = handler(list(argv)) if handler else 0
        return subprocess.CompletedProcess(argv, returncode or 0, stdout=self.stdout, stderr="")


class FakeOutputStream:
    """Records what would have been played."""

    def __init__(self, samplerate: int, channels: int, dtype: str, blocksize: int):
        self.samplerate = samplerate
        self.channels = channels
        self.dtype = dtype
        self.blocksize = blocksize
        self.chunks: List[bytes] = []
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.closed = True
        return False

    def write(self, data) -> None:
        self.chunks.append(bytes(data))

    @property
    def data(self) -> bytes:
        return b"".join(self.chunks)


class FakeStreamFactory:
    def __init__(self):
        self.streams: List[FakeOutputStream] = []

    def __call__(self, samplerate, channels, dtype, blocksize):
        stream = FakeOutputStream(samplerate, channels, dtype, blocksize)
        self.streams.append(stream)
        return stream


class FakeResponse:
    def __init__(self, status_code: int = 200, payload=None, text: str = ""):
        self.status_code = status_code
        self.payload = payload
        self.text = text or json.dumps(payload)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload

    def raise_for_status(self):
        import requests
        if not self.ok:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error")


class FakeHttpSession:
    """Stands in for requests.Session."""

    def __init__(self, response=None, error: Optional[Exception] = None):
        self.response = response or FakeResponse(200, {"model": "gemma", "response": "Hi there!"})
        self.error = error
        self.posts: List[dict] = []
        self.gets: List[dict] = []
        self.closed = False

    def post(self, url, json=None, headers=None, timeout=None):
        self.posts.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.error:
            raise self.error
        return self.response

    def get(self, url, headers=None, timeout=None):
        self.gets.append({"url": url, "headers": headers, "timeout": timeout})
        if self.error:
            raise self.error
        return self.response

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the developer's environment out of configuration tests."""
    for name in list(ENV_MAPPINGS) + ["CONFIG_DIR"]:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_subprocess(monkeypatch):
    """Every tool resolves on PATH; runs are dispatched to handlers."""
    fake = FakeSubprocess()
    monkeypatch.setattr("voxloop.services.process.shutil.which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr("voxloop.services.process.subprocess.run", fake)
    return fake


@pytest.fixture
def config(tmp_path):
    return VoxloopConfig(work_dir=tmp_path)


@pytest.fixture
def workspace(tmp_path):
    return SessionWorkspace(tmp_path, session_id="test-session")


@pytest.fixture
def stream_factory():
    return FakeStreamFactory()


@pytest.fixture
async def event_bus():
    """Create a fresh event bus for each test."""
    EventBus.reset_instance()

    bus = EventBus.get_instance()
    await bus.start()
    yield bus
    await bus.stop()

    EventBus.reset_instance()
