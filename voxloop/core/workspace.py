"""
Per-session working directory.

Each session gets its own directory under the configured work dir, so
intermediate artifacts of concurrent processes never share a path.
Cleanup is best-effort and idempotent.
"""

import logging
import os
import tempfile
import uuid
from pathlib import Path
from typing import Iterable, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_WORK_DIR = Path(tempfile.gettempdir()) / "voxloop"


def remove_quietly(path: Union[str, Path]) -> bool:
    """Delete a file, ignoring a missing file or any OS error.

    Returns True if a file was removed.
    """
    try:
        os.unlink(path)
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.debug(f"Could not remove {path}: {e}")
        return False


class SessionWorkspace:
    """Artifact paths owned by one session."""

    def __init__(self, root: Optional[Union[str, Path]] = None,
                 session_id: Optional[str] = None):
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self.root = Path(root).expanduser() if root else DEFAULT_WORK_DIR
        self.directory = self.root / self.session_id

    def create(self) -> "SessionWorkspace":
        self.directory.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Session workspace: {self.directory}")
        return self

    @property
    def input_clip_path(self) -> Path:
        return self.directory / "input.mp3"

    @property
    def transcript_path(self) -> Path:
        return self.input_clip_path.with_suffix(".json")

    @property
    def speech_path(self) -> Path:
        return self.directory / "speech.wav"

    @property
    def tool_log_path(self) -> Path:
        return self.directory / "tools.log"

    def _remove(self, paths: Iterable[Path]) -> int:
        return sum(1 for path in paths if remove_quietly(path))

    def clean_input(self) -> int:
        """Remove the recorded clip, its transcription result and the tool log."""
        return self._remove([self.input_clip_path, self.transcript_path, self.tool_log_path])

    def clean_speech(self) -> int:
        return self._remove([self.speech_path])

    def cleanup(self) -> None:
        """Remove every artifact and the session directory itself."""
        removed = self.clean_input() + self.clean_speech()
        try:
            self.directory.rmdir()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.debug(f"Could not remove workspace {self.directory}: {e}")
        logger.debug(f"Workspace cleaned ({removed} file(s) removed)")

    def __enter__(self) -> "SessionWorkspace":
        return self.create()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()
