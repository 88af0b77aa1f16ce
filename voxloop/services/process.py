"""
External tool invocation.

Runs command-line tools (ffmpeg, whisper, tts) with an argv list, never
through a shell, so user-derived text such as the prompt or file paths is
passed verbatim as a single argument.
"""

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import IO, List, Optional, Sequence, Union

logger = logging.getLogger(__name__)


class ToolFailed(Exception):
    """The tool was not found, could not start, exited nonzero or was killed."""

    def __init__(self, executable: str, message: str, returncode: Optional[int] = None,
                 stderr: str = ""):
        super().__init__(f"{executable}: {message}")
        self.executable = executable
        self.returncode = returncode
        self.stderr = stderr


class ToolTimeout(ToolFailed):
    """The tool exceeded its deadline and was killed."""

    def __init__(self, executable: str, timeout: float):
        super().__init__(executable, f"timed out after {timeout}s")
        self.timeout = timeout


@dataclass
class ToolResult:
    """Outcome of a successful tool run."""
    executable: str
    args: List[str]
    returncode: int
    stdout: str = ""


def resolve_executable(executable: str) -> Optional[str]:
    """Find an executable on PATH, or accept an existing explicit path."""
    found = shutil.which(executable)
    if found:
        return found
    path = Path(executable).expanduser()
    if path.is_file():
        return str(path)
    return None


def _open_log(log_path: Union[str, Path]) -> Optional[IO]:
    """Open the shared tool log for appending; None if it cannot be opened."""
    try:
        return open(log_path, "a", encoding="utf-8")
    except OSError as e:
        logger.warning(f"Cannot write tool log {log_path}: {e}")
        return None


def run_tool(
    executable: str,
    args: Sequence[Union[str, Path, int]],
    log_path: Optional[Union[str, Path]] = None,
    timeout: Optional[float] = None,
) -> ToolResult:
    """
    Run an external tool and wait for it to finish.

    Args:
        executable: Tool name looked up on PATH (or an explicit path)
        args: Arguments, each passed as its own argv entry
        log_path: Append stdout and stderr to this file instead of capturing them
        timeout: Seconds before the tool is killed

    Returns:
        ToolResult with captured stdout (empty when logging to a file)

    Raises:
        ToolTimeout: If the deadline passed
        ToolFailed: For any other failure
    """
    resolved = resolve_executable(executable)
    if not resolved:
        raise ToolFailed(executable, "executable not found on PATH")

    argv = [resolved] + [str(a) for a in args]
    logger.debug(f"Running: {argv}")

    log_file = _open_log(log_path) if log_path is not None else None
    if log_path is not None:
        stdout = log_file if log_file else subprocess.DEVNULL
        stderr = subprocess.STDOUT if log_file else subprocess.DEVNULL
    else:
        stdout = subprocess.PIPE
        stderr = subprocess.PIPE

    try:
        completed = subprocess.run(
            argv,
            stdin=subprocess.DEVNULL,
            stdout=stdout,
            stderr=stderr,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired:
        raise ToolTimeout(executable, timeout)
    except OSError as e:
        raise ToolFailed(executable, f"could not start: {e}")
    finally:
        if log_file:
            log_file.close()

    if completed.returncode != 0:
        stderr_text = (completed.stderr or "")[-500:]
        if completed.returncode < 0:
            reason = f"killed by signal {-completed.returncode}"
        else:
            reason = f"exited with status {completed.returncode}"
        raise ToolFailed(executable, reason, returncode=completed.returncode, stderr=stderr_text)

    return ToolResult(
        executable=executable,
        args=[str(a) for a in args],
        returncode=completed.returncode,
        stdout=completed.stdout or "",
    )
