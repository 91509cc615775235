"""Common utilities and types for engine orchestration."""

import logging
import subprocess
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)

REDACTED = '[secret]'

OutputSink = Callable[[str], None]


@dataclass
class ActionResult:
    """Result returned by a lifecycle operation.

    Skipped results are soft failures (stack not found, unsupported
    command): nothing was mutated and the caller should not treat them
    as errors.
    """
    success: bool
    message: str = ''
    duration: float = 0.0
    stdout: str = ''
    stderr: str = ''
    skipped: bool = False
    details: dict = field(default_factory=dict)

    @classmethod
    def skip(cls, message: str, duration: float = 0.0) -> 'ActionResult':
        return cls(success=True, skipped=True, message=message, duration=duration)

    def to_dict(self) -> dict:
        return {
            'success': self.success,
            'skipped': self.skipped,
            'message': self.message,
            'duration': round(self.duration, 3),
            'stdout': self.stdout,
            'stderr': self.stderr,
            'details': self.details,
        }


def redact_command(cmd: list[str], secrets: Optional[list[str]] = None) -> list[str]:
    """Return a copy of cmd with every secret value masked."""
    if not secrets:
        return list(cmd)
    hidden = {s for s in secrets if s}
    return [REDACTED if part in hidden else part for part in cmd]


def run_command(
    cmd: list[str],
    cwd: Optional[Path] = None,
    timeout: Optional[int] = 600,
    capture: bool = True,
    env: Optional[dict] = None,
    secrets: Optional[list[str]] = None,
) -> tuple[int, str, str]:
    """Run a command and return (returncode, stdout, stderr)."""
    logger.debug(f"Running: {' '.join(redact_command(cmd, secrets))}")
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=capture,
            text=True,
            timeout=timeout,
            env=env,
            check=False  # We handle return codes explicitly
        )
        return result.returncode, result.stdout, result.stderr
    except subprocess.TimeoutExpired:
        return -1, '', f'Command timed out after {timeout}s'
    except Exception as e:
        return -1, '', str(e)


def stream_command(
    cmd: list[str],
    on_output: OutputSink,
    cwd: Optional[Path] = None,
    env: Optional[dict] = None,
    secrets: Optional[list[str]] = None,
) -> tuple[int, str, str]:
    """Run a command, feeding each stdout line to on_output as it arrives.

    Returns the same (returncode, stdout, stderr) triple as run_command.
    stderr is drained on a helper thread so a chatty engine cannot block
    on a full pipe.
    """
    logger.debug(f"Streaming: {' '.join(redact_command(cmd, secrets))}")
    try:
        proc = subprocess.Popen(
            cmd,
            cwd=cwd,
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
    except Exception as e:
        return -1, '', str(e)

    err_lines: list[str] = []

    def _drain_stderr():
        assert proc.stderr is not None
        for line in proc.stderr:
            err_lines.append(line)

    reader = threading.Thread(target=_drain_stderr, daemon=True)
    reader.start()

    out_lines: list[str] = []
    assert proc.stdout is not None
    for line in proc.stdout:
        out_lines.append(line)
        on_output(line.rstrip('\n'))

    returncode = proc.wait()
    reader.join()
    return returncode, ''.join(out_lines), ''.join(err_lines)


def print_line(line: str) -> None:
    """Default output sink: echo engine output to stdout."""
    print(line, flush=True)
