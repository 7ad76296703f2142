# stale_scanner/runner.py
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    stdout: str
    stderr: str
    # None when the executable could not be located
    exit_status: Optional[int]

    @property
    def tool_missing(self) -> bool:
        return self.exit_status is None


def run_command(command: list[str], cwd: Union[str, Path]) -> CommandResult:
    """
    Runs `command` in `cwd` and captures its output.
    No retries and no timeout; the command decides when it is done.
    """
    if not Path(cwd).is_dir():
        # subprocess reports a missing cwd as FileNotFoundError too
        raise NotADirectoryError(f"Working directory does not exist: {cwd}")
    logger.debug(f"Running {' '.join(command)} in {cwd}")
    try:
        process = subprocess.run(
            command,
            cwd=str(cwd),
            capture_output=True,
            text=True,
            errors="replace",
            check=False,
        )
    except FileNotFoundError:
        logger.debug(f"Executable not found: {command[0]}")
        return CommandResult(stdout="", stderr="", exit_status=None)
    logger.debug(f"{command[0]} exited with status {process.returncode}")
    return CommandResult(stdout=process.stdout or "", stderr=process.stderr or "", exit_status=process.returncode)
