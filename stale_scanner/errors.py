# stale_scanner/errors.py
"""Error types for whole-ecosystem sub-scans and the typed outcome they map to."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class StaleScanError(Exception):
    """Base class for errors surfaced to the scan orchestrator."""


class ToolUnavailable(StaleScanError):
    """The external command could not be located."""

    def __init__(self, command: list[str]):
        self.command = list(command)
        super().__init__(f"Command not found: {self.command[0] if self.command else '<empty>'}")


class ToolFailed(StaleScanError):
    """The command ran but exited outside its documented success/findings codes."""

    def __init__(self, command: list[str], exit_status: Optional[int], stdout: str = "", stderr: str = ""):
        self.command = list(command)
        self.exit_status = exit_status
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(f"'{' '.join(self.command)}' exited with status {exit_status}")

    @property
    def diagnostics(self) -> str:
        return "\n".join(part.strip() for part in (self.stderr, self.stdout) if part and part.strip())


class OutputMalformed(StaleScanError):
    """The command succeeded but its output could not be parsed."""

    def __init__(self, command: list[str], raw_output: str, reason: str = ""):
        self.command = list(command)
        self.raw_output = raw_output
        self.reason = reason
        message = f"Could not parse output of '{' '.join(self.command)}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class Outcome(Enum):
    SUCCESS = "success"
    FINDINGS = "findings"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class SubScanOutcome:
    status: Outcome
    records: list = field(default_factory=list)
    error: Optional[StaleScanError] = None

    @property
    def completed(self) -> bool:
        return self.status in (Outcome.SUCCESS, Outcome.FINDINGS)
