from __future__ import annotations

from dataclasses import dataclass
import logging
import subprocess
from typing import Callable, Literal

logger = logging.getLogger(__name__)

ErrorCategory = Literal["already-exists", "not-found", "retryable", "fatal"]
CommandRunner = Callable[[list[str], str | None], subprocess.CompletedProcess[str]]
Redactor = Callable[[list[str]], list[str]]

_ALREADY_EXISTS_PATTERNS = (
    "already exists",
    "already enabled",
    "alreadyexists",
)

_NOT_FOUND_PATTERNS = (
    "not found",
    "could not be found",
    "resourcenotfound",
    "resourcegroupnotfound",
    "notfound",
)

_RETRYABLE_PATTERNS = (
    "timed out",
    "timeout",
    "temporarily unavailable",
    "connection refused",
    "connection reset",
    "i/o timeout",
    "tls handshake timeout",
    "context deadline exceeded",
    "unable to connect",
    "too many requests",
    "rate limit",
)


@dataclass(frozen=True)
class CommandResult:
    command: list[str]
    returncode: int
    stdout: str
    stderr: str


class AdapterCommandError(RuntimeError):
    def __init__(
        self,
        *,
        message: str,
        result: CommandResult,
        category: ErrorCategory,
    ) -> None:
        self.result = result
        self.category = category
        super().__init__(self._build_message(message))

    @property
    def retryable(self) -> bool:
        return self.category == "retryable"

    @property
    def already_exists(self) -> bool:
        return self.category == "already-exists"

    @property
    def not_found(self) -> bool:
        return self.category == "not-found"

    @property
    def detail(self) -> str:
        return (self.result.stderr or self.result.stdout).strip()

    def _build_message(self, message: str) -> str:
        detail = self.detail
        if len(detail) > 400:
            detail = f"{detail[:397]}..."
        cmd = " ".join(self.result.command)
        return (
            f"{message} (category={self.category}, returncode={self.result.returncode}, "
            f"command={cmd!r}, detail={detail!r})"
        )


def default_runner(command: list[str], stdin: str | None = None) -> subprocess.CompletedProcess[str]:
    try:
        return subprocess.run(command, input=stdin, capture_output=True, text=True, check=False)
    except FileNotFoundError as exc:
        return subprocess.CompletedProcess(args=command, returncode=127, stdout="", stderr=str(exc))


def classify_error(*, returncode: int, stderr: str, stdout: str) -> ErrorCategory:
    if returncode < 0:
        return "retryable"
    text = f"{stderr}\n{stdout}".lower()
    if any(pattern in text for pattern in _ALREADY_EXISTS_PATTERNS):
        return "already-exists"
    if any(pattern in text for pattern in _NOT_FOUND_PATTERNS):
        return "not-found"
    if any(pattern in text for pattern in _RETRYABLE_PATTERNS):
        return "retryable"
    return "fatal"


def run_command(
    command: list[str],
    *,
    runner: CommandRunner | None = None,
    error_message: str,
    stdin: str | None = None,
    redact: Redactor | None = None,
) -> CommandResult:
    """Run a command through the active runner.

    ``redact`` rewrites the argv before it is logged or stored on the result,
    so values passed as arguments never reach an error message.
    """
    active_runner = runner or default_runner
    shown = redact(command) if redact else command
    logger.debug("Running command: %s", " ".join(shown))
    completed = active_runner(command, stdin)
    result = CommandResult(
        command=shown,
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )
    if result.returncode != 0:
        raise AdapterCommandError(
            message=error_message,
            result=result,
            category=classify_error(
                returncode=result.returncode,
                stderr=result.stderr,
                stdout=result.stdout,
            ),
        )
    return result
