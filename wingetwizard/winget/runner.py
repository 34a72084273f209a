"""
Winget Process Runner

Launches the package manager as a child process with an argument list
(never through a shell), enforces per-call timeouts and kills the whole
process tree when a timeout fires.

Only allow-listed verbs and flags are accepted. Package ids and sources are
validated; free-text search queries are passed through verbatim as a single
argv token.
"""

import logging
import os
import re
import signal
import subprocess
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..errors import ProcessLaunchFailure, ProcessTimeout, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_VERBS = {"list", "upgrade", "install", "uninstall", "repair", "search", "source", "show"}

ALLOWED_FLAGS = {
    "--id",
    "--source",
    "--query",
    "--count",
    "--exact",
    "--all",
    "--silent",
    "--verbose",
    "--accept-source-agreements",
    "--accept-package-agreements",
    "--disable-interactivity",
    "--include-unknown",
}

# Flags that consume the following argument as their value
VALUE_FLAGS = {"--id", "--source", "--query", "--count"}

PACKAGE_ID_PATTERN = re.compile(r"^[A-Za-z0-9._\-+]+$")
MAX_PACKAGE_ID_LENGTH = 100
MAX_QUERY_LENGTH = 200
VALID_SOURCES = {"winget", "msstore"}

# Bounded wait for pipes to drain after a kill
_KILL_GRACE_SECONDS = 5


def validate_package_id(package_id: str) -> str:
    """
    Validate a package identifier.

    Args:
        package_id: Identifier such as "Git.Git"

    Returns:
        The stripped identifier

    Raises:
        ValidationError: If empty, too long or containing unexpected characters
    """
    value = (package_id or "").strip()
    if not value:
        raise ValidationError("Package id cannot be empty")
    if len(value) > MAX_PACKAGE_ID_LENGTH:
        raise ValidationError(f"Package id exceeds {MAX_PACKAGE_ID_LENGTH} characters")
    if not PACKAGE_ID_PATTERN.match(value):
        raise ValidationError(f"Invalid package id: {value!r}")
    return value


def validate_arguments(verb: str, arguments: Sequence[str]) -> None:
    """
    Check a verb and its arguments against the allow-list.

    Raises:
        ValidationError: On any disallowed verb, flag or value
    """
    if verb not in ALLOWED_VERBS:
        raise ValidationError(f"Verb not allowed: {verb!r}")

    expect_value_for: Optional[str] = None
    for arg in arguments:
        if expect_value_for is not None:
            _validate_flag_value(expect_value_for, arg)
            expect_value_for = None
            continue

        if not arg.startswith("-"):
            raise ValidationError(f"Unexpected positional argument: {arg!r}")
        if arg not in ALLOWED_FLAGS:
            raise ValidationError(f"Flag not allowed: {arg!r}")
        if arg in VALUE_FLAGS:
            expect_value_for = arg

    if expect_value_for is not None:
        raise ValidationError(f"Missing value for {expect_value_for}")


def _validate_flag_value(flag: str, value: str) -> None:
    if flag == "--id":
        validate_package_id(value)
    elif flag == "--source":
        if value not in VALID_SOURCES:
            raise ValidationError(f"Unknown source: {value!r}")
    elif flag == "--count":
        if not value.isdigit():
            raise ValidationError(f"Invalid count: {value!r}")
    elif flag == "--query":
        if not value.strip():
            raise ValidationError("Search term cannot be empty")
        if len(value) > MAX_QUERY_LENGTH:
            raise ValidationError(f"Search term exceeds {MAX_QUERY_LENGTH} characters")


def output_tail(stdout: str, stderr: str, limit: int) -> str:
    """
    Combine stdout and stderr and keep only the last `limit` characters.

    Args:
        stdout: Captured standard output
        stderr: Captured standard error
        limit: Maximum number of characters to keep

    Returns:
        Trimmed combined output
    """
    combined = "\n".join(part for part in (stdout or "", stderr or "") if part.strip()).strip()
    if len(combined) <= limit:
        return combined
    return combined[-limit:]


@dataclass
class CommandResult:
    """Outcome of one package manager invocation."""

    args: List[str]
    returncode: int
    stdout: str
    stderr: str
    duration_ms: int = 0

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def tail(self, limit: int) -> str:
        return output_tail(self.stdout, self.stderr, limit)


class WingetRunner:
    """
    Executes winget subcommands.

    Not safe for concurrent lifecycle use: callers serialize lifecycle
    operations themselves (see PackageOrchestrator.run_batch).
    """

    def __init__(self, executable: str = "winget", default_timeout: float = 120):
        """
        Initialize runner.

        Args:
            executable: Path or name of the winget executable
            default_timeout: Timeout in seconds when a call passes none
        """
        self.executable = executable
        self.default_timeout = default_timeout

    def build_command(self, verb: str, arguments: Sequence[str]) -> List[str]:
        """Validate and assemble the argv list."""
        args = [a for a in arguments if a is not None and a != ""]
        validate_arguments(verb, args)
        return [self.executable, verb, *args]

    def run(
        self,
        verb: str,
        arguments: Sequence[str] = (),
        timeout: Optional[float] = None,
    ) -> CommandResult:
        """
        Run a winget subcommand and capture its output.

        Args:
            verb: Subcommand (list, upgrade, ...)
            arguments: Flags and values, one token per element
            timeout: Seconds before the process tree is killed

        Returns:
            CommandResult (non-zero exit codes are returned, not raised)

        Raises:
            ValidationError: Arguments failed the allow-list
            ProcessLaunchFailure: Executable missing or not executable
            ProcessTimeout: The call exceeded its timeout
        """
        command = self.build_command(verb, arguments)
        timeout = timeout or self.default_timeout
        display = f"{os.path.basename(self.executable)} {verb}"

        logger.debug(f"[winget] Running: {display} ({len(command) - 2} args, timeout {timeout:g}s)")
        start_time = time.time()

        try:
            process = subprocess.Popen(command, **self._popen_kwargs())
        except OSError as e:
            logger.error(f"[winget] Cannot launch {self.executable}: {e}")
            raise ProcessLaunchFailure(self.executable, str(e)) from e

        try:
            stdout, stderr = process.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"[winget] {display} timed out after {timeout:g}s, killing process tree")
            self._kill_tree(process)
            stdout, stderr = self._drain(process)
            raise ProcessTimeout(display, timeout, output_tail(stdout, stderr, 4000))

        duration_ms = int((time.time() - start_time) * 1000)
        logger.debug(
            f"[winget] {display} exited with {process.returncode} in {duration_ms}ms "
            f"(stdout {len(stdout or '')} chars, stderr {len(stderr or '')} chars)"
        )

        return CommandResult(
            args=command,
            returncode=process.returncode,
            stdout=stdout or "",
            stderr=stderr or "",
            duration_ms=duration_ms,
        )

    def is_available(self) -> bool:
        """Cheap check: can the executable be launched at all?"""
        try:
            process = subprocess.Popen(
                [self.executable, "--version"], **self._popen_kwargs()
            )
            process.communicate(timeout=10)
            return process.returncode == 0
        except (OSError, subprocess.TimeoutExpired):
            return False

    def _popen_kwargs(self) -> dict:
        kwargs = {
            "stdin": subprocess.DEVNULL,
            "stdout": subprocess.PIPE,
            "stderr": subprocess.PIPE,
            "text": True,
            "encoding": "utf-8",
            "errors": "replace",
        }
        if os.name == "nt":
            kwargs["creationflags"] = (
                subprocess.CREATE_NEW_PROCESS_GROUP | getattr(subprocess, "CREATE_NO_WINDOW", 0)
            )
        else:
            # Own process group so the whole tree can be signalled
            kwargs["start_new_session"] = True
        return kwargs

    def _kill_tree(self, process: subprocess.Popen) -> None:
        """Kill the child and everything it spawned."""
        if os.name == "nt":
            subprocess.run(
                ["taskkill", "/F", "/T", "/PID", str(process.pid)],
                capture_output=True,
                check=False,
            )
        else:
            try:
                os.killpg(process.pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
        try:
            process.kill()
        except OSError:
            pass

    def _drain(self, process: subprocess.Popen):
        try:
            stdout, stderr = process.communicate(timeout=_KILL_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            logger.warning("[winget] Process did not exit after kill")
            return "", ""
        return stdout or "", stderr or ""
