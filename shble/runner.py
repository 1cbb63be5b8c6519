from __future__ import annotations

import asyncio
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path

import pexpect

from shble.log_setup import TRACE

logger = logging.getLogger(__name__)

# ESC[NC moves the cursor N columns right; rendered as N spaces
_CURSOR_FORWARD_RE = re.compile(r"\x1b\[(\d+)C")

# Every other CSI, OSC and charset sequence is dropped
_ANSI_FULL_RE = re.compile(
    r"\x1b"
    r"(?:"
    r"\[[0-9;?]*[a-zA-Z]"      # CSI and private mode sequences: ESC [ ... letter
    r"|\][^\x07]*\x07"         # OSC sequences: ESC ] ... BEL
    r"|[()][0-9A-B]"           # Charset selection: ESC ( B
    r"|[=>]"                   # Keypad modes
    r")"
)

# Wide enough that `ls` and friends lay out columns without wrapping
PTY_DIMENSIONS = (50, 240)


def strip_ansi(text: str) -> str:
    """Strip ANSI escape codes, converting cursor-forward to spaces."""
    text = _CURSOR_FORWARD_RE.sub(lambda m: " " * int(m.group(1)), text)
    return _ANSI_FULL_RE.sub("", text)


def clean_output(text: str) -> str:
    """Turn raw PTY output into plain text with ``\\n`` line endings."""
    text = strip_ansi(text)
    return text.replace("\r\r\n", "\n").replace("\r\n", "\n")


@dataclass
class RunResult:
    """Outcome of one command execution."""

    command: str
    output: str = ""
    exit_code: int | None = None
    signal: int | None = None
    timed_out: bool = False
    error: str = ""

    @property
    def status(self) -> str:
        if self.error and self.exit_code is None and not self.timed_out:
            return "failed"
        if self.timed_out:
            return "timeout"
        if self.exit_code == 0:
            return "completed"
        return "error"


class CommandRunner:
    """Runs shell commands in a PTY managed by pexpect.

    Commands go through ``<shell> -c`` so users get variables, pipes and
    globbing. pexpect is blocking; :meth:`run` moves the work onto the
    default executor so the event loop keeps serving other chats.
    """

    def __init__(
        self,
        shell: str = "bash",
        timeout: int = 60,
        cwd: str = ".",
        env: dict[str, str] | None = None,
    ) -> None:
        """Initialize a runner without starting anything.

        Args:
            shell: Shell executable used to interpret commands.
            timeout: Seconds before a command is killed.
            cwd: Working directory for every command.
            env: Extra environment variables merged on top of the
                current environment. Tilde (~) in values is expanded.
        """
        self._shell = shell
        self._timeout = timeout
        self._cwd = str(Path(cwd).expanduser())
        self._env = self._build_env(env or {})

    @staticmethod
    def _build_env(extra: dict[str, str]) -> dict[str, str]:
        merged = os.environ.copy()
        for key, value in extra.items():
            merged[key] = str(Path(value).expanduser()) if "~" in value else value
        return merged

    def run_blocking(self, command: str) -> RunResult:
        """Run ``command`` to completion and capture its output."""
        result = RunResult(command=command)
        logger.debug("Spawning command=%r cwd=%s", command, self._cwd)
        try:
            child = pexpect.spawn(
                self._shell,
                ["-c", command],
                cwd=self._cwd,
                env=self._env,
                encoding="utf-8",
                codec_errors="replace",
                timeout=self._timeout,
                dimensions=PTY_DIMENSIONS,
            )
        except pexpect.ExceptionPexpect as exc:
            logger.warning("Failed to spawn %r: %s", command, exc)
            result.error = f"Failed to start command: {exc}"
            return result

        try:
            child.expect(pexpect.EOF)
        except pexpect.TIMEOUT:
            logger.info("Command timed out after %ds: %r", self._timeout, command)
            result.timed_out = True
            result.error = f"Command timed out after {self._timeout}s"
        raw = child.before or ""
        child.close(force=True)

        logger.log(TRACE, "Command output len=%d", len(raw))
        result.output = clean_output(raw)
        result.exit_code = child.exitstatus
        result.signal = child.signalstatus
        logger.debug(
            "Command finished exit=%s signal=%s", result.exit_code, result.signal
        )
        return result

    async def run(self, command: str) -> RunResult:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.run_blocking, command)
