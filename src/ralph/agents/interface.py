"""Common plumbing for agent CLIs.

A provider only knows how to build its argv. Spawning the process, echoing
its stdout line by line and spotting the completion marker is shared here.
"""

import asyncio
import logging
import os
import shutil
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

logger = logging.getLogger(__name__)

COMPLETION_SIGNAL = "<promise>COMPLETE</promise>"

# stream-json events can be long single lines
STREAM_LINE_LIMIT = 16 * 1024 * 1024


class RunMode(str, Enum):
    """How the provider is driven.

    ``ONCE`` is the human-in-the-loop mode; ``LOOP`` runs unattended and
    uses the provider's more conservative auto-approval flags.
    """

    ONCE = "once"
    LOOP = "loop"


class SessionStatus(str, Enum):
    """How an agent process ended."""

    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"


@dataclass
class SessionConfig:
    """What to run, where, and for how long."""

    working_dir: Path
    prompt: str
    mode: RunMode = RunMode.ONCE
    # None waits for the provider however long it takes
    timeout_seconds: float | None = None
    env_vars: dict[str, str] = field(default_factory=dict)
    extra_args: list[str] = field(default_factory=list)
    completion_signal: str = COMPLETION_SIGNAL


@dataclass
class SessionResult:
    status: SessionStatus
    output: str
    error: str | None = None
    exit_code: int | None = None
    duration_seconds: float | None = None
    has_completion_signal: bool = False

    @property
    def success(self) -> bool:
        return self.status == SessionStatus.COMPLETED


class ProviderInterface(ABC):
    """An agent CLI that takes a prompt on its command line."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Name used on the command line (``--provider``)."""
        ...

    @property
    @abstractmethod
    def command(self) -> str:
        """Executable looked up on PATH."""
        ...

    @abstractmethod
    def build_command(self, prompt: str, mode: RunMode) -> list[str]:
        """Full argv for a non-interactive run with ``prompt``."""
        ...

    def is_available(self) -> bool:
        return shutil.which(self.command) is not None

    def check_installation(self) -> tuple[bool, str]:
        """Return ``(found, message)`` for the provider executable."""
        if not self.is_available():
            return False, f"{self.command} not found. Please install it first."
        return True, f"Found {self.command} on PATH"

    async def start_session(self, config: SessionConfig) -> "AgentProcess":
        """Spawn the provider for ``config``; stdout and stderr are piped."""
        argv = self.build_command(config.prompt, config.mode) + list(config.extra_args)

        logger.info(f"Starting {self.name} in {config.working_dir}")
        process = await asyncio.create_subprocess_exec(
            *argv,
            cwd=config.working_dir,
            env={**os.environ, **config.env_vars},
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=STREAM_LINE_LIMIT,
        )
        return AgentProcess(process, config, self.name)


class AgentProcess:
    """A running provider process and the output read from it so far."""

    def __init__(self, process: asyncio.subprocess.Process, config: SessionConfig, provider_name: str):
        self.process = process
        self.config = config
        self.provider_name = provider_name
        self.lines: list[str] = []
        self.signal_seen = False
        self._started = time.monotonic()

    async def _pump_stdout(self, on_line: Callable[[str], None] | None) -> None:
        if self.process.stdout is None:
            return
        async for raw in self.process.stdout:
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            self.lines.append(line)
            if not self.signal_seen and self.config.completion_signal in line:
                self.signal_seen = True
                logger.info(f"{self.provider_name} reported completion")
            if on_line:
                on_line(line)

    async def wait(self, on_line: Callable[[str], None] | None = None) -> SessionResult:
        """Echo stdout through ``on_line`` until the process exits.

        stderr is drained concurrently so a chatty provider cannot block on a
        full pipe. The process is killed on cancellation, or once
        ``config.timeout_seconds`` elapses when a limit is set.
        """
        stderr_task = asyncio.create_task(self._read_stderr())

        async def run() -> int:
            await self._pump_stdout(on_line)
            return await self.process.wait()

        try:
            returncode = await asyncio.wait_for(run(), timeout=self.config.timeout_seconds)
        except TimeoutError:
            logger.warning(f"{self.provider_name} timed out after {self.config.timeout_seconds}s")
            await self._kill()
            status = SessionStatus.TIMEOUT
        except asyncio.CancelledError:
            await self._kill()
            stderr_task.cancel()
            raise
        else:
            status = SessionStatus.COMPLETED if returncode == 0 else SessionStatus.FAILED

        stderr = (await stderr_task).decode("utf-8", errors="replace").strip()
        return SessionResult(
            status=status,
            output="\n".join(self.lines),
            error=stderr or None,
            exit_code=self.process.returncode,
            duration_seconds=time.monotonic() - self._started,
            has_completion_signal=self.signal_seen,
        )

    async def _read_stderr(self) -> bytes:
        if self.process.stderr is None:
            return b""
        return await self.process.stderr.read()

    async def _kill(self) -> None:
        if self.process.returncode is None:
            self.process.kill()
        await self.process.wait()
