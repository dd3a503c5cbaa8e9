"""ACP source: a transparent tee between an IDE and an ACP agent."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import stat
import sys
from collections.abc import Awaitable
from typing import BinaryIO, Final, Protocol, TypeVar

from pydantic import BaseModel, Field

from recall.core.errors import AgentExitError, AgentStartError, ConfigurationError
from recall.models.enums import Direction
from recall.sources.acp.session import SessionState, extract_session_id
from recall.sources.base import BaseSource, SourceStatus
from recall.sources.channel import MessageChannel

logger = logging.getLogger("recall.sources.acp")

T = TypeVar("T")

# A single ACP message may carry a whole file the agent read; the asyncio
# default of 64 KiB is far too small.
MAX_LINE_BYTES = 4 * 1024 * 1024

_HALTED: Final = object()


class LineReader(Protocol):
    """Anything with an ``asyncio.StreamReader``-style ``readline``."""

    async def readline(self) -> bytes: ...


class FileLineReader:
    """Reads lines from a blocking file object in a worker thread.

    The loop's pipe transports only accept pipes, sockets and character
    devices, so a regular file on stdin (``recall-proxy < session.jsonl``)
    is read through here instead.
    """

    def __init__(self, file: BinaryIO, limit: int = MAX_LINE_BYTES) -> None:
        self._file = file
        self._limit = limit

    async def readline(self) -> bytes:
        line = await asyncio.to_thread(self._file.readline, self._limit + 1)
        if len(line) > self._limit and not line.endswith(b"\n"):
            raise ValueError(f"line exceeds {self._limit} bytes")
        return line


class ACPSourceConfig(BaseModel):
    """Configuration for :class:`ACPSource`."""

    agent_args: list[str] = Field(default_factory=list)
    """Agent binary followed by its arguments, e.g. ``["claude", "--experimental-acp"]``."""

    max_line_bytes: int = Field(default=MAX_LINE_BYTES, gt=0)
    """Longest line accepted in either direction."""

    terminate_timeout: float = Field(default=5.0, gt=0)
    """Grace period between SIGTERM and SIGKILL when stopping the agent."""


class ACPSource(BaseSource):
    """Spawns an ACP agent and intercepts its stdio in both directions.

    The IDE and the agent see each other's bytes unmodified; every line is
    also captured as a :class:`~recall.models.message.Message`.

    Architecture:
        upstream reader:   stdin -> capture -> agent stdin
        downstream reader: agent stdout -> session check -> capture -> stdout

    The agent's stderr is inherited so its diagnostics stay visible in the
    IDE's console. Whichever reader finishes first sets a shared stop event
    so the other does not linger on a stream that may never end.

    Example:
        source = ACPSource(ACPSourceConfig(agent_args=["claude", "--experimental-acp"]))
        await Pipeline(transmitter).run(source, cancel)
    """

    def __init__(
        self,
        config: ACPSourceConfig,
        *,
        stdin: LineReader | None = None,
        stdout: BinaryIO | None = None,
    ) -> None:
        """Initialize the ACP source.

        Args:
            config: Agent command line and stream limits.
            stdin: Line source carrying the IDE's requests. Defaults to this
                process's standard input.
            stdout: Where the agent's output is forwarded. Defaults to this
                process's standard output.
        """
        super().__init__()
        self._config = config
        self._stdin = stdin
        self._stdout = stdout

    @property
    def name(self) -> str:
        return "acp"

    @property
    def config(self) -> ACPSourceConfig:
        return self._config

    async def run(self, out: MessageChannel, cancel: asyncio.Event) -> None:
        """Run the agent and intercept its traffic until either side stops."""
        self._set_status(SourceStatus.STARTING)
        proc: asyncio.subprocess.Process | None = None
        try:
            proc = await self._spawn()
            stdin = self._stdin
            if stdin is None:
                stdin = await _open_stdin(self._config.max_line_bytes)
        except BaseException as e:
            self._set_status(SourceStatus.ERROR, str(e))
            out.close()
            if proc is not None:
                await self._terminate(proc)
            raise

        self._set_status(SourceStatus.RUNNING)
        reaper = asyncio.create_task(self._terminate_on(cancel, proc), name="acp:reaper")
        try:
            try:
                await self._pump(proc, stdin, out, cancel)
            finally:
                out.close()
            returncode = await proc.wait()
        except BaseException:
            await self._terminate(proc)
            self._set_status(SourceStatus.ERROR, "interrupted")
            raise
        finally:
            reaper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reaper

        if returncode != 0 and not cancel.is_set():
            self._set_status(SourceStatus.ERROR, f"agent exited with status {returncode}")
            raise AgentExitError(returncode)
        logger.info("Agent exited with status %d", returncode)
        self._set_status(SourceStatus.STOPPED)

    async def _spawn(self) -> asyncio.subprocess.Process:
        if not self._config.agent_args:
            raise ConfigurationError("no agent command specified")
        binary, *args = self._config.agent_args
        try:
            proc = await asyncio.create_subprocess_exec(
                binary,
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=None,
                limit=self._config.max_line_bytes,
            )
        except OSError as e:
            raise AgentStartError(f"start agent {binary!r}: {e}") from e
        logger.info("Started agent %s (pid %d)", binary, proc.pid)
        return proc

    async def _pump(
        self,
        proc: asyncio.subprocess.Process,
        stdin: LineReader,
        out: MessageChannel,
        cancel: asyncio.Event,
    ) -> None:
        assert proc.stdin is not None and proc.stdout is not None
        session = SessionState()
        stop = asyncio.Event()
        readers = [
            asyncio.create_task(
                self._upstream(stdin, proc.stdin, out, session, stop, cancel),
                name="acp:upstream",
            ),
            asyncio.create_task(
                self._downstream(proc.stdout, out, session, stop, cancel),
                name="acp:downstream",
            ),
        ]
        # Each reader sets ``stop`` on exit, so waiting for both is bounded
        # by the first one to finish.
        try:
            await asyncio.wait(readers)
        finally:
            for task in readers:
                task.cancel()
            await asyncio.gather(*readers, return_exceptions=True)
        for task in readers:
            task.result()

    async def _upstream(
        self,
        reader: LineReader,
        agent_stdin: asyncio.StreamWriter,
        out: MessageChannel,
        session: SessionState,
        stop: asyncio.Event,
        cancel: asyncio.Event,
    ) -> None:
        """IDE -> proxy -> agent."""
        halted = asyncio.create_task(_first_set(stop, cancel))
        try:
            while not halted.done():
                line = await _unless(halted, reader.readline())
                if line is _HALTED or not line:
                    break
                raw = _decode(line)
                message = self._capture(raw, Direction.UPSTREAM, session.get())
                if await _unless(halted, out.send(message)) is _HALTED:
                    break
                # The agent must see the original bytes.
                agent_stdin.write(line)
                if await _unless(halted, agent_stdin.drain()) is _HALTED:
                    break
        except (OSError, ValueError) as e:
            logger.warning("Upstream stream error: %s", e)
        finally:
            stop.set()
            halted.cancel()
            agent_stdin.close()
            with contextlib.suppress(OSError):
                await agent_stdin.wait_closed()

    async def _downstream(
        self,
        reader: asyncio.StreamReader,
        out: MessageChannel,
        session: SessionState,
        stop: asyncio.Event,
        cancel: asyncio.Event,
    ) -> None:
        """Agent -> proxy -> IDE."""
        stdout = self._stdout if self._stdout is not None else sys.stdout.buffer
        halted = asyncio.create_task(_first_set(stop, cancel))
        cancelled = asyncio.create_task(_first_set(cancel))
        try:
            while not halted.done():
                line = await _unless(halted, reader.readline())
                if line is _HALTED or not line:
                    break
                raw = _decode(line)
                if (session_id := extract_session_id(raw)) is not None:
                    session.set(session_id)
                    logger.info("Session started: %s", session_id)
                message = self._capture(raw, Direction.DOWNSTREAM, session.get())
                if await _unless(halted, out.send(message)) is _HALTED:
                    break
                # The IDE must see the original bytes. A slow reader on our
                # stdout blocks the worker thread, not the loop. A captured
                # line is still forwarded after the other direction stops.
                forward = asyncio.to_thread(_write_line, stdout, line)
                if await _unless(cancelled, forward) is _HALTED:
                    break
        except (OSError, ValueError) as e:
            logger.warning("Downstream stream error: %s", e)
        finally:
            stop.set()
            halted.cancel()
            cancelled.cancel()

    async def _terminate_on(self, cancel: asyncio.Event, proc: asyncio.subprocess.Process) -> None:
        await cancel.wait()
        logger.info("Cancellation requested, stopping agent")
        await self._terminate(proc)

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        """SIGTERM the agent, escalating to SIGKILL after the grace period."""
        if proc.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            proc.terminate()
        try:
            await asyncio.wait_for(proc.wait(), self._config.terminate_timeout)
        except TimeoutError:
            logger.warning("Agent ignored SIGTERM, killing it")
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()


async def _open_stdin(limit: int) -> LineReader:
    """Wrap this process's standard input in a line reader.

    Pipes, sockets and terminals go through the loop's read-pipe transport;
    anything else (a redirected regular file) is read in a worker thread.
    """
    mode = os.fstat(sys.stdin.fileno()).st_mode
    if not (stat.S_ISFIFO(mode) or stat.S_ISSOCK(mode) or stat.S_ISCHR(mode)):
        return FileLineReader(sys.stdin.buffer, limit)
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=limit)
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin.buffer)
    return reader


async def _first_set(*events: asyncio.Event) -> None:
    """Return as soon as any of *events* is set."""
    waiters = [asyncio.ensure_future(e.wait()) for e in events]
    try:
        await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for w in waiters:
            w.cancel()


async def _unless(halted: asyncio.Task[None], aw: Awaitable[T]) -> T | object:
    """Await *aw*, abandoning it if *halted* finishes first.

    Returns ``_HALTED`` when abandoned. Exceptions from *aw* propagate.
    """
    task = asyncio.ensure_future(aw)
    try:
        await asyncio.wait({task, halted}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        if not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
    if task.cancelled():
        return _HALTED
    return task.result()


def _write_line(stdout: BinaryIO, line: bytes) -> None:
    stdout.write(line)
    stdout.flush()


def _decode(line: bytes) -> str:
    return line.rstrip(b"\r\n").decode("utf-8", errors="replace")
