"""Supervision of running ffmpeg processes.

Each channel stream is an independent OS process keyed by the caller
(typically the channel number). stdout is exposed as an async byte stream:
chunks are read only when the consumer asks for them, so a slow consumer
pauses ffmpeg through pipe backpressure instead of killing it.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator

from vchan.config.models import StreamingConfig
from vchan.core.subprocess_utils import format_command
from vchan.domain import ProcessDefinition

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024
DEFAULT_TERMINATE_TIMEOUT = 5.0


class ProcessLaunchError(Exception):
    """ffmpeg could not be started.

    Attributes:
        retryable: False when retrying cannot help (missing executable,
            permission denied); True for transient OS errors.
    """

    def __init__(self, message: str, retryable: bool) -> None:
        self.message = message
        self.retryable = retryable
        super().__init__(message)


class TranscodeStream:
    """A running ffmpeg process and its stdout byte stream."""

    def __init__(
        self,
        key: str,
        definition: ProcessDefinition,
        process: asyncio.subprocess.Process,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        terminate_timeout: float = DEFAULT_TERMINATE_TIMEOUT,
    ) -> None:
        self.key = key
        self.definition = definition
        self._process = process
        self._chunk_size = chunk_size
        self._terminate_timeout = terminate_timeout
        self._stderr_task: asyncio.Task[None] | None = None
        if process.stderr is not None:
            self._stderr_task = asyncio.create_task(self._drain_stderr())

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    @property
    def is_running(self) -> bool:
        return self._process.returncode is None

    async def iter_chunks(self) -> AsyncIterator[bytes]:
        """Yield stdout data until ffmpeg closes it.

        If the consuming task is cancelled, the process is terminated before
        the cancellation propagates.
        """
        stdout = self._process.stdout
        if stdout is None:
            raise RuntimeError(f"stdout of stream {self.key} is not piped")
        try:
            while True:
                chunk = await stdout.read(self._chunk_size)
                if not chunk:
                    break
                yield chunk
        except asyncio.CancelledError:
            logger.info("Stream %s cancelled; terminating ffmpeg", self.key)
            await self.terminate()
            raise

    async def wait(self) -> int:
        """Wait for the process to exit and return its exit code."""
        returncode = await self._process.wait()
        if self._stderr_task is not None:
            await self._stderr_task
        return returncode

    async def terminate(self) -> int | None:
        """Stop the process: SIGTERM, then SIGKILL after the timeout.

        Returns:
            Exit code, or None if the process could not be reaped.
        """
        if self._process.returncode is not None:
            return self._process.returncode

        try:
            self._process.terminate()
        except ProcessLookupError:
            pass

        try:
            returncode = await asyncio.wait_for(
                self._process.wait(), timeout=self._terminate_timeout
            )
        except TimeoutError:
            logger.warning(
                "ffmpeg for stream %s ignored SIGTERM after %.1fs; killing",
                self.key,
                self._terminate_timeout,
            )
            try:
                self._process.kill()
            except ProcessLookupError:
                pass
            returncode = await self._process.wait()

        logger.info(
            "Stopped stream %s",
            self.key,
            extra={"pid": self.pid, "returncode": returncode},
        )
        return returncode

    async def _drain_stderr(self) -> None:
        assert self._process.stderr is not None
        async for line in self._process.stderr:
            logger.debug(
                "ffmpeg[%s]: %s",
                self.key,
                line.decode("utf-8", errors="replace").rstrip(),
            )


class ProcessSupervisor:
    """Launches, tracks and stops one ffmpeg process per stream key.

    Launching a key that already has a running process stops the old one
    first. Stopping one key never touches another.

    Example:
        async with ProcessSupervisor() as supervisor:
            stream = await supervisor.launch("12", definition)
            async for chunk in stream.iter_chunks():
                await response.write(chunk)
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        terminate_timeout: float = DEFAULT_TERMINATE_TIMEOUT,
    ) -> None:
        self._chunk_size = chunk_size
        self._terminate_timeout = terminate_timeout
        self._streams: dict[str, TranscodeStream] = {}
        # Serializes launch/stop per key; other keys never wait on it
        self._key_locks: dict[str, asyncio.Lock] = {}

    @classmethod
    def from_config(cls, config: StreamingConfig) -> ProcessSupervisor:
        return cls(
            chunk_size=config.chunk_size, terminate_timeout=config.terminate_timeout
        )

    async def __aenter__(self) -> ProcessSupervisor:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop_all()

    @property
    def active_keys(self) -> list[str]:
        """Keys whose process is still running."""
        return [key for key, stream in self._streams.items() if stream.is_running]

    def get(self, key: str) -> TranscodeStream | None:
        stream = self._streams.get(key)
        if stream is not None and not stream.is_running:
            return None
        return stream

    async def launch(self, key: str, definition: ProcessDefinition) -> TranscodeStream:
        """Start ffmpeg for a stream key.

        Args:
            key: Stream identifier (e.g. channel number).
            definition: Invocation produced by FFmpegProcessBuilder.build().

        Returns:
            The running stream.

        Raises:
            ProcessLaunchError: If the process could not be started.
        """
        async with self._key_lock(key):
            existing = self._streams.pop(key, None)
            if existing is not None and existing.is_running:
                logger.info("Replacing running stream %s", key)
                await existing.terminate()

            stream = await self._spawn(key, definition)
            self._streams[key] = stream
            return stream

    async def stop(self, key: str) -> bool:
        """Terminate the process for key.

        Returns:
            True if a running process was stopped.
        """
        async with self._key_lock(key):
            stream = self._streams.pop(key, None)
            if stream is None or not stream.is_running:
                return False
            await stream.terminate()
            return True

    async def stop_all(self) -> None:
        streams = list(self._streams.values())
        self._streams.clear()
        await asyncio.gather(
            *(stream.terminate() for stream in streams if stream.is_running)
        )

    def _key_lock(self, key: str) -> asyncio.Lock:
        return self._key_locks.setdefault(key, asyncio.Lock())

    async def _spawn(self, key: str, definition: ProcessDefinition) -> TranscodeStream:
        env = None
        if definition.environment_additions:
            env = {**os.environ, **definition.environment_additions}

        try:
            process = await asyncio.create_subprocess_exec(  # nosec B603
                definition.executable_path,
                *definition.arguments,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE
                if definition.stdout_redirected
                else None,
                stderr=asyncio.subprocess.PIPE
                if definition.stderr_redirected
                else None,
                env=env,
            )
        except FileNotFoundError as e:
            raise ProcessLaunchError(
                f"ffmpeg not found: {definition.executable_path}", retryable=False
            ) from e
        except PermissionError as e:
            raise ProcessLaunchError(
                f"Permission denied launching {definition.executable_path}",
                retryable=False,
            ) from e
        except OSError as e:
            raise ProcessLaunchError(
                f"Failed to launch {definition.executable_path}: {e}", retryable=True
            ) from e

        logger.info(
            "Launched ffmpeg for stream %s",
            key,
            extra={"pid": process.pid, "arg_count": len(definition.arguments)},
        )
        logger.debug("Command line: %s", format_command(definition.command))
        return TranscodeStream(
            key,
            definition,
            process,
            chunk_size=self._chunk_size,
            terminate_timeout=self._terminate_timeout,
        )
