"""Tests for process/supervisor.py using real child processes.

The children are small Python scripts standing in for ffmpeg: they write to
stdout, ignore or honor SIGTERM, and exit with known codes.
"""

from __future__ import annotations

import asyncio
import signal
import sys
from pathlib import Path
from types import MappingProxyType

import pytest
import pytest_asyncio

from vchan.config.models import StreamingConfig
from vchan.domain import ProcessDefinition
from vchan.process.supervisor import ProcessLaunchError, ProcessSupervisor

pytestmark = pytest.mark.skipif(
    sys.platform == "win32", reason="POSIX signal semantics required"
)

EMIT_AND_EXIT = "import sys; sys.stdout.buffer.write(b'x' * 200000); sys.exit(0)"
RUN_FOREVER = (
    "import sys, time\n"
    "sys.stdout.write('ready\\n'); sys.stdout.flush()\n"
    "while True: time.sleep(0.1)\n"
)
IGNORE_SIGTERM = (
    "import signal, sys, time\n"
    "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
    "sys.stdout.write('ready\\n'); sys.stdout.flush()\n"
    "while True: time.sleep(0.1)\n"
)
ENDLESS_OUTPUT = (
    "import sys\n"
    "chunk = b'y' * 65536\n"
    "while True: sys.stdout.buffer.write(chunk)\n"
)


def _python(script: str, **kwargs) -> ProcessDefinition:
    return ProcessDefinition(sys.executable, ("-c", script), **kwargs)


@pytest_asyncio.fixture
async def supervisor():
    """Supervisor that stops everything it launched."""
    async with ProcessSupervisor(chunk_size=4096, terminate_timeout=1.0) as sup:
        yield sup


async def _read_line(stream) -> bytes:
    async for chunk in stream.iter_chunks():
        return chunk
    return b""


class TestLaunch:
    """Tests for launching and reading streams."""

    @pytest.mark.asyncio
    async def test_reads_all_output(self, supervisor: ProcessSupervisor) -> None:
        stream = await supervisor.launch("1", _python(EMIT_AND_EXIT))

        data = b"".join([chunk async for chunk in stream.iter_chunks()])

        assert data == b"x" * 200000
        assert await stream.wait() == 0

    @pytest.mark.asyncio
    async def test_chunks_respect_chunk_size(
        self, supervisor: ProcessSupervisor
    ) -> None:
        stream = await supervisor.launch("1", _python(EMIT_AND_EXIT))

        sizes = [len(chunk) async for chunk in stream.iter_chunks()]

        assert max(sizes) <= 4096

    @pytest.mark.asyncio
    async def test_environment_additions_passed(
        self, supervisor: ProcessSupervisor
    ) -> None:
        definition = _python(
            "import os, sys; sys.stdout.write(os.environ['FFREPORT'])",
            environment_additions=MappingProxyType({"FFREPORT": "file=x.log"}),
        )
        stream = await supervisor.launch("1", definition)

        data = b"".join([chunk async for chunk in stream.iter_chunks()])

        assert data == b"file=x.log"

    @pytest.mark.asyncio
    async def test_stderr_drained_when_redirected(
        self, supervisor: ProcessSupervisor
    ) -> None:
        definition = _python(
            "import sys; sys.stderr.write('warning\\n' * 1000); print('done')",
            stderr_redirected=True,
        )
        stream = await supervisor.launch("1", definition)

        data = b"".join([chunk async for chunk in stream.iter_chunks()])

        assert data.strip() == b"done"
        assert await stream.wait() == 0


class TestLaunchErrors:
    """Launch failures are classified by retryability."""

    @pytest.mark.asyncio
    async def test_missing_executable_not_retryable(
        self, supervisor: ProcessSupervisor, tmp_path: Path
    ) -> None:
        definition = ProcessDefinition(str(tmp_path / "no-ffmpeg"), ())

        with pytest.raises(ProcessLaunchError) as exc_info:
            await supervisor.launch("1", definition)

        assert exc_info.value.retryable is False
        assert supervisor.get("1") is None

    @pytest.mark.asyncio
    async def test_permission_denied_not_retryable(
        self, supervisor: ProcessSupervisor, tmp_path: Path
    ) -> None:
        not_executable = tmp_path / "ffmpeg"
        not_executable.write_text("#!/bin/sh\n")
        not_executable.chmod(0o644)

        with pytest.raises(ProcessLaunchError) as exc_info:
            await supervisor.launch("1", ProcessDefinition(str(not_executable), ()))

        assert exc_info.value.retryable is False


class TestTermination:
    """Tests for stopping processes."""

    @pytest.mark.asyncio
    async def test_stop_terminates_process(self, supervisor: ProcessSupervisor) -> None:
        stream = await supervisor.launch("1", _python(RUN_FOREVER))
        assert await _read_line(stream) == b"ready\n"

        assert await supervisor.stop("1") is True

        assert not stream.is_running
        assert stream.returncode == -signal.SIGTERM
        assert supervisor.active_keys == []

    @pytest.mark.asyncio
    async def test_stop_unknown_key(self, supervisor: ProcessSupervisor) -> None:
        assert await supervisor.stop("missing") is False

    @pytest.mark.asyncio
    async def test_kill_after_timeout(self, supervisor: ProcessSupervisor) -> None:
        stream = await supervisor.launch("1", _python(IGNORE_SIGTERM))
        assert await _read_line(stream) == b"ready\n"

        returncode = await stream.terminate()

        assert returncode == -signal.SIGKILL

    @pytest.mark.asyncio
    async def test_streams_are_independent(
        self, supervisor: ProcessSupervisor
    ) -> None:
        first = await supervisor.launch("1", _python(RUN_FOREVER))
        second = await supervisor.launch("2", _python(RUN_FOREVER))
        await _read_line(first)
        await _read_line(second)

        await supervisor.stop("1")

        assert not first.is_running
        assert second.is_running
        assert supervisor.active_keys == ["2"]

    @pytest.mark.asyncio
    async def test_relaunch_replaces_previous(
        self, supervisor: ProcessSupervisor
    ) -> None:
        first = await supervisor.launch("1", _python(RUN_FOREVER))
        await _read_line(first)

        second = await supervisor.launch("1", _python(RUN_FOREVER))

        assert not first.is_running
        assert second.is_running
        assert supervisor.get("1") is second

    @pytest.mark.asyncio
    async def test_slow_relaunch_does_not_block_other_keys(self) -> None:
        """Replacing a stuck process only delays its own key."""
        async with ProcessSupervisor(terminate_timeout=3.0) as supervisor:
            stuck = await supervisor.launch("1", _python(IGNORE_SIGTERM))
            assert await _read_line(stuck) == b"ready\n"

            relaunch = asyncio.create_task(
                supervisor.launch("1", _python(RUN_FOREVER))
            )
            await asyncio.sleep(0.2)

            loop = asyncio.get_running_loop()
            started = loop.time()
            other = await supervisor.launch("2", _python(RUN_FOREVER))
            elapsed = loop.time() - started

            assert elapsed < 1.0
            assert other.is_running
            assert not relaunch.done()

            replacement = await relaunch
            assert stuck.returncode == -signal.SIGKILL
            assert supervisor.get("1") is replacement

    @pytest.mark.asyncio
    async def test_stop_all(self) -> None:
        supervisor = ProcessSupervisor(terminate_timeout=1.0)
        streams = [
            await supervisor.launch(str(n), _python(RUN_FOREVER)) for n in range(3)
        ]

        await supervisor.stop_all()

        assert all(not stream.is_running for stream in streams)
        assert supervisor.active_keys == []


class TestBackpressure:
    """A slow consumer pauses ffmpeg instead of stopping it."""

    @pytest.mark.asyncio
    async def test_unread_output_keeps_process_alive(
        self, supervisor: ProcessSupervisor
    ) -> None:
        stream = await supervisor.launch("1", _python(ENDLESS_OUTPUT))
        chunks = stream.iter_chunks()
        await chunks.__anext__()

        # Pipe fills and the writer blocks; it must not be killed
        await asyncio.sleep(0.5)
        assert stream.is_running

        chunk = await chunks.__anext__()
        assert chunk
        await chunks.aclose()

    @pytest.mark.asyncio
    async def test_cancelled_consumer_terminates_process(
        self, supervisor: ProcessSupervisor
    ) -> None:
        stream = await supervisor.launch("1", _python(RUN_FOREVER))
        started = asyncio.Event()

        async def consume() -> None:
            async for _ in stream.iter_chunks():
                started.set()

        task = asyncio.create_task(consume())
        await asyncio.wait_for(started.wait(), timeout=5)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert not stream.is_running


class TestFromConfig:
    """Tests for ProcessSupervisor.from_config."""

    @pytest.mark.asyncio
    async def test_uses_streaming_settings(self) -> None:
        supervisor = ProcessSupervisor.from_config(
            StreamingConfig(chunk_size=1024, terminate_timeout=1.0)
        )
        async with supervisor:
            stream = await supervisor.launch("1", _python(EMIT_AND_EXIT))
            chunks = [chunk async for chunk in stream.iter_chunks()]

        assert sum(len(chunk) for chunk in chunks) == 200_000
        assert max(len(chunk) for chunk in chunks) <= 1024
