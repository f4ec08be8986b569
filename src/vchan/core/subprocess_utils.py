"""Short-lived subprocess calls used to probe ffmpeg.

Long-running transcodes go through vchan.process.supervisor; this module
only covers quick queries such as ``ffmpeg -hwaccels`` whose whole output
is read at once.
"""

from __future__ import annotations

import logging
import shlex
import subprocess  # nosec B404 - subprocess is required for ffmpeg probing
import time
from collections.abc import Mapping, Sequence
from pathlib import Path

logger = logging.getLogger(__name__)


def format_command(args: Sequence[str | Path], limit: int | None = None) -> str:
    """Render args as a shell-quoted string for log messages.

    With ``limit`` set, only the first ``limit`` arguments are shown.
    """
    parts = [str(arg) for arg in args]
    if limit is not None and len(parts) > limit:
        return shlex.join(parts[:limit]) + " ..."
    return shlex.join(parts)


def run_command(
    args: Sequence[str | Path],
    timeout: int = 30,
    env: Mapping[str, str] | None = None,
) -> tuple[str, str, int]:
    """Run a probe command to completion and capture its output.

    Output is decoded as text; undecodable bytes are replaced.

    Returns:
        Tuple of (stdout, stderr, returncode).

    Raises:
        subprocess.TimeoutExpired: If the command outlives ``timeout``. The
            child has already been killed when this is raised.
        OSError: If the executable cannot be started.
    """
    argv = [str(arg) for arg in args]
    tool = Path(argv[0]).name if argv else "unknown"
    logger.debug("Running %s", format_command(argv), extra={"command": tool})

    started = time.monotonic()
    try:
        completed = subprocess.run(  # nosec B603 - argv list, no shell
            argv,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
            env=dict(env) if env is not None else None,
        )
    except subprocess.TimeoutExpired:
        logger.warning(
            "%s did not finish within %ds: %s",
            tool,
            timeout,
            format_command(argv, limit=3),
            extra={"command": tool, "timeout_seconds": timeout},
        )
        raise

    logger.debug(
        "%s exited with %d",
        tool,
        completed.returncode,
        extra={
            "command": tool,
            "elapsed_seconds": round(time.monotonic() - started, 3),
        },
    )
    return completed.stdout or "", completed.stderr or "", completed.returncode
