"""Process supervision for running ffmpeg invocations."""

from vchan.process.supervisor import (
    ProcessLaunchError,
    ProcessSupervisor,
    TranscodeStream,
)

__all__ = [
    "ProcessLaunchError",
    "ProcessSupervisor",
    "TranscodeStream",
]
