"""High-level ffmpeg invocations for channel streams.

FFmpegProcessService drives FFmpegProcessBuilder for the three kinds of
stream a channel serves:

- a playout item, transcoded per the channel's profile
- a concat playlist, stream-copied
- an error slide, a still image with the error message drawn on it

Failures while building are reported as ProcessResult values rather than
exceptions so the caller can always fall back to an error slide.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path

from vchan.config.loader import get_reports_dir
from vchan.config.models import VChanConfig
from vchan.domain import Channel, MediaVersion, ProcessDefinition
from vchan.ffmpeg.command import FFmpegProcessBuilder
from vchan.ffmpeg.playback import (
    COMMON_FORMAT_FLAGS,
    calculate_error_settings,
    calculate_settings,
)
from vchan.logging.context import channel_context
from vchan.process.supervisor import (
    ProcessLaunchError,
    ProcessSupervisor,
    TranscodeStream,
)
from vchan.tools.detection import require_ffmpeg

logger = logging.getLogger(__name__)

OUTPUT_FORMAT = "mpegts"
ERROR_PIXEL_FORMAT = "yuv420p"
SILENT_AUDIO_SOURCE = "anullsrc"


class ProcessErrorKind(Enum):
    """Why a process definition could not be produced."""

    MEDIA_INACCESSIBLE = "media_inaccessible"
    COMPOSITION_FAILED = "composition_failed"


@dataclass(frozen=True)
class ProcessResult:
    """Result of preparing an ffmpeg invocation."""

    success: bool
    definition: ProcessDefinition | None = None
    error_message: str | None = None
    error_kind: ProcessErrorKind | None = None

    @classmethod
    def ok(cls, definition: ProcessDefinition) -> ProcessResult:
        return cls(success=True, definition=definition)

    @classmethod
    def failure(cls, kind: ProcessErrorKind, message: str) -> ProcessResult:
        return cls(success=False, error_message=message, error_kind=kind)


def _is_accessible(path: str | Path) -> bool:
    candidate = Path(path)
    return candidate.is_file() and os.access(candidate, os.R_OK)


class FFmpegProcessService:
    """Produces ProcessDefinitions for a channel and launches them.

    Args:
        config: Loaded vchan configuration.
        ffmpeg_path: Explicit ffmpeg path; looked up via config and PATH
            when omitted.

    Raises:
        RuntimeError: If no ffmpeg path is given and none can be found.
    """

    def __init__(
        self, config: VChanConfig, ffmpeg_path: str | Path | None = None
    ) -> None:
        self.config = config
        self.ffmpeg_path = (
            Path(ffmpeg_path) if ffmpeg_path is not None else require_ffmpeg(config)
        )

    def _new_builder(self) -> FFmpegProcessBuilder:
        save_reports = self.config.ffmpeg.save_reports
        return FFmpegProcessBuilder(
            self.ffmpeg_path,
            save_reports=save_reports,
            reports_dir=get_reports_dir(self.config) if save_reports else None,
        )

    def for_playout_item(
        self,
        channel: Channel,
        version: MediaVersion,
        path: str | Path,
        start: datetime,
        now: datetime,
    ) -> ProcessResult:
        """Transcode one scheduled item, seeking in when joined late."""
        if not _is_accessible(path):
            message = f"Media file is not accessible: {path}"
            logger.warning(
                "Media file is not accessible: %s",
                path,
                extra={"channel": channel.number},
            )
            return ProcessResult.failure(ProcessErrorKind.MEDIA_INACCESSIBLE, message)

        try:
            plan = calculate_settings(channel.ffmpeg_profile, version, start, now)

            builder = (
                self._new_builder()
                .with_threads(plan.thread_count)
                .with_hardware_acceleration(plan.hardware_acceleration)
                .with_quiet()
                .with_format_flags(plan.format_flags)
                .with_realtime_output(plan.realtime_output)
                .with_seek(plan.stream_seek)
                .with_input_codec(
                    path, plan.hardware_acceleration, version.video_codec
                )
            )

            if plan.scaled_size is not None:
                builder.with_scaling(plan.scaled_size)
            if plan.deinterlace:
                builder.with_deinterlace(True)
            if plan.pad_to_desired_resolution:
                builder.with_black_bars(channel.ffmpeg_profile.resolution)
            if plan.audio_duration is not None:
                builder.with_aligned_audio(plan.audio_duration)

            definition = (
                builder.with_composed_filter()
                .with_playback_args(plan.playback)
                .with_metadata(channel)
                .with_format(OUTPUT_FORMAT)
                .with_pipe()
                .build()
            )
        except Exception as e:
            logger.exception(
                "Failed to compose ffmpeg command for channel %s", channel.number
            )
            return ProcessResult.failure(ProcessErrorKind.COMPOSITION_FAILED, str(e))

        return ProcessResult.ok(definition)

    def for_concat(self, channel: Channel, playlist_url: str) -> ProcessResult:
        """Stream-copy a channel's concat playlist indefinitely."""
        try:
            definition = (
                self._new_builder()
                .with_threads(1)
                .with_quiet()
                .with_format_flags(COMMON_FORMAT_FLAGS)
                .with_realtime_output(True)
                .with_infinite_loop()
                .with_concat(playlist_url)
                .with_metadata(channel)
                .with_format(OUTPUT_FORMAT)
                .with_pipe()
                .build()
            )
        except Exception as e:
            logger.exception(
                "Failed to compose concat command for channel %s", channel.number
            )
            return ProcessResult.failure(ProcessErrorKind.COMPOSITION_FAILED, str(e))

        return ProcessResult.ok(definition)

    def for_error(
        self, channel: Channel, duration: timedelta | None, message: str
    ) -> ProcessResult:
        """Render message over the error background with silent audio.

        Without a configured background image, a black frame of the
        profile's resolution is generated instead.
        """
        profile = channel.ffmpeg_profile
        resolution = profile.resolution
        try:
            builder = (
                self._new_builder()
                .with_threads(1)
                .with_quiet()
                .with_format_flags(COMMON_FORMAT_FLAGS)
                .with_realtime_output(True)
            )

            background = self.config.ffmpeg.error_background
            if background is not None:
                builder.with_looped_image(background)
            else:
                builder.with_libavfilter().with_input(
                    f"color=c=black:s={resolution}"
                )

            builder = (
                builder.with_libavfilter()
                .with_input(SILENT_AUDIO_SOURCE)
                .with_error_text(resolution, message, self.config.ffmpeg.error_font)
                .with_pixfmt(ERROR_PIXEL_FORMAT)
                .with_playback_args(calculate_error_settings(profile))
                .with_metadata(channel)
                .with_format(OUTPUT_FORMAT)
            )
            if duration is not None:
                builder.with_duration(duration)
            definition = builder.with_pipe().build()
        except Exception as e:
            logger.exception(
                "Failed to compose error slide for channel %s", channel.number
            )
            return ProcessResult.failure(ProcessErrorKind.COMPOSITION_FAILED, str(e))

        return ProcessResult.ok(definition)

    async def start_stream(
        self,
        supervisor: ProcessSupervisor,
        key: str,
        result: ProcessResult,
        channel: Channel,
    ) -> TranscodeStream:
        """Launch result's definition, falling back to an error slide.

        A failed result or a retryable/fatal launch error both end in an
        error slide describing the problem. If the error slide itself cannot
        be produced or launched, the error propagates.

        Raises:
            ProcessLaunchError: If even the error slide cannot be started.
            RuntimeError: If the error slide cannot be composed.
        """
        with channel_context(channel.number, channel.name):
            if result.success and result.definition is not None:
                try:
                    return await supervisor.launch(key, result.definition)
                except ProcessLaunchError as e:
                    logger.warning(
                        "Failed to start stream %s (retryable=%s): %s",
                        key,
                        e.retryable,
                        e.message,
                    )
                    message = e.message
            else:
                message = result.error_message or "Unknown error"

            error_result = self.for_error(
                channel,
                timedelta(seconds=self.config.streaming.error_duration),
                message,
            )
            if not error_result.success or error_result.definition is None:
                raise RuntimeError(
                    f"Could not compose error slide: {error_result.error_message}"
                )

            logger.info("Serving error slide on stream %s: %s", key, message)
            return await supervisor.launch(key, error_result.definition)
