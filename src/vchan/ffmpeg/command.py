"""FFmpeg command construction for channel streams.

FFmpegProcessBuilder appends tokens strictly in call order. ffmpeg's grammar
makes that order meaningful: flags that describe how to read an input go
before its -i, output flags go after every input and the filter graph, and
-map follows -filter_complex. Callers (see vchan.ffmpeg.service) are
responsible for calling the methods in a valid order.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import timedelta
from pathlib import Path
from types import MappingProxyType

from vchan import APP_NAME
from vchan.core.datetime_utils import format_duration
from vchan.core.string_utils import escape_drawtext, wrap_text
from vchan.domain import (
    Channel,
    DisplaySize,
    HardwareAccelerationKind,
    PlaybackSettings,
    ProcessDefinition,
)
from vchan.ffmpeg import capabilities
from vchan.ffmpeg.filters import INPUT_AUDIO_PAD, INPUT_VIDEO_PAD, ComplexFilterBuilder

logger = logging.getLogger(__name__)

REPORT_FILE_TEMPLATE = "%p-%t.log"
REPORT_LEVEL = 32

CONCAT_PROTOCOL_WHITELIST = "file,http,tcp,https,tcp,tls"

# fontconfig family used when no font file is configured
DEFAULT_ERROR_FONT = "Sans"
ERROR_TEXT_LENGTH_THRESHOLD = 60


def _quote(value: str) -> str:
    return '"' + value.replace('"', '\\"') + '"'


class FFmpegProcessBuilder:
    """Accumulates the argument vector for one ffmpeg invocation.

    Every with_* method appends tokens and returns the builder, so calls can
    be chained. Filter stages (scaling, black bars, deinterlace, aligned
    audio) are collected by a nested ComplexFilterBuilder and emitted by
    with_composed_filter().

    Attributes:
        ffmpeg_path: Path to the ffmpeg executable.
        save_reports: Whether ffmpeg should write a run report.
        reports_dir: Directory for report files (required for save_reports).

    Raises:
        ValueError: From the constructor when save_reports is set without a
            reports_dir. That is a caller bug; FFmpegProcessService always
            resolves a directory first. No with_* method or build() raises.
    """

    def __init__(
        self,
        ffmpeg_path: str | Path,
        save_reports: bool = False,
        reports_dir: Path | None = None,
    ) -> None:
        if save_reports and reports_dir is None:
            raise ValueError("reports_dir is required when save_reports is enabled")
        self.ffmpeg_path = str(ffmpeg_path)
        self.save_reports = save_reports
        self.reports_dir = reports_dir
        self._arguments: list[str] = []
        self._complex_filter_builder = ComplexFilterBuilder()
        self._filter_mapped = False

    @property
    def arguments(self) -> tuple[str, ...]:
        """Arguments accumulated so far."""
        return tuple(self._arguments)

    # -------------------------------------------------------------------------
    # Input side
    # -------------------------------------------------------------------------

    def with_threads(self, threads: int) -> FFmpegProcessBuilder:
        self._arguments.extend(["-threads", str(threads)])
        return self

    def with_hardware_acceleration(
        self, kind: HardwareAccelerationKind
    ) -> FFmpegProcessBuilder:
        """Add device initialization flags and tell the composer the target.

        Must be called before any input is added.
        """
        self._arguments.extend(capabilities.get_hwaccel_args(kind))
        self._complex_filter_builder.with_hardware_acceleration(kind)
        return self

    def with_realtime_output(self, realtime_output: bool) -> FFmpegProcessBuilder:
        """Read input at native frame rate (required for live channel output)."""
        if realtime_output:
            self._arguments.append("-re")
        return self

    def with_seek(self, start: timedelta | None) -> FFmpegProcessBuilder:
        if start is not None:
            self._arguments.extend(["-ss", format_duration(start)])
        return self

    def with_infinite_loop(self) -> FFmpegProcessBuilder:
        self._arguments.extend(["-stream_loop", "-1"])
        return self

    def with_looped_image(self, input_path: str | Path) -> FFmpegProcessBuilder:
        self._arguments.extend(["-loop", "1"])
        return self.with_input(input_path)

    def with_libavfilter(self) -> FFmpegProcessBuilder:
        """Treat the next input as a lavfi source (e.g. "anullsrc")."""
        self._arguments.extend(["-f", "lavfi"])
        return self

    def with_input(self, input_path: str | Path) -> FFmpegProcessBuilder:
        self._arguments.extend(["-i", str(input_path)])
        return self

    def with_input_codec(
        self,
        input_path: str | Path,
        kind: HardwareAccelerationKind,
        codec: str | None,
    ) -> FFmpegProcessBuilder:
        """Add an input, selecting a named hardware decoder when one exists.

        Args:
            input_path: Media path or URL.
            kind: Hardware acceleration target.
            codec: Source video codec (forwarded to the filter composer).
        """
        decoder = capabilities.get_hardware_decoder(codec, kind)
        if decoder is not None:
            self._arguments.extend(["-c:v", decoder])
        else:
            logger.debug(
                "No hardware decoder for codec %s with %s", codec, kind.value
            )

        self._complex_filter_builder.with_input_codec(codec)
        return self.with_input(input_path)

    def with_concat(self, concat_playlist: str) -> FFmpegProcessBuilder:
        """Stream-copy the files listed in a concat playlist."""
        self._arguments.extend(
            [
                "-f", "concat",
                "-safe", "0",
                "-protocol_whitelist", CONCAT_PROTOCOL_WHITELIST,
                "-probesize", "32",
                "-i", concat_playlist,
                "-map", "0:v",
                "-map", "0:a",
                "-c", "copy",
                "-muxdelay", "0",
                "-muxpreload", "0",
            ]
        )  # fmt: skip
        return self

    # -------------------------------------------------------------------------
    # Filters
    # -------------------------------------------------------------------------

    def with_scaling(self, size: DisplaySize) -> FFmpegProcessBuilder:
        self._complex_filter_builder.with_scaling(size)
        return self

    def with_black_bars(self, size: DisplaySize) -> FFmpegProcessBuilder:
        self._complex_filter_builder.with_black_bars(size)
        return self

    def with_deinterlace(self, deinterlace: bool) -> FFmpegProcessBuilder:
        self._complex_filter_builder.with_deinterlace(deinterlace)
        return self

    def with_aligned_audio(
        self, audio_duration: timedelta | None
    ) -> FFmpegProcessBuilder:
        self._complex_filter_builder.with_aligned_audio(audio_duration)
        return self

    def with_composed_filter(self) -> FFmpegProcessBuilder:
        """Emit the composed filter graph (if any) and the two -map tokens.

        Call once, after all inputs. Further calls add nothing.
        """
        if self._filter_mapped:
            logger.debug("Filter graph already mapped; skipping")
            return self
        self._filter_mapped = True

        video_label = INPUT_VIDEO_PAD
        audio_label = INPUT_AUDIO_PAD

        result = self._complex_filter_builder.build()
        if result is not None:
            self._arguments.extend(["-filter_complex", result.graph_expression])
            video_label = result.video_pad_label
            audio_label = result.audio_pad_label

        self._arguments.extend(["-map", video_label, "-map", audio_label])
        return self

    def with_filter_complex(
        self, graph: str, video_label: str, audio_label: str
    ) -> FFmpegProcessBuilder:
        """Emit an explicit filter graph with its own output mapping."""
        self._arguments.extend(
            ["-filter_complex", graph, "-map", video_label, "-map", audio_label]
        )
        return self

    def with_video_filter(self, graph: str) -> FFmpegProcessBuilder:
        self._arguments.extend(["-vf", graph])
        return self

    def with_error_text(
        self,
        resolution: DisplaySize,
        text: str,
        font_file: Path | None = None,
    ) -> FFmpegProcessBuilder:
        """Render text centered over input 0, with audio taken from input 1.

        Font size drops from 60 to 40 for messages longer than 60 characters,
        and the text is word-wrapped to the frame width. Without font_file,
        fontconfig picks the DEFAULT_ERROR_FONT family.
        """
        font_size = 40 if len(text) > ERROR_TEXT_LENGTH_THRESHOLD else 60
        # Rough glyph width of a sans font: a little over half the font size
        chars_per_line = int(resolution.width * 0.9 / (font_size * 0.55))
        display_text = escape_drawtext(wrap_text(text, chars_per_line))
        font = (
            f"fontfile='{font_file}'"
            if font_file is not None
            else f"font={DEFAULT_ERROR_FONT}"
        )

        drawtext = ":".join(
            [
                f"drawtext={font}",
                f"fontsize={font_size}",
                "fontcolor=white",
                "expansion=none",
                "x=(w-text_w)/2",
                "y=(h-text_h)/3*2",
                f"text='{display_text}'",
            ]
        )
        graph = (
            f"[0:0]scale={resolution.width}:{resolution.height},{drawtext}[v]"
        )
        return self.with_filter_complex(graph, "[v]", "1:a")

    # -------------------------------------------------------------------------
    # Output side
    # -------------------------------------------------------------------------

    def with_pixfmt(self, pixfmt: str) -> FFmpegProcessBuilder:
        self._arguments.extend(["-pix_fmt", pixfmt])
        return self

    def with_playback_args(
        self, playback_settings: PlaybackSettings
    ) -> FFmpegProcessBuilder:
        """Add codec, rate control and muxing flags.

        Closed GOPs and a huge scene-change threshold keep keyframes at
        regular, predictable positions for downstream segmenting.
        """
        settings = playback_settings
        arguments = [
            "-c:v", settings.video_codec,
            "-flags", "cgop",
            "-sc_threshold", "1000000000",
        ]  # fmt: skip

        if settings.video_bitrate_kbps is not None:
            bitrate = f"{settings.video_bitrate_kbps}k"
            arguments.extend(["-b:v", bitrate, "-maxrate:v", bitrate])

        if settings.video_buffer_size_kbps is not None:
            arguments.extend(["-bufsize:v", f"{settings.video_buffer_size_kbps}k"])

        if settings.audio_bitrate_kbps is not None:
            bitrate = f"{settings.audio_bitrate_kbps}k"
            arguments.extend(["-b:a", bitrate, "-maxrate:a", bitrate])

        if settings.audio_buffer_size_kbps is not None:
            arguments.extend(["-bufsize:a", f"{settings.audio_buffer_size_kbps}k"])

        if settings.audio_channels is not None:
            arguments.extend(["-ac", str(settings.audio_channels)])

        if settings.audio_sample_rate_khz is not None:
            arguments.extend(["-ar", f"{settings.audio_sample_rate_khz}k"])

        arguments.extend(
            [
                "-c:a", settings.audio_codec,
                "-map_metadata", "-1",
                "-movflags", "+faststart",
                "-muxdelay", "0",
                "-muxpreload", "0",
            ]
        )  # fmt: skip

        self._arguments.extend(arguments)
        return self

    def with_metadata(self, channel: Channel) -> FFmpegProcessBuilder:
        self._arguments.extend(
            [
                "-metadata",
                f"service_provider={_quote(APP_NAME)}",
                "-metadata",
                f"service_name={_quote(channel.name)}",
            ]
        )
        return self

    def with_format_flags(self, format_flags: Iterable[str]) -> FFmpegProcessBuilder:
        self._arguments.extend(["-fflags", "".join(format_flags)])
        return self

    def with_duration(self, duration: timedelta) -> FFmpegProcessBuilder:
        self._arguments.extend(["-t", format_duration(duration)])
        return self

    def with_format(self, output_format: str) -> FFmpegProcessBuilder:
        self._arguments.extend(["-f", output_format])
        return self

    def with_pipe(self) -> FFmpegProcessBuilder:
        """Write the output to stdout."""
        self._arguments.append("pipe:1")
        return self

    def with_quiet(self) -> FFmpegProcessBuilder:
        self._arguments.extend(["-hide_banner", "-loglevel", "error", "-nostats"])
        return self

    # -------------------------------------------------------------------------
    # Finalization
    # -------------------------------------------------------------------------

    def build(self) -> ProcessDefinition:
        """Produce the immutable process definition.

        stdout is piped for streaming; stderr is left on the host's error
        stream so ffmpeg diagnostics surface in service logs. When reports
        are enabled, FFREPORT names a per-process, per-run file so concurrent
        channel transcodes never collide.
        """
        environment: dict[str, str] = {}
        if self.save_reports:
            assert self.reports_dir is not None
            report_file = Path(self.reports_dir) / REPORT_FILE_TEMPLATE
            environment["FFREPORT"] = f"file={report_file}:level={REPORT_LEVEL}"

        definition = ProcessDefinition(
            executable_path=self.ffmpeg_path,
            arguments=tuple(self._arguments),
            environment_additions=MappingProxyType(environment),
            stdout_redirected=True,
            stderr_redirected=False,
        )
        logger.debug(
            "Built ffmpeg command: %s",
            " ".join(definition.command),
            extra={"arg_count": len(definition.arguments)},
        )
        return definition
