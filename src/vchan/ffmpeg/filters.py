"""Filter graph composition for -filter_complex.

ComplexFilterBuilder collects optional stages in any order and, on build(),
chains them in a fixed canonical order:

    deinterlace -> scale -> letterbox -> hardware upload/download -> audio

Hardware bracketing is decided at build time from the acceleration target
and input codec, so those may be set before or after the stages.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import IntEnum

from vchan.core.datetime_utils import total_milliseconds
from vchan.domain import ComplexFilterResult, DisplaySize, HardwareAccelerationKind
from vchan.ffmpeg import capabilities

logger = logging.getLogger(__name__)

INPUT_VIDEO_PAD = "0:V"
INPUT_AUDIO_PAD = "0:a"
VIDEO_OUTPUT_LABEL = "[v]"
AUDIO_OUTPUT_LABEL = "[a]"


class StageKind(IntEnum):
    """Filter stage kinds; values give the canonical chain position."""

    DEINTERLACE = 1
    SCALE = 2
    PAD = 3
    ALIGN_AUDIO = 4


@dataclass(frozen=True)
class FilterStage:
    """A registered filter stage."""

    kind: StageKind
    size: DisplaySize | None = None
    duration: timedelta | None = None


class ComplexFilterBuilder:
    """Accumulates filter stages and composes them into one filter graph.

    The builder lives for a single ffmpeg invocation. build() caches its
    result; changes made afterwards are logged and ignored.

    Example:
        >>> builder = ComplexFilterBuilder().with_scaling(DisplaySize(1280, 720))
        >>> builder.build().graph_expression
        '[0:V]scale=1280:720:flags=fast_bilinear,setsar=1[v]'
        >>> builder.build().audio_pad_label
        '0:a'
    """

    def __init__(self) -> None:
        self._hardware_acceleration = HardwareAccelerationKind.NONE
        self._input_codec: str | None = None
        self._stages: list[FilterStage] = []
        self._built = False
        self._result: ComplexFilterResult | None = None

    def _is_frozen(self, change: str) -> bool:
        if self._built:
            logger.warning("Ignoring %s: filter graph already built", change)
        return self._built

    def _set_stage(self, stage: FilterStage | None, kind: StageKind) -> None:
        if self._is_frozen(f"{kind.name.lower()} stage"):
            return
        self._stages = [s for s in self._stages if s.kind != kind]
        if stage is not None:
            self._stages.append(stage)

    def with_hardware_acceleration(
        self, kind: HardwareAccelerationKind
    ) -> ComplexFilterBuilder:
        if not self._is_frozen("hardware acceleration"):
            self._hardware_acceleration = kind
        return self

    def with_input_codec(self, codec: str | None) -> ComplexFilterBuilder:
        if not self._is_frozen("input codec"):
            self._input_codec = codec
        return self

    def with_scaling(self, size: DisplaySize) -> ComplexFilterBuilder:
        """Scale to exactly size (see DisplaySize.scale_to_fit for aspect)."""
        self._set_stage(FilterStage(StageKind.SCALE, size=size), StageKind.SCALE)
        return self

    def with_black_bars(self, size: DisplaySize) -> ComplexFilterBuilder:
        """Center the picture in size and fill the borders with black."""
        self._set_stage(FilterStage(StageKind.PAD, size=size), StageKind.PAD)
        return self

    def with_deinterlace(self, deinterlace: bool) -> ComplexFilterBuilder:
        stage = FilterStage(StageKind.DEINTERLACE) if deinterlace else None
        self._set_stage(stage, StageKind.DEINTERLACE)
        return self

    def with_aligned_audio(
        self, duration: timedelta | None
    ) -> ComplexFilterBuilder:
        """Pad or trim the audio to exactly duration (None clears the stage)."""
        stage = (
            FilterStage(StageKind.ALIGN_AUDIO, duration=duration)
            if duration is not None
            else None
        )
        self._set_stage(stage, StageKind.ALIGN_AUDIO)
        return self

    @property
    def stages(self) -> tuple[FilterStage, ...]:
        """Registered stages in canonical order."""
        return tuple(sorted(self._stages, key=lambda s: s.kind))

    def build(self) -> ComplexFilterResult | None:
        """Compose the filter graph.

        Returns:
            None when no stage is registered (map the raw input streams),
            otherwise the graph and the pad label to map for each side: the
            graph output for a filtered side, the raw input stream for a
            side without stages. Repeated calls return the same result.
        """
        if self._built:
            return self._result

        self._built = True
        stages = {stage.kind: stage for stage in self.stages}
        if not stages:
            logger.debug("No filter stages registered; mapping input streams")
            return None

        video_filters = self._video_filters(stages)
        audio_filters = self._audio_filters(stages)

        # A side without filters stays out of the graph and is mapped from
        # the input directly, so its codec may still be "copy"
        chains: list[str] = []
        video_label = INPUT_VIDEO_PAD
        audio_label = INPUT_AUDIO_PAD
        if video_filters:
            chains.append(
                f"[{INPUT_VIDEO_PAD}]{','.join(video_filters)}{VIDEO_OUTPUT_LABEL}"
            )
            video_label = VIDEO_OUTPUT_LABEL
        if audio_filters:
            chains.append(
                f"[{INPUT_AUDIO_PAD}]{','.join(audio_filters)}{AUDIO_OUTPUT_LABEL}"
            )
            audio_label = AUDIO_OUTPUT_LABEL

        self._result = ComplexFilterResult(
            graph_expression=";".join(chains),
            video_pad_label=video_label,
            audio_pad_label=audio_label,
        )
        logger.debug(
            "Built filter graph",
            extra={
                "hardware_acceleration": self._hardware_acceleration.value,
                "stages": [stage.kind.name for stage in stages.values()],
            },
        )
        return self._result

    def _video_filters(self, stages: dict[StageKind, FilterStage]) -> list[str]:
        kind = self._hardware_acceleration
        deinterlace = stages.get(StageKind.DEINTERLACE)
        scale = stages.get(StageKind.SCALE)
        pad = stages.get(StageKind.PAD)

        filters: list[str] = []
        on_device = capabilities.is_hardware_decoded(kind, self._input_codec)

        # Hardware deinterlace/scale filters only accept device frames
        uses_device_filters = kind != HardwareAccelerationKind.NONE and (
            deinterlace is not None or scale is not None
        )
        if uses_device_filters and not on_device:
            filters.extend(capabilities.get_upload_filters(kind))
            on_device = True

        if deinterlace is not None:
            filters.append(capabilities.get_deinterlace_filter(kind))

        if scale is not None:
            assert scale.size is not None
            filters.append(capabilities.get_scale_filter(kind, scale.size))

        if pad is not None:
            assert pad.size is not None
            if on_device:
                filters.extend(capabilities.get_download_filters(kind))
                on_device = False
            filters.append(
                f"pad={pad.size.width}:{pad.size.height}"
                ":(ow-iw)/2:(oh-ih)/2:color=black"
            )

        if scale is not None or pad is not None:
            filters.append("setsar=1")

        # Re-upload for the hardware encoder after software-only stages
        if filters and kind != HardwareAccelerationKind.NONE and not on_device:
            filters.extend(capabilities.get_upload_filters(kind))

        return filters

    def _audio_filters(self, stages: dict[StageKind, FilterStage]) -> list[str]:
        align = stages.get(StageKind.ALIGN_AUDIO)
        if align is None:
            return []
        assert align.duration is not None
        millis = total_milliseconds(align.duration)
        return [f"apad=whole_dur={millis}ms", f"atrim=duration={millis}ms"]
