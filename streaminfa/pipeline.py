"""Live transcode pipeline: fans demuxed frames out to per-rendition segmenters."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from streaminfa.profile import SelectedRendition, TranscodeProfile, select_renditions
from streaminfa.segment import EncodedPacket, EncodedSegment, SegmentAccumulator

logger = logging.getLogger(__name__)

MAX_CONSECUTIVE_DECODE_ERRORS = 10
_GOPS_PER_SEGMENT = 3.0


class TrackKind(str, Enum):
    """Kind of elementary stream a demuxed frame belongs to."""

    VIDEO = "video"
    AUDIO = "audio"


@dataclass(frozen=True)
class TranscodeConfig:
    """Transcode settings: the encoding ladder and the keyframe interval."""

    profile_ladder: list[TranscodeProfile] = field(default_factory=list)
    keyframe_interval_secs: int = 2


@dataclass(frozen=True)
class DemuxedFrame:
    """A compressed frame coming out of the ingest demuxer."""

    stream_id: str
    track: TrackKind
    pts: int
    dts: int
    keyframe: bool
    data: bytes

    @property
    def is_audio(self) -> bool:
        return self.track is TrackKind.AUDIO


class TranscodeError(Exception):
    """Raised when the transcode pipeline cannot start or has to abort.

    ``kind`` is one of ``"ffmpeg_init"``, ``"consecutive_decode_errors"`` or
    ``"cancelled"``.
    """

    def __init__(
        self,
        kind: str,
        message: str,
        *,
        stream_id: str | None = None,
        count: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.stream_id = stream_id
        self.count = count


class _RenditionTracker(Protocol):
    async def set_expected_renditions(self, stream_id: str, count: int) -> None: ...


async def _next_frame(
    queue: asyncio.Queue[DemuxedFrame | None], cancel: asyncio.Event
) -> DemuxedFrame | None:
    """Return the next frame, or None if cancelled or the queue was closed."""
    if cancel.is_set():
        return None
    get_task = asyncio.ensure_future(queue.get())
    cancel_task = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({get_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (get_task, cancel_task):
            if not task.done():
                task.cancel()
    if cancel.is_set():
        return None
    return get_task.result()


async def _send(
    queue: asyncio.Queue[EncodedSegment | None],
    segment: EncodedSegment,
    cancel: asyncio.Event,
) -> bool:
    """Queue a segment, waiting for room; return False if cancelled while waiting."""
    try:
        queue.put_nowait(segment)
        return True
    except asyncio.QueueFull:
        pass
    put_task = asyncio.ensure_future(queue.put(segment))
    cancel_task = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({put_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (put_task, cancel_task):
            if not task.done():
                task.cancel()
    return put_task.done() and not put_task.cancelled()


class TranscodePipeline:
    """Runs the transcode stage for one stream.

    Every frame is decoded once and fanned out to one segment accumulator per
    selected rendition; completed segments go to the packager queue.
    """

    def __init__(
        self,
        config: TranscodeConfig,
        state_manager: _RenditionTracker | None = None,
        cancel: asyncio.Event | None = None,
    ) -> None:
        self.config = config
        self.state_manager = state_manager
        self.cancel = cancel if cancel is not None else asyncio.Event()

    async def run_live(
        self,
        stream_id: str,
        source_width: int,
        source_height: int,
        source_fps: float,
        frame_queue: asyncio.Queue[DemuxedFrame | None],
        segment_queue: asyncio.Queue[EncodedSegment | None],
    ) -> None:
        """Transcode frames until cancelled or ``None`` closes ``frame_queue``.

        Raises ``TranscodeError`` if no rendition fits the source or after
        too many consecutive frame failures. Pending data is flushed as final
        segments when the loop ends.
        """
        renditions = select_renditions(
            source_width, source_height, self.config.profile_ladder
        )
        if not renditions:
            raise TranscodeError(
                "ffmpeg_init",
                "no renditions selected for source resolution",
                stream_id=stream_id,
            )

        if self.state_manager is not None:
            await self.state_manager.set_expected_renditions(stream_id, len(renditions))

        logger.info(
            "starting live transcode pipeline stream_id=%s rendition_count=%d source=%dx%d@%.1ffps",
            stream_id, len(renditions), source_width, source_height, source_fps,
        )

        target = self.config.keyframe_interval_secs * _GOPS_PER_SEGMENT
        accumulators = [
            (
                rendition,
                SegmentAccumulator(
                    stream_id,
                    rendition.id,
                    target,
                    rendition.width,
                    rendition.height,
                    rendition.video_bitrate_kbps,
                    rendition.audio_bitrate_kbps,
                    rendition.profile,
                    rendition.level,
                    source_fps,
                ),
            )
            for rendition in renditions
        ]

        consecutive_errors = 0
        while True:
            frame = await _next_frame(frame_queue, self.cancel)
            if frame is None:
                if self.cancel.is_set():
                    logger.info("transcode pipeline cancelled stream_id=%s", stream_id)
                else:
                    logger.info("ingest queue closed, flushing stream_id=%s", stream_id)
                break

            started = time.perf_counter()
            try:
                await self._process_frame(frame, accumulators, segment_queue)
            except TranscodeError as exc:
                consecutive_errors += 1
                if consecutive_errors >= MAX_CONSECUTIVE_DECODE_ERRORS:
                    logger.error(
                        "too many consecutive decode errors, aborting stream_id=%s errors=%d",
                        stream_id, consecutive_errors,
                    )
                    raise TranscodeError(
                        "consecutive_decode_errors",
                        f"{consecutive_errors} consecutive decode errors",
                        stream_id=stream_id,
                        count=consecutive_errors,
                    ) from exc
                logger.warning(
                    "decode error, skipping frame stream_id=%s error=%s", stream_id, exc
                )
            else:
                consecutive_errors = 0
                logger.debug(
                    "frame processed stream_id=%s latency=%.6fs",
                    stream_id, time.perf_counter() - started,
                )

        for rendition, accumulator in accumulators:
            segment = accumulator.flush()
            if segment is None:
                continue
            if not await _send(segment_queue, segment, self.cancel):
                logger.warning(
                    "packager queue unavailable during flush stream_id=%s rendition=%s",
                    stream_id, rendition.id,
                )

        logger.info("live transcode pipeline finished stream_id=%s", stream_id)

    async def _process_frame(
        self,
        frame: DemuxedFrame,
        accumulators: list[tuple[SelectedRendition, SegmentAccumulator]],
        segment_queue: asyncio.Queue[EncodedSegment | None],
    ) -> None:
        """Pass one frame through every rendition's accumulator."""
        packet = EncodedPacket(
            pts=frame.pts,
            dts=frame.dts,
            keyframe=frame.keyframe,
            data=bytes(frame.data),
            is_audio=frame.is_audio,
        )
        for rendition, accumulator in accumulators:
            segment = accumulator.push(packet)
            if segment is None:
                continue
            logger.debug(
                "segment produced stream_id=%s rendition=%s duration=%.3fs",
                frame.stream_id, rendition.id, segment.duration_secs,
            )
            if not await _send(segment_queue, segment, self.cancel):
                raise TranscodeError(
                    "cancelled",
                    f"transcode cancelled for stream {frame.stream_id}",
                    stream_id=frame.stream_id,
                )