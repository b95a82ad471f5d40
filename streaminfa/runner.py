"""Packager task: turns encoded segments into fMP4 files and HLS playlists."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TypeVar

from streaminfa.hls import (
    InitSegmentParams,
    MediaSegmentParams,
    PackageError,
    SampleInfo,
    generate_init_segment,
    generate_media_segment,
)
from streaminfa.manifest import (
    RenditionInfo,
    generate_multivariant_playlist,
    init_segment_path,
    master_playlist_path,
    media_playlist_path,
    segment_path,
)
from streaminfa.profile import RenditionId
from streaminfa.segment import EncodedSegment
from streaminfa.segment_index import SegmentIndex
from streaminfa.storage import MANIFEST_CONTENT_TYPE, StorageWrite, content_type_for_path

logger = logging.getLogger(__name__)

_VIDEO_TIMESCALE = 90000
_AUDIO_TIMESCALE = 48000
_PLACEHOLDER_SPS = bytes([0x67, 0x42, 0x00, 0x1E])
_PLACEHOLDER_PPS = bytes([0x68, 0xCE, 0x38, 0x80])
_PLACEHOLDER_AAC_CONFIG = bytes([0x12, 0x10])
_FIRST_SAMPLE_FLAGS = 0x02000000
_OTHER_SAMPLE_FLAGS = 0x01010000
_U32_MAX = 0xFFFFFFFF

_T = TypeVar("_T")


@dataclass(frozen=True)
class PackagingConfig:
    """Packaging settings used by the packager."""

    hls_version: int
    live_window_segments: int


@dataclass(frozen=True)
class SegmentProduced:
    """Event: a segment of a rendition was packaged and written."""

    stream_id: str
    rendition: str
    sequence: int


@dataclass(frozen=True)
class RenditionComplete:
    """Event: the last segment of a rendition was written."""

    stream_id: str
    rendition: str


PipelineEvent = SegmentProduced | RenditionComplete


async def _next_item(queue: asyncio.Queue[_T | None], cancel: asyncio.Event) -> _T | None:
    """Return the next queued item, or None if cancelled or the queue was closed."""
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


def _sample_duration(duration_secs: float) -> int:
    ticks = duration_secs * _VIDEO_TIMESCALE
    if ticks != ticks:  # NaN
        return 0
    return int(min(max(ticks, 0.0), float(_U32_MAX)))


async def run_packager(
    stream_id: str,
    config: PackagingConfig,
    segment_queue: asyncio.Queue[EncodedSegment | None],
    storage_queue: asyncio.Queue[StorageWrite],
    event_queue: asyncio.Queue[PipelineEvent],
    cancel: asyncio.Event,
) -> None:
    """Package encoded segments for one stream until cancelled or closed.

    A ``None`` on ``segment_queue`` closes it. For every rendition an init
    segment is written first; each media segment is followed by an updated
    media playlist and a ``SegmentProduced`` event. When the loop ends the
    multivariant playlist is written.
    """
    logger.info("packager task started stream_id=%s", stream_id)

    indexes: dict[RenditionId, SegmentIndex] = {}
    rendition_infos: list[RenditionInfo] = []
    init_written: set[RenditionId] = set()

    while True:
        segment = await _next_item(segment_queue, cancel)
        if segment is None:
            if cancel.is_set():
                logger.info("packager cancelled stream_id=%s", stream_id)
            else:
                logger.info("transcode queue closed, flushing packager stream_id=%s", stream_id)
            break

        rendition = segment.rendition
        rendition_name = str(rendition)
        sequence = segment.sequence
        has_audio = segment.audio_data is not None

        index = indexes.get(rendition)
        if index is None:
            index = SegmentIndex(stream_id, rendition, config.live_window_segments)
            indexes[rendition] = index

        if rendition not in init_written:
            init_params = InitSegmentParams(
                width=segment.width,
                height=segment.height,
                video_timescale=_VIDEO_TIMESCALE,
                audio_timescale=_AUDIO_TIMESCALE,
                sps=_PLACEHOLDER_SPS,
                pps=_PLACEHOLDER_PPS,
                audio_specific_config=_PLACEHOLDER_AAC_CONFIG if has_audio else None,
                has_audio=has_audio,
            )
            try:
                init_data = generate_init_segment(init_params)
            except PackageError as exc:
                logger.error(
                    "failed to generate init segment stream_id=%s rendition=%s error=%s",
                    stream_id, rendition_name, exc,
                )
            else:
                await storage_queue.put(
                    StorageWrite(
                        path=init_segment_path(stream_id, rendition_name),
                        data=init_data,
                        content_type="video/mp4",
                    )
                )
                init_written.add(rendition)
                logger.debug(
                    "init segment written stream_id=%s rendition=%s", stream_id, rendition_name
                )

            rendition_infos.append(
                RenditionInfo(
                    id=rendition,
                    width=segment.width,
                    height=segment.height,
                    video_bitrate_kbps=segment.video_bitrate_kbps,
                    audio_bitrate_kbps=segment.audio_bitrate_kbps,
                    profile=segment.profile,
                    level=segment.level,
                    frame_rate=segment.frame_rate,
                    has_audio=has_audio,
                )
            )

        sample = SampleInfo(
            duration=_sample_duration(segment.duration_secs),
            size=len(segment.video_data),
            flags=_FIRST_SAMPLE_FLAGS if sequence == 0 else _OTHER_SAMPLE_FLAGS,
            composition_offset=0,
        )
        media_params = MediaSegmentParams(
            sequence_number=sequence,
            base_decode_time=segment.pts_start,
            samples=[sample],
            media_data=segment.video_data,
            track_id=1,
        )

        try:
            segment_data = generate_media_segment(media_params)
        except PackageError as exc:
            logger.error(
                "failed to generate media segment stream_id=%s rendition=%s sequence=%d error=%s",
                stream_id, rendition_name, sequence, exc,
            )
            continue

        seg_path = segment_path(stream_id, rendition_name, sequence)
        await storage_queue.put(
            StorageWrite(
                path=seg_path,
                data=segment_data,
                content_type=content_type_for_path(seg_path),
            )
        )

        index.add_segment(segment.duration_secs, seg_path, len(segment_data))

        playlist = index.generate_playlist(config.hls_version, False, segment.is_last)
        await storage_queue.put(
            StorageWrite(
                path=media_playlist_path(stream_id, rendition_name),
                data=playlist.encode("utf-8"),
                content_type=MANIFEST_CONTENT_TYPE,
            )
        )

        await event_queue.put(SegmentProduced(stream_id, rendition_name, sequence))

        if segment.is_last:
            await event_queue.put(RenditionComplete(stream_id, rendition_name))
            logger.info(
                "rendition complete, last segment emitted stream_id=%s rendition=%s",
                stream_id, rendition_name,
            )

        logger.debug(
            "segment packaged and written stream_id=%s rendition=%s sequence=%d",
            stream_id, rendition_name, sequence,
        )

    if rendition_infos:
        master = generate_multivariant_playlist(rendition_infos, config.hls_version)
        await storage_queue.put(
            StorageWrite(
                path=master_playlist_path(stream_id),
                data=master.encode("utf-8"),
                content_type=MANIFEST_CONTENT_TYPE,
            )
        )

    logger.info("packager task finished stream_id=%s", stream_id)