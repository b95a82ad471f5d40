import asyncio

import pytest

from streaminfa.manifest import (
    init_segment_path,
    master_playlist_path,
    media_playlist_path,
    segment_path,
)
from streaminfa.profile import RenditionId
from streaminfa.runner import (
    PackagingConfig,
    RenditionComplete,
    SegmentProduced,
    run_packager,
)
from streaminfa.segment import EncodedSegment

STREAM = "stream-1"
MANIFEST_TYPE = "application/vnd.apple.mpegurl"


def _segment(sequence, *, rendition=RenditionId.HIGH, is_last=False, audio=None, width=1920):
    return EncodedSegment(
        stream_id=STREAM,
        rendition=rendition,
        sequence=sequence,
        duration_secs=6.0,
        pts_start=sequence * 540000,
        video_data=bytes([0xAA] * 100),
        audio_data=audio,
        is_last=is_last,
        width=width,
        height=1080,
        video_bitrate_kbps=3500,
        audio_bitrate_kbps=128,
        profile="high",
        level="4.1",
        frame_rate=30.0,
    )


def _drain(queue):
    items = []
    while not queue.empty():
        items.append(queue.get_nowait())
    return items


async def _run(segments, *, cancel_first=False, window=5):
    segment_queue = asyncio.Queue()
    storage_queue = asyncio.Queue()
    event_queue = asyncio.Queue()
    cancel = asyncio.Event()
    for seg in segments:
        segment_queue.put_nowait(seg)
    segment_queue.put_nowait(None)
    if cancel_first:
        cancel.set()
    config = PackagingConfig(hls_version=7, live_window_segments=window)
    await asyncio.wait_for(
        run_packager(STREAM, config, segment_queue, storage_queue, event_queue, cancel),
        timeout=5,
    )
    return _drain(storage_queue), _drain(event_queue)


@pytest.mark.asyncio
async def test_writes_init_segment_playlist_and_master_in_order():
    writes, _ = await _run([_segment(0)])
    paths = [w.path for w in writes]
    assert paths == [
        init_segment_path(STREAM, "high"),
        segment_path(STREAM, "high", 0),
        media_playlist_path(STREAM, "high"),
        master_playlist_path(STREAM),
    ]
    assert writes[0].content_type == "video/mp4"
    assert writes[1].content_type == "video/mp4"
    assert writes[2].content_type == MANIFEST_TYPE
    assert writes[3].content_type == MANIFEST_TYPE


@pytest.mark.asyncio
async def test_init_and_media_segment_boxes():
    writes, _ = await _run([_segment(0)])
    init, media = writes[0].data, writes[1].data
    assert init[4:8] == b"ftyp"
    assert media[4:8] == b"styp"
    assert media.endswith(bytes([0xAA] * 100))


@pytest.mark.asyncio
async def test_init_segment_written_once_per_rendition():
    writes, _ = await _run([_segment(0), _segment(1), _segment(2)])
    init_writes = [w for w in writes if w.path == init_segment_path(STREAM, "high")]
    assert len(init_writes) == 1
    master = writes[-1].data.decode()
    assert master.count("#EXT-X-STREAM-INF") == 1


@pytest.mark.asyncio
async def test_events_and_rendition_complete():
    _, events = await _run([_segment(0), _segment(1, is_last=True)])
    assert events == [
        SegmentProduced(STREAM, "high", 0),
        SegmentProduced(STREAM, "high", 1),
        RenditionComplete(STREAM, "high"),
    ]


@pytest.mark.asyncio
async def test_media_playlist_tracks_window_and_endlist():
    writes, _ = await _run([_segment(0), _segment(1), _segment(2, is_last=True)], window=2)
    playlists = [
        w.data.decode() for w in writes if w.path == media_playlist_path(STREAM, "high")
    ]
    assert len(playlists) == 3
    assert "#EXT-X-ENDLIST" not in playlists[0]
    assert "#EXT-X-MEDIA-SEQUENCE:0" in playlists[0]
    assert "#EXT-X-MEDIA-SEQUENCE:1" in playlists[2]
    assert "#EXT-X-ENDLIST" in playlists[2]
    assert "#EXT-X-TARGETDURATION:6" in playlists[2]


@pytest.mark.asyncio
async def test_master_playlist_lists_each_rendition():
    writes, _ = await _run(
        [_segment(0), _segment(0, rendition=RenditionId.LOW, audio=b"\x01\x02")]
    )
    master = writes[-1]
    assert master.path == master_playlist_path(STREAM)
    text = master.data.decode()
    assert "high/media.m3u8" in text
    assert "low/media.m3u8" in text
    assert "avc1.640029" in text
    assert "mp4a.40.2" in text
    assert "BANDWIDTH=3990800" in text


@pytest.mark.asyncio
async def test_cancelled_before_start_writes_nothing():
    writes, events = await _run([_segment(0)], cancel_first=True)
    assert writes == []
    assert events == []


@pytest.mark.asyncio
async def test_init_failure_still_packages_media_segments():
    writes, events = await _run([_segment(0, width=2**32), _segment(1, width=2**32)])
    paths = [w.path for w in writes]
    assert init_segment_path(STREAM, "high") not in paths
    assert segment_path(STREAM, "high", 0) in paths
    assert segment_path(STREAM, "high", 1) in paths
    assert [e.sequence for e in events] == [0, 1]
    master = writes[-1].data.decode()
    assert master.count("#EXT-X-STREAM-INF") == 2


@pytest.mark.asyncio
async def test_no_segments_writes_no_master():
    writes, events = await _run([])
    assert writes == []
    assert events == []