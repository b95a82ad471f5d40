"""HLS playlist generation and storage path helpers."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone

from streaminfa.profile import RenditionId, bandwidth, codecs_attribute

_U32_MAX = 0xFFFFFFFF


@dataclass(frozen=True)
class RenditionInfo:
    """A rendition as advertised in the multivariant playlist."""

    id: RenditionId
    width: int
    height: int
    video_bitrate_kbps: int
    audio_bitrate_kbps: int
    profile: str
    level: str
    frame_rate: float
    has_audio: bool


@dataclass(frozen=True)
class PlaylistSegment:
    """A segment entry of a media playlist."""

    sequence: int
    duration_secs: float
    filename: str
    program_date_time: datetime | None = None


def generate_multivariant_playlist(
    renditions: list[RenditionInfo], hls_version: int
) -> str:
    """Build the multivariant (master) playlist listing every rendition."""
    lines = [
        "#EXTM3U",
        f"#EXT-X-VERSION:{hls_version}",
        "#EXT-X-INDEPENDENT-SEGMENTS",
        "",
    ]
    for rendition in renditions:
        bw = bandwidth(rendition.video_bitrate_kbps, rendition.audio_bitrate_kbps)
        codecs = codecs_attribute(rendition.profile, rendition.level, rendition.has_audio)
        lines.append(
            f"#EXT-X-STREAM-INF:BANDWIDTH={bw},"
            f"RESOLUTION={rendition.width}x{rendition.height},"
            f'CODECS="{codecs}",FRAME-RATE={rendition.frame_rate:.3f}'
        )
        lines.append(f"{str(rendition.id)}/media.m3u8")
        lines.append("")
    return "\n".join(lines) + "\n"


def _format_program_date_time(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    millis = value.microsecond // 1000
    return f"{value.strftime('%Y-%m-%dT%H:%M:%S')}.{millis:03d}Z"


def _target_duration(segments: list[PlaylistSegment]) -> int:
    longest = max(
        (s.duration_secs for s in segments if not math.isnan(s.duration_secs)),
        default=0.0,
    )
    longest = max(longest, 0.0)
    if math.isinf(longest):
        return _U32_MAX
    return max(min(math.ceil(longest), _U32_MAX), 1)


def generate_media_playlist(
    segments: list[PlaylistSegment],
    hls_version: int,
    is_vod: bool,
    is_finished: bool,
) -> str:
    """Build a media playlist for one rendition.

    TARGETDURATION is the rounded-up longest segment (at least 1), and
    MEDIA-SEQUENCE is the first segment's sequence number. VOD playlists and
    finished live playlists end with ``#EXT-X-ENDLIST``.
    """
    media_sequence = segments[0].sequence if segments else 0

    lines = [
        "#EXTM3U",
        f"#EXT-X-VERSION:{hls_version}",
        f"#EXT-X-TARGETDURATION:{_target_duration(segments)}",
    ]
    if is_vod:
        lines.append("#EXT-X-PLAYLIST-TYPE:VOD")
    lines.append(f"#EXT-X-MEDIA-SEQUENCE:{media_sequence}")
    lines.append('#EXT-X-MAP:URI="init.mp4"')
    lines.append("")

    for segment in segments:
        if segment.program_date_time is not None:
            lines.append(
                "#EXT-X-PROGRAM-DATE-TIME:"
                + _format_program_date_time(segment.program_date_time)
            )
        lines.append(f"#EXTINF:{segment.duration_secs:.3f},")
        lines.append(segment.filename)

    if is_vod or is_finished:
        lines.append("#EXT-X-ENDLIST")

    return "\n".join(lines) + "\n"


def segment_path(stream_id: str, rendition: str, sequence: int) -> str:
    """Storage path of a media segment: ``{stream}/{rendition}/{seq:06}.m4s``."""
    return f"{stream_id}/{rendition}/{segment_filename(sequence)}"


def init_segment_path(stream_id: str, rendition: str) -> str:
    """Storage path of a rendition's init segment."""
    return f"{stream_id}/{rendition}/init.mp4"


def media_playlist_path(stream_id: str, rendition: str) -> str:
    """Storage path of a rendition's media playlist."""
    return f"{stream_id}/{rendition}/media.m3u8"


def master_playlist_path(stream_id: str) -> str:
    """Storage path of a stream's multivariant playlist."""
    return f"{stream_id}/master.m3u8"


def segment_filename(sequence: int) -> str:
    """Segment filename without a path prefix: ``{seq:06}.m4s``."""
    return f"{sequence:06d}.m4s"