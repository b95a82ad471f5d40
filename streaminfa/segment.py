"""Accumulation of encoded packets into segments cut at keyframes."""

from __future__ import annotations

from dataclasses import dataclass

from streaminfa.profile import RenditionId

TIMEBASE_HZ = 90000.0


@dataclass(frozen=True)
class EncodedPacket:
    """An encoded packet coming out of an encoder, before segmentation."""

    pts: int
    dts: int
    keyframe: bool
    data: bytes
    is_audio: bool


@dataclass(frozen=True)
class EncodedSegment:
    """A complete segment of one rendition, ready for packaging."""

    stream_id: str
    rendition: RenditionId
    sequence: int
    duration_secs: float
    pts_start: int
    video_data: bytes
    audio_data: bytes | None
    is_last: bool
    width: int
    height: int
    video_bitrate_kbps: int
    audio_bitrate_kbps: int
    profile: str
    level: str
    frame_rate: float


class SegmentAccumulator:
    """Collects packets and emits a segment at the first video keyframe
    reached once the target duration has elapsed."""

    def __init__(
        self,
        stream_id: str,
        rendition: RenditionId,
        target_duration_secs: float,
        width: int,
        height: int,
        video_bitrate_kbps: int,
        audio_bitrate_kbps: int,
        profile: str,
        level: str,
        frame_rate: float,
    ) -> None:
        self.stream_id = stream_id
        self.rendition = rendition
        self.target_duration_secs = target_duration_secs
        self.width = width
        self.height = height
        self.video_bitrate_kbps = video_bitrate_kbps
        self.audio_bitrate_kbps = audio_bitrate_kbps
        self.profile = profile
        self.level = level
        self.frame_rate = frame_rate
        self._video = bytearray()
        self._audio = bytearray()
        self._start_pts: int | None = None
        self._last_pts = 0
        self._next_sequence = 0
        self._has_audio = False

    def push(self, packet: EncodedPacket) -> EncodedSegment | None:
        """Feed a packet; return a segment if a boundary was reached."""
        if self._start_pts is None:
            self._start_pts = packet.pts
        self._last_pts = packet.pts

        if packet.is_audio:
            self._has_audio = True
            self._audio += packet.data
        else:
            self._video += packet.data

        if not packet.is_audio and packet.keyframe:
            duration = (packet.pts - self._start_pts) / TIMEBASE_HZ
            if duration >= self.target_duration_secs:
                return self._emit(is_last=False)
        return None

    def flush(self) -> EncodedSegment | None:
        """Emit any remaining video data as the final segment."""
        if not self._video:
            return None
        return self._emit(is_last=True)

    def _emit(self, is_last: bool) -> EncodedSegment:
        start_pts = self._start_pts if self._start_pts is not None else 0
        audio_data: bytes | None = None
        if self._has_audio and self._audio:
            audio_data = bytes(self._audio)
            self._audio.clear()

        segment = EncodedSegment(
            stream_id=self.stream_id,
            rendition=self.rendition,
            sequence=self._next_sequence,
            duration_secs=(self._last_pts - start_pts) / TIMEBASE_HZ,
            pts_start=start_pts,
            video_data=bytes(self._video),
            audio_data=audio_data,
            is_last=is_last,
            width=self.width,
            height=self.height,
            video_bitrate_kbps=self.video_bitrate_kbps,
            audio_bitrate_kbps=self.audio_bitrate_kbps,
            profile=self.profile,
            level=self.level,
            frame_rate=self.frame_rate,
        )
        self._video.clear()
        self._next_sequence += 1
        self._start_pts = None
        return segment