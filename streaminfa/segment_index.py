"""Per-rendition sliding window of segments for live playlists."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone

from streaminfa.manifest import (
    PlaylistSegment,
    generate_media_playlist,
    segment_filename,
)
from streaminfa.profile import RenditionId


@dataclass(frozen=True)
class SegmentEntry:
    """A segment recorded in the index."""

    sequence: int
    duration_secs: float
    storage_path: str
    program_date_time: datetime
    size_bytes: int


class SegmentIndex:
    """Keeps the newest ``live_window_segments`` segments of one rendition.

    Evicted segments are handed back to the caller; they are not deleted
    from storage here.
    """

    def __init__(
        self, stream_id: str, rendition: RenditionId, live_window_segments: int
    ) -> None:
        self.stream_id = stream_id
        self.rendition = rendition
        self.live_window_segments = live_window_segments
        self._segments: deque[SegmentEntry] = deque()
        self._next_sequence = 0
        self._total_produced = 0
        self._max_duration = 0.0

    def add_segment(
        self, duration_secs: float, storage_path: str, size_bytes: int
    ) -> SegmentEntry | None:
        """Append a segment; return the evicted oldest one if the window overflowed."""
        self._segments.append(
            SegmentEntry(
                sequence=self._next_sequence,
                duration_secs=duration_secs,
                storage_path=storage_path,
                program_date_time=datetime.now(timezone.utc),
                size_bytes=size_bytes,
            )
        )
        self._next_sequence += 1
        self._total_produced += 1
        self._max_duration = max(self._max_duration, duration_secs)

        if len(self._segments) > self.live_window_segments:
            return self._segments.popleft()
        return None

    def generate_playlist(self, hls_version: int, is_vod: bool, is_finished: bool) -> str:
        """Render the media playlist for the current window."""
        segments = [
            PlaylistSegment(
                sequence=entry.sequence,
                duration_secs=entry.duration_secs,
                filename=segment_filename(entry.sequence),
                program_date_time=entry.program_date_time,
            )
            for entry in self._segments
        ]
        return generate_media_playlist(segments, hls_version, is_vod, is_finished)

    @property
    def next_sequence(self) -> int:
        return self._next_sequence

    @property
    def total_segments_produced(self) -> int:
        return self._total_produced

    @property
    def max_duration(self) -> float:
        return self._max_duration

    @property
    def media_sequence(self) -> int:
        """Sequence number of the oldest segment in the window, or 0."""
        return self._segments[0].sequence if self._segments else 0

    @property
    def segments(self) -> tuple[SegmentEntry, ...]:
        return tuple(self._segments)

    def __len__(self) -> int:
        return len(self._segments)