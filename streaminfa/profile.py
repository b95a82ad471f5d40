"""Rendition selection and HLS codec/bandwidth attributes."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class RenditionId(str, Enum):
    """Identifier of an output rendition in the encoding ladder."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    SOURCE = "source"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_name(cls, name: str) -> "RenditionId":
        """Map a ladder rung name to its rendition; unknown names map to SOURCE."""
        try:
            return cls(name)
        except ValueError:
            return cls.SOURCE


@dataclass(frozen=True)
class TranscodeProfile:
    """One rung of the encoding ladder, as configured."""

    name: str
    width: int
    height: int
    bitrate_kbps: int
    audio_bitrate_kbps: int
    profile: str
    level: str
    preset: str


@dataclass(frozen=True)
class SelectedRendition:
    """A rendition chosen for a given input, with its encoding parameters."""

    id: RenditionId
    width: int
    height: int
    video_bitrate_kbps: int
    audio_bitrate_kbps: int
    profile: str
    level: str
    preset: str


def select_renditions(
    input_width: int, input_height: int, ladder: list[TranscodeProfile]
) -> list[SelectedRendition]:
    """Select the ladder rungs that do not upscale the input.

    If the input is smaller than every rung, a single rendition at the source
    resolution is produced using the last (lowest) rung's settings.
    """
    selected = [
        SelectedRendition(
            id=RenditionId.from_name(rung.name),
            width=rung.width,
            height=rung.height,
            video_bitrate_kbps=rung.bitrate_kbps,
            audio_bitrate_kbps=rung.audio_bitrate_kbps,
            profile=rung.profile,
            level=rung.level,
            preset=rung.preset,
        )
        for rung in ladder
        if rung.width <= input_width and rung.height <= input_height
    ]

    if not selected and ladder:
        lowest = ladder[-1]
        selected.append(
            SelectedRendition(
                id=RenditionId.SOURCE,
                width=input_width,
                height=input_height,
                video_bitrate_kbps=lowest.bitrate_kbps,
                audio_bitrate_kbps=lowest.audio_bitrate_kbps,
                profile=lowest.profile,
                level=lowest.level,
                preset=lowest.preset,
            )
        )

    return selected


_PROFILE_IDC = {"baseline": 66, "main": 77, "high": 100}
_U8_PATTERN = re.compile(r"\+?[0-9]+")


def _parse_u8(text: str, default: int) -> int:
    if _U8_PATTERN.fullmatch(text):
        value = int(text)
        if value <= 0xFF:
            return value
    return default


def _parse_level(level: str) -> int:
    """Turn a level string such as "4.1" into a level_idc such as 41."""
    parts = level.split(".")
    if len(parts) == 2:
        major = _parse_u8(parts[0], 3)
        minor = _parse_u8(parts[1], 0)
        return (major * 10 + minor) & 0xFF
    if len(parts) == 1:
        return (_parse_u8(parts[0], 3) * 10) & 0xFF
    return 31


def codec_string(profile: str, level: str) -> str:
    """Return the ``avc1.PPCCLL`` codec string for an H.264 profile and level."""
    profile_idc = _PROFILE_IDC.get(profile, 77)
    level_idc = _parse_level(level)
    return f"avc1.{profile_idc:02x}00{level_idc:02x}"


def codecs_attribute(profile: str, level: str, has_audio: bool) -> str:
    """Return the CODECS attribute value for a multivariant playlist entry."""
    video = codec_string(profile, level)
    return f"{video},mp4a.40.2" if has_audio else video


def bandwidth(video_bitrate_kbps: int, audio_bitrate_kbps: int) -> int:
    """Return BANDWIDTH in bits per second, including 10% overhead."""
    total_kbps = video_bitrate_kbps + audio_bitrate_kbps
    return int(total_kbps * 1.1 * 1000.0)