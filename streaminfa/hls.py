"""Fragmented MP4 (fMP4) box construction for HLS init and media segments."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

_U16_MAX = 0xFFFF
_U32_MAX = 0xFFFFFFFF
_U64_MAX = 0xFFFFFFFFFFFFFFFF
_I32_RANGE = (-(2**31), 2**31 - 1)
_I64_RANGE = (-(2**63), 2**63 - 1)

_IDENTITY_MATRIX = struct.pack(
    ">9I", 0x00010000, 0, 0, 0, 0x00010000, 0, 0, 0, 0x40000000
)

# data-offset | sample-duration | sample-size | sample-flags | composition-offsets
_TRUN_FLAGS = 0x000001 | 0x000100 | 0x000200 | 0x000400 | 0x000800
_TFHD_DEFAULT_BASE_IS_MOOF = 0x020000


class PackageError(Exception):
    """Raised when a segment cannot be packaged from the given parameters."""


@dataclass(frozen=True)
class InitSegmentParams:
    """Parameters needed to generate an initialization segment."""

    width: int
    height: int
    video_timescale: int
    audio_timescale: int
    sps: bytes
    pps: bytes
    audio_specific_config: bytes | None = None
    has_audio: bool = False


@dataclass(frozen=True)
class SampleInfo:
    """Timing, size and flags of a single sample in a media segment."""

    duration: int
    size: int
    flags: int
    composition_offset: int


@dataclass(frozen=True)
class MediaSegmentParams:
    """Parameters for generating a media segment."""

    sequence_number: int
    base_decode_time: int
    samples: list[SampleInfo] = field(default_factory=list)
    media_data: bytes = b""
    track_id: int = 1


# ---------------------------------------------------------------------------
# Validation and box writing helpers
# ---------------------------------------------------------------------------


def _check_range(name: str, value: int, low: int, high: int) -> None:
    if not low <= value <= high:
        raise PackageError(f"{name}={value} is out of range [{low}, {high}]")


def _check_u32(name: str, value: int) -> None:
    _check_range(name, value, 0, _U32_MAX)


def _u16(value: int) -> bytes:
    return struct.pack(">H", value & _U16_MAX)


def _u32(value: int) -> bytes:
    return struct.pack(">I", value & _U32_MAX)


def _box(box_type: bytes, content: bytes) -> bytes:
    size = len(content) + 8
    if size > _U32_MAX:
        raise PackageError(f"{box_type.decode('latin-1')} box too large: {size} bytes")
    return struct.pack(">I", size) + box_type + content


def _full_box(box_type: bytes, version: int, flags: int, content: bytes) -> bytes:
    header = bytes([version & 0xFF]) + (flags & 0xFFFFFF).to_bytes(3, "big")
    return _box(box_type, header + content)


# ---------------------------------------------------------------------------
# Initialization segment
# ---------------------------------------------------------------------------


def generate_init_segment(params: InitSegmentParams) -> bytes:
    """Build an fMP4 initialization segment: ``ftyp`` followed by ``moov``."""
    for name in ("width", "height", "video_timescale", "audio_timescale"):
        _check_u32(name, getattr(params, name))
    return _ftyp() + _moov(params)


def _ftyp() -> bytes:
    return _box(b"ftyp", b"isom" + _u32(0x200) + b"isom" + b"iso6" + b"mp41")


def _moov(params: InitSegmentParams) -> bytes:
    content = _mvhd(params.video_timescale) + _video_trak(params)
    if params.has_audio:
        content += _audio_trak(params)
    content += _mvex(params.has_audio)
    return _box(b"moov", content)


def _mvhd(timescale: int) -> bytes:
    content = (
        struct.pack(">5IH", 0, 0, timescale, 0, 0x00010000, 0x0100)
        + bytes(10)
        + _IDENTITY_MATRIX
        + bytes(24)
        + _u32(2)  # next_track_ID
    )
    return _full_box(b"mvhd", 0, 0, content)


def _video_trak(params: InitSegmentParams) -> bytes:
    minf = _box(b"minf", _vmhd() + _dinf() + _video_stbl(params))
    mdia = _box(
        b"mdia",
        _mdhd(params.video_timescale) + _hdlr(b"vide", "VideoHandler") + minf,
    )
    return _box(b"trak", _tkhd(1, params.width, params.height, is_video=True) + mdia)


def _audio_trak(params: InitSegmentParams) -> bytes:
    minf = _box(b"minf", _smhd() + _dinf() + _audio_stbl(params))
    mdia = _box(
        b"mdia",
        _mdhd(params.audio_timescale) + _hdlr(b"soun", "SoundHandler") + minf,
    )
    return _box(b"trak", _tkhd(2, 0, 0, is_video=False) + mdia)


def _tkhd(track_id: int, width: int, height: int, *, is_video: bool) -> bytes:
    content = (
        struct.pack(">5I", 0, 0, track_id, 0, 0)
        + bytes(8)
        + struct.pack(">4H", 0, 0, 0 if is_video else 0x0100, 0)
        + _IDENTITY_MATRIX
        + _u32(width << 16)
        + _u32(height << 16)
    )
    return _full_box(b"tkhd", 0, 0x000003, content)  # enabled | in_movie


def _mdhd(timescale: int) -> bytes:
    content = struct.pack(">4IHH", 0, 0, timescale, 0, 0x55C4, 0)  # language "und"
    return _full_box(b"mdhd", 0, 0, content)


def _hdlr(handler_type: bytes, name: str) -> bytes:
    content = _u32(0) + handler_type + bytes(12) + name.encode() + b"\x00"
    return _full_box(b"hdlr", 0, 0, content)


def _vmhd() -> bytes:
    return _full_box(b"vmhd", 0, 1, bytes(8))


def _smhd() -> bytes:
    return _full_box(b"smhd", 0, 0, bytes(4))


def _dinf() -> bytes:
    dref = _u32(1) + _full_box(b"url ", 0, 1, b"")  # self-contained
    return _box(b"dinf", _full_box(b"dref", 0, 0, dref))


def _empty_sample_tables() -> bytes:
    return (
        _full_box(b"stts", 0, 0, bytes(4))
        + _full_box(b"stsc", 0, 0, bytes(4))
        + _full_box(b"stsz", 0, 0, bytes(8))
        + _full_box(b"stco", 0, 0, bytes(4))
    )


def _video_stbl(params: InitSegmentParams) -> bytes:
    stsd = _full_box(b"stsd", 0, 0, _u32(1) + _avc1_entry(params))
    return _box(b"stbl", stsd + _empty_sample_tables())


def _audio_stbl(params: InitSegmentParams) -> bytes:
    stsd = _full_box(b"stsd", 0, 0, _u32(1) + _mp4a_entry(params))
    return _box(b"stbl", stsd + _empty_sample_tables())


def _avc1_entry(params: InitSegmentParams) -> bytes:
    sps, pps = bytes(params.sps), bytes(params.pps)
    content = (
        bytes(6)
        + _u16(1)  # data_reference_index
        + bytes(16)
        + _u16(params.width)
        + _u16(params.height)
        + _u32(0x00480000)  # 72 dpi
        + _u32(0x00480000)
        + _u32(0)
        + _u16(1)  # frame_count
        + bytes(32)  # compressorname
        + _u16(0x0018)  # depth
        + struct.pack(">h", -1)
    )
    avcc = (
        bytes(
            [
                1,
                sps[1] if len(sps) > 1 else 100,
                sps[2] if len(sps) > 2 else 0,
                sps[3] if len(sps) > 3 else 41,
                0xFF,  # 4-byte NALU lengths
                0xE1,  # one SPS
            ]
        )
        + _u16(len(sps))
        + sps
        + b"\x01"
        + _u16(len(pps))
        + pps
    )
    return _box(b"avc1", content + _box(b"avcC", avcc))


def _mp4a_entry(params: InitSegmentParams) -> bytes:
    content = (
        bytes(6)
        + _u16(1)  # data_reference_index
        + bytes(8)
        + struct.pack(">4H", 2, 16, 0, 0)  # stereo, 16-bit
        + _u32(params.audio_timescale << 16)
    )
    if params.audio_specific_config is not None:
        asc = bytes(params.audio_specific_config)
        size = len(asc)
        esds = (
            bytes([0x03, (23 + size) & 0xFF])
            + _u16(1)  # ES_ID
            + bytes([0x00, 0x04, (15 + size) & 0xFF, 0x40, 0x15])
            + bytes(3)  # bufferSizeDB
            + _u32(128000)
            + _u32(128000)
            + bytes([0x05, size & 0xFF])
            + asc
            + bytes([0x06, 0x01, 0x02])
        )
        content += _full_box(b"esds", 0, 0, esds)
    return _box(b"mp4a", content)


def _mvex(has_audio: bool) -> bytes:
    content = _trex(1)
    if has_audio:
        content += _trex(2)
    return _box(b"mvex", content)


def _trex(track_id: int) -> bytes:
    return _full_box(b"trex", 0, 0, struct.pack(">5I", track_id, 1, 0, 0, 0))


# ---------------------------------------------------------------------------
# Media segment
# ---------------------------------------------------------------------------


def generate_media_segment(params: MediaSegmentParams) -> bytes:
    """Build an fMP4 media segment: ``styp``, ``moof`` and ``mdat``."""
    _check_range("sequence_number", params.sequence_number, 0, _U64_MAX)
    _check_range("base_decode_time", params.base_decode_time, *_I64_RANGE)
    _check_u32("track_id", params.track_id)
    for sample in params.samples:
        _check_u32("duration", sample.duration)
        _check_u32("size", sample.size)
        _check_u32("flags", sample.flags)
        _check_range("composition_offset", sample.composition_offset, *_I32_RANGE)
    return _styp() + _moof(params) + _box(b"mdat", bytes(params.media_data))


def _styp() -> bytes:
    return _box(b"styp", b"msdh" + _u32(0) + b"msdh" + b"msix")


def _moof(params: MediaSegmentParams) -> bytes:
    mfhd = _full_box(b"mfhd", 0, 0, _u32(params.sequence_number))
    tfhd = _full_box(b"tfhd", 0, _TFHD_DEFAULT_BASE_IS_MOOF, _u32(params.track_id))
    tfdt = _full_box(b"tfdt", 1, 0, struct.pack(">q", params.base_decode_time))
    traf = _box(b"traf", tfhd + tfdt + _trun(params.samples))
    return _box(b"moof", mfhd + traf)


def _trun(samples: list[SampleInfo]) -> bytes:
    content = _u32(len(samples)) + struct.pack(">i", 0)  # data_offset placeholder
    content += b"".join(
        struct.pack(
            ">IIIi", s.duration, s.size, s.flags, s.composition_offset
        )
        for s in samples
    )
    return _full_box(b"trun", 0, _TRUN_FLAGS, content)