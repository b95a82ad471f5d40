from datetime import datetime, timezone

from streaminfa.manifest import (
    PlaylistSegment,
    RenditionInfo,
    generate_media_playlist,
    generate_multivariant_playlist,
    init_segment_path,
    master_playlist_path,
    media_playlist_path,
    segment_filename,
    segment_path,
)
from streaminfa.profile import RenditionId


def _renditions():
    return [
        RenditionInfo(RenditionId.HIGH, 1920, 1080, 3500, 128, "high", "4.1", 30.0, True),
        RenditionInfo(RenditionId.MEDIUM, 1280, 720, 2000, 128, "main", "3.1", 30.0, True),
        RenditionInfo(RenditionId.LOW, 854, 480, 1000, 96, "main", "3.0", 30.0, True),
    ]


def test_multivariant_playlist():
    playlist = generate_multivariant_playlist(_renditions(), 7)
    assert "#EXTM3U" in playlist
    assert "#EXT-X-VERSION:7" in playlist
    assert "#EXT-X-INDEPENDENT-SEGMENTS" in playlist
    assert "BANDWIDTH=3990800" in playlist
    assert "RESOLUTION=1920x1080" in playlist
    assert "avc1.640029,mp4a.40.2" in playlist
    assert "high/media.m3u8" in playlist
    assert "medium/media.m3u8" in playlist
    assert "low/media.m3u8" in playlist


def test_multivariant_entry_line_format():
    playlist = generate_multivariant_playlist(_renditions()[:1], 7)
    assert playlist == (
        "#EXTM3U\n"
        "#EXT-X-VERSION:7\n"
        "#EXT-X-INDEPENDENT-SEGMENTS\n"
        "\n"
        '#EXT-X-STREAM-INF:BANDWIDTH=3990800,RESOLUTION=1920x1080,'
        'CODECS="avc1.640029,mp4a.40.2",FRAME-RATE=30.000\n'
        "high/media.m3u8\n"
        "\n"
    )


def test_multivariant_without_audio():
    info = RenditionInfo(RenditionId.LOW, 854, 480, 1000, 96, "main", "3.0", 25.0, False)
    playlist = generate_multivariant_playlist([info], 7)
    assert 'CODECS="avc1.4d001e"' in playlist
    assert "FRAME-RATE=25.000" in playlist


def test_live_media_playlist():
    segments = [
        PlaylistSegment(42, 6.006, "000042.m4s"),
        PlaylistSegment(43, 6.006, "000043.m4s"),
        PlaylistSegment(44, 5.972, "000044.m4s"),
    ]
    playlist = generate_media_playlist(segments, 7, False, False)
    assert "#EXTM3U" in playlist
    assert "#EXT-X-VERSION:7" in playlist
    assert "#EXT-X-TARGETDURATION:7" in playlist
    assert "#EXT-X-MEDIA-SEQUENCE:42" in playlist
    assert '#EXT-X-MAP:URI="init.mp4"' in playlist
    assert "#EXTINF:6.006," in playlist
    assert "#EXTINF:5.972," in playlist
    assert "000042.m4s" in playlist
    assert "#EXT-X-ENDLIST" not in playlist
    assert "#EXT-X-PLAYLIST-TYPE:VOD" not in playlist


def test_vod_media_playlist():
    segments = [
        PlaylistSegment(0, 6.006, "000000.m4s"),
        PlaylistSegment(1, 4.238, "000001.m4s"),
    ]
    playlist = generate_media_playlist(segments, 7, True, True)
    assert "#EXT-X-PLAYLIST-TYPE:VOD" in playlist
    assert "#EXT-X-MEDIA-SEQUENCE:0" in playlist
    assert "#EXT-X-ENDLIST" in playlist


def test_finished_live_playlist_has_endlist():
    segments = [PlaylistSegment(10, 6.0, "000010.m4s")]
    playlist = generate_media_playlist(segments, 7, False, True)
    assert "#EXT-X-ENDLIST" in playlist


def test_empty_playlist_has_minimum_target_duration():
    playlist = generate_media_playlist([], 7, False, False)
    assert "#EXT-X-TARGETDURATION:1" in playlist
    assert "#EXT-X-MEDIA-SEQUENCE:0" in playlist


def test_program_date_time_rendered_in_milliseconds():
    pdt = datetime(2024, 1, 2, 3, 4, 5, 678901, tzinfo=timezone.utc)
    segments = [PlaylistSegment(0, 6.0, "000000.m4s", pdt)]
    playlist = generate_media_playlist(segments, 7, False, False)
    assert "#EXT-X-PROGRAM-DATE-TIME:2024-01-02T03:04:05.678Z\n#EXTINF:6.000,\n" in playlist


def test_storage_paths():
    sid = "abc-123"
    assert segment_path(sid, "high", 42) == "abc-123/high/000042.m4s"
    assert init_segment_path(sid, "high") == "abc-123/high/init.mp4"
    assert media_playlist_path(sid, "high") == "abc-123/high/media.m3u8"
    assert master_playlist_path(sid) == "abc-123/master.m3u8"
    assert segment_filename(1) == "000001.m4s"