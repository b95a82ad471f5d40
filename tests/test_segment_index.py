from streaminfa.profile import RenditionId
from streaminfa.segment_index import SegmentIndex


def _index(rendition=RenditionId.HIGH, window=5):
    return SegmentIndex("stream-1", rendition, window)


def test_add_segments_within_window():
    index = _index(window=5)
    for i in range(5):
        assert index.add_segment(6.0, f"{i:06d}.m4s", 200000) is None
    assert len(index) == 5
    assert index.next_sequence == 5
    assert index.total_segments_produced == 5


def test_eviction_on_window_overflow():
    index = _index(window=3)
    for i in range(3):
        index.add_segment(6.0, f"{i:06d}.m4s", 200000)
    assert len(index) == 3

    evicted = index.add_segment(6.0, "000003.m4s", 200000)
    assert evicted is not None
    assert evicted.sequence == 0
    assert evicted.storage_path == "000000.m4s"
    assert len(index) == 3
    assert index.media_sequence == 1


def test_media_sequence_tracks_window():
    index = _index(RenditionId.LOW, 2)
    index.add_segment(6.0, "000000.m4s", 100)
    assert index.media_sequence == 0
    index.add_segment(6.0, "000001.m4s", 100)
    assert index.media_sequence == 0
    index.add_segment(6.0, "000002.m4s", 100)
    assert index.media_sequence == 1
    index.add_segment(6.0, "000003.m4s", 100)
    assert index.media_sequence == 2


def test_empty_index_media_sequence_is_zero():
    index = _index()
    assert len(index) == 0
    assert index.media_sequence == 0


def test_generate_live_playlist():
    index = _index(window=5)
    for i in range(3):
        index.add_segment(6.006, f"{i:06d}.m4s", 200000)

    playlist = index.generate_playlist(7, False, False)
    assert "#EXTM3U" in playlist
    assert "#EXT-X-VERSION:7" in playlist
    assert "#EXT-X-TARGETDURATION:7" in playlist
    assert "#EXT-X-MEDIA-SEQUENCE:0" in playlist
    assert "#EXTINF:6.006," in playlist
    assert "000000.m4s" in playlist
    assert "000001.m4s" in playlist
    assert "000002.m4s" in playlist
    assert "#EXT-X-ENDLIST" not in playlist
    assert playlist.count("#EXT-X-PROGRAM-DATE-TIME:") == 3


def test_generate_vod_playlist():
    index = _index(RenditionId.MEDIUM, 100)
    index.add_segment(6.006, "000000.m4s", 200000)
    index.add_segment(4.238, "000001.m4s", 150000)

    playlist = index.generate_playlist(7, True, True)
    assert "#EXT-X-PLAYLIST-TYPE:VOD" in playlist
    assert "#EXT-X-ENDLIST" in playlist
    assert "#EXT-X-MEDIA-SEQUENCE:0" in playlist


def test_generate_finished_live_playlist():
    index = _index(window=5)
    index.add_segment(6.0, "000000.m4s", 200000)
    playlist = index.generate_playlist(7, False, True)
    assert "#EXT-X-ENDLIST" in playlist


def test_total_segments_vs_window():
    index = _index(RenditionId.LOW, 2)
    for i in range(10):
        index.add_segment(6.0, f"{i:06d}.m4s", 100)
    assert len(index) == 2
    assert index.total_segments_produced == 10
    assert index.next_sequence == 10
    assert [e.sequence for e in index.segments] == [8, 9]


def test_max_duration_tracked():
    index = _index()
    index.add_segment(4.0, "a", 1)
    index.add_segment(7.5, "b", 1)
    index.add_segment(5.0, "c", 1)
    assert index.max_duration == 7.5