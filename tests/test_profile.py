import pytest

from streaminfa.profile import (
    RenditionId,
    TranscodeProfile,
    bandwidth,
    codec_string,
    codecs_attribute,
    select_renditions,
)


@pytest.fixture
def ladder():
    return [
        TranscodeProfile("high", 1920, 1080, 3500, 128, "high", "4.1", "medium"),
        TranscodeProfile("medium", 1280, 720, 2000, 128, "main", "3.1", "medium"),
        TranscodeProfile("low", 854, 480, 1000, 96, "main", "3.0", "medium"),
    ]


def test_select_all_renditions_for_1080p(ladder):
    selected = select_renditions(1920, 1080, ladder)
    assert [r.id for r in selected] == [RenditionId.HIGH, RenditionId.MEDIUM, RenditionId.LOW]


def test_select_renditions_for_720p(ladder):
    selected = select_renditions(1280, 720, ladder)
    assert [r.id for r in selected] == [RenditionId.MEDIUM, RenditionId.LOW]


def test_select_renditions_for_480p(ladder):
    selected = select_renditions(854, 480, ladder)
    assert [r.id for r in selected] == [RenditionId.LOW]


def test_select_renditions_below_minimum(ladder):
    selected = select_renditions(640, 360, ladder)
    assert len(selected) == 1
    only = selected[0]
    assert only.id is RenditionId.SOURCE
    assert (only.width, only.height) == (640, 360)
    assert only.video_bitrate_kbps == 1000
    assert only.audio_bitrate_kbps == 96
    assert only.level == "3.0"


def test_select_renditions_empty_ladder():
    assert select_renditions(640, 360, []) == []


def test_selected_rendition_carries_parameters(ladder):
    high = select_renditions(1920, 1080, ladder)[0]
    assert high.video_bitrate_kbps == 3500
    assert high.profile == "high"
    assert high.preset == "medium"


def test_unknown_rung_name_maps_to_source():
    rungs = [TranscodeProfile("ultra", 100, 100, 10, 10, "main", "3.0", "fast")]
    assert select_renditions(200, 200, rungs)[0].id is RenditionId.SOURCE


def test_rendition_id_display(ladder):
    selected = select_renditions(1920, 1080, ladder)
    assert [str(r.id) for r in selected] == ["high", "medium", "low"]
    assert f"{selected[2].id}/media.m3u8" == "low/media.m3u8"
    assert RenditionId("high") is RenditionId.HIGH


def test_codec_string_high():
    assert codec_string("high", "4.1") == "avc1.640029"


def test_codec_string_main_31():
    assert codec_string("main", "3.1") == "avc1.4d001f"


def test_codec_string_main_30():
    assert codec_string("main", "3.0") == "avc1.4d001e"


def test_codec_string_baseline():
    assert codec_string("baseline", "3.0") == "avc1.42001e"


def test_codec_string_unknown_profile_defaults_to_main():
    assert codec_string("weird", "3.1") == "avc1.4d001f"


@pytest.mark.parametrize(
    "level, expected",
    [("4", "avc1.640028"), ("abc", "avc1.64001e"), ("1.2.3", "avc1.64001f"), ("x.y", "avc1.64001e")],
)
def test_codec_string_level_fallbacks(level, expected):
    assert codec_string("high", level) == expected


def test_codecs_attribute_with_audio():
    assert codecs_attribute("high", "4.1", True) == "avc1.640029,mp4a.40.2"


def test_codecs_attribute_without_audio():
    assert codecs_attribute("main", "3.1", False) == "avc1.4d001f"


def test_bandwidth_calculation():
    assert bandwidth(3500, 128) == 3990800