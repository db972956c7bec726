from __future__ import annotations

import base64
import json

from lyricnote.lyrics.parser import (
    build_translation_from_krc,
    lines_to_lrc,
    ms_to_lrc_time,
    parse_krc_to_lines,
    parse_lrc_to_lines,
    parse_lyrics_content,
    should_skip_line,
)
from lyricnote.lyrics.script import is_english_line, lyrics_are_mostly_chinese

from conftest import make_lines


def _krc_language_header(rows: list[list[str]]) -> str:
    payload = {"content": [{"type": 1, "lyricContent": rows}]}
    encoded = base64.b64encode(json.dumps(payload, ensure_ascii=False).encode("utf-8")).decode("ascii")
    return f"[language:{encoded}]"


def test_lrc_lines_are_parsed_in_time_order() -> None:
    lrc = "[ti:Song]\n[00:03.50]second\n[00:01.00]first\n[01:02.345]third"
    lines = parse_lrc_to_lines(lrc)
    assert [line.words for line in lines] == ["first", "second", "third"]
    assert [line.start_time_ms for line in lines] == [1000, 3500, 62345]


def test_lrc_multiple_timestamps_expand_to_lines() -> None:
    lines = parse_lrc_to_lines("[00:05.00][00:01.00]chorus\n[00:03.00]verse")
    assert [(line.start_time_ms, line.words) for line in lines] == [
        (1000, "chorus"),
        (3000, "verse"),
        (5000, "chorus"),
    ]


def test_equal_timestamps_keep_source_order() -> None:
    lines = parse_lrc_to_lines("[00:01.00]B\n[00:01.00]A\n[00:01.00]C")
    assert [line.words for line in lines] == ["B", "A", "C"]


def test_malformed_or_empty_input_yields_no_lines() -> None:
    assert parse_lrc_to_lines("") == []
    assert parse_lrc_to_lines("no timestamps here\n[xx:yy]bad") == []
    assert parse_lyrics_content(None) == []
    assert parse_lyrics_content("", "") == []


def test_parsing_is_deterministic() -> None:
    lrc = "[00:02.00]b\n[00:01.00]a\n[00:01.00]a2"
    assert parse_lrc_to_lines(lrc) == parse_lrc_to_lines(lrc)


def test_credit_and_metadata_lines_are_skipped() -> None:
    lrc = "\n".join([
        "[00:00.10]作词：someone",
        "[00:00.20]Composed by someone",
        "[00:00.30]Test Song - Tester",
        "[00:00.40](instrumental)",
        "[00:01.00]real lyric",
    ])
    lines = parse_lrc_to_lines(lrc, title="Test Song", artist="Tester")
    assert [line.words for line in lines] == ["real lyric"]


def test_short_artist_name_does_not_hide_lyrics() -> None:
    assert should_skip_line("Tester", artist="Tester")
    assert not should_skip_line("AB", artist="AB")


def test_simplified_credit_lines_match_traditional_song_info() -> None:
    assert should_skip_line("周杰伦 - 夜曲", title="夜曲", artist="周杰倫")
    assert should_skip_line("夜曲 - 周杰伦", title="夜曲", artist="周杰倫")
    assert should_skip_line("周杰伦", title="夜曲", artist="周杰倫")
    assert not should_skip_line("一群嗜血的螞蟻", title="夜曲", artist="周杰倫")


def test_krc_lines_carry_word_timings() -> None:
    krc = "[1000,2000]<0,500,0>猫<500,300,0>が<800,700,0>好き\n[3000,1000]<0,1000,0>走る"
    lines = parse_krc_to_lines(krc)
    assert [line.words for line in lines] == ["猫が好き", "走る"]
    timings = lines[0].word_timings
    assert [t.text for t in timings] == ["猫", "が", "好き"]
    assert timings[1].start_time_ms == 500
    assert timings[1].duration_ms == 300
    assert lines[0].to_dict()["wordTimings"][2] == {"text": "好き", "startTimeMs": 800, "durationMs": 700}


def test_krc_is_preferred_over_lrc() -> None:
    lines = parse_lyrics_content("[00:01.00]from lrc", "[1000,500]<0,500,0>from krc")
    assert [line.words for line in lines] == ["from krc"]


def test_falls_back_to_lrc_when_krc_has_no_lines() -> None:
    lines = parse_lyrics_content("[00:01.00]from lrc", "[0,0]<0,0,0>")
    assert [line.words for line in lines] == ["from lrc"]


def test_lrc_rendering_falls_back_to_original_words() -> None:
    lines = make_lines("one", "two")
    assert lines_to_lrc(lines, ["uno"]) == "[00:00.00]uno\n[00:01.00]two"
    assert ms_to_lrc_time(61234) == "[01:01.23]"
    assert ms_to_lrc_time(-5) == "[00:00.00]"


def test_translation_from_embedded_krc_header() -> None:
    krc = "\n".join([
        _krc_language_header([["你好"], ["世界"]]),
        "[1000,500]<0,500,0>こんにちは",
        "[3000,500]<0,500,0>世界よ",
    ])
    assert build_translation_from_krc(krc) == "[00:01.00]你好\n[00:03.00]世界"


def test_embedded_translation_is_converted_to_traditional() -> None:
    krc = "\n".join([
        _krc_language_header([["我爱你 这个世界"], [""]]),
        "[1000,500]<0,500,0>愛してる",
        "[3000,500]<0,500,0>这样",
    ])
    assert build_translation_from_krc(krc) == "[00:01.00]我愛你 這個世界\n[00:03.00]這樣"


def test_translation_from_krc_without_header_is_none() -> None:
    assert build_translation_from_krc("[1000,500]<0,500,0>こんにちは") is None
    assert build_translation_from_krc("[language:not-base64!!]\n[1000,500]<0,500,0>x") is None
    assert build_translation_from_krc(None) is None


def test_script_detection() -> None:
    assert is_english_line("Hello, world!")
    assert not is_english_line("猫が好き")
    assert lyrics_are_mostly_chinese(make_lines("我爱你", "月亮代表我的心"))
    assert not lyrics_are_mostly_chinese(make_lines("猫が好き"))
    assert not lyrics_are_mostly_chinese(make_lines("사랑해요", "愛"))
    assert not lyrics_are_mostly_chinese(make_lines("Hello there"))
