from __future__ import annotations

from lyricnote.lyrics.soramimi import (
    clean_cached_soramimi,
    convert_lines_to_annotated_text,
    fill_missing_readings,
    furigana_to_annotated_text,
    parse_soramimi_markup,
)
from lyricnote.models.annotation import AnnotationSegment as Seg

from conftest import make_lines


def test_parses_soramimi_and_keeps_spacing() -> None:
    assert parse_soramimi_markup("<사랑:思浪> <해요:海喲>") == [
        Seg("사랑", "思浪"),
        Seg(" "),
        Seg("해요", "海喲"),
    ]


def test_chinese_readings_drop_hangul_and_kana() -> None:
    assert parse_soramimi_markup("<사랑:思浪사>") == [Seg("사랑", "思浪")]
    assert parse_soramimi_markup("<好き:すき宿期>") == [Seg("好き", "宿期")]


def test_english_readings_are_kept_as_is() -> None:
    assert parse_soramimi_markup("<사랑:saw wrong>", "en") == [Seg("사랑", "saw wrong")]


def test_reading_cleaned_to_nothing_is_demoted_to_plain() -> None:
    assert parse_soramimi_markup("<사랑:사랑>") == [Seg("사랑")]


def test_malformed_fragments_and_delimiters_are_removed() -> None:
    assert parse_soramimi_markup("사랑<思浪>") == [Seg("사랑")]
    assert parse_soramimi_markup("Oh|no <널:念>") == [Seg("Ohno "), Seg("널", "念")]


def test_furigana_hints_are_stripped_from_base_text() -> None:
    assert parse_soramimi_markup("<私(わたし):娃她惜>") == [Seg("私", "娃她惜")]


def test_missing_readings_reuse_same_text_in_line() -> None:
    filled = fill_missing_readings([Seg("愛", "哀"), Seg(" "), Seg("愛")])
    assert filled == [Seg("愛", "哀"), Seg(" "), Seg("愛", "哀")]


def test_missing_kana_readings_use_fallback_map() -> None:
    assert fill_missing_readings([Seg("さくら")]) == [Seg("さくら", "撒酷啦")]
    assert fill_missing_readings([Seg("サクラ")], "en") == [Seg("サクラ", "sa ku ra")]


def test_unfillable_segments_are_kept_plain_not_dropped() -> None:
    segments = [Seg("사랑", "思浪"), Seg("해요")]
    assert fill_missing_readings(segments) == segments


def test_cached_soramimi_is_cleaned() -> None:
    cached = [[Seg("사랑", "思浪사"), Seg("해요", "해요")]]
    assert clean_cached_soramimi(cached, "zh-TW") == [[Seg("사랑", "思浪"), Seg("해요")]]
    assert clean_cached_soramimi(cached, "en") == cached


def test_furigana_context_text() -> None:
    assert furigana_to_annotated_text([Seg("私", "わたし"), Seg("は")]) == "私(わたし)|は"
    lines = make_lines("私は", "Hello")
    furigana = [[Seg("私", "わたし"), Seg("は")], [Seg("Hello")]]
    assert convert_lines_to_annotated_text(lines, furigana) == ["私(わたし)|は", "Hello"]
    assert convert_lines_to_annotated_text(lines, None) == ["私は", "Hello"]
