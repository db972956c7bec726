"""
Ruby 标记编解码: <漢字:かんじ>

  - 有读音的片段写成 <base:reading>，其余保持原文
  - 送り仮名留在标注之外: 走る → <走:はし>る，而不是 <走る:はしる>
  - 解码是纯函数且不会抛异常，解析不了的内容退化为无读音的原文段
"""
import re
from typing import List

from lyricnote.lyrics.script import contains_kanji, is_kana
from lyricnote.models.annotation import AnnotationSegment, Segments

RUBY_TOKEN = re.compile(r"<([^:>]+):([^>]+)>")

# 编码时无法安全表示的字符
_RESERVED_BASE = set("<>:")
_RESERVED_READING = set("<>")


def _katakana_to_hiragana(text: str) -> str:
    return "".join(
        chr(ord(c) - 0x60) if "ァ" <= c <= "ヶ" else c
        for c in text
    )


def split_okurigana(segment: AnnotationSegment) -> Segments:
    """
    把 base 首尾与读音重合的假名移到标注之外

    <走る:はしる> → <走:はし> + る
    <お茶:おちゃ> → お + <茶:ちゃ>
    """
    text, reading = segment.text, segment.reading
    if not reading or not contains_kanji(text):
        return [segment]

    head = tail = 0
    # 只剥离假名，且至少给汉字留一个读音字符
    while (
        head < len(text) - 1
        and is_kana(text[head])
        and head < len(reading) - 1
        and _katakana_to_hiragana(text[head]) == _katakana_to_hiragana(reading[head])
    ):
        head += 1
    while (
        tail < len(text) - head - 1
        and is_kana(text[-1 - tail])
        and tail < len(reading) - head - 1
        and _katakana_to_hiragana(text[-1 - tail]) == _katakana_to_hiragana(reading[-1 - tail])
    ):
        tail += 1

    if head == 0 and tail == 0:
        return [segment]

    core_text = text[head:len(text) - tail]
    core_reading = reading[head:len(reading) - tail]
    result: Segments = []
    if head:
        result.append(AnnotationSegment(text=text[:head]))
    result.append(AnnotationSegment(text=core_text, reading=core_reading))
    if tail:
        result.append(AnnotationSegment(text=text[len(text) - tail:]))
    return result


def normalize_segments(segments: Segments) -> Segments:
    """拆出送り仮名并合并相邻的无读音段"""
    result: Segments = []
    for segment in segments:
        for piece in split_okurigana(segment):
            if not piece.text:
                continue
            if not piece.reading and result and not result[-1].reading:
                result[-1] = AnnotationSegment(text=result[-1].text + piece.text)
            else:
                result.append(piece)
    return result


def parse_ruby_markup(line: str) -> Segments:
    """
    解析 ruby 标记为段落列表

    :param line: 例如 "<夜空:よぞら>の<星:ほし>"
    :return: [{"text": "夜空", "reading": "よぞら"}, {"text": "の"}, ...]
    """
    if not isinstance(line, str) or not line:
        return [AnnotationSegment(text=line if isinstance(line, str) else "")]

    segments: Segments = []
    last = 0
    for match in RUBY_TOKEN.finditer(line):
        if match.start() > last:
            segments.append(AnnotationSegment(text=line[last:match.start()]))
        text, reading = match.group(1), match.group(2)
        if text:
            segments.append(AnnotationSegment(text=text, reading=reading))
        last = match.end()

    if last < len(line):
        segments.append(AnnotationSegment(text=line[last:]))

    return segments or [AnnotationSegment(text=line)]


def parse_furigana_markup(line: str) -> Segments:
    """振假名行: 解析后规范化送り仮名"""
    return normalize_segments(parse_ruby_markup(line)) or [AnnotationSegment(text=line)]


def _merge_plain(segments: Segments) -> Segments:
    """相邻的无读音段合并、空段去掉，用于比较解码结果"""
    merged: Segments = []
    for segment in segments:
        if segment.reading is None:
            if not segment.text:
                continue
            if merged and merged[-1].reading is None:
                merged[-1] = AnnotationSegment(text=merged[-1].text + segment.text)
                continue
        merged.append(segment)
    return merged


def encode_ruby_markup(segments: Segments) -> str:
    """
    段落列表 → ruby 标记

    无法安全表示的读音被丢弃，只保留原文；
    原文本身会被解码成标注（例如含有 "<a:b>"）时拒绝编码。

    :raises ValueError: 编码结果无法解码回相同的段落
    """
    parts: List[str] = []
    expected: Segments = []
    for segment in normalize_segments(segments):
        reading = segment.reading
        if (
            reading
            and segment.text
            and not (_RESERVED_BASE & set(segment.text))
            and not (_RESERVED_READING & set(reading))
        ):
            parts.append(f"<{segment.text}:{reading}>")
            expected.append(segment)
        else:
            parts.append(segment.text)
            expected.append(AnnotationSegment(text=segment.text))

    encoded = "".join(parts)
    if _merge_plain(parse_ruby_markup(encoded)) != _merge_plain(expected):
        raise ValueError(f"text cannot be represented as ruby markup: {encoded!r}")
    return encoded


def segments_text(segments: Segments) -> str:
    return "".join(seg.text for seg in segments)


def segments_match_line(segments: Segments, words: str) -> bool:
    """段落拼接后与原句一致（忽略空白）"""
    return re.sub(r"\s+", "", segments_text(segments)) == re.sub(r"\s+", "", words)

