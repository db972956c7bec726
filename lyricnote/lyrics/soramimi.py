"""
空耳 (soramimi) 标记解析与补全

模型输出形如 "<사랑:思浪> <해요:海喲>"，这里负责:
  - 清理模型的格式错误（无冒号的 <读音>、| 分隔符、括号里的振假名提示）
  - 中文空耳的读音只保留汉字
  - 缺失读音的段按上下文补全，补不出来就保留为无读音原文，绝不丢弃
"""
import re
from typing import Optional

from lyricnote.lyrics.ruby import RUBY_TOKEN
from lyricnote.lyrics.script import HAN_EXTENDED_PATTERN, is_kana
from lyricnote.models.annotation import AnnotationSegment, Segments
from lyricnote.models.lyrics import LyricLine

_MALFORMED_READING = re.compile(r"<([^:>]+)>(?!:)")
_FURIGANA_HINT = re.compile(r"\([\u3040-\u309f\u30a0-\u30ff]+\)")
_NON_CHINESE_READING = re.compile(r"[\uac00-\ud7af\u1100-\u11ff\u3130-\u318f\u3040-\u309f\u30a0-\u30ff]")

# 模型漏标假名时的兜底映射
KANA_TO_CHINESE: dict[str, str] = {
    "あ": "阿", "い": "衣", "う": "屋", "え": "欸", "お": "喔",
    "か": "咖", "き": "奇", "く": "酷", "け": "給", "こ": "可",
    "さ": "撒", "し": "詩", "す": "蘇", "せ": "些", "そ": "搜",
    "た": "她", "ち": "吃", "つ": "此", "て": "貼", "と": "頭",
    "な": "娜", "に": "妮", "ぬ": "奴", "ね": "內", "の": "諾",
    "は": "哈", "ひ": "嘻", "ふ": "夫", "へ": "嘿", "ほ": "火",
    "ま": "媽", "み": "咪", "む": "木", "め": "沒", "も": "摸",
    "や": "壓", "ゆ": "玉", "よ": "喲",
    "ら": "啦", "り": "里", "る": "嚕", "れ": "咧", "ろ": "囉",
    "わ": "哇", "を": "喔", "ん": "嗯",
    "が": "嘎", "ぎ": "奇", "ぐ": "姑", "げ": "給", "ご": "哥",
    "ざ": "砸", "じ": "吉", "ず": "祖", "ぜ": "賊", "ぞ": "作",
    "だ": "打", "ぢ": "吉", "づ": "祖", "で": "得", "ど": "多",
    "ば": "爸", "び": "比", "ぶ": "布", "べ": "貝", "ぼ": "寶",
    "ぱ": "啪", "ぴ": "批", "ぷ": "噗", "ぺ": "配", "ぽ": "坡",
    "ゃ": "壓", "ゅ": "玉", "ょ": "喲", "っ": "～", "ー": "～",
}

KANA_TO_ROMAJI: dict[str, str] = {
    "あ": "a", "い": "i", "う": "u", "え": "e", "お": "o",
    "か": "ka", "き": "ki", "く": "ku", "け": "ke", "こ": "ko",
    "さ": "sa", "し": "shi", "す": "su", "せ": "se", "そ": "so",
    "た": "ta", "ち": "chi", "つ": "tsu", "て": "te", "と": "to",
    "な": "na", "に": "ni", "ぬ": "nu", "ね": "ne", "の": "no",
    "は": "ha", "ひ": "hi", "ふ": "fu", "へ": "he", "ほ": "ho",
    "ま": "ma", "み": "mi", "む": "mu", "め": "me", "も": "mo",
    "や": "ya", "ゆ": "yu", "よ": "yo",
    "ら": "ra", "り": "ri", "る": "ru", "れ": "re", "ろ": "ro",
    "わ": "wa", "を": "o", "ん": "n",
    "が": "ga", "ぎ": "gi", "ぐ": "gu", "げ": "ge", "ご": "go",
    "ざ": "za", "じ": "ji", "ず": "zu", "ぜ": "ze", "ぞ": "zo",
    "だ": "da", "ぢ": "ji", "づ": "zu", "で": "de", "ど": "do",
    "ば": "ba", "び": "bi", "ぶ": "bu", "べ": "be", "ぼ": "bo",
    "ぱ": "pa", "ぴ": "pi", "ぷ": "pu", "ぺ": "pe", "ぽ": "po",
    "ゃ": "ya", "ゅ": "yu", "ょ": "yo", "っ": "-", "ー": "-",
}


def _to_hiragana(char: str) -> str:
    if "ァ" <= char <= "ヶ":
        return chr(ord(char) - 0x60)
    return char


def strip_furigana_annotation(text: str) -> str:
    """耳(みみ) → 耳"""
    return _FURIGANA_HINT.sub("", text)


def clean_soramimi_reading(reading: str) -> str:
    """中文空耳读音里混入的谚文 / 假名直接去掉"""
    return _NON_CHINESE_READING.sub("", reading)


def _clean_ai_output(line: str) -> str:
    """去掉没有 base:reading 结构、只含汉字的 <读音>"""
    def _replace(match: re.Match) -> str:
        content = match.group(1)
        if HAN_EXTENDED_PATTERN.search(content):
            return ""
        return match.group(0)

    return _MALFORMED_READING.sub(_replace, line)


def _clean_plain(text: str) -> str:
    return strip_furigana_annotation(text.replace("|", ""))


def parse_soramimi_markup(line: str, target_language: str = "zh-TW") -> Segments:
    """
    解析空耳标记，纯文本原样保留（包括空格）

    :param line: 模型输出的一行内容（已去掉行号）
    :param target_language: zh-TW 时读音只保留汉字
    """
    cleaned = _clean_ai_output(line)
    segments: Segments = []
    last = 0

    for match in RUBY_TOKEN.finditer(cleaned):
        if match.start() > last:
            before = _clean_plain(cleaned[last:match.start()])
            if before:
                segments.append(AnnotationSegment(text=before))

        text = strip_furigana_annotation(match.group(1))
        reading = match.group(2).strip()
        if target_language == "zh-TW":
            reading = clean_soramimi_reading(reading)
        if text:
            segments.append(AnnotationSegment(text=text, reading=reading or None))
        last = match.end()

    if last < len(cleaned):
        remaining = _clean_plain(cleaned[last:])
        if remaining:
            segments.append(AnnotationSegment(text=remaining))

    return segments or [AnnotationSegment(text=line)]


def _kana_fallback(text: str, target_language: str) -> Optional[str]:
    """逐字映射假名；一个假名都没有时返回 None"""
    table = KANA_TO_ROMAJI if target_language == "en" else KANA_TO_CHINESE
    pieces: list[str] = []
    has_kana = False
    for char in text:
        if is_kana(char):
            mapped = table.get(_to_hiragana(char))
            if mapped:
                has_kana = True
                pieces.append(mapped)
                continue
        pieces.append(char)
    if not has_kana:
        return None
    return (" " if target_language == "en" else "").join(pieces)


def fill_missing_readings(segments: Segments, target_language: str = "zh-TW") -> Segments:
    """
    为缺失读音的段补全读音

    1. 同一行里相同原文已有读音 → 直接复用
    2. 含假名 → 逐字兜底映射
    3. 都不行 → 保留为无读音原文（不丢弃，保证与原句对齐）
    """
    known: dict[str, str] = {
        seg.text.strip(): seg.reading for seg in segments if seg.reading and seg.text.strip()
    }
    filled: Segments = []
    for seg in segments:
        if seg.reading or not seg.text.strip():
            filled.append(seg)
            continue
        reading = known.get(seg.text.strip()) or _kana_fallback(seg.text, target_language)
        filled.append(AnnotationSegment(text=seg.text, reading=reading) if reading else seg)
    return filled


def clean_cached_soramimi(lines: list[Segments], target_language: str) -> list[Segments]:
    """缓存的空耳在返回前做同样的读音清理，清空的读音降级为原文段"""
    if target_language != "zh-TW":
        return lines
    cleaned: list[Segments] = []
    for segments in lines:
        row: Segments = []
        for seg in segments:
            if seg.reading:
                reading = clean_soramimi_reading(seg.reading)
                row.append(AnnotationSegment(text=seg.text, reading=reading or None))
            else:
                row.append(seg)
        cleaned.append(row)
    return cleaned


# ==================== 振假名 → 带注音文本 ====================


def furigana_to_annotated_text(segments: Segments) -> str:
    """[{私, わたし}, {は}] → "私(わたし)|は"，| 标出词边界"""
    return "|".join(f"{seg.text}({seg.reading})" if seg.reading else seg.text for seg in segments)


def convert_lines_to_annotated_text(
    lines: list[LyricLine],
    furigana: Optional[list[Segments]],
) -> list[str]:
    """有振假名读音的行转换为带注音文本，其余行用原句"""
    annotated: list[str] = []
    for index, line in enumerate(lines):
        segments = furigana[index] if furigana and index < len(furigana) else None
        if segments and any(seg.reading for seg in segments):
            annotated.append(furigana_to_annotated_text(segments))
        else:
            annotated.append(line.words)
    return annotated
