"""
歌词解析: LRC / KRC → 有序的 LyricLine 列表

解析结果只由输入决定；格式错误或空输入返回空列表，不抛异常，
调用方应把零行视为"没有歌词"。
"""
import base64
import binascii
import json
import logging
import re
from typing import List, Optional

from lyricnote.lyrics.script import to_simplified, to_traditional
from lyricnote.models.lyrics import LyricLine, WordTiming

logger = logging.getLogger(__name__)

# 需要跳过的署名 / 制作信息行前缀
SKIP_PREFIXES: tuple[str, ...] = (
    "作词", "作曲", "编曲", "制作", "发行", "出品", "监制", "策划", "统筹",
    "录音", "混音", "母带", "和声", "合声", "合声编写", "版权", "吉他", "贝斯", "鼓", "键盘",
    "企划", "词：", "詞：", "词曲：", "詞曲：", "曲", "男：", "女：", "合：", "OP", "SP", "TME享有",
    "Produced", "Composed", "Arranged", "Mixed", "Lyrics", "Keyboard",
    "Guitar", "Bass", "Drum", "Vocal", "Original Publisher", "Sub-publisher",
    "Electric Piano", "Synth by", "Recorded by", "Mixed by", "Mastered by",
    "Produced by", "Composed by", "Digital Editing by", "Mix Assisted by",
    "Mix by", "Mix Engineer", "Background vocals", "Background vocals by",
    "Chorus by", "Percussion by", "String by", "Harp by", "Piano by",
    "Piano Arranged by", "Written by", "Additional Production by",
    "Synthesizer", "Programming", "Background Vocals", "Recording Engineer",
    "Digital Editing", "Sessions", "Original publisher", "All Instruments by",
    "Additional Drums", "Digital editing by",
)

# 艺人名太短时容易误伤正常歌词
_MIN_ARTIST_LENGTH = 3

LRC_TIMESTAMP = re.compile(r"\[(\d{1,2}):(\d{1,2})\.(\d{2,3})\]")
LRC_LINE = re.compile(r"^((?:\[\d{1,2}:\d{1,2}\.\d{2,3}\])+)(.+)$")
KRC_LINE_HEADER = re.compile(r"^\[(\d+),(\d+)\](.*)$")
KRC_WORD_TIMING = re.compile(r"<(\d+),(\d+),\d+>((?:[^<]|<(?!\d))*)")
KRC_WORD_TAG = re.compile(r"<\d+,\d+,\d+>")
KRC_LANGUAGE_HEADER = re.compile(r"^\[language:([^\]]+)\]", re.MULTILINE)


# ==================== 行过滤 ====================


def should_skip_line(text: str, title: Optional[str] = None, artist: Optional[str] = None) -> bool:
    """署名、括号注释、"歌名 - 歌手" 之类的元信息行"""
    trimmed = text.strip()

    if trimmed.startswith(SKIP_PREFIXES):
        return True

    if (trimmed.startswith("(") and trimmed.endswith(")")) or (
        trimmed.startswith("（") and trimmed.endswith("）")
    ):
        return True

    # 歌词里的署名可能是简体，歌曲信息是繁体
    if title and artist:
        for label in (f"{title} - {artist}", f"{artist} - {title}"):
            if trimmed.startswith(label) or trimmed.startswith(to_simplified(label)):
                return True

    if artist and len(artist) >= _MIN_ARTIST_LENGTH and trimmed in (artist, to_simplified(artist)):
        return True

    return False


# ==================== LRC ====================


def _lrc_timestamp_to_ms(minutes: str, seconds: str, fraction: str) -> int:
    ms = int(fraction) * 10 if len(fraction) == 2 else int(fraction)
    return int(minutes) * 60_000 + int(seconds) * 1000 + ms


def parse_lrc_to_lines(lrc: str, title: Optional[str] = None, artist: Optional[str] = None) -> List[LyricLine]:
    """解析 LRC，同一行多个时间标签会展开为多行，按时间稳定排序"""
    lines: List[LyricLine] = []
    for raw in lrc.splitlines():
        match = LRC_LINE.match(raw.strip())
        if not match:
            continue
        words = match.group(2).strip()
        if not words or should_skip_line(words, title, artist):
            continue
        for stamp in LRC_TIMESTAMP.finditer(match.group(1)):
            lines.append(LyricLine(start_time_ms=_lrc_timestamp_to_ms(*stamp.groups()), words=words))

    # sorted 是稳定排序，时间相同的行保持原文顺序
    return sorted(lines, key=lambda line: line.start_time_ms)


def ms_to_lrc_time(ms: int) -> str:
    """毫秒 → [mm:ss.xx]"""
    if ms < 0:
        ms = 0
    total_seconds = ms // 1000
    minutes, seconds = divmod(total_seconds, 60)
    centiseconds = (ms % 1000) // 10
    return f"[{minutes:02d}:{seconds:02d}.{centiseconds:02d}]"


def lines_to_lrc(lines: List[LyricLine], texts: List[str]) -> str:
    """用解析出的时间轴渲染 LRC，缺失的文本回退到原句"""
    return "\n".join(
        f"{ms_to_lrc_time(line.start_time_ms)}{(texts[i] if i < len(texts) else '') or line.words}"
        for i, line in enumerate(lines)
    )


# ==================== KRC ====================


def is_krc_format(text: str) -> bool:
    return bool(KRC_WORD_TAG.search(text)) or bool(re.search(r"^\[\d+,\d+\]", text, re.MULTILINE))


def _parse_krc_content(content: str) -> tuple[str, list[WordTiming]]:
    timings: list[WordTiming] = []
    full_text = ""
    for match in KRC_WORD_TIMING.finditer(content):
        offset, duration, text = match.groups()
        if text:
            timings.append(WordTiming(text=text, start_time_ms=int(offset), duration_ms=int(duration)))
            full_text += text
    if not timings:
        full_text = KRC_WORD_TAG.sub("", content)
    return full_text.strip(), timings


def _iter_krc_rows(krc: str):
    """遍历 KRC 的所有行头匹配的行: (start_ms, text, timings)"""
    normalized = krc.replace("\r\n", "\n").replace("\r", "\n")
    for raw in normalized.split("\n"):
        header = KRC_LINE_HEADER.match(raw)
        if not header:
            continue
        start_ms, _, content = header.groups()
        text, timings = _parse_krc_content(content)
        yield int(start_ms), text, timings


def parse_krc_to_lines(krc: str, title: Optional[str] = None, artist: Optional[str] = None) -> List[LyricLine]:
    lines: List[LyricLine] = []
    for start_ms, text, timings in _iter_krc_rows(krc):
        if not text or should_skip_line(text, title, artist):
            continue
        lines.append(
            LyricLine(
                start_time_ms=start_ms,
                words=text,
                word_timings=tuple(timings) if timings else None,
            )
        )
    return sorted(lines, key=lambda line: line.start_time_ms)


def parse_lyrics_content(
    lrc: Optional[str],
    krc: Optional[str] = None,
    title: Optional[str] = None,
    artist: Optional[str] = None,
) -> List[LyricLine]:
    """
    统一解析入口: 优先 KRC（含逐字时间），解析不出行时回退到 LRC

    :param lrc: LRC 原文
    :param krc: KRC 原文（可选）
    :param title: 歌名，用于过滤元信息行
    :param artist: 歌手，用于过滤元信息行
    :return: 有序歌词行
    """
    if krc and is_krc_format(krc):
        lines = parse_krc_to_lines(krc, title, artist)
        if lines:
            return lines
    if lrc:
        return parse_lrc_to_lines(lrc, title, artist)
    return []


# ==================== KRC 内嵌翻译 ====================


def extract_translation_from_krc(krc: str) -> Optional[List[str]]:
    """取出 KRC [language:...] 头中 type=1（中文翻译）的逐行内容"""
    match = KRC_LANGUAGE_HEADER.search(krc)
    if not match:
        return None
    try:
        data = json.loads(base64.b64decode(match.group(1)).decode("utf-8"))
        for entry in data.get("content", []):
            if entry.get("type") == 1 and entry.get("lyricContent"):
                return ["".join(parts).strip() for parts in entry["lyricContent"]]
    except (binascii.Error, UnicodeDecodeError, ValueError, AttributeError, TypeError) as e:
        logger.warning(f"[歌词] KRC 翻译头解析失败: {e}")
    return None


def build_translation_from_krc(
    krc: Optional[str],
    title: Optional[str] = None,
    artist: Optional[str] = None,
) -> Optional[str]:
    """
    由 KRC 内嵌中文翻译直接生成繁体翻译 LRC，无需调用模型

    翻译按原始 KRC 行号对齐；被过滤的行不输出，翻译缺失或本身是元信息时用原句。
    内嵌翻译是简体，翻译和回退的原句都转成繁体。
    """
    if not krc:
        return None
    embedded = extract_translation_from_krc(krc)
    if not embedded:
        return None

    rows = list(_iter_krc_rows(krc))
    if not rows:
        return None

    output: list[str] = []
    for raw_index, (start_ms, text, _) in enumerate(rows):
        if not text or should_skip_line(text, title, artist):
            continue
        translated = embedded[raw_index] if raw_index < len(embedded) else ""
        if not translated or should_skip_line(translated, title, artist):
            translated = text
        output.append(f"{ms_to_lrc_time(start_ms)}{to_traditional(translated)}")

    return "\n".join(output) if output else None
