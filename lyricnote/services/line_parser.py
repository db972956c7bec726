"""
编号行解析: "N: 内容" → (原始行号, 标注结果)

  - 不符合格式的行是模型的闲聊，静默丢弃
  - 越界或重复的 wire index 忽略
  - 翻译直接使用内容；振假名 / 空耳经过 ruby 标记解码
"""
import logging
import re
from dataclasses import dataclass
from typing import Optional

from lyricnote.lyrics.ruby import parse_furigana_markup, segments_match_line
from lyricnote.lyrics.soramimi import fill_missing_readings, parse_soramimi_markup
from lyricnote.models.annotation import AnnotationKind
from lyricnote.services.prompt_framer import LinePayload, PromptFrame

logger = logging.getLogger(__name__)

NUMBERED_LINE = re.compile(r"^(\d+)[:.\s]\s*(.*)$")


def parse_numbered_line(line: str) -> Optional[tuple[int, str]]:
    """解析 "3: 内容" → (3, "内容")；不匹配返回 None"""
    match = NUMBERED_LINE.match(line.strip())
    if not match:
        return None
    return int(match.group(1)), match.group(2).strip()


@dataclass(frozen=True)
class LineResult:
    wire_index: int      # 模型输出的行号（1 起）
    line_index: int      # 原始行号（0 起）
    payload: LinePayload


class LineResultParser:
    """把重组后的完整行解析为 LineResult"""

    def __init__(self, frame: PromptFrame):
        self.frame = frame
        self._seen: set[int] = set()

    def parse(self, line: str) -> Optional[LineResult]:
        parsed = parse_numbered_line(line)
        if parsed is None:
            if line.strip():
                logger.debug(f"[Parser] 丢弃非编号行: {line.strip()[:80]}")
            return None

        wire_index, content = parsed
        if not content:
            return None

        line_index = self.frame.resolve(wire_index)
        if line_index is None:
            logger.debug(f"[Parser] 忽略越界行号: {wire_index}")
            return None
        if wire_index in self._seen:
            logger.debug(f"[Parser] 忽略重复行号: {wire_index}")
            return None

        payload = self._decode(line_index, content)
        if payload is None:
            return None

        self._seen.add(wire_index)
        return LineResult(wire_index=wire_index, line_index=line_index, payload=payload)

    def _decode(self, line_index: int, content: str) -> Optional[LinePayload]:
        kind = self.frame.kind
        if kind is AnnotationKind.TRANSLATION:
            return content

        if kind is AnnotationKind.FURIGANA:
            segments = parse_furigana_markup(content)
            words = self.frame.lines[line_index].words
            # 与原句对不上的结果会让逐字显示错位，保留兜底
            if not segments_match_line(segments, words):
                logger.debug(f"[Parser] 振假名与原句不一致，保留原句: line={line_index}")
                return None
            return segments

        language = self.frame.language or "zh-TW"
        segments = fill_missing_readings(parse_soramimi_markup(content, language), language)
        return segments or None
