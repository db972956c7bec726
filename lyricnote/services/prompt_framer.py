"""
Prompt 组装

只把真正需要模型处理的行编号发送出去:
  - 翻译: 所有行
  - 振假名: 含汉字的行
  - 空耳: 非英文行
其余行在本地直接得出结果。wire index（1 起）→ 原始行号（0 起）的映射
在整个会话期间保留。
"""
from dataclasses import dataclass, field
from typing import Optional, Union

from lyricnote.config import settings
from lyricnote.llm.prompts import build_numbered_payload, get_system_prompt
from lyricnote.lyrics.script import contains_kanji, is_english_line
from lyricnote.lyrics.soramimi import convert_lines_to_annotated_text
from lyricnote.models.annotation import AnnotationKind, AnnotationSegment, Segments
from lyricnote.models.lyrics import LyricLine

LinePayload = Union[str, Segments]


@dataclass
class PromptFrame:
    """一次标注请求发给模型的全部内容，以及还原结果所需的映射"""
    kind: AnnotationKind
    language: Optional[str]
    lines: list[LyricLine]
    system_prompt: str
    wire_texts: list[str] = field(default_factory=list)       # 按 wire 顺序发送的文本
    wire_map: dict[int, int] = field(default_factory=dict)    # wire index → 原始行号
    local_indices: list[int] = field(default_factory=list)    # 本地即可得出结果的行
    fallbacks: list[LinePayload] = field(default_factory=list)
    temperature: float = 0.7

    @property
    def total_lines(self) -> int:
        return len(self.lines)

    @property
    def needs_model(self) -> bool:
        return bool(self.wire_map)

    @property
    def user_payload(self) -> str:
        return build_numbered_payload(self.wire_texts)

    def resolve(self, wire_index: int) -> Optional[int]:
        """wire index → 原始行号，越界返回 None"""
        return self.wire_map.get(wire_index)


def _plain_fallbacks(lines: list[LyricLine]) -> list[LinePayload]:
    return [[AnnotationSegment(text=line.words)] for line in lines]


def _assign(frame: PromptFrame, original_index: int, text: str) -> None:
    wire_index = len(frame.wire_texts) + 1
    frame.wire_texts.append(text)
    frame.wire_map[wire_index] = original_index


def frame_translation(lines: list[LyricLine], language: str) -> PromptFrame:
    frame = PromptFrame(
        kind=AnnotationKind.TRANSLATION,
        language=language,
        lines=lines,
        system_prompt=get_system_prompt(AnnotationKind.TRANSLATION, language),
        fallbacks=[line.words for line in lines],
        temperature=settings.translation_temperature,
    )
    for index, line in enumerate(lines):
        _assign(frame, index, line.words)
    return frame


def frame_furigana(lines: list[LyricLine]) -> PromptFrame:
    frame = PromptFrame(
        kind=AnnotationKind.FURIGANA,
        language=None,
        lines=lines,
        system_prompt=get_system_prompt(AnnotationKind.FURIGANA),
        fallbacks=_plain_fallbacks(lines),
        temperature=settings.furigana_temperature,
    )
    for index, line in enumerate(lines):
        if contains_kanji(line.words):
            _assign(frame, index, line.words)
        else:
            frame.local_indices.append(index)
    return frame


def frame_soramimi(
    lines: list[LyricLine],
    target_language: str = "zh-TW",
    furigana: Optional[list[Segments]] = None,
) -> PromptFrame:
    """
    空耳 prompt

    有振假名时发送 "私(わたし)|は" 形式；否则 KRC 逐字时间用 | 标出词边界

    :param lines: 歌词行
    :param target_language: zh-TW / en
    :param furigana: 客户端提供的振假名（与 lines 按行对齐）
    """
    has_furigana = bool(furigana) and any(seg.reading for line in furigana for seg in line)
    frame = PromptFrame(
        kind=AnnotationKind.SORAMIMI,
        language=target_language,
        lines=lines,
        system_prompt=get_system_prompt(AnnotationKind.SORAMIMI, target_language, has_furigana),
        fallbacks=_plain_fallbacks(lines),
        temperature=settings.soramimi_temperature,
    )
    annotated = convert_lines_to_annotated_text(lines, furigana) if has_furigana else None

    for index, line in enumerate(lines):
        text = line.words.strip()
        if not text or is_english_line(text):
            frame.local_indices.append(index)
            continue
        if annotated is not None:
            _assign(frame, index, annotated[index])
        elif line.word_timings:
            _assign(frame, index, "|".join(w.text for w in line.word_timings))
        else:
            _assign(frame, index, line.words)
    return frame
