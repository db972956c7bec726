"""
歌词行数据模型
"""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class WordTiming:
    """KRC 逐字时间"""
    text: str            # 单词/字
    start_time_ms: int   # 相对行首的偏移（毫秒）
    duration_ms: int     # 持续时间（毫秒）

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "startTimeMs": self.start_time_ms,
            "durationMs": self.duration_ms,
        }


@dataclass(frozen=True)
class LyricLine:
    """单行歌词，在列表中的 0-based 位置即为该行的标准索引"""
    start_time_ms: int                                  # 行开始时间（毫秒）
    words: str                                          # 行文本
    word_timings: Optional[tuple[WordTiming, ...]] = None  # KRC 逐字时间

    def to_dict(self) -> dict:
        data = {"startTimeMs": self.start_time_ms, "words": self.words}
        if self.word_timings:
            data["wordTimings"] = [w.to_dict() for w in self.word_timings]
        return data
