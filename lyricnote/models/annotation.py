"""
标注相关数据模型
"""
from dataclasses import dataclass
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class AnnotationKind(str, Enum):
    """标注类型"""
    TRANSLATION = "translation"
    FURIGANA = "furigana"
    SORAMIMI = "soramimi"

    @property
    def line_key(self) -> str:
        """line / cached 事件里的负载字段名"""
        return self.value

    @property
    def complete_key(self) -> str:
        """complete 事件里的完整数组字段名"""
        return "translations" if self is AnnotationKind.TRANSLATION else self.value


# -------- 内部数据模型 (dataclass) --------

@dataclass(frozen=True)
class AnnotationSegment:
    """一段连续文本及其可选读音；一行的所有段 text 拼接后等于原句"""
    text: str
    reading: Optional[str] = None

    def to_dict(self) -> dict:
        if self.reading:
            return {"text": self.text, "reading": self.reading}
        return {"text": self.text}

    @classmethod
    def from_dict(cls, data: dict) -> "AnnotationSegment":
        text = data.get("text")
        if not isinstance(text, str):
            raise ValueError(f"invalid segment text: {text!r}")
        reading = data.get("reading")
        if not isinstance(reading, str) or not reading:
            reading = None
        return cls(text=text, reading=reading)


Segments = List[AnnotationSegment]


def segments_to_dicts(segments: Segments) -> list[dict]:
    return [seg.to_dict() for seg in segments]


def segments_from_dicts(data: list) -> Segments:
    return [AnnotationSegment.from_dict(item) for item in data]


# -------- API 请求模型 (Pydantic) --------

class SegmentModel(BaseModel):
    """客户端上传的标注段"""
    text: str
    reading: Optional[str] = None

    def to_segment(self) -> AnnotationSegment:
        return AnnotationSegment(text=self.text, reading=self.reading or None)


class TranslateStreamRequest(BaseModel):
    """逐行翻译请求体"""
    language: str = Field(..., min_length=1, max_length=10)   # 目标语言代码
    force: bool = False                                        # 忽略缓存强制重新生成


class FuriganaStreamRequest(BaseModel):
    """逐行振假名请求体"""
    force: bool = False


class SoramimiStreamRequest(BaseModel):
    """逐行空耳请求体"""
    force: bool = False
    target_language: Literal["zh-TW", "en"] = "zh-TW"          # 空耳目标文字
    furigana: Optional[List[List[SegmentModel]]] = None        # 已有振假名，帮助模型确定汉字读音

    def furigana_segments(self) -> Optional[list[Segments]]:
        if self.furigana is None:
            return None
        return [[seg.to_segment() for seg in line] for line in self.furigana]


class ClearCachedDataRequest(BaseModel):
    """清除缓存标注"""
    clear_translations: bool = False
    clear_furigana: bool = False
    clear_soramimi: bool = False
