"""
文字体系检测: 汉字 / 假名 / 谚文 / 纯英文，以及简繁转换
"""
import re
import unicodedata
from typing import Iterable

from opencc import OpenCC

from lyricnote.models.lyrics import LyricLine

KANJI_PATTERN = re.compile(r"[\u4e00-\u9fff]")
KANA_PATTERN = re.compile(r"[\u3040-\u309f\u30a0-\u30ff]")
HANGUL_PATTERN = re.compile(r"[\uac00-\ud7af\u1100-\u11ff\u3130-\u318f]")
HAN_EXTENDED_PATTERN = re.compile(r"[\u4e00-\u9fff\u3400-\u4dbf]")

# 空耳无需模型处理的行: 英文字母、数字与常见标点
ENGLISH_LINE_PATTERN = re.compile(r"^[a-zA-Z0-9\s.,!?'\"()\-:;]+$")


def contains_kanji(text: str) -> bool:
    return bool(KANJI_PATTERN.search(text))


def is_kana(char: str) -> bool:
    return bool(KANA_PATTERN.fullmatch(char))


def is_english_line(text: str) -> bool:
    return bool(ENGLISH_LINE_PATTERN.match(text))


def lyrics_are_mostly_chinese(lines: Iterable[LyricLine]) -> bool:
    """
    判断歌词是否主要为中文（用于跳过中文空耳）

    - 没有汉字 → 不是中文
    - 出现任何假名 → 日文
    - 谚文多于汉字，或超过汉字的 10% → 韩文
    """
    hangul = kana = han = 0
    for line in lines:
        for char in line.words:
            if char.isspace() or unicodedata.category(char).startswith("P"):
                continue
            if HANGUL_PATTERN.match(char):
                hangul += 1
            elif KANA_PATTERN.match(char):
                kana += 1
            elif HAN_EXTENDED_PATTERN.match(char):
                han += 1

    if han == 0 or kana > 0:
        return False
    if hangul > han:
        return False
    if hangul > 0 and hangul > han * 0.1:
        return False
    return True


def is_chinese_traditional(language: str) -> bool:
    return language.lower() in {
        "zh-tw",
        "zh-hant",
        "chinese traditional",
        "traditional chinese",
        "繁體中文",
    }


# ==================== 简繁转换 ====================

# 酷狗 KRC 的内嵌翻译与歌曲信息均为简体，台湾用字输出
_SIMPLIFIED_TO_TRADITIONAL = OpenCC("s2tw")
_TRADITIONAL_TO_SIMPLIFIED = OpenCC("tw2s")


def to_traditional(text: str) -> str:
    return _SIMPLIFIED_TO_TRADITIONAL.convert(text) if text else text


def to_simplified(text: str) -> str:
    return _TRADITIONAL_TO_SIMPLIFIED.convert(text) if text else text
