"""
Prompt 模板模块
定义各标注类型的系统 prompt，以及编号行协议的约定

所有 prompt 都要求模型逐行输出 "N: 内容"，N 为请求中的行号。
"""
from lyricnote.models.annotation import AnnotationKind

# ==================== 语言名映射 ====================

LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "ja": "Japanese (日本語)",
    "ko": "Korean (한국어)",
    "zh-TW": "Traditional Chinese (繁體中文)",
    "zh-CN": "Simplified Chinese (简体中文)",
    "zh": "Chinese (中文)",
    "es": "Spanish (Español)",
    "fr": "French (Français)",
    "de": "German (Deutsch)",
    "pt": "Portuguese (Português)",
    "it": "Italian (Italiano)",
    "ru": "Russian (Русский)",
}


def get_language_name(language: str) -> str:
    return LANGUAGE_NAMES.get(language, language)


# ==================== 翻译 ====================

TRANSLATION_PROMPT_TEMPLATE = """Translate ALL lyrics to {language_name} (one line per input line).

Translate from ANY source language (Korean, Japanese, Chinese, English, etc.) to {language_name}.
If a line is ALREADY in {language_name}, keep it as-is.

Output format: Number each line like "1: translation", "2: translation", etc.
For instrumental lines (e.g., "---"), return the original.
Preserve artistic intent and rhythm. Don't add punctuation at the end of lines.

Example output format:
1: First translated line
2: Second translated line"""


# ==================== 振假名 ====================

FURIGANA_SYSTEM_PROMPT = """Add furigana to kanji using ruby markup format: <text:reading>

Format: <漢字:ふりがな> - text first, then the hiragana reading after a colon
- Plain text without kanji stays as-is
- Keep okurigana outside the markup: <走:はし>る (NOT <走る:はしる>)

Output format: Number each line like "1: annotated line", "2: annotated line", etc.

Example:
Input:
1: 夜空の星
2: 私は走る

Output:
1: <夜空:よぞら>の<星:ほし>
2: <私:わたし>は<走:はし>る"""


# ==================== 空耳 ====================

_SORAMIMI_FORMAT_RULES = """=== OUTPUT FORMAT (MANDATORY) ===

Format: <original_text:{reading_name}>

RULES:
1. EVERY non-English segment MUST be wrapped: <segment:{reading_name}>
2. English words in the original lyrics stay plain (unwrapped)
3. If input has | between words, wrap each segment separately
4. Output one numbered line per input line: "1: ...", "2: ..."
5. NEVER output plain Japanese, Korean or Chinese without the <:> wrapper"""

SORAMIMI_CHINESE_PROMPT = """Create 空耳 (soramimi) - Chinese "misheard lyrics" (繁體字) that SOUND like the Japanese/Korean lyrics while carrying poetic meaning.

Chinese readings must contain ONLY Chinese characters - no Hangul or kana.
For each syllable pick a character that sounds close AND means something
(사랑 → 思浪 "longing waves", 하늘 → 霞嶺 "rosy cloud peaks").
Korean endings with several sounds need all of them: 겠어 → 結梭, never just 結.

EXAMPLE INPUT:
1: Oh|no|시간이|갈수록|널
2: 사랑해요

EXAMPLE OUTPUT:
1: Oh no <시간이:時光裡> <갈수록:割愁錄> <널:念>
2: <사랑해요:思浪海喲>

""" + _SORAMIMI_FORMAT_RULES.format(reading_name="chinese_phonetic_reading")

SORAMIMI_CHINESE_WITH_FURIGANA_PROMPT = """Create 空耳 (soramimi) - Chinese "misheard lyrics" (繁體字) that SOUND like the Japanese/Korean lyrics while carrying poetic meaning.

You are given text with:
- Japanese with furigana in parentheses: 私(わたし) means 私 is read as "わたし"
- Korean words (read as-is)
- Segments separated by | (pipe)

Use the furigana for Japanese pronunciation. Do NOT include the parentheses in the output.
Chinese readings must contain ONLY Chinese characters - no kana or Hangul.

EXAMPLE INPUT:
1: 私(わたし)|は|好き(すき)|だよ
2: 夢(ゆめ)|を|見(み)|た

EXAMPLE OUTPUT:
1: <私:娃她惜><は:哈><好き:宿期><だよ:搭喲>
2: <夢:欲夢><を:喔><見:迷><た:塔>

""" + _SORAMIMI_FORMAT_RULES.format(reading_name="chinese_phonetic_reading")

SORAMIMI_ENGLISH_PROMPT = """Create English "misheard lyrics" (soramimi) - real English words that SOUND like the Japanese/Korean/Chinese lyrics (think "Benny Lava").

EXAMPLE INPUT:
1: 시간이|갈수록|널
2: 사랑해요
3: Fire in the water

EXAMPLE OUTPUT:
1: <시간이:she gone knee> <갈수록:gal sue rock> <널:null>
2: <사랑해요:saw wrong hey yo>
3: Fire in the water

Use spaces between English words for readability.

""" + _SORAMIMI_FORMAT_RULES.format(reading_name="english_phonetic")

SORAMIMI_ENGLISH_WITH_FURIGANA_PROMPT = """Create English "misheard lyrics" (soramimi) - real English words that SOUND like the Japanese/Korean lyrics.

You are given text with:
- Japanese with furigana in parentheses: 私(わたし) means 私 is read as "わたし"
- Korean words (read as-is)
- Segments separated by | (pipe)

Use the furigana for Japanese pronunciation. Do NOT include the parentheses in the output.

EXAMPLE INPUT:
1: 私(わたし)|が|好き(すき)|だよ
2: 사랑|해요

EXAMPLE OUTPUT:
1: <私:what a she><が:ga><好き:ski><だよ:die yo>
2: <사랑:saw wrong><해요:hey yo>

""" + _SORAMIMI_FORMAT_RULES.format(reading_name="english_phonetic")


def get_system_prompt(
    kind: AnnotationKind,
    language: str | None = None,
    has_furigana: bool = False,
) -> str:
    """
    按标注类型 / 目标语言 / 是否已有振假名选择系统 prompt

    :param kind: 标注类型
    :param language: 翻译目标语言，或空耳目标文字 (zh-TW / en)
    :param has_furigana: 空耳是否可借助已有振假名确定读音
    :return: 系统 prompt
    """
    if kind is AnnotationKind.TRANSLATION:
        return TRANSLATION_PROMPT_TEMPLATE.format(language_name=get_language_name(language or "en"))
    if kind is AnnotationKind.FURIGANA:
        return FURIGANA_SYSTEM_PROMPT
    if language == "en":
        return SORAMIMI_ENGLISH_WITH_FURIGANA_PROMPT if has_furigana else SORAMIMI_ENGLISH_PROMPT
    return SORAMIMI_CHINESE_WITH_FURIGANA_PROMPT if has_furigana else SORAMIMI_CHINESE_PROMPT


def build_numbered_payload(texts: list[str]) -> str:
    """["a", "b"] → "1: a\\n2: b"，行号即 wire index（1 起）"""
    return "\n".join(f"{i}: {text}" for i, text in enumerate(texts, start=1))
