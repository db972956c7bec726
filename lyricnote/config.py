"""
LyricNote 配置模块
从 .env 文件加载所有配置项，提供全局单例 settings
"""
import os
from pathlib import Path
from dataclasses import dataclass, field
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent


def _parse_auth_tokens(raw: str) -> dict[str, str]:
    """解析 AUTH_TOKENS: "alice:tok1,bob:tok2" -> {"alice": "tok1", ...}"""
    tokens: dict[str, str] = {}
    for item in raw.split(","):
        username, sep, token = item.strip().partition(":")
        if sep and username and token:
            tokens[username.strip()] = token.strip()
    return tokens


@dataclass
class Settings:
    """全局配置"""

    # 服务
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8900"))

    # LLM
    llm_api_key: str = os.getenv("LLM_API_KEY", "")
    llm_base_url: str = os.getenv("LLM_BASE_URL", "https://api.openai.com/v1")
    llm_model: str = os.getenv("LLM_MODEL", "gpt-4o-mini")

    # 各标注类型的采样温度
    translation_temperature: float = float(os.getenv("TRANSLATION_TEMPERATURE", "0.3"))
    furigana_temperature: float = float(os.getenv("FURIGANA_TEMPERATURE", "0.1"))
    soramimi_temperature: float = float(os.getenv("SORAMIMI_TEMPERATURE", "0.7"))

    # 权限: 管理员可修改任意歌曲
    admin_username: str = os.getenv("ADMIN_USERNAME", "admin")
    auth_tokens: dict[str, str] = field(
        default_factory=lambda: _parse_auth_tokens(os.getenv("AUTH_TOKENS", ""))
    )

    # 存储路径
    data_dir: Path = BASE_DIR / os.getenv("DATA_DIR", "data")

    def __post_init__(self):
        self.data_dir.mkdir(parents=True, exist_ok=True)


settings = Settings()
