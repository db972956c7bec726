"""
流式 LLM 实现

  OpenAILLM     — OpenAI Chat Completions 兼容接口（DeepSeek / 通义千问 / Ollama 等）
  AnthropicLLM  — Anthropic Messages 兼容接口（含 MiniMax 的 Anthropic 兼容模式）

两者都只负责把模型输出以文本片段流式交出，连接异常统一转为 UpstreamStreamError。
"""
import logging
from typing import AsyncIterator

import anthropic
from openai import AsyncOpenAI

from lyricnote.errors import UpstreamStreamError
from lyricnote.llm.base import LLMStreamer

logger = logging.getLogger(__name__)

# 走 Anthropic Messages 协议的 base_url 特征
ANTHROPIC_URL_MARKERS = ("minimaxi.com/anthropic", "api.anthropic.com")


class OpenAILLM(LLMStreamer):
    """chat.completions + stream=True，逐个交出 delta.content"""

    def __init__(self, api_key: str, base_url: str = "https://api.openai.com/v1", model: str = "gpt-4o-mini"):
        self.model = model
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        logger.info(f"[LLM] 已创建 OpenAI 兼容客户端: model={model}, base_url={base_url}")

    async def stream_text(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
    ) -> AsyncIterator[str]:
        logger.info(f"[LLM] 请求流式输出: model={self.model}, temperature={temperature}, chars={len(user_prompt)}")

        try:
            stream = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                if delta is not None and delta.content:
                    yield delta.content
        except Exception as e:
            logger.error(f"[LLM] 流式输出中断: {e}")
            raise UpstreamStreamError(str(e) or "Model stream failed") from e

        logger.info("[LLM] 流式输出结束")


class AnthropicLLM(LLMStreamer):
    """messages.stream，逐个交出 text_stream 中的文本"""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.anthropic.com",
        model: str = "MiniMax-M2.5",
        max_tokens: int = 8192,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.client = anthropic.AsyncAnthropic(api_key=api_key, base_url=base_url)
        logger.info(f"[LLM] 已创建 Anthropic 兼容客户端: model={model}, base_url={base_url}")

    async def stream_text(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
    ) -> AsyncIterator[str]:
        logger.info(f"[LLM] 请求流式输出: model={self.model}, temperature={temperature}, chars={len(user_prompt)}")

        try:
            async with self.client.messages.stream(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                temperature=temperature,
            ) as stream:
                async for text in stream.text_stream:
                    if text:
                        yield text
        except Exception as e:
            logger.error(f"[LLM] 流式输出中断: {e}")
            raise UpstreamStreamError(str(e) or "Model stream failed") from e

        logger.info("[LLM] 流式输出结束")


def create_llm(api_key: str, base_url: str, model: str) -> LLMStreamer:
    """按 base_url 选择协议: Anthropic 兼容端点用 AnthropicLLM，其余用 OpenAILLM"""
    if any(marker in base_url for marker in ANTHROPIC_URL_MARKERS):
        return AnthropicLLM(api_key=api_key, base_url=base_url, model=model)
    return OpenAILLM(api_key=api_key, base_url=base_url, model=model)
