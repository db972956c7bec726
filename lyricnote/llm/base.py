"""
LLM 抽象基类
"""
from abc import ABC, abstractmethod
from typing import AsyncIterator


class LLMStreamer(ABC):
    """流式文本生成器基类"""

    @abstractmethod
    def stream_text(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
    ) -> AsyncIterator[str]:
        """
        以任意大小的文本片段流式返回模型输出

        :param system_prompt: 系统 prompt
        :param user_prompt: 用户 prompt（编号歌词行）
        :param temperature: 采样温度
        :return: 文本片段的异步迭代器，连接中断时抛出 UpstreamStreamError
        """
        ...
