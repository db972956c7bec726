"""
流式文本按行重组
"""
from typing import Optional


class LineReassembler:
    """
    接收任意切分的文本片段，按 \\n 切出完整行

    输出顺序与输入顺序严格一致；不完整的尾部留在缓冲区，直到下一个片段或 flush。
    """

    def __init__(self):
        self._buffer = ""

    def feed(self, chunk: str) -> list[str]:
        """追加片段，返回本次新凑齐的完整行（不含换行符）"""
        if not chunk:
            return []
        self._buffer += chunk
        *complete, self._buffer = self._buffer.split("\n")
        return complete

    def flush(self) -> Optional[str]:
        """流结束: 返回剩余的非空内容作为最后一行"""
        remainder, self._buffer = self._buffer, ""
        return remainder if remainder.strip() else None
