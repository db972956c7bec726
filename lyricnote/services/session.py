"""
标注会话状态机

    IDLE → STARTED → STREAMING → COMPLETED
                             ↘ FAILED

每个请求一个会话，只存在于生成期间，不落库。
所有行先用兜底结果占位；模型没确认的行保持兜底，不会阻塞等待某一行。
"""
import logging
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Optional

from lyricnote.models.annotation import AnnotationKind, segments_to_dicts
from lyricnote.services.line_parser import LineResult, LineResultParser
from lyricnote.services.prompt_framer import LinePayload, PromptFrame
from lyricnote.services.stream import LineReassembler

logger = logging.getLogger(__name__)

EmitFn = Callable[[dict], None]
StreamFactory = Callable[[], AsyncIterator[str]]
CompleteHook = Callable[[list[LinePayload]], Awaitable[None]]

_START_MESSAGES = {
    AnnotationKind.TRANSLATION: "Translation started",
    AnnotationKind.FURIGANA: "Furigana generation started",
    AnnotationKind.SORAMIMI: "AI processing started",
}

_FAILURE_MESSAGES = {
    AnnotationKind.TRANSLATION: "Translation failed",
    AnnotationKind.FURIGANA: "Furigana generation failed",
    AnnotationKind.SORAMIMI: "Soramimi generation failed",
}


class SessionState(str, Enum):
    IDLE = "idle"
    STARTED = "started"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


def to_wire(payload: LinePayload):
    """行结果 → SSE 负载"""
    if isinstance(payload, str):
        return payload
    return segments_to_dicts(payload)


def compute_progress(completed: int, total: int) -> int:
    """完成百分比，四舍五入到整数"""
    if total <= 0:
        return 100
    return int(completed * 100 / total + 0.5)


class AnnotationSession:
    """
    一次逐行标注的编排

    :param frame: 发给模型的 prompt 及行号映射
    :param emit: 事件回调，每个事件是一个带 type 字段的 dict
    """

    def __init__(self, frame: PromptFrame, emit: EmitFn):
        self.frame = frame
        self._emit = emit
        self.state = SessionState.IDLE
        self.total_lines = frame.total_lines
        self.completed_lines = 0
        self.all_results: list[LinePayload] = list(frame.fallbacks)
        self._reassembler = LineReassembler()
        self._parser = LineResultParser(frame)

    @property
    def kind(self) -> AnnotationKind:
        return self.frame.kind

    # ==================== 状态迁移 ====================

    def start(self) -> None:
        """IDLE → STARTED: 发出 start 事件，本地可得的行立即发出"""
        self._transition(SessionState.IDLE, SessionState.STARTED)
        logger.info(
            f"[Session] 开始: kind={self.kind.value}, language={self.frame.language}, "
            f"total={self.total_lines}, to_model={len(self.frame.wire_map)}"
        )
        self._emit({
            "type": "start",
            "totalLines": self.total_lines,
            "message": _START_MESSAGES[self.kind],
        })
        for index in self.frame.local_indices:
            self._accept(index, self.all_results[index])

    def feed(self, chunk: str) -> None:
        """STARTED → STREAMING（首个片段）；处理片段中凑齐的每一行"""
        if self.state is SessionState.STARTED:
            self.state = SessionState.STREAMING
        elif self.state is not SessionState.STREAMING:
            raise RuntimeError(f"cannot feed session in state {self.state.value}")
        for line in self._reassembler.feed(chunk):
            self._handle_line(line)

    def finish(self) -> list[LinePayload]:
        """上游结束: 处理缓冲区剩余内容，未确认的行保持兜底"""
        if self.state not in (SessionState.STARTED, SessionState.STREAMING):
            raise RuntimeError(f"cannot finish session in state {self.state.value}")
        remainder = self._reassembler.flush()
        if remainder is not None:
            self._handle_line(remainder)
        self.state = SessionState.COMPLETED
        logger.info(
            f"[Session] 完成: kind={self.kind.value}, "
            f"success={self.completed_lines}/{self.total_lines}"
        )
        return self.all_results

    def fail(self, error: BaseException) -> None:
        """上游出错: 发出 error 事件，不落库"""
        self.state = SessionState.FAILED
        message = str(getattr(error, "message", "") or error) or _FAILURE_MESSAGES[self.kind]
        logger.error(f"[Session] 失败: kind={self.kind.value}, error={message}")
        self._emit({"type": "error", "error": message})

    def complete_event(self) -> dict:
        return {
            "type": "complete",
            "totalLines": self.total_lines,
            "successCount": self.completed_lines,
            self.kind.complete_key: [to_wire(payload) for payload in self.all_results],
            "success": True,
        }

    # ==================== 主流程 ====================

    async def run(
        self,
        stream_factory: Optional[StreamFactory],
        on_complete: Optional[CompleteHook] = None,
    ) -> bool:
        """
        驱动整个会话

        :param stream_factory: 返回模型文本片段流；没有需要模型处理的行时可为 None
        :param on_complete: 完成后、发出 complete 事件前调用（落库）
        :return: 是否成功完成
        """
        self.start()

        if stream_factory is not None and self.frame.needs_model:
            try:
                async for chunk in stream_factory():
                    self.feed(chunk)
            except Exception as e:
                logger.debug("[Session] 上游异常", exc_info=True)
                self.fail(e)
                return False

        results = self.finish()
        if on_complete is not None:
            await on_complete(results)
        self._emit(self.complete_event())
        return True

    # ==================== 内部 ====================

    def _transition(self, expected: SessionState, target: SessionState) -> None:
        if self.state is not expected:
            raise RuntimeError(f"invalid transition {self.state.value} → {target.value}")
        self.state = target

    def _handle_line(self, line: str) -> None:
        result: Optional[LineResult] = self._parser.parse(line)
        if result is not None:
            self._accept(result.line_index, result.payload)

    def _accept(self, line_index: int, payload: LinePayload) -> None:
        # 同一行重复写入以最后一次为准
        self.all_results[line_index] = payload
        self.completed_lines += 1
        self._emit({
            "type": "line",
            "lineIndex": line_index,
            self.kind.line_key: to_wire(payload),
            "progress": compute_progress(self.completed_lines, self.total_lines),
        })
