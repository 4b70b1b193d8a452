"""单轮对话的生命周期事件。"""

from dataclasses import dataclass
from typing import Callable, Literal, Optional

from chat_core.domain.exceptions import GatewayError
from chat_core.domain.models import Message


TurnEventKind = Literal["started", "completed", "failed", "settled"]


@dataclass(frozen=True)
class TurnEvent:
    """SessionManager 发出的单轮事件。

    kind:
        - "started": 用户消息已保存，Gateway 调用即将发出（显示加载状态）。
        - "completed": 助手消息已保存，message 为新消息。
        - "failed": Gateway 调用失败，error 为分类后的错误；不会保存助手消息。
        - "settled": 本轮结束，无论成功失败都会发出（恢复提交按钮）。
    """

    kind: TurnEventKind
    conversation_id: str
    message: Optional[Message] = None
    error: Optional[GatewayError] = None


TurnObserver = Callable[[TurnEvent], None]
