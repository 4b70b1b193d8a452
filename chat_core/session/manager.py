"""会话管理器：单轮对话的状态机。

一轮对话的流程：

1. 校验输入（去除首尾空白后非空）且当前没有等待中的轮次。
2. 没有活动会话时先创建一个并设为活动。
3. 保存用户消息（首条消息会生成会话标题）。
4. 进入 AwaitingModel，发出 "started" 事件。
5. 用会话完整历史 + 当前 ChatSettings 构造 GatewayRequest。
6. 等待 Gateway（唯一的挂起点，可设超时）。
7. 成功则保存助手消息并发出 "completed"；失败不保存任何助手消息，
   发出 "failed"。两种情况最终都回到 Idle 并发出 "settled"。

"等待中" 是整个会话全局唯一的标志，而不是按会话区分：
等待期间可以切换/新建会话（纯读或只改活动会话），但不能再提交第二轮。
轮次的目标会话 ID 在提交时确定，完成时不会重新读取活动会话。
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from chat_core.domain.conversation import ConversationStore
from chat_core.domain.events import TurnEvent, TurnObserver
from chat_core.domain.exceptions import (
    BusyError,
    GatewayError,
    GatewayTimeoutError,
    InvalidInputError,
    NoActiveConversationError,
)
from chat_core.domain.models import Conversation, GatewayRequest, GatewayTurn, Message, Role
from chat_core.gateway.base import ModelGateway
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.storage.settings_store import SettingsStore


class SessionState(str, Enum):
    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"


@dataclass
class TurnOutcome:
    """submit_turn 的返回值：成功时带助手消息，失败时带分类后的错误。"""

    conversation_id: str
    user_message: Message
    assistant_message: Optional[Message] = None
    error: Optional[GatewayError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BackendStatus:
    ok: bool
    message: str


class SessionManager:
    def __init__(
        self,
        repository: ConversationStore,
        gateway: ModelGateway,
        settings_store: SettingsStore,
        turn_timeout: Optional[float] = None,
    ):
        self._repository = repository
        self._gateway = gateway
        self._settings_store = settings_store
        # None 或 0 表示不限制
        self._turn_timeout = turn_timeout or None
        self._active_conversation_id: Optional[str] = None
        self._pending = False
        self._pending_conversation_id: Optional[str] = None
        self._observers: List[TurnObserver] = []

    @property
    def state(self) -> SessionState:
        return SessionState.AWAITING_MODEL if self._pending else SessionState.IDLE

    @property
    def busy(self) -> bool:
        return self._pending

    @property
    def active_conversation_id(self) -> Optional[str]:
        return self._active_conversation_id

    @property
    def settings_store(self) -> SettingsStore:
        return self._settings_store

    def subscribe(self, observer: TurnObserver) -> Callable[[], None]:
        """注册事件观察者，返回取消注册的函数。"""

        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def list_conversations(self) -> List[Conversation]:
        return self._repository.list()

    def active_conversation(self) -> Optional[Conversation]:
        if self._active_conversation_id is None:
            return None
        return self._repository.get(self._active_conversation_id)

    def new_conversation(self) -> str:
        """新建会话并设为活动；等待中的轮次不受影响。"""

        cid = self._repository.create()
        self._active_conversation_id = cid
        self._log(logging.INFO, "Created new conversation", {"conversation_id": cid})
        return cid

    def select_conversation(self, conversation_id: str) -> Conversation:
        conv = self._repository.get(conversation_id)
        self._active_conversation_id = conv.id
        return conv

    def clear_active_conversation(self) -> None:
        if self._active_conversation_id is None:
            raise NoActiveConversationError()
        if self._pending and self._active_conversation_id == self._pending_conversation_id:
            raise BusyError(
                message="Cannot clear a conversation while its reply is pending",
                conversation_id=self._active_conversation_id,
            )
        self._repository.clear_messages(self._active_conversation_id)
        self._log(
            logging.INFO,
            "Cleared conversation",
            {"conversation_id": self._active_conversation_id},
        )

    def delete_conversation(self, conversation_id: str) -> None:
        if self._pending and conversation_id == self._pending_conversation_id:
            raise BusyError(
                message="Cannot delete a conversation while its reply is pending",
                conversation_id=conversation_id,
            )
        self._repository.delete(conversation_id)
        if self._active_conversation_id == conversation_id:
            self._active_conversation_id = None
        self._log(logging.INFO, "Deleted conversation", {"conversation_id": conversation_id})

    async def check_backend(self) -> BackendStatus:
        """探测后端是否就绪，供界面决定是否允许提交。"""

        try:
            await self._gateway.health()
        except GatewayError as e:
            self._log(logging.WARNING, "Backend health check failed", {"code": e.code, "error": e.message})
            return BackendStatus(ok=False, message=f"Server Not Running: {e.message}")
        return BackendStatus(ok=True, message="Server Connected")

    async def submit_turn(self, text: str) -> TurnOutcome:
        """提交一轮对话。

        Raises:
            InvalidInputError: text 去除首尾空白后为空。
            BusyError: 已有一轮在等待模型回复。

        Gateway 的失败不会抛出，而是体现在返回值的 error 与 "failed" 事件中。
        """

        content = (text or "").strip()
        if not content:
            raise InvalidInputError()
        if self._pending:
            raise BusyError()

        start_time = time.time()
        log_ctx: Dict[str, Any] = {"trace_id": f"tr-{uuid4().hex}"}

        if self._active_conversation_id is None:
            self.new_conversation()
        conversation_id = self._active_conversation_id
        log_ctx["conversation_id"] = conversation_id

        user_message = self._repository.append_message(conversation_id, Role.USER, content)
        self._log(logging.INFO, "Stored user message", log_ctx, message_id=user_message.id)

        outcome = TurnOutcome(conversation_id=conversation_id, user_message=user_message)
        self._pending = True
        self._pending_conversation_id = conversation_id
        try:
            self._emit(TurnEvent(kind="started", conversation_id=conversation_id))
            req = self._build_request(conversation_id)
            self._log(
                logging.INFO,
                "Calling gateway",
                log_ctx,
                gateway=getattr(self._gateway, "name", ""),
                model=req.model,
                message_count=len(req.messages),
            )
            try:
                reply = await self._call_gateway(req)
            except GatewayError as e:
                outcome.error = e
                self._log(logging.WARNING, "Turn failed", log_ctx, code=e.code, error=e.message)
                self._emit(TurnEvent(kind="failed", conversation_id=conversation_id, error=e))
            else:
                assistant_message = self._repository.append_message(conversation_id, Role.ASSISTANT, reply)
                outcome.assistant_message = assistant_message
                self._log(logging.INFO, "Stored assistant message", log_ctx, message_id=assistant_message.id)
                self._emit(TurnEvent(kind="completed", conversation_id=conversation_id, message=assistant_message))
        finally:
            self._pending = False
            self._pending_conversation_id = None
            self._log(
                logging.INFO,
                "Completed turn",
                log_ctx,
                ok=outcome.ok,
                elapsed_seconds=round(time.time() - start_time, 2),
            )
            self._emit(TurnEvent(kind="settled", conversation_id=conversation_id))
        return outcome

    def _build_request(self, conversation_id: str) -> GatewayRequest:
        conv = self._repository.get(conversation_id)
        current = self._settings_store.current
        return GatewayRequest(
            messages=[GatewayTurn(role=m.role.to_gateway(), text=m.content) for m in conv.messages],
            model=current.model,
            temperature=current.temperature,
            max_output_tokens=current.max_tokens,
        )

    async def _call_gateway(self, req: GatewayRequest) -> str:
        if self._turn_timeout is None:
            return await self._gateway.chat(req)
        try:
            return await asyncio.wait_for(self._gateway.chat(req), timeout=self._turn_timeout)
        except asyncio.TimeoutError:
            raise GatewayTimeoutError(
                code="GATEWAY_TIMEOUT",
                message=f"No reply within {self._turn_timeout:g} seconds. Please try again",
                http_status=504,
            )

    def _emit(self, event: TurnEvent) -> None:
        for observer in list(self._observers):
            observer(event)

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
