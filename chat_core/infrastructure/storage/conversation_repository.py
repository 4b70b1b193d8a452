from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from chat_core.domain.conversation import ConversationStore
from chat_core.domain.exceptions import NotFoundError, StoreError
from chat_core.domain.models import DEFAULT_TITLE, Conversation, Message, Role, derive_title
from chat_core.infrastructure.storage.kv_store import CONVERSATIONS_KEY, KeyValueStore


Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationRepository(ConversationStore):
    """内存中的会话表，每次变更后同步整体写回 KeyValueStore。

    对外返回的 Conversation 都是副本，调用方修改它们不会影响仓库状态。
    """

    def __init__(self, store: KeyValueStore, clock: Optional[Clock] = None):
        self._store = store
        self._clock = clock or _utcnow
        self._conversations: Dict[str, Conversation] = self._load()

    def create(self) -> str:
        now = self._clock()
        stamp = int(now.timestamp() * 1000)
        cid = f"conv_{stamp}"
        while cid in self._conversations:
            stamp += 1
            cid = f"conv_{stamp}"
        self._conversations[cid] = Conversation(id=cid, title=DEFAULT_TITLE, created_at=now)
        self._flush()
        return cid

    def list(self) -> List[Conversation]:
        indexed = list(enumerate(self._conversations.values()))
        # createdAt 降序；相同时后插入的排前面
        indexed.sort(key=lambda item: (item[1].created_at, item[0]), reverse=True)
        return [self._snapshot(conv) for _, conv in indexed]

    def get(self, conversation_id: str) -> Conversation:
        return self._snapshot(self._require(conversation_id))

    def exists(self, conversation_id: str) -> bool:
        return conversation_id in self._conversations

    def append_message(self, conversation_id: str, role: Role, content: str) -> Message:
        conv = self._require(conversation_id)
        message = Message(id=self._next_message_id(conv), role=role, content=content)
        conv.messages.append(message)
        if len(conv.messages) == 1 and role is Role.USER and conv.title == DEFAULT_TITLE:
            conv.title = derive_title(content)
        self._flush()
        return message

    def clear_messages(self, conversation_id: str) -> None:
        conv = self._require(conversation_id)
        conv.messages = []
        self._flush()

    def delete(self, conversation_id: str) -> None:
        self._require(conversation_id)
        del self._conversations[conversation_id]
        self._flush()

    def _next_message_id(self, conv: Conversation) -> int:
        candidate = int(self._clock().timestamp() * 1000)
        if conv.messages:
            candidate = max(candidate, conv.messages[-1].id + 1)
        return candidate

    def _require(self, conversation_id: str) -> Conversation:
        conv = self._conversations.get(conversation_id)
        if conv is None:
            raise NotFoundError(conversation_id)
        return conv

    @staticmethod
    def _snapshot(conv: Conversation) -> Conversation:
        return replace(conv, messages=list(conv.messages))

    def _flush(self) -> None:
        payload = {cid: conv.to_dict() for cid, conv in self._conversations.items()}
        self._store.save(CONVERSATIONS_KEY, payload)

    def _load(self) -> Dict[str, Conversation]:
        raw = self._store.load(CONVERSATIONS_KEY)
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise StoreError(code="STORE_READ_ERROR", message=f"{CONVERSATIONS_KEY} is not a mapping")
        try:
            return {cid: Conversation.from_dict(data) for cid, data in raw.items()}
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(code="STORE_READ_ERROR", message=f"corrupt {CONVERSATIONS_KEY}: {e}")
