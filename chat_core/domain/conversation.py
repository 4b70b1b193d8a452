from typing import List, Protocol

from .models import Conversation, Message, Role


class ConversationStore(Protocol):
    def create(self) -> str:
        ...

    def list(self) -> List[Conversation]:
        ...

    def get(self, conversation_id: str) -> Conversation:
        ...

    def exists(self, conversation_id: str) -> bool:
        ...

    def append_message(self, conversation_id: str, role: Role, content: str) -> Message:
        ...

    def clear_messages(self, conversation_id: str) -> None:
        ...

    def delete(self, conversation_id: str) -> None:
        ...
