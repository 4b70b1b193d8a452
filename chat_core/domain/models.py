"""会话与请求数据模型。

本模块定义了客户端内部共享的标准数据结构：

- Message: 会话中的一条消息，创建后不可变。
- Conversation: 一个会话，消息按对话顺序只追加。
- ChatSettings: 进程内唯一的一份生成参数（模型、温度、最大 token）。
- GatewayTurn / GatewayRequest: 发给 Model Gateway 的归一化请求。

持久化格式（chat_conversations / chat_settings）的字段名保持与
浏览器版客户端一致（createdAt、maxTokens），由 to_dict/from_dict 负责转换。
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal


DEFAULT_TITLE = "New Chat"
TITLE_MAX_CHARS = 30
TITLE_ELLIPSIS = "..."


class Role(str, Enum):
    """消息角色，只有用户与助手两种。"""

    USER = "user"
    ASSISTANT = "assistant"

    def to_gateway(self) -> "GatewayRole":
        """映射到 Gateway 的角色词汇（assistant -> model）。"""

        if self is Role.USER:
            return "user"
        return "model"


# Gateway 侧的角色词汇
GatewayRole = Literal["user", "model"]


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    # 不带时区的旧数据按 UTC 处理
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def derive_title(text: str) -> str:
    """根据首条用户消息生成会话标题，超过 30 个字符时截断并加省略号。"""

    if len(text) > TITLE_MAX_CHARS:
        return text[:TITLE_MAX_CHARS] + TITLE_ELLIPSIS
    return text


@dataclass(frozen=True)
class Message:
    """一条会话消息。

    - id: 由时间戳派生的整数，在所属会话内唯一且递增。
    - role: 消息角色。
    - content: 纯文本内容。
    """

    id: int
    role: Role
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role.value, "content": self.content, "id": self.id}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        return cls(id=int(data["id"]), role=Role(data["role"]), content=data.get("content") or "")


@dataclass
class Conversation:
    """一个会话记录。

    messages 的顺序就是对话的规范顺序：正常情况下只追加，
    仅在用户显式清空时整体置空。created_at 创建后不再修改。
    """

    id: str
    title: str
    created_at: datetime
    messages: List[Message] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "messages": [m.to_dict() for m in self.messages],
            "createdAt": format_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Conversation":
        return cls(
            id=data["id"],
            title=data.get("title") or DEFAULT_TITLE,
            created_at=parse_timestamp(data["createdAt"]),
            messages=[Message.from_dict(m) for m in data.get("messages") or []],
        )


@dataclass
class ChatSettings:
    """生成参数。与任何会话无关，进程内只有一份。"""

    model: str
    temperature: float = 0.7
    max_tokens: int = 2000

    def to_dict(self) -> Dict[str, Any]:
        return {"model": self.model, "temperature": self.temperature, "maxTokens": self.max_tokens}


@dataclass
class GatewayTurn:
    role: GatewayRole
    text: str


@dataclass
class GatewayRequest:
    """一次发给 Model Gateway 的完整请求。

    messages 是会话的完整历史（已映射为 Gateway 角色），
    其余字段来自当前 ChatSettings。
    """

    messages: List[GatewayTurn]
    model: str
    temperature: float
    max_output_tokens: int

    def to_payload(self) -> Dict[str, Any]:
        """转换为 POST /chat 的请求体。"""

        return {
            "messages": [{"role": t.role, "text": t.text} for t in self.messages],
            "model": self.model,
            "temperature": self.temperature,
            "maxOutputTokens": self.max_output_tokens,
        }
