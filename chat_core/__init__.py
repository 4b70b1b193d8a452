"""Chat Core 顶层包。

该包实现单用户聊天客户端的会话核心：
本地持久化的多会话历史、会话仓库、单轮对话状态机，
以及通过凭据隔离后端访问模型的 Gateway 适配层。
"""

from chat_core.api.service import build_session
from chat_core.session.manager import SessionManager, SessionState, TurnOutcome

__all__ = ["build_session", "SessionManager", "SessionState", "TurnOutcome"]
