"""对外 API 服务模块。

build_session 在应用启动时调用一次，把存储、仓库、设置、Gateway
组装成一个 SessionManager 并返回。调用方持有这个对象并把它传给界面层
或测试，不在模块级保存任何实例。
"""

from typing import Optional

from chat_core.config.settings import Settings, settings as default_settings
from chat_core.domain.models import ChatSettings
from chat_core.gateway import create_gateway
from chat_core.gateway.base import ModelGateway
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.storage.conversation_repository import ConversationRepository
from chat_core.infrastructure.storage.kv_store import JsonFileStore, KeyValueStore
from chat_core.infrastructure.storage.settings_store import SettingsStore
from chat_core.session.manager import SessionManager


def build_session(
    config: Optional[Settings] = None,
    store: Optional[KeyValueStore] = None,
    gateway: Optional[ModelGateway] = None,
) -> SessionManager:
    """组装一个 SessionManager。

    Args:
        config: 进程配置（可选，默认使用 chat_core.config.settings.settings）
        store: 持久化存储（可选，默认在 storage_root 下创建 JsonFileStore）
        gateway: Model Gateway（可选，默认按 gateway_mode 创建）

    Returns:
        新建的 SessionManager；此时没有活动会话，状态为 Idle
    """
    cfg = config or default_settings
    kv = store if store is not None else JsonFileStore(root=cfg.storage_root)
    repository = ConversationRepository(kv)
    settings_store = SettingsStore(
        kv,
        defaults=ChatSettings(
            model=cfg.default_model,
            temperature=cfg.default_temperature,
            max_tokens=cfg.default_max_tokens,
        ),
    )
    gw = gateway if gateway is not None else create_gateway(cfg)
    session = SessionManager(
        repository=repository,
        gateway=gw,
        settings_store=settings_store,
        turn_timeout=cfg.turn_timeout,
    )
    logger.info(
        "Session ready",
        extra={"extra": {
            "gateway": getattr(gw, "name", ""),
            "conversations": len(repository.list()),
        }},
    )
    return session
