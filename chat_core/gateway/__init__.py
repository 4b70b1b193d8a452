"""Model Gateway 集成层。

该包下的模块负责：
- 定义 Gateway 抽象接口 (base)。
- 提供经由凭据隔离后端的 HTTP 实现 (http_gateway)。
- 提供离线的固定回复实现 (mock_gateway)。
"""

from typing import Literal, Optional

from chat_core.config.settings import settings
from chat_core.gateway.base import ModelGateway
from chat_core.gateway.http_gateway import HttpModelGateway
from chat_core.gateway.mock_gateway import MockModelGateway


GatewayMode = Literal["http", "mock"]


def create_gateway(config=None, mode: Optional[GatewayMode] = None) -> ModelGateway:
    """根据 gateway_mode 创建 Gateway 实例，默认取进程配置。"""

    cfg = config or settings
    gateway_mode = (mode or getattr(cfg, "gateway_mode", "http")).lower()
    if gateway_mode == "mock":
        return MockModelGateway()
    return HttpModelGateway(cfg)
