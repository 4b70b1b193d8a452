"""Model Gateway 抽象接口。

SessionManager 不直接依赖 HTTP 细节，而是依赖此协议：

- chat(req): 发出一次归一化聊天请求，成功返回生成文本，
  失败抛出 GatewayError 的某个子类（Unreachable / Unavailable /
  ProviderError / Malformed / Timeout）。
- health(): 检查后端及其上游凭据是否就绪，未就绪时抛出 GatewayError。
"""

from typing import Protocol

from chat_core.domain.models import GatewayRequest


class ModelGateway(Protocol):
    name: str

    async def chat(self, req: GatewayRequest) -> str:
        ...

    async def health(self) -> None:
        ...
