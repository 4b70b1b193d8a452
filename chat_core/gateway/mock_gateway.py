"""无需网络与凭据的 Gateway，用于在没有后端时验证界面与会话流程。"""

from chat_core.domain.models import GatewayRequest


MOCK_REPLY = "This is a mock reply. The UI is working correctly."


class MockModelGateway:
    name = "mock"

    def __init__(self, reply: str = MOCK_REPLY):
        self._reply = reply
        self.requests: list[GatewayRequest] = []

    async def chat(self, req: GatewayRequest) -> str:
        self.requests.append(req)
        return self._reply

    async def health(self) -> None:
        return None
