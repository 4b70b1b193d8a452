"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在会话层或界面层做统一捕获与用户提示。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 conversation_id、status_code 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class InvalidInputError(BusinessError):
    """提交内容为空（去除首尾空白后）。"""

    def __init__(self, message: str = "Please enter a message"):
        super().__init__(code="INVALID_INPUT", message=message)


class BusyError(BusinessError):
    """已有一轮对话在等待模型回复。"""

    def __init__(self, message: str = "A reply is still pending", **extra):
        super().__init__(code="BUSY", message=message, http_status=409, **extra)


class NotFoundError(BusinessError):
    """会话 ID 不存在。"""

    def __init__(self, conversation_id: str):
        super().__init__(
            code="CONVERSATION_NOT_FOUND",
            message=conversation_id,
            http_status=404,
            conversation_id=conversation_id,
        )


class NoActiveConversationError(BusinessError):
    """当前没有选中的会话。"""

    def __init__(self):
        super().__init__(code="NO_ACTIVE_CONVERSATION", message="No conversation selected")


class StoreError(BusinessError):
    """本地持久化读写失败。"""


class GatewayError(BusinessError):
    """Model Gateway 调用失败的基类，message 可直接展示给用户。"""


class UnreachableError(GatewayError):
    """连接后端本身失败（DNS、拒绝连接、连接超时等）。"""


class UnavailableError(GatewayError):
    """后端进程可达但未就绪（健康检查失败）。"""


class ProviderError(GatewayError):
    """上游模型 API 返回了结构化错误，例如配额耗尽。"""


class MalformedResponseError(GatewayError):
    """响应缺少预期字段或不是合法 JSON。"""


class GatewayTimeoutError(GatewayError):
    """Gateway 在超时时间内没有返回。"""
