"""凭据隔离后端的 HTTP 适配器。

本模块负责：

1. 把 GatewayRequest 转成 POST {backend_url}/chat 的请求体。
2. 调用后端并把各种失败归类为统一的 GatewayError 子类。
3. 从响应里取出 content 文本。

连接本身失败（拒绝连接、DNS、连接超时）一律归为 UnreachableError，
与“后端返回了错误响应”区分开，界面才能给出不同的提示。
"""

import logging
from typing import Any, Optional

import httpx

from chat_core.domain.exceptions import (
    GatewayError,
    GatewayTimeoutError,
    MalformedResponseError,
    ProviderError,
    UnavailableError,
    UnreachableError,
)
from chat_core.domain.models import GatewayRequest
from chat_core.infrastructure.logging.logger import logger


QUOTA_MESSAGE = "Quota exceeded. Please check https://ai.google.dev/pricing"
NOT_RUNNING_MESSAGE = "Backend server is not running. Please start the backend server"
DEFAULT_FAILURE_MESSAGE = "API request failed"


class HttpModelGateway:
    """通过本地后端访问模型的 Gateway 实现。

    Provider 凭据只存在于后端，客户端请求不携带任何密钥。
    """

    name = "http"

    def __init__(self, settings):
        # Settings 里包含 backend_url、http_timeout
        self._settings = settings

    @property
    def base_url(self) -> str:
        return str(self._settings.backend_url).rstrip("/")

    async def chat(self, req: GatewayRequest) -> str:
        """执行一次非流式对话调用，返回生成文本。"""

        url = f"{self.base_url}/chat"
        resp = await self._send("POST", url, json=req.to_payload())
        if not 200 <= resp.status_code < 300:
            raise self._classify_error_response(resp)
        try:
            data = resp.json()
        except ValueError:
            raise MalformedResponseError(
                code="MALFORMED_RESPONSE",
                message="Backend returned a response that is not JSON",
                status_code=resp.status_code,
            )
        content = data.get("content") if isinstance(data, dict) else None
        if not isinstance(content, str):
            raise MalformedResponseError(
                code="MALFORMED_RESPONSE",
                message="Backend response is missing the content field",
                status_code=resp.status_code,
            )
        return content

    async def health(self) -> None:
        """GET /health；非 200 视为 Unavailable。"""

        resp = await self._send("GET", f"{self.base_url}/health")
        if resp.status_code != 200:
            raise UnavailableError(
                code="UNAVAILABLE",
                message="Server Not Running",
                http_status=503,
                status_code=resp.status_code,
            )

    async def _send(self, method: str, url: str, json: Optional[dict] = None) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                if method == "POST":
                    return await client.post(url, json=json, headers={"Content-Type": "application/json"})
                return await client.get(url)
        except httpx.ConnectTimeout as e:
            raise self._unreachable(url, e)
        except httpx.TimeoutException as e:
            self._log_failure("Gateway timed out", url, e)
            raise GatewayTimeoutError(
                code="GATEWAY_TIMEOUT",
                message="The backend did not answer in time. Please try again",
                http_status=504,
            )
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接被拒绝、连接中断等
            raise self._unreachable(url, e)

    def _unreachable(self, url: str, error: Exception) -> UnreachableError:
        self._log_failure("Backend unreachable", url, error)
        return UnreachableError(
            code="UNREACHABLE",
            message=f"Cannot connect to backend server. Make sure it's running on {self.base_url}",
            http_status=503,
            detail=str(error),
        )

    def _classify_error_response(self, resp: httpx.Response) -> GatewayError:
        """把非 2xx 响应体 {error: string | {message}} 解析成 GatewayError。"""

        message = self._extract_error_message(resp)
        logger.warning(
            "Gateway returned error",
            extra={"extra": {"status_code": resp.status_code, "error": message}},
        )
        if "RESOURCE_EXHAUSTED" in message or "RESOURCE_EXHAUSTED" in (resp.text or ""):
            return ProviderError(
                code="PROVIDER_ERROR",
                message=QUOTA_MESSAGE,
                http_status=resp.status_code,
                provider_message=message,
            )
        if "Server Not Running" in message:
            return UnavailableError(
                code="UNAVAILABLE",
                message=NOT_RUNNING_MESSAGE,
                http_status=resp.status_code,
            )
        return ProviderError(code="PROVIDER_ERROR", message=message, http_status=resp.status_code)

    @staticmethod
    def _extract_error_message(resp: httpx.Response) -> str:
        try:
            data: Any = resp.json()
        except ValueError:
            return (resp.text or "").strip() or DEFAULT_FAILURE_MESSAGE
        if not isinstance(data, dict):
            return DEFAULT_FAILURE_MESSAGE
        error = data.get("error")
        if isinstance(error, dict):
            nested = error.get("message")
            if isinstance(nested, str) and nested:
                return nested
            status = error.get("status")
            if isinstance(status, str) and status:
                return status
        if isinstance(error, str) and error:
            return error
        return DEFAULT_FAILURE_MESSAGE

    @staticmethod
    def _log_failure(message: str, url: str, error: Exception) -> None:
        logger.log(
            logging.WARNING,
            message,
            extra={"extra": {"url": url, "error": str(error), "error_type": type(error).__name__}},
        )
