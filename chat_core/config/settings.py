"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置。
这里只放进程级配置（后端地址、超时、存储目录等）；
用户可在界面里修改的模型参数由 SettingsStore 持久化。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Literal

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("CHAT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class ChatCoreSettings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- 后端 / Gateway ----
    backend_url: str = Field(
        default="http://localhost:5000/api",
        description="凭据隔离后端的基础 URL，/chat 与 /health 挂在其下",
    )
    gateway_mode: Literal["http", "mock"] = Field(
        default="http",
        description="http 走真实后端；mock 返回固定回复，无需网络",
    )

    # ---- 模型参数默认值（chat_settings 不存在时使用）----
    default_model: str = Field(default="gemini-2.0-flash", description="Provider 默认模型")
    default_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    default_max_tokens: int = Field(default=2000, ge=1)

    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")
    turn_timeout: float = Field(
        default=120.0,
        ge=0.0,
        description="单轮 Gateway 调用的上限（秒），0 表示不限制",
    )
    storage_root: str = Field(default=".storage", description="存储根目录")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("backend_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = ChatCoreSettings()

# 类型别名，让外部代码可以使用 Settings 类型
Settings = ChatCoreSettings
