from typing import Any, Dict, Optional

from chat_core.domain.exceptions import StoreError, ValidationError
from chat_core.domain.models import ChatSettings
from chat_core.infrastructure.storage.kv_store import SETTINGS_KEY, KeyValueStore


class SettingsStore:
    """chat_settings 的读写入口。

    没有存储值时使用 defaults；存储值缺少的字段也用 defaults 补齐。
    update 先校验再整体覆盖写回。
    """

    def __init__(self, store: KeyValueStore, defaults: ChatSettings):
        self._store = store
        self._defaults = defaults
        self._current = self._load()

    @property
    def current(self) -> ChatSettings:
        return ChatSettings(
            model=self._current.model,
            temperature=self._current.temperature,
            max_tokens=self._current.max_tokens,
        )

    def update(
        self,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ChatSettings:
        updated = ChatSettings(
            model=self._current.model if model is None else model,
            temperature=self._current.temperature if temperature is None else temperature,
            max_tokens=self._current.max_tokens if max_tokens is None else max_tokens,
        )
        self._validate(updated)
        self._store.save(SETTINGS_KEY, updated.to_dict())
        self._current = updated
        return self.current

    @staticmethod
    def _validate(value: ChatSettings) -> None:
        if not value.model or not value.model.strip():
            raise ValidationError(code="INVALID_SETTINGS", message="model must not be empty")
        if isinstance(value.temperature, bool) or not isinstance(value.temperature, (int, float)):
            raise ValidationError(code="INVALID_SETTINGS", message="temperature must be a number")
        if not 0.0 <= value.temperature <= 2.0:
            raise ValidationError(code="INVALID_SETTINGS", message="temperature must be within [0, 2]")
        if isinstance(value.max_tokens, bool) or not isinstance(value.max_tokens, int):
            raise ValidationError(code="INVALID_SETTINGS", message="maxTokens must be an integer")
        if value.max_tokens < 1:
            raise ValidationError(code="INVALID_SETTINGS", message="maxTokens must be positive")

    def _load(self) -> ChatSettings:
        raw = self._store.load(SETTINGS_KEY)
        if raw is None:
            return self._defaults
        if not isinstance(raw, dict):
            raise StoreError(code="STORE_READ_ERROR", message=f"{SETTINGS_KEY} is not a mapping")
        merged: Dict[str, Any] = self._defaults.to_dict()
        merged.update({k: v for k, v in raw.items() if v is not None})
        loaded = ChatSettings(
            model=merged["model"],
            temperature=merged["temperature"],
            max_tokens=merged["maxTokens"],
        )
        try:
            self._validate(loaded)
        except ValidationError as e:
            raise StoreError(code="STORE_READ_ERROR", message=f"corrupt {SETTINGS_KEY}: {e.message}")
        return loaded
