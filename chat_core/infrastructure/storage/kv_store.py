"""持久化键值存储。

存储本身不含业务逻辑：每个 key 对应一份完整的 JSON 值，
每次写入都整体覆盖（不做增量补丁，也没有迁移版本）。
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Protocol
from uuid import uuid4

from chat_core.config.settings import settings
from chat_core.domain.exceptions import StoreError


CONVERSATIONS_KEY = "chat_conversations"
SETTINGS_KEY = "chat_settings"


class KeyValueStore(Protocol):
    def load(self, key: str) -> Optional[Any]:
        """读取 key 对应的值，不存在时返回 None。"""
        ...

    def save(self, key: str, value: Any) -> None:
        """同步写入 key 的完整值。"""
        ...


class JsonFileStore:
    """每个 key 落成 <root>/<key>.json，写入走临时文件 + os.replace。"""

    def __init__(self, root: str | Path | None = None):
        self._root = Path(root or settings.storage_root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def load(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StoreError(code="STORE_READ_ERROR", message=str(e), key=key)

    def save(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp_path = self._root / f"{key}.{uuid4().hex}.json.tmp"
        try:
            tmp_path.write_text(json.dumps(value, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            tmp_path.unlink(missing_ok=True)
            raise StoreError(code="STORE_WRITE_ERROR", message=str(e), key=key)

    def _path(self, key: str) -> Path:
        return self._root / f"{key}.json"


class MemoryStore:
    """进程内存储，值按 JSON 文本保存，行为与 JsonFileStore 一致。"""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def load(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def save(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StoreError(code="STORE_WRITE_ERROR", message=str(e), key=key)
