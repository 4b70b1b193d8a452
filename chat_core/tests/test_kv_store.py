import json
import tempfile
from pathlib import Path

import pytest

from chat_core.domain.exceptions import StoreError
from chat_core.infrastructure.storage.kv_store import CONVERSATIONS_KEY, JsonFileStore, MemoryStore


def test_json_store_save_and_load():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d) / ".storage"
        store = JsonFileStore(root=root)
        assert store.load(CONVERSATIONS_KEY) is None
        store.save(CONVERSATIONS_KEY, {"conv_1": {"title": "你好"}})
        assert store.load(CONVERSATIONS_KEY) == {"conv_1": {"title": "你好"}}
        assert json.loads((root / "chat_conversations.json").read_text(encoding="utf-8"))
        # 不残留临时文件
        assert [p.name for p in root.iterdir()] == ["chat_conversations.json"]


def test_json_store_overwrites_whole_value():
    with tempfile.TemporaryDirectory() as d:
        store = JsonFileStore(root=d)
        store.save("k", {"a": 1, "b": 2})
        store.save("k", {"c": 3})
        assert store.load("k") == {"c": 3}


def test_json_store_corrupt_file_fails_loudly(tmp_path):
    store = JsonFileStore(root=tmp_path)
    (tmp_path / "chat_settings.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(StoreError) as exc:
        store.load("chat_settings")
    assert exc.value.code == "STORE_READ_ERROR"


def test_json_store_unserializable_value_fails_loudly(tmp_path):
    store = JsonFileStore(root=tmp_path)
    with pytest.raises(StoreError) as exc:
        store.save("k", {"bad": object()})
    assert exc.value.code == "STORE_WRITE_ERROR"
    assert store.load("k") is None


def test_memory_store_returns_copies():
    store = MemoryStore()
    value = {"a": [1]}
    store.save("k", value)
    value["a"].append(2)
    assert store.load("k") == {"a": [1]}
