import pytest

from chat_core.domain.exceptions import StoreError, ValidationError
from chat_core.domain.models import ChatSettings
from chat_core.infrastructure.storage.kv_store import SETTINGS_KEY, JsonFileStore, MemoryStore
from chat_core.infrastructure.storage.settings_store import SettingsStore


DEFAULTS = ChatSettings(model="gemini-2.0-flash", temperature=0.7, max_tokens=2000)


def test_defaults_when_nothing_stored():
    store = MemoryStore()
    ss = SettingsStore(store, DEFAULTS)
    assert ss.current == DEFAULTS
    # 读取默认值不产生写入
    assert store.load(SETTINGS_KEY) is None


def test_partial_stored_value_is_merged_with_defaults():
    store = MemoryStore()
    store.save(SETTINGS_KEY, {"temperature": 1.2})
    ss = SettingsStore(store, DEFAULTS)
    assert ss.current == ChatSettings(model="gemini-2.0-flash", temperature=1.2, max_tokens=2000)


def test_update_persists_whole_value(tmp_path):
    ss = SettingsStore(JsonFileStore(root=tmp_path), DEFAULTS)
    ss.update(temperature=1.5)
    ss.update(max_tokens=512)
    assert JsonFileStore(root=tmp_path).load(SETTINGS_KEY) == {
        "model": "gemini-2.0-flash",
        "temperature": 1.5,
        "maxTokens": 512,
    }
    reloaded = SettingsStore(JsonFileStore(root=tmp_path), DEFAULTS)
    assert reloaded.current.max_tokens == 512
    assert reloaded.current.temperature == 1.5


@pytest.mark.parametrize(
    "changes",
    [
        {"temperature": -0.1},
        {"temperature": 2.5},
        {"max_tokens": 0},
        {"max_tokens": 1.5},
        {"model": "  "},
    ],
)
def test_update_rejects_invalid_values(changes):
    store = MemoryStore()
    ss = SettingsStore(store, DEFAULTS)
    with pytest.raises(ValidationError):
        ss.update(**changes)
    assert ss.current == DEFAULTS
    assert store.load(SETTINGS_KEY) is None


def test_temperature_bounds_inclusive():
    ss = SettingsStore(MemoryStore(), DEFAULTS)
    assert ss.update(temperature=0).temperature == 0
    assert ss.update(temperature=2.0).temperature == 2.0


def test_current_is_a_copy():
    ss = SettingsStore(MemoryStore(), DEFAULTS)
    snapshot = ss.current
    snapshot.model = "other"
    assert ss.current.model == "gemini-2.0-flash"


def test_corrupt_stored_settings_fail_loudly():
    store = MemoryStore()
    store.save(SETTINGS_KEY, {"temperature": 9})
    with pytest.raises(StoreError):
        SettingsStore(store, DEFAULTS)
