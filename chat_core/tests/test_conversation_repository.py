from datetime import datetime, timedelta, timezone

import pytest

from chat_core.domain.exceptions import NotFoundError, StoreError
from chat_core.domain.models import DEFAULT_TITLE, Role
from chat_core.infrastructure.storage.conversation_repository import ConversationRepository
from chat_core.infrastructure.storage.kv_store import CONVERSATIONS_KEY, JsonFileStore, MemoryStore


class FrozenClock:
    """每次调用都返回同一时刻，除非手动推进。"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_create_inserts_empty_conversation_and_persists():
    store = MemoryStore()
    repo = ConversationRepository(store)
    cid = repo.create()
    conv = repo.get(cid)
    assert conv.title == DEFAULT_TITLE
    assert conv.messages == []
    assert cid in store.load(CONVERSATIONS_KEY)


def test_create_ids_unique_with_frozen_clock():
    repo = ConversationRepository(MemoryStore(), clock=FrozenClock(T0))
    ids = {repo.create() for _ in range(5)}
    assert len(ids) == 5


def test_get_unknown_raises_not_found():
    repo = ConversationRepository(MemoryStore())
    with pytest.raises(NotFoundError):
        repo.get("conv_missing")
    with pytest.raises(NotFoundError):
        repo.append_message("conv_missing", Role.USER, "hi")
    with pytest.raises(NotFoundError):
        repo.clear_messages("conv_missing")


def test_append_ids_distinct_and_order_preserved():
    clock = FrozenClock(T0)
    repo = ConversationRepository(MemoryStore(), clock=clock)
    cid = repo.create()
    contents = [f"m{i}" for i in range(20)]
    for i, text in enumerate(contents):
        role = Role.USER if i % 2 == 0 else Role.ASSISTANT
        repo.append_message(cid, role, text)
        if i == 10:
            # 时钟回拨也不能产生重复 ID
            clock.now = T0 - timedelta(days=1)
    messages = repo.get(cid).messages
    assert [m.content for m in messages] == contents
    ids = [m.id for m in messages]
    assert len(set(ids)) == len(ids)
    assert ids == sorted(ids)


def test_title_from_first_user_message():
    repo = ConversationRepository(MemoryStore())
    cid = repo.create()
    repo.append_message(cid, Role.USER, "Hello")
    assert repo.get(cid).title == "Hello"


def test_title_truncated_for_long_first_message():
    repo = ConversationRepository(MemoryStore())
    cid = repo.create()
    text = "The quick brown fox jumps over the lazy dog"
    repo.append_message(cid, Role.USER, text)
    assert repo.get(cid).title == text[:30] + "..."


def test_title_unaffected_by_later_messages():
    repo = ConversationRepository(MemoryStore())
    cid = repo.create()
    repo.append_message(cid, Role.USER, "First")
    repo.append_message(cid, Role.ASSISTANT, "A" * 100)
    repo.append_message(cid, Role.USER, "")
    repo.append_message(cid, Role.USER, "Another question entirely")
    assert repo.get(cid).title == "First"


def test_title_kept_after_clear():
    repo = ConversationRepository(MemoryStore())
    cid = repo.create()
    repo.append_message(cid, Role.USER, "Original")
    repo.clear_messages(cid)
    repo.append_message(cid, Role.USER, "Second start")
    assert repo.get(cid).title == "Original"


def test_clear_messages_persists():
    store = MemoryStore()
    repo = ConversationRepository(store)
    cid = repo.create()
    repo.append_message(cid, Role.USER, "hi")
    repo.clear_messages(cid)
    assert repo.get(cid).messages == []
    assert store.load(CONVERSATIONS_KEY)[cid]["messages"] == []


def test_every_append_is_persisted_before_return():
    store = MemoryStore()
    repo = ConversationRepository(store)
    cid = repo.create()
    for text in ["a", "b", "c"]:
        msg = repo.append_message(cid, Role.USER, text)
        persisted = store.load(CONVERSATIONS_KEY)[cid]["messages"]
        assert persisted[-1] == {"role": "user", "content": text, "id": msg.id}
        assert len(persisted) == len(repo.get(cid).messages)


def test_list_most_recent_first():
    clock = FrozenClock(T0)
    repo = ConversationRepository(MemoryStore(), clock=clock)
    c1 = repo.create()
    clock.advance(seconds=1)
    c2 = repo.create()
    clock.advance(seconds=1)
    c3 = repo.create()
    assert [c.id for c in repo.list()] == [c3, c2, c1]


def test_list_ties_later_insert_first():
    repo = ConversationRepository(MemoryStore(), clock=FrozenClock(T0))
    c1 = repo.create()
    c2 = repo.create()
    assert [c.id for c in repo.list()] == [c2, c1]


def test_returned_conversation_is_a_copy():
    repo = ConversationRepository(MemoryStore())
    cid = repo.create()
    conv = repo.get(cid)
    conv.messages.append("junk")
    conv.title = "changed"
    fresh = repo.get(cid)
    assert fresh.messages == []
    assert fresh.title == DEFAULT_TITLE


def test_delete_removes_and_persists():
    store = MemoryStore()
    repo = ConversationRepository(store)
    cid = repo.create()
    repo.delete(cid)
    assert not repo.exists(cid)
    assert store.load(CONVERSATIONS_KEY) == {}
    with pytest.raises(NotFoundError):
        repo.delete(cid)


def test_round_trip_through_json_store(tmp_path):
    clock = FrozenClock(T0)
    repo = ConversationRepository(JsonFileStore(root=tmp_path), clock=clock)
    c1 = repo.create()
    repo.append_message(c1, Role.USER, "Hi")
    repo.append_message(c1, Role.ASSISTANT, "Hello there")
    clock.advance(minutes=5)
    c2 = repo.create()
    repo.append_message(c2, Role.USER, "x" * 40)

    reloaded = ConversationRepository(JsonFileStore(root=tmp_path))
    assert reloaded.list() == repo.list()
    for cid in (c1, c2):
        assert reloaded.get(cid) == repo.get(cid)


def test_load_treats_naive_created_at_as_utc():
    store = MemoryStore()
    store.save(CONVERSATIONS_KEY, {
        "conv_1": {"id": "conv_1", "title": "old", "messages": [], "createdAt": "2024-01-01T00:00:00"},
        "conv_2": {"id": "conv_2", "title": "new", "messages": [], "createdAt": "2024-01-02T00:00:00Z"},
    })
    repo = ConversationRepository(store)
    assert [c.id for c in repo.list()] == ["conv_2", "conv_1"]
    assert repo.get("conv_1").created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_load_rejects_corrupt_payload():
    store = MemoryStore()
    store.save(CONVERSATIONS_KEY, {"conv_1": {"title": "no id"}})
    with pytest.raises(StoreError):
        ConversationRepository(store)
