import pytest

from streamfold.message import Message, MessageRole
from streamfold.thread import Thread, ThreadStore


@pytest.fixture
def store(tmp_path):
    return ThreadStore(tmp_path / "threads")


class TestThread:
    def test_defaults(self):
        thread = Thread()
        assert thread.id.startswith("thread_")
        assert thread.title == "New chat"
        assert thread.messages == []
        assert thread.previous_response_id is None


class TestThreadStore:
    def test_put_and_get(self, store):
        thread = Thread(
            title="Weather",
            previous_response_id="resp_1",
            messages=[Message(id="m1", role=MessageRole.USER, content="Hi")],
        )
        store.put(thread)
        loaded = store.get(thread.id)
        assert loaded.title == "Weather"
        assert loaded.previous_response_id == "resp_1"
        assert loaded.messages[0].content == "Hi"

    def test_put_is_idempotent_upsert(self, store):
        thread = Thread()
        store.put(thread)
        store.put(thread.model_copy(update={"title": "Renamed"}))
        assert [t.title for t in store.all()] == ["Renamed"]

    def test_streaming_messages_saved_as_stopped(self, store):
        thread = Thread(messages=[
            Message(id="m1", role=MessageRole.ASSISTANT, is_streaming=True),
        ])
        store.put(thread)
        (message,) = store.get(thread.id).messages
        assert message.is_streaming is False
        assert message.is_stopped is True
        assert thread.messages[0].is_streaming is True

    def test_get_missing(self, store):
        assert store.get("thread_missing") is None

    def test_all_sorted_by_updated_at(self, store):
        store.put(Thread(id="old", updated_at=1))
        store.put(Thread(id="new", updated_at=3))
        store.put(Thread(id="mid", updated_at=2))
        assert [t.id for t in store.all()] == ["new", "mid", "old"]

    def test_all_skips_unreadable(self, store):
        store.put(Thread(id="ok"))
        (store.directory / "bad.json").write_text('{"messages": "nope"}', encoding="utf-8")
        (store.directory / "worse.json").write_text("{not json", encoding="utf-8")
        assert [t.id for t in store.all()] == ["ok"]

    def test_all_on_missing_directory(self, store):
        assert store.all() == []

    def test_delete_and_clear(self, store):
        store.put(Thread(id="a"))
        store.put(Thread(id="b"))
        store.delete("a")
        store.delete("a")
        assert [t.id for t in store.all()] == ["b"]
        store.clear()
        assert store.all() == []
