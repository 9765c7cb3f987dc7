"""
Unit tests for extractor attachment and notification dispatch.
"""

import threading
import time

import pytest

from memstore.extractors.base import BaseExtractor
from memstore.extractors.registry import ExtractorRegistry
from memstore.memory.schemas import Message, MessageEvent


class GatedExtractor(BaseExtractor):
    """Blocks inside its first extract call until `gate` is set."""

    name = "gated"

    def __init__(self):
        self.gate = threading.Event()
        self.started = threading.Event()
        self.events = []

    def extract(self, store, event):
        self.events.append(event)
        if len(self.events) == 1:
            self.started.set()
            self.gate.wait(timeout=5)


class EchoExtractor(BaseExtractor):
    """Writes an acknowledgement message back without re-notifying."""

    name = "echo"

    def extract(self, store, event):
        store.put_memory(event.session_id, [Message(role="system", content="ack")], suppress_notify=True)


def test_one_event_per_committed_batch(store, recorder, make_messages):
    store.attach(recorder)

    store.put_memory("s1", make_messages("a", "b"))
    store.put_memory("s1", make_messages("c"))
    assert store.registry.drain(timeout=5)

    assert len(recorder.events) == 2
    assert [m.content for m in recorder.events[0].messages] == ["a", "b"]
    assert [m.sequence for m in recorder.events[1].messages] == [3]
    assert all(e.session_id == "s1" for e in recorder.events)


def test_empty_batch_does_not_notify(store, recorder):
    store.attach(recorder)
    assert store.put_memory("s1", []) == []
    assert store.registry.drain(timeout=5)
    assert recorder.events == []


def test_suppressed_notification(store, recorder, make_messages):
    store.attach(recorder)
    store.put_memory("s1", make_messages("quiet"), suppress_notify=True)

    event = MessageEvent(session_id="s1", messages=make_messages("x"))
    assert store.notify_extractors(event, suppress=True) == 0
    assert store.registry.drain(timeout=5)
    assert recorder.events == []


def test_notify_counts_extractors(store, recorder):
    other = type(recorder)("second")
    store.attach(recorder)
    store.attach(other)

    assert store.notify_extractors(MessageEvent(session_id="s1")) == 2
    assert store.registry.drain(timeout=5)
    assert len(recorder.events) == len(other.events) == 1


def test_attach_same_instance_once(store, recorder, make_messages):
    store.attach(recorder)
    store.attach(recorder)
    assert store.registry.extractors == (recorder,)

    store.put_memory("s1", make_messages("a"))
    assert store.registry.drain(timeout=5)
    assert len(recorder.events) == 1


def test_failing_extractor_is_isolated(store, recorder, failing_extractor, make_messages):
    store.attach(failing_extractor)
    store.attach(recorder)

    committed = store.put_memory("s1", make_messages("a"))
    store.put_memory("s1", make_messages("b"))
    assert store.registry.drain(timeout=5)

    assert len(committed) == 1
    assert failing_extractor.calls == 2
    assert len(recorder.events) == 2
    assert len(store.get_memory("s1").messages) == 2


def test_detach_stops_delivery(store, recorder, make_messages):
    store.attach(recorder)
    store.put_memory("s1", make_messages("a"))
    assert store.registry.drain(timeout=5)

    assert store.detach(recorder) is True
    assert store.detach(recorder) is False
    store.put_memory("s1", make_messages("b"))
    assert store.registry.drain(timeout=5)

    assert len(recorder.events) == 1


def test_writer_not_blocked_by_slow_extractor(store, recorder, make_messages):
    gated = GatedExtractor()
    store.attach(gated)
    store.attach(recorder)

    store.put_memory("s1", make_messages("a"))
    assert gated.started.wait(timeout=5)

    # Writes and other extractors proceed while the gated one is stuck
    store.put_memory("s1", make_messages("b"))
    deadline = time.monotonic() + 5
    while len(recorder.events) < 2 and time.monotonic() < deadline:
        time.sleep(0.01)
    assert len(recorder.events) == 2
    assert len(gated.events) == 1

    gated.gate.set()
    assert store.registry.drain(timeout=5)
    assert [e.messages[0].content for e in gated.events] == ["a", "b"]


def test_commit_order_preserved_under_concurrent_writers(store, recorder, make_messages):
    store.attach(recorder)

    threads = [
        threading.Thread(target=lambda i=i: store.put_memory("s1", make_messages(f"msg-{i}")))
        for i in range(20)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert store.registry.drain(timeout=5)

    sequences = [e.messages[0].sequence for e in recorder.events]
    assert sequences == list(range(1, 21))


def test_extractor_write_back_does_not_retrigger(store, recorder, make_messages):
    store.attach(EchoExtractor())
    store.attach(recorder)

    store.put_memory("s1", make_messages("hello"))
    assert store.registry.drain(timeout=5)

    assert len(recorder.events) == 1
    assert [m.content for m in store.get_memory("s1").messages] == ["hello", "ack"]


@pytest.mark.slow
def test_expired_events_are_dropped(tmp_path, make_messages):
    from memstore.memory.store import MemoryStore
    from memstore.persist.sqlite_store import SQLiteBackend

    gated = GatedExtractor()
    with MemoryStore(SQLiteBackend(tmp_path / "d.db"), registry=ExtractorRegistry(deadline=0.05)) as store:
        store.attach(gated)
        store.put_memory("s1", make_messages("first"))
        assert gated.started.wait(timeout=5)
        store.put_memory("s1", make_messages("second"))

        time.sleep(0.2)
        gated.gate.set()
        assert store.registry.drain(timeout=5)

    assert [e.messages[0].content for e in gated.events] == ["first"]


def test_closed_registry(recorder):
    registry = ExtractorRegistry()
    registry.attach(recorder)
    registry.close()

    assert registry.notify(MessageEvent(session_id="s1")) == 0
    assert registry.extractors == ()
    with pytest.raises(RuntimeError):
        registry.attach(recorder)
    # Closing twice is harmless
    registry.close()
