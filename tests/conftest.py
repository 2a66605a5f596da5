"""Shared fixtures: fake model clients, a manual timer and clock, temp stores."""

import base64

import pytest

from classes.backend import Backend
from classes.config import create_session_factory
from classes.cooldown_tracker import CooldownTracker
from classes.document_store import DocumentStore
from classes.history_cache import HistoryCache
from classes.llm_client import reset_global_backoff
from classes.models import AppData
from classes.seed_data import seed_document

PNG_B64 = base64.b64encode(b"\x89PNG\r\n\x1a\nfake-image-bytes").decode("ascii")


class FakeLlm:
    """Returns queued replies in order; records every prompt it gets."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def invoke(self, prompt_or_messages, **kwargs):
        self.calls.append(prompt_or_messages)
        if not self.replies:
            raise AssertionError("FakeLlm called more times than expected")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeImageLlm:
    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def edit(self, image_bytes, mime_type, prompt, **kwargs):
        self.calls.append((image_bytes, mime_type, prompt))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeTimer:
    def __init__(self, delay, fn):
        self.delay = delay
        self.fn = fn
        self.started = False
        self.cancelled = False
        self.fired = False
        self.daemon = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.fired = True
        self.fn()


class TimerFactory:
    """Stands in for threading.Timer and keeps every timer it creates."""

    def __init__(self):
        self.timers = []

    def __call__(self, delay, fn):
        timer = FakeTimer(delay, fn)
        self.timers.append(timer)
        return timer

    @property
    def live(self):
        return [t for t in self.timers if t.started and not t.cancelled and not t.fired]


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_backoff():
    reset_global_backoff()
    yield
    reset_global_backoff()


@pytest.fixture()
def seed_doc() -> AppData:
    return seed_document()


@pytest.fixture()
def session_factory(tmp_path):
    return create_session_factory(f"sqlite:///{tmp_path / 'gallery.db'}")


@pytest.fixture()
def document_store(session_factory):
    return DocumentStore(session_factory=session_factory, seed_if_empty=True)


@pytest.fixture()
def timer_factory():
    return TimerFactory()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def backend(document_store, timer_factory, clock):
    """Backend over a seeded temp database with fake model clients attached."""
    b = Backend(
        document_store=document_store,
        cooldowns=CooldownTracker(window_seconds=60, clock=clock),
        layout_chats=HistoryCache(ttl_seconds=3600, max_tokens=8000),
        identify_chats=HistoryCache(ttl_seconds=3600, max_tokens=8000),
        debounce_seconds=1.0,
        timer_factory=timer_factory,
    )
    b.llm = FakeLlm()
    b.chat_llm = FakeLlm()
    b.image_llm = FakeImageLlm()
    return b
