import time
import threading
from contextlib import contextmanager

from langchain_core.chat_history import InMemoryChatMessageHistory
from langchain_core.messages import HumanMessage, AIMessage

from classes.errors import RequestInFlightError


class HistoryCache:
    """
    In-memory, per-conversation chat transcripts with:
    - sliding TTL (expires ttl_seconds after last touch)
    - approximate token cap (chars/4 heuristic)
    - an in-flight flag: one outstanding request per conversation
    - thread-safe operations

    The layout protocol itself is stateless; transcripts only back what the
    curator sees in the assistant panel and the identification chat.
    """

    def __init__(self, ttl_seconds: int, max_tokens: int):
        self.ttl_seconds = ttl_seconds
        self.max_tokens = max_tokens
        self._lock = threading.Lock()
        # conversation_id -> {"history": InMemoryChatMessageHistory, "expires_at": float, "in_flight": bool}
        self._items: dict[str, dict[str, object]] = {}

    def _approx_tokens(self, text: str) -> int:
        return max(1, len(text) // 4)

    def _get_or_create_unlocked(self, conversation_id: str) -> dict:
        now = time.time()
        item = self._items.get(conversation_id)

        if item is not None:
            if float(item["expires_at"]) > now or item["in_flight"]:
                item["expires_at"] = now + self.ttl_seconds
                return item
            del self._items[conversation_id]

        item = {
            "history": InMemoryChatMessageHistory(),
            "expires_at": now + self.ttl_seconds,
            "in_flight": False,
        }
        self._items[conversation_id] = item
        return item

    def snapshot(self, conversation_id: str) -> list:
        """
        Returns a COPY of the current message list, pruned to the token cap.
        """
        cid = str(conversation_id)
        with self._lock:
            item = self._get_or_create_unlocked(cid)
            history = item["history"]
            self._prune_to_token_cap_unlocked(history)
            return list(history.messages)

    def append_turn(self, conversation_id: str, user_text: str, assistant_text: str) -> None:
        cid = str(conversation_id)
        with self._lock:
            history = self._get_or_create_unlocked(cid)["history"]
            history.add_message(HumanMessage(content=user_text))
            history.add_message(AIMessage(content=assistant_text))
            self._prune_to_token_cap_unlocked(history)

    @contextmanager
    def request(self, conversation_id: str):
        """
        Marks the conversation busy for the duration of one generator call.
        A second request on the same conversation raises RequestInFlightError.
        Idle conversations past their TTL are evicted on the way in.
        """
        cid = str(conversation_id)
        with self._lock:
            self._sweep_expired_unlocked(time.time())
            item = self._get_or_create_unlocked(cid)
            if item["in_flight"]:
                raise RequestInFlightError(f"A request is already running for conversation '{cid}'.")
            item["in_flight"] = True
        try:
            yield
        finally:
            with self._lock:
                item = self._items.get(cid)
                if item is not None:
                    item["in_flight"] = False
                    item["expires_at"] = time.time() + self.ttl_seconds

    def _prune_to_token_cap_unlocked(self, history: InMemoryChatMessageHistory) -> None:
        msgs = list(history.messages)
        tokens = [self._approx_tokens(str(getattr(m, "content", "") or "")) for m in msgs]
        total = sum(tokens)

        if total <= self.max_tokens:
            return

        # drop whole turns from the front until under cap
        i = 0
        while i < len(msgs) and total > self.max_tokens:
            total -= tokens[i]
            i += 1
        if i % 2:
            i += 1

        history.messages = msgs[i:]

    def _sweep_expired_unlocked(self, now: float) -> int:
        expired = [
            k for k, v in self._items.items()
            if float(v["expires_at"]) <= now and not v["in_flight"]
        ]
        for k in expired:
            del self._items[k]
        return len(expired)

    def sweep_expired(self) -> int:
        """
        Delete expired conversations that are not waiting on a request.
        Returns how many entries were removed.
        """
        with self._lock:
            return self._sweep_expired_unlocked(time.time())


GLOBAL_LAYOUT_CHAT_CACHE = HistoryCache(ttl_seconds=24 * 3600, max_tokens=8000)
GLOBAL_IDENTIFY_CHAT_CACHE = HistoryCache(ttl_seconds=2 * 3600, max_tokens=8000)
