import asyncio
import base64
import logging
import threading
import random
import time
import traceback
from typing import Callable, TypeVar, Any, Dict, List, Optional

from openai import OpenAI
from google import genai
from google.genai import types
from langchain_google_vertexai import VertexAI, ChatVertexAI
from langchain_core.messages import BaseMessage, HumanMessage, AIMessage, SystemMessage

from classes.errors import AiRateLimitedError, AiServiceError

T = TypeVar("T")

logger = logging.getLogger("gallery_backend")


class MaxRetryErrorsException(AiServiceError):
    pass


# Global backoff state (shared across all clients)
_global_backoff_lock = threading.Lock()
_global_wait_until = 0.0
_global_backoff_seconds = 30.0
_GLOBAL_BACKOFF_MAX = 600.0
_GLOBAL_BACKOFF_INITIAL = 30.0


def reset_global_backoff() -> None:
    global _global_wait_until, _global_backoff_seconds
    with _global_backoff_lock:
        _global_wait_until = 0.0
        _global_backoff_seconds = _GLOBAL_BACKOFF_INITIAL


def is_timeout_error(e: Exception) -> bool:
    if isinstance(e, (asyncio.TimeoutError, TimeoutError)):
        return True
    msg = repr(e)
    return "TimeoutError" in msg or "timed out" in msg.lower()


def is_resource_exhausted_error(e: Exception) -> bool:
    if getattr(e, "status_code", None) == 429 or getattr(e, "code", None) == 429:
        return True
    msg = str(e)
    return (
        "RESOURCE_EXHAUSTED" in msg
        or "Resource has been exhausted" in msg
        or ("429" in msg and "Too Many Requests" in msg)
    )


def call_with_retries_sync(
    fn: Callable[[], T],
    *,
    retries: int = 3,
    log: Callable[[str], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run a sync LLM call with global 429/timeout backoff + retries.

    When every attempt fails, raises AiRateLimitedError if the last failure was
    a quota refusal, otherwise MaxRetryErrorsException (an AiServiceError).
    """
    last_exception: Exception | None = None

    def _respect_global_backoff() -> None:
        while True:
            with _global_backoff_lock:
                now = time.monotonic()
                wait = _global_wait_until - now
            if wait <= 0:
                return
            sleep(min(wait, 1.0))

    def _register_429_and_get_delay() -> float:
        global _global_wait_until, _global_backoff_seconds

        with _global_backoff_lock:
            now = time.monotonic()
            base = _global_backoff_seconds
            delay = random.uniform(base * 0.95, base * 1.35)
            _global_backoff_seconds = min(_global_backoff_seconds * 2, _GLOBAL_BACKOFF_MAX)
            _global_wait_until = max(_global_wait_until, now + delay)
            return delay

    def _reset_backoff_on_success() -> None:
        global _global_backoff_seconds
        with _global_backoff_lock:
            _global_backoff_seconds = max(1.0, _global_backoff_seconds * 0.5)

    for attempt in range(retries):
        _respect_global_backoff()
        start_time = time.time()
        try:
            result = fn()
            _reset_backoff_on_success()
            return result
        except Exception as e:
            elapsed = time.time() - start_time
            last_exception = e

            # no point in waiting out a backoff after the final attempt
            is_last = attempt == retries - 1
            if (is_resource_exhausted_error(e) or is_timeout_error(e)) and not is_last:
                delay = _register_429_and_get_delay()
                msg = f"Attempt {attempt+1} got 429/timeout, backing off ~{delay:.1f}s."
            else:
                msg = f"Attempt {attempt+1} failed."

            if log:
                log(f"{msg} (elapsed={elapsed:.2f}s): {e}\n{traceback.format_exc()}")

    if last_exception is not None and is_resource_exhausted_error(last_exception):
        raise AiRateLimitedError(
            "The AI service is rate-limited. Please wait a moment and try again."
        ) from last_exception
    raise MaxRetryErrorsException(f"All {retries} retry attempts failed.") from last_exception


def is_openai_model(model_name) -> bool:
    prefixes = ("gpt-", "gpt4", "o1", "o3", "o4")
    return any((model_name or "").startswith(p) for p in prefixes)


def _response_text(resp: Any) -> str:
    if isinstance(resp, str):
        return resp
    content = getattr(resp, "content", None)
    if content is None:
        return str(resp)
    if isinstance(content, list):
        # Gemini may return a list of content blocks
        return "".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in content
        )
    return str(content)


class BaseLlmClient:
    """
    Provider selection shared by the completion and chat clients.
    """

    def _build_openai_client(self, timeout: float | None) -> OpenAI:
        client_kwargs: Dict[str, Any] = {"max_retries": 0}
        if timeout is not None:
            client_kwargs["timeout"] = timeout
        return OpenAI(**client_kwargs)


class LlmClient(BaseLlmClient):
    """
    Minimal wrapper for "completion-style" use:

        text = llm.invoke("some prompt")

    Under the hood:
    - Vertex: VertexAI.invoke(prompt)
    - OpenAI: Responses API (client.responses.create)
    """

    def __init__(
        self,
        model_name: str,
        *,
        vertex_project: str,
        vertex_region: str,
        timeout: float | None = None,
    ):
        self.provider = "openai" if is_openai_model(model_name) else "vertex"
        self.model_name = model_name

        if self.provider == "vertex":
            self._vertex = VertexAI(
                project=vertex_project,
                location=vertex_region,
                model_name=model_name,
                timeout=timeout,
            )
            self._client = None
        else:
            self._vertex = None
            self._client = self._build_openai_client(timeout)

    def _invoke_once(self, prompt: str) -> str:
        if self.provider == "vertex":
            resp = self._vertex.invoke(prompt)
            return _response_text(resp)

        resp = self._client.responses.create(model=self.model_name, input=prompt)
        return (getattr(resp, "output_text", "") or "").strip()

    def invoke(self, prompt: str, *, retries: int = 3) -> str:
        """
        Synchronous call with global 429/timeout backoff + retries.
        """
        return call_with_retries_sync(
            lambda: self._invoke_once(prompt),
            retries=retries,
            log=lambda msg: logger.warning(f"[LLM-RETRY] {msg}"),
        )


class ChatLlmClient(BaseLlmClient):
    """
    Chat-style use, including image parts:

        text = chat_llm.invoke([SystemMessage(...), HumanMessage(content=[...]), ...])

    Human message content may be a plain string or a list of LangChain content
    blocks ({"type": "text", "text": ...} / {"type": "image_url", "image_url": {"url": data_url}}).

    Under the hood:
    - Vertex: ChatVertexAI.invoke(messages)
    - OpenAI: Responses API with input=[{role, content}, ...]
    """

    def __init__(
        self,
        model_name: str,
        *,
        vertex_project: str,
        vertex_region: str,
        timeout: float | None = None,
    ):
        self.provider = "openai" if is_openai_model(model_name) else "vertex"
        self.model_name = model_name

        if self.provider == "vertex":
            self._vertex = ChatVertexAI(
                project=vertex_project,
                location=vertex_region,
                model_name=model_name,
                timeout=timeout,
            )
            self._client = None
        else:
            self._vertex = None
            self._client = self._build_openai_client(timeout)

    def _to_openai_content(self, content: Any, role: str) -> Any:
        if isinstance(content, str):
            return content
        text_type = "output_text" if role == "assistant" else "input_text"
        out: List[Dict[str, str]] = []
        for block in content or []:
            if isinstance(block, str):
                out.append({"type": text_type, "text": block})
            elif block.get("type") == "text":
                out.append({"type": text_type, "text": block.get("text", "")})
            elif block.get("type") == "image_url":
                image_url = block.get("image_url")
                url = image_url.get("url") if isinstance(image_url, dict) else image_url
                out.append({"type": "input_image", "image_url": url})
        return out

    def _to_openai_messages(self, messages: List[BaseMessage]) -> List[Dict[str, Any]]:
        out: List[Dict[str, Any]] = []
        for m in messages:
            if isinstance(m, SystemMessage):
                role = "developer"
            elif isinstance(m, AIMessage):
                role = "assistant"
            else:
                role = "user"
            out.append({"role": role, "content": self._to_openai_content(m.content, role)})
        return out

    def _invoke_once(self, messages: List[BaseMessage]) -> str:
        if self.provider == "vertex":
            resp = self._vertex.invoke(messages)
            return _response_text(resp)

        resp = self._client.responses.create(
            model=self.model_name,
            input=self._to_openai_messages(messages),
        )
        return (getattr(resp, "output_text", "") or "").strip()

    def invoke(self, messages: List[BaseMessage], *, retries: int = 3) -> str:
        """
        Synchronous chat call with global 429/timeout backoff + retries.
        """
        return call_with_retries_sync(
            lambda: self._invoke_once(messages),
            retries=retries,
            log=lambda msg: logger.warning(f"[CHAT-LLM-RETRY] {msg}"),
        )


class ImageEditClient:
    """
    Image-to-image edits through the Gemini image model on Vertex AI.

        data_url = image_llm.edit(image_bytes, "image/png", "Make it sharper.")

    Returns a data: URL of the first image part in the reply, or None when the
    model answered without an image.
    """

    def __init__(
        self,
        model_name: str,
        *,
        vertex_project: str,
        vertex_region: str,
        client: Any = None,
    ):
        self.model_name = model_name
        self._client = client or genai.Client(vertexai=True, project=vertex_project, location=vertex_region)

    def _edit_once(self, image_bytes: bytes, mime_type: str, prompt: str) -> Optional[str]:
        response = self._client.models.generate_content(
            model=self.model_name,
            contents=[
                types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
                prompt,
            ],
            config=types.GenerateContentConfig(response_modalities=["IMAGE"]),
        )

        candidates = getattr(response, "candidates", None) or []
        if not candidates or candidates[0].content is None:
            return None
        for part in candidates[0].content.parts or []:
            inline = getattr(part, "inline_data", None)
            if inline is not None and inline.data:
                data = inline.data
                if isinstance(data, (bytes, bytearray)):
                    data = base64.b64encode(data).decode("ascii")
                return f"data:{inline.mime_type or 'image/png'};base64,{data}"
        return None

    def edit(self, image_bytes: bytes, mime_type: str, prompt: str, *, retries: int = 2) -> Optional[str]:
        return call_with_retries_sync(
            lambda: self._edit_once(image_bytes, mime_type, prompt),
            retries=retries,
            log=lambda msg: logger.warning(f"[IMAGE-LLM-RETRY] {msg}"),
        )
