# artisan_sync/llm_client.py

import asyncio
import logging
import random
import threading
import time
from typing import Any, Callable, Dict, Optional, TypeVar

from openai import OpenAI
from langchain_google_vertexai import VertexAI


logger = logging.getLogger("artisan_sync")

T = TypeVar("T")


class MaxRetryErrorsException(Exception):
    pass


def is_openai_model(model_name: str) -> bool:
    name = (model_name or "").lower()
    return name.startswith(("gpt-", "o1", "o3", "o4", "chatgpt"))


def is_rate_limited(e: Exception) -> bool:
    msg = str(e)
    if "429" not in msg:
        return False
    return any(m in msg for m in ("RESOURCE_EXHAUSTED", "Resource has been exhausted", "Too Many Requests"))


def is_timeout(e: Exception) -> bool:
    if isinstance(e, (asyncio.TimeoutError, TimeoutError)):
        return True
    msg = repr(e)
    return "TimeoutError" in msg or "timed out" in msg.lower()


class GlobalBackoff:
    """
    Process-wide pause shared by every LLM caller: a 429 or timeout on one
    call makes all callers wait, the pause doubles per hit (capped) and
    halves per success.
    """

    def __init__(self, initial: float = 30.0, maximum: float = 600.0, floor: float = 1.0) -> None:
        self._lock = threading.Lock()
        self._wait_until = 0.0
        self._seconds = initial
        self._maximum = maximum
        self._floor = floor

    def wait(self) -> None:
        while True:
            with self._lock:
                remaining = self._wait_until - time.monotonic()
            if remaining <= 0:
                return
            time.sleep(min(remaining, 1.0))

    def register_hit(self) -> float:
        with self._lock:
            delay = random.uniform(self._seconds * 0.95, self._seconds * 1.35)
            self._seconds = min(self._seconds * 2, self._maximum)
            self._wait_until = max(self._wait_until, time.monotonic() + delay)
            return delay

    def register_success(self) -> None:
        with self._lock:
            self._seconds = max(self._floor, self._seconds * 0.5)


GLOBAL_BACKOFF = GlobalBackoff()


def call_with_retries_sync(
    fn: Callable[[], T],
    *,
    retries: int = 3,
    backoff: GlobalBackoff = GLOBAL_BACKOFF,
) -> T:
    """
    Run a sync LLM call under the global backoff, retrying up to `retries`
    attempts in total.
    """
    last_exception: Optional[Exception] = None

    for attempt in range(1, retries + 1):
        backoff.wait()
        started = time.time()
        try:
            result = fn()
        except Exception as e:
            last_exception = e
            elapsed = time.time() - started
            # the last attempt never arms the backoff: nobody is going to wait on it
            if attempt < retries and (is_rate_limited(e) or is_timeout(e)):
                delay = backoff.register_hit()
                logger.warning(f"[LLM-RETRY] attempt {attempt}/{retries} hit 429/timeout after {elapsed:.2f}s, backing off ~{delay:.1f}s: {e}")
            else:
                logger.warning(f"[LLM-RETRY] attempt {attempt}/{retries} failed after {elapsed:.2f}s: {e}")
            continue
        backoff.register_success()
        return result

    raise MaxRetryErrorsException(f"All {retries} retry attempts failed.") from last_exception


class LlmClient:
    """
    Completion-style wrapper:

        text = llm.invoke("some prompt")

    - gpt-* / o* models: OpenAI Responses API
    - anything else: Vertex AI through LangChain
    """

    def __init__(
        self,
        model_name: str,
        *,
        vertex_project: str,
        vertex_region: str,
        timeout: float | None = None,
        instructions: Optional[str] = None,
    ):
        self.provider = "openai" if is_openai_model(model_name) else "vertex"
        self.model_name = model_name
        self.instructions = instructions

        self._vertex: Optional[VertexAI] = None
        self._openai: Optional[OpenAI] = None
        if self.provider == "vertex":
            self._vertex = VertexAI(
                project=vertex_project,
                location=vertex_region,
                model_name=model_name,
                timeout=timeout,
            )
        else:
            kwargs: Dict[str, Any] = {"max_retries": 0}
            if timeout is not None:
                kwargs["timeout"] = timeout
            self._openai = OpenAI(**kwargs)

    def _invoke_vertex(self, prompt: str) -> str:
        if self.instructions:
            prompt = f"{self.instructions}\n\n{prompt}"
        resp = self._vertex.invoke(prompt)
        return str(getattr(resp, "content", resp)).strip()

    def _invoke_openai(self, prompt: str) -> str:
        kwargs: Dict[str, Any] = {"model": self.model_name, "input": prompt}
        if self.instructions:
            kwargs["instructions"] = self.instructions
        resp = self._openai.responses.create(**kwargs)
        return (getattr(resp, "output_text", "") or "").strip()

    def invoke(self, prompt: str, *, retries: int = 3) -> str:
        if self.provider == "vertex":
            return call_with_retries_sync(lambda: self._invoke_vertex(prompt), retries=retries)
        return call_with_retries_sync(lambda: self._invoke_openai(prompt), retries=retries)
