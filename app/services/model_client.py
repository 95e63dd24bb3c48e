"""Model client: send a single prompt to the local LLM (Ollama) and return its text reply."""

import json
import logging
import time
from typing import TYPE_CHECKING, Protocol

import httpx

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


class ModelInvocationError(Exception):
    """Raised when the model call cannot complete (Ollama unreachable, timeout, or bad response)."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.message = message
        self.cause = cause
        super().__init__(message)


class ModelClient(Protocol):
    async def invoke(self, prompt: str, max_tokens: int, temperature: float) -> str: ...


class OllamaModelClient:
    """Single request/response (non-streaming) calls to Ollama's /api/generate."""

    def __init__(self, settings: "Settings") -> None:
        self.settings = settings

    def _payload(self, prompt: str, max_tokens: int, temperature: float) -> dict:
        return {
            "model": self.settings.OLLAMA_MODEL,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": temperature,
                "top_p": self.settings.OLLAMA_TOP_P,
                "repeat_penalty": self.settings.OLLAMA_REPEAT_PENALTY,
                "seed": self.settings.OLLAMA_SEED,
                "num_predict": max_tokens,
            },
        }

    def _log_failure(self, elapsed: float) -> None:
        logger.info(
            "LLM analysis request failed",
            extra={
                "llm_latency_seconds": elapsed,
                "model": self.settings.OLLAMA_MODEL,
                "status": "error",
            },
        )

    async def invoke(self, prompt: str, max_tokens: int, temperature: float) -> str:
        """
        Send prompt to Ollama and return the generated text.

        Raises ModelInvocationError on connection failure, timeout, error status or malformed body.
        """
        url = f"{self.settings.OLLAMA_BASE_URL.rstrip('/')}/api/generate"
        timeout = httpx.Timeout(self.settings.OLLAMA_REQUEST_TIMEOUT_SEC)
        start = time.perf_counter()

        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.post(url, json=self._payload(prompt, max_tokens, temperature))
            elapsed = time.perf_counter() - start
        except httpx.ConnectError as e:
            self._log_failure(time.perf_counter() - start)
            raise ModelInvocationError(
                "Ollama is unreachable. Ensure Ollama is running and OLLAMA_BASE_URL is correct.",
                cause=e,
            ) from e
        except httpx.TimeoutException as e:
            self._log_failure(time.perf_counter() - start)
            raise ModelInvocationError(
                "Ollama request timed out. Try increasing OLLAMA_REQUEST_TIMEOUT_SEC.",
                cause=e,
            ) from e
        except httpx.HTTPError as e:
            self._log_failure(time.perf_counter() - start)
            raise ModelInvocationError("Ollama request failed.", cause=e) from e

        if response.status_code != 200:
            raise ModelInvocationError(
                f"Ollama returned status {response.status_code}. Check that the model is pulled (e.g. ollama pull {self.settings.OLLAMA_MODEL})."
            )

        try:
            body = response.json()
        except json.JSONDecodeError as e:
            raise ModelInvocationError("Ollama response body is not valid JSON.", cause=e) from e

        log_extra: dict[str, float | int | str | None] = {
            "llm_latency_seconds": elapsed,
            "model": self.settings.OLLAMA_MODEL,
            "prompt_chars": len(prompt),
        }
        if body.get("eval_duration") is not None:
            log_extra["eval_duration_nanoseconds"] = body["eval_duration"]
        logger.info("LLM analysis request completed", extra=log_extra)

        text = body.get("response")
        if not isinstance(text, str):
            raise ModelInvocationError("Ollama response missing 'response' field.")
        return text
