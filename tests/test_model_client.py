"""Model client: request payload carries configured options; failures raise ModelInvocationError (no network)."""

import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from app.core.config import get_settings
from app.services.model_client import ModelInvocationError, OllamaModelClient

GENERATE_MOCK_RESPONSE = {"response": '[{"type": "XSS", "severity": "HIGH"}]', "eval_duration": 1200}


def _mock_client(mock_client_class: MagicMock, post: AsyncMock) -> None:
    mock_instance = MagicMock()
    mock_instance.post = post
    mock_client_class.return_value.__aenter__ = AsyncMock(return_value=mock_instance)
    mock_client_class.return_value.__aexit__ = AsyncMock(return_value=None)


def _response(status_code: int = 200, body: object = GENERATE_MOCK_RESPONSE) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = body
    return resp


class TestOllamaPayload(unittest.TestCase):
    """Request payload includes the prompt, non-streaming mode and sampling options."""

    @patch("app.services.model_client.httpx.AsyncClient")
    def test_payload_includes_options(self, mock_client_class: MagicMock) -> None:
        captured: dict[str, object] = {}

        async def fake_post(url: str, **kwargs: object) -> MagicMock:
            captured["url"] = url
            captured["payload"] = kwargs.get("json")
            return _response()

        _mock_client(mock_client_class, AsyncMock(side_effect=fake_post))
        settings = get_settings()
        client = OllamaModelClient(settings)
        text = asyncio.run(client.invoke("analyze this", max_tokens=4000, temperature=0.1))

        self.assertEqual(text, GENERATE_MOCK_RESPONSE["response"])
        self.assertTrue(str(captured["url"]).endswith("/api/generate"))
        payload = captured["payload"]
        self.assertIsInstance(payload, dict)
        self.assertEqual(payload["prompt"], "analyze this")
        self.assertEqual(payload["model"], settings.OLLAMA_MODEL)
        self.assertIs(payload["stream"], False)
        options = payload["options"]
        self.assertEqual(options["temperature"], 0.1)
        self.assertEqual(options["num_predict"], 4000)
        self.assertEqual(options["top_p"], settings.OLLAMA_TOP_P)
        self.assertEqual(options["repeat_penalty"], settings.OLLAMA_REPEAT_PENALTY)
        self.assertEqual(options["seed"], settings.OLLAMA_SEED)


class TestOllamaFailures(unittest.TestCase):
    """Every failure mode surfaces as ModelInvocationError."""

    def _invoke(self) -> str:
        return asyncio.run(OllamaModelClient(get_settings()).invoke("p", 100, 0.1))

    @patch("app.services.model_client.httpx.AsyncClient")
    def test_unreachable(self, mock_client_class: MagicMock) -> None:
        _mock_client(mock_client_class, AsyncMock(side_effect=httpx.ConnectError("refused")))
        with self.assertRaises(ModelInvocationError) as ctx:
            self._invoke()
        self.assertIn("unreachable", ctx.exception.message)
        self.assertIsInstance(ctx.exception.cause, httpx.ConnectError)

    @patch("app.services.model_client.httpx.AsyncClient")
    def test_timeout(self, mock_client_class: MagicMock) -> None:
        _mock_client(mock_client_class, AsyncMock(side_effect=httpx.ReadTimeout("slow")))
        with self.assertRaises(ModelInvocationError) as ctx:
            self._invoke()
        self.assertIn("timed out", ctx.exception.message)

    @patch("app.services.model_client.httpx.AsyncClient")
    def test_error_status(self, mock_client_class: MagicMock) -> None:
        _mock_client(mock_client_class, AsyncMock(return_value=_response(status_code=404)))
        with self.assertRaises(ModelInvocationError) as ctx:
            self._invoke()
        self.assertIn("404", ctx.exception.message)

    @patch("app.services.model_client.httpx.AsyncClient")
    def test_missing_response_field(self, mock_client_class: MagicMock) -> None:
        _mock_client(mock_client_class, AsyncMock(return_value=_response(body={"done": True})))
        with self.assertRaises(ModelInvocationError):
            self._invoke()
