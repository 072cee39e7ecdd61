import json
import unittest
from dataclasses import replace

from fastapi.testclient import TestClient

from server.gbcite.config import Settings
from server.gbcite.core.rate_limit import _limiter
from server.main import create_app


class _StubResponse:
    def __init__(self, payload: dict, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code

    def json(self):  # type: ignore[no-untyped-def]
        return self._payload


class _StubSession:
    def __init__(self, content: str = "", status_code: int = 200) -> None:
        self.content = content
        self.status_code = status_code
        self.calls: list[dict] = []

    def post(self, url, **kwargs):  # type: ignore[no-untyped-def]
        self.calls.append({"url": url, **kwargs})
        return _StubResponse({"choices": [{"message": {"content": self.content}}]}, status_code=self.status_code)


def _settings(**overrides) -> Settings:
    base = replace(
        Settings.from_env(),
        openai_api_key="test-key",
        openai_base_url="https://llm.example.com/v1",
        llm_max_retries=0,
        rate_limit_enabled=False,
        max_body_kb=256,
    )
    return replace(base, **overrides)


class TestFormatEndpoint(unittest.TestCase):
    def setUp(self) -> None:
        _limiter.reset()

    def _client(self, session: _StubSession | None, **overrides) -> TestClient:
        app = create_app(_settings(**overrides))
        app.state.http_session = session
        return TestClient(app)

    def test_formats_multiple_references(self) -> None:
        content = "```json\n" + json.dumps(
            [
                {"status": "success", "result": "[1] A.", "changes": ["已补全年份"]},
                {"status": "warning", "result": "[2] B.", "changes": ["缺少年份，请手动补充"]},
            ],
            ensure_ascii=False,
        ) + "\n```"
        session = _StubSession(content)
        client = self._client(session)

        resp = client.post("/api/format", json={"text": "A\nB"})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(
            resp.json(),
            {"formatted": "[1] A.\n\n[2] B.", "status": "warning", "changes": ["已补全年份", "缺少年份，请手动补充"]},
        )
        user_message = session.calls[0]["json"]["messages"][1]["content"]
        self.assertIn("A\nB", user_message)

    def test_unparseable_output_is_a_result_not_a_failure(self) -> None:
        client = self._client(_StubSession("无法识别输入内容"))
        resp = client.post("/api/format", json={"text": "???"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "error")
        self.assertEqual(resp.json()["changes"], ["could not parse response format"])

    def test_rejects_missing_or_non_string_text(self) -> None:
        session = _StubSession("{}")
        client = self._client(session)
        for body in ({}, {"text": ""}, {"text": "   "}, {"text": 12}, ["text"]):
            with self.subTest(body=body):
                resp = client.post("/api/format", json=body)
                self.assertEqual(resp.status_code, 400)
                self.assertEqual(resp.json(), {"error": "Please provide valid reference text."})
        resp = client.post("/api/format", content=b"{not json", headers={"content-type": "application/json"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"error": "Please provide valid reference text."})
        self.assertEqual(session.calls, [])

    def test_missing_configuration_fails_before_model_call(self) -> None:
        session = _StubSession("{}")
        client = self._client(session, openai_base_url="")
        resp = client.post("/api/format", json={"text": "A"})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"error": "Server configuration error, please try again later."})
        self.assertEqual(session.calls, [])

    def test_provider_failures_use_fixed_messages(self) -> None:
        cases = [
            (401, 502, "The model API key is invalid."),
            (429, 429, "Too many requests, please try again later."),
            (500, 502, "The model service failed, please try again later."),
            (404, 500, "Server error, please try again later."),
        ]
        for upstream, expected_status, message in cases:
            with self.subTest(upstream=upstream):
                client = self._client(_StubSession("secret provider detail", status_code=upstream))
                resp = client.post("/api/format", json={"text": "A"})
                self.assertEqual(resp.status_code, expected_status)
                self.assertEqual(resp.json(), {"error": message})

    def test_rate_limit(self) -> None:
        client = self._client(_StubSession('{"result": "X"}'), rate_limit_enabled=True, rate_limit_format=1)
        self.assertEqual(client.post("/api/format", json={"text": "A"}).status_code, 200)
        self.assertEqual(client.post("/api/format", json={"text": "A"}).status_code, 429)

    def test_body_size_limit(self) -> None:
        client = self._client(_StubSession('{"result": "X"}'), max_body_kb=1)
        resp = client.post("/api/format", json={"text": "x" * 4096})
        self.assertEqual(resp.status_code, 413)

    def test_security_headers(self) -> None:
        resp = self._client(None).get("/healthz")
        self.assertEqual(resp.json(), {"ok": True})
        self.assertEqual(resp.headers["x-content-type-options"], "nosniff")
        self.assertEqual(resp.headers["x-frame-options"], "DENY")


class TestReadiness(unittest.TestCase):
    def test_ready_when_configured(self) -> None:
        client = TestClient(create_app(_settings()))
        self.assertEqual(client.get("/readyz").status_code, 200)

    def test_not_ready_without_key(self) -> None:
        client = TestClient(create_app(_settings(openai_api_key="")))
        self.assertEqual(client.get("/readyz").status_code, 503)


if __name__ == "__main__":
    unittest.main()
