import io
import json
import logging
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.error import HTTPError, URLError

import pytest

from termassist.command.models import GenerationRequest
from termassist.errors import AIError
from termassist.llm.client import CompletionClient, build_prompt


class FakeResponse:
    def __init__(self, payload: object, status: int = 200) -> None:
        self.status = status
        body = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
        self._stream = io.BytesIO(body)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return None

    def read(self, amt: int = -1) -> bytes:
        return self._stream.read(amt)


def _completion(content: str) -> dict[str, object]:
    return {
        "id": "gen-1",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 40, "completion_tokens": 4, "total_tokens": 44},
    }


def _client(sleeps: list[float], **kwargs: object) -> CompletionClient:
    return CompletionClient(api_url="https://example.com/api", sleep=sleeps.append, **kwargs)


def _request() -> GenerationRequest:
    return GenerationRequest(user_input="list files", working_directory="C:\\work")


def test_build_prompt_mentions_request_and_directory() -> None:
    prompt = build_prompt("show my ip", "C:\\Users\\me")

    assert prompt.startswith("Task: Generate a valid Windows Command Prompt command.")
    assert "Current directory: C:\\Users\\me" in prompt
    assert "User request: show my ip" in prompt
    assert "1. Provide ONLY ONE single command without explanation or repetition." in prompt
    assert "No PowerShell commands" in prompt
    assert prompt.endswith("Your response:")


def test_complete_posts_prompt_as_json(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    def fake_urlopen(req, timeout):
        captured["url"] = req.full_url
        captured["method"] = req.get_method()
        captured["content_type"] = req.get_header("Content-type")
        captured["body"] = json.loads(req.data.decode("utf-8"))
        captured["timeout"] = timeout
        return FakeResponse(_completion("dir"))

    monkeypatch.setattr("termassist.llm.client.request.urlopen", fake_urlopen)

    completion = _client([]).complete(_request())

    assert captured["url"] == "https://example.com/api"
    assert captured["method"] == "POST"
    assert captured["content_type"] == "application/json"
    assert captured["timeout"] == 30.0
    assert captured["body"] == {"prompt": build_prompt("list files", "C:\\work")}
    assert completion.payload["choices"][0]["message"]["content"] == "dir"
    assert completion.usage["total_tokens"] == 44
    assert completion.attempts == 1


def test_persistent_transport_failure_retries_with_linear_backoff(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    calls: list[int] = []

    def fake_urlopen(*_args, **_kwargs):
        calls.append(1)
        raise URLError("connection refused")

    monkeypatch.setattr("termassist.llm.client.request.urlopen", fake_urlopen)
    sleeps: list[float] = []

    with pytest.raises(AIError) as excinfo:
        _client(sleeps).complete(_request())

    assert excinfo.value.code == "MAX_RETRIES_EXCEEDED"
    assert excinfo.value.message == "Failed after 3 attempts: connection refused"
    assert len(calls) == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.parametrize(
    "timeout_exc",
    [URLError(TimeoutError("timed out")), TimeoutError("timed out")],
)
def test_timeout_fails_immediately_without_retry(
    monkeypatch: pytest.MonkeyPatch,
    timeout_exc: Exception,
) -> None:
    calls: list[int] = []

    def fake_urlopen(*_args, **_kwargs):
        calls.append(1)
        raise timeout_exc

    monkeypatch.setattr("termassist.llm.client.request.urlopen", fake_urlopen)
    sleeps: list[float] = []

    with pytest.raises(AIError) as excinfo:
        _client(sleeps).complete(_request())

    assert excinfo.value.code == "TIMEOUT"
    assert len(calls) == 1
    assert sleeps == []


def test_http_error_is_retried_then_succeeds(monkeypatch: pytest.MonkeyPatch) -> None:
    responses: list[object] = [
        HTTPError(
            url="https://example.com/api",
            code=503,
            msg="Service Unavailable",
            hdrs=None,
            fp=io.BytesIO(b"upstream busy"),
        ),
        FakeResponse(_completion("ipconfig /all")),
    ]

    def fake_urlopen(*_args, **_kwargs):
        item = responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    monkeypatch.setattr("termassist.llm.client.request.urlopen", fake_urlopen)
    sleeps: list[float] = []

    completion = _client(sleeps).complete(_request())

    assert completion.attempts == 2
    assert sleeps == [1.0]


def test_http_error_message_carries_status_and_body(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_urlopen(*_args, **_kwargs):
        raise HTTPError(
            url="https://example.com/api",
            code=500,
            msg="Internal Server Error",
            hdrs=None,
            fp=io.BytesIO(b'{"error":"model overloaded"}'),
        )

    monkeypatch.setattr("termassist.llm.client.request.urlopen", fake_urlopen)

    with pytest.raises(AIError) as excinfo:
        _client([], max_attempts=1).complete(_request())

    assert excinfo.value.code == "MAX_RETRIES_EXCEEDED"
    assert "API returned 500" in excinfo.value.message
    assert "model overloaded" in excinfo.value.message


def test_non_json_body_is_invalid_response(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        "termassist.llm.client.request.urlopen",
        lambda *_a, **_k: FakeResponse(b"<html>oops</html>"),
    )

    with pytest.raises(AIError) as excinfo:
        _client([]).complete(_request())

    assert excinfo.value.code == "INVALID_RESPONSE"


def test_json_array_body_is_invalid_response(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        "termassist.llm.client.request.urlopen",
        lambda *_a, **_k: FakeResponse(["dir"]),
    )

    with pytest.raises(AIError) as excinfo:
        _client([]).complete(_request())

    assert excinfo.value.code == "INVALID_RESPONSE"


class TricklingHandler(BaseHTTPRequestHandler):
    body = json.dumps(_completion("dir")).encode("utf-8")
    interval = 0.3

    def do_POST(self) -> None:
        self.rfile.read(int(self.headers.get("Content-Length", "0")))
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(self.body)))
        self.end_headers()
        try:
            for index in range(len(self.body)):
                self.wfile.write(self.body[index : index + 1])
                self.wfile.flush()
                time.sleep(self.interval)
        except (BrokenPipeError, ConnectionResetError):
            pass

    def log_message(self, format: str, *args: object) -> None:
        return None


@pytest.fixture
def trickling_server():
    server = ThreadingHTTPServer(("127.0.0.1", 0), TricklingHandler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}/api"
    finally:
        server.shutdown()
        server.server_close()


def test_slow_body_is_bounded_by_attempt_timeout(trickling_server: str) -> None:
    sleeps: list[float] = []
    client = CompletionClient(api_url=trickling_server, timeout=1.0, sleep=sleeps.append)

    started = time.monotonic()
    with pytest.raises(AIError) as excinfo:
        client.complete(_request())
    elapsed = time.monotonic() - started

    assert excinfo.value.code == "TIMEOUT"
    assert elapsed < 2.5
    assert sleeps == []


def test_retry_is_logged_with_retrying_stage(
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    responses: list[object] = [URLError("connection reset"), FakeResponse(_completion("dir"))]

    def fake_urlopen(*_args, **_kwargs):
        item = responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    monkeypatch.setattr("termassist.llm.client.request.urlopen", fake_urlopen)
    caplog.set_level(logging.WARNING, logger="termassist.llm.client")

    _client([]).complete(_request())

    retries = [record for record in caplog.records if record.getMessage() == "llm_request_retry"]
    assert len(retries) == 1
    assert retries[0].stage == "retrying"
    assert retries[0].attempt == 1
