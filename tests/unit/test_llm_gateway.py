"""
Unit tests for the LLM gateway: request payload, error mapping and
health checks, with urlopen faked.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../.."))

import io
import json
from urllib.error import HTTPError, URLError

import pytest

from tastecrm.flows import llm_gateway
from tastecrm.flows.llm_gateway import LLMError, LLMGateway, ModelNotFoundError, OllamaClient


class FakeResponse:
    def __init__(self, payload):
        self._body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()

    def read(self):
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def _fake_urlopen(monkeypatch, payload=None, error=None):
    requests = []

    def fake(req, timeout=None):
        requests.append(req)
        if error is not None:
            raise error
        return FakeResponse(payload)

    monkeypatch.setattr(llm_gateway, "urlopen", fake)
    return requests


def _client(api_key=""):
    return OllamaClient(host="http://llm.test/", model="qwen2.5:7b", timeout=5, api_key=api_key)


# ─── GENERATE ─────────────────────────────────────────────────

def test_generate_sends_json_mode(monkeypatch):
    requests = _fake_urlopen(monkeypatch, {"response": '{"ok": true}', "eval_count": 7})

    result = _client().generate("hello", temperature=0.2, max_tokens=64, json_mode=True)

    assert result["response"] == '{"ok": true}'
    assert result["eval_count"] == 7
    req = requests[0]
    assert req.full_url == "http://llm.test/api/generate"
    body = json.loads(req.data)
    assert body["format"] == "json"
    assert body["stream"] is False
    assert body["options"] == {"temperature": 0.2, "num_predict": 64}


def test_plain_mode_has_no_format(monkeypatch):
    requests = _fake_urlopen(monkeypatch, {"response": "hi"})
    _client().generate("hello", system="be brief")
    body = json.loads(requests[0].data)
    assert "format" not in body
    assert body["system"] == "be brief"


def test_api_key_sent_as_bearer(monkeypatch):
    requests = _fake_urlopen(monkeypatch, {"response": "hi"})
    _client(api_key="sk-test").generate("hello")
    assert requests[0].get_header("Authorization") == "Bearer sk-test"


def test_404_is_model_not_found(monkeypatch):
    err = HTTPError("http://llm.test", 404, "Not Found", {}, io.BytesIO(b"model not found"))
    _fake_urlopen(monkeypatch, error=err)
    with pytest.raises(ModelNotFoundError):
        _client().generate("hello")


def test_server_error_is_llm_error(monkeypatch):
    err = HTTPError("http://llm.test", 500, "Boom", {}, io.BytesIO(b"internal"))
    _fake_urlopen(monkeypatch, error=err)
    with pytest.raises(LLMError) as exc:
        _client().generate("hello")
    assert not isinstance(exc.value, ModelNotFoundError)
    assert "HTTP 500" in str(exc.value)


def test_unreachable_is_llm_error(monkeypatch):
    _fake_urlopen(monkeypatch, error=URLError("connection refused"))
    with pytest.raises(LLMError):
        _client().generate("hello")


def test_undecodable_body_is_llm_error(monkeypatch):
    _fake_urlopen(monkeypatch, b"<html>")
    with pytest.raises(LLMError):
        _client().generate("hello")


# ─── GATEWAY ──────────────────────────────────────────────────

def test_gateway_tags_stage_and_request_id(monkeypatch):
    _fake_urlopen(monkeypatch, {"response": "{}", "model": "qwen2.5:7b"})
    gateway = LLMGateway(ollama_host="http://llm.test", ollama_model="qwen2.5:7b")

    result = gateway.generate("x" * 200, stage_name="segments", request_id="req-1")

    assert result["stage"] == "segments"
    assert result["request_id"] == "req-1"
    assert result["provider"] == "ollama"


def test_gateway_propagates_failure(monkeypatch):
    _fake_urlopen(monkeypatch, error=URLError("down"))
    gateway = LLMGateway(ollama_host="http://llm.test", ollama_model="m")
    with pytest.raises(LLMError):
        gateway.generate("hello", stage_name="analytics")


# ─── HEALTH ───────────────────────────────────────────────────

def test_health_matches_model_prefix(monkeypatch):
    _fake_urlopen(monkeypatch, {"models": [{"name": "qwen2.5:7b-instruct"}]})
    health = _client().health_check()
    assert health["healthy"] is True
    assert health["model_available"] is True


def test_health_reports_missing_model(monkeypatch):
    _fake_urlopen(monkeypatch, {"models": [{"name": "llama3:8b"}]})
    health = _client().health_check()
    assert health["healthy"] is True
    assert health["model_available"] is False
    assert "ollama pull" in health["error"]


def test_health_unreachable(monkeypatch):
    _fake_urlopen(monkeypatch, error=URLError("refused"))
    health = _client().health_check()
    assert health["healthy"] is False


def test_gateway_initialize_unavailable(monkeypatch):
    _fake_urlopen(monkeypatch, error=URLError("refused"))
    status = LLMGateway(ollama_host="http://llm.test", ollama_model="m").initialize()
    assert status["status"] == "unavailable"
