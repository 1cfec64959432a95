import json

import httpx
import pytest

import core.services.content_generation as generation
from core.errors import GenerationFailure
from core.services.content_generation import (
    DisabledContentGenerator,
    GenerationCircuitBreaker,
    GenerationRequest,
    HttpContentGenerator,
    build_section_messages,
    parse_generation_reply,
)

API_URL = "https://llm.example.test/v1/chat/completions"


def _completion(content):
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


def _generator(handler, retry_max=2, breaker=None):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpContentGenerator(
        api_url=API_URL,
        api_key="test-key",
        model="test-model",
        retry_max=retry_max,
        client=client,
        breaker=breaker or GenerationCircuitBreaker(failure_threshold=3, cooldown_seconds=60),
    )


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(generation, "_sleep_backoff", lambda attempt: None)


def _request(**overrides):
    values = {
        "instructions": "Make it cozy",
        "section_title": "Intro",
        "section_body": "Cookies are good.",
        "content_title": "Gingerbread",
        "temperature": 0.2,
    }
    values.update(overrides)
    return GenerationRequest(**values)


def test_parse_plain_and_fenced_replies():
    plain = parse_generation_reply('{"body": "  New intro. ", "summary": "Cozier"}')
    assert plain.body == "New intro."
    assert plain.summary == "Cozier"

    fenced = parse_generation_reply('Sure!\n```json\n{"body": "Fenced body", "title": "Intro"}\n```')
    assert fenced.body == "Fenced body"
    assert fenced.title == "Intro"
    assert fenced.summary is None
    assert fenced.frontmatter == {}


@pytest.mark.parametrize("reply", [None, "", "not json", "[1, 2]", '{"body": "   "}', '{"summary": "x"}'])
def test_parse_rejects_unusable_replies(reply):
    with pytest.raises(GenerationFailure):
        parse_generation_reply(reply)


def test_section_messages_carry_instructions_and_source():
    messages = build_section_messages(_request(source_text="transcript notes"))
    assert messages[0]["role"] == "system"
    user = messages[1]["content"]
    assert "Make it cozy" in user
    assert "Cookies are good." in user
    assert "transcript notes" in user


def test_generate_posts_chat_completion():
    seen = []

    def handler(request):
        seen.append(request)
        return _completion(json.dumps({"body": "Warm and cozy.", "summary": "Cozier intro"}))

    result = _generator(handler).generate(_request())
    assert result.body == "Warm and cozy."
    assert result.summary == "Cozier intro"

    sent = json.loads(seen[0].content)
    assert str(seen[0].url) == API_URL
    assert sent["model"] == "test-model"
    assert sent["temperature"] == 0.2
    assert sent["messages"][0]["role"] == "system"


def test_generate_retries_retryable_status():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(503)
        return _completion('{"body": "Second try"}')

    assert _generator(handler).generate(_request()).body == "Second try"
    assert len(calls) == 2


def test_generate_fails_on_client_error_without_retry():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(400, json={"error": "bad"})

    with pytest.raises(GenerationFailure):
        _generator(handler).generate(_request())
    assert len(calls) == 1


def test_generate_fails_on_transport_error():
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    with pytest.raises(GenerationFailure):
        _generator(handler, retry_max=1).generate(_request())


def test_generate_fails_on_empty_body():
    def handler(request):
        return _completion('{"body": ""}')

    with pytest.raises(GenerationFailure):
        _generator(handler).generate(_request())


def test_breaker_opens_after_repeated_failures():
    breaker = GenerationCircuitBreaker(failure_threshold=2, cooldown_seconds=60)
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    generator = _generator(handler, retry_max=0, breaker=breaker)
    for _ in range(2):
        with pytest.raises(GenerationFailure):
            generator.generate(_request())
    assert breaker.is_open()
    assert breaker.status()["consecutive_failures"] == 2

    with pytest.raises(GenerationFailure, match="circuit breaker open"):
        generator.generate(_request())
    assert len(calls) == 2


def test_breaker_resets_on_success():
    breaker = GenerationCircuitBreaker(failure_threshold=3, cooldown_seconds=60)
    breaker.record_failure("status 500")
    breaker.record_success()
    status = breaker.status()
    assert status["consecutive_failures"] == 0
    assert status["open"] is False
    assert status["last_success_epoch"] is not None


def test_disabled_generator_fails_closed():
    with pytest.raises(GenerationFailure):
        DisabledContentGenerator().generate(_request())
