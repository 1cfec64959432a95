"""
Content-generation collaborator.

The version manager only depends on ``ContentGenerator.generate``; the
default implementation calls an OpenAI-compatible chat-completions endpoint
over httpx with retry/backoff and a circuit breaker. Every failure mode
surfaces as ``GenerationFailure`` so callers can fail closed.
"""

from __future__ import annotations

import json
import random
import re
import threading
import time
from dataclasses import dataclass, field
from typing import Optional

import httpx

import core.config as config
from core.errors import GenerationFailure

logger = config.logger

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL | re.IGNORECASE)
_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


@dataclass
class GenerationRequest:
    instructions: str
    section_title: Optional[str] = None
    section_body: str = ""
    content_title: Optional[str] = None
    content_type: Optional[str] = None
    frontmatter: dict = field(default_factory=dict)
    source_text: Optional[str] = None
    temperature: Optional[float] = None


@dataclass
class GenerationResult:
    body: str
    title: Optional[str] = None
    summary: Optional[str] = None
    frontmatter: dict = field(default_factory=dict)


class ContentGenerator:
    def generate(self, request: GenerationRequest) -> GenerationResult:
        raise NotImplementedError

    def close(self) -> None:
        return None


class DisabledContentGenerator(ContentGenerator):
    def generate(self, request: GenerationRequest) -> GenerationResult:
        raise GenerationFailure("content generation is disabled")


class GenerationCircuitBreaker:
    def __init__(self, failure_threshold: int, cooldown_seconds: int):
        self._failure_threshold = max(1, failure_threshold)
        self._cooldown_seconds = max(1, cooldown_seconds)
        self._lock = threading.Lock()
        self._consecutive_failures = 0
        self._cooldown_until = 0.0
        self._last_error: Optional[str] = None
        self._last_failure_ts: Optional[float] = None
        self._last_success_ts: Optional[float] = None

    def is_open(self) -> bool:
        with self._lock:
            return time.time() < self._cooldown_until

    def record_success(self) -> None:
        with self._lock:
            self._consecutive_failures = 0
            self._cooldown_until = 0.0
            self._last_success_ts = time.time()

    def record_failure(self, error: str) -> None:
        with self._lock:
            self._consecutive_failures += 1
            self._last_error = error
            self._last_failure_ts = time.time()
            if self._consecutive_failures >= self._failure_threshold:
                self._cooldown_until = time.time() + self._cooldown_seconds

    def status(self) -> dict:
        with self._lock:
            return {
                "open": time.time() < self._cooldown_until,
                "consecutive_failures": self._consecutive_failures,
                "cooldown_until_epoch": int(self._cooldown_until) if self._cooldown_until else None,
                "last_error": self._last_error,
                "last_failure_epoch": int(self._last_failure_ts) if self._last_failure_ts else None,
                "last_success_epoch": int(self._last_success_ts) if self._last_success_ts else None,
            }


generation_circuit_breaker = GenerationCircuitBreaker(
    failure_threshold=config.GENERATION_FAILURE_THRESHOLD,
    cooldown_seconds=config.GENERATION_COOLDOWN_SECONDS,
)


def _sleep_backoff(attempt: int) -> None:
    base = config.GENERATION_RETRY_BACKOFF_SECONDS * (2 ** attempt)
    jitter = random.uniform(0, config.GENERATION_RETRY_JITTER_SECONDS)
    time.sleep(base + jitter)


def build_section_messages(request: GenerationRequest) -> list[dict]:
    system = (
        "You rewrite one section of a longer document. Reply with JSON only: "
        '{"body": "<markdown body without the section heading>", "summary": "<one sentence>"}.'
    )
    context = {
        "content_title": request.content_title,
        "content_type": request.content_type,
        "section_title": request.section_title,
        "frontmatter": request.frontmatter or {},
    }
    parts = [
        f"Context:\n{json.dumps(context, ensure_ascii=False, default=str)}",
        f"Current section body:\n{request.section_body or '(empty)'}",
        f"Instructions:\n{request.instructions}",
    ]
    if request.source_text:
        parts.append(f"Source material:\n{request.source_text}")
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": "\n\n".join(parts)},
    ]


def parse_generation_reply(text: Optional[str]) -> GenerationResult:
    """Parse a ``{"body", "summary"}`` reply given as raw JSON or a fenced block."""
    if not isinstance(text, str) or not text.strip():
        raise GenerationFailure("generator returned an empty reply")

    candidates = [text.strip()]
    fenced = _FENCED_JSON_RE.search(text)
    if fenced:
        candidates.insert(0, fenced.group(1))

    data = None
    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except ValueError:
            continue
        break
    if not isinstance(data, dict):
        raise GenerationFailure("generator reply was not a JSON object")

    body = data.get("body")
    if not isinstance(body, str) or not body.strip():
        raise GenerationFailure("generator returned an empty body")

    summary = data.get("summary")
    title = data.get("title")
    frontmatter = data.get("frontmatter")
    return GenerationResult(
        body=body.strip(),
        title=title.strip() if isinstance(title, str) and title.strip() else None,
        summary=summary.strip() if isinstance(summary, str) and summary.strip() else None,
        frontmatter=frontmatter if isinstance(frontmatter, dict) else {},
    )


class HttpContentGenerator(ContentGenerator):
    """OpenAI-compatible chat-completions client."""

    def __init__(
        self,
        *,
        api_url: str,
        api_key: Optional[str],
        model: str,
        timeout_seconds: float = 60.0,
        retry_max: int = 2,
        client: Optional[httpx.Client] = None,
        breaker: Optional[GenerationCircuitBreaker] = None,
    ):
        self.api_url = api_url
        self.model = model
        self.retry_max = max(0, retry_max)
        self.breaker = breaker or generation_circuit_breaker
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(timeout_seconds),
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=50),
            headers=headers,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _fail(self, detail: str) -> None:
        self.breaker.record_failure(detail)
        logger.warning("generation_failed", extra={"detail": detail, "model": self.model})
        raise GenerationFailure(f"content generation failed: {detail}")

    def generate(self, request: GenerationRequest) -> GenerationResult:
        if self.breaker.is_open():
            raise GenerationFailure("content generation unavailable: circuit breaker open")

        temperature = request.temperature if request.temperature is not None else config.GENERATION_TEMPERATURE
        payload = {
            "model": self.model,
            "temperature": temperature,
            "response_format": {"type": "json_object"},
            "messages": build_section_messages(request),
        }
        for attempt in range(self.retry_max + 1):
            try:
                response = self._client.post(self.api_url, json=payload)
            except httpx.RequestError as exc:
                if attempt >= self.retry_max:
                    self._fail(f"request error: {type(exc).__name__}")
                _sleep_backoff(attempt)
                continue

            if response.status_code in _RETRYABLE_STATUS:
                if attempt >= self.retry_max:
                    self._fail(f"status {response.status_code}")
                _sleep_backoff(attempt)
                continue
            if response.status_code >= 400:
                self._fail(f"status {response.status_code}")

            try:
                data = response.json()
                reply = data["choices"][0]["message"]["content"]
            except (ValueError, KeyError, IndexError, TypeError):
                self._fail("malformed provider response")
            try:
                result = parse_generation_reply(reply)
            except GenerationFailure as exc:
                self._fail(str(exc))
            self.breaker.record_success()
            return result

        raise GenerationFailure("content generation failed: retries exhausted")


_content_generator: Optional[ContentGenerator] = None
_generator_lock = threading.Lock()


def build_content_generator() -> ContentGenerator:
    if config.GENERATION_PROVIDER == "none":
        return DisabledContentGenerator()
    return HttpContentGenerator(
        api_url=config.GENERATION_API_URL,
        api_key=config.GENERATION_API_KEY,
        model=config.GENERATION_MODEL,
        timeout_seconds=config.GENERATION_TIMEOUT_SECONDS,
        retry_max=config.GENERATION_RETRY_MAX,
    )


def get_content_generator() -> ContentGenerator:
    global _content_generator
    with _generator_lock:
        if _content_generator is None:
            _content_generator = build_content_generator()
            logger.info("content_generator_initialized", extra={"provider": config.GENERATION_PROVIDER})
        return _content_generator


def set_content_generator(generator: Optional[ContentGenerator]) -> None:
    global _content_generator
    with _generator_lock:
        _content_generator = generator


def close_content_generator() -> None:
    global _content_generator
    with _generator_lock:
        if _content_generator is not None:
            _content_generator.close()
            logger.info("content_generator_closed")
        _content_generator = None
