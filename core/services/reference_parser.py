"""
Reference parser for chat messages.

Turns free text into ReferenceTokens without touching the database.
Recognized shapes:
- ``@slug`` mentions, optionally anchored to a section (``@slug#section-id``
  or ``@slug:Section Title``); ``@source:<key>`` targets source material
- ``@"quoted text"`` mentions (titles with spaces, literal ids)
- bare canonical UUIDs (8-4-4-4-12 hex)
- absolute http(s) URLs, keyed by an embedded UUID, a YouTube video id,
  or the last path segment

At any offset the longest recognized shape wins, and anything it covers is
not scanned again (a UUID inside a URL is emitted once, as the URL).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional
from urllib.parse import parse_qs, unquote, urlsplit

from core.errors import ValidationIssue

TRAILING_PUNCTUATION = frozenset(".,!?;:#)]}\"'")
_BOUNDARY_PUNCTUATION = frozenset(".,!?;:()[]{}<>\"'")

_CANDIDATE_START_RE = re.compile(r"@|https?://|[0-9a-f]{8}-", re.IGNORECASE)
_UUID_RE = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE)
_URL_RE = re.compile(r"https?://[^\s<>\"']+", re.IGNORECASE)
_PAGE_SUFFIX_RE = re.compile(r"\.(?:html?|mdx?|php|aspx?)$", re.IGNORECASE)
_YOUTUBE_HOSTS = {"youtube.com", "www.youtube.com", "m.youtube.com", "music.youtube.com"}
_SOURCE_PREFIXES = ("source:", "source/")


class TokenKind(str, Enum):
    mention = "mention"
    quoted = "quoted"
    uuid = "uuid"
    url = "url"


class AnchorKind(str, Enum):
    hash = "hash"
    colon = "colon"


@dataclass(frozen=True)
class ReferenceAnchor:
    kind: AnchorKind
    value: str

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "value": self.value}


@dataclass(frozen=True)
class ReferenceToken:
    raw: str
    identifier: str
    kind: TokenKind
    start_index: int
    end_index: int
    anchor: Optional[ReferenceAnchor] = None

    @property
    def key(self) -> str:
        return normalize_key(self.identifier)

    @property
    def targets_source(self) -> bool:
        return self.key.startswith(_SOURCE_PREFIXES)

    @property
    def lookup_key(self) -> str:
        """Matching key with any ``source:`` prefix removed."""
        key = self.key
        for prefix in _SOURCE_PREFIXES:
            if key.startswith(prefix):
                return key[len(prefix):].strip()
        return key

    def to_dict(self) -> dict:
        return {
            "raw": self.raw,
            "identifier": self.identifier,
            "kind": self.kind.value,
            "key": self.key,
            "anchor": self.anchor.to_dict() if self.anchor else None,
            "start_index": self.start_index,
            "end_index": self.end_index,
        }


def normalize_key(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def _is_boundary(char: Optional[str]) -> bool:
    if not char:
        return True
    return char.isspace() or char in _BOUNDARY_PUNCTUATION


def _trim_trailing(raw: str, minimum: int = 1) -> str:
    while len(raw) > minimum and raw[-1] in TRAILING_PUNCTUATION:
        raw = raw[:-1]
    return raw


def split_anchor(identifier: str) -> tuple[str, Optional[ReferenceAnchor]]:
    normalized = identifier.strip()
    if not normalized or normalized.lower().startswith(_SOURCE_PREFIXES):
        return normalized, None

    positions = [pos for pos in (normalized.find("#"), normalized.find(":")) if pos >= 0]
    if not positions:
        return normalized, None
    anchor_index = min(positions)
    if anchor_index == 0:
        return normalized, None

    value = normalized[anchor_index + 1:]
    if not value:
        return normalized, None
    kind = AnchorKind.hash if normalized[anchor_index] == "#" else AnchorKind.colon
    return normalized[:anchor_index], ReferenceAnchor(kind=kind, value=value)


def _match_mention(message: str, index: int) -> Optional[ReferenceToken]:
    if message[index] != "@":
        return None
    if not _is_boundary(message[index - 1] if index > 0 else None):
        return None

    next_char = message[index + 1] if index + 1 < len(message) else ""
    if next_char == '"':
        close = message.find('"', index + 2)
        if close < 0:
            return None
        inner = message[index + 2:close].strip()
        if not inner:
            return None
        return ReferenceToken(
            raw=message[index:close + 1],
            identifier=inner,
            kind=TokenKind.quoted,
            start_index=index,
            end_index=close + 1,
        )

    if not (next_char.isascii() and next_char.isalnum()):
        return None
    if _URL_RE.match(message, index + 1):
        # "@https://..." is scanned as a URL from the next offset.
        return None

    end = index + 1
    while end < len(message) and not message[end].isspace():
        end += 1
    raw = _trim_trailing(message[index:end])
    if len(raw) <= 1:
        return None

    identifier, anchor = split_anchor(raw[1:])
    if not identifier:
        return None
    return ReferenceToken(
        raw=raw,
        identifier=identifier,
        kind=TokenKind.mention,
        start_index=index,
        end_index=index + len(raw),
        anchor=anchor,
    )


def _match_uuid(message: str, index: int) -> Optional[ReferenceToken]:
    if index > 0 and (message[index - 1].isalnum() or message[index - 1] in "-_"):
        return None
    match = _UUID_RE.match(message, index)
    if not match:
        return None
    end = match.end()
    if end < len(message) and (message[end].isalnum() or message[end] in "-_"):
        return None
    raw = match.group(0)
    return ReferenceToken(
        raw=raw,
        identifier=raw.lower(),
        kind=TokenKind.uuid,
        start_index=index,
        end_index=end,
    )


def url_reference_key(url: str) -> tuple[str, Optional[ReferenceAnchor]]:
    """Return the matching key and optional section anchor for a URL."""
    parts = urlsplit(url)
    anchor = None
    if parts.fragment:
        anchor = ReferenceAnchor(kind=AnchorKind.hash, value=unquote(parts.fragment))

    uuid_match = _UUID_RE.search(url.split("#", 1)[0])
    if uuid_match:
        return uuid_match.group(0).lower(), anchor

    host = (parts.hostname or "").lower()
    segments = [unquote(segment) for segment in parts.path.split("/") if segment]
    if host in _YOUTUBE_HOSTS:
        video_ids = parse_qs(parts.query).get("v")
        if video_ids and video_ids[0]:
            return video_ids[0], anchor
        if len(segments) >= 2 and segments[0] in {"shorts", "embed", "live"}:
            return segments[1], anchor
    if host == "youtu.be" and segments:
        return segments[0], anchor

    if segments:
        return _PAGE_SUFFIX_RE.sub("", segments[-1]), anchor
    return host, anchor


def _match_url(message: str, index: int) -> Optional[ReferenceToken]:
    if index > 0 and message[index - 1].isalnum():
        return None
    match = _URL_RE.match(message, index)
    if not match:
        return None
    raw = _trim_trailing(match.group(0), minimum=len("http://"))
    identifier, anchor = url_reference_key(raw)
    if not identifier:
        return None
    return ReferenceToken(
        raw=raw,
        identifier=identifier,
        kind=TokenKind.url,
        start_index=index,
        end_index=index + len(raw),
        anchor=anchor,
    )


_RECOGNIZERS = (_match_mention, _match_url, _match_uuid)


def _scan(message: str) -> Iterator[ReferenceToken]:
    position = 0
    while True:
        start = _CANDIDATE_START_RE.search(message, position)
        if not start:
            return
        index = start.start()
        best: Optional[ReferenceToken] = None
        for recognizer in _RECOGNIZERS:
            token = recognizer(message, index)
            if token and (best is None or token.end_index > best.end_index):
                best = token
        if best is None:
            position = index + 1
            continue
        yield best
        position = best.end_index


class ReferenceScan:
    """Lazy, restartable sequence of the references found in one message."""

    def __init__(self, message: str):
        if message is None:
            message = ""
        if not isinstance(message, str):
            raise ValidationIssue("message must be a string", field="message", error_type="invalid_type")
        self.message = message

    def __iter__(self) -> Iterator[ReferenceToken]:
        return _scan(self.message)

    def __repr__(self) -> str:
        return f"ReferenceScan(length={len(self.message)})"


def iter_references(message: str) -> ReferenceScan:
    return ReferenceScan(message)


def parse_references(message: str) -> list[ReferenceToken]:
    return list(ReferenceScan(message))


__all__ = [
    "AnchorKind",
    "ReferenceAnchor",
    "ReferenceScan",
    "ReferenceToken",
    "TokenKind",
    "iter_references",
    "normalize_key",
    "parse_references",
    "split_anchor",
    "url_reference_key",
]
