"""
Reference resolver.

Matches parsed ReferenceTokens against the calling organization's content
and source records using a tiered policy:

1. exact    - a candidate key equals the token key
2. prefix   - a candidate key starts with the token key
3. substring - a candidate key contains the token key

The first tier with any matches decides the outcome: one match resolves
the token, several make it ambiguous. Looser tiers are never consulted once
a tighter tier has matches. Resolution is read-only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Sequence, TypeVar

from sqlalchemy import case, func, or_

import core.config as config
from core.context import Mode, coerce_mode
from core.db import DB
from core.models import Content, SourceContent
from core.services.content_sections import match_section_anchor, normalize_sections
from core.services.content_shared import (
    _current_version,
    _enum_value,
    _validate_organization_id,
    _validate_required_text,
    _validate_uuid,
    logger,
    MAX_MESSAGE_LENGTH,
)
from core.services.reference_parser import ReferenceToken, normalize_key, parse_references
from core.validators import is_uuid

T = TypeVar("T")


class MatchTier(str, Enum):
    exact = "exact"
    prefix = "prefix"
    substring = "substring"


TIER_ORDER = (MatchTier.exact, MatchTier.prefix, MatchTier.substring)


class UnresolvedReason(str, Enum):
    not_found = "not_found"
    section_not_found = "section_not_found"
    invalid = "invalid"


@dataclass(frozen=True)
class MatchSelection:
    match: Optional[Any]
    ambiguous: list
    tier: Optional[MatchTier]


def _candidate_tier(needle: str, keys: Iterable[Optional[str]]) -> Optional[MatchTier]:
    normalized = [normalize_key(key) for key in keys if key]
    if any(key == needle for key in normalized):
        return MatchTier.exact
    if any(key.startswith(needle) for key in normalized):
        return MatchTier.prefix
    if any(needle in key for key in normalized):
        return MatchTier.substring
    return None


def select_best_match(key: str, candidates: Sequence[T], keys_for: Callable[[T], Iterable[Optional[str]]]) -> MatchSelection:
    """Apply the exact -> prefix -> substring policy to ``candidates``."""
    needle = normalize_key(key)
    if not needle:
        return MatchSelection(match=None, ambiguous=[], tier=None)

    by_tier: dict[MatchTier, list] = {tier: [] for tier in TIER_ORDER}
    for candidate in candidates:
        tier = _candidate_tier(needle, keys_for(candidate))
        if tier is not None:
            by_tier[tier].append(candidate)

    for tier in TIER_ORDER:
        matches = by_tier[tier]
        if len(matches) == 1:
            return MatchSelection(match=matches[0], ambiguous=[], tier=tier)
        if matches:
            return MatchSelection(match=None, ambiguous=matches, tier=tier)
    return MatchSelection(match=None, ambiguous=[], tier=None)


# =============================================================================
# Candidates and results
# =============================================================================

@dataclass(frozen=True)
class MatchCandidate:
    type: str
    id: str
    keys: tuple
    label: str
    subtitle: Optional[str]
    reference: str
    fields: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "id": self.id,
            "label": self.label,
            "subtitle": self.subtitle,
            "reference": self.reference,
        }


@dataclass(frozen=True)
class ResolvedReference:
    token: ReferenceToken
    type: str
    id: str
    label: str
    reference: str
    tier: Optional[MatchTier] = None
    fields: dict = field(default_factory=dict)

    def to_dict(self, mode: Mode) -> dict:
        payload = {
            "type": self.type,
            "id": self.id,
            "label": self.label,
            "reference": self.reference,
            "raw": self.token.raw,
            **self.fields,
        }
        if mode == Mode.agent:
            payload["token"] = self.token.to_dict()
            payload["tier"] = self.tier.value if self.tier else None
        return payload


@dataclass(frozen=True)
class AmbiguousReference:
    token: ReferenceToken
    candidates: tuple
    tier: Optional[MatchTier] = None

    def to_dict(self, mode: Mode) -> dict:
        payload = {
            "raw": self.token.raw,
            "candidates": [candidate.to_dict() for candidate in self.candidates],
        }
        if mode == Mode.agent:
            payload["token"] = self.token.to_dict()
            payload["tier"] = self.tier.value if self.tier else None
        return payload


@dataclass(frozen=True)
class UnresolvedReference:
    token: ReferenceToken
    reason: UnresolvedReason
    suggestions: tuple = ()

    def to_dict(self, mode: Mode) -> dict:
        payload = {
            "raw": self.token.raw,
            "reason": self.reason.value,
            "suggestions": list(self.suggestions),
        }
        if mode == Mode.agent:
            payload["token"] = self.token.to_dict()
        return payload


@dataclass
class ReferenceResolution:
    tokens: list
    resolved: list = field(default_factory=list)
    ambiguous: list = field(default_factory=list)
    unresolved: list = field(default_factory=list)

    def scope(self) -> dict:
        return build_reference_scope(self.resolved)

    def to_dict(self, mode=Mode.chat) -> dict:
        mode = coerce_mode(mode)
        payload = {
            "tokens": [token.to_dict() for token in self.tokens],
            "resolved": [item.to_dict(mode) for item in self.resolved],
            "ambiguous": [item.to_dict(mode) for item in self.ambiguous],
            "unresolved": [item.to_dict(mode) for item in self.unresolved],
        }
        if mode == Mode.agent:
            payload["scope"] = self.scope()
        return payload


@dataclass(frozen=True)
class ResolveContext:
    organization_id: str
    current_content_id: Optional[str] = None
    user_id: Optional[str] = None
    mode: Mode = Mode.chat
    include_current: bool = False


def build_reference_scope(resolved: Iterable[ResolvedReference]) -> dict:
    """Content, section and source ids an agent may act on for this message."""
    content_ids: list[str] = []
    source_ids: list[str] = []
    sections: list[dict] = []
    for item in resolved:
        if item.type == "content" and item.id not in content_ids:
            content_ids.append(item.id)
        elif item.type == "source" and item.id not in source_ids:
            source_ids.append(item.id)
        elif item.type == "section":
            content_id = item.fields.get("content_id")
            if content_id and content_id not in content_ids:
                content_ids.append(content_id)
            entry = {"content_id": content_id, "section_id": item.id}
            if entry not in sections:
                sections.append(entry)
    return {"content_ids": content_ids, "sections": sections, "source_ids": source_ids}


# =============================================================================
# Candidate loading
# =============================================================================

def _escape_like(key: str) -> str:
    return key.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _like_pattern(key: str) -> str:
    return f"%{_escape_like(key)}%"


def _tier_rank(columns, key: str):
    """SQL rank mirroring ``select_best_match``: 0 exact, 1 prefix, 2 substring."""
    prefix = f"{_escape_like(key)}%"
    return case(
        (or_(*(column == key for column in columns)), 0),
        (or_(*(column.like(prefix, escape="\\") for column in columns)), 1),
        else_=2,
    )


def _content_candidate(row: Content) -> MatchCandidate:
    return MatchCandidate(
        type="content",
        id=str(row.id),
        keys=(row.slug, row.title),
        label=row.slug,
        subtitle=row.title,
        reference=row.slug,
        fields={
            "slug": row.slug,
            "title": row.title,
            "status": _enum_value(row.status),
            "content_type": _enum_value(row.content_type),
        },
    )


def _source_candidate(row: SourceContent) -> MatchCandidate:
    return MatchCandidate(
        type="source",
        id=str(row.id),
        keys=(row.external_id, row.title),
        label=row.title or row.external_id or "Untitled source",
        subtitle=row.source_type,
        reference=f"source:{row.external_id or row.title or row.id}",
        fields={
            "external_id": row.external_id,
            "title": row.title,
            "source_type": row.source_type,
            "ingest_status": _enum_value(row.ingest_status),
        },
    )


def _content_query(db, ctx: ResolveContext):
    query = db.query(Content).filter(Content.organization_id == ctx.organization_id)
    if ctx.current_content_id and not ctx.include_current:
        query = query.filter(Content.id != ctx.current_content_id)
    return query


def _load_content_candidates(db, ctx: ResolveContext, key: str) -> list[MatchCandidate]:
    pattern = _like_pattern(key)
    slug = func.lower(Content.slug)
    title = func.lower(Content.title)
    rows = (
        _content_query(db, ctx)
        .filter(or_(slug.like(pattern, escape="\\"), title.like(pattern, escape="\\")))
        .order_by(
            _tier_rank((slug, title), key),
            Content.updated_at.desc(),
        )
        .limit(config.REFERENCE_CANDIDATE_LIMIT)
        .all()
    )
    return [_content_candidate(row) for row in rows]


def _load_source_candidates(db, ctx: ResolveContext, key: str) -> list[MatchCandidate]:
    pattern = _like_pattern(key)
    external_id = func.lower(SourceContent.external_id)
    title = func.lower(SourceContent.title)
    rows = (
        db.query(SourceContent)
        .filter(SourceContent.organization_id == ctx.organization_id)
        .filter(or_(external_id.like(pattern, escape="\\"), title.like(pattern, escape="\\")))
        .order_by(
            _tier_rank((external_id, title), key),
            SourceContent.updated_at.desc(),
        )
        .limit(config.REFERENCE_CANDIDATE_LIMIT)
        .all()
    )
    return [_source_candidate(row) for row in rows]


def _lookup_by_id(db, ctx: ResolveContext, record_id: str, sources_only: bool) -> Optional[MatchCandidate]:
    if not sources_only:
        content = _content_query(db, ctx).filter(Content.id == record_id).first()
        if content is not None:
            return _content_candidate(content)
    source = (
        db.query(SourceContent)
        .filter(SourceContent.organization_id == ctx.organization_id)
        .filter(SourceContent.id == record_id)
        .first()
    )
    return _source_candidate(source) if source is not None else None


# =============================================================================
# Resolution
# =============================================================================

def _resolved_from_candidate(token: ReferenceToken, candidate: MatchCandidate, tier: Optional[MatchTier]) -> ResolvedReference:
    return ResolvedReference(
        token=token,
        type=candidate.type,
        id=candidate.id,
        label=candidate.label,
        reference=candidate.reference,
        tier=tier,
        fields=dict(candidate.fields),
    )


def _resolve_section(db, token: ReferenceToken, candidate: MatchCandidate, tier, result: ReferenceResolution) -> None:
    content = db.query(Content).filter(Content.id == candidate.id).first()
    version = _current_version(db, content) if content is not None else None
    sections = normalize_sections(version.sections, version.body_markdown) if version is not None else []
    section = match_section_anchor(sections, token.anchor.kind.value, token.anchor.value)

    if section is None:
        result.resolved.append(_resolved_from_candidate(token, candidate, tier))
        suggestions = tuple(
            {
                "id": item["id"],
                "title": item.get("title"),
                "reference": f"{candidate.reference}#{item['id']}",
            }
            for item in sections[: config.REFERENCE_SUGGESTION_LIMIT]
        )
        result.unresolved.append(
            UnresolvedReference(token=token, reason=UnresolvedReason.section_not_found, suggestions=suggestions)
        )
        return

    result.resolved.append(
        ResolvedReference(
            token=token,
            type="section",
            id=section["id"],
            label=section.get("title") or section["id"],
            reference=f"{candidate.reference}#{section['id']}",
            tier=tier,
            fields={
                "title": section.get("title"),
                "section_type": section.get("type"),
                "index": section.get("index"),
                "content_id": candidate.id,
                "content_slug": candidate.fields.get("slug"),
                "content_title": candidate.fields.get("title"),
            },
        )
    )


def _resolve_token(db, token: ReferenceToken, ctx: ResolveContext, result: ReferenceResolution) -> None:
    key = token.lookup_key
    if not key:
        result.unresolved.append(UnresolvedReference(token=token, reason=UnresolvedReason.invalid))
        return

    if is_uuid(key):
        candidate = _lookup_by_id(db, ctx, key, sources_only=token.targets_source)
        if candidate is None:
            result.unresolved.append(UnresolvedReference(token=token, reason=UnresolvedReason.not_found))
            return
        selection = MatchSelection(match=candidate, ambiguous=[], tier=MatchTier.exact)
    else:
        candidates = [] if token.targets_source else _load_content_candidates(db, ctx, key)
        candidates += _load_source_candidates(db, ctx, key)
        selection = select_best_match(key, candidates, lambda item: item.keys)

    if selection.match is not None:
        if token.anchor is not None and selection.match.type == "content":
            _resolve_section(db, token, selection.match, selection.tier, result)
        else:
            result.resolved.append(_resolved_from_candidate(token, selection.match, selection.tier))
        return

    if selection.ambiguous:
        result.ambiguous.append(
            AmbiguousReference(
                token=token,
                candidates=tuple(selection.ambiguous[: config.REFERENCE_SUGGESTION_LIMIT]),
                tier=selection.tier,
            )
        )
        return

    result.unresolved.append(UnresolvedReference(token=token, reason=UnresolvedReason.not_found))


def _validate_context(ctx: ResolveContext) -> ResolveContext:
    organization_id = _validate_organization_id(ctx.organization_id)
    current_content_id = ctx.current_content_id
    if current_content_id:
        current_content_id = _validate_uuid(current_content_id, "current_content_id")
    return ResolveContext(
        organization_id=organization_id,
        current_content_id=current_content_id or None,
        user_id=ctx.user_id,
        mode=coerce_mode(ctx.mode),
        include_current=bool(ctx.include_current),
    )


def resolve_references(tokens: Iterable[ReferenceToken], ctx: ResolveContext) -> ReferenceResolution:
    """Resolve tokens against the organization's content and sources."""
    ctx = _validate_context(ctx)
    token_list = list(tokens)
    result = ReferenceResolution(tokens=token_list)
    if not token_list:
        return result

    db = DB.SessionLocal()
    try:
        for token in token_list:
            _resolve_token(db, token, ctx, result)
    finally:
        db.close()

    logger.info(
        "references_resolved",
        extra={
            "organization_id": ctx.organization_id,
            "mode": ctx.mode.value,
            "token_count": len(token_list),
            "resolved_count": len(result.resolved),
            "ambiguous_count": len(result.ambiguous),
            "unresolved_count": len(result.unresolved),
        },
    )
    return result


def resolve_message(
    message: str,
    *,
    organization_id: str,
    current_content_id: Optional[str] = None,
    user_id: Optional[str] = None,
    mode=Mode.chat,
    include_current: bool = False,
) -> dict:
    """Parse ``message`` and return the resolution shaped for ``mode``."""
    _validate_required_text(message, "message", MAX_MESSAGE_LENGTH)
    mode = coerce_mode(mode)
    ctx = ResolveContext(
        organization_id=organization_id,
        current_content_id=current_content_id,
        user_id=user_id,
        mode=mode,
        include_current=include_current,
    )
    return resolve_references(parse_references(message), ctx).to_dict(mode)


__all__ = [
    "AmbiguousReference",
    "MatchCandidate",
    "MatchSelection",
    "MatchTier",
    "ReferenceResolution",
    "ResolveContext",
    "ResolvedReference",
    "UnresolvedReason",
    "UnresolvedReference",
    "build_reference_scope",
    "resolve_message",
    "resolve_references",
    "select_best_match",
]
