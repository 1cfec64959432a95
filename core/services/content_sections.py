"""
Section helpers shared by version writes and workspace compilation.

Sections are stored as plain JSON objects on each content version:
``{id, index, type, title, level, anchor, body, summary, word_count, meta,
start_offset, end_offset}``. Offsets point into the version's assembled
markdown.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Any, Iterable, Optional

import core.config as config

logger = config.logger

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9]+")


def count_words(text: Optional[str]) -> int:
    if not text:
        return 0
    return len(text.split())


def slugify_title(value: Optional[str]) -> str:
    if not value:
        return ""
    return _SLUG_STRIP_RE.sub("-", value.strip().lower()).strip("-")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _section_body(section: dict, body_markdown: Optional[str]) -> str:
    for key in ("body", "body_markdown"):
        value = section.get(key)
        if isinstance(value, str) and value.strip():
            return value
    start = section.get("start_offset")
    end = section.get("end_offset")
    if isinstance(body_markdown, str) and _is_int(start) and _is_int(end):
        return body_markdown[start:end].strip()
    return ""


def normalize_sections(sections: Any, body_markdown: Optional[str] = None) -> list[dict]:
    """Fill defaults on raw section objects and return them in index order."""
    if not isinstance(sections, (list, tuple)):
        return []

    normalized = []
    for idx, section in enumerate(sections):
        if not isinstance(section, dict):
            continue
        meta = section.get("meta") if isinstance(section.get("meta"), dict) else {}
        section_id = section.get("id") or section.get("section_id") or f"section-{idx}"
        title = section.get("title") or f"Section {idx + 1}"
        body = _section_body(section, body_markdown)
        word_count = section.get("word_count", section.get("wordCount"))
        entry = {
            "id": str(section_id),
            "index": section["index"] if _is_int(section.get("index")) else idx,
            "type": section.get("type") or meta.get("plan_type") or "body",
            "title": title,
            "level": section["level"] if _is_int(section.get("level")) else 2,
            "anchor": section.get("anchor") or slugify_title(title),
            "body": body,
            "summary": section.get("summary") or meta.get("summary"),
            "word_count": word_count if _is_int(word_count) else count_words(body),
            "meta": dict(meta),
        }
        for key in ("start_offset", "end_offset"):
            if _is_int(section.get(key)):
                entry[key] = section[key]
        normalized.append(entry)

    return sorted(normalized, key=lambda item: item["index"])


def assemble_markdown(title: Optional[str], sections: Iterable[dict]) -> tuple[str, list[dict]]:
    """
    Render ``# Title`` followed by each section heading and body.

    Returns the markdown and copies of the sections annotated with
    ``start_offset``/``end_offset`` into it.
    """
    ordered = sorted(sections, key=lambda item: item.get("index", 0))
    markdown = f"# {title or 'Untitled'}\n\n"
    annotated = []
    for section in ordered:
        level = min(max(section.get("level") or 2, 2), 6)
        heading = f"{'#' * level} {section['title']}" if section.get("title") else ""
        block = "\n\n".join(piece for piece in (heading, (section.get("body") or "").strip()) if piece)
        block = f"{block}\n\n"
        start = len(markdown)
        markdown += block
        updated = dict(section)
        updated["start_offset"] = start
        updated["end_offset"] = start + len(block)
        annotated.append(updated)

    markdown = markdown.rstrip() + "\n"
    if annotated:
        annotated[-1]["end_offset"] = min(annotated[-1]["end_offset"], len(markdown))
    return markdown, annotated


def calculate_diff_stats(old_text: Optional[str], new_text: Optional[str]) -> dict:
    """
    Count added/removed lines using a multiset of trimmed, non-empty lines.

    When the texts differ only in ways the line multiset cannot see (e.g.
    whitespace or reordering), fall back to the change in non-empty line
    count, or one addition and one deletion when that is unchanged too.
    """
    old_text = old_text or ""
    new_text = new_text or ""
    if old_text == new_text:
        return {"additions": 0, "deletions": 0}

    old_lines = [line.strip() for line in old_text.split("\n") if line.strip()]
    new_lines = [line.strip() for line in new_text.split("\n") if line.strip()]
    old_counts = Counter(old_lines)
    new_counts = Counter(new_lines)

    additions = sum((new_counts - old_counts).values())
    deletions = sum((old_counts - new_counts).values())

    if additions == 0 and deletions == 0:
        line_diff = len(new_lines) - len(old_lines)
        if line_diff > 0:
            additions = line_diff
        elif line_diff < 0:
            deletions = -line_diff
        else:
            additions = 1
            deletions = 1

    return {"additions": additions, "deletions": deletions}


def _offset_to_line(text: str, offset: int) -> int:
    if not text:
        return 1
    clamped = min(max(0, offset), len(text))
    return text.count("\n", 0, clamped) + 1


def find_section_line_range(markdown: str, section_id: str, sections: list[dict]) -> Optional[dict]:
    section = next((item for item in sections or [] if item.get("id") == section_id), None)
    if section is None:
        logger.warning("section_line_range_missing", extra={"section_id": section_id})
        return None
    start = section.get("start_offset")
    end = section.get("end_offset")
    if not _is_int(start) or not _is_int(end):
        logger.warning("section_line_range_no_offsets", extra={"section_id": section_id})
        return None
    low, high = sorted((start, end))
    return {"start": _offset_to_line(markdown, low), "end": _offset_to_line(markdown, high)}


def find_section(sections: list[dict], section_id: str) -> Optional[dict]:
    for section in sections:
        if section.get("id") == section_id:
            return section
    return None


def match_section_anchor(sections: list[dict], kind: str, value: str) -> Optional[dict]:
    """Find a section by ``hash`` (id or anchor) or ``colon`` (title or type) anchor."""
    needle = (value or "").strip().lower()
    if not needle:
        return None
    for section in sections:
        if kind == "hash":
            candidates = (section.get("id"), section.get("anchor"))
        else:
            candidates = (section.get("title"), section.get("type"), section.get("anchor"))
        if any(isinstance(item, str) and item.strip().lower() == needle for item in candidates):
            return section
    return None
