from core.services.content_sections import (
    assemble_markdown,
    calculate_diff_stats,
    find_section_line_range,
    match_section_anchor,
    normalize_sections,
    slugify_title,
)


def test_normalize_sections_fills_defaults_and_sorts():
    sections = normalize_sections([
        {"id": "b", "index": 1, "title": "Method", "body": "Mix it all"},
        {"index": 0, "body": "Two cups flour"},
        "not a section",
    ])
    assert [section["id"] for section in sections] == ["section-1", "b"]
    first = sections[0]
    assert first["title"] == "Section 2"
    assert first["type"] == "body"
    assert first["level"] == 2
    assert first["anchor"] == "section-2"
    assert first["word_count"] == 3
    assert sections[1]["anchor"] == "method"


def test_normalize_sections_reads_body_from_offsets():
    markdown = "# T\n\n## A\n\nalpha beta\n"
    start = markdown.index("alpha")
    sections = normalize_sections(
        [{"id": "a", "title": "A", "start_offset": start, "end_offset": len(markdown)}],
        markdown,
    )
    assert sections[0]["body"] == "alpha beta"
    assert sections[0]["start_offset"] == start


def test_normalize_sections_rejects_non_lists():
    assert normalize_sections(None) == []
    assert normalize_sections({"id": "x"}) == []


def test_assemble_markdown_orders_sections_and_sets_offsets():
    sections = normalize_sections([
        {"id": "two", "index": 1, "title": "Bake", "body": "Bake 10 minutes."},
        {"id": "one", "index": 0, "title": "Mix", "body": "Mix the dough."},
        {"id": "sub", "index": 2, "title": "Tips", "level": 3, "body": "Chill first."},
    ])
    markdown, annotated = assemble_markdown("Gingerbread", sections)
    assert markdown == (
        "# Gingerbread\n\n"
        "## Mix\n\nMix the dough.\n\n"
        "## Bake\n\nBake 10 minutes.\n\n"
        "### Tips\n\nChill first.\n"
    )
    for section in annotated:
        block = markdown[section["start_offset"]:section["end_offset"]]
        assert section["title"] in block
        assert section["body"] in block


def test_diff_stats_counts_changed_lines():
    assert calculate_diff_stats("a\nb\nc", "a\nb\nc") == {"additions": 0, "deletions": 0}
    assert calculate_diff_stats("a\nb", "a\nc\nd") == {"additions": 2, "deletions": 1}
    assert calculate_diff_stats("", "new line") == {"additions": 1, "deletions": 0}


def test_diff_stats_fallbacks():
    # Same trimmed lines, different whitespace.
    assert calculate_diff_stats("a\nb", "  a\nb  ") == {"additions": 1, "deletions": 1}
    assert calculate_diff_stats("a\n\nb", "a\nb\n\n") == {"additions": 1, "deletions": 1}


def test_find_section_line_range():
    sections = normalize_sections([
        {"id": "one", "index": 0, "title": "Mix", "body": "Mix."},
        {"id": "two", "index": 1, "title": "Bake", "body": "Bake."},
    ])
    markdown, annotated = assemble_markdown("T", sections)
    line_range = find_section_line_range(markdown, "two", annotated)
    lines = markdown.split("\n")
    assert lines[line_range["start"] - 1] == "## Bake"
    assert line_range["end"] >= line_range["start"]
    assert find_section_line_range(markdown, "missing", annotated) is None


def test_match_section_anchor_by_kind():
    sections = normalize_sections([
        {"id": "intro", "index": 0, "title": "Introduction", "type": "intro"},
        {"id": "s2", "index": 1, "title": "Ingredients"},
    ])
    assert match_section_anchor(sections, "hash", "S2")["id"] == "s2"
    assert match_section_anchor(sections, "hash", "ingredients")["id"] == "s2"
    assert match_section_anchor(sections, "colon", "introduction")["id"] == "intro"
    assert match_section_anchor(sections, "colon", "intro")["id"] == "intro"
    assert match_section_anchor(sections, "hash", "nope") is None
    assert match_section_anchor(sections, "colon", "") is None


def test_slugify_title():
    assert slugify_title("  Classic Gingerbread: Cookies! ") == "classic-gingerbread-cookies"
    assert slugify_title(None) == ""
