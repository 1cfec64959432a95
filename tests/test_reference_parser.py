import pytest

from core.errors import ValidationIssue
from core.services.reference_parser import (
    AnchorKind,
    TokenKind,
    iter_references,
    parse_references,
    split_anchor,
    url_reference_key,
)


def test_parse_plain_mentions_in_order():
    tokens = parse_references("Compare @classic-gingerbread with @ginger-snaps, please.")
    assert [token.identifier for token in tokens] == ["classic-gingerbread", "ginger-snaps"]
    assert all(token.kind == TokenKind.mention for token in tokens)
    first = tokens[0]
    assert first.raw == "@classic-gingerbread"
    assert first.start_index == 8
    assert first.end_index == 8 + len("@classic-gingerbread")


def test_email_address_is_not_a_mention():
    assert parse_references("mail me at cook@example.com") == []


def test_mention_with_hash_and_colon_anchors():
    hashed, titled = parse_references("See @cookies#section-2 and @cookies:Ingredients")
    assert hashed.identifier == "cookies"
    assert hashed.anchor.kind == AnchorKind.hash
    assert hashed.anchor.value == "section-2"
    assert titled.anchor.kind == AnchorKind.colon
    assert titled.anchor.value == "Ingredients"


def test_source_prefix_is_not_split_into_anchor():
    token = parse_references("use @source:yt-intro for this")[0]
    assert token.anchor is None
    assert token.targets_source
    assert token.lookup_key == "yt-intro"


def test_quoted_mention_keeps_spaces():
    token = parse_references('Rewrite @"Classic Gingerbread Cookies" now')[0]
    assert token.kind == TokenKind.quoted
    assert token.identifier == "Classic Gingerbread Cookies"
    assert token.key == "classic gingerbread cookies"
    assert token.raw == '@"Classic Gingerbread Cookies"'


def test_unterminated_quote_is_ignored():
    assert parse_references('@"never closed') == []


def test_bare_uuid_and_trailing_punctuation():
    value = "3F2504E0-4F89-11D3-9A0C-0305E82C3301"
    tokens = parse_references(f"Open {value}. Also @draft!")
    assert tokens[0].kind == TokenKind.uuid
    assert tokens[0].identifier == value.lower()
    assert tokens[1].raw == "@draft"


def test_uuid_inside_url_is_emitted_once_as_url():
    value = "3f2504e0-4f89-11d3-9a0c-0305e82c3301"
    tokens = parse_references(f"link: https://app.example.com/content/{value}/edit")
    assert len(tokens) == 1
    assert tokens[0].kind == TokenKind.url
    assert tokens[0].identifier == value


def test_at_prefixed_url_is_scanned_as_url():
    tokens = parse_references("from @https://example.com/blog/holiday-baking.html")
    assert len(tokens) == 1
    assert tokens[0].kind == TokenKind.url
    assert tokens[0].identifier == "holiday-baking"


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://www.youtube.com/watch?v=abc123XYZ", "abc123XYZ"),
        ("https://youtu.be/abc123XYZ", "abc123XYZ"),
        ("https://www.youtube.com/shorts/short01", "short01"),
        ("https://example.com/recipes/gingerbread/", "gingerbread"),
        ("https://example.com", "example.com"),
    ],
)
def test_url_reference_key(url, expected):
    key, anchor = url_reference_key(url)
    assert key == expected
    assert anchor is None


def test_url_fragment_becomes_hash_anchor():
    token = parse_references("https://example.com/posts/cookies#section-3")[0]
    assert token.identifier == "cookies"
    assert token.anchor.kind == AnchorKind.hash
    assert token.anchor.value == "section-3"


def test_split_anchor_ignores_leading_separator():
    assert split_anchor("#heading") == ("#heading", None)
    identifier, anchor = split_anchor("post:Intro#x")
    assert identifier == "post"
    assert anchor.kind == AnchorKind.colon
    assert anchor.value == "Intro#x"


def test_scan_is_restartable():
    scan = iter_references("@one and @two")
    assert [token.identifier for token in scan] == ["one", "two"]
    assert [token.identifier for token in scan] == ["one", "two"]


def test_empty_and_invalid_messages():
    assert parse_references("") == []
    assert parse_references(None) == []
    with pytest.raises(ValidationIssue):
        parse_references(42)


def test_token_to_dict_shape():
    token = parse_references("@post#intro")[0]
    assert token.to_dict() == {
        "raw": "@post#intro",
        "identifier": "post",
        "kind": "mention",
        "key": "post",
        "anchor": {"kind": "hash", "value": "intro"},
        "start_index": 0,
        "end_index": 11,
    }
