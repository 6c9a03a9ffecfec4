"""Tests for front matter splitting, parsing and serialization."""

from __future__ import annotations

import string

import pytest
import yaml
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from postsync.content.frontmatter import (
    has_front_matter,
    parse_metadata,
    serialize_document,
    split_front_matter,
)

PROPERTY_SETTINGS = settings(
    max_examples=150,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)

_TEXT_ALPHA = string.ascii_letters + string.digits + " "
_TITLE_TEXT = st.text(alphabet=_TEXT_ALPHA, min_size=1, max_size=40).map(str.strip).filter(bool)
_BODY_TEXT = st.text(alphabet=_TEXT_ALPHA + "\n#*", min_size=0, max_size=200)


class TestSplit:
    def test_split_document(self) -> None:
        doc = split_front_matter("---\ntitle: Hi\n---\nBody\n")
        assert doc.has_metadata
        assert doc.block == "---\ntitle: Hi\n---\n"
        assert doc.raw_metadata == "title: Hi\n"
        assert doc.body == "Body\n"

    def test_trailing_whitespace_on_delimiters(self) -> None:
        doc = split_front_matter("---  \ntitle: Hi\n--- \nBody")
        assert doc.raw_metadata == "title: Hi\n"
        assert doc.body == "Body"

    def test_no_front_matter(self) -> None:
        doc = split_front_matter("# Title\n\nText\n")
        assert not doc.has_metadata
        assert doc.body == "# Title\n\nText\n"

    def test_unterminated_block(self) -> None:
        text = "---\ntitle: Hi\nBody\n"
        doc = split_front_matter(text)
        assert not doc.has_metadata
        assert doc.body == text

    def test_first_line_must_be_delimiter(self) -> None:
        assert not split_front_matter("----\ntitle: x\n---\n").has_metadata
        assert not split_front_matter("\n---\ntitle: x\n---\n").has_metadata

    def test_body_may_contain_horizontal_rules(self) -> None:
        doc = split_front_matter("---\na: 1\n---\nintro\n---\nmore\n")
        assert doc.raw_metadata == "a: 1\n"
        assert doc.body == "intro\n---\nmore\n"

    def test_empty_block(self) -> None:
        doc = split_front_matter("---\n---\nBody")
        assert doc.raw_metadata == ""
        assert parse_metadata(doc.raw_metadata) == {}

    def test_has_front_matter(self) -> None:
        assert has_front_matter("---\n")
        assert not has_front_matter("title: x\n")
        assert not has_front_matter("")


class TestParse:
    def test_mapping(self) -> None:
        assert parse_metadata("title: Hi\nid: 4\n") == {"title": "Hi", "id": 4}

    def test_non_mapping_is_empty(self) -> None:
        assert parse_metadata("- a\n- b\n") == {}
        assert parse_metadata("just text") == {}

    def test_malformed_yaml_raises(self) -> None:
        with pytest.raises(yaml.YAMLError):
            parse_metadata("title: [unclosed\n")


class TestSerialize:
    def test_field_order_and_none_dropped(self) -> None:
        text = serialize_document(
            {"permalink": "/p/", "title": "T", "id": 1, "author": None, "extra": "x"}, "Body"
        )
        assert text == "---\nid: 1\ntitle: T\npermalink: /p/\nextra: x\n---\n\nBody\n"

    def test_empty_body(self) -> None:
        text = serialize_document({"title": "T"}, "")
        assert split_front_matter(text).body == ""


class TestProperties:
    @PROPERTY_SETTINGS
    @given(text=st.text(max_size=300))
    def test_split_never_loses_text(self, text: str) -> None:
        doc = split_front_matter(text)
        if doc.block is None:
            assert doc.body == text
        else:
            assert doc.block + doc.body == text

    @PROPERTY_SETTINGS
    @given(title=_TITLE_TEXT, body=_BODY_TEXT, post_id=st.integers(min_value=1, max_value=10**6))
    def test_serialized_document_parses_back(self, title: str, body: str, post_id: int) -> None:
        text = serialize_document({"id": post_id, "title": title}, body)

        doc = split_front_matter(text)

        assert doc.raw_metadata is not None
        assert parse_metadata(doc.raw_metadata) == {"id": post_id, "title": title}
        assert doc.body.strip() == body.strip()
