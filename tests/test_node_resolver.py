"""Tests for semantic element naming."""
import logging

import pytest

from ariadne.drivers.rrweb.node_resolver import NodeResolver, get_semantic_name, redact
from common.models.node_info import NodeInfo

from conftest import gzip_latin1


class TestSemanticName:
    """Tests for get_semantic_name()."""

    @pytest.mark.parametrize(
        "info, expected",
        [
            (NodeInfo(tag_name="BUTTON", text_content="Buy"), '"Buy" button'),
            (NodeInfo(tag_name="div", role="button", aria_label="Close"), '"Close" button'),
            (NodeInfo(tag_name="button"), "button"),
            (NodeInfo(tag_name="a", href="/docs/getting-started"), "link to getting-started"),
            (NodeInfo(tag_name="a", text_content="Pricing"), '"Pricing" link'),
            (NodeInfo(tag_name="input", type="email", placeholder="Email"), '"Email" email field'),
            (NodeInfo(tag_name="input", name="q"), '"q" text field'),
            (NodeInfo(tag_name="input"), "text input field"),
            (NodeInfo(tag_name="textarea"), "text area"),
            (NodeInfo(tag_name="select", name="country"), '"country" dropdown'),
            (NodeInfo(tag_name="img", src="https://cdn.example.com/x/logo.png?v=2"), "image (logo.png)"),
            (NodeInfo(tag_name="span", text_content="Free shipping"), '"Free shipping"'),
            (NodeInfo(tag_name="section", id="cart"), "#cart section"),
            (NodeInfo(tag_name="section", id=":r1:"), "section"),
            (NodeInfo(tag_name="div", id="a1b2c3d4e5", class_name="a1b2c3d4e5f6 hero-banner"), ".hero-banner div"),
            (NodeInfo(tag_name="nav"), "nav"),
        ],
    )
    def test_names(self, info, expected):
        assert get_semantic_name(info) == expected

    def test_text_is_redacted(self):
        info = NodeInfo(tag_name="button", text_content="Send to john@example.com")
        assert get_semantic_name(info) == '"Send to [REDACTED]" button'


class TestRedact:
    """Tests for PII redaction."""

    def test_email_and_card(self):
        assert redact("mail john@example.com now") == "mail [REDACTED] now"
        assert redact("4111 1111 1111 1111") == "[REDACTED]"

    def test_empty(self):
        assert redact(None) == ""
        assert redact("") == ""


class TestNodeResolver:
    """Tests for the per-parse node map."""

    def test_snapshot_and_title(self, ev):
        resolver = NodeResolver()
        assert resolver.load_snapshot({"node": ev.document([ev.element(10, "button", text="Buy")])})
        assert resolver.page_title == "Shop"
        assert resolver.name_for(10) == '"Buy" button'

    def test_compressed_snapshot(self, ev):
        resolver = NodeResolver()
        data = gzip_latin1({"node": ev.document([ev.element(10, "button", text="Buy")], title="Store")})
        assert resolver.load_snapshot(data)
        assert resolver.page_title == "Store"
        assert resolver.get(10).tag == "button"

    def test_undecodable_snapshot(self, caplog):
        resolver = NodeResolver()
        with caplog.at_level(logging.WARNING):
            assert not resolver.load_snapshot("garbage")
        assert "Could not decompress" in caplog.text
        assert len(resolver) == 0

    def test_unknown_node_placeholder(self):
        resolver = NodeResolver()
        assert resolver.name_for(999) == "element #999"
        assert resolver.name_for(999, placeholder="input") == "input #999"
        assert resolver.get("not-an-id") is None

    def test_mutation_adds_nodes(self, ev):
        resolver = NodeResolver()
        added = resolver.apply_mutation(
            {"adds": [{"parentId": 5, "node": ev.element(40, "a", {"href": "/help"}, text="Help")}]}
        )
        assert added == 1
        assert resolver.name_for(40) == '"Help" link'
