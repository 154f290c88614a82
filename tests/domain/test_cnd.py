"""Tests for the CND sub-parser."""

from __future__ import annotations

import pytest

from repoinit.domain.cnd import extract_cnd_block, has_cnd_markers, parse_cnd, unwrap_cnd
from repoinit.domain.errors import CndSyntaxError

SAMPLE = """\
<ns='http://example.com/ns/1.0'>
/* block
   comment */
[ns:Thing] > nt:unstructured, mix:title
  orderable
  - ns:title (string) mandatory  // line comment
  + * (nt:base) = nt:unstructured
[ns:Marker] mixin
"""


class TestExtractBlock:
    def test_extracts_between_markers(self) -> None:
        text = "before\n<<===\n[a:b]\n===>>\nafter"
        assert extract_cnd_block(text) == "[a:b]"

    def test_markers_must_be_on_own_line(self) -> None:
        assert not has_cnd_markers("x <<=== y")

    def test_missing_end_marker(self) -> None:
        with pytest.raises(CndSyntaxError) as exc_info:
            extract_cnd_block("<<===\n[a:b]\n")
        assert exc_info.value.code == "CND_SYNTAX_ERROR"

    def test_missing_start_marker(self) -> None:
        with pytest.raises(CndSyntaxError):
            extract_cnd_block("[a:b]\n===>>")

    def test_unwrap_without_markers_is_identity(self) -> None:
        assert unwrap_cnd("[a:b]") == "[a:b]"


class TestParseCnd:
    def test_namespaces_and_types(self) -> None:
        doc = parse_cnd(SAMPLE)
        assert [(n.prefix, n.uri) for n in doc.namespaces] == [
            ("ns", "http://example.com/ns/1.0")
        ]
        assert [t.name for t in doc.node_types] == ["ns:Thing", "ns:Marker"]

    def test_type_header(self) -> None:
        thing = parse_cnd(SAMPLE).node_types[0]
        assert thing.supertypes == ("nt:unstructured", "mix:title")
        assert thing.orderable
        assert not thing.is_mixin
        assert thing.prefix == "ns"

    def test_items(self) -> None:
        thing = parse_cnd(SAMPLE).node_types[0]
        assert len(thing.properties) == 1
        prop = thing.properties[0]
        assert (prop.name, prop.required_type, prop.attributes) == (
            "ns:title",
            "STRING",
            ("mandatory",),
        )
        child = thing.child_nodes[0]
        assert child.required_types == ("nt:base",)
        assert child.default_type == "nt:unstructured"

    def test_mixin_option(self) -> None:
        marker = parse_cnd(SAMPLE).node_types[1]
        assert marker.is_mixin
        assert marker.supertypes == ()

    def test_primary_item(self) -> None:
        doc = parse_cnd("[a:file] > nt:hierarchyNode primaryitem jcr:content")
        assert doc.node_types[0].primary_item == "jcr:content"

    def test_source_reparses_to_same_definition(self) -> None:
        thing = parse_cnd(SAMPLE).node_types[0]
        again = parse_cnd(thing.source).node_types[0]
        assert again == thing

    def test_unknown_option(self) -> None:
        with pytest.raises(CndSyntaxError, match="Unknown node type option"):
            parse_cnd("[a:b] sparkly")

    def test_malformed_namespace(self) -> None:
        with pytest.raises(CndSyntaxError) as exc_info:
            parse_cnd("<ns 'x'>")
        assert exc_info.value.line == 1

    def test_content_before_first_type(self) -> None:
        with pytest.raises(CndSyntaxError):
            parse_cnd("- stray (string)")
