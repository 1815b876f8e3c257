"""
Unit tests for union narrowing and embedded document parsing
"""

import json

import pytest

from ingestion.normalizers.base import composite_id, node_id, nodes
from ingestion.normalizers.content import parse_yaml, parsed_json
from ingestion.normalizers.variants import IGNORED, narrow


class TestNarrow:
    """Test discriminant-based narrowing"""

    def test_recognized_variant(self):
        variant = narrow({"__typename": "Blob", "text": "x"}, ("Blob",))

        assert variant.typename == "Blob"
        assert variant.value["text"] == "x"
        assert not variant.ignored

    @pytest.mark.parametrize("obj", [
        {"__typename": "Commit"},
        {"text": "no tag"},
        {"__typename": None},
        None,
        "Blob",
        ["Blob"],
    ])
    def test_everything_else_is_ignored(self, obj):
        variant = narrow(obj, ("Blob",))

        assert variant.typename == IGNORED
        assert variant.value is None
        assert variant.ignored


class TestIdentifiers:
    """Test identifier helpers"""

    def test_composite_id(self):
        assert composite_id("R1", "rule", 3) == "R1_rule_3"

    def test_node_id_prefers_native_id(self):
        assert node_id({"id": "REL1"}, "R1", "release", 0) == "REL1"
        assert node_id({}, "R1", "release", 0) == "R1_release_0"

    def test_nodes_accepts_connection_or_list(self):
        assert list(nodes({"nodes": [{"a": 1}, None]})) == [{"a": 1}]
        assert list(nodes([{"a": 1}, "x"])) == [{"a": 1}]
        assert list(nodes({"nodes": None})) == []
        assert list(nodes(None)) == []


class TestContent:
    """Test YAML content parsing"""

    def test_parse_yaml(self):
        assert parse_yaml("name: ci\njobs: {}\n") == {"name": "ci", "jobs": {}}

    @pytest.mark.parametrize("content", [None, "", "jobs: [unclosed\n"])
    def test_unparsable_or_absent(self, content):
        assert parse_yaml(content) is None
        assert parsed_json(content) is None

    def test_parsed_json_is_json_text(self):
        text = parsed_json("name: release\nsteps:\n  - uses: actions/checkout@v4\n")

        assert json.loads(text) == {"name": "release", "steps": [{"uses": "actions/checkout@v4"}]}

    def test_parsed_json_serializes_dates(self):
        text = parsed_json("released: 2024-01-15\n")

        assert json.loads(text) == {"released": "2024-01-15"}

    @pytest.mark.parametrize("value", [".nan", ".inf", "-.inf"])
    def test_non_finite_floats_have_no_json_form(self, value):
        content = f"name: x\nthreshold: {value}\n"

        assert parse_yaml(content)["name"] == "x"
        assert parsed_json(content) is None
