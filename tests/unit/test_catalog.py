"""
Unit tests for catalog loading.

Run: pytest tests/unit/test_catalog.py -v
"""

import json

import pytest

from src.leitner.catalog import load_catalog, parse_catalog
from src.leitner.errors import CatalogError


class TestParseCatalog:
    """Test parse_catalog on decoded JSON."""

    def test_list_form(self):
        items = parse_catalog([
            {"id": "a", "topic": "networking", "optionCount": 4},
            {"id": "b", "topic": "security", "options": ["x", "y"], "isPdf": True},
        ])

        assert [i.id for i in items] == ["a", "b"]
        assert items[0].option_count == 4
        assert items[1].option_count == 2
        assert items[1].origin_priority is True

    def test_object_form(self):
        items = parse_catalog({"items": [{"id": "a", "topic": "t", "option_count": 3, "hasCode": True}]})
        assert items[0].has_rich_content is True

    def test_invalid_entries_skipped(self):
        items = parse_catalog([
            {"id": "good", "topic": "t", "optionCount": 2},
            {"topic": "no id"},
            {"id": "bad-count", "optionCount": "many"},
            "not an object",
        ])
        assert [i.id for i in items] == ["good"]

    def test_string_flags_rejected(self):
        items = parse_catalog([
            {"id": "a", "topic": "t", "optionCount": 2, "hasRichContent": "false"},
            {"id": "b", "topic": "t", "optionCount": 2, "originPriority": "false"},
            {"id": "c", "topic": "t", "optionCount": 2, "originPriority": False, "hasCode": None},
        ])

        assert [i.id for i in items] == ["c"]
        assert items[0].origin_priority is False
        assert items[0].has_rich_content is False

    def test_duplicate_ids_keep_first(self):
        items = parse_catalog([
            {"id": "a", "topic": "first", "optionCount": 2},
            {"id": "a", "topic": "second", "optionCount": 2},
        ])
        assert len(items) == 1
        assert items[0].topic == "first"

    @pytest.mark.parametrize("data", [{"questions": []}, "text", 42, None])
    def test_no_item_list_raises(self, data):
        with pytest.raises(CatalogError):
            parse_catalog(data)


class TestLoadCatalog:
    """Test load_catalog on files."""

    def test_topic_filter(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps([
            {"id": "a", "topic": "networking", "optionCount": 4},
            {"id": "b", "topic": "security", "optionCount": 4},
        ]), encoding="utf-8")

        assert [i.id for i in load_catalog(path, topic="security")] == ["b"]

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(CatalogError):
            load_catalog(tmp_path / "missing.json")

    def test_malformed_json_raises(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text("{oops", encoding="utf-8")
        with pytest.raises(CatalogError):
            load_catalog(path)
