"""
Unit tests for upstream response processing.
"""

import pytest

from tourism_gateway.shared.processors import (
    build_pagination,
    calculate_completeness,
    extract_items,
    format_date,
    parse_coordinate,
    process_item,
    process_items,
    sanitize_html,
)

from conftest import make_item, upstream_body


@pytest.mark.unit
class TestExtractItems:

    def test_list(self):
        data = upstream_body([make_item("1"), make_item("2")])
        assert [item["contentid"] for item in extract_items(data)] == ["1", "2"]

    def test_single_object(self):
        """Upstream returns a bare object when there is exactly one result"""
        data = {"response": {"body": {"items": {"item": make_item("7")}}}}
        assert extract_items(data)[0]["contentid"] == "7"

    def test_empty_string(self):
        assert extract_items(upstream_body([])) == []

    def test_malformed(self):
        assert extract_items(None) == []
        assert extract_items({"response": {"body": {"items": {"item": ["x", 3]}}}}) == []


@pytest.mark.unit
class TestFieldHelpers:

    def test_sanitize_html(self):
        text = "<p>경복궁&amp;<script>alert(1)</script>  <b>창덕궁</b></p>"
        assert sanitize_html(text) == "경복궁& 창덕궁"
        assert sanitize_html("") is None
        assert sanitize_html(None) is None

    @pytest.mark.parametrize("value,expected", [
        ("126.9769", 126.9769),
        ("0", None),
        ("", None),
        ("abc", None),
        ("181", None),
    ])
    def test_parse_coordinate(self, value, expected):
        assert parse_coordinate(value, 180) == expected

    def test_format_date(self):
        assert format_date("20250125093000") == "2025-01-25T09:30:00"
        assert format_date("20250125") == "2025-01-25"
        assert format_date("2025") is None
        assert format_date("20251399") is None

    def test_completeness(self):
        assert calculate_completeness({}) == 0
        full = {field: "x" for field in ("title", "addr1", "tel", "firstimage", "mapx", "mapy",
                                         "overview", "homepage", "cat1", "cat2", "cat3")}
        assert calculate_completeness(full) == 100


@pytest.mark.unit
class TestProcessItem:

    def test_normalizes_record(self):
        item = process_item(make_item("126508", title="<b>경복궁</b>", firstimage="not-a-url"))

        assert item["contentId"] == "126508"
        assert item["title"] == "경복궁"
        assert item["firstimage"] is None
        assert item["mapx"] == pytest.approx(126.9769)
        assert item["meta"]["typeName"] == "관광지"
        assert item["meta"]["areaName"] == "서울"
        assert item["meta"]["hasLocation"] is True

    def test_language_labels(self):
        item = process_item(make_item("1"), language="en")
        assert item["meta"]["typeName"] == "Tourist Spot"
        assert item["meta"]["areaName"] == "Seoul"

    def test_missing_location(self):
        item = process_item(make_item("1", mapx="0", mapy=""))
        assert item["meta"]["hasLocation"] is False
        assert item["mapx"] is None

    def test_non_dict_skipped(self):
        assert process_item("junk") is None
        assert len(process_items([make_item("1"), "junk"])) == 1


@pytest.mark.unit
class TestBuildPagination:

    def test_from_body(self):
        pagination = build_pagination({"totalCount": 25, "pageNo": 2, "numOfRows": 10}, "1", "10")
        assert pagination == {
            "totalCount": 25,
            "pageNo": 2,
            "numOfRows": 10,
            "totalPages": 3,
            "hasNext": True,
            "hasPrev": True,
        }

    def test_falls_back_to_request(self):
        pagination = build_pagination({}, "1", "20")
        assert pagination["totalCount"] == 0
        assert pagination["numOfRows"] == 20
        assert pagination["hasNext"] is False
