"""
Unit tests for per-operation input validation.
"""

import pytest

from tourism_gateway.core.constants import SUPPORTED_OPERATIONS
from tourism_gateway.shared.exceptions import ErrorKind, TourismAPIError
from tourism_gateway.shared.validators import InputValidator, sanitize_text


@pytest.fixture
def validator():
    return InputValidator()


def field_errors(validator, operation, params):
    with pytest.raises(TourismAPIError) as exc_info:
        validator.validate(operation, params)
    assert exc_info.value.kind == ErrorKind.VALIDATION
    return {error["field"]: error["code"] for error in exc_info.value.field_errors}


@pytest.mark.unit
class TestInputValidator:

    def test_every_operation_has_schema(self, validator):
        for operation in SUPPORTED_OPERATIONS:
            assert validator.get_schema(operation) is not None

    def test_defaults_applied(self, validator):
        validated = validator.validate("areaBasedList", {})
        assert validated == {"numOfRows": "10", "pageNo": "1", "arrange": "C"}

    def test_location_based_default_arrange(self, validator):
        validated = validator.validate("locationBasedList", {"mapX": "126.98", "mapY": "37.57", "radius": "1000"})
        assert validated["arrange"] == "E"

    def test_unknown_parameters_dropped(self, validator):
        validated = validator.validate("areaCode", {"numOfRows": "5", "serviceKey": "injected"})
        assert "serviceKey" not in validated

    def test_missing_required_field(self, validator):
        assert field_errors(validator, "detailCommon", {}) == {"contentId": "FIELD_REQUIRED"}

    def test_all_failures_reported_together(self, validator):
        errors = field_errors(validator, "detailIntro", {"contentId": "abc", "contentTypeId": "99"})
        assert errors == {"contentId": "INVALID_FORMAT", "contentTypeId": "ENUM_ERROR"}

    def test_detail_image_sub_image_flag(self, validator):
        validated = validator.validate("detailImage", {"contentId": "126508", "subImageYN": "Y"})
        assert validated["subImageYN"] == "Y"
        assert validated["imageYN"] == "Y"
        assert field_errors(validator, "detailImage", {"contentId": "126508", "subImageYN": "X"}) == {
            "subImageYN": "ENUM_ERROR"
        }

    def test_unknown_operation(self, validator):
        """Unsupported operation is a validation error naming 'operation'"""
        assert field_errors(validator, "dropTables", {}) == {"operation": "UNSUPPORTED_OPERATION"}
        assert field_errors(validator, None, {}) == {"operation": "UNSUPPORTED_OPERATION"}

    @pytest.mark.parametrize("lat,accepted", [("90", True), ("-90", True), ("37.5665", True), ("91", False), ("-90.5", False)])
    def test_latitude_bounds(self, validator, lat, accepted):
        params = {"userLat": lat, "userLng": "126.978"}
        if accepted:
            assert validator.validate("areaBasedList", params)["userLat"] == lat
        else:
            assert field_errors(validator, "areaBasedList", params) == {"userLat": "INVALID_RANGE"}

    def test_longitude_bounds(self, validator):
        errors = field_errors(validator, "locationBasedList", {"mapX": "181", "mapY": "37.5", "radius": "100"})
        assert errors == {"mapX": "INVALID_RANGE"}

    def test_page_range(self, validator):
        assert field_errors(validator, "areaCode", {"numOfRows": "1001"}) == {"numOfRows": "INVALID_RANGE"}
        assert field_errors(validator, "areaCode", {"pageNo": "0"}) == {"pageNo": "INVALID_RANGE"}

    def test_coordinates_must_come_in_pairs(self, validator):
        assert field_errors(validator, "searchStay", {"userLat": "37.5"}) == {"userLng": "COORDINATE_PAIR_ERROR"}

    def test_radius_requires_location(self, validator):
        assert field_errors(validator, "areaBasedList", {"radius": "5"}) == {"radius": "COORDINATE_PAIR_ERROR"}

    def test_event_date_order(self, validator):
        errors = field_errors(validator, "searchFestival", {"eventStartDate": "20250510", "eventEndDate": "20250501"})
        assert errors == {"eventEndDate": "DATE_ORDER_ERROR"}

    def test_keyword_rejects_script(self, validator):
        errors = field_errors(validator, "searchKeyword", {"keyword": "<script>alert(1)</script>"})
        assert errors == {"keyword": "INVALID_FORMAT"}

    def test_keyword_length(self, validator):
        assert field_errors(validator, "searchKeyword", {"keyword": "가" * 101}) == {"keyword": "MAX_LENGTH_ERROR"}
        assert validator.validate("searchKeyword", {"keyword": "경복궁"})["keyword"] == "경복궁"

    def test_content_id_array_from_csv(self, validator):
        validated = validator.validate("batchDetail", {"contentIds": "126508, 264337"})
        assert validated["contentIds"] == ["126508", "264337"]

    def test_content_id_array_limit(self, validator):
        ids = [str(n) for n in range(1, 52)]
        assert field_errors(validator, "batchDetail", {"contentIds": ids}) == {"contentIds": "INVALID_FORMAT"}

    def test_content_id_array_type(self, validator):
        assert field_errors(validator, "batchDetail", {"contentIds": {"a": 1}}) == {"contentIds": "TYPE_MISMATCH"}

    def test_numeric_values_coerced_to_strings(self, validator):
        assert validator.validate("detailCommon", {"contentId": 126508})["contentId"] == "126508"

    def test_sanitize_text(self):
        assert sanitize_text("<b>경복궁</b>") == "경복궁"
