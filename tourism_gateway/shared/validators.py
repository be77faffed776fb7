"""
Schema-driven input validation per operation.

Each operation maps field names to a FieldRule. Every field is checked and
all failures are reported together in a single validation error.
"""

import html
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .exceptions import field_error, unsupported_operation_error, validation_error

logger = logging.getLogger(__name__)

CONTENT_TYPE_IDS = ("12", "14", "15", "25", "28", "32", "38", "39")
ARRANGE_VALUES = ("A", "B", "C", "D", "E", "O", "Q", "R")
YN = ("Y", "N")
MAX_CONTENT_ID = 999999999

DECIMAL_PATTERN = r"^-?\d+\.?\d*$"


class FieldType(Enum):
    STRING = "string"
    ARRAY = "array"


@dataclass(frozen=True)
class FieldRule:
    """Validation rule for a single parameter"""
    type: FieldType = FieldType.STRING
    required: bool = False
    default: Optional[str] = None
    pattern: Optional[str] = None
    min: Optional[float] = None
    max: Optional[float] = None
    enum: Optional[Tuple[str, ...]] = None
    custom: Optional[str] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    sanitize: bool = True


def _page_fields(arrange_default: Optional[str] = None) -> Dict[str, FieldRule]:
    return {
        "numOfRows": FieldRule(pattern=r"^\d+$", min=1, max=1000, default="10"),
        "pageNo": FieldRule(pattern=r"^\d+$", min=1, max=1000, default="1"),
        "arrange": FieldRule(enum=ARRANGE_VALUES, default=arrange_default),
    }


LOCATION_FIELDS: Dict[str, FieldRule] = {
    "userLat": FieldRule(pattern=DECIMAL_PATTERN, custom="latitude"),
    "userLng": FieldRule(pattern=DECIMAL_PATTERN, custom="longitude"),
    "radius": FieldRule(pattern=r"^\d+\.?\d*$", min=0.1, max=20000),
}

AREA_FIELDS: Dict[str, FieldRule] = {
    "areaCode": FieldRule(pattern=r"^\d{1,2}$", min=1, max=39),
    "sigunguCode": FieldRule(pattern=r"^\d{1,5}$"),
}

CATEGORY_FIELDS: Dict[str, FieldRule] = {
    "cat1": FieldRule(pattern=r"^[A-Z]\d{2}$"),
    "cat2": FieldRule(pattern=r"^[A-Z]\d{4}$"),
    "cat3": FieldRule(pattern=r"^[A-Z]\d{6}$"),
}

CONTENT_TYPE_FIELD = FieldRule(enum=CONTENT_TYPE_IDS)
CONTENT_ID_FIELD = FieldRule(required=True, pattern=r"^\d+$")
DATE_FIELD = FieldRule(pattern=r"^\d{8}$")


def _build_schemas() -> Dict[str, Dict[str, FieldRule]]:
    detail_common_flags = {
        name: FieldRule(enum=YN, default="Y")
        for name in ("defaultYN", "firstImageYN", "areacodeYN", "catcodeYN",
                     "addrinfoYN", "mapinfoYN", "overviewYN")
    }

    return {
        "areaCode": {**_page_fields(), "areaCode": AREA_FIELDS["areaCode"]},
        "categoryCode": {**_page_fields(), "contentTypeId": CONTENT_TYPE_FIELD, **CATEGORY_FIELDS},
        "areaBasedList": {
            **_page_fields("C"),
            **LOCATION_FIELDS,
            **AREA_FIELDS,
            **CATEGORY_FIELDS,
            "contentTypeId": CONTENT_TYPE_FIELD,
            "modifiedtime": DATE_FIELD,
        },
        "locationBasedList": {
            **_page_fields("E"),
            "mapX": FieldRule(required=True, pattern=DECIMAL_PATTERN, custom="longitude"),
            "mapY": FieldRule(required=True, pattern=DECIMAL_PATTERN, custom="latitude"),
            "radius": FieldRule(required=True, pattern=r"^\d+$", min=1, max=20000),
            "contentTypeId": CONTENT_TYPE_FIELD,
        },
        "searchKeyword": {
            **_page_fields("C"),
            **LOCATION_FIELDS,
            **AREA_FIELDS,
            **CATEGORY_FIELDS,
            "keyword": FieldRule(required=True, min_length=1, max_length=100, custom="keyword", sanitize=False),
            "contentTypeId": CONTENT_TYPE_FIELD,
        },
        "searchFestival": {
            **_page_fields("C"),
            **LOCATION_FIELDS,
            **AREA_FIELDS,
            "eventStartDate": FieldRule(required=True, pattern=r"^\d{8}$"),
            "eventEndDate": DATE_FIELD,
        },
        "searchStay": {**_page_fields("C"), **LOCATION_FIELDS, **AREA_FIELDS},
        "detailCommon": {"contentId": CONTENT_ID_FIELD, **detail_common_flags},
        "detailIntro": {
            "contentId": CONTENT_ID_FIELD,
            "contentTypeId": FieldRule(required=True, enum=CONTENT_TYPE_IDS),
        },
        "detailInfo": {
            "contentId": CONTENT_ID_FIELD,
            "contentTypeId": FieldRule(required=True, enum=CONTENT_TYPE_IDS),
        },
        "detailImage": {
            **_page_fields(),
            "contentId": CONTENT_ID_FIELD,
            "imageYN": FieldRule(enum=YN, default="Y"),
            "subImageYN": FieldRule(enum=YN),
        },
        "areaBasedSyncList": {
            **_page_fields("C"),
            **AREA_FIELDS,
            **CATEGORY_FIELDS,
            "contentTypeId": CONTENT_TYPE_FIELD,
            "modifiedtime": DATE_FIELD,
            "showflag": FieldRule(enum=("0", "1")),
        },
        "detailPetTour": {**_page_fields(), "contentId": FieldRule(pattern=r"^\d+$")},
        "ldongCode": {
            **_page_fields(),
            "lDongRegnCd": FieldRule(pattern=r"^\d{1,2}$"),
            "lDongListYn": FieldRule(enum=YN),
        },
        "lclsSystmCode": {
            **_page_fields(),
            "lclsSystm1": FieldRule(pattern=r"^[A-Z]{2}$"),
            "lclsSystm2": FieldRule(pattern=r"^[A-Z]{2}\d{2}$"),
            "lclsSystm3": FieldRule(pattern=r"^[A-Z]{2}\d{6}$"),
            "lclsSystmListYn": FieldRule(enum=YN),
        },
        "batchDetail": {
            "contentIds": FieldRule(type=FieldType.ARRAY, required=True, custom="contentIdArray"),
        },
    }


DANGEROUS_KEYWORD_PATTERNS = [
    re.compile(r"<script\b", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
    re.compile(r"'.*?\b(union|select|insert|delete|drop|update|exec)\b.*?'", re.IGNORECASE),
    re.compile(r"[<>\"'&`]"),
]

_TAG_PATTERN = re.compile(r"<[^>]*>")


def sanitize_text(value: str) -> str:
    """Strip HTML tags and escape the remaining markup characters"""
    return html.escape(_TAG_PATTERN.sub("", value).strip(), quote=True)


def _to_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def is_latitude(value: Any) -> bool:
    number = _to_float(value)
    return number is not None and -90 <= number <= 90


def is_longitude(value: Any) -> bool:
    number = _to_float(value)
    return number is not None and -180 <= number <= 180


def is_safe_keyword(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    trimmed = value.strip()
    if not 0 < len(trimmed) <= 100:
        return False
    return not any(pattern.search(trimmed) for pattern in DANGEROUS_KEYWORD_PATTERNS)


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "") or value == []


class InputValidator:
    """
    Validates operation parameters against per-operation schemas.

    Per field the order is: required check, default substitution,
    sanitization, type coercion, pattern, length, numeric range, enum and
    finally the named custom predicate. Cross-field rules run afterwards.
    """

    def __init__(self, max_batch_ids: int = 50):
        self.max_batch_ids = max_batch_ids
        self.schemas = _build_schemas()
        self.custom_validators: Dict[str, Callable[[Any], bool]] = {
            "latitude": is_latitude,
            "longitude": is_longitude,
            "keyword": is_safe_keyword,
            "contentIdArray": self._is_content_id_array,
        }
        self.cross_field_rules: List[Callable[[str, Dict[str, Any], List[Dict[str, Any]]], None]] = [
            self._check_coordinate_pair,
            self._check_event_dates,
        ]

    def _is_content_id_array(self, value: Any) -> bool:
        if not isinstance(value, list) or not 0 < len(value) <= self.max_batch_ids:
            return False
        for content_id in value:
            if not isinstance(content_id, str) or not re.fullmatch(r"\d+", content_id):
                return False
            if not 0 < int(content_id) <= MAX_CONTENT_ID:
                return False
        return True

    def get_schema(self, operation: str) -> Optional[Dict[str, FieldRule]]:
        return self.schemas.get(operation)

    def validate(self, operation: Optional[str], params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Validate and normalize parameters for an operation.

        Returns:
            Parameters restricted to the schema, with defaults applied

        Raises:
            TourismAPIError: VALIDATION kind listing every failing field
        """
        schema = self.schemas.get(operation) if isinstance(operation, str) else None
        if schema is None:
            raise unsupported_operation_error(operation)

        params = params or {}
        errors: List[Dict[str, Any]] = []
        validated: Dict[str, Any] = {}

        for name, rule in schema.items():
            value, error = self._validate_field(name, params.get(name), rule)
            if error:
                errors.append(error)
            elif value is not None:
                validated[name] = value

        if not errors:
            for rule in self.cross_field_rules:
                rule(operation, validated, errors)

        if errors:
            logger.info(f"Validation failed for {operation}: {[e['field'] for e in errors]}")
            raise validation_error(errors, operation)

        return validated

    def _validate_field(self, name: str, value: Any, rule: FieldRule) -> Tuple[Any, Optional[Dict[str, Any]]]:
        if _is_empty(value):
            if rule.required:
                return None, field_error(name, "FIELD_REQUIRED")
            if rule.default is None:
                return None, None
            value = rule.default

        if rule.type == FieldType.ARRAY:
            value = self._coerce_array(value)
            if value is None:
                return None, field_error(name, "TYPE_MISMATCH", type="array")
        else:
            if isinstance(value, bool) or not isinstance(value, (str, int, float)):
                return None, field_error(name, "TYPE_MISMATCH", type="string")
            value = str(value).strip()
            if rule.sanitize:
                value = sanitize_text(value)

        if rule.pattern and not re.match(rule.pattern, value):
            return None, field_error(name, "INVALID_FORMAT")

        if isinstance(value, str):
            if rule.min_length is not None and len(value) < rule.min_length:
                return None, field_error(name, "MIN_LENGTH_ERROR", minLength=rule.min_length)
            if rule.max_length is not None and len(value) > rule.max_length:
                return None, field_error(name, "MAX_LENGTH_ERROR", maxLength=rule.max_length)

        if rule.min is not None or rule.max is not None:
            number = _to_float(value)
            if number is None:
                return None, field_error(name, "NUMERIC_ERROR")
            if (rule.min is not None and number < rule.min) or (rule.max is not None and number > rule.max):
                return None, field_error(name, "INVALID_RANGE")

        if rule.enum and value not in rule.enum:
            return None, field_error(name, "ENUM_ERROR", values=", ".join(rule.enum))

        if rule.custom:
            predicate = self.custom_validators[rule.custom]
            if not predicate(value):
                code = "INVALID_RANGE" if rule.custom in ("latitude", "longitude") else "INVALID_FORMAT"
                return None, field_error(name, code)

        return value, None

    @staticmethod
    def _coerce_array(value: Any) -> Optional[List[str]]:
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        if isinstance(value, (list, tuple)):
            if not all(isinstance(item, (str, int)) and not isinstance(item, bool) for item in value):
                return None
            return [str(item).strip() for item in value]
        return None

    @staticmethod
    def _check_coordinate_pair(operation: str, params: Dict[str, Any], errors: List[Dict[str, Any]]) -> None:
        has_lat = "userLat" in params
        has_lng = "userLng" in params
        if has_lat != has_lng:
            missing = "userLng" if has_lat else "userLat"
            errors.append(field_error(missing, "COORDINATE_PAIR_ERROR"))
        elif "radius" in params and not has_lat and operation != "locationBasedList":
            errors.append(field_error("radius", "COORDINATE_PAIR_ERROR"))

    @staticmethod
    def _check_event_dates(operation: str, params: Dict[str, Any], errors: List[Dict[str, Any]]) -> None:
        start = params.get("eventStartDate")
        end = params.get("eventEndDate")
        if start and end and start > end:
            errors.append(field_error("eventEndDate", "DATE_ORDER_ERROR"))
