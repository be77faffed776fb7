"""
Upstream response processing.

Extracts item lists from the nested KorService2 envelope and normalizes
tourism-spot records.
"""

import html
import math
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..core.constants import area_emoji, area_name, content_type_icon, content_type_name

COMPLETENESS_FIELDS = (
    "title", "addr1", "tel", "firstimage", "mapx", "mapy",
    "overview", "homepage", "cat1", "cat2", "cat3",
)

_SCRIPT_PATTERN = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_TAG_PATTERN = re.compile(r"<[^>]*>")
_JS_PROTOCOL = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+\s*=", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


def extract_items(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Pull the item list out of an upstream body.

    The upstream returns ``items.item`` as a list, a single object, or an
    empty string when there are no results.
    """
    if not isinstance(data, dict):
        return []

    body = get_body(data)
    for container in (body.get("items"), data.get("items")):
        if isinstance(container, dict) and container.get("item"):
            items = container["item"]
            break
    else:
        items = body.get("item")

    if not items:
        return []
    if isinstance(items, list):
        return [item for item in items if isinstance(item, dict)]
    return [items] if isinstance(items, dict) else []


def get_body(data: Dict[str, Any]) -> Dict[str, Any]:
    response = data.get("response") if isinstance(data, dict) else None
    body = response.get("body") if isinstance(response, dict) else None
    return body if isinstance(body, dict) else {}


def sanitize_html(text: Any) -> Optional[str]:
    if not text or not isinstance(text, str):
        return None
    text = _SCRIPT_PATTERN.sub("", text)
    text = _TAG_PATTERN.sub("", text)
    text = _JS_PROTOCOL.sub("", text)
    text = _EVENT_HANDLER.sub("", text)
    text = html.unescape(text)
    text = _WHITESPACE.sub(" ", text).strip()
    return text or None


def parse_coordinate(value: Any, limit: float) -> Optional[float]:
    if value in (None, "", "0", 0):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or abs(number) > limit or number == 0:
        return None
    return number


def parse_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def valid_url(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.startswith(("http://", "https://")):
        return value
    return None


def format_date(value: Any) -> Optional[str]:
    """YYYYMMDDHHMMSS or YYYYMMDD to an ISO-8601 string"""
    if not isinstance(value, str):
        return None
    formats = {14: "%Y%m%d%H%M%S", 8: "%Y%m%d"}
    fmt = formats.get(len(value))
    if fmt is None:
        return None
    try:
        parsed = datetime.strptime(value, fmt)
    except ValueError:
        return None
    return parsed.isoformat() if len(value) == 14 else parsed.date().isoformat()


def calculate_completeness(item: Dict[str, Any]) -> int:
    filled = 0
    for field in COMPLETENESS_FIELDS:
        value = item.get(field)
        if value and value not in ("", "0", "null"):
            filled += 1
    return round(filled / len(COMPLETENESS_FIELDS) * 100)


def process_item(item: Dict[str, Any], language: str = "ko") -> Optional[Dict[str, Any]]:
    """Normalize one raw tourism-spot record"""
    if not isinstance(item, dict):
        return None

    mapx = parse_coordinate(item.get("mapx"), 180)
    mapy = parse_coordinate(item.get("mapy"), 90)
    content_type_id = item.get("contenttypeid")
    area_code = item.get("areacode")

    return {
        "contentId": item.get("contentid"),
        "contentTypeId": content_type_id,
        "title": sanitize_html(item.get("title")),
        "addr1": item.get("addr1") or None,
        "addr2": item.get("addr2") or None,
        "zipcode": item.get("zipcode") or None,
        "tel": item.get("tel") or None,
        "telname": item.get("telname") or None,
        "homepage": sanitize_html(item.get("homepage")),
        "overview": sanitize_html(item.get("overview")),
        "firstimage": valid_url(item.get("firstimage")),
        "firstimage2": valid_url(item.get("firstimage2")),
        "cpyrhtDivCd": item.get("cpyrhtDivCd") or None,
        "mapx": mapx,
        "mapy": mapy,
        "mlevel": parse_int(item.get("mlevel")),
        "areacode": area_code or None,
        "sigungucode": item.get("sigungucode") or None,
        "cat1": item.get("cat1") or None,
        "cat2": item.get("cat2") or None,
        "cat3": item.get("cat3") or None,
        "createdtime": item.get("createdtime") or None,
        "modifiedtime": item.get("modifiedtime") or None,
        "meta": {
            "typeName": content_type_name(content_type_id, language),
            "typeIcon": content_type_icon(content_type_id),
            "areaName": area_name(area_code, language),
            "areaEmoji": area_emoji(area_code),
            "hasImage": bool(item.get("firstimage") or item.get("firstimage2")),
            "hasLocation": mapx is not None and mapy is not None,
            "hasOverview": bool(item.get("overview")),
            "hasHomepage": bool(item.get("homepage")),
            "hasTel": bool(item.get("tel")),
            "lastUpdated": format_date(item.get("modifiedtime")),
            "completeness": calculate_completeness(item),
        },
    }


def process_items(items: List[Dict[str, Any]], language: str = "ko") -> List[Dict[str, Any]]:
    processed = (process_item(item, language) for item in items)
    return [item for item in processed if item is not None]


def build_pagination(body: Dict[str, Any], page_no: Any, num_of_rows: Any) -> Dict[str, Any]:
    total_count = parse_int(body.get("totalCount")) or 0
    page_no = parse_int(body.get("pageNo")) or parse_int(page_no) or 1
    num_of_rows = parse_int(body.get("numOfRows")) or parse_int(num_of_rows) or 10
    total_pages = math.ceil(total_count / num_of_rows) if num_of_rows else 0
    return {
        "totalCount": total_count,
        "pageNo": page_no,
        "numOfRows": num_of_rows,
        "totalPages": total_pages,
        "hasNext": page_no < total_pages,
        "hasPrev": page_no > 1,
    }
