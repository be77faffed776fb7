"""
관광 API 상수 정의

Operation names, upstream endpoints and the content-type / area code maps
used to enrich normalized items.
"""

from typing import Dict, Optional

API_BASE_URL = "https://apis.data.go.kr/B551011/KorService2"

# operation -> upstream endpoint
API_ENDPOINTS: Dict[str, str] = {
    "areaCode": "areaCode2",
    "categoryCode": "categoryCode2",
    "areaBasedList": "areaBasedList2",
    "locationBasedList": "locationBasedList2",
    "searchKeyword": "searchKeyword2",
    "searchFestival": "searchFestival2",
    "searchStay": "searchStay2",
    "detailCommon": "detailCommon2",
    "detailIntro": "detailIntro2",
    "detailInfo": "detailInfo2",
    "detailImage": "detailImage2",
    "areaBasedSyncList": "areaBasedSyncList2",
    "detailPetTour": "detailPetTour2",
    "ldongCode": "ldongCode2",
    "lclsSystmCode": "lclsSystmCode2",
}

BATCH_DETAIL = "batchDetail"

SUPPORTED_OPERATIONS = list(API_ENDPOINTS.keys()) + [BATCH_DETAIL]

# Operations whose responses may be shared between callers
CACHEABLE_OPERATIONS = {
    "areaCode", "categoryCode", "areaBasedList", "searchKeyword",
    "searchFestival", "searchStay", "detailCommon", "detailIntro",
    "detailInfo", "detailImage", "areaBasedSyncList", "detailPetTour",
    "ldongCode", "lclsSystmCode",
}

# Operations whose result set can be post-filtered by caller location
LOCATION_AWARE_OPERATIONS = {"areaBasedList", "searchKeyword", "searchFestival", "searchStay"}

CONTENT_TYPE_MAP: Dict[str, Dict[str, str]] = {
    "12": {"ko": "관광지", "icon": "🏛️", "en": "Tourist Spot", "ja": "観光地", "zh-cn": "旅游景点"},
    "14": {"ko": "문화시설", "icon": "🎭", "en": "Cultural Facility", "ja": "文化施設", "zh-cn": "文化设施"},
    "15": {"ko": "축제/공연/행사", "icon": "🎪", "en": "Festival/Event", "ja": "フェスティバル", "zh-cn": "节庆活动"},
    "25": {"ko": "여행코스", "icon": "🗺️", "en": "Travel Course", "ja": "旅行コース", "zh-cn": "旅游路线"},
    "28": {"ko": "레포츠", "icon": "⛷️", "en": "Leisure Sports", "ja": "レジャースポーツ", "zh-cn": "休闲运动"},
    "32": {"ko": "숙박", "icon": "🏨", "en": "Accommodation", "ja": "宿泊", "zh-cn": "住宿"},
    "38": {"ko": "쇼핑", "icon": "🛍️", "en": "Shopping", "ja": "ショッピング", "zh-cn": "购物"},
    "39": {"ko": "음식점", "icon": "🍽️", "en": "Restaurant", "ja": "レストラン", "zh-cn": "餐厅"},
}

AREA_CODE_MAP: Dict[str, Dict[str, str]] = {
    "1": {"ko": "서울", "emoji": "🏙️", "en": "Seoul", "ja": "ソウル", "zh-cn": "首尔"},
    "2": {"ko": "인천", "emoji": "✈️", "en": "Incheon", "ja": "仁川", "zh-cn": "仁川"},
    "3": {"ko": "대전", "emoji": "🏢", "en": "Daejeon", "ja": "大田", "zh-cn": "大田"},
    "4": {"ko": "대구", "emoji": "🌆", "en": "Daegu", "ja": "大邱", "zh-cn": "大邱"},
    "5": {"ko": "광주", "emoji": "🌸", "en": "Gwangju", "ja": "光州", "zh-cn": "光州"},
    "6": {"ko": "부산", "emoji": "🌊", "en": "Busan", "ja": "釜山", "zh-cn": "釜山"},
    "7": {"ko": "울산", "emoji": "🏭", "en": "Ulsan", "ja": "蔚山", "zh-cn": "蔚山"},
    "8": {"ko": "세종", "emoji": "🏛️", "en": "Sejong", "ja": "世宗", "zh-cn": "世宗"},
    "31": {"ko": "경기", "emoji": "🏘️", "en": "Gyeonggi", "ja": "京畿", "zh-cn": "京畿"},
    "32": {"ko": "강원", "emoji": "⛰️", "en": "Gangwon", "ja": "江原", "zh-cn": "江原"},
    "33": {"ko": "충북", "emoji": "🏔️", "en": "Chungbuk", "ja": "忠北", "zh-cn": "忠北"},
    "34": {"ko": "충남", "emoji": "🌾", "en": "Chungnam", "ja": "忠南", "zh-cn": "忠南"},
    "35": {"ko": "경북", "emoji": "🏯", "en": "Gyeongbuk", "ja": "慶北", "zh-cn": "庆北"},
    "36": {"ko": "경남", "emoji": "🏞️", "en": "Gyeongnam", "ja": "慶南", "zh-cn": "庆南"},
    "37": {"ko": "전북", "emoji": "🌿", "en": "Jeonbuk", "ja": "全北", "zh-cn": "全北"},
    "38": {"ko": "전남", "emoji": "🍃", "en": "Jeonnam", "ja": "全南", "zh-cn": "全南"},
    "39": {"ko": "제주", "emoji": "🌺", "en": "Jeju", "ja": "済州", "zh-cn": "济州"},
}

OTHER_LABEL = {"ko": "기타", "en": "Other", "ja": "その他", "zh-cn": "其他", "icon": "📍", "emoji": "📍"}


def get_api_url(operation: str, base_url: str = API_BASE_URL) -> str:
    return f"{base_url.rstrip('/')}/{API_ENDPOINTS[operation]}"


def content_type_name(content_type_id: Optional[str], language: str = "ko") -> str:
    entry = CONTENT_TYPE_MAP.get(str(content_type_id), OTHER_LABEL)
    return entry.get(language, entry["ko"])


def content_type_icon(content_type_id: Optional[str]) -> str:
    return CONTENT_TYPE_MAP.get(str(content_type_id), OTHER_LABEL)["icon"]


def area_name(area_code: Optional[str], language: str = "ko") -> str:
    entry = AREA_CODE_MAP.get(str(area_code), OTHER_LABEL)
    return entry.get(language, entry["ko"])


def area_emoji(area_code: Optional[str]) -> str:
    return AREA_CODE_MAP.get(str(area_code), OTHER_LABEL)["emoji"]
