import re

from nestfind.models import SearchCriteria

BEDROOMS_RE = re.compile(r"(\d+)\s*(?:bedroom|br|bed)")
BATHROOMS_RE = re.compile(r"(\d+)\s*(?:bathroom|bath|ba)")
MAX_PRICE_RE = re.compile(r"(?:under|below|less than|max|maximum)\s*\$?(\d+)")
MIN_PRICE_RE = re.compile(r"(?:over|above|more than|min|minimum)\s*\$?(\d+)")
THOUSANDS_RE = re.compile(r"(?<=\d),(?=\d{3}\b)")

LOCATION_KEYWORDS = ("downtown", "university", "suburban")


def _extract_int(pattern: re.Pattern, text: str) -> int | None:
    if m := pattern.search(text):
        return int(m.group(1))
    return None


def parse_locally(query: str) -> SearchCriteria:
    """Keyword and regex extraction over the lower-cased query.

    Only reports values that literally appear in the text.
    """
    text = THOUSANDS_RE.sub("", query.lower())

    location = next((kw for kw in LOCATION_KEYWORDS if kw in text), None)

    proximity = None
    if "near" in text or "close" in text:
        proximity = "near"
    elif "walking distance" in text:
        proximity = "walking distance"

    return SearchCriteria(
        min_price=_extract_int(MIN_PRICE_RE, text),
        max_price=_extract_int(MAX_PRICE_RE, text),
        bedrooms=_extract_int(BEDROOMS_RE, text),
        bathrooms=_extract_int(BATHROOMS_RE, text),
        pet_friendly=True if "pet" in text else None,
        parking=True if "parking" in text or "garage" in text else None,
        location=location,
        amenities=("gym",) if "gym" in text else (),
        proximity=proximity,
    )
