from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from nestfind.constants import BASE_CONFIDENCE, QUALITY_ADJECTIVES
from nestfind.errors import InterpretationError
from nestfind.models import SearchCriteria


class CriteriaPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    min_price: int | None = Field(default=None, alias="minPrice")
    max_price: int | None = Field(default=None, alias="maxPrice")
    bedrooms: int | None = None
    bathrooms: int | None = None
    pet_friendly: bool | None = Field(default=None, alias="petFriendly")
    parking: bool | None = None
    location: str | None = None
    amenities: list[str] = []
    proximity: str | None = None

    @field_validator("amenities", mode="before")
    @classmethod
    def _null_amenities(cls, v):
        return [] if v is None else v

    @field_validator("location", "proximity")
    @classmethod
    def _blank_to_none(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v.strip()

    def to_criteria(self) -> SearchCriteria:
        return SearchCriteria(
            min_price=self.min_price,
            max_price=self.max_price,
            bedrooms=self.bedrooms,
            bathrooms=self.bathrooms,
            pet_friendly=self.pet_friendly,
            parking=self.parking,
            location=self.location,
            amenities=tuple(a for a in self.amenities if a.strip()),
            proximity=self.proximity,
        )


def extract_json(raw: str) -> str:
    """Best-effort payload extraction from a model reply.

    Drops a fenced block marker, then keeps the outermost braces. Without braces
    the trimmed text is returned as is.
    """
    content = raw.strip()
    if content.startswith("```"):
        content = content.split("\n", 1)[1] if "\n" in content else content[3:]
        if content.rstrip().endswith("```"):
            content = content.rstrip()[:-3]
        content = content.strip()

    start = content.find("{")
    end = content.rfind("}")
    if start != -1 and end > start:
        return content[start : end + 1]
    return content


def parse_criteria(raw: str) -> SearchCriteria:
    try:
        payload = CriteriaPayload.model_validate_json(extract_json(raw))
    except ValidationError as e:
        raise InterpretationError(f"unparseable criteria: {e.error_count()} errors") from e
    return payload.to_criteria()


def compute_confidence(criteria: SearchCriteria, query: str) -> float:
    confidence = BASE_CONFIDENCE
    if criteria.bedrooms is not None:
        confidence += 0.10
    if criteria.max_price is not None:
        confidence += 0.10
    if criteria.location is not None:
        confidence += 0.15
    if criteria.pet_friendly is not None:
        confidence += 0.10
    if criteria.parking is not None:
        confidence += 0.05

    lowered = query.lower()
    if any(word in lowered for word in QUALITY_ADJECTIVES):
        confidence += 0.10

    return min(1.0, confidence)
