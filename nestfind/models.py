from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class Location:
    address: str
    latitude: float
    longitude: float
    neighborhood: str


@dataclass(frozen=True)
class Listing:
    """A catalog entry. Built once at load time and shared read-only."""

    id: str
    title: str
    price: int
    bedrooms: int
    bathrooms: int
    location: Location
    pet_friendly: bool = False
    parking: bool = False
    amenities: tuple[str, ...] = ()
    square_feet: int = 0
    available: str = ""
    photos: tuple[str, ...] = ()

    @property
    def neighborhood(self) -> str:
        return self.location.neighborhood

    @property
    def address(self) -> str:
        return self.location.address


@dataclass(frozen=True)
class SearchCriteria:
    """Structured constraints. None means unconstrained, empty amenities too."""

    min_price: int | None = None
    max_price: int | None = None
    bedrooms: int | None = None
    bathrooms: int | None = None
    pet_friendly: bool | None = None
    parking: bool | None = None
    location: str | None = None
    amenities: tuple[str, ...] = ()
    proximity: str | None = None
    semantic_scores: Mapping[str, float] | None = field(default=None, compare=False, repr=False)

    def is_empty(self) -> bool:
        return (
            self.min_price is None
            and self.max_price is None
            and self.bedrooms is None
            and self.bathrooms is None
            and self.pet_friendly is None
            and self.parking is None
            and self.location is None
            and not self.amenities
        )

    @property
    def has_semantic_scores(self) -> bool:
        return bool(self.semantic_scores)

    def semantic_score(self, listing_id: str) -> float:
        if not self.semantic_scores:
            return 0.0
        return self.semantic_scores.get(listing_id, 0.0)

    def with_semantic_scores(self, scores: Mapping[str, float]) -> "SearchCriteria":
        return replace(self, semantic_scores=MappingProxyType(dict(scores)))

    def relaxed(self, max_factor: float, min_factor: float) -> "SearchCriteria":
        return replace(
            self,
            max_price=int(self.max_price * max_factor) if self.max_price is not None else None,
            min_price=int(self.min_price * min_factor) if self.min_price is not None else None,
            location=None,
        )


@dataclass(frozen=True)
class ScoredListing:
    listing: Listing
    score: float


@dataclass(frozen=True)
class RetrievalContext:
    """Semantic neighbours of a query. Empty when retrieval failed."""

    listings: tuple[ScoredListing, ...] = ()
    similar_queries: tuple[str, ...] = ()
    search_time_ms: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.listings and not self.similar_queries


@dataclass(frozen=True)
class Interpretation:
    criteria: SearchCriteria
    confidence: float


@dataclass(frozen=True)
class SearchMetadata:
    total_results: int
    search_time_ms: int
    confidence: float


@dataclass(frozen=True)
class RankedResult:
    session_id: str
    listings: tuple[Listing, ...]
    metadata: SearchMetadata

    @property
    def total_results(self) -> int:
        return self.metadata.total_results


# --- Wire format (camelCase JSON) ---


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LocationSchema(_CamelModel):
    address: str = ""
    latitude: float = 0.0
    longitude: float = 0.0
    neighborhood: str = ""


class ListingSchema(_CamelModel):
    id: str
    title: str
    price: int
    bedrooms: int = 0
    bathrooms: int = 1
    location: LocationSchema = Field(default_factory=LocationSchema)
    pet_friendly: bool = Field(default=False, alias="petFriendly")
    parking_available: bool = Field(default=False, alias="parkingAvailable")
    amenities: list[str] = []
    square_feet: int = Field(default=0, alias="squareFeet")
    available: str = ""
    photos: list[str] = []

    def to_listing(self) -> Listing:
        return Listing(
            id=self.id,
            title=self.title,
            price=self.price,
            bedrooms=self.bedrooms,
            bathrooms=self.bathrooms,
            location=Location(**self.location.model_dump()),
            pet_friendly=self.pet_friendly,
            parking=self.parking_available,
            amenities=tuple(self.amenities),
            square_feet=self.square_feet,
            available=self.available,
            photos=tuple(self.photos),
        )

    @classmethod
    def from_listing(cls, listing: Listing) -> "ListingSchema":
        return cls(
            id=listing.id,
            title=listing.title,
            price=listing.price,
            bedrooms=listing.bedrooms,
            bathrooms=listing.bathrooms,
            location=LocationSchema(
                address=listing.location.address,
                latitude=listing.location.latitude,
                longitude=listing.location.longitude,
                neighborhood=listing.location.neighborhood,
            ),
            pet_friendly=listing.pet_friendly,
            parking_available=listing.parking,
            amenities=list(listing.amenities),
            square_feet=listing.square_feet,
            available=listing.available,
            photos=list(listing.photos),
        )
