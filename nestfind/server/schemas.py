from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from nestfind.mapview import MapData
from nestfind.models import ListingSchema, RankedResult


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Search ---


class SearchRequest(_CamelModel):
    query: str = ""
    session_id: str | None = None


class SearchMetadataResponse(_CamelModel):
    total_results: int
    search_time_ms: int
    confidence: float


class SearchResponse(_CamelModel):
    results: list[ListingSchema]
    session_id: str
    metadata: SearchMetadataResponse

    @classmethod
    def from_result(cls, result: RankedResult) -> "SearchResponse":
        return cls(
            results=[ListingSchema.from_listing(listing) for listing in result.listings],
            session_id=result.session_id,
            metadata=SearchMetadataResponse(
                total_results=result.metadata.total_results,
                search_time_ms=result.metadata.search_time_ms,
                confidence=result.metadata.confidence,
            ),
        )


# --- Map ---


class MarkerResponse(_CamelModel):
    id: str
    latitude: float
    longitude: float
    title: str
    price: int
    bedrooms: int
    address: str
    pet_friendly: bool
    amenities: list[str]


class BoundsResponse(_CamelModel):
    min_lat: float
    min_lon: float
    max_lat: float
    max_lon: float


class MapResponse(_CamelModel):
    session_id: str
    markers: list[MarkerResponse]
    clusters: dict[str, list[str]]
    bounds: BoundsResponse

    @classmethod
    def from_map(cls, session_id: str, data: MapData) -> "MapResponse":
        return cls(
            session_id=session_id,
            markers=[
                MarkerResponse(
                    id=m.id,
                    latitude=m.latitude,
                    longitude=m.longitude,
                    title=m.title,
                    price=m.price,
                    bedrooms=m.bedrooms,
                    address=m.address,
                    pet_friendly=m.pet_friendly,
                    amenities=list(m.amenities),
                )
                for m in data.markers
            ],
            clusters={key: [m.id for m in markers] for key, markers in data.clusters.items()},
            bounds=BoundsResponse(
                min_lat=data.bounds.min_lat,
                min_lon=data.bounds.min_lon,
                max_lat=data.bounds.max_lat,
                max_lon=data.bounds.max_lon,
            ),
        )
