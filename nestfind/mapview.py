from collections.abc import Sequence
from dataclasses import dataclass

from nestfind.logging import get_logger
from nestfind.models import Listing

_logger = get_logger(__name__)

CLUSTER_THRESHOLD = 0.01
BOUNDS_PADDING = 0.1
DEFAULT_BOUNDS = (40.6892, -74.0445, 40.7589, -73.9851)


@dataclass(frozen=True)
class MapMarker:
    id: str
    latitude: float
    longitude: float
    title: str
    price: int
    bedrooms: int
    address: str
    pet_friendly: bool
    amenities: tuple[str, ...]


@dataclass(frozen=True)
class MapBounds:
    min_lat: float
    min_lon: float
    max_lat: float
    max_lon: float


@dataclass(frozen=True)
class MapData:
    markers: list[MapMarker]
    clusters: dict[str, list[MapMarker]]
    bounds: MapBounds


def to_marker(listing: Listing) -> MapMarker:
    return MapMarker(
        id=listing.id,
        latitude=listing.location.latitude,
        longitude=listing.location.longitude,
        title=listing.title,
        price=listing.price,
        bedrooms=listing.bedrooms,
        address=listing.address,
        pet_friendly=listing.pet_friendly,
        amenities=listing.amenities,
    )


def compute_bounds(listings: Sequence[Listing]) -> MapBounds:
    if not listings:
        return MapBounds(*DEFAULT_BOUNDS)

    lats = [listing.location.latitude for listing in listings]
    lons = [listing.location.longitude for listing in listings]
    lat_pad = (max(lats) - min(lats)) * BOUNDS_PADDING
    lon_pad = (max(lons) - min(lons)) * BOUNDS_PADDING
    return MapBounds(
        min_lat=min(lats) - lat_pad,
        min_lon=min(lons) - lon_pad,
        max_lat=max(lats) + lat_pad,
        max_lon=max(lons) + lon_pad,
    )


def cluster_key(latitude: float, longitude: float) -> str:
    lat = round(latitude / CLUSTER_THRESHOLD) * CLUSTER_THRESHOLD
    lon = round(longitude / CLUSTER_THRESHOLD) * CLUSTER_THRESHOLD
    return f"{lat:.3f},{lon:.3f}"


def cluster_markers(markers: Sequence[MapMarker]) -> dict[str, list[MapMarker]]:
    clusters: dict[str, list[MapMarker]] = {}
    for marker in markers:
        clusters.setdefault(cluster_key(marker.latitude, marker.longitude), []).append(marker)
    return clusters


def format_for_map(listings: Sequence[Listing]) -> MapData:
    markers = [to_marker(listing) for listing in listings]
    clusters = cluster_markers(markers)
    bounds = compute_bounds(listings)
    _logger.debug(
        "Map formatted: %d markers, %d clusters, bounds=[%.4f,%.4f to %.4f,%.4f]",
        len(markers),
        len(clusters),
        bounds.min_lat,
        bounds.min_lon,
        bounds.max_lat,
        bounds.max_lon,
    )
    return MapData(markers=markers, clusters=clusters, bounds=bounds)
