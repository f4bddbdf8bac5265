from collections.abc import Iterator
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from nestfind.logging import get_logger
from nestfind.models import Listing, ListingSchema, Location

_logger = get_logger(__name__)

BUNDLED_CATALOG = Path(__file__).parent / "data" / "apartments.json"

_listings_adapter = TypeAdapter(list[ListingSchema])

SAMPLE_LISTINGS = (
    Listing(
        id="apt-001",
        title="Luxury Downtown Loft with City Views",
        price=2500,
        bedrooms=2,
        bathrooms=2,
        location=Location("100 Main St, Downtown", 42.3601, -71.0589, "downtown"),
        pet_friendly=True,
        parking=True,
        amenities=("gym", "rooftop", "concierge", "pool"),
        square_feet=1200,
        available="2024-02-01",
    ),
    Listing(
        id="apt-002",
        title="Cozy Studio Near University",
        price=1200,
        bedrooms=0,
        bathrooms=1,
        location=Location("50 College Ave", 42.3505, -71.1054, "allston"),
        amenities=("laundry", "bike-storage"),
        square_feet=450,
        available="2024-02-15",
    ),
    Listing(
        id="apt-003",
        title="Family-Friendly 3BR in Quiet Neighborhood",
        price=3200,
        bedrooms=3,
        bathrooms=2,
        location=Location("25 Oak Street", 42.3751, -71.1056, "cambridge"),
        pet_friendly=True,
        parking=True,
        amenities=("yard", "garage", "playground"),
        square_feet=1800,
        available="2024-03-01",
    ),
)


class Catalog:
    """Read-only in-memory listing catalog, loaded once at startup."""

    def __init__(self, listings: list[Listing] | tuple[Listing, ...]):
        self._listings = tuple(listings)
        self._by_id = {listing.id: listing for listing in self._listings}

    def __len__(self) -> int:
        return len(self._listings)

    def __iter__(self) -> Iterator[Listing]:
        return iter(self._listings)

    @property
    def listings(self) -> tuple[Listing, ...]:
        return self._listings

    def get(self, listing_id: str) -> Listing | None:
        return self._by_id.get(listing_id)

    @classmethod
    def from_json(cls, data: str | bytes) -> "Catalog":
        schemas = _listings_adapter.validate_json(data)
        return cls([s.to_listing() for s in schemas])

    @classmethod
    def load(cls, path: Path | None = None) -> "Catalog":
        candidates = [path] if path else []
        candidates.append(BUNDLED_CATALOG)

        for candidate in candidates:
            if not candidate.exists():
                _logger.debug("Catalog not found at %s", candidate)
                continue
            try:
                catalog = cls.from_json(candidate.read_bytes())
            except (OSError, ValidationError) as e:
                _logger.warning("Failed to load catalog from %s: %s", candidate, e)
                continue
            _logger.info("Loaded %d listings from %s", len(catalog), candidate)
            return catalog

        _logger.warning("No catalog file found, using sample listings")
        return cls(SAMPLE_LISTINGS)
