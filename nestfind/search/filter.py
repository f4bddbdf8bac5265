from nestfind.models import Listing, SearchCriteria

NEARBY_NEIGHBORHOODS: dict[str, tuple[str, ...]] = {
    "downtown": ("financial district", "government center", "theater district"),
    "back bay": ("south end", "copley", "newbury street"),
    "cambridge": ("somerville", "porter square", "davis square"),
    "south end": ("back bay", "roxbury"),
    "seaport": ("fort point", "financial district"),
    "beacon hill": ("north end", "downtown"),
    "north end": ("beacon hill", "charlestown"),
}


def is_nearby(a: str, b: str) -> bool:
    a, b = a.lower(), b.lower()
    return b in NEARBY_NEIGHBORHOODS.get(a, ()) or a in NEARBY_NEIGHBORHOODS.get(b, ())


def _has_amenity(listing: Listing, wanted: str) -> bool:
    wanted = wanted.lower()
    return any(wanted in amenity.lower() for amenity in listing.amenities)


def matches(listing: Listing, criteria: SearchCriteria) -> bool:
    """Hard AND over every constrained field of the criteria.

    Pet-friendly and parking only constrain when requested as True. Location is a
    case-insensitive substring of the neighborhood or street address.
    """
    if criteria.is_empty():
        return True

    if criteria.min_price is not None and listing.price < criteria.min_price:
        return False
    if criteria.max_price is not None and listing.price > criteria.max_price:
        return False
    if criteria.bedrooms is not None and listing.bedrooms != criteria.bedrooms:
        return False
    if criteria.bathrooms is not None and listing.bathrooms < criteria.bathrooms:
        return False
    if criteria.pet_friendly and not listing.pet_friendly:
        return False
    if criteria.parking and not listing.parking:
        return False

    if criteria.location is not None:
        wanted = criteria.location.lower()
        if wanted not in listing.neighborhood.lower() and wanted not in listing.address.lower():
            return False

    return all(_has_amenity(listing, amenity) for amenity in criteria.amenities)


def field_score(listing: Listing, criteria: SearchCriteria) -> float:
    """Partial-credit agreement between a listing and the criteria, in [0, 1].

    Averages over the constrained fields among max price, bedrooms, pet-friendly,
    parking, location and amenities. Cheaper listings earn more of the price
    credit. Returns 0.0 when none of those fields is constrained.
    """
    total = 0.0
    present = 0

    if criteria.max_price is not None:
        present += 1
        if criteria.max_price > 0 and listing.price <= criteria.max_price:
            total += max(0.0, 1.5 - listing.price / criteria.max_price)

    if criteria.bedrooms is not None:
        present += 1
        if listing.bedrooms == criteria.bedrooms:
            total += 1.0

    if criteria.pet_friendly is not None:
        present += 1
        if listing.pet_friendly == criteria.pet_friendly:
            total += 1.0

    if criteria.parking is not None:
        present += 1
        if listing.parking == criteria.parking:
            total += 1.0

    if criteria.location is not None:
        present += 1
        wanted = criteria.location.lower()
        neighborhood = listing.neighborhood.lower()
        if wanted in neighborhood or (neighborhood and neighborhood in wanted):
            total += 1.0
        elif is_nearby(neighborhood, wanted):
            total += 0.5

    if criteria.amenities:
        present += 1
        matched = sum(1 for amenity in criteria.amenities if _has_amenity(listing, amenity))
        total += matched / len(criteria.amenities)

    if present == 0:
        return 0.0
    return min(1.0, total / present)
