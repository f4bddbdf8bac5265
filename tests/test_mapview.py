import pytest

from nestfind.mapview import DEFAULT_BOUNDS, MapBounds, cluster_key, compute_bounds, format_for_map
from nestfind.models import Location
from tests.conftest import make_listing


def at(listing_id: str, lat: float, lon: float):
    return make_listing(id=listing_id, location=Location(f"{listing_id} St", lat, lon, "downtown"))


class TestBounds:
    def test_empty_uses_default(self):
        assert compute_bounds([]) == MapBounds(*DEFAULT_BOUNDS)

    def test_padding(self):
        bounds = compute_bounds([at("a", 42.0, -71.0), at("b", 43.0, -70.0)])
        assert bounds.min_lat == pytest.approx(41.9)
        assert bounds.max_lat == pytest.approx(43.1)
        assert bounds.min_lon == pytest.approx(-71.1)
        assert bounds.max_lon == pytest.approx(-69.9)

    def test_single_point_has_zero_extent(self):
        bounds = compute_bounds([at("a", 42.0, -71.0)])
        assert bounds.min_lat == bounds.max_lat == 42.0


class TestClusters:
    def test_cluster_key_rounds_to_grid(self):
        assert cluster_key(42.3555, -71.0605) == "42.360,-71.060"

    def test_nearby_listings_share_a_cluster(self):
        data = format_for_map([at("a", 42.3555, -71.0605), at("b", 42.3570, -71.0620), at("c", 42.40, -71.12)])
        assert len(data.markers) == 3
        groups = sorted(sorted(m.id for m in markers) for markers in data.clusters.values())
        assert groups == [["a", "b"], ["c"]]

    def test_marker_fields(self):
        listing = make_listing(id="m", pet_friendly=True, amenities=("gym",))
        [marker] = format_for_map([listing]).markers
        assert marker.id == "m"
        assert marker.address == listing.address
        assert marker.pet_friendly is True
        assert marker.amenities == ("gym",)
