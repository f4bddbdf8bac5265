import pytest

from nestfind.errors import InterpretationError
from nestfind.models import SearchCriteria
from nestfind.query.parsing import compute_confidence, extract_json, parse_criteria


class TestExtractJson:
    def test_plain_object(self):
        assert extract_json('{"bedrooms": 2}') == '{"bedrooms": 2}'

    def test_fenced_block(self):
        raw = '```json\n{"maxPrice": 1800}\n```'
        assert extract_json(raw) == '{"maxPrice": 1800}'

    def test_surrounding_prose(self):
        raw = 'Sure! Here is the result: {"location": "downtown"} Hope that helps.'
        assert extract_json(raw) == '{"location": "downtown"}'

    def test_nested_braces_keep_outermost(self):
        raw = 'x {"a": {"b": 1}} y'
        assert extract_json(raw) == '{"a": {"b": 1}}'

    def test_no_braces_returns_trimmed_text(self):
        assert extract_json("   no json here  ") == "no json here"


class TestParseCriteria:
    def test_full_payload(self):
        raw = """{"minPrice": 1000, "maxPrice": 1800, "bedrooms": 2, "bathrooms": 1,
                  "petFriendly": true, "parking": false, "location": "downtown",
                  "amenities": ["gym", "pool"], "proximity": "near"}"""
        criteria = parse_criteria(raw)
        assert criteria == SearchCriteria(
            min_price=1000,
            max_price=1800,
            bedrooms=2,
            bathrooms=1,
            pet_friendly=True,
            parking=False,
            location="downtown",
            amenities=("gym", "pool"),
            proximity="near",
        )

    def test_nulls_and_missing_are_unconstrained(self):
        criteria = parse_criteria('{"maxPrice": null, "bedrooms": 0, "amenities": null}')
        assert criteria.max_price is None
        assert criteria.bedrooms == 0
        assert criteria.pet_friendly is None
        assert criteria.amenities == ()

    def test_unknown_keys_ignored(self):
        criteria = parse_criteria('{"confidence": 0.1}')
        assert criteria.is_empty()

    def test_blank_location_is_unconstrained(self):
        assert parse_criteria('{"location": "  "}').location is None

    @pytest.mark.parametrize("raw", ["not json at all", '{"bedrooms": "two"}', "[1, 2, 3]", '{"maxPrice": '])
    def test_invalid_payload_raises(self, raw):
        with pytest.raises(InterpretationError):
            parse_criteria(raw)


class TestConfidence:
    def test_base(self):
        assert compute_confidence(SearchCriteria(), "anything") == pytest.approx(0.5)

    def test_field_bonuses(self):
        criteria = SearchCriteria(bedrooms=2, max_price=1500, location="downtown", pet_friendly=True, parking=True)
        assert compute_confidence(criteria, "2br downtown") == pytest.approx(1.0)

    def test_partial_bonuses(self):
        criteria = SearchCriteria(bedrooms=1, parking=True)
        assert compute_confidence(criteria, "1br with parking") == pytest.approx(0.65)

    def test_quality_adjective_bonus(self):
        assert compute_confidence(SearchCriteria(), "a Spacious place") == pytest.approx(0.6)

    def test_clamped(self):
        criteria = SearchCriteria(bedrooms=2, max_price=1500, location="downtown", pet_friendly=True, parking=True)
        assert compute_confidence(criteria, "luxury modern spacious") == 1.0
