from collections.abc import Sequence
from dataclasses import dataclass

from nestfind import constants
from nestfind.errors import RankingError
from nestfind.logging import get_logger
from nestfind.models import Listing, ScoredListing, SearchCriteria
from nestfind.search.filter import field_score, matches

_logger = get_logger(__name__)


@dataclass(frozen=True)
class RankingConfig:
    semantic_weight: float = constants.SEMANTIC_WEIGHT
    field_weight: float = constants.FIELD_WEIGHT
    expansion_threshold: int = constants.EXPANSION_THRESHOLD
    catalog_scan_threshold: int = constants.CATALOG_SCAN_THRESHOLD
    max_price_relax_factor: float = constants.MAX_PRICE_RELAX_FACTOR
    min_price_relax_factor: float = constants.MIN_PRICE_RELAX_FACTOR
    catalog_scan_cap: int = constants.CATALOG_SCAN_CAP
    hybrid_cap: int = constants.HYBRID_RESULT_CAP
    plain_cap: int = constants.PLAIN_RESULT_CAP


class HybridRanker:
    """Orders listings by semantic similarity blended with structured agreement."""

    def __init__(self, listings: Sequence[Listing], config: RankingConfig | None = None):
        self.listings = listings
        self.config = config or RankingConfig()

    def hybrid_score(self, semantic: float, fields: float) -> float:
        return self.config.semantic_weight * semantic + self.config.field_weight * fields

    def relax(self, criteria: SearchCriteria) -> SearchCriteria:
        return criteria.relaxed(self.config.max_price_relax_factor, self.config.min_price_relax_factor)

    def search(self, criteria: SearchCriteria, cap: int | None = None) -> list[Listing]:
        """Plain catalog filter, no semantic scores, in catalog order."""
        cap = self.config.plain_cap if cap is None else cap
        try:
            results = [listing for listing in self.listings if matches(listing, criteria)]
        except Exception as e:
            raise RankingError(f"catalog filter failed: {e}") from e
        return results[:cap]

    def rank(self, criteria: SearchCriteria, candidates: Sequence[ScoredListing]) -> list[Listing]:
        try:
            return self._rank(criteria, candidates)
        except RankingError:
            raise
        except Exception as e:
            raise RankingError(f"hybrid ranking failed: {e}") from e

    def _rank(self, criteria: SearchCriteria, candidates: Sequence[ScoredListing]) -> list[Listing]:
        if not criteria.has_semantic_scores:
            criteria = criteria.with_semantic_scores({c.listing.id: c.score for c in candidates})

        pool = [c.listing for c in candidates]
        filtered = [listing for listing in pool if matches(listing, criteria)]

        if len(filtered) < self.config.expansion_threshold:
            _logger.info(
                "Only %d of %d candidates match, expanding with relaxed criteria",
                len(filtered),
                len(pool),
            )
            filtered = self._expand(criteria, pool)

        scored = [
            (listing, self.hybrid_score(criteria.semantic_score(listing.id), field_score(listing, criteria)))
            for listing in filtered
        ]
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return [listing for listing, _ in scored[: self.config.hybrid_cap]]

    def _expand(self, criteria: SearchCriteria, pool: list[Listing]) -> list[Listing]:
        relaxed = self.relax(criteria)
        results = [listing for listing in pool if matches(listing, relaxed)]

        if len(results) < self.config.catalog_scan_threshold:
            _logger.info("Relaxed candidates still sparse (%d), scanning full catalog", len(results))
            results = [listing for listing in self.listings if matches(listing, relaxed)]
            results = results[: self.config.catalog_scan_cap]

        return results
