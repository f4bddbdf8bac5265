from nestfind.search.filter import field_score, matches
from nestfind.search.ranker import HybridRanker, RankingConfig
