# Stage timeouts (seconds)
RETRIEVAL_TIMEOUT = 10.0
INTERPRETATION_TIMEOUT = 10.0
RANKING_TIMEOUT = 10.0
BATCH_TIMEOUT = 60.0

# Retrieval
NEAREST_LISTINGS_LIMIT = 20
PAST_QUERIES_LIMIT = 3
PAST_QUERIES_MIN_SCORE = 0.7
EMBEDDING_TEXT_LIMIT = 8000

# Ranking
SEMANTIC_WEIGHT = 0.4
FIELD_WEIGHT = 0.6
EXPANSION_THRESHOLD = 5
CATALOG_SCAN_THRESHOLD = 3
MAX_PRICE_RELAX_FACTOR = 1.25
MIN_PRICE_RELAX_FACTOR = 0.75
CATALOG_SCAN_CAP = 80
HYBRID_RESULT_CAP = 50
PLAIN_RESULT_CAP = 60

# Interpretation
PROMPT_EXAMPLE_LISTINGS = 3
PROMPT_SIMILAR_QUERIES = 3
INTERPRETER_TEMPERATURE = 0.1

BASE_CONFIDENCE = 0.5
EMPTY_QUERY_CONFIDENCE = 1.0
UNCONFIGURED_CONFIDENCE = 0.5
SERVICE_FAILURE_CONFIDENCE = 0.3
PARSE_FAILURE_CONFIDENCE = 0.2
UNEXPECTED_FAILURE_CONFIDENCE = 0.1
RANKING_FAILURE_CONFIDENCE = 0.0

QUALITY_ADJECTIVES = ("luxury", "modern", "spacious")

# Indexing
INDEX_BATCH_SIZE = 10
INDEX_BATCH_DELAY = 0.5

# Observability
HIGH_RESULT_COUNT = 20
RECENT_SEARCHES_SIZE = 20

SAMPLE_PAST_QUERIES = (
    "pet friendly apartment with parking under 2000",
    "2 bedroom near downtown with gym",
    "studio apartment close to university",
    "luxury apartment with rooftop and concierge",
    "affordable housing near public transport",
    "family friendly with yard and good schools",
)
