from nestfind.constants import PROMPT_EXAMPLE_LISTINGS, PROMPT_SIMILAR_QUERIES
from nestfind.models import RetrievalContext

PARSE_QUERY_PROMPT = """Parse the following apartment search query into structured JSON format.

Query: "{query}"

Extract these fields if mentioned (use null for unspecified):
- minPrice: minimum rent price (integer)
- maxPrice: maximum rent price (integer)
- bedrooms: number of bedrooms (integer, use 0 for studio)
- bathrooms: number of bathrooms (integer)
- petFriendly: boolean if pets are mentioned
- parking: boolean if parking is mentioned
- location: area or neighborhood name (string)
- amenities: array of mentioned amenities (strings)
- proximity: proximity indicator like "near", "walking distance" (string)

Return ONLY valid JSON with no additional text. Example:
{{"maxPrice": 1800, "bedrooms": 2, "petFriendly": true, "location": "downtown"}}"""

CONTEXT_HEADER = "CONTEXT: Here are some similar apartments that might be relevant:"

PRICE_FLEXIBILITY = (
    'IMPORTANT: Be flexible with price ranges. If user says "under $2000" but similar apartments '
    "cost more, consider suggesting a slightly higher range like $2500."
)


def build_prompt(query: str, context: RetrievalContext | None = None) -> str:
    prompt = PARSE_QUERY_PROMPT.format(query=query)
    if context is None or not context.listings:
        return prompt

    lines = [prompt, "", CONTEXT_HEADER]
    for scored in context.listings[:PROMPT_EXAMPLE_LISTINGS]:
        listing = scored.listing
        lines.append(f"- {listing.title} (${listing.price}, {listing.bedrooms}BR in {listing.neighborhood})")

    if context.similar_queries:
        lines.extend(["", "Similar past queries:"])
        lines.extend(f'- "{q}"' for q in context.similar_queries[:PROMPT_SIMILAR_QUERIES])

    lines.extend(["", PRICE_FLEXIBILITY])
    return "\n".join(lines)
