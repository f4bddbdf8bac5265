from nestfind.query.fallback import parse_locally
from nestfind.query.interpreter import QueryInterpreter
from nestfind.query.parsing import compute_confidence, extract_json, parse_criteria
