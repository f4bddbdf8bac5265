import time


def truncate(value: str, max_len: int) -> str:
    if len(value) <= max_len:
        return value
    return value[: max_len - 3] + "..."


def normalize_query(text: str) -> str:
    """Lower-cased, single-spaced form used to recognise repeated queries."""
    return " ".join(text.lower().split())


def ms_now() -> int:
    return time.monotonic_ns() // 1_000_000


def ms_since(start_ms: int) -> int:
    return max(0, ms_now() - start_ms)
