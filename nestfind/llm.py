"""Language service client: litellm completion with retry and exponential backoff."""

import litellm
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential_jitter

from nestfind.errors import LanguageServiceError
from nestfind.logging import get_logger

_logger = get_logger(__name__)

MAX_ATTEMPTS = 3

_RETRYABLE_STATUS_CODES = {408, 409, 429}


def _is_retryable(exc: BaseException) -> bool:
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status in _RETRYABLE_STATUS_CODES or status >= 500
    msg = str(exc).lower()
    return "overloaded" in msg or "rate_limit" in msg


def _log_retry(retry_state) -> None:
    _logger.warning(
        "LLM call failed (attempt %d/%d), retrying: %s",
        retry_state.attempt_number,
        MAX_ATTEMPTS,
        retry_state.outcome.exception(),
    )


@retry(
    retry=retry_if_exception(_is_retryable),
    stop=stop_after_attempt(MAX_ATTEMPTS),
    wait=wait_exponential_jitter(initial=0.5, max=8, jitter=2),
    reraise=True,
    before_sleep=_log_retry,
)
async def acompletion(**kwargs):
    return await litellm.acompletion(**kwargs)


class LanguageService:
    def __init__(self, model: str, api_key: str | None = None, temperature: float = 0.1):
        self.model = model
        self.api_key = api_key
        self.temperature = temperature

    async def generate(self, prompt: str) -> str:
        try:
            response = await acompletion(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                api_key=self.api_key,
            )
        except Exception as e:
            raise LanguageServiceError(f"{self.model}: {e}") from e

        content = response.choices[0].message.content
        if not content:
            raise LanguageServiceError(f"{self.model}: empty response")
        return content
