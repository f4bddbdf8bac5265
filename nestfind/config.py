from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from nestfind import constants
from nestfind.embedder import EmbeddingConfig
from nestfind.logging import get_logger
from nestfind.search.ranker import RankingConfig

NESTFIND_DIR = Path.home() / ".nestfind"

_logger = get_logger(__name__)

# provider prefix -> Config attribute holding its key
PROVIDER_KEYS = {
    "gemini": "gemini_api_key",
    "openai": "openai_api_key",
    "anthropic": "anthropic_api_key",
}


def model_provider(model: str) -> str:
    if "/" in model:
        return model.split("/", 1)[0]
    if model.startswith("claude"):
        return "anthropic"
    if model.startswith("gemini"):
        return "gemini"
    return "openai"


class Config(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="NESTFIND_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_assignment=True,
        populate_by_name=True,
    )

    # API keys read from standard env vars via aliases
    gemini_api_key: str | None = Field(default=None, alias="GEMINI_API_KEY")
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    anthropic_api_key: str | None = Field(default=None, alias="ANTHROPIC_API_KEY")

    # Empty model disables the language service; interpretation goes local
    llm_model: str | None = "gemini/gemini-2.0-flash"
    embedding_model: str = "text-embedding-3-small"
    embedding_dim: int = 1536

    data_dir: Path = NESTFIND_DIR
    catalog_path: Path | None = None
    index_on_startup: bool = True

    retrieval_timeout: float = constants.RETRIEVAL_TIMEOUT
    interpretation_timeout: float = constants.INTERPRETATION_TIMEOUT
    ranking_timeout: float = constants.RANKING_TIMEOUT
    batch_timeout: float = constants.BATCH_TIMEOUT

    semantic_weight: float = constants.SEMANTIC_WEIGHT
    field_weight: float = constants.FIELD_WEIGHT
    expansion_threshold: int = constants.EXPANSION_THRESHOLD
    catalog_scan_threshold: int = constants.CATALOG_SCAN_THRESHOLD
    max_price_relax_factor: float = constants.MAX_PRICE_RELAX_FACTOR
    min_price_relax_factor: float = constants.MIN_PRICE_RELAX_FACTOR

    log_level: str = "INFO"

    @field_validator("llm_model", mode="before")
    @classmethod
    def _normalize_model(cls, v: str | None) -> str | None:
        if v in ("", "none"):
            return None
        return v

    @field_validator("semantic_weight", "field_weight")
    @classmethod
    def _validate_weight(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"weight must be within [0, 1], got {v}")
        return v

    @field_validator("retrieval_timeout", "interpretation_timeout", "ranking_timeout", "batch_timeout")
    @classmethod
    def _validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"timeout must be positive, got {v}")
        return v

    @field_validator("embedding_dim", "expansion_threshold", "catalog_scan_threshold")
    @classmethod
    def _validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be at least 1, got {v}")
        return v

    @model_validator(mode="after")
    def _warn_unconfigured(self) -> "Config":
        if not self.language_configured:
            _logger.info("Language service not configured, queries use the local parser")
        return self

    def api_key_for(self, model: str) -> str | None:
        key_attr = PROVIDER_KEYS.get(model_provider(model))
        return getattr(self, key_attr) if key_attr else None

    @property
    def language_configured(self) -> bool:
        return bool(self.llm_model and self.api_key_for(self.llm_model))

    @property
    def embedding(self) -> EmbeddingConfig:
        return EmbeddingConfig(
            model=self.embedding_model,
            dim=self.embedding_dim,
            api_key=self.api_key_for(self.embedding_model),
        )

    @property
    def ranking(self) -> RankingConfig:
        return RankingConfig(
            semantic_weight=self.semantic_weight,
            field_weight=self.field_weight,
            expansion_threshold=self.expansion_threshold,
            catalog_scan_threshold=self.catalog_scan_threshold,
            max_price_relax_factor=self.max_price_relax_factor,
            min_price_relax_factor=self.min_price_relax_factor,
        )

    @property
    def search_db_path(self) -> Path:
        return self.data_dir / "search.db"


def get_config() -> Config:
    return Config()
