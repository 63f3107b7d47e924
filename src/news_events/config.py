"""Configuration helpers for the event pipeline."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    data_path: str = Field(
        "data/news_events.json",
        alias="DATA_PATH",
        description="JSON file backing the event store.",
    )

    group_hours_window: int = Field(
        48,
        alias="GROUP_HOURS_WINDOW",
        description="Hours an event stays open and the max distance between an item and an event.",
    )
    group_similarity_threshold: float = Field(
        0.42,
        alias="GROUP_SIMILARITY_THRESHOLD",
        description="Minimum title overlap for an item to join an existing event.",
    )
    group_max_items: int = Field(
        200, alias="GROUP_MAX_ITEMS", description="Most recent items considered per run."
    )
    group_max_open_events: int = Field(
        120,
        alias="GROUP_MAX_OPEN_EVENTS",
        description="Most recently updated open events loaded per run.",
    )
    group_sample_size: int = Field(
        6,
        alias="GROUP_SAMPLE_SIZE",
        description="Recently attached items compared per open event.",
    )

    ollama_base_url: str = Field("http://localhost:11434", alias="OLLAMA_BASE_URL")
    # Smaller default model for local laptops.
    ollama_model: str = Field("llama3.2:latest", alias="OLLAMA_MODEL")
    ollama_timeout_ms: int = Field(60_000, alias="OLLAMA_TIMEOUT_MS")
    ollama_num_ctx: int = Field(1024, alias="OLLAMA_NUM_CTX")
    ollama_num_predict: int = Field(350, alias="OLLAMA_NUM_PREDICT")
    ollama_temperature: float = Field(0.2, alias="OLLAMA_TEMPERATURE")
    ollama_top_p: float = Field(0.9, alias="OLLAMA_TOP_P")

    groq_api_key: str | None = Field(None, alias="GROQ_API_KEY")
    groq_base_url: str = Field("https://api.groq.com/openai/v1", alias="GROQ_BASE_URL")
    groq_model: str = Field("llama-3.3-70b-versatile", alias="GROQ_MODEL")
    groq_timeout_ms: int = Field(30_000, alias="GROQ_TIMEOUT_MS")

    ai_disabled: bool = Field(
        False,
        alias="AI_DISABLED",
        description="Refuse summary generation when set (AI_DISABLED=1).",
    )
    ai_max_event_items: int = Field(
        12,
        alias="AI_MAX_EVENT_ITEMS",
        description="Most recently linked items sent to the summarizer; 0 sends all.",
    )
    ai_max_headline_chars: int = Field(180, alias="AI_MAX_HEADLINE_CHARS")
    ai_max_excerpt_chars: int = Field(220, alias="AI_MAX_EXCERPT_CHARS")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(
        False, alias="LOG_JSON", description="Render log lines as JSON instead of console text."
    )


def get_settings() -> Settings:
    """Return a fresh settings instance (re-reads the environment)."""
    return Settings()
