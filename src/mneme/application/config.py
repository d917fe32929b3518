from pathlib import Path
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from mneme.domain.constants import (
    DEFAULT_DAILY_REVIEW_LIMIT,
    DEFAULT_DIFFICULTY_TOLERANCE,
    DEFAULT_ESCALATION_MODEL,
    DEFAULT_SESSION_SIZE,
    EASE_LOW_THRESHOLD,
    ESCALATION_MAX_SCORE,
    ESCALATION_MIN_SCORE,
    ESCALATION_PASS_SCORE,
    ESCALATION_TIMEOUT,
    KEYWORD_DEFAULT_RATIO,
    KEYWORD_FUZZY_THRESHOLD,
    MAX_AGAIN_REPEATS,
    SHORT_FUZZY_THRESHOLD,
)


def _config_files() -> list[Path]:
    return [
        Path.home() / ".config/mneme/config.toml",
        Path.home() / ".mneme.toml",
    ]


class AppConfig(BaseSettings):
    """
    Configuration model for mneme.
    Supports loading from:
    1. Environment variables (MNEME_*)
    2. Config file (~/.config/mneme/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="MNEME_",
        extra="ignore",
    )

    # Paths
    store_path: Path = Field(default_factory=lambda: Path.home() / ".config/mneme/store.yaml")
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".config/mneme/logs")

    # Session
    daily_review_limit: int = Field(default=DEFAULT_DAILY_REVIEW_LIMIT, ge=0)
    session_size: int = Field(default=DEFAULT_SESSION_SIZE, ge=1)
    ease_low_threshold: float = EASE_LOW_THRESHOLD
    max_again_repeats: int = Field(default=MAX_AGAIN_REPEATS, ge=0)
    adaptive_difficulty: bool = False
    difficulty_tolerance: int = Field(default=DEFAULT_DIFFICULTY_TOLERANCE, ge=0)

    # Grading
    short_fuzzy_threshold: float = Field(default=SHORT_FUZZY_THRESHOLD, ge=0.0, le=1.0)
    keyword_fuzzy_threshold: float = Field(default=KEYWORD_FUZZY_THRESHOLD, ge=0.0, le=1.0)
    keyword_default_ratio: float = Field(default=KEYWORD_DEFAULT_RATIO, gt=0.0, le=1.0)

    # Essay escalation (disabled unless a URL is set)
    escalation_url: str | None = None
    escalation_api_key: str | None = None
    escalation_model: str = DEFAULT_ESCALATION_MODEL
    escalation_timeout: float = ESCALATION_TIMEOUT
    escalation_min_score: float = Field(default=ESCALATION_MIN_SCORE, ge=0.0, le=1.0)
    escalation_max_score: float = Field(default=ESCALATION_MAX_SCORE, ge=0.0, le=1.0)
    escalation_pass_score: float = Field(default=ESCALATION_PASS_SCORE, ge=0.0, le=1.0)

    # 0: warnings, 1: info, 2+: debug
    verbose: int = Field(default=0, ge=0)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # First existing file wins
        toml_file = next((f for f in _config_files() if f.exists()), None)

        # Earlier sources take priority: CLI overrides, then env, then file
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (
            init_settings,
            env_settings,
        )

    @field_validator("store_path", "log_dir", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Path:
        return Path(v).expanduser()

    @model_validator(mode="after")
    def check_escalation_band(self) -> "AppConfig":
        if self.escalation_min_score > self.escalation_max_score:
            raise ValueError("escalation_min_score must not exceed escalation_max_score")
        return self

    @property
    def escalation_enabled(self) -> bool:
        return bool(self.escalation_url)


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/mneme/config.toml (if exists)
    3. Environment variables (MNEME_*)
    4. cli_overrides (passed from Typer)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
