"""Matching configuration loaded from environment variables.

Thresholds are tunable per deployment without touching code, e.g.
``MATCHING_MIN_SCORE=0.6`` in the environment or the project's .env file.
"""

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

# Words that carry no signal when comparing a schedule program to a meeting topic:
# modalities, languages, generic course words and location codes.
DEFAULT_IRRELEVANT_WORDS: list[str] = [
    # Modalities
    "online", "presencial", "virtual", "hibrido", "remoto",
    # Languages
    "english", "ingles", "espanol", "aleman", "coreano", "chino", "ruso",
    "japones", "frances", "italiano", "mandarin",
    # Course words
    "nivelacion", "beginner", "electivo", "electiva", "electivos", "electivas",
    "leccion", "lecciones", "repaso", "crash", "complete", "revision",
    "evaluacion", "evaluaciones", "advanced", "keynote", "impact",
    # Organisation
    "bvp", "bvd", "bvs", "pia", "mod", "esp", "otg", "kids", "time", "zone",
    # Country codes
    "per", "ven", "arg", "uru",
]

# Points taken off the similarity score when a conflict rule fires. A full
# point disqualifies the candidate whatever its similarity.
DEFAULT_PENALTY_POINTS: dict[str, float] = {
    "CRITICAL_TOKEN_MISMATCH": 1.0,
    "LEVEL_CONFLICT": 1.0,
    "COMPANY_CONFLICT": 1.0,
    "GROUP_NUMBER_CONFLICT": 1.0,
    "NUMERIC_CONFLICT": 1.0,
    "PROGRAM_VS_PERSON": 0.5,
    "STRUCTURAL_TOKEN_MISSING": 0.3,
    "ORPHAN_NUMBER_WITH_SIBLINGS": 0.1,
    "ORPHAN_LEVEL_WITH_SIBLINGS": 0.1,
}


class MatchingConfig(BaseSettings):
    """Matcher and logging configuration loaded from environment variables.

    Settings are loaded from environment variables (prefix ``MATCHING_``) with
    sensible defaults. For local development, create a .env file in the project root.
    """

    # Scoring
    min_score: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Minimum similarity for a candidate to be considered at all",
    )
    tie_margin: float = Field(
        default=0.05,
        ge=0.0,
        le=1.0,
        description="Best score must beat the runner-up by more than this to be confident",
    )
    token_weight: float = Field(
        default=0.7,
        ge=0.0,
        description="Weight of program-token coverage in the final score",
    )
    fuzzy_weight: float = Field(
        default=0.3,
        ge=0.0,
        description="Weight of the edit-distance ratio in the final score",
    )
    irrelevant_words: list[str] = Field(
        default_factory=lambda: list(DEFAULT_IRRELEVANT_WORDS),
        description="Words removed from programs and topics before comparison",
    )
    penalty_points: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_PENALTY_POINTS),
        description="Points each conflict rule takes off a candidate's score",
    )

    # Host validation
    validate_hosts: bool = Field(
        default=False,
        description="Flag confident matches hosted by someone else as to_update",
    )
    host_min_similarity: float = Field(
        default=60.0,
        ge=0.0,
        le=100.0,
        description="Minimum fuzzy ratio for resolving an instructor to a host by name",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "MATCHING_",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator("penalty_points")
    @classmethod
    def _complete_penalty_points(cls, value: dict[str, float]) -> dict[str, float]:
        unknown = set(value) - set(DEFAULT_PENALTY_POINTS)
        if unknown:
            raise ValueError(f"unknown penalty rules: {sorted(unknown)}")
        if any(points < 0 for points in value.values()):
            raise ValueError("penalty points cannot be negative")
        # Rules left out keep their default points
        return {**DEFAULT_PENALTY_POINTS, **value}

    @model_validator(mode="after")
    def _check_weights(self) -> "MatchingConfig":
        if self.token_weight + self.fuzzy_weight <= 0:
            raise ValueError("token_weight and fuzzy_weight cannot both be 0")
        return self


# Singleton pattern
_config: MatchingConfig | None = None


def get_config() -> MatchingConfig:
    """Get the matching configuration singleton.

    Returns:
        MatchingConfig: Matching configuration instance
    """
    global _config
    if _config is None:
        _config = MatchingConfig()
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() re-reads the environment."""
    global _config
    _config = None
