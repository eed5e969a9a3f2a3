"""
Mapping configuration using Pydantic Settings
Reads from environment variables (MAPPING_ prefix) and .env file
"""
from functools import lru_cache
from typing import Dict

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Mapping pipeline settings from environment"""

    model_config = SettingsConfigDict(
        env_prefix="MAPPING_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=True)
    log_buffer_size: int = Field(default=1000, ge=1)

    # Cascade acceptance thresholds
    rag_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    pattern_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    account_match_confidence: float = Field(default=0.6, ge=0.0, le=1.0)

    # Account matcher
    description_match_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    description_weights: Dict[str, float] = Field(default_factory=lambda: {
        "pattern": 0.4,
        "similarity": 0.3,
        "sign": 0.2,
        "amount": 0.1,
    })

    # Learned patterns
    historical_confidence: float = Field(default=0.95, ge=0.0, le=1.0)
    vendor_confidence: float = Field(default=0.9, ge=0.0, le=1.0)
    fuzzy_description_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    fuzzy_confidence_factor: float = Field(default=0.85, ge=0.0, le=1.0)
    frequency_suggestions: int = Field(default=5, ge=0)

    # RAG sign-convention adjustment
    sign_boost: float = Field(default=1.2, gt=0.0)
    sign_penalty: float = Field(default=0.8, gt=0.0)

    # Feature extraction group weights
    feature_group_weights: Dict[str, float] = Field(default_factory=lambda: {
        "description": 0.35,
        "amount": 0.25,
        "vendor": 0.20,
        "date": 0.15,
        "transaction_type": 0.05,
    })

    # Keyword / ranking limits
    keyword_limit: int = Field(default=5, ge=1)
    similar_accounts_limit: int = Field(default=5, ge=1)

    # Monitoring
    metrics_enabled: bool = Field(default=True)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @field_validator("description_weights")
    @classmethod
    def validate_description_weights(cls, v):
        """All four description-score components must be present"""
        required = {"pattern", "similarity", "sign", "amount"}
        missing = required - set(v)
        if missing:
            raise ValueError(f"description_weights missing keys: {sorted(missing)}")
        return v

    @field_validator("feature_group_weights")
    @classmethod
    def validate_feature_group_weights(cls, v):
        """All five feature groups must be weighted"""
        required = {"description", "amount", "vendor", "date", "transaction_type"}
        missing = required - set(v)
        if missing:
            raise ValueError(f"feature_group_weights missing keys: {sorted(missing)}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
