import os
from functools import lru_cache

from pydantic import BaseModel, field_validator

from .schemas import WEIGHT_PROFILES, ScoreWeights

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


class Settings(BaseModel):
    """Runtime configuration, built once at startup and passed down explicitly."""

    anthropic_api_key: str = ""
    anthropic_model: str = "claude-3-haiku-20240307"
    anthropic_max_tokens: int = 1500
    anthropic_temperature: float = 0.7
    completion_timeout: float = 60.0  # seconds
    fetch_timeout_ms: int = 5000
    render_pages: bool = True
    fetch_social_profiles: bool = True
    score_weights: str = "authority"
    rate_limit_per_ip: str = "10/hour"
    cta_url: str = ""  # strategy-call booking link shown under the scorecard

    @field_validator("score_weights")
    @classmethod
    def known_profile(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in WEIGHT_PROFILES:
            raise ValueError(
                f"Unknown SCORE_WEIGHTS profile {v!r}; "
                f"expected one of {sorted(WEIGHT_PROFILES)}."
            )
        return v

    @property
    def weights(self) -> ScoreWeights:
        return WEIGHT_PROFILES[self.score_weights]

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            anthropic_api_key=(
                os.getenv("ANTHROPIC_API_KEY") or os.getenv("CLAUDE_API_KEY") or ""
            ),
            anthropic_model=os.getenv("ANTHROPIC_MODEL", "claude-3-haiku-20240307"),
            anthropic_max_tokens=int(os.getenv("ANTHROPIC_MAX_TOKENS", "1500")),
            anthropic_temperature=float(os.getenv("ANTHROPIC_TEMPERATURE", "0.7")),
            completion_timeout=float(os.getenv("COMPLETION_TIMEOUT", "60")),
            fetch_timeout_ms=int(os.getenv("FETCH_TIMEOUT_MS", "5000")),
            render_pages=_env_flag("RENDER_PAGES", True),
            fetch_social_profiles=_env_flag("FETCH_SOCIAL_PROFILES", True),
            score_weights=os.getenv("SCORE_WEIGHTS", "authority"),
            rate_limit_per_ip=os.getenv("RATE_LIMIT_PER_IP", "10/hour"),
            cta_url=os.getenv("CTA_URL", ""),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
