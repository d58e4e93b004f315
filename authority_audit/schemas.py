import math
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class AnalyzeRequest(BaseModel):
    name: str = ""
    website: Optional[str] = None
    instagram: Optional[str] = None
    linkedin: Optional[str] = None


class ScoreWeights(BaseModel):
    model_config = ConfigDict(frozen=True)

    clarity: float
    credibility: float
    visibility: float

    @model_validator(mode="after")
    def check_total(self) -> "ScoreWeights":
        values = (self.clarity, self.credibility, self.visibility)
        if any(w < 0 for w in values):
            raise ValueError("Score weights must be non-negative.")
        if not math.isclose(sum(values), 1.0, abs_tol=1e-6):
            raise ValueError(f"Score weights must sum to 1.0, got {sum(values)}.")
        return self


WEIGHT_PROFILES = {
    "balanced": ScoreWeights(clarity=0.33, credibility=0.33, visibility=0.34),
    "authority": ScoreWeights(clarity=0.35, credibility=0.35, visibility=0.30),
}


class Badge(str, Enum):
    EXCEPTIONAL = "EXCEPTIONAL"
    STRONG = "STRONG"
    SOLID_FOUNDATION = "SOLID_FOUNDATION"
    NEEDS_REFINEMENT = "NEEDS_REFINEMENT"
    REQUIRES_ATTENTION = "REQUIRES_ATTENTION"


class ScoreReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    clarity: int
    credibility: int
    visibility: int
    overall: int
    badge: Badge
    interpretation: str
    summary: str
    actions: Tuple[str, ...]

    @field_validator("clarity", "credibility", "visibility", "overall")
    @classmethod
    def clamp_score(cls, v: int) -> int:
        return max(0, min(100, v))

    @field_validator("actions")
    @classmethod
    def require_actions(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        if not v:
            raise ValueError("A score report needs at least one action.")
        return v


class SiteSignals(BaseModel):
    title: str = ""
    description: str = ""
    has_testimonials: bool = False
    has_case_studies: bool = False
    has_about_section: bool = False
    has_contact_info: bool = False
    word_count: int = 0


class PageSnapshot(BaseModel):
    url: str
    html: str
    screenshot_base64: Optional[str] = None
    rendered: bool = False
