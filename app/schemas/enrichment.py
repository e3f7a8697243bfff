"""Typed enrichment records.

The ``*Response`` models describe what the model is asked to return and are
used by the strict decoder; the stored records are what gets merged into a
feature request. Numeric fields are clamped into their documented ranges.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


class Category(str, Enum):
    ENHANCEMENT = "enhancement"
    BUG_FIX = "bug-fix"
    NEW_FEATURE = "new-feature"
    UI_UX = "ui-ux"
    PERFORMANCE = "performance"
    INTEGRATION = "integration"


class Sentiment(str, Enum):
    FRUSTRATED = "frustrated"
    NEUTRAL = "neutral"
    EXCITED = "excited"


class UserPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ModelRecord(BaseModel):
    """Accepts both the camelCase keys the model is prompted with and snake_case"""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, allow_inf_nan=False)


def _normalise_label(value):
    if isinstance(value, str):
        return value.strip().lower().replace("_", "-").replace(" ", "-")
    return value


def _as_number(value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"expected a number, got {type(value).__name__}")
    return float(value)


class AIAnalysisResult(ModelRecord):
    category: Category
    complexity: int = Field(ge=1, le=5)
    clarity_score: int = Field(alias="clarityScore", ge=1, le=10)
    sentiment: Sentiment
    keywords: List[str]
    confidence: float = Field(ge=0, le=1)
    enhancement_suggestions: List[str] = Field(alias="enhancementSuggestions")

    @field_validator("category", "sentiment", mode="before")
    @classmethod
    def normalise_labels(cls, v):
        return _normalise_label(v)

    @field_validator("complexity", mode="before")
    @classmethod
    def clamp_complexity(cls, v):
        return int(round(clamp(_as_number(v), 1, 5)))

    @field_validator("clarity_score", mode="before")
    @classmethod
    def clamp_clarity(cls, v):
        return int(round(clamp(_as_number(v), 1, 10)))

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v):
        return clamp(_as_number(v), 0, 1)


class PriorityResponse(ModelRecord):
    business_impact: float = Field(alias="businessImpact")
    user_demand: float = Field(alias="userDemand")
    strategic_alignment: float = Field(alias="strategicAlignment")
    implementation_feasibility: float = Field(alias="implementationFeasibility")
    # Requested from the model but recomputed locally
    overall: Optional[float] = None

    @field_validator(
        "business_impact", "user_demand", "strategic_alignment", "implementation_feasibility"
    )
    @classmethod
    def clamp_scores(cls, v: float) -> float:
        return clamp(v, 1, 10)


class PriorityScore(ModelRecord):
    overall: float
    business_impact: float = Field(alias="businessImpact")
    user_demand: float = Field(alias="userDemand")
    strategic_alignment: float = Field(alias="strategicAlignment")
    implementation_feasibility: float = Field(alias="implementationFeasibility")


class EffortEstimate(ModelRecord):
    total_hours: float = Field(alias="totalHours")
    frontend_hours: float = Field(alias="frontendHours")
    backend_hours: float = Field(alias="backendHours")
    design_hours: float = Field(alias="designHours")
    qa_hours: float = Field(alias="qaHours")
    risk_factors: List[str] = Field(alias="riskFactors")
    dependencies: List[str]
    team_members: List[str] = Field(alias="teamMembers")

    @field_validator("total_hours", "frontend_hours", "backend_hours", "design_hours", "qa_hours")
    @classmethod
    def non_negative(cls, v: float) -> float:
        return max(v, 0.0)


class BusinessImpact(ModelRecord):
    retention_impact: float = Field(alias="retentionImpact")
    revenue_impact: float = Field(alias="revenueImpact")
    competitive_advantage: float = Field(alias="competitiveAdvantage")
    ux_improvement: float = Field(alias="uxImprovement")
    operational_efficiency: float = Field(alias="operationalEfficiency")

    @field_validator(
        "retention_impact", "revenue_impact", "competitive_advantage",
        "ux_improvement", "operational_efficiency"
    )
    @classmethod
    def clamp_scores(cls, v: float) -> float:
        return clamp(v, 1, 10)


class ProductData(ModelRecord):
    product_name: str = Field(alias="productName", min_length=1)
    description: str = Field(min_length=1)
    image_url: str = Field(alias="imageUrl", min_length=1)
