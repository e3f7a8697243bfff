from dataclasses import dataclass
from typing import Optional
import logging

from ..schemas.enrichment import (
    AIAnalysisResult,
    BusinessImpact,
    EffortEstimate,
    PriorityResponse,
    PriorityScore,
    clamp,
)
from ..services.llm_provider import LLMProvider
from .base_agent import BaseAgent, StageResult

logger = logging.getLogger(__name__)

# Weights of the locally computed overall priority
BUSINESS_WEIGHT = 0.4
USER_DEMAND_WEIGHT = 0.25
STRATEGIC_WEIGHT = 0.2
FEASIBILITY_WEIGHT = 0.15

USER_PRIORITY_SCORES = {"low": 3, "medium": 5, "high": 7, "critical": 9}

HOURS_PER_COMPLEXITY_POINT = 8
FALLBACK_IMPACT_SCORE = 5

FALLBACK_SUGGESTION = "Consider providing more specific details about the expected behavior"


@dataclass(frozen=True)
class RequestBrief:
    """The request fields the prompts are built from"""

    title: str
    description: str
    app_context: Optional[str] = None
    user_priority: str = "medium"
    submitter_role: str = "external"


def fallback_analysis() -> AIAnalysisResult:
    return AIAnalysisResult(
        category="enhancement",
        complexity=3,
        clarity_score=5,
        sentiment="neutral",
        keywords=[],
        confidence=0.3,
        enhancement_suggestions=[FALLBACK_SUGGESTION]
    )


def weighted_priority(
    business_impact: float,
    user_demand: float,
    strategic_alignment: float,
    implementation_feasibility: float,
    demand_factor: float = 1.0
) -> PriorityScore:
    """Recompute overall priority from its components; user demand is scaled first"""
    adjusted_demand = clamp(min(user_demand * demand_factor, 10), 1, 10)

    overall = (
        business_impact * BUSINESS_WEIGHT +
        adjusted_demand * USER_DEMAND_WEIGHT +
        strategic_alignment * STRATEGIC_WEIGHT +
        implementation_feasibility * FEASIBILITY_WEIGHT
    )

    return PriorityScore(
        overall=clamp(overall, 1, 10),
        business_impact=business_impact,
        user_demand=adjusted_demand,
        strategic_alignment=strategic_alignment,
        implementation_feasibility=implementation_feasibility
    )


def fallback_priority(user_priority: str, complexity: int, demand_factor: float = 1.0) -> PriorityScore:
    base = USER_PRIORITY_SCORES.get(user_priority, 5)
    return PriorityScore(
        overall=base,
        business_impact=base,
        user_demand=min(base * demand_factor, 10),
        strategic_alignment=base,
        implementation_feasibility=max(10 - complexity, 1)
    )


def fallback_effort(complexity: int) -> EffortEstimate:
    base_hours = complexity * HOURS_PER_COMPLEXITY_POINT
    return EffortEstimate(
        total_hours=base_hours,
        frontend_hours=int(base_hours * 0.4),
        backend_hours=int(base_hours * 0.4),
        design_hours=int(base_hours * 0.1),
        qa_hours=int(base_hours * 0.1),
        risk_factors=["Complexity may be higher than estimated"],
        dependencies=["Requirements clarification needed"],
        team_members=["Frontend Developer", "Backend Developer"]
    )


def fallback_business_impact() -> BusinessImpact:
    return BusinessImpact(
        retention_impact=FALLBACK_IMPACT_SCORE,
        revenue_impact=FALLBACK_IMPACT_SCORE,
        competitive_advantage=FALLBACK_IMPACT_SCORE,
        ux_improvement=FALLBACK_IMPACT_SCORE,
        operational_efficiency=FALLBACK_IMPACT_SCORE
    )


class EnrichmentAgent(BaseAgent):
    """Agent responsible for categorizing, scoring and sizing feature requests"""

    def __init__(self, llm: LLMProvider):
        super().__init__(llm)

    def get_agent_prompt(self) -> str:
        return """You are a product analyst triaging feature requests for a software team.

Be objective and concise. Always answer with a single valid JSON object that
matches the structure you are given, with no commentary before or after it."""

    async def categorize(self, brief: RequestBrief) -> StageResult[AIAnalysisResult]:
        """Stage 1: category, complexity, clarity, sentiment, keywords, confidence"""

        prompt = f"""
Analyze this feature request and provide a JSON response with the following structure:

{{
  "category": "enhancement|bug-fix|new-feature|ui-ux|performance|integration",
  "complexity": 1-5,
  "clarityScore": 1-10,
  "sentiment": "frustrated|neutral|excited",
  "keywords": ["keyword1", "keyword2"],
  "confidence": 0.0-1.0,
  "enhancementSuggestions": ["suggestion1", "suggestion2"]
}}

Feature Request:
Title: {brief.title}
Description: {brief.description}
App Context: {brief.app_context or 'General application'}

Analysis Guidelines:
- Category: Classify the type of request
- Complexity: Technical implementation difficulty (1=very simple, 5=very complex)
- Clarity Score: How well-defined the request is (1=very vague, 10=crystal clear)
- Sentiment: User's emotional tone
- Keywords: Key technical terms and concepts
- Confidence: How confident you are in this analysis
- Enhancement Suggestions: Ways to improve or clarify the request

Respond with valid JSON only.
"""

        return await self.run_stage(
            stage="categorize",
            prompt=prompt,
            schema=AIAnalysisResult,
            fallback=fallback_analysis
        )

    async def calculate_priority(
        self,
        brief: RequestBrief,
        analysis: AIAnalysisResult,
        demand_factor: float = 1.0
    ) -> StageResult[PriorityScore]:
        """Stage 2: priority components; overall is recomputed locally"""

        prompt = f"""
Calculate priority scores for this feature request. Return JSON with this structure:

{{
  "businessImpact": 1-10,
  "userDemand": 1-10,
  "strategicAlignment": 1-10,
  "implementationFeasibility": 1-10,
  "overall": 1-10
}}

Feature Request Analysis:
- Title: {brief.title}
- Description: {brief.description}
- Category: {analysis.category}
- Complexity: {analysis.complexity}/5
- User Priority: {brief.user_priority}
- User Role: {brief.submitter_role}
- Sentiment: {analysis.sentiment}
- Clarity: {analysis.clarity_score}/10

Scoring Guidelines:
- Business Impact: Revenue, retention, competitive advantage potential
- User Demand: How many users would benefit (factor in user role importance)
- Strategic Alignment: Fits with product roadmap and company goals
- Implementation Feasibility: Considering complexity and resources
- Overall: Weighted combination of above factors

Respond with valid JSON only.
"""

        def to_score(scores: PriorityResponse) -> PriorityScore:
            return weighted_priority(
                scores.business_impact,
                scores.user_demand,
                scores.strategic_alignment,
                scores.implementation_feasibility,
                demand_factor
            )

        return await self.run_stage(
            stage="priority",
            prompt=prompt,
            schema=PriorityResponse,
            fallback=lambda: fallback_priority(brief.user_priority, analysis.complexity, demand_factor),
            transform=to_score
        )

    async def estimate_effort(
        self,
        brief: RequestBrief,
        analysis: AIAnalysisResult
    ) -> StageResult[EffortEstimate]:
        """Stage 3: hour breakdown, risks, dependencies, roles"""

        prompt = f"""
Estimate development effort for this feature request. Return JSON with this structure:

{{
  "totalHours": number,
  "frontendHours": number,
  "backendHours": number,
  "designHours": number,
  "qaHours": number,
  "riskFactors": ["risk1", "risk2"],
  "dependencies": ["dependency1", "dependency2"],
  "teamMembers": ["Frontend Developer", "Backend Developer"]
}}

Feature Analysis:
- Title: {brief.title}
- Description: {brief.description}
- Category: {analysis.category}
- Complexity: {analysis.complexity}/5

Estimation Guidelines:
- Consider all phases: design, development, testing, deployment
- Factor in complexity and category type
- Identify potential risks and blockers
- List required team members and skills
- Include time for code review and documentation

Respond with valid JSON only.
"""

        return await self.run_stage(
            stage="effort",
            prompt=prompt,
            schema=EffortEstimate,
            fallback=lambda: fallback_effort(analysis.complexity)
        )

    async def assess_business_impact(
        self,
        brief: RequestBrief,
        analysis: AIAnalysisResult
    ) -> StageResult[BusinessImpact]:
        """Stage 4: five 1-10 impact dimensions"""

        prompt = f"""
Assess business impact for this feature request. Return JSON with this structure:

{{
  "retentionImpact": 1-10,
  "revenueImpact": 1-10,
  "competitiveAdvantage": 1-10,
  "uxImprovement": 1-10,
  "operationalEfficiency": 1-10
}}

Feature Details:
- Title: {brief.title}
- Description: {brief.description}
- Category: {analysis.category}
- User Role: {brief.submitter_role}
- Sentiment: {analysis.sentiment}

Assessment Guidelines:
- Retention Impact: How likely this keeps users engaged
- Revenue Impact: Potential to drive revenue growth
- Competitive Advantage: Market differentiation value
- UX Improvement: User experience enhancement
- Operational Efficiency: Internal process improvements

Respond with valid JSON only.
"""

        return await self.run_stage(
            stage="impact",
            prompt=prompt,
            schema=BusinessImpact,
            fallback=fallback_business_impact
        )
