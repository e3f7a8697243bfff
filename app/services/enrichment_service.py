from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..agents.base_agent import StageResult
from ..agents.enrichment_agent import EnrichmentAgent, RequestBrief
from ..config import Settings
from ..database import Database
from ..models.ai_operation import AIOperation
from ..models.base import utcnow
from ..services.duplicate_detector import detect_duplicates
from ..services.live_feed import LiveFeedHub
from ..services.llm_provider import LLMProvider
from ..services.request_service import RequestService
from ..utils.logging import get_logger

logger = get_logger(__name__)


class EnrichmentService:
    """
    Runs the enrichment pipeline for one feature request.

    Stages run strictly in order (categorize, priority, effort, impact) and
    each result is merged into the stored request as soon as it is known, so
    progress survives a later failure. Failed stages contribute their
    documented fallback. Nothing raises past ``enrich_request``.
    """

    def __init__(
        self,
        database: Database,
        llm: LLMProvider,
        settings: Settings,
        feed: Optional[LiveFeedHub] = None
    ):
        self.database = database
        self.llm = llm
        self.settings = settings
        self.feed = feed

    async def enrich_request(
        self,
        request_id: str,
        demand_factor: Optional[float] = None
    ) -> Dict[str, StageResult]:
        """Run all stages; returns the per-stage results that were produced"""

        demand_factor = demand_factor or self.settings.user_demand_factor
        results: Dict[str, StageResult] = {}

        logger.info(f"Running AI analysis for request {request_id}")

        try:
            async with self.database.session() as db:
                await self._run_stages(db, request_id, demand_factor, results)
        except Exception as e:
            logger.exception(f"AI analysis for request {request_id} aborted: {str(e)}")

        return results

    async def _run_stages(
        self,
        db: AsyncSession,
        request_id: str,
        demand_factor: float,
        results: Dict[str, StageResult]
    ) -> None:
        requests = RequestService(db, self.settings, self.feed)
        request = await requests.get_request(request_id)
        if request is None:
            logger.warning(f"Request {request_id} not found, skipping AI analysis")
            return

        brief = RequestBrief(
            title=request.title,
            description=request.description or "",
            app_context=request.app_name,
            user_priority=request.user_priority,
            submitter_role=request.submitter_role
        )
        agent = EnrichmentAgent(self.llm)

        # Stage 1: categorization plus local duplicate detection
        analysis = await agent.categorize(brief)
        results[analysis.stage] = analysis

        duplicates = await self._find_duplicates(requests, request_id, brief)
        await self._apply(db, requests, request_id, analysis, "ai_analysis", {
            **analysis.value.model_dump(mode="json"),
            "duplicates": duplicates,
            "analyzed_at": utcnow().isoformat()
        })
        await self._finish_analysis(db, requests, request_id, analysis.succeeded)

        for duplicate_id in duplicates:
            try:
                await requests.link_duplicate(duplicate_id, request_id)
            except Exception as e:
                logger.error(f"Failed to link duplicate {duplicate_id} -> {request_id}: {str(e)}")
                await db.rollback()

        # Stage 2: priority
        priority = await agent.calculate_priority(brief, analysis.value, demand_factor)
        results[priority.stage] = priority
        await self._apply(db, requests, request_id, priority, "priority_score", {
            **priority.value.model_dump(mode="json"),
            "calculated_at": utcnow().isoformat()
        })

        # Stage 3: effort
        effort = await agent.estimate_effort(brief, analysis.value)
        results[effort.stage] = effort
        await self._apply(db, requests, request_id, effort, "effort_estimate", {
            **effort.value.model_dump(mode="json"),
            "estimated_at": utcnow().isoformat()
        })

        # Stage 4: business impact
        impact = await agent.assess_business_impact(brief, analysis.value)
        results[impact.stage] = impact
        await self._apply(db, requests, request_id, impact, "business_impact", {
            **impact.value.model_dump(mode="json"),
            "assessed_at": utcnow().isoformat()
        })

        fallbacks = [stage for stage, result in results.items() if result.used_fallback]
        if fallbacks:
            logger.warning(f"AI analysis for request {request_id} used fallbacks for: {', '.join(fallbacks)}")
        else:
            logger.info(f"AI analysis completed for request {request_id}")

    async def _find_duplicates(self, requests: RequestService, request_id: str, brief: RequestBrief) -> list:
        try:
            candidates = await requests.duplicate_candidates(request_id)
        except Exception as e:
            logger.error(f"Duplicate detection failed for request {request_id}: {str(e)}")
            return []
        return detect_duplicates(brief.title, brief.description, candidates)

    async def _apply(
        self,
        db: AsyncSession,
        requests: RequestService,
        request_id: str,
        result: StageResult,
        field: str,
        record: Dict[str, Any]
    ) -> None:
        """Merge one stage's record and log the AI operation; persistence errors are absorbed"""
        try:
            await requests.merge_fields(request_id, **{field: record})
        except Exception as e:
            logger.error(f"Failed to store {result.stage} result for request {request_id}: {str(e)}")
            await db.rollback()

        await self._log_ai_operation(db, request_id, result)

    async def _finish_analysis(
        self,
        db: AsyncSession,
        requests: RequestService,
        request_id: str,
        succeeded: bool
    ) -> None:
        try:
            await requests.finish_analysis(request_id, succeeded)
        except Exception as e:
            logger.error(f"Failed to update status for request {request_id}: {str(e)}")
            await db.rollback()

    async def _log_ai_operation(self, db: AsyncSession, request_id: str, result: StageResult) -> None:
        """Log AI operation for monitoring and improvement"""
        if result.used_fallback:
            logger.warning(
                f"AI Operation: stage={result.stage} request={request_id} used fallback: {result.error}"
            )
        else:
            logger.info(
                f"AI Operation: stage={result.stage} request={request_id} "
                f"tokens={result.tokens_used} duration={result.duration_seconds:.2f}s"
            )

        try:
            db.add(AIOperation.from_stage(result, request_id))
            await db.commit()
        except Exception as e:
            logger.error(f"Failed to record AI operation for request {request_id}: {str(e)}")
            await db.rollback()
