"""
Tests for the staged enrichment pipeline
"""
import pytest

from app.services.enrichment_service import EnrichmentService
from app.services.request_service import RequestService

from conftest import ANALYSIS_REPLY, EFFORT_REPLY, IMPACT_REPLY, PRIORITY_REPLY, FakeLLM


async def submit(database, settings, identity, title, description=""):
    async with database.session() as db:
        return await RequestService(db, settings).submit_request(
            identity=identity,
            title=title,
            description=description,
            user_priority="high",
            app_id=settings.app_id,
            app_name="Demo App"
        )


async def load(database, settings, request_id):
    async with database.session() as db:
        return await RequestService(db, settings).require_request(request_id)


async def operations(database, settings, request_id):
    async with database.session() as db:
        return await RequestService(db, settings).list_ai_operations(request_id)


@pytest.mark.asyncio
async def test_full_enrichment(database, settings, feed, tester):
    request = await submit(database, settings, tester, "Add dark mode", "Dark theme toggle")
    llm = FakeLLM(ANALYSIS_REPLY, PRIORITY_REPLY, EFFORT_REPLY, IMPACT_REPLY)

    results = await EnrichmentService(database, llm, settings, feed).enrich_request(request.id)

    assert list(results) == ["categorize", "priority", "effort", "impact"]
    assert all(result.succeeded for result in results.values())

    stored = await load(database, settings, request.id)
    assert stored.status == "reviewed"
    assert stored.ai_analysis["category"] == "ui-ux"
    assert stored.ai_analysis["duplicates"] == []
    assert "analyzed_at" in stored.ai_analysis
    assert stored.priority_score["overall"] == pytest.approx(6.75)
    assert "calculated_at" in stored.priority_score
    assert stored.effort_estimate["total_hours"] == 24
    assert stored.business_impact["ux_improvement"] == 9

    logged = await operations(database, settings, request.id)
    assert [op.operation_type for op in logged] == ["categorize", "priority", "effort", "impact"]
    assert all(op.succeeded and op.tokens_used == 42 for op in logged)


@pytest.mark.asyncio
async def test_outage_stores_fallbacks_and_returns_to_submitted(database, settings, tester):
    request = await submit(database, settings, tester, "Add dark mode")

    results = await EnrichmentService(database, FakeLLM(), settings).enrich_request(request.id)

    assert all(result.used_fallback for result in results.values())

    stored = await load(database, settings, request.id)
    assert stored.status == "submitted"
    assert stored.ai_analysis["category"] == "enhancement"
    assert stored.ai_analysis["complexity"] == 3
    assert stored.ai_analysis["clarity_score"] == 5
    assert stored.ai_analysis["sentiment"] == "neutral"
    assert stored.ai_analysis["confidence"] == 0.3
    assert stored.priority_score["overall"] == 7
    assert stored.effort_estimate["total_hours"] == 24
    assert stored.business_impact["revenue_impact"] == 5

    logged = await operations(database, settings, request.id)
    assert len(logged) == 4
    assert all(op.used_fallback and op.error_message for op in logged)


@pytest.mark.asyncio
async def test_partial_failure_keeps_earlier_stages(database, settings, tester):
    request = await submit(database, settings, tester, "Add dark mode")
    # Categorize and priority succeed, effort gets garbage, impact times out
    llm = FakeLLM(ANALYSIS_REPLY, PRIORITY_REPLY, "I think about two weeks?", TimeoutError("timed out"))

    results = await EnrichmentService(database, llm, settings).enrich_request(request.id)

    assert results["categorize"].succeeded
    assert results["priority"].succeeded
    assert results["effort"].used_fallback
    assert results["impact"].used_fallback

    stored = await load(database, settings, request.id)
    assert stored.status == "reviewed"
    assert stored.ai_analysis["category"] == "ui-ux"
    # Fallback effort is sized from the successful analysis (complexity 2)
    assert stored.effort_estimate["total_hours"] == 16


@pytest.mark.asyncio
async def test_demand_factor_scales_user_demand(database, settings, tester):
    request = await submit(database, settings, tester, "Add dark mode")
    llm = FakeLLM(ANALYSIS_REPLY, PRIORITY_REPLY, EFFORT_REPLY, IMPACT_REPLY)

    await EnrichmentService(database, llm, settings).enrich_request(request.id, demand_factor=2.0)

    stored = await load(database, settings, request.id)
    assert stored.priority_score["user_demand"] == 10


@pytest.mark.asyncio
async def test_duplicates_are_linked_both_ways(database, settings, tester):
    first = await submit(database, settings, tester, "Export to CSV please")
    await EnrichmentService(database, FakeLLM(), settings).enrich_request(first.id)

    second = await submit(database, settings, tester, "Please add CSV export")
    await EnrichmentService(database, FakeLLM(), settings).enrich_request(second.id)

    assert (await load(database, settings, second.id)).ai_analysis["duplicates"] == [first.id]
    assert (await load(database, settings, first.id)).ai_analysis["duplicates"] == [second.id]


@pytest.mark.asyncio
async def test_operator_decision_is_not_overwritten(database, settings, tester):
    request = await submit(database, settings, tester, "Add dark mode")
    async with database.session() as db:
        await RequestService(db, settings).update_status(request.id, "approved")

    await EnrichmentService(database, FakeLLM(ANALYSIS_REPLY), settings).enrich_request(request.id)

    assert (await load(database, settings, request.id)).status == "approved"


@pytest.mark.asyncio
async def test_missing_request_is_skipped(database, settings):
    llm = FakeLLM(ANALYSIS_REPLY)

    results = await EnrichmentService(database, llm, settings).enrich_request("missing")

    assert results == {}
    assert llm.prompts == []


@pytest.mark.asyncio
async def test_enrichment_never_raises_when_database_is_gone(settings, tester):
    from app.database import Database

    database = Database(settings)

    results = await EnrichmentService(database, FakeLLM(), settings).enrich_request("any")

    assert results == {}
