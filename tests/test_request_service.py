"""
Tests for request storage, workflow, votes, comments and analytics
"""
import pytest

from app.services.request_service import RequestNotFoundError, RequestService, map_submitter_role
from app.services.workflow import InvalidTransitionError


async def submit(service, identity, title="Add dark mode", description="Dark theme toggle", **kwargs):
    return await service.submit_request(
        identity=identity,
        title=title,
        description=description,
        user_priority=kwargs.pop("user_priority", "medium"),
        app_id="test-app",
        app_name="Demo App",
        **kwargs
    )


@pytest.fixture
def service(db, settings, feed):
    return RequestService(db, settings, feed)


@pytest.mark.asyncio
async def test_submit_starts_analyzing_when_ai_enabled(service, tester):
    request = await submit(service, tester, tester_role="beta-tester", tags=["ui"])

    assert request.id
    assert request.status == "analyzing"
    assert request.collection == "artifacts/test-app/feature-requests"
    assert request.submitted_by == "tester-1"
    assert request.submitter_role == "community"
    assert request.votes == 0
    assert request.watchers == ["tester-1"]
    assert request.tags == ["ui"]
    assert request.ai_analysis is None


@pytest.mark.asyncio
async def test_submit_without_ai_starts_submitted(db, settings, tester):
    service = RequestService(db, settings.model_copy(update={"enable_ai_analysis": False}))

    request = await submit(service, tester)

    assert request.status == "submitted"


def test_role_mapping():
    assert map_submitter_role("business-user") == "enterprise"
    assert map_submitter_role("developer") == "internal"
    assert map_submitter_role(None) == "external"
    assert map_submitter_role("astronaut") == "external"


@pytest.mark.asyncio
async def test_list_requests_newest_first_with_filters(service, tester):
    first = await submit(service, tester, title="First")
    second = await submit(service, tester, title="Second")
    await service.finish_analysis(first.id, succeeded=True)

    assert [r.id for r in await service.list_requests()] == [second.id, first.id]
    assert [r.id for r in await service.list_requests(status="reviewed")] == [first.id]
    assert await service.list_requests(app_id="other-app") == []


@pytest.mark.asyncio
async def test_requests_are_scoped_to_app_collection(db, settings, service, tester):
    await submit(service, tester)
    other = RequestService(db, settings.model_copy(update={"app_id": "other-app"}))

    assert await other.list_requests() == []


@pytest.mark.asyncio
async def test_votes_never_drop_below_zero(service, tester):
    request = await submit(service, tester)

    request = await service.vote(request.id, increment=False)
    assert request.votes == 0

    await service.vote(request.id)
    request = await service.vote(request.id)
    assert request.votes == 2

    request = await service.vote(request.id, increment=False)
    assert request.votes == 1


@pytest.mark.asyncio
async def test_vote_on_missing_request(service):
    with pytest.raises(RequestNotFoundError):
        await service.vote("missing")


@pytest.mark.asyncio
async def test_status_transitions(service, tester):
    request = await submit(service, tester)

    request = await service.update_status(request.id, "reviewed")
    request = await service.update_status(request.id, "approved")
    request = await service.update_status(request.id, "in-progress")
    assert request.actual_completion is None

    request = await service.update_status(request.id, "completed")
    assert request.status == "completed"
    assert request.actual_completion is not None

    with pytest.raises(InvalidTransitionError):
        await service.update_status(request.id, "in-progress")


@pytest.mark.asyncio
async def test_backward_transition_rejected(service, tester):
    request = await submit(service, tester)
    await service.update_status(request.id, "approved")

    with pytest.raises(InvalidTransitionError):
        await service.update_status(request.id, "reviewed")


@pytest.mark.asyncio
async def test_same_status_is_a_noop(service, tester):
    request = await submit(service, tester)

    request = await service.update_status(request.id, "analyzing")

    assert request.status == "analyzing"


@pytest.mark.asyncio
async def test_finish_analysis_only_moves_pending_requests(service, tester):
    request = await submit(service, tester)
    await service.update_status(request.id, "approved")

    await service.finish_analysis(request.id, succeeded=True)

    request = await service.require_request(request.id)
    await service.db.refresh(request)
    assert request.status == "approved"


@pytest.mark.asyncio
async def test_finish_analysis_failure_returns_to_submitted(service, tester):
    request = await submit(service, tester)

    await service.finish_analysis(request.id, succeeded=False)

    request = await service.require_request(request.id)
    await service.db.refresh(request)
    assert request.status == "submitted"


@pytest.mark.asyncio
async def test_watch_and_unwatch(service, tester, guest):
    request = await submit(service, tester)

    request = await service.set_watching(request.id, guest.user_id, True)
    request = await service.set_watching(request.id, guest.user_id, True)
    assert request.watchers == ["tester-1", "guest"]

    request = await service.set_watching(request.id, "tester-1", False)
    assert request.watchers == ["guest"]


@pytest.mark.asyncio
async def test_internal_comments_are_operator_only(service, tester, manager):
    request = await submit(service, tester)

    public = await service.add_comment(request.id, tester, "Would love this", is_internal=True)
    internal = await service.add_comment(request.id, manager, "Planned for Q3", is_internal=True)

    assert not public.is_internal
    assert internal.is_internal
    assert [c.id for c in await service.list_comments(request.id)] == [public.id]
    assert len(await service.list_comments(request.id, include_internal=True)) == 2


@pytest.mark.asyncio
async def test_delete_request_removes_comments(service, tester, admin):
    request = await submit(service, tester)
    await service.add_comment(request.id, tester, "First!")

    await service.delete_request(request.id)

    assert await service.get_request(request.id) is None
    with pytest.raises(RequestNotFoundError):
        await service.list_comments(request.id)


@pytest.mark.asyncio
async def test_delete_request_removes_duplicate_links(service, tester):
    original = await submit(service, tester, title="Export to CSV please")
    copy = await submit(service, tester, title="CSV export")
    other = await submit(service, tester, title="Dark mode")
    await service.merge_fields(original.id, ai_analysis={"category": "enhancement", "duplicates": [copy.id, other.id]})
    await service.merge_fields(copy.id, ai_analysis={"category": "enhancement", "duplicates": [original.id]})

    await service.delete_request(copy.id)

    original = await service.require_request(original.id)
    assert original.ai_analysis["duplicates"] == [other.id]
    assert original.ai_analysis["category"] == "enhancement"


@pytest.mark.asyncio
async def test_link_duplicate_only_touches_analysed_requests(service, tester):
    analysed = await submit(service, tester, title="Export to CSV please")
    pending = await submit(service, tester, title="CSV export")
    await service.merge_fields(analysed.id, ai_analysis={"category": "enhancement", "duplicates": []})

    await service.link_duplicate(analysed.id, "new-1")
    await service.link_duplicate(analysed.id, "new-1")
    await service.link_duplicate(pending.id, "new-1")

    analysed = await service.require_request(analysed.id)
    pending = await service.require_request(pending.id)
    assert analysed.ai_analysis["duplicates"] == ["new-1"]
    assert pending.ai_analysis is None


@pytest.mark.asyncio
async def test_writes_notify_live_feed(service, feed, tester):
    async with feed.subscribe(service.collection) as queue:
        await submit(service, tester)

        assert queue.qsize() == 1


@pytest.mark.asyncio
async def test_analytics(service, tester):
    low = await submit(service, tester, title="Low")
    high = await submit(service, tester, title="High")
    await submit(service, tester, title="Unscored")

    await service.merge_fields(low.id, ai_analysis={"category": "ui-ux"}, priority_score={"overall": 3.0})
    await service.merge_fields(high.id, ai_analysis={"category": "performance"}, priority_score={"overall": 8.0})

    analytics = await service.get_analytics()

    assert analytics["total_requests"] == 3
    assert analytics["requests_by_category"] == {"ui-ux": 1, "performance": 1, "uncategorized": 1}
    assert analytics["requests_by_status"] == {"analyzing": 3}
    assert analytics["average_priority_score"] == pytest.approx(5.5)
    assert analytics["top_requested_features"][0].id == high.id
