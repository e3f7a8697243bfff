"""
Feature Request API Endpoints

Submission, workflow, votes, comments, analytics and the live request feed
"""
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, WebSocket
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field

from ...core.auth import (
    AuthenticatedUser,
    Identity,
    decode_identity,
    get_current_admin,
    get_current_identity,
    get_current_operator,
)
from ...core.collections import feature_requests_path
from ...schemas.enrichment import UserPriority
from ...services.enrichment_service import EnrichmentService
from ...services.request_service import RequestNotFoundError, RequestService
from ...services.workflow import InvalidTransitionError, RequestStatus
from ..deps import get_enrichment_service, get_request_service
from ..live import stream_collection

router = APIRouter()


class TesterInfo(BaseModel):
    name: str
    email: Optional[str] = None
    role: str = "other"  # end-user, beta-tester, business-user, admin, developer, other


class RequestCreate(BaseModel):
    """Submit a feature request"""
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=5000)
    user_priority: UserPriority = UserPriority.MEDIUM
    app_id: str = Field(..., min_length=1)
    app_name: str = Field(..., min_length=1)
    tags: List[str] = Field(default_factory=list)
    tester_info: Optional[TesterInfo] = None


class StatusUpdate(BaseModel):
    status: RequestStatus


class VoteRequest(BaseModel):
    increment: bool = True


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)
    is_internal: bool = False


class RequestResponse(BaseModel):
    """Feature request with whichever enrichment records exist so far"""
    id: str
    title: str
    description: str
    status: str
    user_priority: str
    submitted_by: str
    submitter_name: Optional[str]
    submitter_role: str
    app_id: str
    app_name: str
    votes: int
    watchers: List[str]
    tags: List[str]
    assigned_to: Optional[str] = None
    target_release: Optional[str] = None
    actual_completion: Optional[datetime] = None
    ai_analysis: Optional[dict] = None
    priority_score: Optional[dict] = None
    effort_estimate: Optional[dict] = None
    business_impact: Optional[dict] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CommentResponse(BaseModel):
    id: str
    request_id: str
    user_id: str
    user_name: str
    user_role: str
    content: str
    is_internal: bool
    created_at: datetime

    class Config:
        from_attributes = True


class AIOperationResponse(BaseModel):
    id: str
    operation_type: str
    provider: Optional[str]
    model_used: Optional[str]
    succeeded: bool
    used_fallback: bool
    error_message: Optional[str]
    tokens_used: Optional[int]
    duration_seconds: Optional[float]
    created_at: datetime

    class Config:
        from_attributes = True


class AnalyticsResponse(BaseModel):
    total_requests: int
    requests_by_category: dict
    requests_by_status: dict
    average_priority_score: float
    top_requested_features: List[RequestResponse]


def _not_found(e: RequestNotFoundError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(e))


@router.post("", response_model=RequestResponse, status_code=201)
async def submit_request(
    payload: RequestCreate,
    background_tasks: BackgroundTasks,
    identity: Identity = Depends(get_current_identity),
    service: RequestService = Depends(get_request_service),
    enrichment: EnrichmentService = Depends(get_enrichment_service)
):
    """
    Submit a feature request.

    The request is stored immediately; AI analysis runs afterwards in the
    background and fills in the enrichment records stage by stage.
    """
    tester = payload.tester_info

    request = await service.submit_request(
        identity=identity,
        title=payload.title,
        description=payload.description,
        user_priority=payload.user_priority.value,
        app_id=payload.app_id,
        app_name=payload.app_name,
        tester_name=tester.name if tester else None,
        tester_email=tester.email if tester else None,
        tester_role=tester.role if tester else None,
        tags=payload.tags
    )

    if service.settings.enable_ai_analysis:
        background_tasks.add_task(enrichment.enrich_request, request.id)

    return request


@router.get("", response_model=List[RequestResponse])
async def list_requests(
    status: Optional[RequestStatus] = None,
    app_id: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
    identity: Identity = Depends(get_current_identity),
    service: RequestService = Depends(get_request_service)
):
    """List feature requests, newest first"""

    return await service.list_requests(
        status=status.value if status else None,
        app_id=app_id,
        limit=limit,
        offset=offset
    )


@router.get("/analytics", response_model=AnalyticsResponse)
async def get_analytics(
    identity: Identity = Depends(get_current_identity),
    service: RequestService = Depends(get_request_service)
):
    """Totals by category and status, average priority and the top requests"""

    return await service.get_analytics()


@router.get("/{request_id}", response_model=RequestResponse)
async def get_request(
    request_id: str,
    identity: Identity = Depends(get_current_identity),
    service: RequestService = Depends(get_request_service)
):
    """Get a specific feature request by ID"""

    request = await service.get_request(request_id)
    if not request:
        raise HTTPException(status_code=404, detail="Feature request not found")
    return request


@router.put("/{request_id}/status", response_model=RequestResponse)
async def update_status(
    request_id: str,
    payload: StatusUpdate,
    operator: AuthenticatedUser = Depends(get_current_operator),
    service: RequestService = Depends(get_request_service)
):
    """Move a request along the workflow (operators only)"""

    try:
        return await service.update_status(request_id, payload.status.value)
    except RequestNotFoundError as e:
        raise _not_found(e)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/{request_id}/vote", response_model=RequestResponse)
async def vote_on_request(
    request_id: str,
    payload: VoteRequest,
    identity: Identity = Depends(get_current_identity),
    service: RequestService = Depends(get_request_service)
):
    """Up- or down-vote a request"""

    try:
        return await service.vote(request_id, payload.increment)
    except RequestNotFoundError as e:
        raise _not_found(e)


@router.put("/{request_id}/watch", response_model=RequestResponse)
async def watch_request(
    request_id: str,
    identity: Identity = Depends(get_current_identity),
    service: RequestService = Depends(get_request_service)
):
    try:
        return await service.set_watching(request_id, identity.user_id, True)
    except RequestNotFoundError as e:
        raise _not_found(e)


@router.delete("/{request_id}/watch", response_model=RequestResponse)
async def unwatch_request(
    request_id: str,
    identity: Identity = Depends(get_current_identity),
    service: RequestService = Depends(get_request_service)
):
    try:
        return await service.set_watching(request_id, identity.user_id, False)
    except RequestNotFoundError as e:
        raise _not_found(e)


@router.post("/{request_id}/comments", response_model=CommentResponse, status_code=201)
async def add_comment(
    request_id: str,
    payload: CommentCreate,
    identity: Identity = Depends(get_current_identity),
    service: RequestService = Depends(get_request_service)
):
    """Comment on a request; internal comments are kept for operators only"""

    try:
        return await service.add_comment(request_id, identity, payload.content, payload.is_internal)
    except RequestNotFoundError as e:
        raise _not_found(e)


@router.get("/{request_id}/comments", response_model=List[CommentResponse])
async def list_comments(
    request_id: str,
    identity: Identity = Depends(get_current_identity),
    service: RequestService = Depends(get_request_service)
):
    try:
        return await service.list_comments(request_id, include_internal=identity.is_operator)
    except RequestNotFoundError as e:
        raise _not_found(e)


@router.get("/{request_id}/ai-operations", response_model=List[AIOperationResponse])
async def list_ai_operations(
    request_id: str,
    operator: AuthenticatedUser = Depends(get_current_operator),
    service: RequestService = Depends(get_request_service)
):
    """AI calls made for a request, oldest first (operators only)"""

    return await service.list_ai_operations(request_id)


@router.delete("/{request_id}", response_model=dict)
async def delete_request(
    request_id: str,
    admin: AuthenticatedUser = Depends(get_current_admin),
    service: RequestService = Depends(get_request_service)
):
    """Delete a feature request (admins only)"""

    try:
        await service.delete_request(request_id)
    except RequestNotFoundError as e:
        raise _not_found(e)

    return {
        "message": "Feature request deleted successfully",
        "request_id": request_id
    }


@router.websocket("/live")
async def live_requests(websocket: WebSocket, token: Optional[str] = None):
    """Push the full request list on connect and after every change"""

    state = websocket.app.state
    if not state.settings.allow_guest_access and (
        token is None or decode_identity(token, state.settings) is None
    ):
        await websocket.close(code=1008)
        return

    await websocket.accept()

    async def load_snapshot():
        async with state.database.session() as db:
            service = RequestService(db, state.settings)
            requests = await service.list_requests()
            return [RequestResponse.model_validate(r).model_dump(mode="json") for r in requests]

    collection = feature_requests_path(state.settings.app_id)
    await stream_collection(websocket, state.feed, collection, load_snapshot, "requests")
