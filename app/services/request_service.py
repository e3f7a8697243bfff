from typing import List, Optional, Dict, Any, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, case

from ..config import Settings
from ..core.auth import Identity
from ..core.collections import feature_requests_path
from ..models.ai_operation import AIOperation
from ..models.base import utcnow
from ..models.comment import RequestComment
from ..models.feature_request import FeatureRequest
from ..services.live_feed import LiveFeedHub
from ..services.workflow import (
    ENRICHABLE_STATUSES,
    RequestStatus,
    validate_transition,
)
from ..utils.logging import get_logger

logger = get_logger(__name__)

# Tester role (as entered on the form) -> submitter role
ROLE_MAP = {
    "end-user": "external",
    "beta-tester": "community",
    "business-user": "enterprise",
    "admin": "internal",
    "developer": "internal",
    "other": "external",
}

TOP_FEATURES_LIMIT = 5


class RequestNotFoundError(LookupError):
    def __init__(self, request_id: str):
        super().__init__(f"Feature request {request_id} not found")
        self.request_id = request_id


def map_submitter_role(tester_role: Optional[str]) -> str:
    return ROLE_MAP.get((tester_role or "").lower(), "external")


class RequestService:
    """Service for managing feature requests in one app's collection"""

    def __init__(self, db: AsyncSession, settings: Settings, feed: Optional[LiveFeedHub] = None):
        self.db = db
        self.settings = settings
        self.feed = feed
        self.collection = feature_requests_path(settings.app_id)

    def _notify(self) -> None:
        if self.feed is not None:
            self.feed.notify(self.collection)

    async def submit_request(
        self,
        identity: Identity,
        title: str,
        description: str,
        user_priority: str,
        app_id: str,
        app_name: str,
        tester_name: Optional[str] = None,
        tester_email: Optional[str] = None,
        tester_role: Optional[str] = None,
        tags: Optional[List[str]] = None
    ) -> FeatureRequest:
        """Store a new request; it starts in 'analyzing' when enrichment will follow"""

        status = RequestStatus.ANALYZING if self.settings.enable_ai_analysis else RequestStatus.SUBMITTED

        request = FeatureRequest(
            collection=self.collection,
            title=title,
            description=description,
            status=status.value,
            user_priority=user_priority,
            submitted_by=identity.user_id,
            submitter_name=tester_name or identity.name,
            submitter_role=map_submitter_role(tester_role),
            tester_email=tester_email,
            app_id=app_id,
            app_name=app_name,
            votes=0,
            watchers=[identity.user_id],
            tags=list(tags or []),
        )

        try:
            self.db.add(request)
            await self.db.commit()
            await self.db.refresh(request)
        except Exception as e:
            logger.error(f"Error submitting request: {str(e)}")
            await self.db.rollback()
            raise

        logger.info(f"Submitted feature request {request.id} ({status.value})")
        self._notify()
        return request

    async def list_requests(
        self,
        status: Optional[str] = None,
        app_id: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[FeatureRequest]:
        """Requests in this collection, newest first"""

        stmt = select(FeatureRequest).where(FeatureRequest.collection == self.collection)

        if status:
            stmt = stmt.where(FeatureRequest.status == status)

        if app_id:
            stmt = stmt.where(FeatureRequest.app_id == app_id)

        stmt = stmt.order_by(FeatureRequest.created_at.desc(), FeatureRequest.id.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        stmt = stmt.offset(offset)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_request(self, request_id: str) -> Optional[FeatureRequest]:
        stmt = select(FeatureRequest).where(
            FeatureRequest.id == request_id,
            FeatureRequest.collection == self.collection
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def require_request(self, request_id: str) -> FeatureRequest:
        request = await self.get_request(request_id)
        if request is None:
            raise RequestNotFoundError(request_id)
        return request

    async def update_status(self, request_id: str, status: str) -> FeatureRequest:
        """Operator-driven status change; completing stamps the completion time"""

        request = await self.require_request(request_id)
        if request.status == status:
            return request

        validate_transition(request.status, status)

        request.status = status
        if status == RequestStatus.COMPLETED.value:
            request.actual_completion = utcnow()

        await self.db.commit()
        await self.db.refresh(request)

        logger.info(f"Request {request_id} moved to {status}")
        self._notify()
        return request

    async def vote(self, request_id: str, increment: bool = True) -> FeatureRequest:
        """Add or remove one vote; the count never drops below zero"""

        await self.require_request(request_id)

        delta = 1 if increment else -1
        new_votes = FeatureRequest.votes + delta
        await self.db.execute(
            update(FeatureRequest)
            .where(FeatureRequest.id == request_id)
            .values(votes=case((new_votes < 0, 0), else_=new_votes))
        )
        await self.db.commit()

        request = await self.require_request(request_id)
        await self.db.refresh(request)
        self._notify()
        return request

    async def set_watching(self, request_id: str, user_id: str, watching: bool) -> FeatureRequest:
        request = await self.require_request(request_id)

        watchers = [w for w in (request.watchers or []) if w != user_id]
        if watching:
            watchers.append(user_id)
        request.watchers = watchers

        await self.db.commit()
        await self.db.refresh(request)
        self._notify()
        return request

    async def add_comment(
        self,
        request_id: str,
        identity: Identity,
        content: str,
        is_internal: bool = False
    ) -> RequestComment:
        await self.require_request(request_id)

        comment = RequestComment(
            request_id=request_id,
            user_id=identity.user_id,
            user_name=identity.name,
            user_role=identity.role,
            content=content,
            is_internal=is_internal and identity.is_operator
        )
        self.db.add(comment)
        await self.db.commit()
        await self.db.refresh(comment)
        return comment

    async def list_comments(self, request_id: str, include_internal: bool = False) -> List[RequestComment]:
        await self.require_request(request_id)

        stmt = select(RequestComment).where(RequestComment.request_id == request_id)
        if not include_internal:
            stmt = stmt.where(RequestComment.is_internal.is_(False))
        stmt = stmt.order_by(RequestComment.created_at.asc())

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def delete_request(self, request_id: str) -> None:
        request = await self.require_request(request_id)

        try:
            for other in await self._requests_linking_to(request_id):
                duplicates = [d for d in other.ai_analysis["duplicates"] if d != request_id]
                other.ai_analysis = {**other.ai_analysis, "duplicates": duplicates}

            await self.db.execute(delete(RequestComment).where(RequestComment.request_id == request_id))
            await self.db.delete(request)
            await self.db.commit()
        except Exception as e:
            logger.error(f"Error deleting request {request_id}: {str(e)}")
            await self.db.rollback()
            raise

        logger.info(f"Deleted feature request {request_id}")
        self._notify()

    async def _requests_linking_to(self, request_id: str) -> List[FeatureRequest]:
        stmt = select(FeatureRequest).where(
            FeatureRequest.collection == self.collection,
            FeatureRequest.id != request_id
        ).execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return [
            r for r in result.scalars().all()
            if request_id in ((r.ai_analysis or {}).get("duplicates") or [])
        ]

    async def list_ai_operations(self, request_id: str) -> List[AIOperation]:
        stmt = select(AIOperation).where(
            AIOperation.request_id == request_id
        ).order_by(AIOperation.created_at.asc())
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    # Enrichment merges

    async def merge_fields(self, request_id: str, **values: Any) -> None:
        """Write one field group without re-reading the rest of the record"""

        await self.db.execute(
            update(FeatureRequest)
            .where(FeatureRequest.id == request_id)
            .values(**values, updated_at=utcnow())
        )
        await self.db.commit()
        self._notify()

    async def finish_analysis(self, request_id: str, succeeded: bool) -> None:
        """Move a still-pending request to 'reviewed', or back to 'submitted' on failure"""

        target = RequestStatus.REVIEWED if succeeded else RequestStatus.SUBMITTED
        await self.db.execute(
            update(FeatureRequest)
            .where(
                FeatureRequest.id == request_id,
                FeatureRequest.status.in_(ENRICHABLE_STATUSES)
            )
            .values(status=target.value, updated_at=utcnow())
        )
        await self.db.commit()
        self._notify()

    async def duplicate_candidates(self, request_id: str) -> List[Tuple[str, str, str]]:
        stmt = select(
            FeatureRequest.id, FeatureRequest.title, FeatureRequest.description
        ).where(
            FeatureRequest.collection == self.collection,
            FeatureRequest.id != request_id
        )
        result = await self.db.execute(stmt)
        return [(row.id, row.title, row.description or "") for row in result.all()]

    async def link_duplicate(self, existing_id: str, new_id: str) -> None:
        """Add ``new_id`` to an already analysed request's duplicate list"""

        existing = await self.get_request(existing_id)
        if existing is None:
            return

        await self.db.refresh(existing)
        if not existing.ai_analysis:
            return

        duplicates = list(existing.ai_analysis.get("duplicates") or [])
        if new_id in duplicates:
            return

        existing.ai_analysis = {**existing.ai_analysis, "duplicates": duplicates + [new_id]}
        await self.db.commit()
        self._notify()

    # Analytics

    async def get_analytics(self) -> Dict[str, Any]:
        requests = await self.list_requests()

        by_category: Dict[str, int] = {}
        by_status: Dict[str, int] = {}
        for request in requests:
            category = (request.ai_analysis or {}).get("category") or "uncategorized"
            by_category[category] = by_category.get(category, 0) + 1
            by_status[request.status] = by_status.get(request.status, 0) + 1

        scored = [r for r in requests if r.priority_score]
        average_priority = (
            sum(r.priority_score.get("overall", 0) for r in scored) / len(scored)
            if scored else 0.0
        )

        top_requests = sorted(
            requests,
            key=lambda r: (r.priority_score or {}).get("overall", 0),
            reverse=True
        )[:TOP_FEATURES_LIMIT]

        return {
            "total_requests": len(requests),
            "requests_by_category": by_category,
            "requests_by_status": by_status,
            "average_priority_score": average_priority,
            "top_requested_features": top_requests,
        }
