from sqlalchemy import Column, String, Integer, Text, JSON, Boolean, Float
from .base import BaseModel


class AIOperation(BaseModel):
    __tablename__ = "ai_operations"

    # No foreign key: the log outlives deleted requests
    request_id = Column(String(32), nullable=True, index=True)
    operation_type = Column(String, nullable=False)  # categorize, priority, effort, impact, product_extraction
    provider = Column(String, nullable=True)
    model_used = Column(String, nullable=True)

    # Outcome
    succeeded = Column(Boolean, nullable=False, default=False)
    used_fallback = Column(Boolean, nullable=False, default=False)
    error_message = Column(Text, nullable=True)
    output_data = Column(JSON, nullable=True)

    # Performance metrics
    tokens_used = Column(Integer, nullable=True)
    duration_seconds = Column(Float, nullable=True)

    @classmethod
    def from_stage(cls, result, request_id=None) -> "AIOperation":
        """Build a log row from an agent StageResult"""
        return cls(
            request_id=request_id,
            operation_type=result.stage,
            provider=result.provider,
            model_used=result.model,
            succeeded=result.succeeded,
            used_fallback=result.used_fallback,
            error_message=result.error,
            output_data=result.value.model_dump(mode="json"),
            tokens_used=result.tokens_used,
            duration_seconds=result.duration_seconds
        )
