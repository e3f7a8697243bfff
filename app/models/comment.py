from sqlalchemy import Column, String, Text, Boolean, ForeignKey
from .base import BaseModel


class RequestComment(BaseModel):
    __tablename__ = "request_comments"

    request_id = Column(String(32), ForeignKey("feature_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, nullable=False)
    user_name = Column(String, nullable=False)
    user_role = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    is_internal = Column(Boolean, default=False)
