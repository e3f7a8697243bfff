from sqlalchemy import Column, String, Integer, Text, JSON, DateTime
from .base import BaseModel


class FeatureRequest(BaseModel):
    __tablename__ = "feature_requests"

    # Collection path, e.g. artifacts/{app_id}/feature-requests
    collection = Column(String, nullable=False, index=True)

    # Core fields
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(String, nullable=False, default="submitted")  # see services.workflow
    user_priority = Column(String, nullable=False, default="medium")  # low, medium, high, critical

    # Submitter
    submitted_by = Column(String, nullable=False, index=True)
    submitter_name = Column(String, nullable=True)
    submitter_role = Column(String, nullable=False, default="external")  # internal, external, enterprise, community
    tester_email = Column(String, nullable=True)

    # Target application
    app_id = Column(String, nullable=False)
    app_name = Column(String, nullable=False)

    # Community
    votes = Column(Integer, nullable=False, default=0)
    watchers = Column(JSON, default=list)
    tags = Column(JSON, default=list)

    # Planning
    assigned_to = Column(String, nullable=True)
    target_release = Column(String, nullable=True)
    actual_completion = Column(DateTime(timezone=True), nullable=True)

    # Enrichment sub-records, each attached by its own stage
    ai_analysis = Column(JSON, nullable=True)
    priority_score = Column(JSON, nullable=True)
    effort_estimate = Column(JSON, nullable=True)
    business_impact = Column(JSON, nullable=True)
