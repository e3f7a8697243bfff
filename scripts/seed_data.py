#!/usr/bin/env python3
"""
Seed Data Script for the Feature Request Tracker

Creates realistic data for development:
- 5 Users (admin, manager, developer, testers)
- 12 Feature Requests in various workflow states, including near-duplicates
  and vague requests for the AI analysis to flag

Usage:
    python scripts/seed_data.py              # Add seed data
    python scripts/seed_data.py --clear      # Clear all data first
    python scripts/seed_data.py --analyze    # Also run AI analysis on each request
"""
import argparse
import asyncio
import sys
import os
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.config import get_settings
from app.core.auth import AuthenticatedUser
from app.database import Database
from app.models.ai_operation import AIOperation
from app.models.comment import RequestComment
from app.models.feature_request import FeatureRequest
from app.models.user import User
from app.services.enrichment_service import EnrichmentService
from app.services.llm_provider import LLMProvider
from app.services.request_service import RequestService
from app.services.workflow import RequestStatus


# ==================== DATA DEFINITIONS ====================

USERS_DATA = [
    {"email": "alice.admin@company.com", "full_name": "Alice Johnson", "role": "admin"},
    {"email": "carol.pm@company.com", "full_name": "Carol Williams", "role": "manager"},
    {"email": "emma.dev@company.com", "full_name": "Emma Rodriguez", "role": "developer"},
    {"email": "frank.qa@company.com", "full_name": "Frank Smith", "role": "tester"},
    {"email": "grace.beta@example.com", "full_name": "Grace Lee", "role": "external"},
]

# (title, description, user_priority, tester_role, final status)
REQUESTS_DATA = [
    # Well-defined requests
    ("Dark mode", "Add a dark theme toggle in settings that persists the preference across sessions.", "medium", "end-user", "reviewed"),
    ("Export reports to CSV", "Let users download any report table as a CSV file with the current filters applied.", "high", "business-user", "approved"),
    ("Keyboard shortcuts", "Support keyboard shortcuts for navigation and common actions, with a help overlay listing them.", "low", "beta-tester", "in-progress"),
    ("Two-factor authentication", "Optional TOTP-based two-factor authentication with backup codes.", "critical", "admin", "approved"),
    ("Faster dashboard loading", "The dashboard takes over five seconds to load with large projects; cache the summary queries.", "high", "developer", "in-progress"),
    ("Slack notifications", "Post a message to a chosen channel when a request changes status.", "medium", "business-user", "completed"),

    # Near-duplicates (duplicate detection should flag these)
    ("Export data as CSV", "Users need to download report tables as CSV files using current filters.", "medium", "end-user", "submitted"),
    ("Night theme", "Add a dark theme toggle in settings and remember the preference.", "low", "beta-tester", "submitted"),

    # Vague requests (need clarification)
    ("Make it faster", "The app is slow", "high", "other", "submitted"),
    ("Better UI", "Make it look better", "low", "end-user", "submitted"),
    ("More integrations", "Users want more integrations", "medium", "other", "rejected"),
    ("Fix the bugs", "There are some bugs that need fixing", "medium", "end-user", "submitted"),
]

# Operator path to each seeded status
STATUS_PATHS = {
    "submitted": [],
    "reviewed": ["reviewed"],
    "approved": ["reviewed", "approved"],
    "rejected": ["rejected"],
    "in-progress": ["reviewed", "approved", "in-progress"],
    "completed": ["reviewed", "approved", "in-progress", "completed"],
}


# ==================== SEED FUNCTIONS ====================

async def clear_all_data(session: AsyncSession):
    """Clear all data from the database"""
    print("🗑️  Clearing existing data...")

    # Delete in correct order (respecting foreign keys)
    await session.execute(delete(RequestComment))
    await session.execute(delete(AIOperation))
    await session.execute(delete(FeatureRequest))
    await session.execute(delete(User))

    await session.commit()
    print("✅ All data cleared")


async def create_users(session: AsyncSession):
    """Create users"""
    print("\n👥 Creating users...")

    users = []
    for user_data in USERS_DATA:
        user = User(
            email=user_data["email"],
            full_name=user_data["full_name"],
            role=user_data["role"],
            is_active=True
        )
        session.add(user)
        users.append(user)
        print(f"  ✓ Created: {user.full_name} ({user.email}) - Role: {user.role}")

    await session.commit()

    # Refresh to get IDs
    for user in users:
        await session.refresh(user)

    return users


async def create_requests(service: RequestService, users):
    """Create feature requests and walk each one to its seeded status"""
    print("\n📋 Creating feature requests...")

    submitters = [u for u in users if not u.is_operator]
    counts = {}
    created = []

    for idx, (title, description, priority, tester_role, status) in enumerate(REQUESTS_DATA):
        submitter = submitters[idx % len(submitters)]
        identity = AuthenticatedUser(
            user_id=submitter.id,
            name=submitter.full_name,
            role=submitter.role,
            email=submitter.email
        )

        request = await service.submit_request(
            identity=identity,
            title=title,
            description=description,
            user_priority=priority,
            app_id=service.settings.app_id,
            app_name="Demo App",
            tester_name=submitter.full_name,
            tester_email=submitter.email,
            tester_role=tester_role
        )

        # Seeded requests start from 'submitted' regardless of AI settings
        if request.status == RequestStatus.ANALYZING.value:
            await service.finish_analysis(request.id, succeeded=False)

        for step in STATUS_PATHS[status]:
            await service.update_status(request.id, step)

        for _ in range(idx % 4):
            await service.vote(request.id)

        counts[status] = counts.get(status, 0) + 1
        created.append(request)

    print(f"  ✓ Created {len(REQUESTS_DATA)} requests:")
    for status, count in sorted(counts.items()):
        print(f"    - {status}: {count}")

    return created


async def analyze_requests(database: Database, settings, requests):
    """Run AI analysis on every seeded request"""
    print("\n🤖 Running AI analysis...")

    llm = LLMProvider(settings)
    enrichment = EnrichmentService(database, llm, settings)
    try:
        for request in requests:
            results = await enrichment.enrich_request(request.id)
            fallbacks = [stage for stage, result in results.items() if result.used_fallback]
            marker = "⚠️ " if fallbacks else "✓"
            print(f"  {marker} {request.title}" + (f" (fallback: {', '.join(fallbacks)})" if fallbacks else ""))
    finally:
        await llm.close()


# ==================== MAIN ====================

async def seed_database(clear_first: bool = False, analyze: bool = False):
    """Main seed function"""
    print("=" * 60)
    print("🌱 Feature Request Tracker - Database Seeding")
    print("=" * 60)

    settings = get_settings()
    database = Database(settings)
    await database.connect()

    try:
        async with database.session() as session:
            if clear_first:
                await clear_all_data(session)

            users = await create_users(session)
            requests = await create_requests(RequestService(session, settings), users)

        if analyze:
            await analyze_requests(database, settings, requests)
    finally:
        await database.disconnect()

    print("\n" + "=" * 60)
    print("✅ Database seeding complete!")
    print("=" * 60)
    print("\nRequest a token with any seeded email:")
    print("  curl -X POST localhost:8000/api/v1/auth/token -d '{\"email\": \"alice.admin@company.com\"}'")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the feature request database")
    parser.add_argument("--clear", action="store_true", help="Clear all data first")
    parser.add_argument("--analyze", action="store_true", help="Run AI analysis on seeded requests")
    args = parser.parse_args()

    asyncio.run(seed_database(clear_first=args.clear, analyze=args.analyze))
