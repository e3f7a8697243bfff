"""
Remote service integrations for the feature request tracker.

- Gemini generateContent (text generation)
- Product page fetching for wishlist items
"""

from .base import (
    BaseIntegration,
    IntegrationConfig,
    IntegrationError,
    AuthenticationError,
    NetworkError,
    RateLimitError,
    ResponseFormatError,
    ValidationError,
)
from .gemini_client import GeminiClient, GeminiConfig, GeminiError, create_gemini_client
from .page_fetcher import BlockedURLError, PageFetcher, PageFetcherConfig, create_page_fetcher

__all__ = [
    "BaseIntegration",
    "IntegrationConfig",
    "IntegrationError",
    "AuthenticationError",
    "NetworkError",
    "RateLimitError",
    "ResponseFormatError",
    "ValidationError",
    "GeminiClient",
    "GeminiConfig",
    "GeminiError",
    "create_gemini_client",
    "PageFetcher",
    "PageFetcherConfig",
    "BlockedURLError",
    "create_page_fetcher",
]
