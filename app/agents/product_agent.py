from urllib.parse import urlparse
import logging

from ..integrations.base import IntegrationError
from ..integrations.page_fetcher import PageFetcher
from ..schemas.enrichment import ProductData
from ..services.llm_provider import LLMProvider
from .base_agent import BaseAgent, StageResult

logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE = "/placeholder-product.jpg"


def fallback_product(url: str) -> ProductData:
    """Best guess from the URL alone"""
    domain = urlparse(url).hostname or url
    if domain.startswith("www."):
        domain = domain[len("www."):]

    return ProductData(
        product_name=f"Product from {domain}",
        description=f"Product found at {domain}. Please check the original URL for full details.",
        image_url=PLACEHOLDER_IMAGE
    )


class ProductAgent(BaseAgent):
    """Extracts wishlist product details from a product page"""

    def __init__(self, llm: LLMProvider, fetcher: PageFetcher):
        super().__init__(llm)
        self.fetcher = fetcher

    def get_agent_prompt(self) -> str:
        return (
            "Act as a helpful product expert. When given a URL, extract the product name, "
            "a concise summary of the product's features and description (less than 100 words), "
            "and a URL for the main product image. Respond with a valid JSON object only."
        )

    async def extract(self, url: str) -> StageResult[ProductData]:
        try:
            html = await self.fetcher.fetch_html(url)
        except IntegrationError as e:
            logger.warning(f"Failed to fetch {url}, using fallback: {e}")
            return StageResult(
                stage="product_extraction",
                value=fallback_product(url),
                used_fallback=True,
                error=f"Failed to fetch URL content: {e}"
            )

        prompt = f"""Extract product information from this HTML content.
Return JSON with this structure:

{{
  "productName": "string",
  "description": "string",
  "imageUrl": "string"
}}

URL: {url}

HTML:
{html}
"""

        return await self.run_stage(
            stage="product_extraction",
            prompt=prompt,
            schema=ProductData,
            fallback=lambda: fallback_product(url)
        )
