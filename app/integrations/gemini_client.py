from __future__ import annotations

from typing import Dict, Any, Optional

import httpx
from pydantic import Field, field_validator

from .base import (
    BaseIntegration,
    IntegrationConfig,
    IntegrationError,
    ResponseFormatError,
    mask_sensitive_data,
)


class GeminiConfig(IntegrationConfig):
    """Gemini generateContent endpoint configuration."""

    name: str = "gemini"
    base_url: str = Field(default="https://generativelanguage.googleapis.com/v1beta")
    model: str = "gemini-2.0-flash-exp"
    api_key: Optional[str] = None

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(('http://', 'https://')):
            raise ValueError('Base URL must start with http:// or https://')
        return v.rstrip('/')


class GeminiError(IntegrationError):
    """Gemini-specific error."""
    pass


class GeminiClient(BaseIntegration[GeminiConfig]):
    """
    Stateless prompt-in, text-out client for the Gemini REST API.

    Request body is {"contents": [{"parts": [{"text": prompt}]}]}; the reply
    text is read from candidates[0].content.parts[0].text.
    """

    @property
    def endpoint(self) -> str:
        return f"{self.config.base_url}/models/{self.config.model}:generateContent"

    @staticmethod
    def build_payload(prompt: str) -> Dict[str, Any]:
        return {
            "contents": [
                {
                    "parts": [
                        {"text": prompt}
                    ]
                }
            ]
        }

    @staticmethod
    def extract_text(data: Dict[str, Any]) -> Optional[str]:
        """Read candidates[0].content.parts[0].text, None when absent"""
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return None
        return text if isinstance(text, str) and text.strip() else None

    async def generate_content(self, prompt: str) -> Dict[str, Any]:
        """
        Send a prompt and return the generated text with usage metadata.

        Returns:
            {"text": str, "tokens_used": int, "model": str}

        Raises:
            IntegrationError subclasses on transport, HTTP or shape failures
        """
        if not self.config.api_key:
            raise GeminiError("Gemini API key is not configured", self.config.name)

        self._logger.debug(
            "POST %s params=%s", self.endpoint,
            mask_sensitive_data({"key": self.config.api_key}, ["key"])
        )

        response = await self._make_request(
            "POST",
            self.endpoint,
            params={"key": self.config.api_key},
            json=self.build_payload(prompt)
        )

        data = self._safe_json(response)
        if not isinstance(data, dict):
            raise ResponseFormatError("Response body is not a JSON object", self.config.name, response.status_code)

        text = self.extract_text(data)
        if text is None:
            raise ResponseFormatError("No response from AI", self.config.name, response.status_code, data)

        usage = data.get("usageMetadata") or {}
        return {
            "text": text,
            "tokens_used": usage.get("totalTokenCount", 0),
            "model": self.config.model
        }


def create_gemini_client(settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> GeminiClient:
    config = GeminiConfig(
        base_url=settings.gemini_base_url,
        model=settings.gemini_model,
        api_key=settings.gemini_api_key,
        timeout=settings.llm_timeout
    )
    return GeminiClient(config, transport=transport)
