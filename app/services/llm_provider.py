"""
LLM Provider - Supports Gemini, Ollama and OpenAI-compatible providers
"""
from typing import Dict, Any, List, Optional

import httpx

from ..config import Settings
from ..integrations.base import BaseIntegration, IntegrationError
from ..integrations.gemini_client import GeminiClient, create_gemini_client
from ..utils.logging import get_logger

logger = get_logger(__name__)

SUPPORTED_PROVIDERS = ("gemini", "ollama", "openai")


class LLMError(Exception):
    """Raised when the configured provider could not produce a completion"""

    def __init__(self, message: str, provider: str):
        super().__init__(message)
        self.provider = provider


class LLMProvider:
    """Unified interface for different LLM providers"""

    def __init__(self, settings: Settings, gemini_client: Optional[GeminiClient] = None):
        self.settings = settings
        self.provider = self._detect_provider()
        self._gemini = gemini_client
        logger.info(f"Initialized LLM provider: {self.provider}")

    @property
    def integrations(self) -> List[BaseIntegration]:
        """HTTP integrations opened so far"""
        return [self._gemini] if self._gemini is not None else []

    def _detect_provider(self) -> str:
        """Detect which LLM provider to use based on configuration"""
        provider = (self.settings.llm_provider or "gemini").lower()
        if provider not in SUPPORTED_PROVIDERS:
            logger.warning(f"Unknown LLM provider '{provider}', falling back to gemini")
            return "gemini"
        return provider

    @property
    def model(self) -> str:
        if self.provider == "ollama":
            return self.settings.ollama_model
        if self.provider == "openai":
            return self.settings.openai_model
        return self.settings.gemini_model

    async def generate_completion(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Generate completion using the configured provider

        Returns:
            {
                "content": str,
                "tokens_used": int,
                "model": str,
                "provider": str
            }

        Raises:
            LLMError: on any provider failure
        """
        max_tokens = max_tokens or self.settings.max_tokens
        temperature = self.settings.llm_temperature if temperature is None else temperature

        if self.provider == "ollama":
            return await self._ollama_completion(prompt, system_prompt, max_tokens, temperature)
        elif self.provider == "openai":
            return await self._openai_compatible_completion(prompt, system_prompt, max_tokens, temperature)
        else:
            return await self._gemini_completion(prompt, system_prompt)

    async def _gemini_completion(
        self,
        prompt: str,
        system_prompt: Optional[str]
    ) -> Dict[str, Any]:
        """Call Gemini generateContent"""
        if self._gemini is None:
            self._gemini = create_gemini_client(self.settings)

        full_prompt = prompt
        if system_prompt:
            full_prompt = f"System: {system_prompt}\n\nUser: {prompt}"

        try:
            result = await self._gemini.generate_content(full_prompt)
        except IntegrationError as e:
            logger.error(f"Gemini API error: {e}")
            raise LLMError(f"Gemini API failed: {str(e)}", "gemini") from e

        return {
            "content": result["text"],
            "tokens_used": result["tokens_used"],
            "model": result["model"],
            "provider": "gemini"
        }

    async def _ollama_completion(
        self,
        prompt: str,
        system_prompt: Optional[str],
        max_tokens: int,
        temperature: float
    ) -> Dict[str, Any]:
        """Call Ollama API"""
        model = self.settings.ollama_model

        # Build the full prompt
        full_prompt = prompt
        if system_prompt:
            full_prompt = f"{system_prompt}\n\n{prompt}"

        try:
            async with httpx.AsyncClient(timeout=self.settings.llm_timeout) as client:
                response = await client.post(
                    f"{self.settings.ollama_base_url}/api/generate",
                    json={
                        "model": model,
                        "prompt": full_prompt,
                        "stream": False,
                        "options": {
                            "temperature": temperature,
                            "num_predict": max_tokens
                        }
                    }
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Ollama API error: {e}")
            raise LLMError(f"Ollama API failed: {str(e)}", "ollama") from e

        return {
            "content": data.get("response", ""),
            "tokens_used": data.get("eval_count", 0) + data.get("prompt_eval_count", 0),
            "model": model,
            "provider": "ollama"
        }

    async def _openai_compatible_completion(
        self,
        prompt: str,
        system_prompt: Optional[str],
        max_tokens: int,
        temperature: float
    ) -> Dict[str, Any]:
        """Call OpenAI-compatible API (OpenAI, Groq, Together, etc.)"""
        from openai import AsyncOpenAI, OpenAIError

        client = AsyncOpenAI(
            api_key=self.settings.openai_api_key,
            base_url=self.settings.openai_api_base,
            timeout=self.settings.llm_timeout,
            max_retries=0
        )

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await client.chat.completions.create(
                model=self.settings.openai_model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature
            )
        except OpenAIError as e:
            logger.error(f"LLM API error: {e}")
            raise LLMError(f"LLM API failed: {str(e)}", "openai") from e
        finally:
            await client.close()

        return {
            "content": response.choices[0].message.content or "",
            "tokens_used": response.usage.total_tokens if response.usage else 0,
            "model": response.model,
            "provider": "openai"
        }

    async def close(self) -> None:
        if self._gemini is not None:
            await self._gemini.close()
