from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Generic, Optional, Type, TypeVar
import logging
import time

from pydantic import BaseModel

from ..services.llm_provider import LLMProvider
from ..services.response_parser import decode_model_json

logger = logging.getLogger(__name__)

ParsedT = TypeVar("ParsedT", bound=BaseModel)
ResultT = TypeVar("ResultT")


@dataclass
class StageResult(Generic[ResultT]):
    """Typed outcome of one remote stage: either the decoded value or its fallback"""

    stage: str
    value: ResultT
    used_fallback: bool = False
    error: Optional[str] = None
    tokens_used: int = 0
    model: Optional[str] = None
    provider: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return not self.used_fallback


class BaseAgent(ABC):
    """Base class for all AI agents"""

    def __init__(self, llm: LLMProvider):
        self.llm = llm

    @abstractmethod
    def get_agent_prompt(self) -> str:
        """Return the system prompt for this agent"""
        pass

    async def run_stage(
        self,
        stage: str,
        prompt: str,
        schema: Type[ParsedT],
        fallback: Callable[[], ResultT],
        transform: Optional[Callable[[ParsedT], ResultT]] = None
    ) -> StageResult[ResultT]:
        """
        Call the model once and decode its reply into ``schema``.

        Never raises: any failure (transport, HTTP status, empty or malformed
        reply, schema violation) is logged and replaced by ``fallback()``.
        """
        start = time.monotonic()
        completion = {}

        try:
            completion = await self.llm.generate_completion(
                prompt=prompt,
                system_prompt=self.get_agent_prompt()
            )
            parsed = decode_model_json(completion.get("content", ""), schema)
            value = transform(parsed) if transform else parsed
        except Exception as e:
            logger.warning(f"AI stage '{stage}' failed, using fallback: {e}")
            return StageResult(
                stage=stage,
                value=fallback(),
                used_fallback=True,
                error=str(e),
                tokens_used=completion.get("tokens_used", 0),
                model=completion.get("model", self.llm.model),
                provider=completion.get("provider", self.llm.provider),
                duration_seconds=time.monotonic() - start
            )

        return StageResult(
            stage=stage,
            value=value,
            tokens_used=completion.get("tokens_used", 0),
            model=completion.get("model"),
            provider=completion.get("provider"),
            duration_seconds=time.monotonic() - start
        )
