"""Strict decoding of model replies into typed records."""
import json
import re
from typing import Type, TypeVar

from pydantic import BaseModel, ValidationError

T = TypeVar("T", bound=BaseModel)

_FENCE = re.compile(r"```(?:json|JSON)?[ \t]*\n?|\n?```")


class DecodeError(ValueError):
    """Model text could not be decoded into the expected record"""


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences wrapping a model reply"""
    return _FENCE.sub("", text).strip()


def decode_model_json(text: str, schema: Type[T]) -> T:
    """
    Decode untrusted model text into ``schema``.

    Every field the schema declares must be present and valid; numeric
    ranges are clamped by the schema. Anything else raises DecodeError so
    the caller substitutes its fallback instead of merging partial data.
    """
    if not isinstance(text, str) or not text.strip():
        raise DecodeError("Empty model response")

    cleaned = strip_code_fences(text)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Model response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise DecodeError(f"Expected a JSON object, got {type(data).__name__}")

    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise DecodeError(
            f"Model response failed {schema.__name__} validation: {e.error_count()} error(s)"
        ) from e
