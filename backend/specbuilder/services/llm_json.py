"""
Parsing of generative-text answers into the typed shapes in models.esg_schema.

Answers are treated as JSON that may be wrapped in markdown code fences. Parsing
is strict: no repair of truncated or commented JSON is attempted.
"""
import json
import re
from typing import Type, TypeVar

from pydantic import BaseModel, ValidationError

from specbuilder.exceptions import LLMResponseParseError

THINK_PATTERN = re.compile(r"<think>.*?</think>", flags=re.DOTALL)
CODE_BLOCK_PATTERN = re.compile(r"```(?:json)?(.*?)```", flags=re.DOTALL | re.IGNORECASE)

ModelT = TypeVar("ModelT", bound=BaseModel)


def strip_code_fences(content: str) -> str:
    stripped = THINK_PATTERN.sub("", content or "").strip()
    match = CODE_BLOCK_PATTERN.search(stripped)
    if match:
        stripped = match.group(1)
    return stripped.strip()


def parse_typed(raw: str, model: Type[ModelT], call_site: str) -> ModelT:
    """
    Parse ``raw`` into ``model``.

    Raises LLMResponseParseError when the text is not JSON or does not fit the
    expected shape; callers decide whether that is fatal.
    """
    blob = strip_code_fences(raw)
    if not blob:
        raise LLMResponseParseError(call_site, raw, "empty response")
    try:
        data = json.loads(blob)
    except json.JSONDecodeError as exc:
        raise LLMResponseParseError(call_site, raw, str(exc)) from exc
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise LLMResponseParseError(call_site, raw, f"unexpected shape ({exc.error_count()} errors)") from exc
