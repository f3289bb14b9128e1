"""
LLM Client Abstraction
Single entry point for all generative-text calls in the ESG pipeline.
Primary: Google Gemini 2.5 Flash (report, alternative search) / Flash-Lite (extraction)
Fallback: Groq LLaMA 3.3 70B
"""
import os
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import litellm

from specbuilder.exceptions import LLMCallError

logger = logging.getLogger("specbuilder-llm")

PRIMARY_MODEL = os.getenv("LLM_PRIMARY_MODEL", "gemini/gemini-2.5-flash")
EXTRACTION_MODEL = os.getenv("LLM_EXTRACTION_MODEL", "gemini/gemini-2.5-flash-lite")
FALLBACK_MODEL = os.getenv("LLM_FALLBACK_MODEL", "groq/llama-3.3-70b-versatile")

# Gemini's native search tool, passed through by litellm
GOOGLE_SEARCH_TOOL = {"googleSearch": {}}

# Suppress litellm verbose logging
litellm.set_verbose = False


@dataclass
class GroundedCompletion:
    text: str
    grounded: bool = False
    sources: List[str] = field(default_factory=list)


def _message_text(response) -> str:
    return response.choices[0].message.content or ""


def _grounding_metadata(response) -> list:
    hidden = getattr(response, "_hidden_params", None) or {}
    metadata = hidden.get("vertex_ai_grounding_metadata") or []
    if isinstance(metadata, dict):
        metadata = [metadata]
    return metadata


def _grounding_sources(metadata: list) -> List[str]:
    sources = []
    for block in metadata:
        for chunk in block.get("groundingChunks", []) or []:
            uri = (chunk.get("web") or {}).get("uri")
            if uri and uri not in sources:
                sources.append(uri)
    return sources


async def complete(
    messages: list,
    model: Optional[str] = None,
    temperature: float = 0.1,
    json_mode: bool = False,
    max_tokens: int = 4096,
) -> str:
    """
    Call the primary model. Falls back to FALLBACK_MODEL once on any error.
    Returns the response content string.
    """
    primary = model or PRIMARY_MODEL
    kwargs = {
        "messages": messages,
        "temperature": temperature,
        "max_tokens": max_tokens,
    }
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}

    try:
        response = await litellm.acompletion(model=primary, **kwargs)
        return _message_text(response)
    except litellm.RateLimitError:
        logger.warning(f"{primary} rate limit hit, falling back to {FALLBACK_MODEL}")
    except litellm.AuthenticationError:
        logger.warning(f"{primary} auth error, falling back to {FALLBACK_MODEL}")
    except Exception as e:
        logger.warning(f"{primary} error ({type(e).__name__}: {e}), falling back to {FALLBACK_MODEL}")

    try:
        fallback_kwargs = {k: v for k, v in kwargs.items() if k != "response_format"}
        if json_mode:
            fallback_kwargs["messages"] = [
                {"role": "system", "content": "You must respond with valid JSON only."}
            ] + list(fallback_kwargs["messages"])
        response = await litellm.acompletion(model=FALLBACK_MODEL, **fallback_kwargs)
        return _message_text(response)
    except Exception as e:
        logger.error(f"Both LLMs failed. Fallback error: {e}")
        raise LLMCallError(f"All LLM providers failed. Last error: {e}") from e


async def complete_with_web_search(
    messages: list,
    model: Optional[str] = None,
    temperature: float = 0.2,
    max_tokens: int = 8192,
) -> GroundedCompletion:
    """
    Single call with the live web-search tool enabled. No fallback model:
    grounding is provider-specific, so failures surface to the caller.

    A response without grounding metadata means the model answered from its own
    knowledge. That is reported via ``grounded=False``, not raised.
    """
    search_model = model or PRIMARY_MODEL
    try:
        response = await litellm.acompletion(
            model=search_model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            tools=[GOOGLE_SEARCH_TOOL],
        )
    except Exception as e:
        logger.warning(f"Web search call failed on {search_model}: {type(e).__name__}: {e}")
        raise LLMCallError(f"Web search call failed: {e}") from e

    text = _message_text(response)
    if not text.strip():
        raise LLMCallError("Web search call returned no text")

    metadata = _grounding_metadata(response)
    if not metadata:
        logger.info(f"{search_model} answered without grounding metadata")
        return GroundedCompletion(text=text)
    return GroundedCompletion(text=text, grounded=True, sources=_grounding_sources(metadata))


class LLMClient:
    """
    Class-based wrapper around the module-level complete() / complete_with_web_search()
    functions. Pipeline stages receive an instance so tests can substitute it.
    """

    def __init__(self, extraction_model: Optional[str] = None, report_model: Optional[str] = None):
        self.extraction_model = extraction_model or EXTRACTION_MODEL
        self.report_model = report_model or PRIMARY_MODEL

    async def chat(
        self,
        messages: list,
        model: Optional[str] = None,
        temperature: float = 0.1,
        json_mode: bool = False,
        max_tokens: int = 4096,
    ) -> str:
        return await complete(
            messages, model=model, temperature=temperature, json_mode=json_mode, max_tokens=max_tokens
        )

    async def grounded_search(self, messages: list, model: Optional[str] = None) -> GroundedCompletion:
        return await complete_with_web_search(messages, model=model or self.report_model)


def get_system_prompt(role: str) -> str:
    """Standard system prompts for different AI roles."""
    prompts = {
        "materials_analyst": (
            "You are an expert construction materials analyst with deep knowledge of UK construction "
            "specifications, CAWS (Common Arrangement of Work Sections) and the NRM (New Rules of Measurement)."
        ),
        "esg_consultant": (
            "You are an expert ESG (Environmental, Social, Governance) consultant specializing in "
            "construction and embodied carbon reduction. You write for UK project teams, use UK "
            "construction terminology, and acknowledge cost and technical trade-offs honestly."
        ),
        "sustainability_researcher": (
            "You are a construction sustainability researcher. You find real, currently available "
            "lower-embodied-carbon products and materials in the UK market and cite where the "
            "information came from. You never invent figures you cannot source."
        ),
    }
    return prompts.get(role, prompts["materials_analyst"])
