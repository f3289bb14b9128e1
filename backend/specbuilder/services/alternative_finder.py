"""
Lower-carbon alternative finding.

Two interchangeable strategies behind one interface:
  WebSearchFinder     one web-search-grounded call for all resolved materials
  StaticLibraryFinder reverse lookup on the library's alternative_to links
FallbackFinder composes them: any exception from the primary runs the fallback.
"""
import logging
import os
from abc import ABC, abstractmethod
from typing import Dict, List

from specbuilder.models.esg_schema import AlternativeSearchResult, SubstitutionSuggestion
from specbuilder.services.llm_json import parse_typed
from specbuilder.services.material_library import MaterialLibrary, ReferenceMaterial
from specbuilder.services.prompts import build_alternative_search_messages

logger = logging.getLogger("specbuilder-esg")

WEB_SEARCH_ENABLED = os.getenv("LLM_WEB_SEARCH_ENABLED", "true").lower() in ("1", "true", "yes")


class AlternativeFinder(ABC):
    name = "base"

    @abstractmethod
    async def find(self, resolved: Dict[str, ReferenceMaterial]) -> List[SubstitutionSuggestion]:
        ...


class StaticLibraryFinder(AlternativeFinder):
    """Suggestions from materials that list a resolved material in alternative_to. Sorted by savings, highest first."""
    name = "static_library"

    def __init__(self, library: MaterialLibrary):
        self.library = library

    async def find(self, resolved: Dict[str, ReferenceMaterial]) -> List[SubstitutionSuggestion]:
        suggestions: List[SubstitutionSuggestion] = []
        for material_id, current in resolved.items():
            alternatives = self.library.alternatives_for(material_id)
            if not alternatives:
                logger.info(f"No recorded alternatives for '{current.name}'")
                continue
            for alt in alternatives:
                savings = current.embodied_carbon - alt.embodied_carbon
                if savings <= 0:
                    continue
                suggestions.append(SubstitutionSuggestion(
                    current_material=current.name,
                    current_carbon=current.embodied_carbon,
                    alternative_material=alt.name,
                    alternative_carbon=alt.embodied_carbon,
                    savings=savings,
                    savings_percentage=savings / current.embodied_carbon * 100 if current.embodied_carbon else None,
                    cost_impact=alt.cost_impact_text,
                    modifications=alt.modifications_text,
                    source=alt.data_source,
                ))

        suggestions.sort(key=lambda s: s.savings, reverse=True)
        logger.info(f"Static lookup produced {len(suggestions)} suggestions", extra={"stage": "find_alternatives"})
        return suggestions


class WebSearchFinder(AlternativeFinder):
    """
    One grounded call listing every resolved material. Results keep the
    model's ordering and carry percentages only.
    """
    name = "web_search"

    def __init__(self, llm):
        self.llm = llm

    async def find(self, resolved: Dict[str, ReferenceMaterial]) -> List[SubstitutionSuggestion]:
        if not resolved:
            return []
        completion = await self.llm.grounded_search(build_alternative_search_messages(list(resolved.values())))
        if not completion.grounded:
            logger.info("Alternative search answered without web grounding", extra={"stage": "find_alternatives"})
        result = parse_typed(completion.text, AlternativeSearchResult, "alternative search")

        suggestions = []
        for suggestion in result:
            # Absolute figures are never trusted from this path
            suggestion = suggestion.model_copy(update={
                "current_carbon": None,
                "alternative_carbon": None,
                "savings": None,
            })
            # Grounding covers the whole answer; only a lone suggestion inherits it
            if suggestion.source is None and completion.sources and len(result) == 1:
                suggestion = suggestion.model_copy(update={"source": completion.sources[0]})
            suggestions.append(suggestion)
        logger.info(
            f"Web search produced {len(suggestions)} suggestions ({len(completion.sources)} sources)",
            extra={"stage": "find_alternatives"},
        )
        return suggestions


class FallbackFinder(AlternativeFinder):
    name = "fallback"

    def __init__(self, primary: AlternativeFinder, fallback: AlternativeFinder):
        self.primary = primary
        self.fallback = fallback

    async def find(self, resolved: Dict[str, ReferenceMaterial]) -> List[SubstitutionSuggestion]:
        try:
            return await self.primary.find(resolved)
        except Exception as e:
            logger.warning(
                f"{self.primary.name} finder failed ({type(e).__name__}: {e}), using {self.fallback.name}",
                extra={"stage": "find_alternatives"},
            )
            return await self.fallback.find(resolved)


def build_alternative_finder(library: MaterialLibrary, llm, web_search: bool = WEB_SEARCH_ENABLED) -> AlternativeFinder:
    static = StaticLibraryFinder(library)
    if not web_search:
        return static
    return FallbackFinder(WebSearchFinder(llm), static)
