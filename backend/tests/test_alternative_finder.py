"""
test_alternative_finder.py — Unit tests for specbuilder.services.alternative_finder.

Tests cover:
  - StaticLibraryFinder: savings arithmetic, percentage (none for zero-carbon
    materials), ordering, no-gain filtering
  - WebSearchFinder: percentages only, grounding source back-fill for a lone
    suggestion, parse failures
  - FallbackFinder: any primary failure runs the static lookup
  - build_alternative_finder wiring
"""

import json

import pytest

from specbuilder.exceptions import LLMCallError, LLMResponseParseError
from specbuilder.services.alternative_finder import (
    FallbackFinder, StaticLibraryFinder, WebSearchFinder, build_alternative_finder,
)
from specbuilder.services.llm_client import GroundedCompletion
from specbuilder.services.material_library import MaterialLibrary, ReferenceMaterial


def _resolved(library, *ids):
    return {i: library.get(i) for i in ids}


_WEB_ANSWER = json.dumps([
    {
        "currentMaterial": "Portland Cement (CEM I)",
        "currentCarbon": 820,
        "alternativeMaterial": "Hanson Regen GGBS",
        "alternativeCarbon": 250,
        "savings": 570,
        "savingsPercentage": 70,
        "costImpact": "Similar cost",
        "modifications": "Slower early strength gain",
        "availability": "Widely available in the UK",
    },
    {
        "currentMaterial": "Virgin Steel Sections",
        "alternativeMaterial": "EAF recycled steel",
        "savingsPercentage": 65,
        "source": "https://example.org/eaf-steel",
    },
])


# ===========================================================================
# Class 1: StaticLibraryFinder
# ===========================================================================

class TestStaticLibraryFinder:

    @pytest.mark.asyncio
    async def test_portland_alternatives(self, library):
        suggestions = await StaticLibraryFinder(library).find(_resolved(library, "ICE-CEMENT-001"))
        assert [s.alternative_material for s in suggestions] == [
            "Ground Granulated Blast-furnace Slag Cement (CEM III/A)",
            "Pulverised Fuel Ash Cement (CEM II/B-V)",
        ]
        ggbs = suggestions[0]
        assert ggbs.current_carbon == 820.0
        assert ggbs.alternative_carbon == 270.0
        assert ggbs.savings == 550.0
        assert ggbs.savings_percentage == pytest.approx(67.07, abs=0.01)
        assert ggbs.cost_impact == "5-10% cost increase"
        assert ggbs.source == "ICE Database v3.0"

    @pytest.mark.asyncio
    async def test_sorted_by_savings_across_materials(self, library):
        resolved = _resolved(library, "ICE-CEMENT-001", "WSA-STEEL-001")
        suggestions = await StaticLibraryFinder(library).find(resolved)
        savings = [s.savings for s in suggestions]
        assert savings == sorted(savings, reverse=True)
        assert suggestions[0].alternative_material == "Recycled Steel Sections"
        assert suggestions[0].savings == 1470.0

    @pytest.mark.asyncio
    async def test_no_recorded_alternatives(self, library):
        assert await StaticLibraryFinder(library).find(_resolved(library, "ICE-TIMBER-001")) == []

    @pytest.mark.asyncio
    async def test_already_lowest_carbon(self, library):
        """A resolved alternative has nothing listed against it."""
        assert await StaticLibraryFinder(library).find(_resolved(library, "ICE-CEMENT-002")) == []

    @pytest.mark.asyncio
    async def test_non_positive_savings_are_dropped(self):
        current = ReferenceMaterial("cur", "Current", 100.0)
        worse = ReferenceMaterial("worse", "Worse", 120.0, alternative_to=("cur",))
        same = ReferenceMaterial("same", "Same", 100.0, alternative_to=("cur",))
        lib = MaterialLibrary([current, worse, same])
        assert await StaticLibraryFinder(lib).find({"cur": current}) == []

    @pytest.mark.asyncio
    async def test_zero_carbon_material_has_no_percentage(self):
        """Negative-carbon alternatives against a zero-carbon material keep the absolute saving."""
        current = ReferenceMaterial("m-0", "Zero Carbon Board", 0.0)
        timber = ReferenceMaterial("m-1", "CLT Panel", -470.0, alternative_to=("m-0",))
        lib = MaterialLibrary([current, timber])

        suggestions = await StaticLibraryFinder(lib).find({"m-0": current})

        assert len(suggestions) == 1
        assert suggestions[0].savings == 470.0
        assert suggestions[0].savings_percentage is None

    @pytest.mark.asyncio
    async def test_empty_input(self, library):
        assert await StaticLibraryFinder(library).find({}) == []


# ===========================================================================
# Class 2: WebSearchFinder
# ===========================================================================

class TestWebSearchFinder:

    @pytest.mark.asyncio
    async def test_absolute_figures_are_dropped(self, library, make_llm):
        llm = make_llm(search=GroundedCompletion(text=_WEB_ANSWER, grounded=True,
                                                 sources=["https://example.org/ice"]))
        suggestions = await WebSearchFinder(llm).find(_resolved(library, "ICE-CEMENT-001", "WSA-STEEL-001"))
        assert len(suggestions) == 2
        first = suggestions[0]
        assert first.current_carbon is None
        assert first.alternative_carbon is None
        assert first.savings is None
        assert first.savings_percentage == 70

    @pytest.mark.asyncio
    async def test_model_order_is_kept(self, library, make_llm):
        llm = make_llm(search=GroundedCompletion(text=_WEB_ANSWER, grounded=True))
        suggestions = await WebSearchFinder(llm).find(_resolved(library, "ICE-CEMENT-001"))
        assert [s.alternative_material for s in suggestions] == ["Hanson Regen GGBS", "EAF recycled steel"]

    @pytest.mark.asyncio
    async def test_lone_suggestion_uses_grounding_source(self, library, make_llm):
        answer = json.dumps([json.loads(_WEB_ANSWER)[0]])
        llm = make_llm(search=GroundedCompletion(text=answer, grounded=True,
                                                 sources=["https://example.org/ice"]))
        suggestions = await WebSearchFinder(llm).find(_resolved(library, "ICE-CEMENT-001"))
        assert suggestions[0].source == "https://example.org/ice"

    @pytest.mark.asyncio
    async def test_grounding_source_not_spread_across_suggestions(self, library, make_llm):
        llm = make_llm(search=GroundedCompletion(text=_WEB_ANSWER, grounded=True,
                                                 sources=["https://example.org/ice"]))
        suggestions = await WebSearchFinder(llm).find(_resolved(library, "ICE-CEMENT-001"))
        assert suggestions[0].source is None
        assert suggestions[1].source == "https://example.org/eaf-steel"

    @pytest.mark.asyncio
    async def test_ungrounded_answer_is_accepted(self, library, make_llm):
        llm = make_llm(search=GroundedCompletion(text=_WEB_ANSWER))
        suggestions = await WebSearchFinder(llm).find(_resolved(library, "ICE-CEMENT-001"))
        assert suggestions[0].source is None

    @pytest.mark.asyncio
    async def test_no_materials_skips_call(self, make_llm):
        llm = make_llm()
        assert await WebSearchFinder(llm).find({}) == []
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_unparseable_answer_raises(self, library, make_llm):
        llm = make_llm(search=GroundedCompletion(text="I found some great options!"))
        with pytest.raises(LLMResponseParseError):
            await WebSearchFinder(llm).find(_resolved(library, "ICE-CEMENT-001"))


# ===========================================================================
# Class 3: FallbackFinder / build_alternative_finder
# ===========================================================================

class TestFallback:

    @pytest.mark.asyncio
    async def test_search_failure_falls_back_to_static(self, library, make_llm):
        llm = make_llm(search=LLMCallError("Web search call failed: quota"))
        finder = build_alternative_finder(library, llm, web_search=True)
        suggestions = await finder.find(_resolved(library, "ICE-CEMENT-001"))
        assert suggestions[0].savings == 550.0
        assert suggestions[0].source == "ICE Database v3.0"

    @pytest.mark.asyncio
    async def test_parse_failure_falls_back_to_static(self, library, make_llm):
        llm = make_llm(search=GroundedCompletion(text="not json"))
        finder = FallbackFinder(WebSearchFinder(llm), StaticLibraryFinder(library))
        suggestions = await finder.find(_resolved(library, "WSA-STEEL-001"))
        assert [s.alternative_material for s in suggestions] == ["Recycled Steel Sections"]

    @pytest.mark.asyncio
    async def test_empty_web_answer_is_not_a_failure(self, library, make_llm):
        """An empty list from the web path means nothing better was found."""
        llm = make_llm(search=GroundedCompletion(text="[]", grounded=True))
        finder = build_alternative_finder(library, llm, web_search=True)
        assert await finder.find(_resolved(library, "ICE-CEMENT-001")) == []

    def test_web_search_disabled_is_static_only(self, library, make_llm):
        finder = build_alternative_finder(library, make_llm(), web_search=False)
        assert isinstance(finder, StaticLibraryFinder)

    def test_web_search_enabled_wraps_static(self, library, make_llm):
        finder = build_alternative_finder(library, make_llm(), web_search=True)
        assert isinstance(finder, FallbackFinder)
        assert isinstance(finder.primary, WebSearchFinder)
        assert isinstance(finder.fallback, StaticLibraryFinder)
