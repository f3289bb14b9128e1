"""
test_material_resolver.py — Unit tests for specbuilder.services.material_resolver.

Tests cover:
  - Path A: selected products resolved through their material foreign key
  - Path B: extraction answer fuzzy-matched against the library
  - Merge / de-duplication of both paths
  - Extraction call skipped for empty text
  - Malformed extraction answers propagate as LLMResponseParseError
"""

import json

import pytest

from specbuilder.exceptions import LLMResponseParseError
from specbuilder.services.content_extractor import ExtractedContent, SelectedProduct
from specbuilder.services.material_resolver import MaterialResolver


def _mentions(*names) -> str:
    return json.dumps([{"material": n, "quantity": "", "context": ""} for n in names])


def _product(material_id, name="Product"):
    return SelectedProduct(product_id=f"p-{name}", product_name=name, manufacturer="Acme",
                           esg_material_id=material_id)


# ===========================================================================
# Class 1: Path A
# ===========================================================================

class TestResolveProducts:

    def test_linked_products_resolve(self, library, make_llm):
        resolver = MaterialResolver(library, make_llm())
        resolved = resolver.resolve_products([_product("ICE-CEMENT-001"), _product("WSA-STEEL-001")])
        assert set(resolved) == {"ICE-CEMENT-001", "WSA-STEEL-001"}

    def test_link_outside_active_library_is_skipped(self, library, make_llm):
        resolved = MaterialResolver(library, make_llm()).resolve_products([_product("RETIRED-9")])
        assert resolved == {}

    def test_unlinked_product_is_skipped(self, library, make_llm):
        resolved = MaterialResolver(library, make_llm()).resolve_products([_product(None)])
        assert resolved == {}


# ===========================================================================
# Class 2: Path B and the merged result
# ===========================================================================

class TestResolve:

    @pytest.mark.asyncio
    async def test_text_mentions_are_matched(self, library, make_llm):
        llm = make_llm(extraction=_mentions("OPC", "structural steel", "Unobtainium"))
        resolved = await MaterialResolver(library, llm).resolve(ExtractedContent(text="spec text"))
        assert set(resolved) == {"ICE-CEMENT-001", "WSA-STEEL-001"}
        assert len(llm.calls_to(llm.extraction_model)) == 1

    @pytest.mark.asyncio
    async def test_both_paths_deduplicate(self, library, make_llm):
        llm = make_llm(extraction=_mentions("Portland Cement", "CEM I"))
        content = ExtractedContent(text="spec text", products=[_product("ICE-CEMENT-001")])
        resolved = await MaterialResolver(library, llm).resolve(content)
        assert list(resolved) == ["ICE-CEMENT-001"]

    @pytest.mark.asyncio
    async def test_products_only_skips_extraction_call(self, library, make_llm):
        llm = make_llm()
        content = ExtractedContent(text="", products=[_product("ICE-BRICK-001")])
        resolved = await MaterialResolver(library, llm).resolve(content)
        assert list(resolved) == ["ICE-BRICK-001"]
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_nothing_recognised(self, library, make_llm):
        llm = make_llm(extraction="[]")
        resolved = await MaterialResolver(library, llm).resolve(ExtractedContent(text="Scope of works"))
        assert resolved == {}

    @pytest.mark.asyncio
    async def test_malformed_answer_propagates(self, library, make_llm):
        llm = make_llm(extraction="Sure! The materials are cement and steel.")
        with pytest.raises(LLMResponseParseError) as exc_info:
            await MaterialResolver(library, llm).resolve(ExtractedContent(text="spec text"))
        assert exc_info.value.call_site == "material extraction"
