"""
Material resolution.

Path A: selected products -> library entries by their esg_material_id foreign key.
Path B: extraction call on the specification text -> fuzzy match of each mention
        against the library's names and synonyms.
Both paths feed one dict keyed by material id, so a material reached twice appears once.
"""
import logging
from typing import Dict, List

from specbuilder.models.esg_schema import ExtractionResult
from specbuilder.services.content_extractor import ExtractedContent, SelectedProduct
from specbuilder.services.llm_json import parse_typed
from specbuilder.services.material_library import MaterialLibrary, ReferenceMaterial
from specbuilder.services.prompts import build_extraction_messages

logger = logging.getLogger("specbuilder-esg")

ResolvedMaterials = Dict[str, ReferenceMaterial]


class MaterialResolver:
    def __init__(self, library: MaterialLibrary, llm):
        self.library = library
        self.llm = llm

    async def resolve(self, content: ExtractedContent) -> ResolvedMaterials:
        resolved: ResolvedMaterials = {}
        resolved.update(self.resolve_products(content.products))
        if content.text.strip():
            resolved.update(await self.resolve_text(content.text))
        logger.info(f"Resolved {len(resolved)} distinct materials", extra={"stage": "resolve_materials"})
        return resolved

    def resolve_products(self, products: List[SelectedProduct]) -> ResolvedMaterials:
        matched: ResolvedMaterials = {}
        for product in products:
            if not product.esg_material_id:
                continue
            material = self.library.get(product.esg_material_id)
            if material is None:
                logger.warning(
                    f"Product '{product.product_name}' links to material {product.esg_material_id}, "
                    f"which is not in the active library"
                )
                continue
            matched[material.material_id] = material
        logger.info(f"Path A: {len(matched)} of {len(products)} products linked", extra={"stage": "resolve_materials"})
        return matched

    async def resolve_text(self, text: str) -> ResolvedMaterials:
        raw = await self.llm.chat(build_extraction_messages(text), model=self.llm.extraction_model)
        mentions = parse_typed(raw, ExtractionResult, "material extraction")
        logger.info(f"Path B: model returned {len(mentions)} mentions", extra={"stage": "resolve_materials"})

        matched: ResolvedMaterials = {}
        for mention in mentions:
            material = self.library.match(mention.material)
            if material is None:
                logger.info(f'No match found for "{mention.material}"')
                continue
            logger.info(f'Linked "{mention.material}" to "{material.name}"')
            matched[material.material_id] = material
        return matched
