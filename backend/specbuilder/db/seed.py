"""
Global ESG reference material library seed.
Figures from ICE Database v3.0, WRAP, World Steel Association and the Concrete Centre.
Idempotent: rows are keyed on external_id and existing rows are left untouched.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from specbuilder.models.orm_models import EsgMaterialLibrary, gen_uuid

logger = logging.getLogger("specbuilder-db")

STANDARD_MATERIAL_NOTE = "No modifications required - standard material"

# alternative_to lists external_ids; entries must appear after the materials they replace
GLOBAL_MATERIALS = [
    {
        "external_id": "ICE-CEMENT-001",
        "name": "Portland Cement (CEM I)",
        "data_source": "ICE Database v3.0",
        "embodied_carbon": 820.00,
        "carbon_unit": "kgCO2e/tonne",
        "cost_impact_text": "Standard cost",
        "modifications_text": STANDARD_MATERIAL_NOTE,
        "alternative_to": [],
        "synonyms": ["OPC Cement", "CEM I", "Portland Cement", "Ordinary Portland Cement"],
        "tags": ["cement", "concrete", "binder"],
    },
    {
        "external_id": "ICE-CEMENT-002",
        "name": "Ground Granulated Blast-furnace Slag Cement (CEM III/A)",
        "data_source": "ICE Database v3.0",
        "embodied_carbon": 270.00,
        "carbon_unit": "kgCO2e/tonne",
        "cost_impact_text": "5-10% cost increase",
        "modifications_text": "Requires careful curing in cold weather. May require extended curing times.",
        "alternative_to": ["ICE-CEMENT-001"],
        "synonyms": ["GGBS", "GGBS Cement", "CEM III/A", "Slag Cement", "Ground Granulated Blast Furnace Slag"],
        "tags": ["cement", "concrete", "binder", "low-carbon"],
    },
    {
        "external_id": "ICE-CEMENT-003",
        "name": "Pulverised Fuel Ash Cement (CEM II/B-V)",
        "data_source": "ICE Database v3.0",
        "embodied_carbon": 510.00,
        "carbon_unit": "kgCO2e/tonne",
        "cost_impact_text": "3-8% cost increase",
        "modifications_text": "May require adjustments to mix design. Consider strength development time.",
        "alternative_to": ["ICE-CEMENT-001"],
        "synonyms": ["PFA", "PFA Cement", "CEM II/B-V", "Fly Ash Cement", "Pulverised Fuel Ash"],
        "tags": ["cement", "concrete", "binder", "low-carbon"],
    },
    {
        "external_id": "ICE-BRICK-001",
        "name": "Standard Facing Bricks",
        "data_source": "ICE Database v3.0",
        "embodied_carbon": 230.00,
        "carbon_unit": "kgCO2e/1000 bricks",
        "cost_impact_text": "Standard cost",
        "modifications_text": STANDARD_MATERIAL_NOTE,
        "alternative_to": [],
        "synonyms": ["facing bricks", "clay bricks", "standard bricks", "brick", "facing brick"],
        "tags": ["bricks", "masonry", "walling"],
    },
    {
        "external_id": "WRAP-BRICK-001",
        "name": "Reclaimed Facing Bricks",
        "data_source": "WRAP Embodied Carbon Database",
        "embodied_carbon": 25.00,
        "carbon_unit": "kgCO2e/1000 bricks",
        "cost_impact_text": "15-25% cost increase (subject to availability)",
        "modifications_text": "Requires structural assessment for load-bearing applications. Visual variation expected.",
        "alternative_to": ["ICE-BRICK-001"],
        "synonyms": ["reclaimed bricks", "salvaged bricks", "recycled bricks", "second-hand bricks", "used bricks"],
        "tags": ["bricks", "masonry", "walling", "recycled", "low-carbon"],
    },
    {
        "external_id": "ICE-TIMBER-001",
        "name": "Softwood Timber (Structural)",
        "data_source": "ICE Database v3.0",
        "embodied_carbon": -470.00,
        "carbon_unit": "kgCO2e/m3",
        "cost_impact_text": "Standard cost",
        "modifications_text": "Ensure timber is from certified sustainable sources (FSC/PEFC)",
        "alternative_to": [],
        "synonyms": ["softwood", "structural timber", "timber", "wood", "construction timber"],
        "tags": ["timber", "wood", "structural", "carbon-negative"],
    },
    {
        "external_id": "WSA-STEEL-001",
        "name": "Virgin Steel Sections",
        "data_source": "World Steel Association",
        "embodied_carbon": 2100.00,
        "carbon_unit": "kgCO2e/tonne",
        "cost_impact_text": "Standard cost",
        "modifications_text": STANDARD_MATERIAL_NOTE,
        "alternative_to": [],
        "synonyms": ["steel", "structural steel", "virgin steel", "steel sections", "steel beams"],
        "tags": ["steel", "structural", "metal"],
    },
    {
        "external_id": "WSA-STEEL-002",
        "name": "Recycled Steel Sections",
        "data_source": "World Steel Association",
        "embodied_carbon": 630.00,
        "carbon_unit": "kgCO2e/tonne",
        "cost_impact_text": "Competitive with virgin steel",
        "modifications_text": "May require verification of structural properties. Consider lead times.",
        "alternative_to": ["WSA-STEEL-001"],
        "synonyms": ["recycled steel", "scrap steel", "reused steel", "secondary steel"],
        "tags": ["steel", "structural", "metal", "recycled", "low-carbon"],
    },
    {
        "external_id": "CC-CONC-001",
        "name": "Standard Concrete C30/37",
        "data_source": "Concrete Centre",
        "embodied_carbon": 180.00,
        "carbon_unit": "kgCO2e/m3",
        "cost_impact_text": "Standard cost",
        "modifications_text": STANDARD_MATERIAL_NOTE,
        "alternative_to": [],
        "synonyms": ["concrete", "standard concrete", "C30/37", "ready-mix concrete"],
        "tags": ["concrete", "structural"],
    },
    {
        "external_id": "CC-CONC-002",
        "name": "Low Carbon Concrete C30/37 (GGBS blend)",
        "data_source": "Concrete Centre",
        "embodied_carbon": 110.00,
        "carbon_unit": "kgCO2e/m3",
        "cost_impact_text": "5-8% cost increase",
        "modifications_text": "Extended curing required in cold weather. Specify minimum cement replacement levels.",
        "alternative_to": ["CC-CONC-001"],
        "synonyms": ["low carbon concrete", "GGBS concrete", "eco concrete", "green concrete"],
        "tags": ["concrete", "structural", "low-carbon"],
    },
]


async def seed_material_library(session: AsyncSession) -> int:
    """Insert any GLOBAL_MATERIALS rows not yet present. Returns the number inserted. Caller commits."""
    result = await session.execute(
        select(EsgMaterialLibrary.external_id, EsgMaterialLibrary.esg_material_id)
        .where(EsgMaterialLibrary.external_id.is_not(None))
    )
    ids_by_external = {ext: mid for ext, mid in result.all()}

    inserted = 0
    for entry in GLOBAL_MATERIALS:
        if entry["external_id"] in ids_by_external:
            continue
        material_id = gen_uuid()
        alternative_to_ids = []
        for ext in entry["alternative_to"]:
            if ext in ids_by_external:
                alternative_to_ids.append(str(ids_by_external[ext]))
            else:
                logger.warning(f"Seed: {entry['external_id']} replaces unknown material {ext}")
        session.add(EsgMaterialLibrary(
            esg_material_id=material_id,
            organisation_id=None,
            name=entry["name"],
            data_source=entry["data_source"],
            external_id=entry["external_id"],
            embodied_carbon=entry["embodied_carbon"],
            carbon_unit=entry["carbon_unit"],
            cost_impact_text=entry["cost_impact_text"],
            modifications_text=entry["modifications_text"],
            alternative_to_ids=alternative_to_ids,
            nlp_tags={"synonyms": entry["synonyms"], "tags": entry["tags"]},
            is_active=True,
        ))
        ids_by_external[entry["external_id"]] = material_id
        inserted += 1

    if inserted:
        await session.flush()
    return inserted
