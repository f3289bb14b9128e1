"""Content extraction: project clauses -> directly selected products + plain specification text."""
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from specbuilder.agents.config import PRODUCT_SELECTION_KEYS
from specbuilder.exceptions import ContentExtractionError
from specbuilder.services.repository import ClauseRecord

logger = logging.getLogger("specbuilder-esg")

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([A-Za-z0-9_.-]+)\s*\}\}")


@dataclass
class SelectedProduct:
    product_id: str
    product_name: str
    manufacturer: str
    esg_material_id: Optional[str] = None


@dataclass
class ExtractedContent:
    text: str = ""
    products: List[SelectedProduct] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.text.strip() and not self.products


def _field_text(value) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def render_template(template: str, field_values: dict) -> str:
    """
    Fill ``{{key}}`` placeholders from field_values.
    Null values leave the placeholder as-is; product-selection keys are blanked.
    """
    def _sub(match: re.Match) -> str:
        key = match.group(1)
        if key in PRODUCT_SELECTION_KEYS:
            return ""
        if key not in field_values or field_values[key] is None:
            return match.group(0)
        return _field_text(field_values[key])

    return PLACEHOLDER_PATTERN.sub(_sub, template or "")


def render_clause(clause: ClauseRecord) -> str:
    """Clause text for the extraction prompt, or "" when the clause carries no prose."""
    if clause.is_hybrid:
        body = render_template(clause.body_template, clause.field_values).strip()
        if not body:
            return ""
        return f"--- CLAUSE {clause.caws_number} ---\n\nTitle: {clause.short_title}\n\n{body}"
    body = (clause.freeform_body or "").strip()
    if not body:
        return ""
    return f"--- CLAUSE {clause.caws_number} ---\n\n{body}"


class ContentExtractor:
    """Walks a project's active clauses in sort order. Read-only."""

    def __init__(self, repo):
        self.repo = repo

    async def extract(self, project_id: str) -> ExtractedContent:
        try:
            clauses = await self.repo.fetch_project_clauses(project_id)
        except SQLAlchemyError as e:
            logger.error(f"Clause fetch failed for project {project_id}: {e}", extra={"project_id": project_id})
            raise ContentExtractionError("Failed to fetch project clauses") from e

        if not clauses:
            logger.info("No clauses found for project", extra={"project_id": project_id, "stage": "extract_content"})
            return ExtractedContent()

        parts: List[str] = []
        products: List[SelectedProduct] = []
        for clause in clauses:
            product_id = (clause.field_values or {}).get("selected_product_id")
            if clause.is_hybrid and product_id:
                product = await self._selected_product(str(product_id), clause)
                if product is not None:
                    products.append(product)

            rendered = render_clause(clause)
            if rendered:
                parts.append(rendered)

        text = "\n\n".join(parts)
        logger.info(
            f"Extracted {len(clauses)} clauses: {len(text)} chars of text, {len(products)} linked products",
            extra={"project_id": project_id, "stage": "extract_content"},
        )
        return ExtractedContent(text=text, products=products)

    async def _selected_product(self, product_id: str, clause: ClauseRecord) -> Optional[SelectedProduct]:
        try:
            product = await self.repo.fetch_product(product_id)
        except SQLAlchemyError as e:
            raise ContentExtractionError(f"Failed to fetch product {product_id}") from e

        if product is None:
            logger.warning(f"Clause {clause.caws_number}: selected product {product_id} not found")
            return None
        if not product.esg_material_id:
            logger.info(f"Clause {clause.caws_number}: product '{product.product_name}' has no ESG material link")
            return None
        return SelectedProduct(
            product_id=product.product_id,
            product_name=product.product_name,
            manufacturer=product.manufacturer,
            esg_material_id=product.esg_material_id,
        )
