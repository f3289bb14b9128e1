"""
Reference material library: canonical carbon-intensity entries and the
name/synonym index the resolver and the static alternative finder read from.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger("specbuilder-esg")


@dataclass(frozen=True)
class ReferenceMaterial:
    material_id: str
    name: str
    embodied_carbon: float
    carbon_unit: str = "kgCO2e/tonne"
    cost_impact_text: Optional[str] = None
    modifications_text: Optional[str] = None
    alternative_to: Tuple[str, ...] = ()  # ids of materials this one can replace
    synonyms: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    is_active: bool = True
    organisation_id: Optional[str] = None  # None = global entry
    data_source: str = "ICE Database"

    @classmethod
    def from_orm(cls, row) -> "ReferenceMaterial":
        """Build from an EsgMaterialLibrary row (or any object with the same attributes)."""
        tags_blob = row.nlp_tags or {}
        return cls(
            material_id=str(row.esg_material_id),
            name=row.name,
            embodied_carbon=float(row.embodied_carbon),
            carbon_unit=row.carbon_unit,
            cost_impact_text=row.cost_impact_text,
            modifications_text=row.modifications_text,
            alternative_to=tuple(str(x) for x in (row.alternative_to_ids or [])),
            synonyms=tuple(tags_blob.get("synonyms") or []),
            tags=tuple(tags_blob.get("tags") or []),
            is_active=bool(row.is_active),
            organisation_id=str(row.organisation_id) if row.organisation_id else None,
            data_source=row.data_source or "ICE Database",
        )


def _norm(value: str) -> str:
    return (value or "").strip().lower()


class MaterialLibrary:
    """
    Read-only, in-memory view over the active reference materials for one run.

    Matching order for a free-text name:
      1. exact case-insensitive name equality
      2. exact case-insensitive synonym membership
      3. substring overlap with any synonym, in either direction
    The first material hit in library order wins.
    """

    def __init__(self, materials: Iterable[ReferenceMaterial]):
        self._materials: List[ReferenceMaterial] = [m for m in materials if m.is_active]
        self._by_id: Dict[str, ReferenceMaterial] = {m.material_id: m for m in self._materials}
        # Reverse index: superseded id -> materials that list it in alternative_to
        self._replacements: Dict[str, List[ReferenceMaterial]] = {}
        for material in self._materials:
            for superseded_id in material.alternative_to:
                self._replacements.setdefault(superseded_id, []).append(material)

    def __len__(self) -> int:
        return len(self._materials)

    def __iter__(self):
        return iter(self._materials)

    def __contains__(self, material_id: str) -> bool:
        return material_id in self._by_id

    def get(self, material_id: Optional[str]) -> Optional[ReferenceMaterial]:
        if not material_id:
            return None
        return self._by_id.get(str(material_id))

    def match(self, mention: str) -> Optional[ReferenceMaterial]:
        """Resolve a free-text material name to a library entry, or None."""
        needle = _norm(mention)
        if not needle:
            return None

        for material in self._materials:
            if _norm(material.name) == needle:
                return material

        for material in self._materials:
            if any(_norm(s) == needle for s in material.synonyms):
                return material

        for material in self._materials:
            for synonym in material.synonyms:
                hay = _norm(synonym)
                if hay and (needle in hay or hay in needle):
                    return material
        return None

    def alternatives_for(self, material_id: str) -> List[ReferenceMaterial]:
        """Materials recorded as able to replace ``material_id`` (library order)."""
        return list(self._replacements.get(str(material_id), []))

    def search(self, query: str) -> List[ReferenceMaterial]:
        """Case-insensitive containment search over name, synonyms and tags."""
        needle = _norm(query)
        if not needle:
            return list(self._materials)
        hits = []
        for material in self._materials:
            haystack = [material.name, *material.synonyms, *material.tags]
            if any(needle in _norm(h) for h in haystack):
                hits.append(material)
        return hits
