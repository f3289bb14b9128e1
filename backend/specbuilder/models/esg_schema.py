"""
Typed shapes for every generative-text call site in the ESG pipeline.

Each call site parses the raw model answer into exactly one of these models
(see services.llm_json.parse_typed). Wire format is camelCase, attributes are snake_case.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, RootModel, field_validator
from pydantic.alias_generators import to_camel

MAX_TOP_RECOMMENDATIONS = 3


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _blank_if_none(value):
    return "" if value is None else value


# ── Extraction call ───────────────────────────────────────────────────────────
class ExtractedMaterialMention(_WireModel):
    """One material mention pulled out of specification prose. Never persisted."""
    material: str = Field(..., min_length=1, description="Canonical material name, e.g. Portland Cement (CEM I)")
    quantity: str = Field("", description="Quantity as written, e.g. 10 tonnes")
    context: str = Field("", description="One sentence of context from the spec")

    @field_validator("quantity", "context", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else str(value)


class ExtractionResult(RootModel[List[ExtractedMaterialMention]]):
    """Answer of the material-extraction call: a JSON array of mentions."""

    def __iter__(self):
        return iter(self.root)

    def __len__(self):
        return len(self.root)


# ── Alternative search call / static finder output ───────────────────────────
class SubstitutionSuggestion(_WireModel):
    """
    One recommended swap.

    Carbon figures and absolute savings are None when the suggestion came from
    live web search, which reports percentages only.
    """
    current_material: str
    current_carbon: Optional[float] = None
    alternative_material: str
    alternative_carbon: Optional[float] = None
    savings: Optional[float] = None
    savings_percentage: Optional[float] = None
    cost_impact: str = "Unknown"
    modifications: str = "None"
    source: Optional[str] = None
    availability: Optional[str] = None

    @field_validator("cost_impact", "modifications", mode="before")
    @classmethod
    def _default_text(cls, value, info):
        if value is None or (isinstance(value, str) and not value.strip()):
            return "Unknown" if info.field_name == "cost_impact" else "None"
        return value


class AlternativeSearchResult(RootModel[List[SubstitutionSuggestion]]):
    """Answer of the web-search-grounded alternative call: a JSON array."""

    def __iter__(self):
        return iter(self.root)

    def __len__(self):
        return len(self.root)


# ── Report synthesis call ─────────────────────────────────────────────────────
class Recommendation(_WireModel):
    title: str
    description: str = ""
    savings: str = ""
    cost_impact: str = ""
    source: Optional[str] = None

    blank_text = field_validator("description", "savings", "cost_impact", mode="before")(_blank_if_none)


class Opportunity(_WireModel):
    title: str
    savings: str = ""

    blank_text = field_validator("savings", mode="before")(_blank_if_none)


class ESGReport(_WireModel):
    """Structured report returned by the synthesis call."""
    title: Optional[str] = None
    summary: str = ""
    top_recommendations: List[Recommendation] = Field(default_factory=list)
    additional_opportunities: List[Opportunity] = Field(default_factory=list)

    blank_text = field_validator("summary", mode="before")(_blank_if_none)

    @field_validator("top_recommendations")
    @classmethod
    def _cap_recommendations(cls, value: List[Recommendation]) -> List[Recommendation]:
        return value[:MAX_TOP_RECOMMENDATIONS]
