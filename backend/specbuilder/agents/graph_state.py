"""
LangGraph state for the ESG analysis pipeline.

Every stage reads and writes this TypedDict. Nothing in it is persisted: each job
run recomputes from scratch and only the final report row is written.
"""
from typing import Dict, List, Optional, TypedDict

from specbuilder.models.esg_schema import SubstitutionSuggestion
from specbuilder.services.content_extractor import ExtractedContent
from specbuilder.services.material_library import ReferenceMaterial


class AnalysisState(TypedDict, total=False):
    # ── Identity ──────────────────────────────────────────────────────────────
    job_id: str
    project_id: str
    project_name: str

    # ── Progress ──────────────────────────────────────────────────────────────
    current_stage: str
    progress_pct: int                               # 0–100

    # ── Partial results ───────────────────────────────────────────────────────
    content: ExtractedContent                       # extract_content
    resolved: Dict[str, ReferenceMaterial]          # resolve_materials (keyed by material id)
    suggestions: List[SubstitutionSuggestion]       # find_alternatives
    report_title: str                               # synthesize_report
    report_narrative: str

    # ── Outcome ───────────────────────────────────────────────────────────────
    outcome: Optional[str]                          # soft outcome key, None for a full report
    message: str
    suggestion_id: str
