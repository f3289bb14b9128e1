"""
ESG analysis pipeline configuration: single source of truth for stage ordering,
job/suggestion statuses and the fixed copy of the soft-outcome reports.

Import from here in all stages and services rather than hardcoding values.
"""
from __future__ import annotations

import os

# ── Stage execution order ──────────────────────────────────────────────────────
# Actual wiring is in esg_graph.build_analysis_graph().
STAGE_ORDER: list[str] = [
    "extract_content",
    "resolve_materials",
    "find_alternatives",
    "synthesize_report",
    "persist_report",
]

STAGE_PROGRESS: dict[str, int] = {
    "extract_content":   10,
    "resolve_materials": 35,
    "find_alternatives": 60,
    "synthesize_report": 80,
    "persist_report":    95,
}


# ── Job state machine ──────────────────────────────────────────────────────────
JOB_QUEUED = "queued"
JOB_RUNNING = "running"
JOB_COMPLETE = "complete"
JOB_FAILED = "failed"

JOB_STATUSES: tuple[str, ...] = (JOB_QUEUED, JOB_RUNNING, JOB_COMPLETE, JOB_FAILED)
IN_FLIGHT_STATUSES: tuple[str, ...] = (JOB_QUEUED, JOB_RUNNING)
TERMINAL_STATUSES: tuple[str, ...] = (JOB_COMPLETE, JOB_FAILED)

CANCELLED_MESSAGE = "Cancelled by user"

STATUS_MESSAGES: dict[str, str] = {
    JOB_QUEUED:   "Analysis queued...",
    JOB_RUNNING:  "Analyzing your specification...",
    JOB_COMPLETE: "Analysis complete",
}
NO_JOB_MESSAGE = "No analysis has been run yet"


# ── Suggestion review states ───────────────────────────────────────────────────
SUGGESTION_STATUSES: tuple[str, ...] = ("new", "seen", "dismissed")


# ── Library scope ──────────────────────────────────────────────────────────────
# "global": organisation-less entries only. "tenant": also the project organisation's entries.
LIBRARY_SCOPE = os.getenv("ESG_LIBRARY_SCOPE", "global").lower()

# Product-selection keys inside project_clause.field_values
PRODUCT_SELECTION_KEYS: frozenset[str] = frozenset({"selected_product_id"})


# ── Soft outcomes (complete with an explanatory report, never failed) ─────────
OUTCOME_NO_CONTENT = "no_content"
OUTCOME_NO_MATERIALS = "no_materials"
OUTCOME_ALREADY_OPTIMIZED = "already_optimized"

SOFT_OUTCOMES: dict[str, dict[str, str]] = {
    OUTCOME_NO_CONTENT: {
        "title": "ESG Analysis: No Content",
        "narrative": (
            "# No Content Found\n\n"
            "This project does not have any clauses with material specifications yet. "
            "Add some clauses to your specification to receive ESG recommendations."
        ),
        "message": "Analysis complete (no content)",
    },
    OUTCOME_NO_MATERIALS: {
        "title": "ESG Analysis: No Materials Found",
        "narrative": (
            "# No Recognized Materials Found\n\n"
            "The AI could not identify any construction materials in your specification that match "
            "our ESG database. This could be because:\n\n"
            "- The specification uses non-standard material names\n"
            "- The materials are very specialized\n"
            "- The specification is still in early draft stages\n\n"
            'Try adding more specific material specifications (e.g., "Portland Cement", '
            '"facing bricks", "structural steel") to receive ESG recommendations.'
        ),
        "message": "Analysis complete (no materials found)",
    },
    OUTCOME_ALREADY_OPTIMIZED: {
        "title": "ESG Analysis: Already Optimized",
        "narrative": (
            "# Great News! Your specification is already optimized\n\n"
            "The AI has analyzed your specification and found that you are already specifying "
            "the lowest-carbon materials available in our database.\n\n"
            "Keep up the good work on sustainable construction!"
        ),
        "message": "Analysis complete (already optimized)",
    },
}

COMPLETED_MESSAGE = "Analysis completed successfully"
DEFAULT_PROJECT_NAME = "Untitled Project"
