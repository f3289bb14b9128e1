"""
LangGraph State Graph for the ESG analysis pipeline.

Stage order:
  extract_content → resolve_materials → find_alternatives → synthesize_report → persist_report

A stage that hits a soft outcome (no content, no materials, already optimized)
sets state["outcome"] and the graph jumps straight to persist_report, which
writes the fixed explanatory report instead of a synthesized one.

Stages do not catch exceptions: any error ends the run and the orchestrator
marks the job failed.
"""
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from langgraph.graph import StateGraph, END

from specbuilder.agents.config import (
    COMPLETED_MESSAGE, OUTCOME_ALREADY_OPTIMIZED, OUTCOME_NO_CONTENT, OUTCOME_NO_MATERIALS,
    SOFT_OUTCOMES, STAGE_ORDER, STAGE_PROGRESS,
)
from specbuilder.agents.graph_state import AnalysisState
from specbuilder.services.alternative_finder import AlternativeFinder
from specbuilder.services.content_extractor import ContentExtractor
from specbuilder.services.material_resolver import MaterialResolver
from specbuilder.services.report_synthesizer import ReportSynthesizer

logger = logging.getLogger("specbuilder-esg")

StageImpl = Callable[[AnalysisState], Awaitable[AnalysisState]]


@dataclass
class PipelineDependencies:
    extractor: ContentExtractor
    resolver: MaterialResolver
    finder: AlternativeFinder
    synthesizer: ReportSynthesizer
    repo: object  # PrivilegedRepository


# ── Stage factory ──────────────────────────────────────────────────────────────

def make_stage(name: str, impl: StageImpl):
    """Wrap a stage implementation with progress tracking and timing logs."""
    progress = STAGE_PROGRESS[name]

    async def stage(state: AnalysisState) -> AnalysisState:
        state["current_stage"] = name
        state["progress_pct"] = progress
        log_extra = {"job_id": state.get("job_id"), "project_id": state.get("project_id"), "stage": name}
        logger.info(f"Entering {name} ({progress}%)", extra=log_extra)

        started = time.perf_counter()
        state = await impl(state)
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.info(f"{name} finished", extra={**log_extra, "duration_ms": duration_ms})
        return state

    stage.__name__ = name
    return stage


def next_stage_or_persist(next_stage: str):
    """Conditional edge: skip to persist_report once a soft outcome is set."""
    def route(state: AnalysisState) -> str:
        if state.get("outcome"):
            return "persist_report"
        return next_stage

    return route


# ── Graph construction ─────────────────────────────────────────────────────────

def build_analysis_graph(deps: PipelineDependencies):
    async def _extract(state: AnalysisState) -> AnalysisState:
        content = await deps.extractor.extract(state["project_id"])
        state["content"] = content
        if content.is_empty:
            state["outcome"] = OUTCOME_NO_CONTENT
        return state

    async def _resolve(state: AnalysisState) -> AnalysisState:
        resolved = await deps.resolver.resolve(state["content"])
        state["resolved"] = resolved
        if not resolved:
            state["outcome"] = OUTCOME_NO_MATERIALS
        return state

    async def _find(state: AnalysisState) -> AnalysisState:
        suggestions = await deps.finder.find(state["resolved"])
        state["suggestions"] = suggestions
        if not suggestions:
            state["outcome"] = OUTCOME_ALREADY_OPTIMIZED
        return state

    async def _synthesize(state: AnalysisState) -> AnalysisState:
        result = await deps.synthesizer.synthesize(state["project_name"], state["suggestions"])
        state["report_title"] = result.title
        state["report_narrative"] = result.narrative
        return state

    async def _persist(state: AnalysisState) -> AnalysisState:
        outcome = state.get("outcome")
        if outcome:
            copy = SOFT_OUTCOMES[outcome]
            title, narrative, message = copy["title"], copy["narrative"], copy["message"]
        else:
            title, narrative, message = state["report_title"], state["report_narrative"], COMPLETED_MESSAGE
        state["suggestion_id"] = await deps.repo.replace_project_report(state["project_id"], title, narrative)
        state["message"] = message
        return state

    impls = {
        "extract_content": _extract,
        "resolve_materials": _resolve,
        "find_alternatives": _find,
        "synthesize_report": _synthesize,
        "persist_report": _persist,
    }

    graph = StateGraph(AnalysisState)
    for name in STAGE_ORDER:
        graph.add_node(name, make_stage(name, impls[name]))

    graph.set_entry_point("extract_content")
    for current, following in zip(STAGE_ORDER[:-2], STAGE_ORDER[1:-1]):
        graph.add_conditional_edges(
            current,
            next_stage_or_persist(following),
            {following: following, "persist_report": "persist_report"},
        )
    graph.add_edge("synthesize_report", "persist_report")
    graph.add_edge("persist_report", END)

    return graph.compile()
