"""Report synthesis: ranked suggestions -> structured ESGReport -> markdown narrative."""
import logging
from dataclasses import dataclass
from typing import List

from specbuilder.models.esg_schema import ESGReport, SubstitutionSuggestion
from specbuilder.services.llm_json import parse_typed
from specbuilder.services.prompts import build_report_messages

logger = logging.getLogger("specbuilder-esg")


@dataclass
class SynthesizedReport:
    report: ESGReport
    title: str
    narrative: str


def carbon_totals(suggestions: List[SubstitutionSuggestion]) -> tuple:
    """(total current carbon, total potential savings) over suggestions with known figures."""
    known = [s for s in suggestions if s.current_carbon is not None and s.savings is not None]
    return (
        sum(s.current_carbon for s in known),
        sum(s.savings for s in known),
    )


def render_narrative(report: ESGReport, title: str) -> str:
    narrative = f"# {title}\n\n"
    if report.summary:
        narrative += f"{report.summary}\n\n"

    if report.top_recommendations:
        narrative += "## Top Recommendations\n\n"
        for i, rec in enumerate(report.top_recommendations, start=1):
            narrative += f"### {i}. {rec.title}\n\n"
            if rec.description:
                narrative += f"{rec.description}\n\n"
            narrative += f"**Savings:** {rec.savings}\n\n"
            narrative += f"**Cost Impact:** {rec.cost_impact}\n\n"
            if rec.source:
                narrative += f"**Source:** {rec.source}\n\n"
            narrative += "---\n\n"

    if report.additional_opportunities:
        narrative += "## Additional Opportunities\n\n"
        for opp in report.additional_opportunities:
            narrative += f"- {opp.title} ({opp.savings})\n" if opp.savings else f"- {opp.title}\n"
        narrative += "\n"

    return narrative.rstrip() + "\n"


class ReportSynthesizer:
    def __init__(self, llm):
        self.llm = llm

    async def synthesize(self, project_name: str, suggestions: List[SubstitutionSuggestion]) -> SynthesizedReport:
        total_current, total_savings = carbon_totals(suggestions)
        messages = build_report_messages(project_name, suggestions, total_current, total_savings)
        raw = await self.llm.chat(messages, model=self.llm.report_model, temperature=0.3)
        report = parse_typed(raw, ESGReport, "report synthesis")

        title = (report.title or "").strip() or f"ESG Analysis: {project_name}"
        logger.info(
            f"Report synthesized: {len(report.top_recommendations)} recommendations, "
            f"{len(report.additional_opportunities)} additional opportunities",
            extra={"stage": "synthesize_report"},
        )
        return SynthesizedReport(report=report, title=title, narrative=render_narrative(report, title))
