"""Prompt builders for the three generative-text call sites of the ESG pipeline."""
import json
from typing import List, Optional

from specbuilder.models.esg_schema import MAX_TOP_RECOMMENDATIONS, SubstitutionSuggestion
from specbuilder.services.llm_client import get_system_prompt
from specbuilder.services.material_library import ReferenceMaterial

TOP_SUGGESTIONS_IN_PROMPT = 5


def _fmt(value: Optional[float], digits: int = 2) -> str:
    return "n/a" if value is None else f"{value:.{digits}f}"


# ─── Extraction ───────────────────────────────────────────────────────────────

def build_extraction_messages(text: str) -> list:
    prompt = f"""Your task is to extract ALL specified construction materials from the following specification text.

INSTRUCTIONS:
1. Read through the entire text carefully
2. Identify all construction materials mentioned (cement, concrete, bricks, steel, timber, glass, etc.)
3. Extract the material name and any specified quantities
4. Normalize material names to standard terminology (e.g., "OPC" -> "Portland Cement (CEM I)")
5. Return ONLY a JSON array with no additional text or explanation

OUTPUT FORMAT (JSON only):
[
  {{
    "material": "Portland Cement (CEM I)",
    "quantity": "10 tonnes",
    "context": "Brief context from spec (1 sentence)"
  }}
]

SPECIFICATION TEXT:
{text}

IMPORTANT: Return ONLY the JSON array. Do not include any explanatory text, markdown formatting, or code blocks."""
    return [
        {"role": "system", "content": get_system_prompt("materials_analyst")},
        {"role": "user", "content": prompt},
    ]


# ─── Alternative search ──────────────────────────────────────────────────────

def build_alternative_search_messages(materials: List[ReferenceMaterial]) -> list:
    listing = "\n".join(
        f"- {m.name} ({m.embodied_carbon:g} {m.carbon_unit})" for m in materials
    )
    prompt = f"""The following construction materials are specified in a UK project:

{listing}

Use live web search to find real, currently available alternatives with GENUINELY lower embodied carbon
for each material. Only suggest a swap when the alternative is a true reduction for the same use.

RULES:
- Report savings as a percentage reduction only. Never state absolute carbon figures you cannot source.
- Cite a source (publisher or URL) for each suggestion.
- Add a short availability note (UK supply, lead times, typical suppliers).
- If a material has no credible lower-carbon alternative, omit it.

OUTPUT FORMAT (JSON array only):
[
  {{
    "currentMaterial": "Portland Cement (CEM I)",
    "alternativeMaterial": "GGBS Cement (CEM III/A)",
    "savingsPercentage": 60,
    "costImpact": "Similar cost",
    "modifications": "Slower early strength gain",
    "source": "https://...",
    "availability": "Widely available from UK ready-mix suppliers"
  }}
]

IMPORTANT: Return ONLY the JSON array. Return [] if there are no genuine alternatives."""
    return [
        {"role": "system", "content": get_system_prompt("sustainability_researcher")},
        {"role": "user", "content": prompt},
    ]


# ─── Report synthesis ─────────────────────────────────────────────────────────

def build_report_messages(
    project_name: str,
    suggestions: List[SubstitutionSuggestion],
    total_current_carbon: float,
    total_potential_savings: float,
) -> list:
    top = suggestions[:TOP_SUGGESTIONS_IN_PROMPT]
    lines = []
    for i, s in enumerate(top, start=1):
        lines.append(
            f'{i}. Replace "{s.current_material}" with "{s.alternative_material}"\n'
            f"   - Reduction: {_fmt(s.savings_percentage, 1)}%\n"
            f"   - Cost impact: {s.cost_impact}\n"
            f"   - Modifications required: {s.modifications}\n"
            f"   - Source: {s.source or 'ESG material library'}"
            + (f"\n   - Availability: {s.availability}" if s.availability else "")
        )

    if total_current_carbon > 0:
        overall = f"{total_potential_savings / total_current_carbon * 100:.1f}% potential reduction across analysed materials"
    else:
        overall = "overall reduction not quantified (web-sourced percentages only)"

    example = json.dumps(
        {
            "title": f"ESG Analysis: {project_name}",
            "summary": "Brief executive summary paragraph",
            "topRecommendations": [
                {
                    "title": "Recommendation title",
                    "description": "Detailed explanation (markdown allowed)",
                    "savings": "Y% reduction",
                    "costImpact": "Cost implications",
                    "source": "Data source",
                }
            ],
            "additionalOpportunities": [{"title": "Brief opportunity description", "savings": "Y% reduction"}],
        },
        indent=2,
    )

    prompt = f"""You have analysed the specification for "{project_name}" and identified opportunities to reduce
embodied carbon through material substitutions.

ANALYSIS DATA:
- {overall}
- Improvement opportunities identified: {len(suggestions)}

TOP OPPORTUNITIES (sorted by impact):
{chr(10).join(lines)}

YOUR TASK:
Write a professional ESG report for the project team containing:
1. An executive summary (2-3 sentences)
2. At most {MAX_TOP_RECOMMENDATIONS} top recommendations, one per distinct material or component
3. A brief list of any additional opportunities

RULES:
- Express savings as percentages only. Never state absolute carbon mass.
- Cite the data source for each recommendation when one is available.
- Do NOT include a "next steps" or implementation-advice section.

OUTPUT FORMAT (JSON object only):
{example}

IMPORTANT: Return ONLY the JSON object."""
    return [
        {"role": "system", "content": get_system_prompt("esg_consultant")},
        {"role": "user", "content": prompt},
    ]
