"""Exception hierarchy for the ESG analysis pipeline."""
from __future__ import annotations

from typing import Optional


class ESGPipelineError(Exception):
    """Base error for the ESG optimisation workflow."""


class ProjectNotFoundError(ESGPipelineError):
    """Raised when a project does not exist or is not visible to the caller."""

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__("Project not found")


class ContentExtractionError(ESGPipelineError):
    """Raised when project clauses or products cannot be read."""


class LLMCallError(ESGPipelineError):
    """Raised when every configured model failed to answer."""


class LLMResponseParseError(ESGPipelineError):
    """Raised when a model response is not the JSON shape a call site expects."""

    def __init__(self, call_site: str, raw: str, reason: str = ""):
        self.call_site = call_site
        self.raw_excerpt = (raw or "")[:500]
        self.reason = reason
        message = f"Failed to parse {call_site} response as JSON"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class AnalysisInProgressError(ESGPipelineError):
    """Raised when a project already has a queued or running analysis job."""

    def __init__(self, project_id: str, job_id: Optional[str] = None):
        self.project_id = project_id
        self.job_id = job_id
        super().__init__(f"Analysis already in progress for project {project_id}")


class SuggestionNotFoundError(ESGPipelineError):
    """Raised when a suggestion does not exist or belongs to another user's project."""

    def __init__(self, suggestion_id: str):
        self.suggestion_id = suggestion_id
        super().__init__("Suggestion not found")
