"""
API payload models for the ESG endpoints: analysis jobs, reports and library entries.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict


class AnalysisJobOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    job_id: str
    project_id: str
    status: Literal["queued", "running", "complete", "failed"]
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class InitiateAnalysisResponse(BaseModel):
    """Returned by the trigger endpoint. ``created`` is False when an in-flight job was reused."""
    job: AnalysisJobOut
    created: bool
    message: str


class CancelRetryResponse(BaseModel):
    job: AnalysisJobOut
    cancelled_job_ids: List[str] = []
    message: str


class JobStatusResponse(BaseModel):
    job: Optional[AnalysisJobOut] = None
    status_message: str

    model_config = {"json_schema_extra": {
        "example": {
            "job": {
                "job_id": "0b6c...",
                "project_id": "9f1e...",
                "status": "running",
                "error_message": None,
            },
            "status_message": "Analyzing your specification...",
        }
    }}


class SuggestionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    suggestion_id: str
    project_id: str
    source_clause_id: Optional[str] = None  # None = project-wide report
    suggestion_title: str
    suggestion_narrative: str
    status: Literal["new", "seen", "dismissed"]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SuggestionStatusUpdate(BaseModel):
    status: Literal["new", "seen", "dismissed"]


class MaterialOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    material_id: str
    name: str
    embodied_carbon: float
    carbon_unit: str
    cost_impact_text: Optional[str] = None
    modifications_text: Optional[str] = None
    alternative_to: List[str] = []
    synonyms: List[str] = []
    tags: List[str] = []
    organisation_id: Optional[str] = None
    data_source: str
