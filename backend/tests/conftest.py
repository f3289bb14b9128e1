"""
conftest.py — Shared pytest fixtures for the Spec Builder ESG backend test suite.

No database or external service fixtures are defined here.  The pipeline is
exercised against an in-memory repository and a scripted LLM double, both of
which implement the same methods the real PrivilegedRepository / LLMClient do.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``specbuilder.*`` imports resolve correctly regardless of where pytest is invoked.
"""

import sys
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any specbuilder imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

from specbuilder.agents.config import (  # noqa: E402
    IN_FLIGHT_STATUSES, JOB_FAILED, JOB_QUEUED, JOB_RUNNING, TERMINAL_STATUSES,
)
from specbuilder.db.seed import GLOBAL_MATERIALS  # noqa: E402
from specbuilder.exceptions import AnalysisInProgressError, LLMCallError, ProjectNotFoundError  # noqa: E402
from specbuilder.services.llm_client import GroundedCompletion  # noqa: E402
from specbuilder.services.material_library import MaterialLibrary, ReferenceMaterial  # noqa: E402
from specbuilder.services.repository import ClauseRecord, ProductRecord, ProjectRecord  # noqa: E402


# ---------------------------------------------------------------------------
# Reference library
# ---------------------------------------------------------------------------

def _reference_materials() -> List[ReferenceMaterial]:
    """GLOBAL_MATERIALS with external ids standing in for database ids."""
    return [
        ReferenceMaterial(
            material_id=entry["external_id"],
            name=entry["name"],
            embodied_carbon=float(entry["embodied_carbon"]),
            carbon_unit=entry["carbon_unit"],
            cost_impact_text=entry["cost_impact_text"],
            modifications_text=entry["modifications_text"],
            alternative_to=tuple(entry["alternative_to"]),
            synonyms=tuple(entry["synonyms"]),
            tags=tuple(entry["tags"]),
            data_source=entry["data_source"],
        )
        for entry in GLOBAL_MATERIALS
    ]


@pytest.fixture(scope="session")
def reference_materials() -> List[ReferenceMaterial]:
    return _reference_materials()


@pytest.fixture(scope="session")
def library(reference_materials) -> MaterialLibrary:
    """
    The seeded global library, keyed by external id.

    Relevant figures (kgCO2e per unit):
      Portland Cement (CEM I) = 820, GGBS (CEM III/A) = 270, PFA (CEM II/B-V) = 510
      Virgin steel = 2100, recycled steel = 630
    """
    return MaterialLibrary(reference_materials)


# ---------------------------------------------------------------------------
# In-memory repository
# ---------------------------------------------------------------------------

@dataclass
class FakeJob:
    job_id: str
    project_id: str
    status: str = JOB_QUEUED
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None


@dataclass
class FakeReport:
    suggestion_id: str
    project_id: str
    suggestion_title: str
    suggestion_narrative: str
    source_clause_id: Optional[str] = None
    status: str = "new"
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = None


class FakeRepository:
    """Implements the PrivilegedRepository surface the orchestrator and pipeline use."""

    def __init__(self, materials: Optional[List[ReferenceMaterial]] = None):
        self.projects: Dict[str, ProjectRecord] = {}
        self.clauses: Dict[str, List[ClauseRecord]] = {}
        self.products: Dict[str, ProductRecord] = {}
        self.materials: List[ReferenceMaterial] = list(materials or [])
        self.jobs: List[FakeJob] = []
        self.reports: List[FakeReport] = []
        self.resets = 0
        self._tick = 0

    # -- fixture helpers ----------------------------------------------------
    def add_project(self, project_id: str = "proj-1", project_name: Optional[str] = "Riverside Flats",
                    organisation_id: Optional[str] = None) -> ProjectRecord:
        record = ProjectRecord(project_id=project_id, project_name=project_name, user_id="user-1",
                               organisation_id=organisation_id)
        self.projects[project_id] = record
        self.clauses.setdefault(project_id, [])
        return record

    def add_freeform_clause(self, project_id: str, caws_number: str, body: str, sort_order: int = 0):
        clause = ClauseRecord(clause_id=str(uuid.uuid4()), caws_number=caws_number,
                              freeform_body=body, sort_order=sort_order)
        self.clauses[project_id].append(clause)
        return clause

    def add_hybrid_clause(self, project_id: str, caws_number: str, short_title: str, body_template: str,
                          field_values: Optional[dict] = None, sort_order: int = 0):
        clause = ClauseRecord(clause_id=str(uuid.uuid4()), caws_number=caws_number,
                              master_clause_id=str(uuid.uuid4()), short_title=short_title,
                              body_template=body_template, field_values=dict(field_values or {}),
                              sort_order=sort_order)
        self.clauses[project_id].append(clause)
        return clause

    def add_product(self, product_id: str, product_name: str, esg_material_id: Optional[str] = None,
                    manufacturer: str = "Acme Building Products") -> ProductRecord:
        record = ProductRecord(product_id=product_id, product_name=product_name,
                               manufacturer=manufacturer, esg_material_id=esg_material_id)
        self.products[product_id] = record
        return record

    def _now(self) -> datetime:
        # Strictly increasing timestamps so "latest" is deterministic
        self._tick += 1
        return datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=self._tick)

    # -- project content ----------------------------------------------------
    async def fetch_project(self, project_id: str) -> ProjectRecord:
        if project_id not in self.projects:
            raise ProjectNotFoundError(project_id)
        return self.projects[project_id]

    async def fetch_project_clauses(self, project_id: str) -> List[ClauseRecord]:
        return sorted(self.clauses.get(project_id, []), key=lambda c: c.sort_order)

    async def fetch_product(self, product_id: str) -> Optional[ProductRecord]:
        return self.products.get(product_id)

    async def fetch_active_library(self, organisation_id: Optional[str] = None) -> List[ReferenceMaterial]:
        return [m for m in self.materials
                if m.is_active and (m.organisation_id is None or m.organisation_id == organisation_id)]

    # -- jobs ---------------------------------------------------------------
    def _in_flight(self, project_id: str) -> List[FakeJob]:
        return [j for j in self.jobs if j.project_id == project_id and j.status in IN_FLIGHT_STATUSES]

    async def find_in_flight_job(self, project_id: str) -> Optional[FakeJob]:
        in_flight = self._in_flight(project_id)
        return max(in_flight, key=lambda j: j.created_at) if in_flight else None

    async def create_job(self, project_id: str) -> FakeJob:
        in_flight = self._in_flight(project_id)
        if in_flight:
            raise AnalysisInProgressError(project_id, in_flight[0].job_id)
        job = FakeJob(job_id=str(uuid.uuid4()), project_id=project_id, created_at=self._now())
        self.jobs.append(job)
        return job

    async def get_job(self, job_id: str) -> Optional[FakeJob]:
        return next((j for j in self.jobs if j.job_id == job_id), None)

    async def latest_job(self, project_id: str) -> Optional[FakeJob]:
        jobs = await self.list_jobs(project_id, limit=1)
        return jobs[0] if jobs else None

    async def list_jobs(self, project_id: str, limit: int = 20) -> List[FakeJob]:
        jobs = sorted((j for j in self.jobs if j.project_id == project_id),
                      key=lambda j: j.created_at, reverse=True)
        return jobs[:limit]

    async def claim_job(self, job_id: str) -> bool:
        job = await self.get_job(job_id)
        if job is None or job.status != JOB_QUEUED:
            return False
        job.status = JOB_RUNNING
        return True

    async def update_job_status(self, job_id: str, status: str, error_message: Optional[str] = None) -> None:
        job = await self.get_job(job_id)
        job.status = status
        job.error_message = error_message
        if status in TERMINAL_STATUSES:
            job.completed_at = self._now()

    async def finish_job(self, job_id: str, status: str, error_message: Optional[str] = None) -> bool:
        job = await self.get_job(job_id)
        if job is None or job.status != JOB_RUNNING:
            return False
        job.status = status
        job.error_message = error_message
        job.completed_at = self._now()
        return True

    async def reset(self) -> None:
        self.resets += 1

    async def cancel_in_flight_jobs(self, project_id: str, message: str) -> List[str]:
        cancelled = []
        for job in self._in_flight(project_id):
            job.status = JOB_FAILED
            job.error_message = message
            job.completed_at = self._now()
            cancelled.append(job.job_id)
        return cancelled

    # -- reports ------------------------------------------------------------
    def project_wide_reports(self, project_id: str) -> List[FakeReport]:
        return [r for r in self.reports if r.project_id == project_id and r.source_clause_id is None]

    async def get_project_report(self, project_id: str) -> Optional[FakeReport]:
        reports = self.project_wide_reports(project_id)
        return reports[-1] if reports else None

    async def delete_project_wide_reports(self, project_id: str) -> int:
        doomed = self.project_wide_reports(project_id)
        self.reports = [r for r in self.reports if r not in doomed]
        return len(doomed)

    async def replace_project_report(self, project_id: str, title: str, narrative: str) -> str:
        await self.delete_project_wide_reports(project_id)
        report = FakeReport(suggestion_id=str(uuid.uuid4()), project_id=project_id,
                            suggestion_title=title, suggestion_narrative=narrative, created_at=self._now())
        self.reports.append(report)
        return report.suggestion_id


@pytest.fixture
def fake_repo(reference_materials) -> FakeRepository:
    """Empty repository holding the global reference library and one project ``proj-1``."""
    repo = FakeRepository(reference_materials)
    repo.add_project("proj-1", "Riverside Flats")
    return repo


# ---------------------------------------------------------------------------
# Scripted LLM double
# ---------------------------------------------------------------------------

class FakeLLM:
    """
    Answers chat() with ``extraction`` or ``report`` depending on the model asked for,
    and grounded_search() with ``search``. An Exception value is raised instead.
    ``search=None`` behaves like an unreachable search provider.
    """
    extraction_model = "test/extraction-model"
    report_model = "test/report-model"

    def __init__(self, extraction=None, report=None, search=None):
        self.extraction = extraction
        self.report = report
        self.search = search
        self.calls: List[tuple] = []

    async def chat(self, messages, model=None, temperature=0.1, json_mode=False, max_tokens=4096):
        self.calls.append((model, messages))
        answer = self.extraction if model == self.extraction_model else self.report
        if isinstance(answer, Exception):
            raise answer
        if answer is None:
            raise LLMCallError(f"No scripted answer for {model}")
        return answer

    async def grounded_search(self, messages, model=None) -> GroundedCompletion:
        self.calls.append(("grounded_search", messages))
        if isinstance(self.search, Exception):
            raise self.search
        if self.search is None:
            raise LLMCallError("Web search call failed: provider unavailable")
        return self.search

    def calls_to(self, model: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == model]


@pytest.fixture
def make_llm():
    """Factory for FakeLLM instances: ``make_llm(extraction=..., report=..., search=...)``."""
    return FakeLLM
