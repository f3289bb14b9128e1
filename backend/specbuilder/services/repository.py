"""
Data access for the ESG pipeline and its HTTP surface.

Two capability levels over one AsyncSession:
  ScopedRepository      every read/write is checked against the calling user's ownership
  PrivilegedRepository  used by the job runner; reads any project, writes job and report rows

Both are constructed per request/job and passed explicitly; there is no module-level client.
Write methods commit their own unit of work.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from specbuilder.agents.config import (
    IN_FLIGHT_STATUSES, JOB_FAILED, JOB_QUEUED, JOB_RUNNING, TERMINAL_STATUSES,
)
from specbuilder.exceptions import (
    AnalysisInProgressError, ProjectNotFoundError, SuggestionNotFoundError,
)
from specbuilder.models.orm_models import (
    EsgMaterialLibrary, ProductLibrary, Project, ProjectAnalysisJob, ProjectClause,
    ProjectEsgSuggestion, UserOrganisationMapping,
)
from specbuilder.services.material_library import ReferenceMaterial

logger = logging.getLogger("specbuilder-db")


# ── Plain records handed to the pipeline ──────────────────────────────────────
@dataclass
class ProjectRecord:
    project_id: str
    project_name: Optional[str]
    user_id: str
    organisation_id: Optional[str] = None


@dataclass
class ClauseRecord:
    clause_id: str
    caws_number: str
    master_clause_id: Optional[str] = None
    short_title: Optional[str] = None
    body_template: Optional[str] = None
    field_values: dict = field(default_factory=dict)
    freeform_title: Optional[str] = None
    freeform_body: Optional[str] = None
    sort_order: int = 0

    @property
    def is_hybrid(self) -> bool:
        return bool(self.master_clause_id) and self.body_template is not None


@dataclass
class ProductRecord:
    product_id: str
    product_name: str
    manufacturer: str
    esg_material_id: Optional[str] = None


def _project_record(row: Project) -> ProjectRecord:
    return ProjectRecord(
        project_id=str(row.project_id),
        project_name=row.project_name,
        user_id=str(row.user_id),
        organisation_id=str(row.organisation_id) if row.organisation_id else None,
    )


def _clause_record(row: ProjectClause) -> ClauseRecord:
    master = row.master_clause
    caws = row.caws_number or row.freeform_caws_number or (master.caws_number if master else "") or ""
    return ClauseRecord(
        clause_id=str(row.project_clause_id),
        caws_number=caws,
        master_clause_id=str(row.master_clause_id) if row.master_clause_id else None,
        short_title=master.short_title if master else None,
        body_template=master.body_template if master else None,
        field_values=dict(row.field_values or {}),
        freeform_title=row.freeform_title,
        freeform_body=row.freeform_body,
        sort_order=row.sort_order or 0,
    )


def _library_filter(organisation_ids: List[str]):
    scope = EsgMaterialLibrary.organisation_id.is_(None)
    if organisation_ids:
        scope = or_(scope, EsgMaterialLibrary.organisation_id.in_(organisation_ids))
    return scope


class _BaseRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _latest_job(self, project_id: str) -> Optional[ProjectAnalysisJob]:
        result = await self.session.execute(
            select(ProjectAnalysisJob)
            .where(ProjectAnalysisJob.project_id == project_id)
            .order_by(ProjectAnalysisJob.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _list_jobs(self, project_id: str, limit: int) -> List[ProjectAnalysisJob]:
        result = await self.session.execute(
            select(ProjectAnalysisJob)
            .where(ProjectAnalysisJob.project_id == project_id)
            .order_by(ProjectAnalysisJob.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def _project_report(self, project_id: str) -> Optional[ProjectEsgSuggestion]:
        result = await self.session.execute(
            select(ProjectEsgSuggestion)
            .where(
                ProjectEsgSuggestion.project_id == project_id,
                ProjectEsgSuggestion.source_clause_id.is_(None),
            )
            .order_by(ProjectEsgSuggestion.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _library_rows(self, organisation_ids: List[str]) -> List[EsgMaterialLibrary]:
        result = await self.session.execute(
            select(EsgMaterialLibrary)
            .where(EsgMaterialLibrary.is_active.is_(True), _library_filter(organisation_ids))
            .order_by(EsgMaterialLibrary.name)
        )
        return list(result.scalars().all())


# ── Scoped (per-user) ─────────────────────────────────────────────────────────
class ScopedRepository(_BaseRepository):
    """Repository bound to one authenticated user."""

    def __init__(self, session: AsyncSession, user_id: str):
        super().__init__(session)
        self.user_id = user_id

    async def get_project(self, project_id: str) -> ProjectRecord:
        result = await self.session.execute(
            select(Project).where(Project.project_id == project_id, Project.user_id == self.user_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise ProjectNotFoundError(project_id)
        return _project_record(row)

    async def latest_job(self, project_id: str) -> Optional[ProjectAnalysisJob]:
        await self.get_project(project_id)
        return await self._latest_job(project_id)

    async def list_jobs(self, project_id: str, limit: int = 20) -> List[ProjectAnalysisJob]:
        await self.get_project(project_id)
        return await self._list_jobs(project_id, limit)

    async def get_project_report(self, project_id: str) -> Optional[ProjectEsgSuggestion]:
        await self.get_project(project_id)
        return await self._project_report(project_id)

    async def list_suggestions(self, project_id: str) -> List[ProjectEsgSuggestion]:
        await self.get_project(project_id)
        result = await self.session.execute(
            select(ProjectEsgSuggestion)
            .where(ProjectEsgSuggestion.project_id == project_id)
            .order_by(ProjectEsgSuggestion.created_at.desc())
        )
        return list(result.scalars().all())

    async def update_suggestion_status(self, suggestion_id: str, status: str) -> ProjectEsgSuggestion:
        result = await self.session.execute(
            select(ProjectEsgSuggestion)
            .join(Project, Project.project_id == ProjectEsgSuggestion.project_id)
            .where(ProjectEsgSuggestion.suggestion_id == suggestion_id, Project.user_id == self.user_id)
        )
        suggestion = result.scalar_one_or_none()
        if suggestion is None:
            raise SuggestionNotFoundError(suggestion_id)
        suggestion.status = status
        await self.session.commit()
        return suggestion

    async def organisation_ids(self) -> List[str]:
        result = await self.session.execute(
            select(UserOrganisationMapping.organisation_id)
            .where(UserOrganisationMapping.user_id == self.user_id)
        )
        return [str(org_id) for org_id in result.scalars().all()]

    async def list_materials(self) -> List[ReferenceMaterial]:
        rows = await self._library_rows(await self.organisation_ids())
        return [ReferenceMaterial.from_orm(r) for r in rows]


# ── Privileged (job runner) ───────────────────────────────────────────────────
class PrivilegedRepository(_BaseRepository):
    """Repository with no ownership checks. Only the job orchestrator holds one."""

    async def fetch_project(self, project_id: str) -> ProjectRecord:
        result = await self.session.execute(select(Project).where(Project.project_id == project_id))
        row = result.scalar_one_or_none()
        if row is None:
            raise ProjectNotFoundError(project_id)
        return _project_record(row)

    async def fetch_project_clauses(self, project_id: str) -> List[ClauseRecord]:
        result = await self.session.execute(
            select(ProjectClause)
            .options(joinedload(ProjectClause.master_clause))
            .where(ProjectClause.project_id == project_id, ProjectClause.is_active.is_(True))
            .order_by(ProjectClause.sort_order)
        )
        return [_clause_record(row) for row in result.scalars().all()]

    async def fetch_product(self, product_id: str) -> Optional[ProductRecord]:
        result = await self.session.execute(
            select(ProductLibrary).where(ProductLibrary.product_id == product_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return ProductRecord(
            product_id=str(row.product_id),
            product_name=row.product_name,
            manufacturer=row.manufacturer,
            esg_material_id=str(row.esg_material_id) if row.esg_material_id else None,
        )

    async def fetch_active_library(self, organisation_id: Optional[str] = None) -> List[ReferenceMaterial]:
        rows = await self._library_rows([organisation_id] if organisation_id else [])
        return [ReferenceMaterial.from_orm(r) for r in rows]

    # ── Jobs ──────────────────────────────────────────────────────────────────
    async def find_in_flight_job(self, project_id: str) -> Optional[ProjectAnalysisJob]:
        result = await self.session.execute(
            select(ProjectAnalysisJob)
            .where(
                ProjectAnalysisJob.project_id == project_id,
                ProjectAnalysisJob.status.in_(IN_FLIGHT_STATUSES),
            )
            .order_by(ProjectAnalysisJob.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create_job(self, project_id: str) -> ProjectAnalysisJob:
        job = ProjectAnalysisJob(project_id=project_id, status=JOB_QUEUED)
        self.session.add(job)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            logger.info(f"In-flight guard rejected new job for project {project_id}: {e.orig}")
            existing = await self.find_in_flight_job(project_id)
            raise AnalysisInProgressError(project_id, existing.job_id if existing else None) from e
        await self.session.refresh(job)
        return job

    async def get_job(self, job_id: str) -> Optional[ProjectAnalysisJob]:
        result = await self.session.execute(
            select(ProjectAnalysisJob).where(ProjectAnalysisJob.job_id == job_id)
        )
        return result.scalar_one_or_none()

    async def latest_job(self, project_id: str) -> Optional[ProjectAnalysisJob]:
        return await self._latest_job(project_id)

    async def list_jobs(self, project_id: str, limit: int = 20) -> List[ProjectAnalysisJob]:
        return await self._list_jobs(project_id, limit)

    async def claim_job(self, job_id: str) -> bool:
        """queued -> running, only if the job is still queued. Returns False when someone else moved it."""
        result = await self.session.execute(
            update(ProjectAnalysisJob)
            .where(ProjectAnalysisJob.job_id == job_id, ProjectAnalysisJob.status == JOB_QUEUED)
            .values(status=JOB_RUNNING)
        )
        await self.session.commit()
        return result.rowcount == 1

    async def update_job_status(self, job_id: str, status: str, error_message: Optional[str] = None) -> None:
        values = {"status": status, "error_message": error_message}
        if status in TERMINAL_STATUSES:
            values["completed_at"] = datetime.now(timezone.utc)
        await self.session.execute(
            update(ProjectAnalysisJob).where(ProjectAnalysisJob.job_id == job_id).values(**values)
        )
        await self.session.commit()

    async def finish_job(self, job_id: str, status: str, error_message: Optional[str] = None) -> bool:
        """running -> terminal. Returns False when the job was cancelled while it ran."""
        result = await self.session.execute(
            update(ProjectAnalysisJob)
            .where(ProjectAnalysisJob.job_id == job_id, ProjectAnalysisJob.status == JOB_RUNNING)
            .values(status=status, error_message=error_message, completed_at=datetime.now(timezone.utc))
        )
        await self.session.commit()
        return result.rowcount == 1

    async def reset(self) -> None:
        """Discard a failed transaction so the job row can still be written."""
        await self.session.rollback()

    async def cancel_in_flight_jobs(self, project_id: str, message: str) -> List[str]:
        result = await self.session.execute(
            update(ProjectAnalysisJob)
            .where(
                ProjectAnalysisJob.project_id == project_id,
                ProjectAnalysisJob.status.in_(IN_FLIGHT_STATUSES),
            )
            .values(status=JOB_FAILED, error_message=message, completed_at=datetime.now(timezone.utc))
            .returning(ProjectAnalysisJob.job_id)
        )
        cancelled = [str(job_id) for job_id in result.scalars().all()]
        await self.session.commit()
        return cancelled

    # ── Reports ───────────────────────────────────────────────────────────────
    async def get_project_report(self, project_id: str) -> Optional[ProjectEsgSuggestion]:
        return await self._project_report(project_id)

    async def delete_project_wide_reports(self, project_id: str) -> int:
        result = await self.session.execute(
            delete(ProjectEsgSuggestion).where(
                ProjectEsgSuggestion.project_id == project_id,
                ProjectEsgSuggestion.source_clause_id.is_(None),
            )
        )
        await self.session.commit()
        return result.rowcount or 0

    async def replace_project_report(self, project_id: str, title: str, narrative: str) -> str:
        """Delete the project-wide report and insert the new one in a single transaction."""
        try:
            await self.session.execute(
                delete(ProjectEsgSuggestion).where(
                    ProjectEsgSuggestion.project_id == project_id,
                    ProjectEsgSuggestion.source_clause_id.is_(None),
                )
            )
            suggestion = ProjectEsgSuggestion(
                project_id=project_id,
                source_clause_id=None,
                suggestion_title=title,
                suggestion_narrative=narrative,
                status="new",
            )
            self.session.add(suggestion)
            await self.session.flush()
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        return str(suggestion.suggestion_id)
