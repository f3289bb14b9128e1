"""
Analysis job orchestration: job creation, the queued → running → complete/failed
state machine, and cancel-and-retry.

The orchestrator owns a PrivilegedRepository. Pipeline collaborators that depend on
the project (library scope) are built per run by ``pipeline_factory``.
"""
import logging
from typing import Awaitable, Callable, Optional

from specbuilder.agents.config import (
    CANCELLED_MESSAGE, DEFAULT_PROJECT_NAME, JOB_COMPLETE, JOB_FAILED, LIBRARY_SCOPE, NO_JOB_MESSAGE,
    STATUS_MESSAGES,
)
from specbuilder.agents.esg_graph import PipelineDependencies, build_analysis_graph
from specbuilder.exceptions import AnalysisInProgressError
from specbuilder.services.alternative_finder import build_alternative_finder
from specbuilder.services.content_extractor import ContentExtractor
from specbuilder.services.material_library import MaterialLibrary
from specbuilder.services.material_resolver import MaterialResolver
from specbuilder.services.report_synthesizer import ReportSynthesizer

logger = logging.getLogger("specbuilder-esg")

Dispatcher = Callable[[str, str], Awaitable[None]]


def status_message(job) -> str:
    """Human-readable status line for the latest job (or None)."""
    if job is None:
        return NO_JOB_MESSAGE
    if job.status == JOB_FAILED:
        return f"Analysis failed: {job.error_message or 'Unknown error'}"
    return STATUS_MESSAGES.get(job.status, job.status)


async def build_pipeline(repo, llm, project, library_scope: str = LIBRARY_SCOPE) -> PipelineDependencies:
    """Load the active library for the project's scope and wire the pipeline stages."""
    organisation_id = project.organisation_id if library_scope == "tenant" else None
    library = MaterialLibrary(await repo.fetch_active_library(organisation_id))
    logger.info(f"Loaded {len(library)} materials from library", extra={"project_id": project.project_id})
    return PipelineDependencies(
        extractor=ContentExtractor(repo),
        resolver=MaterialResolver(library, llm),
        finder=build_alternative_finder(library, llm),
        synthesizer=ReportSynthesizer(llm),
        repo=repo,
    )


class AnalysisJobOrchestrator:
    def __init__(self, repo, llm=None, dispatcher: Optional[Dispatcher] = None, pipeline_factory=build_pipeline):
        self.repo = repo
        self.llm = llm
        self.dispatcher = dispatcher
        self.pipeline_factory = pipeline_factory

    # ── Trigger side ──────────────────────────────────────────────────────────
    async def initiate(self, project_id: str):
        """Start an analysis, or return the job already in flight for this project."""
        existing = await self.repo.find_in_flight_job(project_id)
        if existing is not None:
            logger.info(f"Analysis already in flight: job {existing.job_id}", extra={"project_id": project_id})
            return existing, False

        job, created = await self._create_or_join(project_id)
        if created:
            await self._dispatch(job.job_id, project_id)
        return job, created

    async def cancel_and_retry(self, project_id: str):
        """Fail every in-flight job, drop the project-wide report and start a fresh job."""
        cancelled = await self.repo.cancel_in_flight_jobs(project_id, CANCELLED_MESSAGE)
        deleted = await self.repo.delete_project_wide_reports(project_id)
        logger.info(
            f"Cancelled {len(cancelled)} job(s), removed {deleted} report(s)",
            extra={"project_id": project_id},
        )
        job, created = await self._create_or_join(project_id)
        if created:
            await self._dispatch(job.job_id, project_id)
        return job, cancelled

    async def _create_or_join(self, project_id: str):
        try:
            return await self.repo.create_job(project_id), True
        except AnalysisInProgressError as e:
            # Lost the insert race against a concurrent trigger
            existing = await self.repo.find_in_flight_job(project_id)
            if existing is None:
                raise
            logger.info(
                f"Concurrent trigger resolved to job {e.job_id or existing.job_id}",
                extra={"project_id": project_id},
            )
            return existing, False

    async def _dispatch(self, job_id: str, project_id: str) -> None:
        if self.dispatcher is None:
            return
        try:
            await self.dispatcher(job_id, project_id)
        except Exception as e:
            logger.error(f"Dispatch failed for job {job_id}: {e}", extra={"job_id": job_id}, exc_info=True)
            await self.repo.update_job_status(job_id, JOB_FAILED, f"Failed to start analysis: {e}")
            raise

    # ── Worker side ───────────────────────────────────────────────────────────
    async def run(self, job_id: str, project_id: str) -> dict:
        """
        Execute one job to a terminal state.

        Returns {"success": True, "message": ...} for every complete outcome,
        including the soft ones. Any exception marks the job failed and is re-raised.
        """
        log_extra = {"job_id": job_id, "project_id": project_id}
        if not await self.repo.claim_job(job_id):
            logger.info(f"Job {job_id} is no longer queued, skipping", extra=log_extra)
            return {"success": False, "message": "Job is no longer queued"}

        logger.info(f"Starting analysis job {job_id}", extra=log_extra)
        try:
            project = await self.repo.fetch_project(project_id)
            deps = await self.pipeline_factory(self.repo, self.llm, project)
            graph = build_analysis_graph(deps)
            final_state = await graph.ainvoke({
                "job_id": job_id,
                "project_id": project_id,
                "project_name": project.project_name or DEFAULT_PROJECT_NAME,
                "outcome": None,
            })
        except Exception as e:
            logger.error(f"Analysis job {job_id} failed: {e}", extra=log_extra, exc_info=True)
            await self.repo.reset()
            await self.repo.finish_job(job_id, JOB_FAILED, str(e) or type(e).__name__)
            raise

        if not await self.repo.finish_job(job_id, JOB_COMPLETE):
            # Cancelled while running: the cancellation status stands
            logger.warning(f"Job {job_id} was cancelled while running", extra=log_extra)
        logger.info(f"Analysis job {job_id} completed: {final_state['message']}", extra=log_extra)
        return {"success": True, "message": final_state["message"]}
