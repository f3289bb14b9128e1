"""
ESG Routes: analysis jobs, reports and the reference material library.

POST  /api/v1/esg/projects/{project_id}/analysis              start (or reuse in-flight) analysis
POST  /api/v1/esg/projects/{project_id}/analysis/cancel-retry fail in-flight jobs and start again
GET   /api/v1/esg/projects/{project_id}/jobs/latest           latest job + status line
GET   /api/v1/esg/projects/{project_id}/jobs                  job history, newest first
GET   /api/v1/esg/projects/{project_id}/report                current project-wide report
GET   /api/v1/esg/projects/{project_id}/suggestions           all suggestions for the project
PATCH /api/v1/esg/suggestions/{suggestion_id}                 set review status
GET   /api/v1/esg/materials[/search|/{id}|/{id}/alternatives] library browsing
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from specbuilder.api.deps import (
    get_dispatcher, get_llm_client, get_privileged_repo, get_scoped_repo,
)
from specbuilder.exceptions import ProjectNotFoundError, SuggestionNotFoundError
from specbuilder.models.job_models import (
    AnalysisJobOut, CancelRetryResponse, InitiateAnalysisResponse, JobStatusResponse,
    MaterialOut, SuggestionOut, SuggestionStatusUpdate,
)
from specbuilder.services.job_orchestrator import AnalysisJobOrchestrator, status_message
from specbuilder.services.material_library import MaterialLibrary
from specbuilder.services.repository import PrivilegedRepository, ScopedRepository

router = APIRouter(prefix="/api/v1/esg", tags=["ESG"])
logger = logging.getLogger("specbuilder-api")


async def _owned_project(repo: ScopedRepository, project_id: str):
    try:
        return await repo.get_project(project_id)
    except ProjectNotFoundError:
        raise HTTPException(status_code=404, detail=f"Project {project_id} not found")


def _orchestrator(privileged: PrivilegedRepository, llm, dispatcher) -> AnalysisJobOrchestrator:
    return AnalysisJobOrchestrator(privileged, llm, dispatcher=dispatcher)


# ── Analysis jobs ──────────────────────────────────────────────────────────────

@router.post("/projects/{project_id}/analysis", response_model=InitiateAnalysisResponse)
async def initiate_analysis(
    project_id: str,
    repo: ScopedRepository = Depends(get_scoped_repo),
    privileged: PrivilegedRepository = Depends(get_privileged_repo),
    llm=Depends(get_llm_client),
    dispatcher=Depends(get_dispatcher),
):
    await _owned_project(repo, project_id)
    try:
        job, created = await _orchestrator(privileged, llm, dispatcher).initiate(project_id)
    except Exception as e:
        logger.error(f"Failed to start analysis for project {project_id}: {e}", extra={"project_id": project_id})
        raise HTTPException(status_code=500, detail="Failed to start analysis")
    message = "Analysis started" if created else "Analysis already in progress"
    return InitiateAnalysisResponse(job=AnalysisJobOut.model_validate(job), created=created, message=message)


@router.post("/projects/{project_id}/analysis/cancel-retry", response_model=CancelRetryResponse)
async def cancel_and_retry_analysis(
    project_id: str,
    repo: ScopedRepository = Depends(get_scoped_repo),
    privileged: PrivilegedRepository = Depends(get_privileged_repo),
    llm=Depends(get_llm_client),
    dispatcher=Depends(get_dispatcher),
):
    await _owned_project(repo, project_id)
    try:
        job, cancelled = await _orchestrator(privileged, llm, dispatcher).cancel_and_retry(project_id)
    except Exception as e:
        logger.error(f"Cancel-and-retry failed for project {project_id}: {e}", extra={"project_id": project_id})
        raise HTTPException(status_code=500, detail="Failed to restart analysis")
    return CancelRetryResponse(
        job=AnalysisJobOut.model_validate(job),
        cancelled_job_ids=cancelled,
        message=f"Cancelled {len(cancelled)} job(s) and started a new analysis",
    )


@router.get("/projects/{project_id}/jobs/latest", response_model=JobStatusResponse)
async def latest_job(project_id: str, repo: ScopedRepository = Depends(get_scoped_repo)):
    try:
        job = await repo.latest_job(project_id)
    except ProjectNotFoundError:
        raise HTTPException(status_code=404, detail=f"Project {project_id} not found")
    return JobStatusResponse(
        job=AnalysisJobOut.model_validate(job) if job else None,
        status_message=status_message(job),
    )


@router.get("/projects/{project_id}/jobs", response_model=List[AnalysisJobOut])
async def job_history(
    project_id: str,
    limit: int = Query(20, ge=1, le=100),
    repo: ScopedRepository = Depends(get_scoped_repo),
):
    try:
        jobs = await repo.list_jobs(project_id, limit=limit)
    except ProjectNotFoundError:
        raise HTTPException(status_code=404, detail=f"Project {project_id} not found")
    return [AnalysisJobOut.model_validate(j) for j in jobs]


# ── Reports / suggestions ──────────────────────────────────────────────────────

@router.get("/projects/{project_id}/report", response_model=SuggestionOut)
async def project_report(project_id: str, repo: ScopedRepository = Depends(get_scoped_repo)):
    try:
        report = await repo.get_project_report(project_id)
    except ProjectNotFoundError:
        raise HTTPException(status_code=404, detail=f"Project {project_id} not found")
    if report is None:
        raise HTTPException(status_code=404, detail="No ESG report for this project yet")
    return SuggestionOut.model_validate(report)


@router.get("/projects/{project_id}/suggestions", response_model=List[SuggestionOut])
async def project_suggestions(project_id: str, repo: ScopedRepository = Depends(get_scoped_repo)):
    try:
        suggestions = await repo.list_suggestions(project_id)
    except ProjectNotFoundError:
        raise HTTPException(status_code=404, detail=f"Project {project_id} not found")
    return [SuggestionOut.model_validate(s) for s in suggestions]


@router.patch("/suggestions/{suggestion_id}", response_model=SuggestionOut)
async def update_suggestion_status(
    suggestion_id: str,
    body: SuggestionStatusUpdate,
    repo: ScopedRepository = Depends(get_scoped_repo),
):
    try:
        suggestion = await repo.update_suggestion_status(suggestion_id, body.status)
    except SuggestionNotFoundError:
        raise HTTPException(status_code=404, detail=f"Suggestion {suggestion_id} not found")
    return SuggestionOut.model_validate(suggestion)


# ── Material library ───────────────────────────────────────────────────────────

async def _visible_library(repo: ScopedRepository) -> MaterialLibrary:
    return MaterialLibrary(await repo.list_materials())


@router.get("/materials", response_model=List[MaterialOut])
async def list_materials(repo: ScopedRepository = Depends(get_scoped_repo)):
    library = await _visible_library(repo)
    return [MaterialOut.model_validate(m) for m in library]


@router.get("/materials/search", response_model=List[MaterialOut])
async def search_materials(
    q: str = Query(..., min_length=1),
    repo: ScopedRepository = Depends(get_scoped_repo),
):
    library = await _visible_library(repo)
    return [MaterialOut.model_validate(m) for m in library.search(q)]


@router.get("/materials/{material_id}", response_model=MaterialOut)
async def get_material(material_id: str, repo: ScopedRepository = Depends(get_scoped_repo)):
    material = (await _visible_library(repo)).get(material_id)
    if material is None:
        raise HTTPException(status_code=404, detail=f"Material {material_id} not found")
    return MaterialOut.model_validate(material)


@router.get("/materials/{material_id}/alternatives", response_model=List[MaterialOut])
async def material_alternatives(material_id: str, repo: ScopedRepository = Depends(get_scoped_repo)):
    library = await _visible_library(repo)
    if library.get(material_id) is None:
        raise HTTPException(status_code=404, detail=f"Material {material_id} not found")
    alternatives = sorted(library.alternatives_for(material_id), key=lambda m: m.embodied_carbon)
    return [MaterialOut.model_validate(m) for m in alternatives]
