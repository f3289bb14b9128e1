"""
Celery tasks for the ESG analysis job, plus the dispatcher the API uses to start one.

With ESG_INLINE_JOBS set the job runs as an asyncio task in the API process
instead of going through the broker (single-process deployments, local dev).
"""
import os
import asyncio
import logging

from specbuilder.workers.celery_app import celery_app

logger = logging.getLogger("specbuilder-celery")

INLINE_JOBS = os.getenv("ESG_INLINE_JOBS", "").lower() in ("1", "true", "yes")

# Strong references to in-process jobs so they are not garbage collected mid-run
_inline_tasks: set = set()


def _run_async(coro):
    """Run an async coroutine in a sync Celery task context (new event loop)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def execute_analysis_job(job_id: str, project_id: str) -> dict:
    """Run one job to a terminal state on its own session."""
    from specbuilder.db import AsyncSessionLocal
    from specbuilder.services.job_orchestrator import AnalysisJobOrchestrator
    from specbuilder.services.llm_client import LLMClient
    from specbuilder.services.repository import PrivilegedRepository

    async with AsyncSessionLocal() as session:
        orchestrator = AnalysisJobOrchestrator(PrivilegedRepository(session), LLMClient())
        return await orchestrator.run(job_id, project_id)


async def _execute_on_fresh_pool(job_id: str, project_id: str) -> dict:
    """Pooled connections are bound to the loop that opened them; drop them with this task's loop."""
    from specbuilder.db import engine
    try:
        return await execute_analysis_job(job_id, project_id)
    finally:
        await engine.dispose()


@celery_app.task(bind=True, name="tasks.run_analysis_job")
def run_analysis_job(self, job_id: str, project_id: str):
    """Full ESG analysis for one project. The job row records the outcome; the task re-raises on failure."""
    self.update_state(state="PROGRESS", meta={"step": "Analyzing specification", "job_id": job_id})
    try:
        return _run_async(_execute_on_fresh_pool(job_id, project_id))
    except Exception as e:
        logger.error(f"Analysis job {job_id} failed: {e}", extra={"job_id": job_id, "project_id": project_id})
        raise


async def _run_inline(job_id: str, project_id: str) -> None:
    try:
        await execute_analysis_job(job_id, project_id)
    except Exception as e:
        # Already recorded on the job row by the orchestrator
        logger.error(f"Inline analysis job {job_id} failed: {e}", extra={"job_id": job_id})


async def dispatch_analysis_job(job_id: str, project_id: str) -> None:
    """Hand a queued job to a worker."""
    if INLINE_JOBS:
        task = asyncio.create_task(_run_inline(job_id, project_id))
        _inline_tasks.add(task)
        task.add_done_callback(_inline_tasks.discard)
        logger.info(f"Job {job_id} started in-process", extra={"job_id": job_id, "project_id": project_id})
        return
    result = run_analysis_job.delay(job_id, project_id)
    logger.info(f"Job {job_id} queued as Celery task {result.id}", extra={"job_id": job_id, "project_id": project_id})
