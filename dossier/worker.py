"""
Dossier worker process.

Polls the dossier_jobs queue with a bounded pool of asyncio workers and runs
each job through the pipeline. Failed jobs are re-queued with exponential
back-off until the attempt limit is reached.

Usage:
    python -m dossier.worker
    python -m dossier.worker --concurrency 4
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from collections.abc import Awaitable, Callable

import httpx

from dossier import __version__
from dossier.config import Settings, get_settings
from dossier.db.session import SessionLocal, check_db_connection, engine, session_scope
from dossier.llm.router import ModelRole, get_llm_provider
from dossier.models.dossier_job import DossierJob
from dossier.pipeline.errors import JobNotOwnedError
from dossier.pipeline.job_state import update_job_progress
from dossier.pipeline.orchestrator import DossierPayload, PipelineDeps, process_dossier_job
from dossier.services.embeddings import EmbeddingGenerator
from dossier.services.job_queue import claim_next_job, schedule_retry
from dossier.sources.fanout import build_source_searches

logger = logging.getLogger(__name__)

USER_AGENT = f"ClaimDossier/{__version__} (research pipeline)"


def build_pipeline_deps(
    settings: Settings,
    client: httpx.AsyncClient,
    session_factory: Callable,
) -> PipelineDeps:
    """Construct the pipeline's collaborators once per process."""
    return PipelineDeps(
        session_factory=session_factory,
        extraction_llm=get_llm_provider(ModelRole.EXTRACTION, settings),
        synthesis_llm=get_llm_provider(ModelRole.SYNTHESIS, settings),
        embedder=EmbeddingGenerator(
            get_llm_provider(ModelRole.EMBEDDING, settings),
            batch_size=settings.embedding_batch_size,
        ),
        sources=build_source_searches(client, settings),
        settings=settings,
    )


class DossierWorker:
    """Bounded pool of job loops sharing one set of pipeline dependencies."""

    def __init__(self, deps: PipelineDeps, concurrency: int | None = None) -> None:
        self.deps = deps
        self.concurrency = concurrency or deps.settings.worker_concurrency
        self.poll_interval = deps.settings.worker_poll_interval
        self._stopping = asyncio.Event()

    def stop(self) -> None:
        if not self._stopping.is_set():
            logger.info("Worker stopping after in-flight jobs finish")
        self._stopping.set()

    # ── Queue access (sync, run in threads) ─────────────────────────

    def _reserve(self) -> DossierPayload | None:
        with session_scope(self.deps.session_factory) as db:
            job = claim_next_job(db)
            if job is None:
                return None
            return DossierPayload(
                claim_id=job.claim_id,
                requester_id=job.requester_id,
                job_id=job.id,
            )

    def _write_progress(self, job_id: int, value: int) -> None:
        with session_scope(self.deps.session_factory) as db:
            update_job_progress(db, job_id, value)

    def _retry(self, job_id: int) -> None:
        with session_scope(self.deps.session_factory) as db:
            failed = db.get(DossierJob, job_id)
            if failed is None:
                logger.warning("Failed job %s vanished before retry", job_id)
                return
            schedule_retry(
                db,
                failed,
                max_attempts=self.deps.settings.job_max_attempts,
                base_delay=self.deps.settings.job_retry_base_delay,
            )

    def _progress_sink(self, job_id: int) -> Callable[[int], Awaitable[None]]:
        async def sink(value: int) -> None:
            try:
                await asyncio.to_thread(self._write_progress, job_id, value)
            except Exception:
                # Progress writes never fail a job.
                logger.exception("Progress write failed: job_id=%s value=%s", job_id, value)

        return sink

    # ── Loops ───────────────────────────────────────────────────────

    async def run_once(self) -> bool:
        """Run at most one job. Returns False when the queue had nothing runnable."""
        payload = await asyncio.to_thread(self._reserve)
        if payload is None:
            return False
        try:
            await process_dossier_job(payload, self.deps, self._progress_sink(payload.job_id))
        except JobNotOwnedError:
            logger.warning(
                "Dossier job skipped, another runner owns it: job_id=%s claim_id=%s",
                payload.job_id,
                payload.claim_id,
            )
        except Exception:
            logger.warning(
                "Dossier job failed, scheduling retry: job_id=%s claim_id=%s",
                payload.job_id,
                payload.claim_id,
            )
            await asyncio.to_thread(self._retry, payload.job_id)
        return True

    async def _loop(self, index: int) -> None:
        logger.info("Worker loop %d started", index)
        while not self._stopping.is_set():
            try:
                processed = await self.run_once()
            except Exception:
                logger.exception("Worker loop %d: queue error", index)
                processed = False
            if processed:
                continue
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Worker loop %d stopped", index)

    async def run(self) -> None:
        logger.info("Dossier worker running with concurrency=%d", self.concurrency)
        await asyncio.gather(*(self._loop(i) for i in range(self.concurrency)))


async def run_worker(concurrency: int | None = None) -> None:
    """Bootstrap dependencies, install signal handlers and run until stopped."""
    settings = get_settings()
    check_db_connection()
    logger.info("Database connection verified")

    async with httpx.AsyncClient(
        headers={"User-Agent": USER_AGENT},
        follow_redirects=True,
    ) as client:
        deps = build_pipeline_deps(settings, client, SessionLocal)
        worker = DossierWorker(deps, concurrency)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, worker.stop)

        try:
            await worker.run()
        finally:
            engine.dispose()
            logger.info("Database connection pool closed")


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    parser = argparse.ArgumentParser(description="Run the claim dossier worker pool.")
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Number of concurrent job loops (default: WORKER_CONCURRENCY)",
    )
    args = parser.parse_args()
    if args.concurrency is not None and args.concurrency < 1:
        parser.error("--concurrency must be at least 1")
    asyncio.run(run_worker(args.concurrency))


if __name__ == "__main__":
    main()
