#!/usr/bin/env python3
"""Queue a dossier job for a claim, optionally running it inline.

Usage:
    python scripts/enqueue_research.py 42
    python scripts/enqueue_research.py 42 --requester ops --run-now

Without --run-now the job waits for the worker pool (python -m dossier.worker).
Use --run-now only while no worker is polling the queue.
Exits 0 on success, 1 on failure.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import httpx

from dossier.config import get_settings
from dossier.db.session import SessionLocal, session_scope
from dossier.pipeline.errors import ClaimNotFoundError
from dossier.pipeline.orchestrator import DossierPayload, process_dossier_job
from dossier.services.job_queue import enqueue
from dossier.worker import USER_AGENT, build_pipeline_deps


async def _run_inline(payload: DossierPayload) -> None:
    async with httpx.AsyncClient(headers={"User-Agent": USER_AGENT}, follow_redirects=True) as client:
        deps = build_pipeline_deps(get_settings(), client, SessionLocal)
        outcome = await process_dossier_job(
            payload, deps, progress=lambda value: print(f"progress={value}")
        )
    verdict = outcome.verdict.verdict if outcome.verdict else None
    print(
        f"papers={outcome.papers_stored} evidence={outcome.evidence_count} "
        f"verdict={verdict} failed_sources={','.join(outcome.failed_sources) or '-'}"
    )


def main() -> int:
    parser = argparse.ArgumentParser(description="Queue a dossier job for a claim.")
    parser.add_argument("claim_id", type=int)
    parser.add_argument("--requester", default="system", help="Requester id recorded on the job")
    parser.add_argument(
        "--run-now",
        action="store_true",
        help="Run the pipeline in this process instead of waiting for a worker",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        with session_scope() as db:
            job, created = enqueue(db, args.claim_id, args.requester)
    except ClaimNotFoundError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    job_id, status = job.id, job.status
    print(f"job_id={job_id} status={status} created={created}")
    payload = DossierPayload(claim_id=job.claim_id, requester_id=job.requester_id, job_id=job_id)

    if not args.run_now:
        return 0
    if status != "QUEUED":
        print(f"ERROR: job {job_id} is already {status}", file=sys.stderr)
        return 1
    try:
        asyncio.run(_run_inline(payload))
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
