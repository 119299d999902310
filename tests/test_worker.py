"""Tests for the dossier worker pool."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from dossier.config import Settings
from dossier.llm.router import ModelRole
from dossier.models.dossier_job import DossierJob
from dossier.pipeline.errors import JobNotOwnedError
from dossier.pipeline.orchestrator import DossierPayload, PipelineDeps
from dossier.worker import DossierWorker, build_pipeline_deps


def _settings() -> Settings:
    s = object.__new__(Settings)
    s.worker_concurrency = 2
    s.worker_poll_interval = 0.01
    s.job_max_attempts = 3
    s.job_retry_base_delay = 5.0
    s.embedding_batch_size = 50
    return s


def _deps(sessions: list[MagicMock] | None = None) -> PipelineDeps:
    def factory() -> MagicMock:
        session = MagicMock()
        if sessions is not None:
            sessions.append(session)
        return session

    return PipelineDeps(
        session_factory=factory,
        extraction_llm=MagicMock(),
        synthesis_llm=MagicMock(),
        embedder=MagicMock(),
        sources=[],
        settings=_settings(),
    )


def _queued_job() -> DossierJob:
    return DossierJob(id=9, claim_id=3, requester_id="ops", status="QUEUED", progress=0, attempt=1)


class TestRunOnce:
    async def test_idle_queue(self) -> None:
        worker = DossierWorker(_deps())
        with (
            patch("dossier.worker.claim_next_job", return_value=None),
            patch("dossier.worker.process_dossier_job", new_callable=AsyncMock) as process,
        ):
            assert await worker.run_once() is False
        process.assert_not_awaited()

    async def test_runs_reserved_job(self) -> None:
        worker = DossierWorker(_deps())
        with (
            patch("dossier.worker.claim_next_job", return_value=_queued_job()),
            patch("dossier.worker.process_dossier_job", new_callable=AsyncMock) as process,
            patch("dossier.worker.schedule_retry") as retry,
        ):
            assert await worker.run_once() is True

        payload = process.await_args.args[0]
        assert payload == DossierPayload(claim_id=3, requester_id="ops", job_id=9)
        retry.assert_not_called()

    async def test_job_owned_elsewhere_is_not_retried(self) -> None:
        worker = DossierWorker(_deps())
        with (
            patch("dossier.worker.claim_next_job", return_value=_queued_job()),
            patch(
                "dossier.worker.process_dossier_job",
                new_callable=AsyncMock,
                side_effect=JobNotOwnedError(3, 9),
            ),
            patch("dossier.worker.schedule_retry") as retry,
        ):
            assert await worker.run_once() is True
        retry.assert_not_called()

    async def test_failure_schedules_retry(self) -> None:
        sessions: list[MagicMock] = []
        deps = _deps(sessions)
        worker = DossierWorker(deps)
        with (
            patch("dossier.worker.claim_next_job", return_value=_queued_job()),
            patch(
                "dossier.worker.process_dossier_job",
                new_callable=AsyncMock,
                side_effect=RuntimeError("boom"),
            ),
            patch("dossier.worker.schedule_retry") as retry,
        ):
            assert await worker.run_once() is True

        retry_session = sessions[-1]
        retry_session.get.assert_called_once_with(DossierJob, 9)
        assert retry.call_args.args[0] is retry_session
        assert retry.call_args.kwargs == {"max_attempts": 3, "base_delay": 5.0}
        assert all(s.close.called for s in sessions)

    async def test_progress_sink_swallows_write_errors(self) -> None:
        worker = DossierWorker(_deps())
        sink = worker._progress_sink(9)
        with patch("dossier.worker.update_job_progress", side_effect=RuntimeError("db down")):
            await sink(40)

    async def test_progress_sink_writes(self) -> None:
        worker = DossierWorker(_deps())
        sink = worker._progress_sink(9)
        with patch("dossier.worker.update_job_progress") as update:
            await sink(40)
        assert update.call_args.args[1:] == (9, 40)


class TestLoop:
    async def test_stop_ends_all_loops(self) -> None:
        worker = DossierWorker(_deps(), concurrency=3)
        with patch.object(worker, "run_once", new_callable=AsyncMock, return_value=False) as run_once:
            task = asyncio.create_task(worker.run())
            await asyncio.sleep(0.05)
            worker.stop()
            await asyncio.wait_for(task, timeout=1.0)
        assert run_once.await_count >= 3

    async def test_queue_error_does_not_kill_loop(self) -> None:
        worker = DossierWorker(_deps(), concurrency=1)
        calls = 0

        async def flaky() -> bool:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("connection reset")
            worker.stop()
            return False

        with patch.object(worker, "run_once", side_effect=flaky):
            await asyncio.wait_for(worker.run(), timeout=1.0)
        assert calls == 2

    def test_concurrency_defaults_to_settings(self) -> None:
        assert DossierWorker(_deps()).concurrency == 2
        assert DossierWorker(_deps(), concurrency=5).concurrency == 5


def test_build_pipeline_deps_uses_role_providers() -> None:
    settings = _settings()
    client = MagicMock(spec=httpx.AsyncClient)
    with patch("dossier.worker.get_llm_provider") as get_provider:
        deps = build_pipeline_deps(settings, client, MagicMock())

    roles = [call.args[0] for call in get_provider.call_args_list]
    assert roles == [ModelRole.EXTRACTION, ModelRole.SYNTHESIS, ModelRole.EMBEDDING]
    assert deps.embedder.batch_size == 50
    assert [s.name for s in deps.sources] == ["pubmed", "arxiv", "semantic_scholar"]
