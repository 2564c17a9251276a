from __future__ import annotations

import threading

from backend.app.models.conversion import ConversionIssue, IssueCategory, IssueType
from backend.app.models.job import JobStats, JobStatus
from backend.app.services.job_store import get_job_store


def _issue() -> ConversionIssue:
    return ConversionIssue(
        issue_type=IssueType.INFO,
        category=IssueCategory.COMPATIBILITY,
        description="x",
        rule_id="MDB303",
    )


def test_get_job_store_returns_singleton(job_store) -> None:
    assert get_job_store() is job_store


def test_create_and_get_job(job_store) -> None:
    job = job_store.create_job("dump.sql", 12, "SELECT 1;")
    stored = job_store.get_job(job.id)
    assert stored is not None
    assert stored.status == JobStatus.PENDING
    assert stored.converted_content is None
    assert stored.original_content == "SELECT 1;"


def test_unknown_job(job_store) -> None:
    assert job_store.get_job("missing") is None
    assert job_store.update_job("missing", status=JobStatus.FAILED) is None
    assert job_store.begin_analysis("missing") is None
    assert job_store.get_issues("missing") == []
    assert job_store.get_stats("missing") is None


def test_returned_jobs_are_copies(job_store) -> None:
    job = job_store.create_job("dump.sql", 1, "x")
    copy = job_store.get_job(job.id)
    copy.status = JobStatus.COMPLETED
    assert job_store.get_job(job.id).status == JobStatus.PENDING


def test_begin_analysis_refuses_second_writer(job_store) -> None:
    job = job_store.create_job("dump.sql", 1, "x")
    assert job_store.begin_analysis(job.id).status == JobStatus.ANALYZING
    assert job_store.begin_analysis(job.id) is None


def test_begin_analysis_is_atomic_across_threads(job_store) -> None:
    job = job_store.create_job("dump.sql", 1, "x")
    winners = []
    barrier = threading.Barrier(8)

    def _worker() -> None:
        barrier.wait()
        if job_store.begin_analysis(job.id) is not None:
            winners.append(1)

    threads = [threading.Thread(target=_worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert len(winners) == 1


def test_completed_job_can_be_reanalyzed(job_store) -> None:
    job = job_store.create_job("dump.sql", 1, "x")
    job_store.begin_analysis(job.id)
    job_store.update_job(job.id, status=JobStatus.COMPLETED, converted_content="y")
    restarted = job_store.begin_analysis(job.id)
    assert restarted.status == JobStatus.ANALYZING
    assert restarted.converted_content is None


def test_issues_and_stats(job_store) -> None:
    job = job_store.create_job("dump.sql", 1, "x")
    job_store.replace_issues(job.id, [_issue(), _issue()])
    job_store.replace_issues(job.id, [_issue()])
    assert len(job_store.get_issues(job.id)) == 1

    stats = JobStats(total_issues=1, optimizations_count=1, conversion_time_ms=3)
    job_store.set_stats(job.id, stats)
    assert job_store.get_stats(job.id) == stats
    job_store.set_stats(job.id, None)
    assert job_store.get_stats(job.id) is None


def test_delete_job(job_store) -> None:
    job = job_store.create_job("dump.sql", 1, "x")
    job_store.replace_issues(job.id, [_issue()])
    assert job_store.delete_job(job.id)
    assert job_store.get_job(job.id) is None
    assert job_store.get_issues(job.id) == []
    assert not job_store.delete_job(job.id)
