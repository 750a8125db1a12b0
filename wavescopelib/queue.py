from __future__ import annotations

from datetime import datetime
from typing import Callable
from uuid import uuid4

from .analyzer import AnalysisHandle, WaveformAnalyzer
from .config import qos_priority
from .errors import AnalyzeError, Cancelled
from .models import AnalysisJob, JobStatus


class AnalysisQueue:
    """Ordered batch of analysis jobs.

    Jobs are kept sorted by priority (lower first).  :meth:`run_next`
    processes one job on the calling thread; :meth:`run_all` hands every
    pending job to the analyzer's pool at once and lets the admission
    gate decide how many decode concurrently.
    """

    def __init__(self, default_count: int | None = None,
                 default_bands: int | None = None):
        self._jobs: list[AnalysisJob] = []
        self._default_count = default_count
        self._default_bands = default_bands

    def add(
        self,
        locator: str,
        count: int | None = None,
        fft_bands: int | None = None,
        priority: int | None = None,
        qos: str = "default",
        label: str | None = None,
    ) -> AnalysisJob:
        """Enqueue a file.  *priority* defaults to the QoS class's rank."""
        job = AnalysisJob(
            job_id=label or str(uuid4()),
            locator=locator,
            count=count if count is not None else (self._default_count or 0),
            fft_bands=fft_bands if fft_bands is not None else self._default_bands,
            priority=priority if priority is not None else qos_priority(qos),
        )
        self._jobs.append(job)
        self._resort()
        return job

    def _resort(self) -> None:
        # stable: equal priorities keep insertion order
        self._jobs.sort(key=lambda j: j.priority)

    def _pending_job(self, job_id: str) -> AnalysisJob | None:
        return next((j for j in self.pending() if j.job_id == job_id), None)

    def remove(self, job_id: str) -> bool:
        """Drop a job that has not run yet.  False if there is none."""
        job = self._pending_job(job_id)
        if job is None:
            return False
        self._jobs = [j for j in self._jobs if j is not job]
        return True

    def reorder(self, job_id: str, new_priority: int) -> bool:
        """Give a pending job a new priority; the queue order follows."""
        job = self._pending_job(job_id)
        if job is None:
            return False
        job.priority = new_priority
        self._resort()
        return True

    def cancel(self, job_id: str) -> bool:
        """Keep a pending job in the list but never run it."""
        job = self._pending_job(job_id)
        if job is None:
            return False
        job.status = JobStatus.CANCELLED
        job.completed_at = datetime.now()
        return True

    def _with_status(self, status: JobStatus) -> list[AnalysisJob]:
        return [j for j in self._jobs if j.status is status]

    def pending(self) -> list[AnalysisJob]:
        return self._with_status(JobStatus.PENDING)

    def completed(self) -> list[AnalysisJob]:
        return self._with_status(JobStatus.COMPLETED)

    def all_jobs(self) -> list[AnalysisJob]:
        """Snapshot of every job in queue order, whatever its status."""
        return list(self._jobs)

    @staticmethod
    def _finish(job: AnalysisJob, call: Callable[[], object]) -> None:
        try:
            job.result = call()
            job.status = JobStatus.COMPLETED
        except Cancelled as e:
            job.status = JobStatus.CANCELLED
            job.error = str(e)
        except Exception as e:
            job.status = JobStatus.FAILED
            job.error = f"{type(e).__name__}: {e}"
        job.completed_at = datetime.now()

    def run_next(self, analyzer: WaveformAnalyzer) -> AnalysisJob | None:
        """
        Run the next pending job on the calling thread. Returns the
        finished job, or None if nothing is pending.
        """
        job = next(
            (j for j in self._jobs if j.status == JobStatus.PENDING), None
        )
        if not job:
            return None

        job.status = JobStatus.RUNNING
        self._finish(job, lambda: analyzer.analyze(
            job.locator, job.count, fft_bands=job.fft_bands))
        return job

    def run_all(
        self,
        analyzer: WaveformAnalyzer,
        on_complete: Callable[[AnalysisJob], None] | None = None,
    ) -> list[AnalysisJob]:
        """Run every pending job concurrently, in priority order of submission.

        Blocks until all of them finished.  Callback fires after each job,
        in submission order.
        """
        submitted: list[tuple[AnalysisJob, AnalysisHandle | None]] = []
        for job in self.pending():
            job.status = JobStatus.RUNNING
            try:
                handle = analyzer.submit(job.locator, job.count,
                                         fft_bands=job.fft_bands)
            except AnalyzeError as e:
                job.status = JobStatus.FAILED
                job.error = f"{type(e).__name__}: {e}"
                job.completed_at = datetime.now()
                handle = None
            submitted.append((job, handle))

        finished = []
        for job, handle in submitted:
            if handle is not None:
                self._finish(job, handle.result)
            finished.append(job)
            if on_complete:
                on_complete(job)
        return finished
