"""Run orchestration: scan for new images, enhance them in parallel, summarize.

One run reads the stored cursor, pages through everything that changed since
then, hands each eligible image to a bounded scheduler, waits for all jobs,
and returns a RunSummary. Per-file failures are counted, not raised; listing
and cursor failures abort the run.
"""

from __future__ import annotations

import time
import uuid
from typing import Protocol

from loguru import logger

from .concurrency import JobScheduler
from .config import PipelineConfig
from .enhance import resolve_settings
from .errors import JobError, describe_error
from .models import EnhancementResult, Job, ListingPage, RunSummary
from .scanner import CursorBackend, DeltaScanner

log = logger.bind(stage="orchestrator")


class Storage(Protocol):
    def list_folder(self, path: str, cursor: str | None = None) -> ListingPage: ...

    def download(self, path: str) -> bytes: ...

    def upload(self, path: str, data: bytes) -> object: ...


class Enhancer(Protocol):
    def enhance(self, data: bytes, filename: str) -> EnhancementResult: ...


class RunOrchestrator:
    """Processes everything new since the last recorded cursor.

    A fresh JobScheduler is built for every run so no queue state leaks
    between runs.

    Attributes:
        config: Pipeline configuration (paths, naming, concurrency)
        storage: Remote listing/download/upload capability
        cursor_store: Cursor persistence (get/set)
        enhancer: Image transformation capability
    """

    def __init__(
        self,
        config: PipelineConfig,
        storage: Storage,
        cursor_store: CursorBackend,
        enhancer: Enhancer,
    ) -> None:
        self.config = config
        self.storage = storage
        self.cursor_store = cursor_store
        self.enhancer = enhancer

    def run_once(
        self, trigger: str = "manual", request_id: str | None = None
    ) -> RunSummary:
        """Scan, enhance, and upload every new image; return the run summary.

        Raises:
            ConfigError: Invalid enhancement settings (before any remote call)
            ScanError: The listing call failed
            CursorStoreError: The cursor could not be read or written
        """
        request_id = request_id or uuid.uuid4().hex[:8]
        run_log = log.bind(request_id=request_id, trigger=trigger)

        # Fail fast on bad settings before touching the network
        settings = resolve_settings(self.config)

        started = time.monotonic()
        summary = RunSummary(trigger=trigger, request_id=request_id)
        summary.cursor_before = self.cursor_store.get()
        summary.cursor_after = summary.cursor_before

        root = self.config.dropbox_input_path
        run_log.info(
            f"Run {request_id} started (trigger={trigger}, root={root}, "
            f"cursor={'continue' if summary.cursor_before else 'initial'}, "
            f"endpoint={settings.endpoint}, concurrency={self.config.concurrency})"
        )

        scanner = DeltaScanner(self.storage, self.cursor_store)
        scheduler = JobScheduler(self.config.concurrency)
        try:
            for entry in scanner.scan(root, summary.cursor_before, summary):
                job = Job.from_entry(
                    entry,
                    self.config.dropbox_output_path,
                    self.config.output_suffix,
                    self.config.output_format,
                )
                scheduler.submit(self._process_one, job, label=job.input_path)
                summary.enqueued_jobs += 1
            scheduler.await_all_submitted()
        except Exception as e:
            # Let already-submitted jobs finish before reporting the abort
            scheduler.close()
            summary.succeeded_jobs = scheduler.succeeded
            summary.failed_jobs = scheduler.failed
            summary.duration_seconds = round(time.monotonic() - started, 3)
            run_log.error(
                f"Run {request_id} aborted after {summary.pages_scanned} pages, "
                f"{summary.succeeded_jobs} ok / {summary.failed_jobs} failed: "
                f"{describe_error(e)}"
            )
            raise

        scheduler.close()
        summary.succeeded_jobs = scheduler.succeeded
        summary.failed_jobs = scheduler.failed
        summary.duration_seconds = round(time.monotonic() - started, 3)
        self._log_summary(summary)
        return summary

    def _process_one(self, job: Job) -> None:
        """Download -> enhance -> upload one file. Raises JobError on failure."""
        log.info(f"Processing {job.input_path} -> {job.output_path}")
        try:
            source = self.storage.download(job.input_path)
            result = self.enhancer.enhance(source, job.filename)
            self.storage.upload(job.output_path, result.data)
        except Exception as e:
            raise JobError(job.input_path, describe_error(e)) from e

        log.info(
            f"Enhanced {job.input_path} -> {job.output_path} "
            f"(model={result.model}, endpoint={result.endpoint}, "
            f"{len(result.data):,} bytes)"
        )

    def _log_summary(self, summary: RunSummary) -> None:
        skipped = ", ".join(f"{k}={v}" for k, v in summary.skipped.items() if v)
        log.bind(request_id=summary.request_id).info(
            f"Run {summary.request_id} complete in {summary.duration_seconds:.1f}s: "
            f"pages={summary.pages_scanned} entries={summary.entries_seen} "
            f"files={summary.files_scanned} enqueued={summary.enqueued_jobs} "
            f"succeeded={summary.succeeded_jobs} failed={summary.failed_jobs}"
            + (f" skipped[{skipped}]" if skipped else "")
        )
