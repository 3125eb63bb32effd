#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Playlist Digest Engine.

Drives one run end to end: fetch the playlist's videos, upload the reference
documents, dispatch the bounded-concurrency pipeline, drain its results into
Markdown files, and build the run report.
"""

import time
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

# Imports from this package
from config import config
from exceptions import AppBaseError, InvalidInputError, QuotaExceededError
from models import DigestReport, ItemFailure, PipelineResult, ReferenceDocument, WorkItem
from utils import performance_timer
from services.gemini import GeminiProcessor
from services.pipeline import DigestPipeline
from services.sink import MarkdownSink
from services.youtube_api import YouTubeAPIClient
from logging_config import StructuredLogger

logger = StructuredLogger(__name__)


class PipelineState(str, Enum):
    """Whole-run state machine."""

    IDLE = "idle"
    FETCHING_ITEMS = "fetching_items"
    UPLOADING_REFERENCES = "uploading_references"
    DISPATCHING = "dispatching"
    DRAINING = "draining"
    DONE = "done"


class PlaylistDigestEngine:
    """Orchestrator for summarizing and fact-checking a playlist.

    Coordinates the YouTubeAPIClient (item source), the GeminiProcessor
    (reference upload and per-video processing) and the MarkdownSink. Fatal
    setup errors propagate before anything is dispatched; per-video failures
    are contained in the pipeline and reported.
    """

    def __init__(self, api_client: YouTubeAPIClient, processor: GeminiProcessor,
                 sink: MarkdownSink, concurrency_limit: Optional[int] = None,
                 references_dir: Optional[str] = None, max_videos: Optional[int] = None):
        """Initialize the engine.

        Args:
            api_client: An instance of YouTubeAPIClient.
            processor: An instance of GeminiProcessor.
            sink: Destination for the Markdown results.
            concurrency_limit: Max videos in flight. Defaults to config.LLM_CONCURRENCY_LIMIT.
            references_dir: Directory of reference PDFs. Defaults to config.RELEASE_NOTES_DIR.
            max_videos: Truncate the playlist to this many videos (0 = no limit).
        """
        self.api_client = api_client
        self.processor = processor
        self.sink = sink
        self.concurrency_limit = concurrency_limit if concurrency_limit is not None else config.LLM_CONCURRENCY_LIMIT
        self.references_dir = references_dir or config.RELEASE_NOTES_DIR
        self.max_videos = max_videos if max_videos is not None else config.MAX_VIDEOS_PER_RUN

        if self.concurrency_limit < 1:
            raise InvalidInputError(f"Concurrency limit must be >= 1, got {self.concurrency_limit}")

        self.state = PipelineState.IDLE
        logger.info("PlaylistDigestEngine initialized.", concurrency_limit=self.concurrency_limit,
                    references_dir=self.references_dir)

    def _transition(self, state: PipelineState, run_id: str) -> None:
        logger.info(f"[RUN-{run_id}] {self.state.value} -> {state.value}", run_id=run_id,
                    previous_state=self.state.value, state=state.value)
        self.state = state

    async def run(self, playlist_id: Optional[str] = None) -> DigestReport:
        """Process a whole playlist.

        Args:
            playlist_id: YouTube playlist ID. Defaults to config.PLAYLIST_ID.

        Returns:
            DigestReport: Counts, written files, per-video failures and stats.

        Raises:
            AppBaseError: For fatal setup errors (item fetch, reference upload,
                          output directory), raised before any dispatch.
        """
        playlist_id = (playlist_id or config.PLAYLIST_ID or "").strip()
        if not playlist_id:
            raise InvalidInputError("No playlist ID given.")

        run_id = str(uuid.uuid4())[:8]
        start_time_mono = time.monotonic()
        logger.info(f"[RUN-{run_id}] Processing playlist {playlist_id}", run_id=run_id, playlist_id=playlist_id)

        try:
            items, playlist_title = await self._fetch_items(playlist_id, run_id)
            if not items:
                logger.info(f"[RUN-{run_id}] Playlist {playlist_id} has no videos. Nothing to do.")
                self._transition(PipelineState.DONE, run_id)
                return self._build_report(playlist_id, playlist_title, [], (), PipelineResult(),
                                          start_time_mono, run_id)

            references = await self._upload_references(run_id)
            self.sink.prepare()

            self._transition(PipelineState.DISPATCHING, run_id)
            pipeline = DigestPipeline(self.processor.process, self.concurrency_limit, sink=self.sink)
            with performance_timer("digest_pipeline"):
                # Results are collected from the start of dispatch; DRAINING begins once every worker is launched
                result = await pipeline.run(
                    items, references,
                    on_dispatched=lambda count: self._transition(PipelineState.DRAINING, run_id)
                )

        except AppBaseError as e:
            self._log_fatal(e, run_id)
            raise
        except Exception as e:
            logger.critical(f"[RUN-{run_id}] Critical unexpected error during run: {e}", run_id=run_id)
            raise

        self._transition(PipelineState.DONE, run_id)
        return self._build_report(playlist_id, playlist_title, items, references, result,
                                  start_time_mono, run_id)

    async def _fetch_items(self, playlist_id: str, run_id: str) -> Tuple[List[WorkItem], Optional[str]]:
        self._transition(PipelineState.FETCHING_ITEMS, run_id)
        with performance_timer("get_playlist_items"):
            items = await self.api_client.get_playlist_items(playlist_id)
        logger.info(f"[RUN-{run_id}] Successfully fetched playlist items", run_id=run_id, count=len(items))

        if self.max_videos and len(items) > self.max_videos:
            logger.warning(
                f"[RUN-{run_id}] Limiting to {self.max_videos} video(s) from {len(items)} found.",
                run_id=run_id, original_count=len(items), limit=self.max_videos
            )
            items = items[:self.max_videos]

        playlist_title = await self.api_client.get_playlist_title(playlist_id) if items else None
        return items, playlist_title

    async def _upload_references(self, run_id: str) -> Tuple[ReferenceDocument, ...]:
        self._transition(PipelineState.UPLOADING_REFERENCES, run_id)
        with performance_timer("upload_reference_documents", threshold_ms=1000.0):
            references = await self.processor.upload_reference_documents(self.references_dir)
        logger.info(f"[RUN-{run_id}] Successfully uploaded all reference documents", run_id=run_id,
                    count=len(references))
        return references

    def _log_fatal(self, exception: AppBaseError, run_id: str) -> None:
        if isinstance(exception, QuotaExceededError):
            logger.critical(f"[RUN-{run_id}] Quota exceeded during {self.state.value}: {exception}",
                            run_id=run_id, exc_info=False)
        else:
            logger.error(f"[RUN-{run_id}] Fatal error during {self.state.value}: {exception}",
                         run_id=run_id, error_code=exception.error_code, exc_info=False)

    def _build_report(self, playlist_id: str, playlist_title: Optional[str], items: List[WorkItem],
                      references, result: PipelineResult, start_time_mono: float,
                      run_id: str) -> DigestReport:
        failures = [ItemFailure(key=key, stage="processing", error=error)
                    for key, error in result.failures.items()]
        failures.extend(ItemFailure(key=key, stage="write", error=error)
                        for key, error in result.write_errors.items())

        report = DigestReport(
            playlist_id=playlist_id,
            playlist_title=playlist_title,
            state=self.state.value,
            items_total=len(items),
            items_succeeded=len(result.written_files),
            reference_documents=[doc.label for doc in references],
            written_files=dict(result.written_files),
            failures=failures,
            stats=self._get_processing_stats(start_time_mono, result, run_id),
        )

        log = logger.warning if report.has_failures else logger.info
        kwargs = {"exc_info": False} if report.has_failures else {}
        log(
            f"[RUN-{run_id}] Run finished: {report.items_succeeded}/{report.items_total} video(s) written, "
            f"{len(report.failures)} failure(s).",
            run_id=run_id, succeeded=report.items_succeeded, total=report.items_total,
            failures=len(report.failures), **kwargs
        )
        return report

    def _get_processing_stats(self, start_time_mono: float, result: PipelineResult,
                              run_id: str) -> Dict[str, Any]:
        processing_time_ms = (time.monotonic() - start_time_mono) * 1000
        return {
            "run_id": run_id,
            "processing_time_ms": round(processing_time_ms, 2),
            "concurrency_limit": self.concurrency_limit,
            "peak_in_flight": result.peak_in_flight,
            "youtube_api": self.api_client.get_api_stats(),
            "gemini": self.processor.get_stats(),
        }
