#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Pydantic models and Dataclasses for Playlist Digest work items, pipeline
outcomes, and the run report.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


@dataclass(frozen=True)
class WorkItem:
    """One playlist video to summarize and fact-check.

    Built from a playlistItems resource; immutable once produced.
    """

    video_id: str
    title: str = ""
    description: str = field(default="", repr=False)
    position: int = 0
    published_at: str = ""
    thumbnail_url: str = field(default="", repr=False)

    @classmethod
    def from_api_response(cls, item: dict) -> "WorkItem":
        """Create a WorkItem from a YouTube API playlistItem resource.

        Args:
            item: YouTube API response item with 'snippet' and 'contentDetails' parts

        Returns:
            WorkItem: New instance populated with API data
        """
        snippet = item.get("snippet", {}) or {}
        content_details = item.get("contentDetails", {}) or {}
        thumbnails = snippet.get("thumbnails", {}) or {}

        video_id = content_details.get("videoId") or snippet.get("resourceId", {}).get("videoId", "")

        return cls(
            video_id=video_id or "",
            title=snippet.get("title", "") or "",
            description=snippet.get("description", "") or "",
            position=snippet.get("position", 0) or 0,
            published_at=content_details.get("videoPublishedAt", "") or "",
            thumbnail_url=(thumbnails.get("standard", {}) or {}).get("url", "") or "",
        )

    @property
    def url(self) -> str:
        """Get the watch URL used as the video reference for Gemini."""
        return f"https://www.youtube.com/watch?v={self.video_id}"

    @property
    def key(self) -> str:
        """Get the result key: the title, or the video id for untitled items."""
        return self.title.strip() or self.video_id


@dataclass(frozen=True)
class ReferenceDocument:
    """A reference document uploaded once and shared read-only by all workers."""

    name: str
    uri: str
    mime_type: str
    source_path: str = ""

    @property
    def label(self) -> str:
        """Human-readable name used when citing the document (its file name)."""
        return os.path.basename(self.source_path) if self.source_path else self.name


@dataclass(frozen=True)
class TaskOutcome:
    """Outcome of one worker task: either a payload or an error, never both."""

    item: WorkItem
    payload: Optional[str] = None
    error: Optional[BaseException] = None

    @classmethod
    def ok(cls, item: WorkItem, payload: str) -> "TaskOutcome":
        return cls(item=item, payload=payload)

    @classmethod
    def err(cls, item: WorkItem, error: BaseException) -> "TaskOutcome":
        return cls(item=item, error=error)

    @property
    def key(self) -> str:
        return self.item.key

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class PipelineResult:
    """Aggregate built by the result collector once the channel is drained."""

    results: Dict[str, str] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)
    written_files: Dict[str, str] = field(default_factory=dict)
    write_errors: Dict[str, str] = field(default_factory=dict)
    peak_in_flight: int = 0

    @property
    def has_failures(self) -> bool:
        return bool(self.failures or self.write_errors)


class ItemFailure(BaseModel):
    """A video that produced no output file."""

    key: str = Field(..., description="Result key (video title or id).")
    stage: str = Field(..., description="Where it failed: 'processing' or 'write'.")
    error: str = Field(..., description="Error message.")


class DigestReport(BaseModel):
    """Run-level report produced by the engine and optionally saved as JSON."""

    playlist_id: str = Field(..., description="YouTube playlist processed.")
    playlist_title: Optional[str] = Field(None, description="Playlist title, if it could be fetched.")
    state: str = Field(..., description="Final pipeline state.")
    items_total: int = Field(0, description="Number of videos dispatched.")
    items_succeeded: int = Field(0, description="Number of videos with a written Markdown file.")
    reference_documents: List[str] = Field(default_factory=list, description="Uploaded reference document names.")
    written_files: Dict[str, str] = Field(default_factory=dict, description="Result key -> written file path.")
    failures: List[ItemFailure] = Field(default_factory=list, description="Videos that produced no output.")
    stats: Dict[str, Any] = Field(default_factory=dict, description="Processing statistics.")

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)
