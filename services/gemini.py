#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Gemini client for Playlist Digest.

Uploads the reference documents once before dispatch, and implements the
per-video processing function: a summarization call on the video URL followed
by a fact-check call that combines the summary with the reference documents.
"""

import asyncio
import os
from typing import Any, Dict, List, Optional, Sequence, Tuple

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

# Imports from this package
from config import config
from exceptions import (APIConfigurationError, ProcessingError,
                        QuotaExceededError, RateLimitedError,
                        ReferenceUploadError)
from models import ReferenceDocument, WorkItem
from services.prompts import (build_summarizer_prompt, build_validator_prompt,
                              reference_label)
from utils import extract_token_usage
from logging_config import StructuredLogger

logger = StructuredLogger(__name__)

STAGE_SUMMARIZE = "summarize"
STAGE_FACT_CHECK = "fact_check"

VIDEO_MIME_TYPE = "video/mp4"


class GeminiProcessor:
    """Summarizes and fact-checks playlist videos with the Gemini API.

    One instance is shared by every worker task. It holds no per-video state;
    the only mutable fields are the usage counters, which are updated from the
    event loop thread.
    """

    def __init__(self, api_key: Optional[str] = None, client: Optional[genai.Client] = None,
                 model: Optional[str] = None):
        """Initialize the processor.

        Args:
            api_key: Gemini API key. If None, loaded from config.
            client: Prebuilt `genai.Client`; built from the key when omitted.
            model: Model name. Defaults to config.GEMINI_MODEL.

        Raises:
            APIConfigurationError: If the API key is missing or the client cannot be built.
        """
        self.model = model or config.GEMINI_MODEL

        if client is not None:
            self.client = client
        else:
            api_key = api_key if api_key is not None else config.GEMINI_API_KEY
            if not api_key:
                logger.critical("Gemini API key is missing.", exc_info=False)
                raise APIConfigurationError("GEMINI_API_KEY environment variable is not set or empty.")
            try:
                self.client = genai.Client(api_key=api_key)
            except Exception as e:
                logger.critical(f"Failed to create Gemini client: {e}", error=str(e))
                raise APIConfigurationError(f"Failed to create Gemini client: {e}") from e

        self._stats: Dict[str, int] = {
            "llm_calls": 0,
            "llm_errors": 0,
            "reference_uploads": 0,
        }
        self._token_usage: Dict[str, int] = {}
        logger.info(f"Gemini processor initialized with model '{self.model}'.")

    # --- Reference documents ---

    @staticmethod
    def find_reference_files(directory: str) -> List[str]:
        """List the PDF files under a directory, recursively, sorted by path.

        Args:
            directory: Directory holding the reference documents.

        Returns:
            list: File paths.

        Raises:
            ReferenceUploadError: If the directory does not exist or cannot be walked.
        """
        if not os.path.isdir(directory):
            raise ReferenceUploadError(f"Error accessing path {directory!r}: not a directory")

        def _raise(err: OSError):
            raise ReferenceUploadError(f"Error accessing path {err.filename!r}: {err}") from err

        paths = []
        for root, _dirs, files in os.walk(directory, onerror=_raise):
            for name in files:
                if name.lower().endswith(".pdf"):
                    paths.append(os.path.join(root, name))
        return sorted(paths)

    async def upload_reference_documents(self, directory: str) -> Tuple[ReferenceDocument, ...]:
        """Upload every PDF under `directory`, one at a time.

        Must complete before any worker starts; the returned tuple is shared
        read-only afterwards.

        Args:
            directory: Directory holding the reference documents.

        Returns:
            tuple: ReferenceDocument handles in path order.

        Raises:
            ReferenceUploadError: If the directory is missing or any upload fails.
        """
        logger.info(f"Uploading reference documents from {directory}", directory=directory)
        paths = self.find_reference_files(directory)
        if not paths:
            logger.warning(f"No reference documents found in {directory}", directory=directory)
            return ()

        documents: List[ReferenceDocument] = []
        for path in paths:
            try:
                uploaded = await self.client.aio.files.upload(
                    file=path,
                    config=types.UploadFileConfig(mime_type=config.REFERENCE_MIME_TYPE)
                )
            except Exception as e:
                logger.error(f"Error uploading reference document {path}: {e}", file=path, error=str(e))
                raise ReferenceUploadError(f"Error uploading reference document from {path!r}: {e}") from e

            self._stats["reference_uploads"] += 1
            documents.append(ReferenceDocument(
                name=uploaded.name or os.path.basename(path),
                uri=uploaded.uri,
                mime_type=uploaded.mime_type or config.REFERENCE_MIME_TYPE,
                source_path=path,
            ))
            logger.info(f"Uploaded reference document {path}", file=path, uri=uploaded.uri)

        logger.info(f"Uploaded {len(documents)} reference document(s).", count=len(documents))
        return tuple(documents)

    # --- Processing function ---

    async def process(self, item: WorkItem, references: Sequence[ReferenceDocument]) -> str:
        """Summarize a video, then fact-check the summary against the references.

        Args:
            item: The video to process.
            references: Uploaded reference documents.

        Returns:
            str: Final Markdown text.

        Raises:
            ProcessingError: If either call fails or returns no text.
            RateLimitedError, QuotaExceededError: If Gemini rejects the call for quota reasons.
        """
        summary = await self.summarize(item)
        return await self.fact_check(item, summary, references)

    async def summarize(self, item: WorkItem) -> str:
        """First call: summarize the video referenced by URL."""
        parts = [
            types.Part.from_uri(file_uri=item.url, mime_type=VIDEO_MIME_TYPE),
            types.Part.from_text(text=build_summarizer_prompt(item.key)),
        ]
        return await self._generate(
            item, STAGE_SUMMARIZE, parts,
            temperature=config.SUMMARY_TEMPERATURE,
            thinking_budget=config.SUMMARY_THINKING_BUDGET,
        )

    async def fact_check(self, item: WorkItem, summary: str,
                         references: Sequence[ReferenceDocument]) -> str:
        """Second call: check the summary's key points against the references."""
        parts = []
        for index, document in enumerate(references, start=1):
            parts.append(types.Part.from_text(text=reference_label(index, document.label)))
            parts.append(types.Part.from_uri(file_uri=document.uri, mime_type=document.mime_type))
        parts.append(types.Part.from_text(text=build_validator_prompt(item.key, summary)))

        return await self._generate(
            item, STAGE_FACT_CHECK, parts,
            temperature=config.VALIDATION_TEMPERATURE,
            thinking_budget=config.VALIDATION_THINKING_BUDGET,
        )

    async def _generate(self, item: WorkItem, stage: str, parts: List[types.Part],
                        temperature: float, thinking_budget: int) -> str:
        """Run one generate_content call and return its text."""
        log = logger.bind(video_id=item.video_id, title=item.title, stage=stage)
        log.info(f"Sending {stage} request to Gemini")

        contents = [types.Content(role="user", parts=parts)]
        generation_config = types.GenerateContentConfig(
            temperature=temperature,
            response_modalities=["TEXT"],
            thinking_config=types.ThinkingConfig(thinking_budget=thinking_budget),
        )

        self._stats["llm_calls"] += 1
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=contents,
                config=generation_config,
            )
        except asyncio.CancelledError:
            raise
        except genai_errors.APIError as e:
            self._stats["llm_errors"] += 1
            raise self._map_api_error(e, stage, item) from e
        except Exception as e:
            self._stats["llm_errors"] += 1
            raise ProcessingError(f"Failed to {stage} video {item.video_id} using Gemini: {e}", stage=stage) from e

        text = response.text
        if not text:
            self._stats["llm_errors"] += 1
            raise ProcessingError(f"Gemini returned no text for {stage} of video {item.video_id}", stage=stage)

        usage = extract_token_usage(getattr(response, "usage_metadata", None))
        self._record_usage(usage)
        log.info(f"Received {stage} response from Gemini", response_length=len(text), **usage)
        return text

    def _map_api_error(self, error: Any, stage: str, item: WorkItem) -> Exception:
        """Translate a google-genai APIError into an application exception."""
        code = getattr(error, "code", None)
        status = str(getattr(error, "status", "") or "")
        message = f"Failed to {stage} video {item.video_id} using Gemini: {error}"
        if code == 429 or status == "RESOURCE_EXHAUSTED":
            if "quota" in str(error).lower():
                return QuotaExceededError(message)
            return RateLimitedError(message)
        return ProcessingError(message, stage=stage)

    def _record_usage(self, usage: Dict[str, int]):
        for field_name, count in usage.items():
            self._token_usage[field_name] = self._token_usage.get(field_name, 0) + count

    def get_stats(self) -> Dict[str, Any]:
        """Get call counters and accumulated token usage."""
        return {**self._stats, "token_usage": dict(self._token_usage)}
