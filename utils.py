#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
General utilities for Playlist Digest.

Includes the performance timer used around pipeline phases and helpers for
reading Gemini token usage metadata.
"""

import time
from contextlib import contextmanager
from typing import Any, Dict

from logging_config import StructuredLogger

logger = StructuredLogger(__name__)

# Usage metadata fields reported after every Gemini call
TOKEN_USAGE_FIELDS = (
    "prompt_token_count",
    "thoughts_token_count",
    "candidates_token_count",
    "total_token_count",
)


# --- Performance Timer ---

@contextmanager
def performance_timer(operation_name: str, threshold_ms: float = 100.0):
    """Context manager for timing operations with threshold-based logging.

    Logs the duration of the enclosed code block. Logs at INFO level if duration
    exceeds threshold_ms, WARNING if it significantly exceeds it, otherwise DEBUG.

    Args:
        operation_name: A descriptive name for the operation being timed.
        threshold_ms: Threshold in milliseconds. Defaults to 100ms.

    Yields:
        dict: Filled with 'duration_ms' once the block exits.
    """
    timing: Dict[str, float] = {}
    start_time = time.monotonic()
    try:
        yield timing
    finally:
        duration_ms = (time.monotonic() - start_time) * 1000
        timing["duration_ms"] = round(duration_ms, 2)

        log_data = {
            "operation": operation_name,
            "duration_ms": round(duration_ms, 2),
            "threshold_ms": threshold_ms
        }

        if duration_ms > threshold_ms * 10:
            logger.warning(f"SLOW OPERATION: '{operation_name}' took {duration_ms:.2f}ms", **log_data)
        elif duration_ms > threshold_ms:
            logger.info(f"Performance watch: '{operation_name}' took {duration_ms:.2f}ms", **log_data)
        else:
            logger.debug(f"Performance: '{operation_name}' completed in {duration_ms:.2f}ms", **log_data)


# --- Token Usage ---

def extract_token_usage(usage_metadata: Any) -> Dict[str, int]:
    """Read token counts from a Gemini usage metadata object or dict.

    Missing or null counts are omitted.

    Args:
        usage_metadata: `GenerateContentResponseUsageMetadata`, a plain dict, or None.

    Returns:
        dict: Field name -> token count.
    """
    if usage_metadata is None:
        return {}

    counts: Dict[str, int] = {}
    for field_name in TOKEN_USAGE_FIELDS:
        if isinstance(usage_metadata, dict):
            value = usage_metadata.get(field_name)
        else:
            value = getattr(usage_metadata, field_name, None)
        if isinstance(value, int):
            counts[field_name] = value
    return counts


def short_error(exception: BaseException, max_length: int = 300) -> str:
    """Render an exception as 'Type: message', truncated for reports."""
    message = str(exception) or exception.__class__.__name__
    text = f"{type(exception).__name__}: {message}"
    if len(text) > max_length:
        text = text[:max_length - 3] + "..."
    return text
