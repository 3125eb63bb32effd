#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Markdown file sink for Playlist Digest.

Writes one file per result, named after the result key.
"""

import os
import threading
from pathlib import Path
from typing import Optional, Set, Union

from pathvalidate import sanitize_filename

from config import COLLISION_POLICIES, config
from exceptions import InvalidInputError, SinkWriteError
from logging_config import StructuredLogger

logger = StructuredLogger(__name__)

FALLBACK_FILENAME = "untitled"


class MarkdownSink:
    """Writes result payloads as `<output_dir>/<sanitized key>.md`.

    With the "suffix" collision policy a file name already written during this
    run gets " (2)", " (3)", ... appended; with "overwrite" the last write wins.
    Files left over from earlier runs are always overwritten.
    """

    EXTENSION = ".md"

    def __init__(self, output_dir: Union[str, Path, None] = None, collision_policy: Optional[str] = None,
                 encoding: Optional[str] = None):
        self.output_dir = Path(output_dir or config.OUTPUT_DIR)
        self.collision_policy = collision_policy or config.COLLISION_POLICY
        if self.collision_policy not in COLLISION_POLICIES:
            raise InvalidInputError(f"Unknown collision policy: {self.collision_policy!r}")
        self.encoding = encoding or config.DEFAULT_ENCODING
        self._written: Set[str] = set()
        self._lock = threading.Lock()

    def prepare(self) -> None:
        """Create the output directory.

        Raises:
            SinkWriteError: If the directory cannot be created.
        """
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Error creating output directory {self.output_dir}: {e}", error=str(e), exc_info=False)
            raise SinkWriteError(f"Error creating output directory {self.output_dir}: {e}") from e
        logger.debug(f"Output directory ready: {self.output_dir}")

    @classmethod
    def filename_for(cls, key: str) -> str:
        """Build a path-safe file name from a result key."""
        stem = (key or "").replace("/", "_").strip()
        if stem:
            # Leave room for a collision suffix and the extension
            stem = sanitize_filename(stem, platform="universal", max_len=200).strip()
        if not stem:
            stem = FALLBACK_FILENAME
        return f"{stem}{cls.EXTENSION}"

    def _claim_filename(self, key: str) -> str:
        filename = self.filename_for(key)
        with self._lock:
            if self.collision_policy == "suffix" and filename in self._written:
                stem = filename[:-len(self.EXTENSION)]
                n = 2
                while f"{stem} ({n}){self.EXTENSION}" in self._written:
                    n += 1
                filename = f"{stem} ({n}){self.EXTENSION}"
            self._written.add(filename)
        return filename

    def write(self, key: str, payload: str) -> Path:
        """Write one payload and return the file path.

        Raises:
            SinkWriteError: If the file cannot be written.
        """
        filename = self._claim_filename(key)
        path = self.output_dir / filename
        try:
            with open(path, "w", encoding=self.encoding) as f:
                f.write(payload)
        except OSError as e:
            raise SinkWriteError(f"Error writing result '{key}' to {path}: {e}") from e

        logger.info(f"Wrote result to {path}", key=key, path=str(path), size=len(payload))
        return path

    @property
    def written_count(self) -> int:
        return len(self._written)

    def __repr__(self):
        return f"MarkdownSink(output_dir={os.fspath(self.output_dir)!r}, collision_policy={self.collision_policy!r})"
