#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
YouTube Data API v3 Client for Playlist Digest.

Enumerates the videos of a playlist page by page. Each page request runs in
an executor with a fixed timeout, and API errors are mapped to the
application's exception hierarchy.
"""

import asyncio
import functools
from typing import Any, List, Optional

from googleapiclient.discovery import Resource, build
from googleapiclient.errors import HttpError

# Imports from this package
from config import config
from exceptions import (APIConfigurationError, InvalidInputError, ItemSourceError,
                        QuotaExceededError, RateLimitedError,
                        ResourceNotFoundError, TimeoutExceededError)
from models import WorkItem
from logging_config import StructuredLogger

logger = StructuredLogger(__name__)


class YouTubeAPIClient:
    """Client for reading playlists from the YouTube Data API v3.

    Provides the item source of the digest pipeline: the ordered list of
    videos in a playlist, with the metadata needed to build Gemini requests.
    """

    # API quota costs for the endpoint calls used here
    API_COST = {
        "playlists.list": 1,
        "playlistItems.list": 1
    }

    PLAYLIST_ITEM_PARTS = "snippet,contentDetails"

    def __init__(self, api_key: Optional[str] = None, youtube: Optional[Resource] = None):
        """Initialize the YouTube API client.

        Args:
            api_key: YouTube Data API key. If None, loaded from config.
            youtube: Prebuilt API resource; built from the key when omitted.

        Raises:
            APIConfigurationError: If the API key is missing or client cannot be built.
        """
        logger.info("Initializing YouTube API Client...")
        self.api_key = api_key if api_key is not None else config.YOUTUBE_API_KEY
        self.quota_reached = False

        if youtube is not None:
            self.youtube = youtube
        else:
            if not self.api_key:
                logger.critical("YouTube API key is missing.", exc_info=False)
                raise APIConfigurationError("YOUTUBE_API_KEY environment variable is not set or empty.")
            try:
                # cache_discovery=False prevents issues with stale discovery documents
                self.youtube = build("youtube", "v3", developerKey=self.api_key, cache_discovery=False)
                logger.debug("YouTube API Resource created successfully.")
            except Exception as e:
                logger.critical(f"Error initializing YouTube API client build: {e}", error=str(e))
                raise APIConfigurationError(f"Could not initialize YouTube API service: {e}") from e

        # Statistics tracking
        self.api_calls_count = 0
        self.api_quota_used = 0
        logger.info("YouTube API Client initialized.")

    async def _execute_api_call(self, api_request: Any, cost: int = 1,
                                timeout: Optional[float] = None) -> dict:
        """Executes a blocking API request in an executor with a timeout.

        Args:
            api_request: The Google API Client Library request object.
            cost: Estimated API quota cost for this request type.
            timeout: Timeout in seconds. Defaults to config.API_TIMEOUT_SECONDS.

        Returns:
            dict: The parsed JSON response from the API.

        Raises:
            QuotaExceededError: If API quota is exceeded (403 quotaExceeded).
            ResourceNotFoundError: If the requested resource is not found (404).
            RateLimitedError: If rate limited by the API (429).
            TimeoutExceededError: If the request does not finish in time.
            ItemSourceError: For any other HTTP or transport failure.
        """
        timeout = timeout if timeout is not None else config.API_TIMEOUT_SECONDS
        op_name = getattr(api_request, "methodId", None) or "youtube_api_call"
        loop = asyncio.get_running_loop()

        try:
            response = await asyncio.wait_for(
                loop.run_in_executor(None, functools.partial(api_request.execute)),
                timeout=timeout
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Timeout after {timeout}s in '{op_name}'", operation=op_name, timeout=timeout, exc_info=False)
            raise TimeoutExceededError(f"YouTube API request '{op_name}' timed out after {timeout} seconds") from e
        except HttpError as http_err:
            raise self._map_http_error(http_err, op_name) from http_err
        except Exception as e:
            logger.error(f"Unexpected error during API call execution: {e}", operation=op_name, error=str(e))
            raise ItemSourceError(f"Failed to make request to YouTube API: {e}") from e

        self.api_calls_count += 1
        self.api_quota_used += cost
        return response

    def _map_http_error(self, http_err: HttpError, op_name: str) -> Exception:
        """Translate a googleapiclient HttpError into an application exception."""
        status_code = getattr(getattr(http_err, "resp", None), "status", None)
        try:
            status_code = int(status_code) if status_code is not None else None
        except (TypeError, ValueError):
            status_code = None

        content_bytes = getattr(http_err, "content", b"") or b""
        content_str = content_bytes.decode(config.DEFAULT_ENCODING, errors="replace") \
            if isinstance(content_bytes, bytes) else str(content_bytes)

        if status_code == 403 and ("quotaExceeded" in content_str or "servingLimitExceeded" in content_str):
            self.quota_reached = True
            logger.critical(f"YouTube API quota exceeded during '{op_name}'", operation=op_name, exc_info=False)
            return QuotaExceededError("YouTube API quota exceeded")
        if status_code == 404:
            logger.warning(f"YouTube resource not found during '{op_name}'", operation=op_name)
            return ResourceNotFoundError(f"YouTube resource not found (404) during '{op_name}'")
        if status_code == 429:
            logger.warning(f"YouTube API rate limited during '{op_name}'", operation=op_name)
            return RateLimitedError("YouTube API rate limit reached")

        logger.error(f"Received non-200 response from YouTube API: {status_code}", operation=op_name,
                     status=status_code, error=str(http_err), exc_info=False)
        return ItemSourceError(f"Received non-200 response from YouTube API: {status_code}")

    async def _fetch_playlist_page(self, playlist_id: str, page_token: Optional[str]) -> dict:
        """Fetches a single page of playlist items.

        Args:
            playlist_id: The YouTube Playlist ID.
            page_token: The token for the next page, or None for the first page.

        Returns:
            dict: The API response dictionary for the playlistItems.list call.
        """
        params = {
            "part": self.PLAYLIST_ITEM_PARTS,
            "playlistId": playlist_id,
            "maxResults": config.BATCH_SIZE,
        }
        if page_token:
            params["pageToken"] = page_token

        req = self.youtube.playlistItems().list(**params)
        return await self._execute_api_call(req, cost=self.API_COST["playlistItems.list"])

    async def get_playlist_items(self, playlist_id: str) -> List[WorkItem]:
        """Fetches every video of a playlist, following pagination to the end.

        Args:
            playlist_id: The YouTube Playlist ID.

        Returns:
            list: WorkItems in playlist order.

        Raises:
            InvalidInputError: If the playlist ID is empty.
            QuotaExceededError, ResourceNotFoundError, RateLimitedError,
            TimeoutExceededError, ItemSourceError: Propagated from page fetches.
        """
        if not playlist_id or not playlist_id.strip():
            raise InvalidInputError("Playlist ID cannot be empty.")

        playlist_id = playlist_id.strip()
        items: List[WorkItem] = []
        page_token: Optional[str] = None
        page_count = 0

        logger.info(f"Fetching playlist items for {playlist_id}", playlist_id=playlist_id)

        while True:
            page_count += 1
            logger.debug(f"Fetching playlist page {page_count} for {playlist_id}, token: {page_token}")
            resp = await self._fetch_playlist_page(playlist_id, page_token)

            for raw_item in resp.get("items", []) or []:
                item = WorkItem.from_api_response(raw_item)
                if not item.video_id:
                    logger.debug(f"Skipping playlist item with missing video ID: {raw_item.get('id')}")
                    continue
                items.append(item)

            page_token = resp.get("nextPageToken")
            if not page_token:
                break

        logger.info(
            f"Fetched {len(items)} video(s) from playlist {playlist_id} in {page_count} page(s).",
            playlist_id=playlist_id,
            video_count=len(items),
            page_count=page_count
        )
        return items

    async def get_playlist_title(self, playlist_id: str) -> Optional[str]:
        """Gets the title of a playlist, or None if it cannot be fetched.

        Best effort: any failure, quota exhaustion included, is logged and
        yields None. A quota error still leaves `quota_reached` set.

        Args:
            playlist_id: The YouTube Playlist ID.

        Returns:
            str: Playlist title, or None.
        """
        try:
            req = self.youtube.playlists().list(part="snippet", id=playlist_id, fields="items(snippet/title)")
            resp = await self._execute_api_call(req, cost=self.API_COST["playlists.list"])
        except Exception as e:
            logger.warning(f"Could not fetch title for playlist {playlist_id}: {e}", playlist_id=playlist_id)
            return None

        items = resp.get("items") or []
        if not items:
            return None
        return items[0].get("snippet", {}).get("title")

    def get_api_stats(self) -> dict:
        """Get API usage statistics for this client instance."""
        return {
            "api_calls_count": self.api_calls_count,
            "api_quota_used": self.api_quota_used,
            "quota_reached": self.quota_reached,
        }
