"""
Tests for the YouTubeAPIClient class.
"""
import unittest
import sys
import os
import time
from unittest.mock import MagicMock, patch

from googleapiclient.errors import HttpError

# Add the parent directory to the path so we can import the application modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from services.youtube_api import YouTubeAPIClient
from exceptions import (APIConfigurationError, InvalidInputError, ItemSourceError,
                        QuotaExceededError, RateLimitedError, ResourceNotFoundError,
                        TimeoutExceededError)


def playlist_item(video_id, title, position=0):
    return {
        "id": f"item-{video_id}",
        "snippet": {"title": title, "position": position, "resourceId": {"videoId": video_id}},
        "contentDetails": {"videoId": video_id, "videoPublishedAt": "2021-03-04T05:06:07Z"},
    }


def http_error(status, content=b"{}"):
    resp = MagicMock()
    resp.status = status
    resp.reason = "error"
    return HttpError(resp, content)


class TestYouTubeAPIClient(unittest.IsolatedAsyncioTestCase):
    """Test cases for the YouTubeAPIClient class."""

    async def asyncSetUp(self):
        self.youtube = MagicMock()
        self.client = YouTubeAPIClient(api_key="test-key", youtube=self.youtube)

    def set_pages(self, *pages):
        requests = []
        for page in pages:
            request = MagicMock()
            request.execute.return_value = page
            requests.append(request)
        self.youtube.playlistItems.return_value.list.side_effect = requests

    async def test_missing_api_key(self):
        with self.assertRaises(APIConfigurationError):
            YouTubeAPIClient(api_key="")

    async def test_build_called_with_key(self):
        with patch("services.youtube_api.build") as build:
            YouTubeAPIClient(api_key="abc")
            build.assert_called_once_with("youtube", "v3", developerKey="abc", cache_discovery=False)

    async def test_empty_playlist_id(self):
        with self.assertRaises(InvalidInputError):
            await self.client.get_playlist_items("  ")

    async def test_single_page(self):
        self.set_pages({"items": [playlist_item("v1", "First"), playlist_item("v2", "Second", 1)]})

        items = await self.client.get_playlist_items("PL123")

        self.assertEqual([item.video_id for item in items], ["v1", "v2"])
        self.assertEqual(items[0].title, "First")
        self.assertEqual(items[0].url, "https://www.youtube.com/watch?v=v1")
        self.youtube.playlistItems.return_value.list.assert_called_once_with(
            part="snippet,contentDetails", playlistId="PL123", maxResults=50
        )
        self.assertEqual(self.client.api_calls_count, 1)

    async def test_pagination(self):
        """Pages are followed until no nextPageToken is returned."""
        self.set_pages(
            {"items": [playlist_item("v1", "One")], "nextPageToken": "tok2"},
            {"items": [playlist_item("v2", "Two")], "nextPageToken": "tok3"},
            {"items": [playlist_item("v3", "Three")]},
        )

        items = await self.client.get_playlist_items("PL123")

        self.assertEqual([item.video_id for item in items], ["v1", "v2", "v3"])
        calls = self.youtube.playlistItems.return_value.list.call_args_list
        self.assertEqual(len(calls), 3)
        self.assertNotIn("pageToken", calls[0].kwargs)
        self.assertEqual(calls[1].kwargs["pageToken"], "tok2")
        self.assertEqual(calls[2].kwargs["pageToken"], "tok3")
        self.assertEqual(self.client.get_api_stats()["api_quota_used"], 3)

    async def test_items_without_video_id_skipped(self):
        self.set_pages({"items": [{"snippet": {"title": "Deleted video"}}, playlist_item("v1", "Kept")]})
        items = await self.client.get_playlist_items("PL123")
        self.assertEqual([item.video_id for item in items], ["v1"])

    async def test_empty_playlist(self):
        self.set_pages({"items": []})
        self.assertEqual(await self.client.get_playlist_items("PL123"), [])

    async def test_quota_exceeded(self):
        request = MagicMock()
        request.execute.side_effect = http_error(403, b'{"error": {"errors": [{"reason": "quotaExceeded"}]}}')
        self.youtube.playlistItems.return_value.list.return_value = request

        with self.assertRaises(QuotaExceededError):
            await self.client.get_playlist_items("PL123")
        self.assertTrue(self.client.quota_reached)

    async def test_not_found(self):
        request = MagicMock()
        request.execute.side_effect = http_error(404)
        self.youtube.playlistItems.return_value.list.return_value = request

        with self.assertRaises(ResourceNotFoundError):
            await self.client.get_playlist_items("PL404")

    async def test_rate_limited(self):
        request = MagicMock()
        request.execute.side_effect = http_error(429)
        self.youtube.playlistItems.return_value.list.return_value = request

        with self.assertRaises(RateLimitedError):
            await self.client.get_playlist_items("PL123")

    async def test_server_error(self):
        request = MagicMock()
        request.execute.side_effect = http_error(500)
        self.youtube.playlistItems.return_value.list.return_value = request

        with self.assertRaises(ItemSourceError):
            await self.client.get_playlist_items("PL123")

    async def test_transport_error(self):
        request = MagicMock()
        request.execute.side_effect = ConnectionError("reset")
        self.youtube.playlistItems.return_value.list.return_value = request

        with self.assertRaises(ItemSourceError):
            await self.client.get_playlist_items("PL123")

    async def test_timeout(self):
        request = MagicMock()
        request.execute.side_effect = lambda: time.sleep(0.2)

        with self.assertRaises(TimeoutExceededError):
            await self.client._execute_api_call(request, timeout=0.01)

    async def test_get_playlist_title(self):
        request = MagicMock()
        request.execute.return_value = {"items": [{"snippet": {"title": "Go Course"}}]}
        self.youtube.playlists.return_value.list.return_value = request

        self.assertEqual(await self.client.get_playlist_title("PL123"), "Go Course")

    async def test_get_playlist_title_error_returns_none(self):
        request = MagicMock()
        request.execute.side_effect = http_error(404)
        self.youtube.playlists.return_value.list.return_value = request

        self.assertIsNone(await self.client.get_playlist_title("PL123"))

    async def test_get_playlist_title_quota_returns_none(self):
        """Quota exhaustion on the title lookup does not raise but is remembered."""
        request = MagicMock()
        request.execute.side_effect = http_error(403, b'quotaExceeded')
        self.youtube.playlists.return_value.list.return_value = request

        self.assertIsNone(await self.client.get_playlist_title("PL123"))
        self.assertTrue(self.client.quota_reached)


if __name__ == '__main__':
    unittest.main()
