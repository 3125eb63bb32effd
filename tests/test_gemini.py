"""
Tests for the GeminiProcessor class.
"""
import unittest
import sys
import os
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

from google.genai import errors as genai_errors
from google.genai import types

# Add the parent directory to the path so we can import the application modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from services.gemini import GeminiProcessor, STAGE_FACT_CHECK, STAGE_SUMMARIZE
from models import ReferenceDocument, WorkItem
from exceptions import (APIConfigurationError, ProcessingError, QuotaExceededError,
                        RateLimitedError, ReferenceUploadError)


def make_response(text, usage=None):
    response = MagicMock()
    response.text = text
    response.usage_metadata = usage
    return response


def part_texts(parts):
    return [part.text for part in parts if part.text is not None]


class TestGeminiProcessor(unittest.IsolatedAsyncioTestCase):
    """Test cases for the GeminiProcessor class."""

    async def asyncSetUp(self):
        self.client = MagicMock()
        self.client.aio.models.generate_content = AsyncMock()
        self.client.aio.files.upload = AsyncMock()
        self.processor = GeminiProcessor(client=self.client, model="gemini-test")
        self.item = WorkItem(video_id="abc123", title="Interfaces in Go")
        self.references = (
            ReferenceDocument(name="files/r1", uri="https://files/r1", mime_type="application/pdf",
                              source_path="releasenote/go1.15.pdf"),
            ReferenceDocument(name="files/r2", uri="https://files/r2", mime_type="application/pdf",
                              source_path="releasenote/go1.16.pdf"),
        )

    async def test_missing_api_key(self):
        with self.assertRaises(APIConfigurationError):
            GeminiProcessor(api_key="")

    async def test_process_two_calls_in_order(self):
        """Summary first, then fact-check with the summary and the references."""
        self.client.aio.models.generate_content.side_effect = [
            make_response("# Interfaces in Go\n\nsummary"),
            make_response("# Interfaces in Go\n\nchecked"),
        ]

        result = await self.processor.process(self.item, self.references)

        self.assertEqual(result, "# Interfaces in Go\n\nchecked")
        calls = self.client.aio.models.generate_content.await_args_list
        self.assertEqual(len(calls), 2)

        summary_call, check_call = calls[0].kwargs, calls[1].kwargs
        self.assertEqual(summary_call["model"], "gemini-test")
        summary_parts = summary_call["contents"][0].parts
        self.assertEqual(summary_parts[0].file_data.file_uri, "https://www.youtube.com/watch?v=abc123")
        self.assertIn("# Interfaces in Go", summary_parts[1].text)
        self.assertEqual(summary_call["config"].temperature, 0.1)
        self.assertEqual(summary_call["config"].thinking_config.thinking_budget, -1)

        check_parts = check_call["contents"][0].parts
        texts = part_texts(check_parts)
        self.assertEqual(texts[0], "[1] go1.15.pdf")
        self.assertEqual(texts[1], "[2] go1.16.pdf")
        self.assertTrue(texts[-1].endswith("# Interfaces in Go\n\nsummary"))
        self.assertEqual(check_parts[1].file_data.file_uri, "https://files/r1")
        self.assertEqual(check_call["config"].temperature, 0.0)
        self.assertEqual(check_call["config"].thinking_config.thinking_budget, 24576)

    async def test_fact_check_not_called_when_summary_fails(self):
        self.client.aio.models.generate_content.side_effect = RuntimeError("network down")

        with self.assertRaises(ProcessingError) as ctx:
            await self.processor.process(self.item, self.references)

        self.assertEqual(ctx.exception.stage, STAGE_SUMMARIZE)
        self.assertEqual(self.client.aio.models.generate_content.await_count, 1)

    async def test_fact_check_failure(self):
        self.client.aio.models.generate_content.side_effect = [
            make_response("summary"),
            RuntimeError("boom"),
        ]

        with self.assertRaises(ProcessingError) as ctx:
            await self.processor.process(self.item, self.references)
        self.assertEqual(ctx.exception.stage, STAGE_FACT_CHECK)

    async def test_empty_response_text(self):
        self.client.aio.models.generate_content.return_value = make_response(None)

        with self.assertRaises(ProcessingError):
            await self.processor.summarize(self.item)
        self.assertEqual(self.processor.get_stats()["llm_errors"], 1)

    async def test_rate_limit_mapping(self):
        error = genai_errors.ClientError(429, {"error": {
            "code": 429, "message": "Too many requests", "status": "RESOURCE_EXHAUSTED"}})
        self.client.aio.models.generate_content.side_effect = error

        with self.assertRaises(RateLimitedError):
            await self.processor.summarize(self.item)

    async def test_quota_mapping(self):
        error = genai_errors.ClientError(429, {"error": {
            "code": 429, "message": "You exceeded your current quota", "status": "RESOURCE_EXHAUSTED"}})
        self.client.aio.models.generate_content.side_effect = error

        with self.assertRaises(QuotaExceededError):
            await self.processor.summarize(self.item)

    async def test_token_usage_accumulated(self):
        usage = {"prompt_token_count": 100, "candidates_token_count": 20, "total_token_count": 120}
        self.client.aio.models.generate_content.return_value = make_response("text", usage)

        await self.processor.summarize(self.item)
        await self.processor.summarize(self.item)

        stats = self.processor.get_stats()
        self.assertEqual(stats["llm_calls"], 2)
        self.assertEqual(stats["token_usage"]["total_token_count"], 240)
        self.assertNotIn("thoughts_token_count", stats["token_usage"])


class TestReferenceUpload(unittest.IsolatedAsyncioTestCase):
    """Test cases for reference document discovery and upload."""

    async def asyncSetUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp.name)
        self.client = MagicMock()
        self.client.aio.files.upload = AsyncMock(side_effect=self._uploaded)
        self.processor = GeminiProcessor(client=self.client)

    async def asyncTearDown(self):
        self.tmp.cleanup()

    @staticmethod
    async def _uploaded(file, config):
        return types.File(name=f"files/{os.path.basename(file)}", uri=f"https://files/{os.path.basename(file)}",
                          mime_type=config.mime_type)

    def test_find_reference_files_sorted_recursive(self):
        (self.root / "sub").mkdir()
        for name in ("b.pdf", "a.pdf", "notes.txt", "sub/c.PDF"):
            (self.root / name).write_bytes(b"%PDF")

        found = GeminiProcessor.find_reference_files(str(self.root))

        self.assertEqual([os.path.relpath(p, self.root) for p in found],
                         ["a.pdf", "b.pdf", os.path.join("sub", "c.PDF")])

    def test_missing_directory(self):
        with self.assertRaises(ReferenceUploadError):
            GeminiProcessor.find_reference_files(str(self.root / "missing"))

    async def test_upload_all(self):
        for name in ("go1.15.pdf", "go1.16.pdf"):
            (self.root / name).write_bytes(b"%PDF")

        documents = await self.processor.upload_reference_documents(str(self.root))

        self.assertEqual([doc.label for doc in documents], ["go1.15.pdf", "go1.16.pdf"])
        self.assertEqual(documents[0].uri, "https://files/go1.15.pdf")
        self.assertEqual(documents[0].mime_type, "application/pdf")
        self.assertEqual(self.processor.get_stats()["reference_uploads"], 2)

    async def test_empty_directory(self):
        documents = await self.processor.upload_reference_documents(str(self.root))
        self.assertEqual(documents, ())
        self.client.aio.files.upload.assert_not_awaited()

    async def test_upload_failure_is_fatal(self):
        (self.root / "go1.15.pdf").write_bytes(b"%PDF")
        self.client.aio.files.upload.side_effect = RuntimeError("upload refused")

        with self.assertRaises(ReferenceUploadError):
            await self.processor.upload_reference_documents(str(self.root))


if __name__ == '__main__':
    unittest.main()
