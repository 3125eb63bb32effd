#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
digest_cli.py
Command line entry point for Playlist Digest.

Summarizes every video of a YouTube playlist with Gemini, fact-checks each
summary against a directory of reference PDFs, and writes one Markdown file
per video.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from config import COLLISION_POLICIES, config
from exceptions import (EXIT_INTERRUPTED, EXIT_OK, EXIT_PARTIAL_FAILURE,
                        AppBaseError, QuotaExceededError, handle_exception)
from logging_config import StructuredLogger, setup_logging_from_env
from models import DigestReport
from services.engine import PlaylistDigestEngine
from services.gemini import GeminiProcessor
from services.sink import MarkdownSink
from services.youtube_api import YouTubeAPIClient

logger = StructuredLogger(__name__)


def positive_int(value: str) -> int:
    """argparse type for integers >= 1."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {number}")
    return number


def non_negative_int(value: str) -> int:
    """argparse type for integers >= 0."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}")
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="playlist-digest",
        description="Summarize and fact-check every video of a YouTube playlist with Gemini.",
    )
    parser.add_argument("--playlist", metavar="ID", default=None,
                        help="YouTube playlist ID (default: PLAYLIST_ID)")
    parser.add_argument("--references", metavar="DIR", default=None,
                        help="Directory of reference PDFs (default: RELEASE_NOTES_DIR)")
    parser.add_argument("--output", metavar="DIR", default=None,
                        help="Directory for the Markdown files (default: OUTPUT_DIR)")
    parser.add_argument("--concurrency", metavar="K", type=positive_int, default=None,
                        help="Max videos processed at once (default: LLM_CONCURRENCY_LIMIT)")
    parser.add_argument("--on-collision", choices=COLLISION_POLICIES, default=None,
                        help="What to do when two videos share a title (default: COLLISION_POLICY)")
    parser.add_argument("--max-videos", metavar="N", type=non_negative_int, default=None,
                        help="Process at most N videos, 0 for all (default: MAX_VIDEOS_PER_RUN)")
    parser.add_argument("--report", metavar="FILE", default=None,
                        help="Write the run report as JSON to FILE")
    parser.add_argument("--strict", action="store_true",
                        help="Exit with code 3 if any video failed")
    return parser


def show_report(console: Console, report: DigestReport) -> None:
    """Print the written files and failures as tables."""
    title = report.playlist_title or report.playlist_id
    console.print(f"\n[bold blue]Playlist Digest[/] [dim]{title}[/]")

    if not report.written_files:
        console.print("[blue]INFO: No Markdown file written.[/]")
    else:
        table = Table(show_header=True, header_style="bold magenta", border_style="dim", expand=True)
        table.add_column("Video", style="green", no_wrap=False, overflow="fold")
        table.add_column("File", style="cyan", no_wrap=False, overflow="fold", min_width=40)
        for key, path in report.written_files.items():
            table.add_row(key, path)
        console.print(table)

    if report.failures:
        table = Table(show_header=True, header_style="bold red", border_style="dim", expand=True)
        table.add_column("Video", style="yellow", overflow="fold")
        table.add_column("Stage", style="magenta")
        table.add_column("Error", style="red", overflow="fold")
        for failure in report.failures:
            table.add_row(failure.key, failure.stage, failure.error)
        console.print(table)

    console.print(
        f"[bold]{report.items_succeeded}/{report.items_total}[/] video(s) written, "
        f"[bold]{len(report.failures)}[/] failure(s), "
        f"{len(report.reference_documents)} reference document(s)."
    )


def write_report(report: DigestReport, path: str) -> None:
    report_path = Path(path)
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(report.model_dump_json(indent=2), encoding=config.DEFAULT_ENCODING)
    logger.info(f"Report written to {report_path}", path=str(report_path))


async def main_cli(argv: Optional[List[str]] = None) -> int:
    """Run one digest from the command line and return the exit code."""
    args = build_parser().parse_args(argv)
    console = Console(stderr=True)
    exit_code = EXIT_OK

    load_dotenv()
    config.load_from_env(warn_missing_keys=True)
    setup_logging_from_env(log_file=config.LOG_FILE)

    try:
        api_client = YouTubeAPIClient(config.YOUTUBE_API_KEY)
        processor = GeminiProcessor(config.GEMINI_API_KEY)
        sink = MarkdownSink(output_dir=args.output, collision_policy=args.on_collision)
        engine = PlaylistDigestEngine(
            api_client, processor, sink,
            concurrency_limit=args.concurrency,
            references_dir=args.references,
            max_videos=args.max_videos,
        )

        report = await engine.run(args.playlist)

        show_report(console, report)
        if args.report:
            write_report(report, args.report)

        if args.strict and report.has_failures:
            console.print("\n[bold yellow]Some videos failed (--strict).[/]")
            exit_code = EXIT_PARTIAL_FAILURE

    except QuotaExceededError as e:
        console.print(f"\n[bold yellow]INFO: Processing stopped, API quota exceeded.[/]\n{e}")
        exit_code = handle_exception(e)
    except AppBaseError as e:
        console.print(f"\n[bold red]ERROR ({e.error_code}):[/]\n{e}")
        exit_code = handle_exception(e)
    except OSError as e:
        logger.error(f"Error writing report: {e}", error=str(e))
        console.print(f"\n[bold red]ERROR:[/] {e}")
        exit_code = handle_exception(e)
    except KeyboardInterrupt as e:
        logger.warning("User interrupt (Ctrl+C) detected.")
        console.print("\n[yellow]Processing interrupted by user.[/]")
        exit_code = handle_exception(e)
    except Exception as e:
        logger.critical(f"Unexpected critical error in main_cli: {e}", exc_info=True)
        console.print(f"\n[bold red]UNEXPECTED CRITICAL ERROR:[/]\n{e}\nSee the log file: {config.LOG_FILE}")
        exit_code = handle_exception(e)
    finally:
        logger.info(f"Run finished. Exit code: {exit_code}", exit_code=exit_code)

    return exit_code


def main(argv: Optional[List[str]] = None) -> None:
    final_exit_code = 1
    try:
        final_exit_code = asyncio.run(main_cli(argv))
    except KeyboardInterrupt:
        print("\nInterrupted during startup or shutdown.", file=sys.stderr)
        final_exit_code = EXIT_INTERRUPTED
    finally:
        sys.exit(final_exit_code)


if __name__ == "__main__":
    main()
