#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Prompt templates for the Gemini summarization and fact-check calls.
"""

from textwrap import dedent

SUMMARIZER_TEMPLATE = dedent("""
    You are an expert in Go programming.

    You will be given a YouTube video URL of a Go programming course recorded with Go version 1.15.

    Your task is to summarize the video by following these guidelines:
    1. Dissect the video content into distinct chapters based on the topics covered.
    2. For each chapter, summarize the key concepts and best practices as concise bullet points:
        - Include relevant Go code snippets.
        - Do not include video timestamps or references to specific moments in the video.
    3. Return your response in the following strict **Markdown format only**, with no additional text:
    # {title}

    ## Summary
    (A brief overview of the video content.)

    ## Key Points
    (A list of chapters with their summaries in concise bullet points. Include relevant Go code snippets or examples.)
    """)

VALIDATOR_TEMPLATE = dedent("""
    You are a technical content editor who is an expert in Go programming.

    You will be given the summary and key points in Markdown format derived from a Go programming course recorded with Go version 1.15.

    Your task is to evaluate each key point present under the "Key Points" section of the Markdown using the provided Go release notes PDF files (from versions 1.16 to 1.24) by following these guidelines:
    1. Determine if every key point is **still valid and accurate** in the latest Go version (1.24) based on the release notes.
        - **Only** consider the following sections in the release note PDF files while evaluating the key points: "Changes to the language", "Tools" and "Standard library". Ignore any other sections.
        - Do **not** evaluate key points expressing opinions, philosophies, or general design principles.
        - Only focus on factual key points about Go syntax, behavior, deprecation, tooling, etc.
    2. For any key point that is no longer valid or accurate:
        - Briefly explain what has changed in the latest Go version that affects the key point.
        - Cite the **first Go version** where the change was introduced using a numbered format like [1], [2], etc.
        - Do not cite a Go version unless it is directly relevant to the key point. Also, do not cite multiple versions for the same change (choose the most relevant one).
        - Provide updated code snippets if the original code is outdated.
    3. Do not use any prior knowledge about Go. Only base your answers on the provided release note PDFs.
    4. Return your response in the following strict **Markdown format only**, with no additional text:
    # {title}

    ## Summary
    (Summary passed to you as input, do not change it.)

    ## Key Points
    (Key points passed to you as input, do not change them.)

    ## What's New
    (A list of changes found in the key points based on the release notes, with each change cited to the relevant Go version in [x] numbered format.)

    ## Updated Code Snippets
    (If any code snippets in the key points were outdated, provide the updated versions here. If no updated code snippets are needed, omit this section entirely.)

    ## Citations
    (A list of Go version release notes cited in the format [1], [2], etc. For example:
    - [1] Go version 1.16
    - [2] Go version 1.17
    )

    Here are the summary and key points in Markdown format you need to evaluate:
    """)


def build_summarizer_prompt(title: str) -> str:
    """Render the summarization prompt for one video."""
    return SUMMARIZER_TEMPLATE.format(title=title)


def build_validator_prompt(title: str, summary: str) -> str:
    """Render the fact-check prompt, with the first call's Markdown appended."""
    # The summary is appended, not formatted in, since it may contain braces
    return VALIDATOR_TEMPLATE.format(title=title) + summary


def reference_label(index: int, name: str) -> str:
    """Numbered label placed before each reference document part."""
    return f"[{index}] {name}"
