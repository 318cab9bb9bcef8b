"""Rewrite-stage prompt building and chunking of long content."""

import re
from collections.abc import Sequence

from orchestrator.query_gen import strip_code_fences

DEFAULT_REWRITE_SYSTEM_PROMPT = (
    "You are a blog fact-checker. Use the search results to verify and update "
    "factual claims while keeping the author's voice."
)

_SECTION_BOUNDARY = re.compile(r"(?=<h2\b)", re.IGNORECASE)


def build_rewrite_prompt(
    protected_content: str,
    findings: str,
    *,
    keywords: Sequence[str] = (),
    target_keyword: str | None = None,
    part: tuple[int, int] | None = None,
) -> str:
    keyword_lines = []
    if target_keyword:
        keyword_lines.append(f"- Target keyword: {target_keyword}")
    if keywords:
        keyword_lines.append(f"- Work these keywords in where they fit naturally: {', '.join(keywords)}")
    keyword_block = "\n".join(keyword_lines) if keyword_lines else "- None"

    part_note = ""
    if part is not None:
        part_note = (
            f"\nThis is part {part[0]} of {part[1]} of a longer post. "
            "Return only this part, starting and ending where it does.\n"
        )

    return (
        "Update this blog using the search results. Be thorough with numbers and facts.\n\n"
        f"SEARCH RESULTS:\n{findings}\n\n"
        f"BLOG TO UPDATE:\n{protected_content}\n"
        f"{part_note}\n"
        "INSTRUCTIONS:\n"
        "1. Update prices, plan names, limits, user counts and feature names when the "
        "search results show newer values. Do not invent facts the results do not support.\n"
        "2. Keep ALL HTML tags, headings, images and links. Keep the original tone.\n"
        "3. Tokens like ___WIDGET_0___ stand for embedded widgets. Copy every one of them "
        "exactly once, unchanged, in the same place.\n"
        "4. Shorten sentences over 30 words and remove em-dashes.\n"
        f"5. Keyword guidance:\n{keyword_block}\n"
        "6. Return the COMPLETE content.\n\n"
        "Return ONLY the updated HTML, no explanations."
    )


def clean_rewrite_output(text: str) -> str:
    return strip_code_fences(text or "")


def split_into_chunks(html: str, threshold: int) -> list[str]:
    """
    Split ``html`` before ``<h2`` boundaries into pieces shorter than ``threshold``.

    Sections are packed greedily; a single section longer than the threshold
    becomes a chunk of its own. ``"".join(result) == html`` always holds.
    """
    if threshold <= 0 or len(html) <= threshold:
        return [html]

    sections = [section for section in _SECTION_BOUNDARY.split(html) if section]
    chunks: list[str] = []
    current = ""
    for section in sections:
        if current and len(current) + len(section) > threshold:
            chunks.append(current)
            current = section
        else:
            current += section
    if current:
        chunks.append(current)
    return chunks
