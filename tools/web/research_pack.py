"""Build the research-findings block that is injected into the rewrite prompt."""

from models.pipeline import SearchBatchOutcome

NO_FINDINGS_TEXT = (
    "No web research results are available for this run. "
    "Keep existing facts unless they are clearly wrong."
)


def build_research_findings(outcome: SearchBatchOutcome, per_query_limit: int = 3) -> str:
    """
    Summarize the deduplicated results grouped by the query that first found them.

    Args:
        outcome: Result of ``SearchAggregator.run_batch``
        per_query_limit: Maximum results listed under each query

    Returns:
        Plain-text findings; a fixed notice when there is nothing to cite
    """
    seen: set[str] = set()
    blocks: list[str] = []

    for group in outcome.groups:
        lines: list[str] = []
        for result in group.results:
            if result.url in seen:
                continue
            seen.add(result.url)
            if len(lines) < per_query_limit:
                lines.append(
                    f"{len(lines) + 1}. {result.title}\n"
                    f"   URL: {result.url}\n"
                    f"   {result.snippet}"
                )
        if lines:
            blocks.append(f"=== {group.query} ===\n" + "\n\n".join(lines))

    if not blocks:
        return NO_FINDINGS_TEXT
    return "\n\n".join(blocks)
