"""
Post-rewrite integrity checks.

These never raise. They compare the rewrite against its input and produce
``IntegrityWarning`` records; the orchestrator decides, by policy, whether a
warning is only logged or makes it fall back to the original content.
"""

import re
from collections import Counter
from dataclasses import dataclass

from models.errors import IntegrityWarning
from models.pipeline import WidgetToken
from orchestrator.widgets import placeholder_counts

_OPEN_TAG = re.compile(r"<([a-zA-Z][a-zA-Z0-9]*)\b")

MISSING_PLACEHOLDER = "missing_placeholder"
DUPLICATED_PLACEHOLDER = "duplicated_placeholder"
UNKNOWN_PLACEHOLDER = "unknown_placeholder"
TAG_DRIFT = "tag_drift"
REWRITE_TOO_SHORT = "rewrite_too_short"


@dataclass(frozen=True)
class IntegrityReport:
    warnings: tuple[IntegrityWarning, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.warnings

    def has(self, code: str) -> bool:
        return any(w.code == code for w in self.warnings)


def count_tags(html: str) -> Counter:
    return Counter(match.group(1).lower() for match in _OPEN_TAG.finditer(html))


def check_placeholders(rewritten: str, widgets: tuple[WidgetToken, ...]) -> list[IntegrityWarning]:
    """Inspect the rewrite *before* restore for lost, repeated or invented tokens."""
    counts = placeholder_counts(rewritten)
    warnings: list[IntegrityWarning] = []

    missing = [w.index for w in widgets if counts.get(w.index, 0) == 0]
    if missing:
        warnings.append(
            IntegrityWarning(
                MISSING_PLACEHOLDER,
                f"{len(missing)} widget placeholder(s) were dropped by the rewrite",
                {"indexes": missing},
            )
        )

    duplicated = sorted(i for i, n in counts.items() if n > 1 and i < len(widgets))
    if duplicated:
        warnings.append(
            IntegrityWarning(
                DUPLICATED_PLACEHOLDER,
                "Widget placeholder(s) appear more than once; only the first was restored",
                {"indexes": duplicated},
            )
        )

    unknown = sorted(i for i in counts if i >= len(widgets))
    if unknown:
        warnings.append(
            IntegrityWarning(
                UNKNOWN_PLACEHOLDER,
                "Rewrite contains placeholder(s) that match no protected widget",
                {"indexes": unknown},
            )
        )
    return warnings


def check_tag_drift(original: str, rewritten: str, threshold: float) -> IntegrityWarning | None:
    before = count_tags(original)
    after = count_tags(rewritten)
    total_before = sum(before.values())
    total_after = sum(after.values())
    if total_before == 0:
        return None

    drift = abs(total_after - total_before) / total_before
    if drift <= threshold:
        return None

    changed = {
        tag: {"before": before.get(tag, 0), "after": after.get(tag, 0)}
        for tag in sorted(set(before) | set(after))
        if before.get(tag, 0) != after.get(tag, 0)
    }
    return IntegrityWarning(
        TAG_DRIFT,
        f"Tag count changed by {drift:.0%} ({total_before} -> {total_after})",
        {"drift": round(drift, 3), "threshold": threshold, "tags": changed},
    )


def check_length(original: str, rewritten: str, min_ratio: float) -> IntegrityWarning | None:
    if not original or min_ratio <= 0:
        return None
    ratio = len(rewritten) / len(original)
    if ratio >= min_ratio:
        return None
    return IntegrityWarning(
        REWRITE_TOO_SHORT,
        f"Rewrite is {ratio:.0%} of the original length",
        {"ratio": round(ratio, 3), "min_ratio": min_ratio},
    )


def evaluate(
    original: str,
    rewritten_protected: str,
    restored: str,
    widgets: tuple[WidgetToken, ...],
    *,
    drift_threshold: float,
    min_ratio: float,
) -> IntegrityReport:
    warnings = check_placeholders(rewritten_protected, widgets)
    for warning in (
        check_tag_drift(original, restored, drift_threshold),
        check_length(original, restored, min_ratio),
    ):
        if warning is not None:
            warnings.append(warning)
    return IntegrityReport(warnings=tuple(warnings))


def requires_fallback(report: IntegrityReport) -> bool:
    """Damage the ``fallback`` policy reverts: lost widgets or an implausibly short rewrite."""
    return report.has(MISSING_PLACEHOLDER) or report.has(REWRITE_TOO_SHORT)
