"""
Widget protection - reversible masking of fragile HTML before a rewrite.

Embeds, scripts, frames, media and widget containers do not survive an LLM
rewrite reliably. ``protect`` swaps each one for an opaque placeholder token
and ``restore`` puts the original text back afterwards.

This is a best-effort structural scan over text, not a markup parser. The one
hard guarantee is the round trip: ``restore(*protect(html)) == html`` byte for
byte, for any input.
"""

import re
from dataclasses import dataclass

from models.pipeline import WidgetToken

PLACEHOLDER_PATTERN = re.compile(r"___WIDGET_(\d+)___")
# Input text that could fuse with an emitted placeholder; trailing underscores optional
_PLACEHOLDER_LIKE = re.compile(r"___WIDGET_\d+_{0,3}")

# Attribute-aware so that a ">" inside a quoted attribute value does not end the tag
_ATTRS = r"""(?:[^>"']|"[^"]*"|'[^']*')*"""

_FRAGILE_OPENER = re.compile(
    rf"<(script|iframe|object|embed|figure|video|div)\b{_ATTRS}>", re.IGNORECASE
)
_CLASS_ATTR = re.compile(r"""\bclass\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s>]+))""", re.IGNORECASE)
_WIDGET_CLASS = re.compile(r"embed|widget", re.IGNORECASE)

_VOID_TAGS = {"embed"}
_RAW_TEXT_TAGS = {"script"}


@dataclass(frozen=True)
class ProtectedContent:
    sanitized: str
    widgets: tuple[WidgetToken, ...]

    @property
    def count(self) -> int:
        return len(self.widgets)


def _is_widget_div(opening_tag: str) -> bool:
    match = _CLASS_ATTR.search(opening_tag)
    if not match:
        return False
    class_value = next(group for group in match.groups() if group is not None)
    return bool(_WIDGET_CLASS.search(class_value))


def _find_element_end(html: str, tag: str, start: int) -> int | None:
    """Index just past the close tag matching an opener that ends at ``start``."""
    if tag in _RAW_TEXT_TAGS:
        close = re.compile(rf"</{tag}\s*>", re.IGNORECASE).search(html, start)
        return close.end() if close else None

    tags = re.compile(rf"<(/?){tag}\b{_ATTRS}>", re.IGNORECASE)
    depth = 1
    for match in tags.finditer(html, start):
        if match.group(1):
            depth -= 1
            if depth == 0:
                return match.end()
        elif not match.group(0).endswith("/>"):
            depth += 1
    return None


def protect(html: str) -> ProtectedContent:
    """Replace every fragile fragment, left to right, with ``___WIDGET_<i>___``."""
    pieces: list[str] = []
    widgets: list[WidgetToken] = []
    cursor = 0
    search_from = 0

    while True:
        opener = _FRAGILE_OPENER.search(html, search_from)
        literal = _PLACEHOLDER_LIKE.search(html, search_from)
        if literal is not None and (opener is None or literal.start() < opener.start()):
            # Placeholder-shaped text already in the input is masked like a widget,
            # so no emitted token can borrow characters from it
            token = WidgetToken(index=len(widgets), raw_fragment=literal.group(0))
            widgets.append(token)
            pieces.append(html[cursor:literal.start()])
            pieces.append(token.placeholder)
            cursor = search_from = literal.end()
            continue
        if opener is None:
            break

        tag = opener.group(1).lower()
        if tag == "div" and not _is_widget_div(opener.group(0)):
            search_from = opener.end()
            continue

        if tag in _VOID_TAGS or opener.group(0).endswith("/>"):
            end = opener.end()
            trailing_close = re.compile(rf"</{tag}\s*>", re.IGNORECASE).match(html, end)
            if trailing_close:
                end = trailing_close.end()
        else:
            end = _find_element_end(html, tag, opener.end())
            if end is None:
                # Unterminated element: leave it in place, keep scanning inside it
                search_from = opener.end()
                continue

        token = WidgetToken(index=len(widgets), raw_fragment=html[opener.start():end])
        widgets.append(token)
        pieces.append(html[cursor:opener.start()])
        pieces.append(token.placeholder)
        cursor = end
        search_from = end

    pieces.append(html[cursor:])
    return ProtectedContent(sanitized="".join(pieces), widgets=tuple(widgets))


def restore(html: str, widgets: tuple[WidgetToken, ...] | list[WidgetToken]) -> str:
    """
    Put each widget back at the first occurrence of its placeholder.

    Later copies of a placeholder, and placeholders with no widget, stay as
    text. One left-to-right pass, so restored fragments are never rescanned.
    """
    fragments = {token.index: token.raw_fragment for token in widgets}
    used: set[int] = set()

    def substitute(match: re.Match) -> str:
        index = int(match.group(1))
        if index in used or index not in fragments:
            return match.group(0)
        used.add(index)
        return fragments[index]

    return PLACEHOLDER_PATTERN.sub(substitute, html)


def placeholder_counts(html: str) -> dict[int, int]:
    """How many times each placeholder index appears in ``html``."""
    counts: dict[int, int] = {}
    for match in PLACEHOLDER_PATTERN.finditer(html):
        index = int(match.group(1))
        counts[index] = counts.get(index, 0) + 1
    return counts
