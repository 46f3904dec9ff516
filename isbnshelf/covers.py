"""
Placeholder covers for books without artwork.

The cover is an SVG data URI built only from the title and first author, so the
same book always gets the same image and nothing has to be fetched.
"""
from typing import Optional
from urllib.parse import quote
from xml.sax.saxutils import escape

WIDTH, HEIGHT = 300, 450
MAX_TITLE_CHARS = 35
MAX_LINE_CHARS = 25
MAX_LINES = 3
MAX_AUTHOR_CHARS = 28
ELLIPSIS = "..."
TEXT_COLOR = "#FFFFFF"

PALETTE = [
    "#007AFF",
    "#5856D6",
    "#FF3B30",
    "#FF9500",
    "#34C759",
    "#5AC8FA",
    "#AF52DE",
    "#FF2D55",
]

DATA_URI_PREFIX = "data:image/svg+xml;charset=utf-8,"

_XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}


def _xml(s: str) -> str:
    return escape(s, _XML_ENTITIES)


def _truncate(s: str, limit: int) -> str:
    return s[:limit] + ELLIPSIS if len(s) > limit else s


def title_hash(title: str) -> int:
    return sum(ord(ch) for ch in title)


def palette_color(title: str) -> str:
    return PALETTE[title_hash(title) % len(PALETTE)]


def wrap_title(title: str) -> list[str]:
    """Truncate, then greedily fill at most three lines; whatever is left over is dropped."""
    lines: list[str] = []
    current = ""
    for word in _truncate(title, MAX_TITLE_CHARS).split():
        candidate = f"{current} {word}" if current else word
        if len(candidate) <= MAX_LINE_CHARS:
            current = candidate
            continue
        if current:
            lines.append(current)
        if len(lines) >= MAX_LINES:
            current = ""
            break
        current = word
    if current and len(lines) < MAX_LINES:
        lines.append(current)
    return lines


def render_svg(title: str, author: Optional[str] = None) -> str:
    h = title_hash(title)
    bg = palette_color(title)
    spans = "".join(
        f'<tspan x="150" dy="{0 if i == 0 else 32}" text-anchor="middle">{_xml(line)}</tspan>'
        for i, line in enumerate(wrap_title(title))
    )
    author_text = ""
    if author:
        author_text = (
            f'<text x="150" y="280" font-family="Arial, sans-serif" font-size="14" font-weight="400" '
            f'fill="{TEXT_COLOR}dd" text-anchor="middle" dominant-baseline="middle">'
            f"{_xml(_truncate(author, MAX_AUTHOR_CHARS))}</text>"
        )
    return (
        f'<svg width="{WIDTH}" height="{HEIGHT}" xmlns="http://www.w3.org/2000/svg">'
        f"<defs>"
        f'<linearGradient id="grad{h}" x1="0%" y1="0%" x2="100%" y2="100%">'
        f'<stop offset="0%" style="stop-color:{bg};stop-opacity:1" />'
        f'<stop offset="100%" style="stop-color:{bg}dd;stop-opacity:1" />'
        f"</linearGradient>"
        f"</defs>"
        f'<rect width="{WIDTH}" height="{HEIGHT}" fill="url(#grad{h})"/>'
        f'<text x="150" y="180" font-family="Arial, sans-serif" font-size="22" font-weight="600" '
        f'fill="{TEXT_COLOR}" text-anchor="middle" dominant-baseline="middle" style="letter-spacing: -0.3px;">'
        f"{spans}</text>"
        f"{author_text}"
        f"</svg>"
    )


def generate_cover(title: str, author: Optional[str] = None) -> str:
    # Same escaping set as JavaScript's encodeURIComponent.
    return DATA_URI_PREFIX + quote(render_svg(title, author), safe="!~*'()")
