from __future__ import annotations

from domain.models import NodeText

WIDTH_FACTOR = 0.6
LINE_HEIGHT = 1.35
ELLIPSIS = "…"


def wrap_words(text: str, max_chars: int) -> list[str]:
    """Greedy word wrap; words longer than a line are split into chunks."""
    lines: list[str] = []
    current: list[str] = []
    count = 0
    for word in text.split():
        if not current:
            while len(word) > max_chars:
                lines.append(word[:max_chars])
                word = word[max_chars:]
            current = [word]
            count = len(word)
            continue
        if count + 1 + len(word) <= max_chars:
            current.append(word)
            count += 1 + len(word)
            continue
        lines.append(" ".join(current))
        while len(word) > max_chars:
            lines.append(word[:max_chars])
            word = word[max_chars:]
        current = [word]
        count = len(word)
    if current:
        lines.append(" ".join(current))
    return lines


def fit_node_text(
    text: str,
    max_width: float,
    max_height: float,
    *,
    max_lines: int = 3,
    max_size: float = 14.0,
    min_size: float = 9.0,
    size_step: float = 1.0,
) -> NodeText:
    if not text.strip():
        return NodeText(lines=(), font_size=max_size, height=0.0)

    size = max_size
    while True:
        max_chars = max(1, int(max_width / (size * WIDTH_FACTOR)))
        lines = wrap_words(text, max_chars)
        height_needed = len(lines) * size * LINE_HEIGHT
        if len(lines) <= max_lines and height_needed <= max_height:
            return NodeText(lines=tuple(lines), font_size=size, height=height_needed)
        next_size = size - size_step
        if next_size < min_size or size_step <= 0:
            break
        size = next_size

    # At the floor: keep the first lines and let the renderer show an overflow.
    kept = lines[:max_lines]
    if len(lines) > max_lines:
        last = kept[-1]
        if len(last) >= max_chars:
            last = last[: max(0, max_chars - 1)]
        kept[-1] = last + ELLIPSIS
    return NodeText(
        lines=tuple(kept),
        font_size=size,
        height=len(kept) * size * LINE_HEIGHT,
        overflow=True,
    )
