"""
Chunking of oversized training content.

Embedding models have a limited context window, so long documentation is
split into overlapping segments before it is embedded. Cuts prefer natural
boundaries close to the end of each window.
"""
from typing import List

DEFAULT_MAX_SIZE = 6000
DEFAULT_OVERLAP = 200
DEFAULT_MIN_REMAINDER = 50

# How far back from the window end a boundary may be searched for
BOUNDARY_SEARCH_WINDOW = 200

# Highest priority first
BOUNDARIES = ("\n\n", "\n", ". ", " ")


def _find_boundary(content: str, start: int, end: int) -> int:
    """
    Return the cut position for a window ending at ``end``.

    The cut falls just after the best boundary in the last
    BOUNDARY_SEARCH_WINDOW characters of the window, or at ``end`` when
    none is present.
    """
    search_from = max(start + 1, end - BOUNDARY_SEARCH_WINDOW)
    for separator in BOUNDARIES:
        idx = content.rfind(separator, search_from, end)
        if idx != -1:
            return idx + len(separator)
    return end


def chunk_content(
    content: str,
    max_size: int = DEFAULT_MAX_SIZE,
    overlap: int = DEFAULT_OVERLAP,
    min_remainder: int = DEFAULT_MIN_REMAINDER,
) -> List[str]:
    """
    Split content into overlapping, boundary-aware chunks.

    Content that fits in ``max_size`` comes back as a single chunk so the
    caller can keep its original identifier. Longer content is cut into
    windows of at most ``max_size`` characters, each starting ``overlap``
    characters before the previous cut.

    A trailing remainder that would add fewer than ``min_remainder`` new
    characters is dropped: tiny fragments only add noise to retrieval.

    Args:
        content: Text to split
        max_size: Maximum characters per chunk
        overlap: Characters shared between consecutive chunks
        min_remainder: Smallest trailing remainder worth its own chunk

    Returns:
        List of chunks in content order
    """
    if max_size <= 0:
        raise ValueError("max_size must be positive")

    length = len(content)
    if length <= max_size:
        return [content]

    overlap = max(0, overlap)
    chunks: List[str] = []
    position = 0

    while position < length:
        end = min(position + max_size, length)
        if end < length:
            end = _find_boundary(content, position, end)

        chunks.append(content[position:end])

        if end >= length:
            break

        # Unseen text after this cut is too short to be worth a chunk
        if length - end < min_remainder:
            break

        next_position = end - overlap
        if next_position <= position:
            # Degenerate overlap (>= the cut window); continue without overlap
            next_position = end
        position = next_position

    return chunks
