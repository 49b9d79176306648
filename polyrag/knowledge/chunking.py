"""
Chunking

Sliding-window text chunking shared by every retrieval domain.

Design decisions:
- Prefer ending a chunk on a sentence or paragraph boundary, but only
  when the boundary is late enough in the window (>= 60%) to avoid
  degenerate tiny chunks
- Overlap is clamped below the chunk length and every step advances at
  least one character, so any (chunk_size, overlap) pair terminates
- The window that reaches the end of the text is the last one
- Very short chunks are noise and are dropped
"""

SENTENCE_BREAKS: tuple[str, ...] = (". ", "! ", "? ", "\n\n")
BREAK_POINT_RATIO = 0.6
MIN_CHUNK_LENGTH = 50


def find_break_point(text: str, start: int, end: int) -> int:
    """
    Position of the last sentence terminator or paragraph break in
    ``text[start:end]``, or -1 when there is none.
    """
    return max(text.rfind(separator, start, end) for separator in SENTENCE_BREAKS)


def chunk_spans(text: str, chunk_size: int, overlap_size: int) -> list[tuple[int, int]]:
    """
    Compute the ``(start, end)`` character spans of each raw chunk.

    Every span is non-empty and the loop runs at most ``len(text)`` times.
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
    if overlap_size < 0:
        raise ValueError(f"overlap_size must be >= 0, got {overlap_size}")

    spans: list[tuple[int, int]] = []
    length = len(text)
    start = 0

    while start < length:
        end = min(start + chunk_size, length)

        if end < length:
            break_point = find_break_point(text, start, end)
            if break_point >= 0 and break_point - start >= chunk_size * BREAK_POINT_RATIO:
                # Keep the terminator character, drop the trailing space
                end = break_point + 1

        spans.append((start, end))
        if end >= length:
            break

        chunk_length = end - start
        safe_overlap = min(overlap_size, chunk_length - 1)
        start += max(chunk_length - safe_overlap, 1)

    return spans


def chunk_text(
    text: str,
    chunk_size: int = 1000,
    overlap_size: int = 200,
    min_chunk_length: int = MIN_CHUNK_LENGTH,
) -> list[str]:
    """
    Split text into overlapping chunks.

    Args:
        text: Text to split
        chunk_size: Window width in characters
        overlap_size: Characters shared between consecutive chunks
        min_chunk_length: Stripped chunks shorter than this are discarded

    Returns:
        Stripped chunks in document order
    """
    chunks = []
    for start, end in chunk_spans(text, chunk_size, overlap_size):
        chunk = text[start:end].strip()
        if len(chunk) >= min_chunk_length:
            chunks.append(chunk)
    return chunks
