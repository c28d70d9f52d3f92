from typing import List


def chunk_text(text: str, chunk_size: int = 500, overlap: int = 50) -> List[str]:
    """
    Split text into overlapping fixed-size character windows.

    The window advances by ``chunk_size - overlap`` characters. Iteration stops
    once the unconsumed remainder is shorter than ``overlap``, so a short tail
    never produces a window that only repeats the previous one. Windows that are
    blank after trimming are dropped.

    Args:
        text: Raw document text
        chunk_size: Maximum characters per chunk
        overlap: Characters shared by consecutive chunks

    Returns:
        List of trimmed, non-empty chunks in document order

    Raises:
        ValueError: If the window would not advance
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if overlap < 0 or overlap >= chunk_size:
        raise ValueError("overlap must be in [0, chunk_size)")

    chunks = []
    n = len(text)
    start = 0

    while start < n:
        end = min(start + chunk_size, n)
        chunks.append(text[start:end])
        start = end - overlap

        # Remainder shorter than the overlap: nothing new left to cover
        if start >= n - overlap:
            break

    return [c.strip() for c in chunks if c.strip()]
