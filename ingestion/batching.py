"""Safe batch boundaries for long texts.

Segmentation works on bounded windows of text. A window must not end in the
middle of a sentence, so the cut is moved back to the nearest paragraph
break, line break or sentence end.
"""
import config

SENTENCE_TERMINALS = ('.', '!', '?')


def find_safe_batch_end(
    text: str,
    target_limit: int,
    min_chunk_size: int = config.MIN_BATCH_CHARS
) -> int:
    """Find where the current batch should end.

    Looks back at most 2000 characters (and never below ``min_chunk_size``)
    from ``target_limit`` for, in order: a paragraph break, a line break,
    a sentence-ending punctuation mark. Falls back to a hard cut at
    ``target_limit``.

    Args:
        text: Remaining text, starting at the current batch start
        target_limit: Maximum batch length in characters
        min_chunk_size: Smallest batch worth cutting early for

    Returns:
        End offset (exclusive), always in (0, len(text)] for non-empty text

    Raises:
        ValueError: If target_limit is not positive
    """
    if target_limit <= 0:
        raise ValueError(f"target_limit must be positive, got {target_limit}")

    if len(text) <= target_limit:
        return len(text)

    lookback = min(config.BATCH_LOOKBACK_CHARS, target_limit - min_chunk_size)
    if lookback <= 0:
        return target_limit

    search_start = target_limit - lookback
    window = text[search_start:target_limit]

    # Priority 1: paragraph break, cut after it
    paragraph_break = window.rfind('\n\n')
    if paragraph_break != -1:
        return search_start + paragraph_break + 2

    # Priority 2: line break
    newline = window.rfind('\n')
    if newline != -1:
        return search_start + newline + 1

    # Priority 3: last sentence end
    for i in range(len(window) - 1, -1, -1):
        if window[i] in SENTENCE_TERMINALS:
            return search_start + i + 1

    return target_limit
