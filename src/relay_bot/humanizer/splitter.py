"""
Split a generated reply into chunks that each read as one chat message.
"""
import re
from typing import Optional

# One or more blank lines (optionally containing whitespace) between paragraphs
PARAGRAPH_BOUNDARY = re.compile(r"\n[ \t]*\n\s*")

# Sentence end followed by whitespace
SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?…])\s+")


def split_messages(reply: str, max_length: Optional[int] = None) -> list[str]:
    """
    Split a reply on paragraph boundaries.

    Each chunk is stripped and empty chunks are dropped. A reply with no
    blank line yields a single chunk, equal to the reply minus any leading
    or trailing whitespace. When max_length is set, paragraphs
    longer than it are split further at sentence ends, packing sentences
    greedily; a single sentence over the limit is kept whole.

    Args:
        reply: Text returned by the AI backend
        max_length: Optional soft limit on chunk length in characters

    Returns:
        Ordered list of chunks (empty for a blank reply)
    """
    if max_length is not None and max_length < 1:
        raise ValueError("max_length must be >= 1")

    paragraphs = [p.strip() for p in PARAGRAPH_BOUNDARY.split(reply)]
    chunks = [p for p in paragraphs if p]

    if max_length is None:
        return chunks

    result: list[str] = []
    for chunk in chunks:
        if len(chunk) <= max_length:
            result.append(chunk)
        else:
            result.extend(_pack_sentences(chunk, max_length))
    return result


def _pack_sentences(paragraph: str, max_length: int) -> list[str]:
    sentences = [s for s in SENTENCE_BOUNDARY.split(paragraph) if s]
    packed: list[str] = []
    current = ""

    for sentence in sentences:
        candidate = f"{current} {sentence}" if current else sentence
        if len(candidate) <= max_length or not current:
            current = candidate
        else:
            packed.append(current)
            current = sentence

    if current:
        packed.append(current)
    return packed
