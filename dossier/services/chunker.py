"""Split abstract text into overlapping, size-bounded chunks for embedding.

Sizes are estimated at ``CHARS_PER_TOKEN`` characters per token. Paragraph
boundaries are preferred, then sentence boundaries, and only oversized
sentences are cut mid-text. Each chunk after the first is prefixed with the
tail of the previous chunk, trimmed forward to a word boundary.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

CHARS_PER_TOKEN = 4
DEFAULT_MAX_CHUNK_TOKENS = 500
DEFAULT_OVERLAP_TOKENS = 100

_PARAGRAPH_SPLIT_RE = re.compile(r"\n\n+")
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")


@dataclass(frozen=True)
class Chunk:
    content: str
    chunk_index: int
    estimated_tokens: int


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def clean_text(text: str) -> str:
    """Normalize line endings and whitespace runs."""
    text = text.replace("\r\n", "\n").replace("\t", " ")
    text = re.sub(r" {2,}", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def _hard_split(text: str, max_chars: int) -> list[str]:
    return [text[i : i + max_chars] for i in range(0, len(text), max_chars)]


def _segments(text: str, max_chars: int) -> list[str]:
    """Paragraphs that fit, otherwise their sentences, otherwise fixed-width slices."""
    segments: list[str] = []
    for paragraph in _PARAGRAPH_SPLIT_RE.split(text):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        if len(paragraph) <= max_chars:
            segments.append(paragraph)
            continue
        for sentence in _SENTENCE_SPLIT_RE.split(paragraph):
            sentence = sentence.strip()
            if not sentence:
                continue
            if len(sentence) <= max_chars:
                segments.append(sentence)
            else:
                segments.extend(_hard_split(sentence, max_chars))
    return segments


def _pack(segments: list[str], max_chars: int) -> list[str]:
    """Greedily join segments with blank lines while they fit."""
    chunks: list[str] = []
    current = ""
    for segment in segments:
        candidate = f"{current}\n\n{segment}" if current else segment
        if len(candidate) <= max_chars:
            current = candidate
        else:
            if current:
                chunks.append(current)
            current = segment
    if current:
        chunks.append(current)
    return chunks


def _overlap_tail(previous: str, overlap_chars: int) -> str:
    """Last ``overlap_chars`` of the previous chunk, starting at a word boundary."""
    tail = previous[-overlap_chars:]
    if len(tail) < len(previous):
        space = tail.find(" ")
        if space != -1:
            tail = tail[space + 1 :]
    return tail.strip()


def chunk_text(
    text: str,
    max_chunk_tokens: int = DEFAULT_MAX_CHUNK_TOKENS,
    overlap_tokens: int = DEFAULT_OVERLAP_TOKENS,
) -> list[Chunk]:
    """Chunk text into zero-indexed pieces of roughly ``max_chunk_tokens`` tokens.

    Empty or whitespace-only text yields no chunks; text that fits in one chunk
    yields exactly one. ``overlap_tokens=0`` disables overlap.
    """
    cleaned = clean_text(text or "")
    if not cleaned:
        return []

    max_chars = max_chunk_tokens * CHARS_PER_TOKEN
    if len(cleaned) <= max_chars:
        return [Chunk(content=cleaned, chunk_index=0, estimated_tokens=estimate_tokens(cleaned))]

    raw_chunks = _pack(_segments(cleaned, max_chars), max_chars)
    overlap_chars = overlap_tokens * CHARS_PER_TOKEN

    chunks: list[Chunk] = []
    for i, raw in enumerate(raw_chunks):
        content = raw
        if i > 0 and overlap_chars > 0:
            tail = _overlap_tail(raw_chunks[i - 1], overlap_chars)
            if tail:
                content = f"{tail}\n\n{raw}"
        chunks.append(Chunk(content=content, chunk_index=i, estimated_tokens=estimate_tokens(content)))
    return chunks
