"""Length-bounded text chunking for transcript refinement."""

from __future__ import annotations

import json
import re

from meetrag.core.models import RefinedChunk

_SENTENCE_END = re.compile(r"(?<=[.!?])\s+|\n+")
_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")
_THINK_BLOCK = re.compile(r"<think>[\s\S]*?</think>", re.IGNORECASE)


def split_text(text: str, max_chars: int) -> list[str]:
    """Split text into pieces of at most ``max_chars`` characters.

    Sentences are accumulated until adding the next one would exceed the
    bound. A single sentence longer than the bound is cut on whitespace, and
    as a last resort mid-word.

    Args:
        text: Text to split.
        max_chars: Upper bound on the length of each piece.

    Returns:
        Non-empty, stripped pieces in original order.
    """
    if max_chars < 1:
        raise ValueError("max_chars must be >= 1")

    pieces: list[str] = []
    current = ""

    for sentence in (s.strip() for s in _SENTENCE_END.split(text)):
        if not sentence:
            continue
        candidate = f"{current} {sentence}" if current else sentence
        if len(candidate) <= max_chars:
            current = candidate
            continue
        if current:
            pieces.append(current)
            current = ""
        if len(sentence) <= max_chars:
            current = sentence
        else:
            pieces.extend(_hard_wrap(sentence, max_chars))

    if current:
        pieces.append(current)
    return pieces


def _hard_wrap(sentence: str, max_chars: int) -> list[str]:
    out: list[str] = []
    current = ""
    for word in sentence.split():
        while len(word) > max_chars:
            if current:
                out.append(current)
                current = ""
            out.append(word[:max_chars])
            word = word[max_chars:]
        candidate = f"{current} {word}" if current else word
        if len(candidate) <= max_chars:
            current = candidate
        else:
            out.append(current)
            current = word
    if current:
        out.append(current)
    return out


def bound_chunks(chunks: list[RefinedChunk], max_chars: int) -> list[RefinedChunk]:
    """Split any chunk whose text exceeds ``max_chars``; the summary is kept."""
    bounded: list[RefinedChunk] = []
    for chunk in chunks:
        text = chunk.text.strip()
        if not text:
            continue
        if len(text) <= max_chars:
            bounded.append(RefinedChunk(summary=chunk.summary, text=text))
            continue
        bounded.extend(RefinedChunk(summary=chunk.summary, text=piece) for piece in split_text(text, max_chars))
    return bounded


def summarize_locally(text: str, max_chars: int = 120) -> str:
    """First sentence of ``text``, truncated to ``max_chars``."""
    first = next((s.strip() for s in _SENTENCE_END.split(text) if s.strip()), "")
    if len(first) <= max_chars:
        return first
    return first[: max_chars - 3].rstrip() + "..."


def extract_json_array(response: str) -> list[dict]:
    """Pull the JSON array out of an LLM response.

    Reasoning blocks and any commentary around the array are ignored.

    Raises:
        ValueError: If no parseable JSON array is present.
    """
    cleaned = _THINK_BLOCK.sub("", response)
    match = _JSON_ARRAY.search(cleaned)
    if not match:
        raise ValueError("No valid JSON array found in response")
    parsed = json.loads(match.group(0))
    if not isinstance(parsed, list):
        raise ValueError("Response JSON is not an array")
    return [item for item in parsed if isinstance(item, dict)]
