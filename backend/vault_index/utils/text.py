"""Text processing helpers."""

from __future__ import annotations

import re

from markdown_it import MarkdownIt

WORD_SPLIT_RE = re.compile(r"[\s\W_]+", re.UNICODE)
INLINE_TAG_RE = re.compile(r"(?<![\w#/])#([\w][\w/-]*)", re.UNICODE)
_MD = MarkdownIt()


def query_terms(query: str) -> list[str]:
    """Lowercase words longer than one character, in first-seen order."""
    terms: list[str] = []
    for word in WORD_SPLIT_RE.split(query.lower()):
        if len(word) > 1 and word not in terms:
            terms.append(word)
    return terms


def find_positions(text: str, term: str) -> list[tuple[int, int]]:
    """Case-insensitive ``[start, end)`` spans of ``term`` inside ``text``."""
    if not term:
        return []
    haystack = text.lower()
    positions: list[tuple[int, int]] = []
    start = haystack.find(term)
    while start != -1:
        positions.append((start, start + len(term)))
        start = haystack.find(term, start + len(term))
    return positions


def inline_tags(text: str) -> list[str]:
    """``#tag`` tokens outside fenced code, de-duplicated in order."""
    stripped = strip_fenced_code(text)
    tags: list[str] = []
    for match in INLINE_TAG_RE.finditer(stripped):
        tag = match.group(1)
        if not tag.isdigit() and tag not in tags:
            tags.append(tag)
    return tags


def strip_fenced_code(text: str) -> str:
    """Drop the lines of every fenced code block, as CommonMark parses them."""
    lines = text.splitlines(keepends=True)
    fenced: set[int] = set()
    for token in _MD.parse(text):
        if token.type == "fence" and token.map is not None:
            fenced.update(range(*token.map))
    return "".join(line for number, line in enumerate(lines) if number not in fenced)
