"""Markdown-aware chunking.

Documents are split into passages in four steps: frontmatter is stripped,
fenced code regions are located, the body is sectioned on top-level ATX
headings, and oversized sections are refined with an overlapping sliding
window that snaps to line or sentence ends and never cuts a code block.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Sequence

from markdown_it import MarkdownIt

from vault_index.core.errors import ChunkingError
from vault_index.ingest.types import Passage, PassageMetadata

_FRONTMATTER_RE = re.compile(r"\A---\r?\n(.*?)\r?\n---\r?\n", re.DOTALL)
_SENTENCE_MARKS = (".", "?", "!", "。")
_MD = MarkdownIt()


@dataclass(slots=True)
class ChunkingOptions:
    chunk_size: int = 500
    overlap: float = 0.15
    min_chunk_size: int = 50
    keep_frontmatter: bool = False
    lookback: int = 100
    min_lookback: int = 50
    code_block_tolerance: float = 1.5


@dataclass(slots=True)
class Section:
    text: str
    start: int
    line_start: int
    headings: list[str] = field(default_factory=list)


def make_vector_id(document_id: str, index: int) -> str:
    return f"{document_id}::{index}"


class MarkdownChunker:
    """Deterministic document → passage segmentation."""

    def __init__(self, options: ChunkingOptions | None = None) -> None:
        self.options = options or ChunkingOptions()

    def chunk(self, text: str, document_id: str, title: str) -> list[Passage]:
        """Split ``text`` into passages numbered 0..N-1 in document order."""
        try:
            return self._chunk(text, document_id, title)
        except (ValueError, IndexError, TypeError) as exc:
            raise ChunkingError(f"Failed to chunk {document_id}: {exc}") from exc

    def _chunk(self, text: str, document_id: str, title: str) -> list[Passage]:
        body, body_offset, line_offset = self._strip_frontmatter(text)
        if not body.strip():
            return []

        line_starts = _line_starts(body)
        tokens = _MD.parse(body)
        code_blocks = _find_code_blocks(tokens, line_starts, len(body))
        sections = _split_by_headings(body, tokens, line_starts, line_offset)

        passages: list[Passage] = []
        for section in sections:
            for offset, piece in self._refine_section(section, code_blocks):
                passages.append(self._create_passage(section, piece, offset, body_offset, title))

        for index, passage in enumerate(passages):
            passage.index = index
            passage.vector_id = make_vector_id(document_id, index)
        return passages

    def _strip_frontmatter(self, text: str) -> tuple[str, int, int]:
        match = _FRONTMATTER_RE.match(text)
        if match is None or self.options.keep_frontmatter:
            return text, 0, 0
        removed = match.group(0)
        return text[len(removed) :], len(removed), removed.count("\n")

    def _refine_section(
        self,
        section: Section,
        code_blocks: Sequence[tuple[int, int]],
    ) -> list[tuple[int, str]]:
        text = section.text
        size = self.options.chunk_size
        if len(text) <= size:
            return [(0, text)]

        overlap = int(size * self.options.overlap)
        pieces: list[tuple[int, str]] = []
        cursor = 0
        while cursor < len(text):
            end = cursor + size
            if end < len(text):
                end = self._snap_boundary(text, cursor, end)
                end = self._respect_code_blocks(section, cursor, end, code_blocks)
            else:
                end = len(text)

            piece = text[cursor:end]
            # The first passage of a section is kept even when short.
            if cursor == 0 or len(piece.strip()) >= self.options.min_chunk_size:
                pieces.append((cursor, piece))
            if end >= len(text):
                break

            next_cursor = end - overlap
            if _block_starting_at(section.start + end, code_blocks):
                next_cursor = end
            if next_cursor <= cursor:
                next_cursor = end
            cursor = _skip_block_interior(section.start, next_cursor, code_blocks)
        return pieces

    def _snap_boundary(self, text: str, cursor: int, end: int) -> int:
        window_start = max(cursor, end - self.options.lookback)
        window = text[window_start:end]
        last_newline = window.rfind("\n")
        last_sentence = max(window.rfind(mark) for mark in _SENTENCE_MARKS)
        if last_newline > self.options.min_lookback:
            return window_start + last_newline + 1
        if last_sentence > self.options.min_lookback:
            return window_start + last_sentence + 1
        return end

    def _respect_code_blocks(
        self,
        section: Section,
        cursor: int,
        end: int,
        code_blocks: Sequence[tuple[int, int]],
    ) -> int:
        global_start = section.start + cursor
        global_end = section.start + end
        limit = self.options.chunk_size * self.options.code_block_tolerance
        for block_start, block_end in code_blocks:
            if not block_start < global_end < block_end:
                continue
            if block_end - global_start <= limit or block_start <= global_start:
                return min(block_end - section.start, len(section.text))
            return block_start - section.start
        return end

    def _create_passage(
        self,
        section: Section,
        piece: str,
        relative_offset: int,
        body_offset: int,
        title: str,
    ) -> Passage:
        preceding_lines = section.text.count("\n", 0, relative_offset)
        line_start = section.line_start + preceding_lines
        offset_start = body_offset + section.start + relative_offset
        return Passage(
            index=0,
            text=piece,
            offset_start=offset_start,
            offset_end=offset_start + len(piece),
            line_start=line_start,
            line_end=line_start + piece.count("\n"),
            vector_id="",
            metadata=PassageMetadata(title=title, headings=list(section.headings)),
        )


def chunk_document(
    text: str,
    document_id: str,
    title: str,
    options: ChunkingOptions | None = None,
) -> list[Passage]:
    """Convenience wrapper around :class:`MarkdownChunker`."""
    return MarkdownChunker(options).chunk(text, document_id, title)


def _line_starts(text: str) -> list[int]:
    starts = [0]
    position = text.find("\n")
    while position != -1:
        starts.append(position + 1)
        position = text.find("\n", position + 1)
    return starts


def _line_offset(line_starts: Sequence[int], line: int, length: int) -> int:
    return line_starts[line] if line < len(line_starts) else length


def _find_code_blocks(tokens, line_starts: Sequence[int], length: int) -> list[tuple[int, int]]:
    blocks: list[tuple[int, int]] = []
    for token in tokens:
        if token.type != "fence" or token.map is None:
            continue
        start_line, end_line = token.map
        blocks.append(
            (
                _line_offset(line_starts, start_line, length),
                _line_offset(line_starts, end_line, length),
            )
        )
    return blocks


def _split_by_headings(text: str, tokens, line_starts: Sequence[int], line_offset: int) -> list[Section]:
    headings: list[tuple[int, int, str]] = []
    for position, token in enumerate(tokens):
        if token.type != "heading_open" or token.level != 0 or token.map is None:
            continue
        if not token.markup.startswith("#"):
            continue
        level = int(token.tag[1:])
        inline = tokens[position + 1] if position + 1 < len(tokens) else None
        title = inline.content.strip() if inline is not None else ""
        headings.append((_line_offset(line_starts, token.map[0], len(text)), level, title))

    sections: list[Section] = []
    path: list[tuple[int, str]] = []
    last_start = 0

    def flush(end: int) -> None:
        section_text = text[last_start:end]
        if section_text.strip():
            sections.append(
                Section(
                    text=section_text,
                    start=last_start,
                    line_start=line_offset + text.count("\n", 0, last_start) + 1,
                    headings=[label for _, label in path],
                )
            )

    for start, level, title in headings:
        if start > last_start:
            flush(start)
        while path and path[-1][0] >= level:
            path.pop()
        path.append((level, f"{'#' * level} {title}"))
        last_start = start
    flush(len(text))
    return sections


def _block_starting_at(position: int, code_blocks: Sequence[tuple[int, int]]) -> bool:
    return any(block_start == position for block_start, _ in code_blocks)


def _skip_block_interior(section_start: int, cursor: int, code_blocks: Sequence[tuple[int, int]]) -> int:
    position = section_start + cursor
    for block_start, block_end in code_blocks:
        if block_start < position < block_end:
            return block_end - section_start
    return cursor


__all__ = ["ChunkingOptions", "MarkdownChunker", "chunk_document", "make_vector_id"]
