"""Markdown chunker: heading-aware splits with paragraph/sentence fallback.

Strategy, in priority order:
  1. Split on H1/H2 headings; each section is a candidate chunk.
  2. A section over budget is packed paragraph by paragraph.
  3. A paragraph over budget is packed sentence by sentence.
  4. When a section yields several chunks, each one after the first starts
     with the trailing overlap of the previous chunk.

Line numbers are 1-based and inclusive, and describe the chunk's own content
(not the carried overlap), so results can be cited back to the file.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from memdex.ingest.base import BaseChunker, ChunkDraft

# Matches H1/H2 headings; group 2 is the heading text.
_HEADING_RE = re.compile(r"^(#{1,2})\s+(.+?)\s*#*\s*$")
_FENCE_RE = re.compile(r"^\s*(```|~~~)")
_SENTENCE_BREAK_RE = re.compile(r"(?<=[.!?])\s+")


@dataclass
class _Section:
    heading: str | None
    lines: list[str]
    start_line: int


@dataclass
class _Block:
    """A paragraph or sentence with its source line range."""

    text: str
    start_line: int
    end_line: int
    paragraph: int  # index of the paragraph this block came from


class MarkdownChunker(BaseChunker):
    """Split markdown into bounded, overlapping, line-addressed chunks."""

    def chunk(self, content: str) -> list[ChunkDraft]:
        if not content.strip():
            return []

        lines = content.replace("\r\n", "\n").replace("\r", "\n").split("\n")
        drafts: list[ChunkDraft] = []
        for section in _split_sections(lines):
            drafts.extend(self._chunk_section(section))
        return drafts

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _chunk_section(self, section: _Section) -> list[ChunkDraft]:
        text = "\n".join(section.lines).strip()
        if not text:
            return []

        if len(text) <= self.max_chars:
            start, end = _content_range(section.lines, section.start_line)
            return [ChunkDraft(text=text, heading=section.heading, start_line=start, end_line=end)]

        blocks: list[_Block] = []
        for para in _split_paragraphs(section.lines, section.start_line):
            if len(para.text) > self.max_chars:
                blocks.extend(_split_sentences(para))
            else:
                blocks.append(para)
        return self._pack(blocks, section.heading)

    def _pack(self, blocks: list[_Block], heading: str | None) -> list[ChunkDraft]:
        """Greedily pack *blocks* into chunks within the char budget."""
        drafts: list[ChunkDraft] = []
        current: list[_Block] = []
        prefix = ""
        length = 0

        for block in blocks:
            sep = _joiner(current[-1], block) if current else ""
            if current and length + len(sep) + len(block.text) > self.max_chars:
                draft = _make_draft(prefix, current, heading)
                drafts.append(draft)
                prefix = self._tail(draft.text)
                current = []
                length = len(prefix) + 2 if prefix else 0
                sep = ""
            current.append(block)
            length += len(sep) + len(block.text)

        if current:
            drafts.append(_make_draft(prefix, current, heading))
        return drafts


def chunk_markdown(content: str, max_tokens: int = 400, overlap_tokens: int = 80) -> list[ChunkDraft]:
    """Chunk *content* with a one-off MarkdownChunker."""
    return MarkdownChunker(max_tokens=max_tokens, overlap_tokens=overlap_tokens).chunk(content)


# ------------------------------------------------------------------
# Splitting helpers
# ------------------------------------------------------------------


def _split_sections(lines: list[str]) -> list[_Section]:
    """Split *lines* on H1/H2 headings outside fenced code blocks."""
    sections: list[_Section] = []
    current = _Section(heading=None, lines=[], start_line=1)
    in_fence = False

    for i, line in enumerate(lines):
        if _FENCE_RE.match(line):
            in_fence = not in_fence
        match = None if in_fence else _HEADING_RE.match(line)
        if match:
            if current.lines:
                sections.append(current)
            current = _Section(heading=match.group(2).strip(), lines=[line], start_line=i + 1)
        else:
            current.lines.append(line)

    if current.lines:
        sections.append(current)
    return sections


def _split_paragraphs(lines: list[str], base_line: int) -> list[_Block]:
    """Split *lines* into blank-line separated paragraphs."""
    paragraphs: list[_Block] = []
    buf: list[str] = []
    start = base_line

    for offset, line in enumerate(lines):
        line_no = base_line + offset
        if line.strip():
            if not buf:
                start = line_no
            buf.append(line)
        elif buf:
            paragraphs.append(
                _Block("\n".join(buf), start, line_no - 1, len(paragraphs))
            )
            buf = []

    if buf:
        paragraphs.append(
            _Block("\n".join(buf), start, start + len(buf) - 1, len(paragraphs))
        )
    return paragraphs


def _split_sentences(para: _Block) -> list[_Block]:
    """Split an oversized paragraph on sentence boundaries.

    A single sentence longer than the budget is kept whole.
    """
    text = para.text
    sentences: list[_Block] = []
    pos = 0
    for match in [*_SENTENCE_BREAK_RE.finditer(text), None]:
        end = match.start() if match else len(text)
        piece = text[pos:end].strip()
        if piece:
            sentences.append(
                _Block(
                    piece,
                    para.start_line + text.count("\n", 0, pos),
                    para.start_line + text.count("\n", 0, end),
                    para.paragraph,
                )
            )
        if match:
            pos = match.end()
    return sentences


def _joiner(prev: _Block, nxt: _Block) -> str:
    return " " if prev.paragraph == nxt.paragraph else "\n\n"


def _make_draft(prefix: str, blocks: list[_Block], heading: str | None) -> ChunkDraft:
    body = blocks[0].text
    for prev, block in zip(blocks, blocks[1:]):
        body += _joiner(prev, block) + block.text
    text = f"{prefix}\n\n{body}" if prefix else body
    return ChunkDraft(
        text=text,
        heading=heading,
        start_line=blocks[0].start_line,
        end_line=blocks[-1].end_line,
    )


def _content_range(lines: list[str], base_line: int) -> tuple[int, int]:
    """Return the first/last non-blank line numbers of *lines*."""
    filled = [base_line + i for i, line in enumerate(lines) if line.strip()]
    return filled[0], filled[-1]
