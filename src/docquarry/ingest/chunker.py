"""Markdown chunker: heading-aware, fixed-window and paragraph strategies.

Strategies:
- ``heading`` (default): split on ``#``–``####`` heading lines. Each heading
  and its body form a section; content before the first heading is its own
  headingless section. Sections that fit ``max_chunk_size`` become one chunk;
  larger ones are packed paragraph by paragraph, and paragraphs that are
  still too large are packed sentence by sentence. Every sub-chunk keeps its
  section's heading and hierarchy.
- ``fixed``: sliding window of ``max_chunk_size`` characters stepping by
  ``max_chunk_size - overlap_size``. The window step is the overlap.
- ``paragraph``: greedy packing of blank-line-separated paragraphs, with the
  same sentence fallback for oversized paragraphs.

For ``heading`` and ``paragraph``, chunk *i > 0* is prefixed with the last
``overlap_size`` characters of chunk *i − 1*'s raw span and its
``start_offset`` is pulled back by the prefix length.

Chunk ids are content-addressed, so re-chunking identical content at the
same offset reproduces the same ids.
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Iterator
from dataclasses import dataclass, field, replace

from docquarry.db.models import ChunkMetadata, DocumentChunk
from docquarry.errors import ChunkingError

CHUNKING_STRATEGIES: tuple[str, ...] = ("heading", "fixed", "paragraph")

_HEADING_RE = re.compile(r"^(#{1,4})[ \t]+\S.*$", re.MULTILINE)
_PARAGRAPH_SEP_RE = re.compile(r"\n\n+")
_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]+\s*")
_CODE_RE = re.compile(r"```[\s\S]*?```|`[^`]+`")
_LINK_RE = re.compile(r"\[.+?\]\(.+?\)|https?://\S+")


@dataclass(frozen=True)
class ChunkingConfig:
    """Chunker settings (docquarry.yaml: chunking:).

    Sizes are in characters.
    """

    strategy: str = "heading"
    max_chunk_size: int = 1000
    overlap_size: int = 100


@dataclass
class _Span:
    """A raw chunk: ``text[start:end]`` plus its heading context."""

    start: int
    end: int
    heading: str | None = None
    hierarchy: list[str] = field(default_factory=list)


@dataclass
class _Section:
    start: int
    end: int
    heading: str | None
    hierarchy: list[str]


class MarkdownChunker:
    """Split normalised document text into bounded, overlapping chunks.

    Args:
        config: Full chunking configuration. Keyword overrides are applied on
            top of it (or on top of the defaults when *config* is None).

    Raises:
        ValueError: ``max_chunk_size < 1`` or ``overlap_size`` outside
            ``[0, max_chunk_size)``.
    """

    def __init__(self, config: ChunkingConfig | None = None, **overrides: object) -> None:
        cfg = config or ChunkingConfig()
        if overrides:
            cfg = replace(cfg, **overrides)
        if cfg.max_chunk_size < 1:
            raise ValueError("max_chunk_size must be >= 1")
        if not 0 <= cfg.overlap_size < cfg.max_chunk_size:
            raise ValueError("overlap_size must be in [0, max_chunk_size)")
        self.config = cfg

    def chunk(self, content: str, source_path: str, source_id: str) -> list[DocumentChunk]:
        """Chunk *content* read from *source_path* of source *source_id*.

        Returns an empty list for empty or whitespace-only content.

        Raises:
            ChunkingError: The configured strategy is unknown.
        """
        strategy = self.config.strategy
        if strategy not in CHUNKING_STRATEGIES:
            raise ChunkingError(f"Unknown chunking strategy: {strategy}")

        if not content:
            return []

        if strategy == "heading":
            spans = self._apply_overlap(content, self._chunk_by_headings(content))
            return self._finalize(content, spans, source_path, source_id)
        if strategy == "paragraph":
            spans = self._apply_overlap(
                content, self._pack_paragraphs(content, 0, len(content), None, [])
            )
            return self._finalize(content, spans, source_path, source_id)
        spans = [(s, content[s.start : s.end]) for s in self._chunk_fixed(content)]
        return self._finalize(content, spans, source_path, source_id)

    @staticmethod
    def generate_chunk_id(source_path: str, start_offset: int, content_hash: str) -> str:
        """Return the 16-hex-character id for a chunk."""
        key = f"{source_path}:{start_offset}:{content_hash}"
        return hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]

    @staticmethod
    def hash_content(content: str) -> str:
        return hashlib.sha256(content.encode("utf-8")).hexdigest()[:12]

    # ------------------------------------------------------------------
    # heading strategy
    # ------------------------------------------------------------------

    def _chunk_by_headings(self, text: str) -> list[_Span]:
        spans: list[_Span] = []
        for section in self._parse_sections(text):
            if section.end - section.start <= self.config.max_chunk_size:
                span = self._trimmed(text, section.start, section.end, section.heading, section.hierarchy)
                if span is not None:
                    spans.append(span)
            else:
                spans.extend(
                    self._pack_paragraphs(
                        text, section.start, section.end, section.heading, section.hierarchy
                    )
                )
        return spans

    @staticmethod
    def _parse_sections(text: str) -> list[_Section]:
        matches = list(_HEADING_RE.finditer(text))
        if not matches:
            return [_Section(0, len(text), None, [])]

        sections: list[_Section] = []
        if matches[0].start() > 0 and text[: matches[0].start()].strip():
            sections.append(_Section(0, matches[0].start(), None, []))

        # (level, heading line) pairs for the still-open ancestors
        stack: list[tuple[int, str]] = []
        for i, match in enumerate(matches):
            level = len(match.group(1))
            heading = match.group(0).rstrip()
            while stack and stack[-1][0] >= level:
                stack.pop()
            stack.append((level, heading))
            end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
            sections.append(
                _Section(match.start(), end, heading, [h for _, h in stack])
            )
        return sections

    # ------------------------------------------------------------------
    # paragraph / sentence packing (shared by heading overflow + paragraph)
    # ------------------------------------------------------------------

    def _pack_paragraphs(
        self,
        text: str,
        start: int,
        end: int,
        heading: str | None,
        hierarchy: list[str],
    ) -> list[_Span]:
        max_size = self.config.max_chunk_size
        spans: list[_Span] = []
        current: tuple[int, int] | None = None

        def flush() -> None:
            nonlocal current
            if current is not None:
                span = self._trimmed(text, current[0], current[1], heading, hierarchy)
                if span is not None:
                    spans.append(span)
                current = None

        for p_start, p_end in _split_spans(text, start, end, _PARAGRAPH_SEP_RE):
            if p_end - p_start > max_size:
                flush()
                spans.extend(self._pack_sentences(text, p_start, p_end, heading, hierarchy))
                continue
            if current is not None and p_end - current[0] > max_size:
                flush()
            current = (current[0], p_end) if current is not None else (p_start, p_end)
        flush()
        return spans

    def _pack_sentences(
        self,
        text: str,
        start: int,
        end: int,
        heading: str | None,
        hierarchy: list[str],
    ) -> list[_Span]:
        max_size = self.config.max_chunk_size
        spans: list[_Span] = []
        current: tuple[int, int] | None = None

        for s_start, s_end in _sentence_spans(text, start, end):
            if current is not None and s_end - current[0] > max_size:
                span = self._trimmed(text, current[0], current[1], heading, hierarchy)
                if span is not None:
                    spans.append(span)
                current = None
            current = (current[0], s_end) if current is not None else (s_start, s_end)

        if current is not None:
            span = self._trimmed(text, current[0], current[1], heading, hierarchy)
            if span is not None:
                spans.append(span)
        return spans

    # ------------------------------------------------------------------
    # fixed strategy
    # ------------------------------------------------------------------

    def _chunk_fixed(self, text: str) -> list[_Span]:
        size = self.config.max_chunk_size
        step = size - self.config.overlap_size
        spans: list[_Span] = []
        offset = 0
        while offset < len(text):
            end = min(offset + size, len(text))
            if text[offset:end].strip():
                spans.append(_Span(offset, end))
            if end >= len(text):
                break
            offset += step
        return spans

    # ------------------------------------------------------------------
    # overlap + finalisation
    # ------------------------------------------------------------------

    def _apply_overlap(self, text: str, spans: list[_Span]) -> list[tuple[_Span, str]]:
        """Pair each span with its final content, overlap prefix included."""
        k = self.config.overlap_size
        result: list[tuple[_Span, str]] = []
        for i, span in enumerate(spans):
            raw = text[span.start : span.end]
            if i == 0 or k <= 0:
                result.append((span, raw))
                continue
            prev = spans[i - 1]
            prefix = text[prev.start : prev.end][-k:]
            pulled = replace(span, start=max(0, prev.end - len(prefix)))
            result.append((pulled, prefix + raw))
        return result

    def _finalize(
        self,
        text: str,
        spans: list[tuple[_Span, str]],
        source_path: str,
        source_id: str,
    ) -> list[DocumentChunk]:
        total = len(spans)
        chunks: list[DocumentChunk] = []
        for index, (span, content) in enumerate(spans):
            chunks.append(
                DocumentChunk(
                    id=self.generate_chunk_id(source_path, span.start, self.hash_content(content)),
                    source_path=source_path,
                    source_id=source_id,
                    heading=span.heading,
                    heading_hierarchy=list(span.hierarchy),
                    content=content,
                    start_offset=span.start,
                    end_offset=span.end,
                    chunk_index=index,
                    total_chunks=total,
                    metadata=extract_metadata(content),
                )
            )
        return chunks

    @staticmethod
    def _trimmed(
        text: str, start: int, end: int, heading: str | None, hierarchy: list[str]
    ) -> _Span | None:
        """Span with trailing whitespace removed, or None if nothing remains."""
        body = text[start:end].rstrip()
        if not body.strip():
            return None
        return _Span(start, start + len(body), heading, list(hierarchy))


def extract_metadata(content: str) -> ChunkMetadata:
    """Word count plus code / link presence flags for *content*."""
    return ChunkMetadata(
        word_count=len(content.split()),
        has_code=_CODE_RE.search(content) is not None,
        has_links=_LINK_RE.search(content) is not None,
    )


def _split_spans(text: str, start: int, end: int, separator: re.Pattern[str]) -> Iterator[tuple[int, int]]:
    """Yield ``(start, end)`` of the pieces of ``text[start:end]`` between separators."""
    pos = start
    for match in separator.finditer(text, start, end):
        if match.start() > pos:
            yield pos, match.start()
        pos = match.end()
    if pos < end:
        yield pos, end


def _sentence_spans(text: str, start: int, end: int) -> Iterator[tuple[int, int]]:
    """Yield sentence spans covering ``text[start:end]`` without gaps.

    Text after the last terminator (or a paragraph with none) is yielded as a
    final piece so nothing is dropped.
    """
    pos = start
    for match in _SENTENCE_RE.finditer(text, start, end):
        yield pos, match.end()
        pos = match.end()
    if pos < end:
        yield pos, end
