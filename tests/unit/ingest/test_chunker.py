"""Tests for MarkdownChunker strategies, offsets, overlap and ids."""

from __future__ import annotations

import re

import pytest

from docquarry.errors import ChunkingError
from docquarry.ingest.chunker import ChunkingConfig, MarkdownChunker, extract_metadata

PATH = "/docs/guide.md"
SID = "src1"


def _chunk(text, **overrides):
    return MarkdownChunker(**overrides).chunk(text, PATH, SID)


# ------------------------------------------------------------------
# Configuration
# ------------------------------------------------------------------


def test_invalid_max_chunk_size():
    with pytest.raises(ValueError, match="max_chunk_size"):
        MarkdownChunker(max_chunk_size=0)


def test_overlap_must_be_smaller_than_max():
    with pytest.raises(ValueError, match="overlap_size"):
        MarkdownChunker(max_chunk_size=100, overlap_size=100)


def test_negative_overlap():
    with pytest.raises(ValueError, match="overlap_size"):
        MarkdownChunker(overlap_size=-1)


def test_overrides_apply_on_top_of_config():
    chunker = MarkdownChunker(ChunkingConfig(strategy="fixed"), max_chunk_size=50, overlap_size=0)
    assert chunker.config == ChunkingConfig(strategy="fixed", max_chunk_size=50, overlap_size=0)


def test_unknown_strategy_raises_chunking_error():
    with pytest.raises(ChunkingError):
        _chunk("hello", strategy="sentences")


@pytest.mark.parametrize("strategy", ["heading", "fixed", "paragraph"])
def test_empty_and_blank_content(strategy):
    assert _chunk("", strategy=strategy) == []
    assert _chunk("   \n\n  \t", strategy=strategy) == []


# ------------------------------------------------------------------
# heading strategy
# ------------------------------------------------------------------


def test_heading_sections_and_hierarchy():
    text = "# Title\nIntro text.\n\n## Sub\nBody here.\n\n### Deep\nMore.\n\n# Next\nEnd.\n"
    chunks = _chunk(text, overlap_size=0)

    assert [c.heading for c in chunks] == ["# Title", "## Sub", "### Deep", "# Next"]
    assert chunks[0].heading_hierarchy == ["# Title"]
    assert chunks[1].heading_hierarchy == ["# Title", "## Sub"]
    assert chunks[2].heading_hierarchy == ["# Title", "## Sub", "### Deep"]
    assert chunks[3].heading_hierarchy == ["# Next"]
    assert chunks[0].content == "# Title\nIntro text."
    assert chunks[1].content == "## Sub\nBody here."


def test_sibling_heading_replaces_previous_level():
    text = "# A\nx\n\n## B\ny\n\n## C\nz\n"
    chunks = _chunk(text, overlap_size=0)
    assert chunks[2].heading_hierarchy == ["# A", "## C"]


def test_preamble_before_first_heading_is_headingless():
    text = "Some intro.\n\n# A\nbody\n"
    chunks = _chunk(text, overlap_size=0)
    assert chunks[0].heading is None
    assert chunks[0].heading_hierarchy == []
    assert chunks[0].content == "Some intro."
    assert chunks[1].heading == "# A"


def test_five_hashes_is_not_a_heading():
    chunks = _chunk("##### Not a heading\ntext\n", overlap_size=0)
    assert len(chunks) == 1
    assert chunks[0].heading is None


def test_hash_without_space_is_not_a_heading():
    chunks = _chunk("#hashtag\ntext\n", overlap_size=0)
    assert chunks[0].heading is None


def test_oversized_section_splits_and_keeps_heading():
    body = " ".join(f"Sentence number {i} is here." for i in range(30))
    text = f"# Big\n{body}\n"
    chunks = _chunk(text, max_chunk_size=80, overlap_size=0)

    assert len(chunks) > 1
    assert all(c.heading == "# Big" for c in chunks)
    assert all(c.heading_hierarchy == ["# Big"] for c in chunks)
    assert all(len(c.content) <= 80 for c in chunks)


def test_oversized_section_packs_paragraphs():
    text = "# H\n" + "\n\n".join(["alpha " * 5, "beta " * 5, "gamma " * 5])
    chunks = _chunk(text, max_chunk_size=40, overlap_size=0)
    assert all(len(c.content) <= 40 for c in chunks)
    assert "gamma" in chunks[-1].content


def test_sentence_packing_keeps_trailing_text_without_terminator():
    text = "# H\n" + "First sentence here. Second sentence here. trailing words"
    chunks = _chunk(text, max_chunk_size=30, overlap_size=0)
    assert chunks[-1].content.endswith("trailing words")


@pytest.mark.parametrize("strategy", ["heading", "paragraph", "fixed"])
def test_content_matches_offsets_without_overlap(strategy):
    text = "# A\nOne two three.\n\nFour five.\n\n## B\nSix seven eight nine.\n" * 3
    chunks = _chunk(text, strategy=strategy, max_chunk_size=40, overlap_size=0)
    assert chunks
    for c in chunks:
        assert c.content == text[c.start_offset : c.end_offset]


# ------------------------------------------------------------------
# overlap
# ------------------------------------------------------------------


def test_overlap_prefixes_previous_chunk_tail():
    text = "# A\n" + "a" * 30 + "\n\n# B\n" + "b" * 30 + "\n"
    chunks = _chunk(text, max_chunk_size=100, overlap_size=5)

    assert len(chunks) == 2
    assert chunks[0].content == "# A\n" + "a" * 30
    assert chunks[1].content == "aaaaa" + "# B\n" + "b" * 30
    assert chunks[1].start_offset == chunks[0].end_offset - 5


def test_overlap_longer_than_previous_chunk_uses_whole_chunk():
    text = "# A\nx\n\n# B\ny\n"
    chunks = _chunk(text, max_chunk_size=100, overlap_size=50)
    assert chunks[1].content.startswith(chunks[0].content)
    assert chunks[1].start_offset == 0


def test_first_chunk_never_has_overlap():
    text = "# A\nalpha\n\n# B\nbeta\n"
    chunks = _chunk(text, overlap_size=10)
    assert chunks[0].content == "# A\nalpha"
    assert chunks[0].start_offset == 0


# ------------------------------------------------------------------
# fixed strategy
# ------------------------------------------------------------------


def test_fixed_windows_step_by_size_minus_overlap():
    text = "abcdefghij" * 5
    chunks = _chunk(text, strategy="fixed", max_chunk_size=20, overlap_size=5)

    assert [c.start_offset for c in chunks] == [0, 15, 30]
    assert [c.end_offset for c in chunks] == [20, 35, 50]
    assert chunks[1].content.startswith(chunks[0].content[-5:])
    assert all(len(c.content) <= 20 for c in chunks)


def test_fixed_has_no_headings():
    chunks = _chunk("# A\n" + "x" * 50, strategy="fixed", max_chunk_size=20, overlap_size=0)
    assert all(c.heading is None and c.heading_hierarchy == [] for c in chunks)


def test_fixed_skips_whitespace_only_windows():
    text = "x" * 10 + " " * 20 + "y" * 10
    chunks = _chunk(text, strategy="fixed", max_chunk_size=10, overlap_size=0)
    assert [c.content for c in chunks] == ["x" * 10, "y" * 10]


# ------------------------------------------------------------------
# paragraph strategy
# ------------------------------------------------------------------


def test_paragraph_greedy_packing():
    text = "Para one.\n\nPara two.\n\nPara three."
    chunks = _chunk(text, strategy="paragraph", max_chunk_size=25, overlap_size=0)
    assert [c.content for c in chunks] == ["Para one.\n\nPara two.", "Para three."]


def test_paragraph_ignores_headings():
    chunks = _chunk("# A\ntext\n\n# B\nmore", strategy="paragraph", overlap_size=0)
    assert len(chunks) == 1
    assert chunks[0].heading is None


# ------------------------------------------------------------------
# ids, indices, metadata
# ------------------------------------------------------------------


def test_indices_and_totals():
    chunks = _chunk("# A\nx\n\n# B\ny\n\n# C\nz\n", overlap_size=0)
    assert [c.chunk_index for c in chunks] == [0, 1, 2]
    assert all(c.total_chunks == 3 for c in chunks)
    assert all(c.source_path == PATH and c.source_id == SID for c in chunks)


def test_ids_are_deterministic_and_path_dependent():
    text = "# A\nalpha\n\n# B\nbeta\n"
    first = MarkdownChunker().chunk(text, PATH, SID)
    second = MarkdownChunker().chunk(text, PATH, SID)
    other = MarkdownChunker().chunk(text, "/docs/other.md", SID)

    assert [c.id for c in first] == [c.id for c in second]
    assert first[0].id != other[0].id
    assert all(re.fullmatch(r"[0-9a-f]{16}", c.id) for c in first)


def test_generate_chunk_id_uses_hash_of_content():
    content_hash = MarkdownChunker.hash_content("hello")
    assert len(content_hash) == 12
    assert MarkdownChunker.generate_chunk_id(PATH, 0, content_hash) != (
        MarkdownChunker.generate_chunk_id(PATH, 1, content_hash)
    )


def test_extract_metadata():
    meta = extract_metadata("Run `make` then see [docs](https://example.com) now")
    assert meta.word_count == 6
    assert meta.has_code is True
    assert meta.has_links is True


def test_extract_metadata_plain_text():
    meta = extract_metadata("just words")
    assert meta == type(meta)(word_count=2, has_code=False, has_links=False)
