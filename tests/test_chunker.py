"""Tests for the overlapping, separator-aware chunker."""

import pytest

from ragroute.src.core.chunker import ChunkConfig, Chunker, split
from ragroute.src.core.errors import InvalidParameterError
from ragroute.src.core.models import Document


def _assert_invariants(document, segments, max_chunk_size, overlap):
    assert segments[0].start == 0
    assert segments[-1].end == len(document.text)
    for position, segment in enumerate(segments):
        assert segment.index == position
        assert len(segment.text) <= max_chunk_size
        assert segment.text == document.text[segment.start:segment.end]
        assert segment.source_id == document.source_id
    for previous, current in zip(segments, segments[1:]):
        assert current.start == previous.end - overlap
        assert current.start > previous.start


class TestChunkParameters:
    """Invalid size / overlap combinations are rejected up front."""

    @pytest.mark.parametrize("size, overlap", [(0, 0), (-5, 0), (10, 10), (10, 11), (10, -1)])
    def test_invalid_params_raise(self, size: int, overlap: int) -> None:
        document = Document(text="some text", source_id="a.txt")

        with pytest.raises(InvalidParameterError):
            split(document, size, overlap)

    def test_chunk_config_validates_on_creation(self) -> None:
        with pytest.raises(InvalidParameterError):
            ChunkConfig(max_chunk_size=20, overlap=20)

    def test_invalid_params_are_also_value_errors(self) -> None:
        with pytest.raises(ValueError):
            ChunkConfig(max_chunk_size=0, overlap=0)


class TestSplit:
    """Segment boundaries, coverage and overlap."""

    def test_empty_document_gives_no_segments(self) -> None:
        assert split(Document(text="", source_id="empty.txt"), 10, 2) == []

    def test_short_document_is_one_segment(self) -> None:
        document = Document(text="short text", source_id="a.txt")

        segments = split(document, 50, 5)

        assert len(segments) == 1
        assert segments[0].text == "short text"
        assert (segments[0].start, segments[0].end) == (0, 10)

    def test_raw_cut_without_separators(self) -> None:
        # Arrange
        document = Document(text="a" * 25, source_id="a.txt")

        # Act
        segments = split(document, 10, 3)

        # Assert
        assert [(s.start, s.end) for s in segments] == [(0, 10), (7, 17), (14, 24), (21, 25)]
        _assert_invariants(document, segments, 10, 3)

    def test_prefers_paragraph_boundary(self) -> None:
        document = Document(text="aaaa bbbb\n\ncccc dddd eeee", source_id="a.txt")

        segments = split(document, 15, 0)

        assert [s.text for s in segments] == ["aaaa bbbb\n\n", "cccc dddd eeee"]

    def test_falls_back_to_word_boundary(self) -> None:
        document = Document(text="alpha beta gamma delta", source_id="a.txt")

        segments = split(document, 12, 0)

        assert [s.text for s in segments] == ["alpha beta ", "gamma delta"]

    def test_long_document_respects_bound_and_overlap(self) -> None:
        # Arrange
        paragraph = "Retrieval augments generation. It finds passages! Does it rank them? Yes.\n"
        document = Document(text=paragraph * 20 + "\n\n" + "word " * 200, source_id="long.txt")

        # Act
        segments = split(document, 120, 20)

        # Assert
        assert len(segments) > 5
        _assert_invariants(document, segments, 120, 20)

    def test_chunker_uses_its_config(self) -> None:
        document = Document(text="x" * 40, source_id="a.txt")

        segments = Chunker(ChunkConfig(max_chunk_size=20, overlap=5)).split(document)

        assert [(s.start, s.end) for s in segments] == [(0, 20), (15, 35), (30, 40)]
