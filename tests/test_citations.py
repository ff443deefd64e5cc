from docqa.citations import extract_citations
from docqa.models import Citation


class TestExtractCitations:
    def test_single_marker_by_chunk_id(self, chunk_factory) -> None:
        chunks = [
            chunk_factory("ch_1a2b3c", "Unrelated text.", page_number=1),
            chunk_factory("ch_9f8e7d", "The deadline moved to Q3.", page_number=4),
        ]

        citations = extract_citations(
            "The deadline is in Q3 (page 4, chunk ch_9f8e7d).", chunks
        )

        assert citations == [
            Citation(chunk_id="ch_9f8e7d", page_number=4, excerpt="The deadline moved to Q3.")
        ]

    def test_case_insensitive_and_optional_comma(self, chunk_factory) -> None:
        chunks = [chunk_factory("ch_abc123", "Budget text.", page_number=2)]

        citations = extract_citations("Budget (Page 2 Chunk CH_ABC123).", chunks)

        assert [c.chunk_id for c in citations] == ["ch_abc123"]

    def test_falls_back_to_page_number(self, chunk_factory) -> None:
        chunks = [
            chunk_factory("ch_p1", "Page one.", page_number=1),
            chunk_factory("ch_p5", "Page five.", page_number=5),
        ]

        citations = extract_citations("See (page 5, chunk ch_unknown).", chunks)

        assert [c.chunk_id for c in citations] == ["ch_p5"]
        assert citations[0].fallback is False

    def test_numeric_reference_uses_context_position(self, chunk_factory) -> None:
        chunks = [
            chunk_factory("ch_first", "First.", page_number=3),
            chunk_factory("ch_second", "Second.", page_number=3),
        ]

        citations = extract_citations("Both agree (page 3, chunk 2).", chunks)

        assert [c.chunk_id for c in citations] == ["ch_second"]

    def test_deduplicates_in_first_seen_order(self, chunk_factory) -> None:
        chunks = [
            chunk_factory("ch_a", "A text.", page_number=1),
            chunk_factory("ch_b", "B text.", page_number=2),
        ]
        answer = (
            "First (page 2, chunk ch_b). Then (page 1, chunk ch_a). "
            "Again (page 2, chunk ch_b)."
        )

        citations = extract_citations(answer, chunks)

        assert [c.chunk_id for c in citations] == ["ch_b", "ch_a"]

    def test_unresolvable_marker_is_skipped_without_fallback(self, chunk_factory) -> None:
        chunks = [chunk_factory("ch_a", "A text.", page_number=1)]

        citations = extract_citations("Claim (page 9, chunk ch_zzz).", chunks)

        assert citations == []

    def test_no_markers_cites_first_three_chunks(self, chunk_factory) -> None:
        chunks = [chunk_factory(f"ch_{i}", f"Text {i}.", page_number=i + 1) for i in range(5)]

        citations = extract_citations("An answer without any markers.", chunks)

        assert [c.chunk_id for c in citations] == ["ch_0", "ch_1", "ch_2"]
        assert all(c.fallback for c in citations)

    def test_fallback_is_configurable(self, chunk_factory) -> None:
        chunks = [chunk_factory(f"ch_{i}", f"Text {i}.") for i in range(5)]

        assert len(extract_citations("No markers.", chunks, fallback_count=1)) == 1
        assert extract_citations("No markers.", chunks, fallback_count=0) == []

    def test_no_context_no_citations(self) -> None:
        assert extract_citations("No markers.", []) == []

    def test_excerpt_truncated(self, chunk_factory) -> None:
        chunks = [chunk_factory("ch_long", "word " * 60, page_number=1)]

        citations = extract_citations("(page 1, chunk ch_long)", chunks)

        assert len(citations[0].excerpt) == 100
        assert citations[0].excerpt.endswith("...")
