"""Pin the keyword scorer: scoring, cap, padding and search-term extraction."""

from bid_resolver.lexical import extract_search_terms, lexical_search, score_row, select_rows
from bid_resolver.models import CatalogRecord


class TestScoreRow:
    def test_long_terms_score_two(self):
        assert score_row("EMT Conduit 3/4", ["emt", "conduit"]) == 4

    def test_short_terms_score_one(self):
        assert score_row("MC cable 12/2", ["mc", "12"]) == 2

    def test_case_insensitive_substring(self):
        assert score_row("THHN Wire", ["thhn"]) == 2

    def test_no_match(self):
        assert score_row("Junction Box", ["conduit"]) == 0


class TestSelectRows:
    def _rows(self, n=300):
        return [f"row {i} widget" if i % 3 == 0 else f"row {i} gadget" for i in range(n)]

    def test_never_exceeds_cap(self):
        selected = select_rows(self._rows(), ["widget"], max_results=40, min_results=10)
        assert len(selected) == 40

    def test_padding_reaches_floor_without_duplicates(self):
        selected = select_rows(self._rows(), ["widget"], max_results=200, min_results=150)
        assert len(selected) == 150
        assert len(set(selected)) == 150
        # 100 hits first, then padding from the start of the catalog
        assert all(i % 3 == 0 for i in selected[:100])
        assert selected[100:103] == [1, 2, 4]

    def test_padding_stops_at_catalog_end(self):
        rows = ["alpha", "beta", "gamma"]
        assert sorted(select_rows(rows, ["beta"], min_results=50)) == [0, 1, 2]

    def test_sorted_by_score_ties_keep_order(self):
        rows = ["emt", "emt conduit", "pvc", "emt conduit", "conduit"]
        selected = select_rows(rows, ["emt", "conduit"], min_results=0)
        assert selected == [1, 3, 0, 4]

    def test_empty_terms_returns_prefix(self):
        assert select_rows(self._rows(), [], empty_prefix=100) == list(range(100))

    def test_empty_terms_prefix_respects_cap(self):
        assert len(select_rows(self._rows(), [], max_results=20, empty_prefix=100)) == 20

    def test_empty_catalog(self):
        assert select_rows([], ["emt"]) == []


class TestLexicalSearch:
    def test_returns_records(self):
        records = [
            CatalogRecord(record_id="1", name="PVC Conduit"),
            CatalogRecord(record_id="2", name="EMT Conduit", code="E34"),
        ]
        result = lexical_search(records, ["emt", "conduit"], min_results=0)
        assert [r.record_id for r in result] == ["2", "1"]


class TestExtractSearchTerms:
    def test_drops_quantity_words_and_numbers(self):
        assert extract_search_terms("2 cuts of 400' of 3/4 EMT") == ["3/4", "emt"]

    def test_keeps_gauge_and_dedupes(self):
        assert extract_search_terms("#12 THHN, 500 ft #12 thhn red") == ["#12", "thhn", "red"]

    def test_empty(self):
        assert extract_search_terms("") == []
