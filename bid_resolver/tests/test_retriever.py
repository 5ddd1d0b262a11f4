"""Type-token extraction, rerank stability, dedupe and the embedding retriever."""

from unittest.mock import MagicMock

import pytest

from bid_resolver.errors import EmbeddingError, RetrievalError
from bid_resolver.models import Candidate, CatalogRecord, LineItem
from bid_resolver.retriever import (
    EmbeddingRetriever,
    dedupe_candidates,
    extract_type_token,
    rerank_by_type,
)


def _cand(rid: str, name: str, score=None, aliases: str = "") -> Candidate:
    return Candidate(CatalogRecord(record_id=rid, name=name, alternate_names=aliases), score=score)


class TestExtractTypeToken:
    def test_short_last_word_when_no_long_word(self):
        assert extract_type_token("2 cuts of 400' of 3/4 EMT") == "EMT"

    def test_last_long_word(self):
        assert extract_type_token("10 3/4 EMT connectors") == "connectors"

    def test_quantity_unit_not_a_word(self):
        assert extract_type_token("150 ft 12 awg thhn") == "thhn"

    def test_sizes_are_skipped(self):
        assert extract_type_token("EMT conduit 1-1/2") == "conduit"

    def test_empty(self):
        assert extract_type_token("") == ""


class TestRerankByType:
    def test_matches_first(self):
        cands = [_cand("a", "EMT Connector"), _cand("b", "EMT Conduit"), _cand("c", "PVC Conduit")]
        ranked = rerank_by_type(cands, "conduit")
        assert [c.record_id for c in ranked] == ["b", "c", "a"]

    def test_stable_within_partitions(self):
        cands = [
            _cand("n1", "Strap"), _cand("m1", "Conduit A"), _cand("n2", "Bushing"),
            _cand("m2", "Conduit B"), _cand("n3", "Locknut"), _cand("m3", "Conduit C"),
        ]
        ranked = rerank_by_type(cands, "CONDUIT")
        assert [c.record_id for c in ranked] == ["m1", "m2", "m3", "n1", "n2", "n3"]

    def test_alias_counts_as_match(self):
        cands = [_cand("a", "Widget"), _cand("b", "Part 77", aliases="thinwall conduit")]
        assert rerank_by_type(cands, "conduit")[0].record_id == "b"

    def test_cap(self):
        cands = [_cand(str(i), f"Conduit {i}") for i in range(10)]
        assert len(rerank_by_type(cands, "conduit", cap=5)) == 5

    def test_empty_token_keeps_order(self):
        cands = [_cand("x", "B"), _cand("y", "A")]
        assert [c.record_id for c in rerank_by_type(cands, "")] == ["x", "y"]


class TestDedupeCandidates:
    def test_first_occurrence_kept(self):
        first = _cand("r1", "EMT Conduit", score=0.9)
        dup = _cand("r1", "EMT Conduit", score=0.99)
        other = _cand("r2", "EMT Connector", score=0.8)
        result = dedupe_candidates([first, other, dup])
        assert [c.record_id for c in result] == ["r1", "r2"]
        assert result[0] is first

    def test_each_id_at_most_once(self):
        cands = [_cand(str(i % 3), "x") for i in range(12)]
        result = dedupe_candidates(cands)
        ids = [c.record_id for c in result]
        assert len(ids) == len(set(ids)) == 3

    def test_empty(self):
        assert dedupe_candidates([]) == []


class TestEmbeddingRetriever:
    def test_embed_then_search_with_origin(self, emt_conduit):
        calls = MagicMock()
        calls.embed.return_value = [0.1, 0.2]
        calls.search.return_value = [Candidate(emt_conduit, score=0.91)]
        retriever = EmbeddingRetriever(calls.embed, calls.search, top_k=7)
        item = LineItem(index=3, text="200' 3/4 EMT")

        result = retriever.retrieve(item)

        assert [c[0] for c in calls.mock_calls] == ["embed", "search"]
        calls.search.assert_called_once_with([0.1, 0.2], 7)
        assert result[0].origin == item
        assert result[0].score == 0.91

    def test_embedding_failure_propagates(self):
        search = MagicMock()
        retriever = EmbeddingRetriever(MagicMock(side_effect=EmbeddingError("down")), search)
        with pytest.raises(EmbeddingError):
            retriever.retrieve(LineItem(0, "EMT"))
        search.assert_not_called()

    def test_search_failure_propagates(self):
        retriever = EmbeddingRetriever(
            MagicMock(return_value=[0.1]), MagicMock(side_effect=RetrievalError("503")),
        )
        with pytest.raises(RetrievalError):
            retriever.retrieve(LineItem(0, "EMT"))

    def test_no_matches_is_empty_not_error(self):
        retriever = EmbeddingRetriever(MagicMock(return_value=[0.1]), MagicMock(return_value=[]))
        assert retriever.retrieve(LineItem(0, "EMT")) == []
