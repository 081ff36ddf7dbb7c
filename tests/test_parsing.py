import pytest

from docsearch.core.types import RawHit, SearchResult
from docsearch.retrieval.parsing import deduplicate, linear_blend, parse_hits

from conftest import hit


def _result(doc_id, score, content="", title=None, path="root"):
    return SearchResult(id=doc_id, title=title or doc_id, content=content or doc_id, path=path, score=score)


def test_parse_sorts_by_combined_score():
    hits = [
        hit("doc1", lexical=0.8, vector=0.6),
        hit("doc2", lexical=0.5, vector=0.9),
    ]
    results = parse_hits(hits, linear_blend(0.7, 0.3))
    assert [r.id for r in results] == ["doc1", "doc2"]
    assert results[0].score == pytest.approx(0.74)
    assert results[1].score == pytest.approx(0.62)


def test_parse_default_combiner_is_even_blend():
    [r] = parse_hits([hit("doc1", lexical=0.8, vector=0.6)])
    assert r.score == pytest.approx(0.7)


def test_parse_accepts_custom_combiner():
    [r] = parse_hits([hit("doc1", lexical=0.8, vector=0.6)], lambda t, v: max(t, v))
    assert r.score == pytest.approx(0.8)


def test_parse_reads_flat_nested_and_missing_fields():
    flat = RawHit(document={"id": "a_chunk_2", "content": "x", "metadata.title": "Flat", "metadata.path": "p > q"})
    nested = RawHit(document={"id": "b", "metadata": {"title": "Nested", "spaceKey": "DEV", "keywords": ["k1", "k2"]}})
    bare = RawHit(document={"id": "c"})

    by_id = {r.id: r for r in parse_hits([flat, nested, bare])}
    assert by_id["a"].title == "Flat"
    assert by_id["a"].path == "p > q"
    assert by_id["b"].collection_key == "DEV"
    assert by_id["b"].keywords == "k1, k2"
    assert by_id["c"].title == "Untitled"
    assert by_id["c"].content == ""


def test_parse_skips_hits_without_id():
    hits = [
        RawHit(document={"content": "orphan one", "metadata": {"title": "A"}}, lexical_score=0.9),
        RawHit(document={"id": "", "content": "orphan two"}, lexical_score=0.8),
        hit("doc1", lexical=0.1, vector=0.1),
    ]
    results = deduplicate(parse_hits(hits))
    assert [r.id for r in results] == ["doc1"]
    assert results[0].content == "content of doc1"


def test_parse_keeps_engine_order_on_ties():
    hits = [hit("x", lexical=0.5, vector=0.5), hit("y", lexical=0.5, vector=0.5), hit("z", lexical=0.5, vector=0.5)]
    assert [r.id for r in parse_hits(hits)] == ["x", "y", "z"]


def test_merge_chunks_of_same_page():
    results = parse_hits(
        [
            hit("p1_chunk_0", content="first part", lexical=0.8, vector=0.8),
            hit("p1_chunk_1", content="second part", lexical=0.6, vector=0.6),
        ]
    )
    merged = deduplicate(results)

    assert len(merged) == 1
    assert merged[0].id == "p1"
    assert merged[0].score == pytest.approx(0.8)
    assert "first part" in merged[0].content
    assert "second part" in merged[0].content
    assert merged[0].content == "first part\n\nsecond part"


def test_dedup_keeps_max_score_and_first_metadata():
    results = [
        _result("d", 0.3, content="a", title="First", path="x > y"),
        _result("e", 0.5),
        _result("d", 0.9, content="b", title="Second", path="other"),
    ]
    merged = deduplicate(results)

    assert [r.id for r in merged] == ["d", "e"]
    d = merged[0]
    assert d.score == 0.9
    assert d.title == "First"
    assert d.path == "x > y"
    assert d.content == "a\n\nb"


def test_dedup_is_idempotent():
    results = parse_hits(
        [
            hit("p1_chunk_0", lexical=0.8, vector=0.8),
            hit("p2", lexical=0.7, vector=0.7),
            hit("p1_chunk_1", lexical=0.6, vector=0.6),
        ]
    )
    once = deduplicate(results)
    twice = deduplicate(once)
    assert [(r.id, r.score, r.content) for r in once] == [(r.id, r.score, r.content) for r in twice]


def test_dedup_does_not_mutate_input():
    a = _result("p", 0.5, content="one")
    b = _result("p", 0.4, content="two")
    deduplicate([a, b])
    assert a.content == "one"


def test_dedup_empty():
    assert deduplicate([]) == []
    assert parse_hits([]) == []
