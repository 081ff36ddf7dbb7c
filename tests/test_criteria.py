from dataclasses import FrozenInstanceError

import pytest

from docsearch.core.config import DEFAULT_SEARCH_CATEGORY, RRFConfig, ScoreBlend, Settings
from docsearch.core.types import (
    FieldWeights,
    QueryAnalysis,
    SearchCriterion,
    SearchType,
    contents,
    keywords,
    logical_id,
    path_segments,
    paths,
    titles,
)
from docsearch.retrieval.fusion import RankFusion


def test_keywords_join_with_or():
    kw = keywords("kotlin", "spring", "boot")
    assert kw.search_type is SearchType.KEYWORD
    assert not kw.is_empty()
    assert kw.size() == 3
    assert kw.to_query() == "kotlin OR spring OR boot"


def test_each_helper_sets_its_type():
    assert titles("User Guide").search_type is SearchType.TITLE
    assert contents("tutorial").search_type is SearchType.CONTENT
    assert paths("Development").search_type is SearchType.PATH


def test_blank_terms_are_dropped():
    c = SearchCriterion.from_strings(SearchType.TITLE, ["", "  ", "API Reference "])
    assert c.terms == ("API Reference",)


def test_empty_criterion():
    c = SearchCriterion.from_strings(SearchType.KEYWORD, [])
    assert c.is_empty()
    assert c.size() == 0
    assert c.to_query() == ""
    assert SearchCriterion.from_strings(SearchType.PATH, None).is_empty()


def test_criterion_is_immutable():
    c = keywords("a")
    with pytest.raises(FrozenInstanceError):
        c.terms = ("b",)  # type: ignore[misc]


def test_only_content_is_embedded():
    assert [t for t in SearchType if t.embeds_query] == [SearchType.CONTENT]


def test_logical_id_strips_chunk_suffix():
    assert logical_id("p1_chunk_0") == "p1"
    assert logical_id("p1_chunk_12") == "p1"
    assert logical_id("p1") == "p1"


def test_path_segments_are_trimmed():
    assert path_segments("docs > sub >page") == ["docs", "sub", "page"]
    assert path_segments("") == []


def test_field_weights_parse_and_validate():
    fw = FieldWeights.parse("keywords, title ,content", "10,5,1")
    assert fw.fields == ("keywords", "title", "content")
    assert fw.weights == (10, 5, 1)
    with pytest.raises(ValueError):
        FieldWeights(fields=("a", "b"), weights=(1,))


def test_analysis_criteria_merge_date_keywords_into_keyword_search():
    analysis = QueryAnalysis(keywords=("meeting", "2508"), date_keywords=("2508", "August"), contents=("notes",))
    assert analysis.all_keywords() == ["meeting", "2508", "August"]

    by_type = {c.search_type: c for c in analysis.criteria()}
    assert by_type[SearchType.KEYWORD].to_query() == "meeting OR 2508 OR August"
    assert by_type[SearchType.TITLE].is_empty()
    assert by_type[SearchType.CONTENT].to_query() == "notes"


def test_score_blend_range_checked():
    assert ScoreBlend(0.4, 0.6).combine(1.0, 0.5) == pytest.approx(0.7)
    with pytest.raises(ValueError):
        ScoreBlend(text_weight=1.5)
    with pytest.raises(ValueError):
        ScoreBlend(vector_weight=-0.1)


def test_rrf_config_defaults_and_validation():
    cfg = RRFConfig()
    assert cfg.k == 60.0
    assert cfg.weight(SearchType.PATH) == 3.0
    with pytest.raises(ValueError):
        RRFConfig(k=0)


def test_rrf_config_weights_are_read_only():
    shared = RRFConfig()
    fusion = RankFusion(shared)
    with pytest.raises(TypeError):
        shared.weights[SearchType.KEYWORD] = 99.0  # type: ignore[index]
    assert fusion.config.weight(SearchType.KEYWORD) == 1.3
    assert hash(shared) == hash(RRFConfig())
    assert shared == RRFConfig()


def test_rrf_config_copies_caller_weights():
    weights = {SearchType.KEYWORD: 2.0}
    cfg = RRFConfig(weights=weights)
    weights[SearchType.KEYWORD] = 5.0
    assert cfg.weight(SearchType.KEYWORD) == 2.0
    assert cfg.weight(SearchType.TITLE) == 1.0


def test_settings_build_rrf_config(monkeypatch):
    monkeypatch.setenv("RRF_K", "30")
    monkeypatch.setenv("W_TITLE", "2.5")
    monkeypatch.setenv("DATE_BOOST_FACTOR", "1.5")
    s = Settings(_env_file=None)
    cfg = s.rrf_config()
    assert cfg.k == 30.0
    assert cfg.weight(SearchType.TITLE) == 2.5
    assert cfg.date_boost == 1.5
    assert s.category_filter() == {"type": DEFAULT_SEARCH_CATEGORY}
