from planingest.ingest.keywords import KEYWORD_STOPWORDS, KeywordExtractor
from planingest.ingest.quality import READABILITY_STOPWORDS

TEXT = (
    "El Ministerio de Educación Pública y la CCSS trabajan en San José. "
    "La educación pública es prioridad del plan. "
    "La educación pública necesita inversión en Guanacaste."
)


def test_extracts_named_entities() -> None:
    entities = KeywordExtractor().extract_entities(TEXT)

    assert {"CCSS", "San José", "Guanacaste", "Ministerio de Educación Pública"} <= entities
    assert isinstance(entities, frozenset)


def test_entity_patterns_are_case_sensitive() -> None:
    assert KeywordExtractor().extract_entities("la ccss y san josé") == frozenset()


def test_keywords_rank_repeated_domain_terms_first() -> None:
    keywords = KeywordExtractor().extract_keywords(TEXT, max_keywords=5)

    assert len(keywords) == 5
    assert "educación pública" in keywords
    assert keywords.index("educación pública") < 3
    assert "de la" not in keywords


def test_keywords_skip_short_and_stopword_terms() -> None:
    keywords = KeywordExtractor().extract_keywords("de la de la el y el plan", max_keywords=10)

    assert "plan" in keywords
    assert all(len(term) >= 3 for term in keywords)
    assert "de la" not in keywords
    assert "el" not in keywords


def test_extract_combines_keywords_and_entities() -> None:
    result = KeywordExtractor().extract(TEXT, max_keywords=3)

    assert len(result.keywords) == 3
    assert "CCSS" in result.entities


def test_empty_text() -> None:
    result = KeywordExtractor().extract("")

    assert result.keywords == ()
    assert result.entities == frozenset()


def test_keyword_stopwords_extend_the_readability_list() -> None:
    assert READABILITY_STOPWORDS < KEYWORD_STOPWORDS
    assert "durante" in KEYWORD_STOPWORDS
    assert "durante" not in READABILITY_STOPWORDS
    assert "durante los" not in KeywordExtractor().extract_keywords("durante los durante los años", max_keywords=10)
