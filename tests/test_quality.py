import pytest

from planingest.ingest.models import QualityMetrics
from planingest.ingest.quality import QualityScorer, quality_label, should_keep_chunk

POLICY_TEXT = (
    "El gobierno propone una reforma educativa que fortalezca la educación pública en todo el país. "
    "La estrategia incluye becas para estudiantes, formación docente continua y mejor infraestructura "
    "en las escuelas rurales. El presupuesto del programa se revisará cada año con participación ciudadana."
)


@pytest.mark.parametrize("text", ["", "   ", "...!!!", "¿?¡!", "--- *** ---"])
def test_text_without_content_scores_low(text: str) -> None:
    metrics = QualityScorer().score(text)

    assert metrics.quality_score <= 0.3
    assert metrics.has_keywords is False


def test_policy_text_scores_well() -> None:
    metrics = QualityScorer().score(POLICY_TEXT)

    assert metrics.has_keywords is True
    assert metrics.length_score == 1.0
    assert metrics.special_char_ratio == 0.0
    assert 0.6 <= metrics.quality_score <= 1.0
    assert 0.0 <= metrics.readability <= 1.0


def test_noise_characters_lower_the_score() -> None:
    scorer = QualityScorer()
    clean = "Las personas caminan por la calle cada mañana."
    noisy = clean.replace("a", "#")

    assert scorer.score(clean).special_char_ratio == 0.0
    assert scorer.score(noisy).special_char_ratio > 0.2
    assert scorer.score(noisy).quality_score < scorer.score(clean).quality_score


@pytest.mark.parametrize(
    ("length", "expected"),
    [(10, 0.2), (60, 0.5), (150, 0.8), (500, 1.0), (1500, 0.9), (2500, 0.7), (5000, 0.5)],
)
def test_length_score_bands(length: int, expected: float) -> None:
    assert QualityScorer.length_score("a" * length) == expected


def test_scores_stay_in_unit_interval() -> None:
    scorer = QualityScorer()
    for text in (POLICY_TEXT, "plan " * 400, "x", "Costa Rica.", "a b c d e f g"):
        metrics = scorer.score(text)
        assert 0.0 <= metrics.quality_score <= 1.0
        assert 0.0 <= metrics.readability <= 1.0


@pytest.mark.parametrize(
    ("score", "label"),
    [(0.95, "Excellent"), (0.8, "Excellent"), (0.65, "Good"), (0.45, "Fair"), (0.25, "Poor"), (0.1, "Very Poor")],
)
def test_quality_label(score: float, label: str) -> None:
    assert quality_label(score) == label


def test_should_keep_chunk_threshold() -> None:
    metrics = QualityMetrics(
        quality_score=0.55, length_score=0.5, special_char_ratio=0.0, has_keywords=False, readability=1.0
    )
    assert should_keep_chunk(metrics)
    assert not should_keep_chunk(metrics, threshold=0.6)
