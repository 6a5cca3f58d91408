#!/usr/bin/env python3
"""Tests for the feature scorer and the semantic analyzer."""

from datetime import datetime, timezone

import pytest

from adaptive_crawler.scoring import FeatureScorer
from adaptive_crawler.semantic import SemanticAnalyzer


CONTEXT = {
    "source_url": "https://example.com",
    "source_reliability": 0.8,
    "extraction_depth": 1,
    "timestamp": datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
}


@pytest.fixture
def scorer():
    return FeatureScorer()


class TestFeatureScorer:

    def test_features_are_clamped(self, scorer):
        features = scorer.extract_features("A" * 500 + " 123 !!!", CONTEXT)
        assert features["length"] == 1.0
        assert all(0.0 <= v <= 1.0 for v in features.values())
        assert features["time_of_day"] == pytest.approx(0.5)

    def test_context_only_features_for_non_text(self, scorer):
        features = scorer.extract_features({"k": 1}, {})
        assert set(features) == {"source_reliability", "extraction_depth", "time_of_day"}
        assert features["source_reliability"] == 0.5

    def test_loose_context_values_are_coerced(self, scorer):
        context = {"source_reliability": None, "extraction_depth": "2"}
        features = scorer.extract_features("text", context)
        assert features["source_reliability"] == 0.5
        assert features["extraction_depth"] == pytest.approx(0.2)

        scorer.train_from_feedback("text", {"extraction_depth": "deep"}, liked=True)
        assert len(scorer.training_data) == 1

    def test_untrained_prediction_is_neutral(self, scorer):
        assert scorer.predict_quality("Some text", CONTEXT) == 0.5

    def test_positive_training_raises_prediction(self, scorer):
        before = scorer.predict_quality("Useful headline text", CONTEXT)
        scorer.train_from_feedback("Useful headline text", CONTEXT, liked=True)
        after = scorer.predict_quality("Useful headline text", CONTEXT)
        assert after > before

    def test_negative_training_lowers_prediction(self, scorer):
        before = scorer.predict_quality("spam spam", CONTEXT)
        scorer.train_from_feedback("spam spam", CONTEXT, liked=False)
        assert scorer.predict_quality("spam spam", CONTEXT) < before

    def test_training_clears_cache(self, scorer):
        scorer.predict_quality("a", CONTEXT)
        scorer.predict_quality("b", CONTEXT)
        assert len(scorer.prediction_cache) == 2
        scorer.train_from_feedback("a", CONTEXT, liked=True)
        assert scorer.prediction_cache == {}

    def test_cache_evicts_oldest_half(self):
        scorer = FeatureScorer(cache_size_limit=4)
        for text in ["one", "two", "three", "four"]:
            scorer.predict_quality(text, CONTEXT)
        scorer.predict_quality("five", CONTEXT)

        keys = list(scorer.prediction_cache)
        assert len(keys) == 3
        assert not any('"one"' in k or '"two"' in k for k in keys)

    def test_model_version_bumps(self):
        scorer = FeatureScorer(version_every=3)
        for i in range(6):
            scorer.train_from_feedback(f"text {i}", CONTEXT, liked=i % 2 == 0)
        stats = scorer.get_stats()
        assert stats["model_version"] == 3
        assert stats["training_samples"] == 6
        assert len(stats["top_features"]) <= 5


class TestSemanticAnalyzer:

    def test_non_text_falls_back_to_neutral(self):
        analyzer = SemanticAnalyzer()
        analysis = analyzer.analyze(12345)
        assert analysis.semantic_quality == 0.5
        assert analyzer.get_stats() == {"analyses": 0, "fallbacks": 1}

    def test_scores_in_range(self):
        analyzer = SemanticAnalyzer()
        text = (
            "The committee met on Monday. However, the vote was delayed. "
            "Therefore the Board has scheduled a new session."
        )
        analysis = analyzer.analyze(text)
        for value in analysis.model_dump().values():
            assert 0.0 <= value <= 1.0
        assert analysis.coherence == pytest.approx(2 / 3)

    def test_single_sentence_coherence_is_neutral(self):
        assert SemanticAnalyzer.coherence("Just one sentence") == 0.5

    def test_anomalous_text_scores_lower(self):
        analyzer = SemanticAnalyzer()
        good = analyzer.analyze("The river was calm and the town was quiet.")
        bad = analyzer.analyze("!!!!!!!!!!!!!!!!!!!!")
        assert bad.anomaly_level > good.anomaly_level
        assert bad.semantic_quality < good.semantic_quality
