"""
Feature extraction and an online linear quality model.
"""

from __future__ import annotations

import json
import logging
import re
import time
from datetime import datetime
from typing import Any, Dict, List, Mapping, Tuple

logger = logging.getLogger(__name__)

_VOWEL = re.compile(r"[aeiou]", re.IGNORECASE)
_DIGIT = re.compile(r"\d")
_SPECIAL = re.compile(r"[^\w\s]")
_UPPER = re.compile(r"[A-Z]")
_SPACE = re.compile(r"\s")

SECONDS_PER_DAY = 86_400


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _number(value: Any, default: float) -> float:
    """Numeric context value, or ``default`` when it is missing, zero or unparseable."""
    try:
        return float(value) or default
    except (TypeError, ValueError):
        return default


def _timestamp_seconds(value: Any) -> float:
    if isinstance(value, datetime):
        return value.timestamp()
    if isinstance(value, (int, float)):
        return float(value)
    return time.time()


class FeatureScorer:
    """Online linear model over hand-crafted text and context features.

    ``predict_quality`` is ``0.5 + sum(weight * feature)`` clamped to [0, 1].
    ``train_from_feedback`` performs one gradient step per feedback event and
    drops the whole prediction cache afterwards.
    """

    def __init__(self, cache_size_limit: int = 10_000, version_every: int = 100) -> None:
        self.feature_weights: Dict[str, float] = {}
        self.training_data: List[Tuple[Dict[str, float], bool]] = []
        self.prediction_cache: Dict[str, float] = {}
        self.model_version = 1
        self.cache_size_limit = cache_size_limit
        self.version_every = version_every
        logger.info("Feature scorer initialized")

    # ------------------------------------------------------------------ #
    def extract_features(self, data: Any, context: Mapping[str, Any]) -> Dict[str, float]:
        features: Dict[str, float] = {}

        if isinstance(data, str):
            n = max(1, len(data))
            words = data.split()
            features["length"] = len(data) / 100.0
            features["word_count"] = len(words) / 20.0
            features["vowel_ratio"] = len(_VOWEL.findall(data)) / n
            features["digit_ratio"] = len(_DIGIT.findall(data)) / n
            features["special_char_ratio"] = len(_SPECIAL.findall(data)) / n
            features["uppercase_ratio"] = len(_UPPER.findall(data)) / n
            features["whitespace_ratio"] = len(_SPACE.findall(data)) / n
            features["avg_word_length"] = (
                sum(len(w) for w in words) / len(words) / 10.0 if words else 0.0
            )
            features["unique_word_ratio"] = len(set(words)) / len(words) if words else 0.0

        features["source_reliability"] = _number(context.get("source_reliability"), 0.5)
        features["extraction_depth"] = _number(context.get("extraction_depth"), 1.0) / 10.0
        seconds = _timestamp_seconds(context.get("timestamp"))
        features["time_of_day"] = (seconds % SECONDS_PER_DAY) / SECONDS_PER_DAY

        return {name: _clamp(float(value)) for name, value in features.items()}

    @staticmethod
    def _cache_key(data: Any, context: Mapping[str, Any]) -> str:
        return json.dumps([data, dict(context)], sort_keys=True, default=str)

    def predict_quality(self, data: Any, context: Mapping[str, Any]) -> float:
        key = self._cache_key(data, context)
        cached = self.prediction_cache.get(key)
        if cached is not None:
            return cached

        score = 0.5
        for feature, value in self.extract_features(data, context).items():
            score += self.feature_weights.get(feature, 0.0) * value
        result = _clamp(score)

        if len(self.prediction_cache) >= self.cache_size_limit:
            # dicts keep insertion order, so the first keys are the oldest
            for stale in list(self.prediction_cache)[: self.cache_size_limit // 2]:
                del self.prediction_cache[stale]

        self.prediction_cache[key] = result
        return result

    def train_from_feedback(
        self,
        data: Any,
        context: Mapping[str, Any],
        liked: bool,
        learning_rate: float = 0.01,
    ) -> float:
        """One step of online gradient descent; returns the prediction error."""
        features = self.extract_features(data, context)
        target = 1.0 if liked else 0.0
        error = target - self.predict_quality(data, context)

        for feature, value in features.items():
            self.feature_weights[feature] = (
                self.feature_weights.get(feature, 0.0) + learning_rate * error * value
            )

        self.training_data.append((features, liked))
        self.prediction_cache.clear()
        logger.debug(f"Scorer trained on feedback. Error: {error:.3f}")

        if len(self.training_data) % self.version_every == 0:
            self.model_version += 1
            logger.info(f"Scorer updated to version {self.model_version}")
        return error

    def get_stats(self) -> Dict[str, Any]:
        top = sorted(self.feature_weights.items(), key=lambda kv: abs(kv[1]), reverse=True)[:5]
        return {
            "training_samples": len(self.training_data),
            "feature_count": len(self.feature_weights),
            "model_version": self.model_version,
            "cache_size": len(self.prediction_cache),
            "top_features": [[name, weight] for name, weight in top],
        }
