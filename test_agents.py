#!/usr/bin/env python3
"""Tests for the filter agents and their shared bookkeeping."""

import pytest

from adaptive_crawler.agents import (
    ContentQualityAgent,
    EmailFilterAgent,
    TextFilterAgent,
    URLFilterAgent,
)
from adaptive_crawler.models import StrategyType


MALFORMED = [None, 42, 3.5, b"bytes", ["list"], {"k": "v"}, "", "   ", "http://[::1"]


def all_agents():
    return [
        TextFilterAgent("text", patterns=[r"\bfox\b", "("]),
        URLFilterAgent("url", allowed_domains=["example.com"]),
        ContentQualityAgent("quality"),
        EmailFilterAgent("email"),
    ]


class TestApplyFilterContract:
    """apply_filter never raises and always yields a confidence in [0, 1]."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("candidate", MALFORMED)
    async def test_never_raises_on_malformed_input(self, candidate):
        for agent in all_agents():
            verdict = await agent.apply_filter(candidate, {})
            assert 0.0 <= verdict.confidence <= 1.0

    @pytest.mark.asyncio
    async def test_confidence_clamped_under_aggressive_strategy(self):
        agent = TextFilterAgent("text", patterns=[r"a", r"b", r"c", r"d"])
        agent.strategy = StrategyType.AGGRESSIVE
        verdict = await agent.apply_filter("abcd text", {})
        assert verdict.confidence == 1.0
        assert verdict.passed

    @pytest.mark.asyncio
    async def test_exactly_one_outcome_counter_per_call(self):
        agent = EmailFilterAgent("email")
        await agent.apply_filter("info@example.com", {})
        await agent.apply_filter("not an email", {})
        await agent.apply_filter(None, {})

        m = agent.metrics
        assert m.total_processed == 3
        assert m.successful_extractions == 1
        assert m.failed_extractions == 2
        assert len(m.confidence_scores) == 3
        assert m.avg_processing_time >= 0.0

    @pytest.mark.asyncio
    async def test_confidence_history_is_bounded(self):
        agent = ContentQualityAgent("quality")
        for _ in range(150):
            await agent.apply_filter("The quick brown fox jumps.", {})
        assert len(agent.metrics.confidence_scores) == 100
        assert agent.metrics.total_processed == 150


class TestStrategy:

    @pytest.mark.parametrize(
        "rate, expected",
        [
            (0.0, StrategyType.AGGRESSIVE),
            (0.29, StrategyType.AGGRESSIVE),
            (0.3, StrategyType.BALANCED),
            (0.59, StrategyType.BALANCED),
            (0.6, StrategyType.ADAPTIVE),
            (0.8, StrategyType.ADAPTIVE),
            (0.81, StrategyType.STEALTH),
            (1.0, StrategyType.STEALTH),
        ],
    )
    def test_update_strategy_thresholds(self, rate, expected):
        agent = ContentQualityAgent("quality")
        assert agent.update_strategy(rate) == expected
        assert agent.strategy == expected

    def test_strategy_scaling(self):
        agent = TextFilterAgent("text")
        agent.strategy = StrategyType.AGGRESSIVE
        assert agent.scale_for_strategy(0.4) == pytest.approx(0.6)
        agent.strategy = StrategyType.STEALTH
        assert agent.scale_for_strategy(0.5) == pytest.approx(0.4)
        agent.strategy = StrategyType.ADAPTIVE
        assert agent.scale_for_strategy(0.5) == 0.5

    def test_stats_shape(self):
        stats = URLFilterAgent("url", priority=4).get_stats()
        assert stats["name"] == "url"
        assert stats["priority"] == 4
        assert stats["strategy"] == "balanced"
        assert stats["success_rate"] == 0.0
        assert stats["is_active"] is True


class TestContentQualityAgent:

    @pytest.mark.asyncio
    async def test_well_formed_sentence_passes(self):
        agent = ContentQualityAgent("quality")
        verdict = await agent.apply_filter("The quick brown fox jumps.", {})
        assert verdict.passed
        assert verdict.confidence >= 0.8

    @pytest.mark.asyncio
    async def test_repetitive_shouting_fails(self):
        agent = ContentQualityAgent("quality")
        verdict = await agent.apply_filter("ZZZZZZZZ", {})
        assert not verdict.passed

    def test_feedback_moves_weights_within_bounds(self):
        agent = ContentQualityAgent("quality")
        for _ in range(30):
            agent.learn_from_feedback("Nice text here", True, {})
        assert all(w == 1.0 for w in agent.quality_indicators.values())
        for _ in range(30):
            agent.learn_from_feedback("Nice text here", False, {})
        assert all(w == 0.0 for w in agent.quality_indicators.values())


class TestTextFilterAgent:

    @pytest.mark.asyncio
    async def test_length_bounds(self):
        agent = TextFilterAgent("text", min_length=5, max_length=10)
        assert not (await agent.apply_filter("abc", {})).passed
        assert not (await agent.apply_filter("x" * 11, {})).passed

    @pytest.mark.asyncio
    async def test_neutral_confidence_without_patterns(self):
        agent = TextFilterAgent("text", adaptation_threshold=0.5)
        verdict = await agent.apply_filter("some plain words", {})
        assert verdict.confidence == pytest.approx(0.5)
        assert verdict.passed

    @pytest.mark.asyncio
    async def test_invalid_pattern_is_skipped(self):
        agent = TextFilterAgent("text", patterns=["(", r"fox"], adaptation_threshold=0.2)
        verdict = await agent.apply_filter("a fox appears", {})
        assert verdict.passed
        assert verdict.confidence == pytest.approx(0.2)

    @pytest.mark.asyncio
    async def test_negative_feedback_blacklists(self):
        agent = TextFilterAgent("text", adaptation_threshold=0.1)
        agent.learn_from_feedback("Buy Now", False, {})
        verdict = await agent.apply_filter("please buy now today", {})
        assert not verdict.passed
        assert verdict.confidence == 0.0

    def test_positive_feedback_learns_words(self):
        agent = TextFilterAgent("text")
        agent.learn_from_feedback("Great news on AI", True, {})
        assert r"\bgreat\b" in agent.learned_patterns
        assert r"\bnews\b" in agent.learned_patterns
        assert r"\bon\b" not in agent.learned_patterns


class TestURLFilterAgent:

    @pytest.mark.asyncio
    async def test_scheme_and_domain(self):
        agent = URLFilterAgent("url", allowed_domains=["example.com"], allowed_schemes=["https"])
        ok = await agent.apply_filter("https://www.example.com/page", {})
        assert ok.passed
        assert ok.confidence == pytest.approx(0.7)
        assert not (await agent.apply_filter("http://www.example.com", {})).passed
        assert not (await agent.apply_filter("https://other.org", {})).passed

    @pytest.mark.asyncio
    async def test_feedback_adjusts_domain_score(self):
        agent = URLFilterAgent("url")
        for _ in range(20):
            agent.learn_from_feedback("https://good.org/a", True, {})
        assert agent.domain_scores["good.org"] == pytest.approx(1.0)
        verdict = await agent.apply_filter("https://good.org/b", {})
        assert verdict.confidence == pytest.approx(1.0)


class TestEmailFilterAgent:

    @pytest.mark.asyncio
    async def test_trusted_and_blocked_domains(self):
        agent = EmailFilterAgent("email")
        agent.learn_from_feedback("a@trusted.com", True, {})
        agent.learn_from_feedback("b@spam.biz", False, {})

        trusted = await agent.apply_filter("c@trusted.com", {})
        assert trusted.passed
        assert trusted.confidence == pytest.approx(1.0)

        blocked = await agent.apply_filter("d@spam.biz", {})
        assert not blocked.passed
