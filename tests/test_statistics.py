"""Tests for recall.statistics.StatisticsComputer."""

import pytest

from recall.config import DEFAULT_STANCE_WEIGHTS
from recall.statistics import TEMPLATE_RICHNESS_MAX_TEMPLATES, StatisticsComputer
from recall.store import ProfileStore


@pytest.fixture
def stats():
    return StatisticsComputer(lambda: DEFAULT_STANCE_WEIGHTS)


@pytest.fixture
def profile(clock):
    return ProfileStore(clock=clock).ensure("A")


class TestStanceBalance:
    def test_empty_histogram_is_zero(self, stats, profile):
        balance = stats.stance_balance(profile)
        assert balance.net_tone == 0
        assert balance.defensive_fraction == 0
        assert balance.supportive_fraction == 0

    def test_all_supportive(self, stats, profile):
        profile.stance_counts["supportive"] = 3.0
        balance = stats.stance_balance(profile)
        assert balance.net_tone == pytest.approx(1.0)
        assert balance.supportive_fraction == pytest.approx(1.0)

    def test_all_defensive(self, stats, profile):
        profile.stance_counts["defensive"] = 5.0
        assert stats.stance_balance(profile).net_tone == pytest.approx(-1.0)

    def test_mixed(self, stats, profile):
        profile.stance_counts.update({"defensive": 1.0, "neutral": 2.0, "supportive": 1.0})
        balance = stats.stance_balance(profile)
        assert balance.net_tone == pytest.approx(0.0)
        assert balance.defensive_fraction == pytest.approx(0.25)
        assert balance.supportive_fraction == pytest.approx(0.25)

    def test_unknown_labels_do_not_count(self, stats, profile):
        profile.stance_counts["curious"] = 10.0
        profile.stance_counts["supportive"] = 1.0
        assert stats.stance_balance(profile).net_tone == pytest.approx(1.0)

    def test_custom_weights_are_clamped(self, profile):
        stats = StatisticsComputer(lambda: {"defensive": -1.0, "neutral": 0.0, "supportive": 3.0})
        profile.stance_counts["supportive"] = 2.0
        assert stats.stance_balance(profile).net_tone == 1.0

    def test_weights_read_live(self, profile):
        weights = {"defensive": -1.0, "neutral": 0.0, "supportive": 1.0}
        stats = StatisticsComputer(lambda: weights)
        profile.stance_counts["neutral"] = 1.0
        assert stats.stance_balance(profile).net_tone == 0
        weights["neutral"] = 0.5
        assert stats.stance_balance(profile).net_tone == pytest.approx(0.5)


class TestRelationalLevels:
    def test_defaults_to_half(self, stats, profile):
        levels = stats.relational_levels(profile)
        assert (levels.trust, levels.comfort, levels.alignment, levels.energy) == (0.5, 0.5, 0.5, 0.5)

    def test_average_of_samples(self, stats, profile):
        profile.relational.add("energy", 0.9)
        profile.relational.add("energy", 0.7)
        levels = stats.relational_levels(profile)
        assert levels.energy == pytest.approx(0.8)
        assert levels.trust == 0.5

    def test_levels_clamped_to_unit_interval(self, stats, profile):
        profile.relational.add("trust", 4.0)
        profile.relational.add("comfort", -2.0)
        levels = stats.relational_levels(profile)
        assert levels.trust == 1.0
        assert levels.comfort == 0.0


class TestLexicalSignals:
    def test_empty_profile(self, stats, profile):
        signals = stats.lexical_signals(profile)
        assert signals.novelty == 0
        assert signals.template_richness == 0
        assert signals.richness_index == 0

    def test_novelty_formula(self, stats, profile):
        profile.lexicon_counts["nouns"] = {"cat": 1.0, "dog": 1.0}
        profile.lexicon_counts["verbs"] = {"run": 2.0}
        profile.templates["hello"] = 1.0
        signals = stats.lexical_signals(profile)
        # richness = 3 tokens + 1 template, total weight = 4
        assert signals.unique_tokens == 3
        assert signals.template_count == 1
        assert signals.richness_index == 4
        assert signals.total_weight == pytest.approx(4.0)
        assert signals.novelty == pytest.approx(4 / 8)
        assert signals.template_richness == pytest.approx(1 / TEMPLATE_RICHNESS_MAX_TEMPLATES)

    def test_novelty_zero_without_weight(self, stats, profile):
        profile.lexicon_counts["nouns"] = {"cat": 0.0}
        profile.templates["t"] = 1.0
        assert stats.lexical_signals(profile).novelty == 0

    def test_novelty_bounded(self, stats, profile):
        profile.lexicon_counts["nouns"] = {f"w{i}": 0.01 for i in range(50)}
        signals = stats.lexical_signals(profile)
        assert 0 <= signals.novelty <= 1

    def test_template_richness_saturates(self, stats, profile):
        for i in range(TEMPLATE_RICHNESS_MAX_TEMPLATES * 2):
            profile.templates[f"t{i}"] = 1.0
        assert stats.lexical_signals(profile).template_richness == 1.0
