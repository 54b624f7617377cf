import itertools

import pytest

from config import ModifierSettings, ScalpSettings
from scalp_types import MarketRegime
from signal_modifiers import ModifierInput, calculate_scalp_modifiers

SCALP = ScalpSettings()
MODIFIERS = ModifierSettings()


def test_no_enrichment_returns_baseline():
    result = calculate_scalp_modifiers(ModifierInput(), SCALP, MODIFIERS)
    assert result.position_size_multiplier == 1.0
    assert result.take_profit_pct == pytest.approx(0.003)
    assert result.stop_loss_pct == pytest.approx(0.002)


def test_extreme_fear_boosts_size_and_take_profit():
    result = calculate_scalp_modifiers(ModifierInput(fear_greed=10), SCALP, MODIFIERS)
    assert result.position_size_multiplier == pytest.approx(1.2)
    assert result.take_profit_pct == pytest.approx(0.004)
    assert result.stop_loss_pct == pytest.approx(0.002)


def test_extreme_greed_reduces_size_and_tightens_stop():
    result = calculate_scalp_modifiers(ModifierInput(fear_greed=90), SCALP, MODIFIERS)
    assert result.position_size_multiplier == pytest.approx(0.85)
    assert result.stop_loss_pct == pytest.approx(0.0015)


def test_funding_and_sentiment_adjust_size():
    bullish = calculate_scalp_modifiers(
        ModifierInput(funding_rate=-0.0005, sentiment=0.6), SCALP, MODIFIERS
    )
    assert bullish.position_size_multiplier == pytest.approx(1.2)

    bearish = calculate_scalp_modifiers(
        ModifierInput(funding_rate=0.0005, sentiment=-0.6), SCALP, MODIFIERS
    )
    assert bearish.position_size_multiplier == pytest.approx(0.75)


def test_regime_scaled_by_confidence():
    result = calculate_scalp_modifiers(
        ModifierInput(regime=MarketRegime.TRENDING_UP, regime_confidence=0.5), SCALP, MODIFIERS
    )
    assert result.position_size_multiplier == pytest.approx(1.05)
    assert result.take_profit_pct == pytest.approx(0.0035)


def test_low_confidence_regime_is_ignored():
    result = calculate_scalp_modifiers(
        ModifierInput(regime=MarketRegime.TRENDING_DOWN, regime_confidence=0.3), SCALP, MODIFIERS
    )
    assert result.position_size_multiplier == 1.0
    assert result.stop_loss_pct == pytest.approx(0.002)


def test_range_bound_has_no_effect():
    result = calculate_scalp_modifiers(
        ModifierInput(regime=MarketRegime.RANGE_BOUND, regime_confidence=0.9), SCALP, MODIFIERS
    )
    assert result.position_size_multiplier == 1.0


def test_outputs_always_within_clamps():
    clamps = MODIFIERS.clamps
    fear_values = [None, 0, 50, 100]
    funding_values = [None, -1.0, 0.0, 1.0]
    sentiment_values = [None, -1.0, 0.0, 1.0]
    regimes = [None] + list(MarketRegime)
    confidences = [None, 0.0, 1.0]
    scalp_variants = [
        SCALP,
        ScalpSettings(take_profit_pct=0.05, stop_loss_pct=0.05),
        ScalpSettings(take_profit_pct=0.0, stop_loss_pct=0.0),
    ]
    for fg, fr, st, rg, conf, scalp in itertools.product(
        fear_values, funding_values, sentiment_values, regimes, confidences, scalp_variants
    ):
        result = calculate_scalp_modifiers(
            ModifierInput(
                fear_greed=fg, funding_rate=fr, sentiment=st, regime=rg, regime_confidence=conf
            ),
            scalp,
            MODIFIERS,
        )
        assert clamps.size_min <= result.position_size_multiplier <= clamps.size_max
        assert clamps.take_profit_min <= result.take_profit_pct <= clamps.take_profit_max
        assert clamps.stop_loss_min <= result.stop_loss_pct <= clamps.stop_loss_max
