import pytest

from config import RiskSettings, ScalpSettings
from position_sizing import calculate_scalp_size

SCALP = ScalpSettings()
RISK = RiskSettings()


def test_threshold_score_commits_half_allowance():
    assert calculate_scalp_size(10_000, 0.3, 1.0, SCALP, RISK) == pytest.approx(750.0)


def test_double_threshold_commits_full_allowance():
    assert calculate_scalp_size(10_000, 0.6, 1.0, SCALP, RISK) == pytest.approx(1500.0)
    assert calculate_scalp_size(10_000, 0.9, 1.0, SCALP, RISK) == pytest.approx(1500.0)


def test_multiplier_never_exceeds_cap():
    assert calculate_scalp_size(10_000, 0.6, 1.5, SCALP, RISK) == pytest.approx(1500.0)
    assert calculate_scalp_size(10_000, 0.3, 0.5, SCALP, RISK) == pytest.approx(375.0)


def test_below_minimum_notional_returns_zero():
    assert calculate_scalp_size(100, 0.3, 1.0, SCALP, RISK) == 0.0
    assert calculate_scalp_size(0, 0.6, 1.0, SCALP, RISK) == 0.0
    assert calculate_scalp_size(10_000, -0.5, 1.0, SCALP, RISK) == 0.0
