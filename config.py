"""Central configuration loader for environment variables.

Strategy constants live in frozen dataclasses so that every component
receives an explicit, immutable settings object instead of reading the
environment on its own.  :func:`load_settings` is the single entry point used
at startup; invalid combinations raise :class:`ConfigError` which the agent
treats as fatal.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Tuple

from dotenv import load_dotenv

# Load environment variables once when this module is imported.
load_dotenv()

import os

from log_utils import setup_logger

logger = setup_logger(__name__)

__all__ = [
    "ConfigError",
    "DEFAULT_SYMBOLS",
    "ScalpWeights",
    "ScalpSettings",
    "RiskSettings",
    "FearGreedModifiers",
    "FundingModifiers",
    "SentimentModifiers",
    "RegimeModifiers",
    "ModifierClamps",
    "ModifierSettings",
    "RuntimeSettings",
    "AgentSettings",
    "load_scalp_settings",
    "load_risk_settings",
    "load_runtime_settings",
    "load_settings",
    "indicator_weights",
]


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded into a usable state."""


DEFAULT_SYMBOLS: Tuple[str, ...] = ("BTC/USD", "ETH/USD", "SOL/USD", "DOGE/USD", "LINK/USD")

_WEIGHT_TOLERANCE = 1e-6

ALPACA_PAPER_API_URL = "https://paper-api.alpaca.markets"
ALPACA_LIVE_API_URL = "https://api.alpaca.markets"
ALPACA_DATA_API_URL = "https://data.alpaca.markets"


# ---------------------------------------------------------------------------
# Environment helpers
# ---------------------------------------------------------------------------


def _clean(value: str | None) -> str:
    """Return ``value`` without inline comments or surrounding whitespace."""

    if not value:
        return ""
    return value.split("#", 1)[0].strip()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    logger.warning("config: unrecognised boolean %s=%r, using default %s", name, raw, default)
    return default


def _env_float(name: str, default: float) -> float:
    raw = _clean(os.getenv(name))
    if not raw:
        return float(default)
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number (got {raw!r})") from exc
    if not math.isfinite(value):
        raise ConfigError(f"{name} must be finite (got {raw!r})")
    return value


def _env_int(name: str, default: int) -> int:
    raw = _clean(os.getenv(name))
    if not raw:
        return int(default)
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer (got {raw!r})") from exc


def _env_symbols(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = _clean(os.getenv(name))
    if not raw:
        return default
    symbols = []
    for token in raw.split(","):
        symbol = token.strip().upper()
        if symbol and symbol not in symbols:
            symbols.append(symbol)
    return tuple(symbols) or default


# ---------------------------------------------------------------------------
# Strategy settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScalpWeights:
    """Indicator weights; the six values form a partition of 1.0."""

    ema_cross: float = 0.25
    rsi: float = 0.15
    roc: float = 0.15
    volume_spike: float = 0.15
    vwap_deviation: float = 0.15
    spread: float = 0.15

    def total(self) -> float:
        return (
            self.ema_cross
            + self.rsi
            + self.roc
            + self.volume_spike
            + self.vwap_deviation
            + self.spread
        )

    def validate(self) -> None:
        total = self.total()
        if abs(total - 1.0) > _WEIGHT_TOLERANCE:
            raise ConfigError(f"Scalp indicator weights must sum to 1.0 (got {total:.6f})")
        for name, value in self.__dict__.items():
            if value < 0:
                raise ConfigError(f"Scalp weight {name} must be non-negative (got {value})")


@dataclass(frozen=True)
class ScalpSettings:
    """Parameters of the one-minute scalp strategy."""

    symbols: Tuple[str, ...] = DEFAULT_SYMBOLS
    loop_interval_secs: float = 30.0
    bars_timeframe: str = "1Min"
    bars_limit: int = 100
    entry_threshold: float = 0.3
    exit_reversal_threshold: float = -0.2
    take_profit_pct: float = 0.003
    stop_loss_pct: float = 0.002
    max_hold_ms: int = 5 * 60 * 1000
    ema_fast: int = 8
    ema_slow: int = 21
    rsi_period: int = 7
    roc_period: int = 5
    volume_avg_period: int = 20
    volume_spike_multiplier: float = 2.0
    weights: ScalpWeights = field(default_factory=ScalpWeights)
    # Bollinger/RSI classification inputs feed the regime prompt.
    bb_period: int = 20
    bb_multiplier: float = 1.3
    rsi_classify_period: int = 14

    @property
    def min_bars(self) -> int:
        """Minimum history needed before every indicator has an opinion."""

        return max(self.ema_slow + 1, self.volume_avg_period + 1, self.bb_period)


@dataclass(frozen=True)
class RiskSettings:
    max_open_scalps: int = 3
    max_per_symbol: int = 1
    max_equity_per_scalp: float = 0.15
    min_order_notional: float = 10.0
    cooldown_ms: int = 15 * 1000
    daily_loss_limit_pct: float = 0.08
    daily_loss_pause_ms: int = 4 * 60 * 60 * 1000
    daily_max_scalps: int = 200
    trailing_stop_pct: float = 0.05


@dataclass(frozen=True)
class FearGreedModifiers:
    extreme_fear_threshold: float = 25
    extreme_greed_threshold: float = 75
    size_boost_fear: float = 0.2
    size_reduce_greed: float = -0.15
    tp_boost_fear: float = 0.001
    sl_tighten_greed: float = -0.0005


@dataclass(frozen=True)
class FundingModifiers:
    negative_threshold: float = -0.0001
    positive_threshold: float = 0.0001
    size_bullish_adjust: float = 0.1
    size_bearish_adjust: float = -0.1


@dataclass(frozen=True)
class SentimentModifiers:
    negative_threshold: float = -0.3
    positive_threshold: float = 0.3
    bearish_size_adjust: float = -0.15
    bullish_size_adjust: float = 0.1


@dataclass(frozen=True)
class RegimeModifiers:
    min_confidence: float = 0.3
    trending_up_size_adjust: float = 0.1
    trending_up_tp_adjust: float = 0.001
    trending_down_size_adjust: float = -0.2
    trending_down_sl_adjust: float = -0.0005
    volatile_expansion_sl_adjust: float = -0.0005
    volatile_compression_size_adjust: float = -0.1


@dataclass(frozen=True)
class ModifierClamps:
    size_min: float = 0.3
    size_max: float = 1.5
    take_profit_min: float = 0.001
    take_profit_max: float = 0.008
    stop_loss_min: float = 0.001
    stop_loss_max: float = 0.005


@dataclass(frozen=True)
class ModifierSettings:
    """Enrichment-driven adjustments applied on top of the scalp baseline."""

    fear_greed: FearGreedModifiers = field(default_factory=FearGreedModifiers)
    funding: FundingModifiers = field(default_factory=FundingModifiers)
    sentiment: SentimentModifiers = field(default_factory=SentimentModifiers)
    regime: RegimeModifiers = field(default_factory=RegimeModifiers)
    clamps: ModifierClamps = field(default_factory=ModifierClamps)


@dataclass(frozen=True)
class RuntimeSettings:
    """Runtime configuration knobs for the live scalp agent."""

    bot_mode: str = "paper"
    alpaca_key_id: str = ""
    alpaca_secret_key: str = ""
    trading_api_url: str = ALPACA_PAPER_API_URL
    data_api_url: str = ALPACA_DATA_API_URL
    data_dir: str = "./data"
    http_timeout: float = 10.0
    enrichment_timeout: float = 20.0
    llm_enabled: bool = True
    llm_journal_enabled: bool = True

    @property
    def state_file(self) -> str:
        return os.path.join(self.data_dir, "bot-state.json")


@dataclass(frozen=True)
class AgentSettings:
    scalp: ScalpSettings = field(default_factory=ScalpSettings)
    risk: RiskSettings = field(default_factory=RiskSettings)
    modifiers: ModifierSettings = field(default_factory=ModifierSettings)
    runtime: RuntimeSettings = field(default_factory=RuntimeSettings)


def load_scalp_settings() -> ScalpSettings:
    """Load scalp strategy settings, validating the indicator weights."""

    defaults = ScalpWeights()
    weights = ScalpWeights(
        ema_cross=_env_float("SCALP_WEIGHT_EMA_CROSS", defaults.ema_cross),
        rsi=_env_float("SCALP_WEIGHT_RSI", defaults.rsi),
        roc=_env_float("SCALP_WEIGHT_ROC", defaults.roc),
        volume_spike=_env_float("SCALP_WEIGHT_VOLUME_SPIKE", defaults.volume_spike),
        vwap_deviation=_env_float("SCALP_WEIGHT_VWAP_DEVIATION", defaults.vwap_deviation),
        spread=_env_float("SCALP_WEIGHT_SPREAD", defaults.spread),
    )
    weights.validate()
    return ScalpSettings(
        symbols=_env_symbols("SCALP_SYMBOLS", DEFAULT_SYMBOLS),
        loop_interval_secs=max(1.0, _env_float("SCALP_LOOP_INTERVAL_SECS", 30.0)),
        bars_limit=max(30, _env_int("SCALP_BARS_LIMIT", 100)),
        entry_threshold=_env_float("SCALP_ENTRY_THRESHOLD", 0.3),
        exit_reversal_threshold=_env_float("SCALP_EXIT_REVERSAL_THRESHOLD", -0.2),
        take_profit_pct=_env_float("SCALP_TAKE_PROFIT_PCT", 0.003),
        stop_loss_pct=_env_float("SCALP_STOP_LOSS_PCT", 0.002),
        max_hold_ms=max(1000, _env_int("SCALP_MAX_HOLD_SECS", 300) * 1000),
        weights=weights,
    )


def load_risk_settings() -> RiskSettings:
    return RiskSettings(
        max_open_scalps=max(1, _env_int("RISK_MAX_OPEN_SCALPS", 3)),
        max_per_symbol=max(1, _env_int("RISK_MAX_PER_SYMBOL", 1)),
        max_equity_per_scalp=_env_float("RISK_MAX_EQUITY_PER_SCALP", 0.15),
        min_order_notional=_env_float("RISK_MIN_ORDER_NOTIONAL", 10.0),
        cooldown_ms=max(0, _env_int("RISK_COOLDOWN_SECS", 15) * 1000),
        daily_loss_limit_pct=_env_float("RISK_DAILY_LOSS_LIMIT_PCT", 0.08),
        daily_loss_pause_ms=max(0, _env_int("RISK_DAILY_LOSS_PAUSE_SECS", 4 * 60 * 60) * 1000),
        daily_max_scalps=max(1, _env_int("RISK_DAILY_MAX_SCALPS", 200)),
    )


def load_runtime_settings() -> RuntimeSettings:
    """Load runtime settings for the live agent from environment variables."""

    bot_mode = _clean(os.getenv("BOT_MODE", "paper")).lower() or "paper"
    if bot_mode not in {"paper", "live"}:
        raise ConfigError(f"BOT_MODE must be 'paper' or 'live' (got {bot_mode!r})")
    default_trading_url = ALPACA_LIVE_API_URL if bot_mode == "live" else ALPACA_PAPER_API_URL
    key_id = _clean(os.getenv("ALPACA_KEY_ID"))
    secret = _clean(os.getenv("ALPACA_SECRET_KEY"))
    if bot_mode == "live" and not (key_id and secret):
        raise ConfigError("Live mode requires ALPACA_KEY_ID and ALPACA_SECRET_KEY")
    return RuntimeSettings(
        bot_mode=bot_mode,
        alpaca_key_id=key_id,
        alpaca_secret_key=secret,
        trading_api_url=(_clean(os.getenv("ALPACA_TRADING_URL")) or default_trading_url).rstrip("/"),
        data_api_url=(_clean(os.getenv("ALPACA_DATA_URL")) or ALPACA_DATA_API_URL).rstrip("/"),
        data_dir=_clean(os.getenv("DATA_DIR")) or "./data",
        http_timeout=max(1.0, _env_float("HTTP_TIMEOUT", 10.0)),
        enrichment_timeout=max(1.0, _env_float("ENRICHMENT_TIMEOUT", 20.0)),
        llm_enabled=_env_bool("LLM_ENABLED", True),
        llm_journal_enabled=_env_bool("LLM_JOURNAL_ENABLED", True),
    )


def load_settings() -> AgentSettings:
    """Return the full settings bundle used by the agent."""

    return AgentSettings(
        scalp=load_scalp_settings(),
        risk=load_risk_settings(),
        modifiers=ModifierSettings(),
        runtime=load_runtime_settings(),
    )


def indicator_weights(weights: ScalpWeights) -> Dict[str, float]:
    """Return weights keyed by the indicator names used in signal output."""

    return {
        "ema-cross": weights.ema_cross,
        "rsi": weights.rsi,
        "roc": weights.roc,
        "volume-spike": weights.volume_spike,
        "vwap-deviation": weights.vwap_deviation,
        "spread": weights.spread,
    }
