"""
Default Broker - Central Configuration
Constants for the standing-tariff broker, plus the plugin-style options
that can override them at init.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

# ============================================================
# USAGE PROFILE
# ============================================================
USAGE_RECORD_LENGTH = 7 * 24     # One week of hourly slots
FIRST_DAY_TIMESLOTS = 24         # Before this, fall back to current usage
SMOOTHING_ALPHA = 0.3            # Weight of the newest observation
KWH_PER_MWH = 1000.0

# ============================================================
# STANDING TARIFFS
# ============================================================
# Tariff rates take the customer viewpoint, market prices the broker's.
DEFAULT_CONSUMPTION_RATE = -1.0  # Customer pays
DEFAULT_PRODUCTION_RATE = 0.01   # Broker pays
DEFAULT_INITIAL_BID_KWH = 500.0  # Accepted but not read by the planner

# ============================================================
# LIMIT PRICES ($/MWh)
# ============================================================
# "Max" is the sure-to-trade end, "min" the least favorable to the counterparty
DEFAULT_BUY_LIMIT_PRICE_MAX = -1.0
DEFAULT_BUY_LIMIT_PRICE_MIN = -100.0
DEFAULT_SELL_LIMIT_PRICE_MAX = 100.0
DEFAULT_SELL_LIMIT_PRICE_MIN = 0.2

# ============================================================
# COMPETITION TIMING
# ============================================================
TIMESLOT_DURATION = timedelta(minutes=60)
TIMESLOTS_OPEN = 24              # Tradeable window length
DEACTIVATE_TIMESLOTS_AHEAD = 1   # Slots closed to trading before delivery
BOOTSTRAP_TIMESLOT_COUNT = 336   # Two weeks of pre-game data
BOOTSTRAP_DISCARDED_TIMESLOTS = 24

# ============================================================
# RUNTIME
# ============================================================
BROKER_USERNAME = "default broker"
DEFAULT_SEED = 42
BOOTSTRAP_DATA_FILE = "bootstrapData.xml"
LOG_FILE = "default_broker.log"


# Option names as they appear in plugin configurations
OPTION_NAMES = {
    "consumption_rate": "consumptionRate",
    "production_rate": "productionRate",
    "initial_bid_kwh": "initialBidKWh",
    "buy_limit_price_min": "buyLimitPriceMin",
    "buy_limit_price_max": "buyLimitPriceMax",
    "sell_limit_price_min": "sellLimitPriceMin",
    "sell_limit_price_max": "sellLimitPriceMax",
}


@dataclass(frozen=True)
class BrokerConfig:
    """Immutable broker parameters, read once at init."""
    consumption_rate: float = DEFAULT_CONSUMPTION_RATE
    production_rate: float = DEFAULT_PRODUCTION_RATE
    initial_bid_kwh: float = DEFAULT_INITIAL_BID_KWH
    buy_limit_price_min: float = DEFAULT_BUY_LIMIT_PRICE_MIN
    buy_limit_price_max: float = DEFAULT_BUY_LIMIT_PRICE_MAX
    sell_limit_price_min: float = DEFAULT_SELL_LIMIT_PRICE_MIN
    sell_limit_price_max: float = DEFAULT_SELL_LIMIT_PRICE_MAX

    @classmethod
    def from_mapping(cls, values: Optional[Mapping[str, object]] = None) -> BrokerConfig:
        """Build a config from option-name -> value pairs.

        Missing options keep their defaults. Values that cannot be parsed
        as floats are logged and replaced by the default.
        """
        values = values or {}
        defaults = cls()
        kwargs = {}
        for attr, option in OPTION_NAMES.items():
            default = getattr(defaults, attr)
            kwargs[attr] = _as_float(values.get(option), default, option)
        return cls(**kwargs)


def _as_float(raw: object, default: float, name: str) -> float:
    if raw is None:
        return default
    try:
        return float(raw)
    except (TypeError, ValueError):
        logger.warning(f"Bad value {raw!r} for {name}, using {default}")
        return default
