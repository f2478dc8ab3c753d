"""
Domain objects exchanged between the broker and the simulation.
Timeslots are identified by their integer serial number throughout.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from config import (
    TIMESLOT_DURATION, TIMESLOTS_OPEN, DEACTIVATE_TIMESLOTS_AHEAD,
    BOOTSTRAP_TIMESLOT_COUNT, BOOTSTRAP_DISCARDED_TIMESLOTS,
)


class PowerType(Enum):
    CONSUMPTION = "CONSUMPTION"
    PRODUCTION = "PRODUCTION"


class TxType(Enum):
    """Tariff transaction kinds. The broker acts on four of them."""
    PUBLISH = "PUBLISH"
    PRODUCE = "PRODUCE"
    CONSUME = "CONSUME"
    PERIODIC = "PERIODIC"
    SIGNUP = "SIGNUP"
    WITHDRAW = "WITHDRAW"
    REVOKE = "REVOKE"
    REFUND = "REFUND"


# ============================================================
# Tariffs and customers
# ============================================================

@dataclass(frozen=True)
class CustomerInfo:
    """A customer class: a name and the largest population it can field."""
    name: str
    population: int
    power_type: PowerType = PowerType.CONSUMPTION


@dataclass(frozen=True)
class Rate:
    value: float


@dataclass(eq=False)
class TariffSpecification:
    """Tariff offered by a broker. Compared and hashed by identity."""
    broker: str
    power_type: PowerType
    rates: list[Rate] = field(default_factory=list)

    def add_rate(self, rate: Rate) -> TariffSpecification:
        self.rates.append(rate)
        return self


# ============================================================
# Messages
# ============================================================

@dataclass
class TariffTransaction:
    """Subscription or usage activity on one tariff for one customer class.
    kwh is negative for consumption and positive for production."""
    tx_type: TxType
    tariff_spec: TariffSpecification
    customer_info: CustomerInfo
    customer_count: int
    kwh: float = 0.0
    posted_time: Optional[datetime] = None


@dataclass
class Order:
    """Wholesale order. Positive mwh buys, negative sells."""
    broker: str
    timeslot: int
    mwh: float
    limit_price: float


@dataclass
class MarketTransaction:
    """A (partial) clearing of one of our orders."""
    timeslot: int
    mwh: float
    price: float


@dataclass
class MarketPosition:
    """Net energy already committed for a timeslot."""
    timeslot: int
    overall_balance: float = 0.0


@dataclass
class WeatherReport:
    timeslot: int
    temperature: float
    wind_speed: float
    wind_direction: float
    cloud_cover: float


@dataclass
class CashPosition:
    """Last message of each timeslot from accounting."""
    balance: float = 0.0


@dataclass
class CustomerBootstrapData:
    customer_name: str
    power_type: PowerType
    net_usage: list[float] = field(default_factory=list)


@dataclass
class MarketBootstrapData:
    mwh: list[float] = field(default_factory=list)
    market_price: list[float] = field(default_factory=list)


# ============================================================
# Game setup
# ============================================================

@dataclass
class Competition:
    """Game-wide timing parameters."""
    name: str = "defaultCompetition"
    timeslot_duration: timedelta = TIMESLOT_DURATION
    timeslots_open: int = TIMESLOTS_OPEN
    deactivate_timeslots_ahead: int = DEACTIVATE_TIMESLOTS_AHEAD
    bootstrap_timeslot_count: int = BOOTSTRAP_TIMESLOT_COUNT
    bootstrap_discarded_timeslots: int = BOOTSTRAP_DISCARDED_TIMESLOTS


@dataclass
class PluginConfig:
    """Named string options for one server component."""
    role_name: str
    name: str = ""
    configuration: dict[str, str] = field(default_factory=dict)

    def add_configuration(self, key: str, value: object) -> PluginConfig:
        self.configuration[key] = str(value)
        return self

    def get_double_value(self, key: str, default: float) -> float:
        raw = self.configuration.get(key)
        if raw is None:
            return default
        try:
            return float(raw)
        except ValueError:
            return default
