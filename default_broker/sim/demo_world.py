"""
Synthetic world for exercising the default broker without a full server.

Each timeslot the world delivers, in order: market transactions for the
orders placed last timeslot, customer usage, a weather report, and finally
the CashPosition that makes the broker trade. Clearing is a toy rule: an
order fills when its limit beats a random market price, sometimes only
half of it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from api.host import InMemoryBrokerProxy
from broker.default_broker import DefaultBroker
from state.domain import (
    CashPosition, CustomerInfo, MarketTransaction, PowerType,
    TariffTransaction, TxType, WeatherReport,
)
from state.timeslots import SimulationClock

logger = logging.getLogger(__name__)


DEMO_CUSTOMERS = [
    CustomerInfo("Village", 2000, PowerType.CONSUMPTION),
    CustomerInfo("OfficeComplex", 50, PowerType.CONSUMPTION),
    CustomerInfo("SolarFarm", 20, PowerType.PRODUCTION),
]

# Market price bounds in $/MWh, broker-neutral
MARKET_PRICE_LOW = 15.0
MARKET_PRICE_HIGH = 60.0
PARTIAL_FILL_PROBABILITY = 0.3


def consumption_per_capita(hour: int, weekday: int) -> float:
    """Household-style load curve in kWh per individual per hour."""
    base = 0.6 + 0.4 * np.sin(2 * np.pi * (hour - 9) / 24)
    if weekday >= 5:
        base *= 1.15
    return float(base)


def production_per_capita(hour: int) -> float:
    """Solar output, zero at night."""
    if hour < 6 or hour > 18:
        return 0.0
    return float(25.0 * np.sin(np.pi * (hour - 6) / 12))


@dataclass
class WorldStats:
    timeslots: int = 0
    orders: int = 0
    fills: int = 0
    partial_fills: int = 0
    cleared_mwh: float = 0.0
    weather: list[WeatherReport] = field(default_factory=list)


class DemoWorld:
    """Drives one DefaultBroker hour by hour."""

    def __init__(self, broker: DefaultBroker, clock: SimulationClock,
                 proxy: InMemoryBrokerProxy,
                 customers: Optional[list[CustomerInfo]] = None,
                 seed: int = 0):
        self.broker = broker
        self.clock = clock
        self.proxy = proxy
        self.customers = customers if customers is not None else list(DEMO_CUSTOMERS)
        self.rng = np.random.default_rng(seed)
        self.stats = WorldStats()

    def signup_all(self):
        """Every customer class joins the default tariff for its power type."""
        for customer in self.customers:
            spec = self.broker.book.tariff_for(customer.power_type)
            self.broker.receive(TariffTransaction(
                TxType.SIGNUP, spec, customer, customer.population,
                posted_time=self.clock.current_instant()))

    def run(self, timeslots: int) -> WorldStats:
        for _ in range(timeslots):
            self.step()
        return self.stats

    def step(self):
        """Deliver one timeslot's messages, then move the clock on."""
        current = self.clock.current_timeslot()
        pending = self.proxy.orders
        self.proxy.clear()

        for tx in self._clear(pending):
            self.broker.receive(tx)
        for ttx in self._usage(current):
            self.broker.receive(ttx)
        report = self._weather(current)
        self.stats.weather.append(report)
        self.broker.receive(report)

        self.broker.receive(CashPosition())
        self.stats.orders += len(self.proxy.orders)
        self.stats.timeslots += 1
        self.clock.advance()

    # ------------------------------------------------------------------
    # World pieces
    # ------------------------------------------------------------------

    def _clear(self, orders) -> list[MarketTransaction]:
        txs = []
        for order in orders:
            market_price = self.rng.uniform(MARKET_PRICE_LOW, MARKET_PRICE_HIGH)
            if order.mwh > 0:
                fills = -order.limit_price >= market_price
                price = -market_price
            else:
                fills = order.limit_price <= market_price
                price = market_price
            if not fills:
                continue
            mwh = order.mwh
            if self.rng.random() < PARTIAL_FILL_PROBABILITY:
                mwh = order.mwh / 2.0
                self.stats.partial_fills += 1
            self.stats.fills += 1
            self.stats.cleared_mwh += abs(mwh)
            self.proxy.add_to_position(order.timeslot, mwh)
            txs.append(MarketTransaction(order.timeslot, mwh, price))
        return txs

    def _usage(self, current: int) -> list[TariffTransaction]:
        when = self.clock.current_instant()
        hour = when.hour
        weekday = when.weekday()
        txs = []
        for customer in self.customers:
            spec = self.broker.book.tariff_for(customer.power_type)
            noise = 1.0 + 0.05 * self.rng.standard_normal()
            if customer.power_type == PowerType.CONSUMPTION:
                kwh = -consumption_per_capita(hour, weekday) * customer.population * noise
                tx_type = TxType.CONSUME
            else:
                kwh = production_per_capita(hour) * customer.population * noise
                if kwh == 0.0:
                    continue
                tx_type = TxType.PRODUCE
            txs.append(TariffTransaction(tx_type, spec, customer, customer.population,
                                         kwh=kwh, posted_time=when))
        return txs

    def _weather(self, current: int) -> WeatherReport:
        hour = self.clock.current_instant().hour
        return WeatherReport(
            timeslot=current,
            temperature=round(18.0 + 7.0 * np.sin(2 * np.pi * (hour - 9) / 24)
                              + self.rng.normal(0, 1.0), 2),
            wind_speed=round(abs(self.rng.normal(5.0, 2.0)), 2),
            wind_direction=round(self.rng.uniform(0, 360), 1),
            cloud_cover=round(self.rng.uniform(0, 1), 2),
        )
