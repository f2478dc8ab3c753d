"""
Interfaces the broker uses to reach the rest of the simulation, plus
in-memory implementations used by the demo driver and the tests.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Protocol

from state.domain import CustomerInfo, MarketPosition, Order, TariffSpecification

logger = logging.getLogger(__name__)


class TariffMarket(Protocol):
    def set_default_tariff(self, spec: TariffSpecification) -> None:
        ...


class BrokerProxy(Protocol):
    """Outbound message routing."""

    def route_message(self, msg: object) -> None:
        ...


class PositionLookup(Protocol):
    def find_market_position(self, timeslot: int) -> Optional[MarketPosition]:
        ...


class CustomerRepo(Protocol):
    def find_by_name(self, name: str) -> Optional[CustomerInfo]:
        ...


# ============================================================
# In-memory implementations
# ============================================================

class InMemoryTariffMarket:
    """Keeps the default tariff for each power type."""

    def __init__(self):
        self.default_tariffs: dict = {}

    def set_default_tariff(self, spec: TariffSpecification) -> None:
        self.default_tariffs[spec.power_type] = spec
        logger.info(f"default {spec.power_type.value.lower()} tariff published "
                    f"at {spec.rates[0].value if spec.rates else None}")


class InMemoryBrokerProxy:
    """Records routed orders and tracks the broker's market positions."""

    def __init__(self):
        self.sent: list[object] = []
        self.positions: dict[int, MarketPosition] = {}

    def route_message(self, msg: object) -> None:
        self.sent.append(msg)

    @property
    def orders(self) -> list[Order]:
        return [m for m in self.sent if isinstance(m, Order)]

    def clear(self):
        self.sent.clear()

    def find_market_position(self, timeslot: int) -> Optional[MarketPosition]:
        return self.positions.get(timeslot)

    def add_to_position(self, timeslot: int, mwh: float) -> MarketPosition:
        position = self.positions.setdefault(timeslot, MarketPosition(timeslot))
        position.overall_balance += mwh
        return position


class InMemoryCustomerRepo:
    def __init__(self, customers: Iterable[CustomerInfo] = ()):
        self._by_name = {c.name: c for c in customers}

    def find_by_name(self, name: str) -> Optional[CustomerInfo]:
        return self._by_name.get(name)
