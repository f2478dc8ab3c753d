"""
Price Escalator - picks a limit price for each wholesale order.

Each timeslot can be traded several times before delivery. The first try
starts at the sure-to-trade bound; later tries continue from the previous
limit and walk toward the least favorable bound as the remaining chances
run out. A full clearing resets the walk.

Buying prices are negative (the broker pays), selling prices positive.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from config import (
    DEFAULT_BUY_LIMIT_PRICE_MAX, DEFAULT_BUY_LIMIT_PRICE_MIN,
    DEFAULT_SELL_LIMIT_PRICE_MAX, DEFAULT_SELL_LIMIT_PRICE_MIN,
)
from models.random_source import RandomSource
from state.domain import MarketTransaction, Order

logger = logging.getLogger(__name__)


class PriceEscalator:
    """Limit-price generator plus the last order placed for each timeslot."""

    def __init__(self, random_source: RandomSource,
                 buy_limit_price_max: float = DEFAULT_BUY_LIMIT_PRICE_MAX,
                 buy_limit_price_min: float = DEFAULT_BUY_LIMIT_PRICE_MIN,
                 sell_limit_price_max: float = DEFAULT_SELL_LIMIT_PRICE_MAX,
                 sell_limit_price_min: float = DEFAULT_SELL_LIMIT_PRICE_MIN):
        self.random_source = random_source
        self.buy_limit_price_max = buy_limit_price_max
        self.buy_limit_price_min = buy_limit_price_min
        self.sell_limit_price_max = sell_limit_price_max
        self.sell_limit_price_min = sell_limit_price_min
        self.last_order: dict[int, Optional[Order]] = {}

    def compute_limit_price(self, timeslot: int, current: int,
                            deactivate_ahead: int, amount_needed: float) -> float:
        """Limit price for amount_needed MWh in timeslot, seen from current.

        remaining = timeslot - current - deactivate_ahead
        price = max(floor, start + u * 2 * (floor - start) / remaining)
        The factor 2 centres the draw halfway between start and floor.
        """
        if amount_needed > 0.0:
            old_limit_price = self.buy_limit_price_max
            min_price = self.buy_limit_price_min
        else:
            old_limit_price = self.sell_limit_price_max
            min_price = self.sell_limit_price_min

        last_try = self.last_order.get(timeslot)
        if last_try is not None and _same_sign(amount_needed, last_try.mwh):
            old_limit_price = last_try.limit_price

        new_limit_price = min_price
        remaining_tries = timeslot - current - deactivate_ahead
        if remaining_tries > 0:
            price_range = (min_price - old_limit_price) * 2.0 / remaining_tries
            logger.debug(f"oldLimitPrice={old_limit_price}, range={price_range}")
            computed = old_limit_price + self.random_source.next_double() * price_range
            new_limit_price = max(new_limit_price, computed)
        return new_limit_price

    def remember(self, order: Order):
        self.last_order[order.timeslot] = order

    def on_market_transaction(self, tx: MarketTransaction):
        """Reset escalation for the timeslot when the last order fully cleared."""
        last_try = self.last_order.get(tx.timeslot)
        if last_try is None:
            logger.error(f"order corresponding to market tx {tx} is null")
        elif tx.mwh == last_try.mwh:
            self.last_order[tx.timeslot] = None


def _same_sign(a: float, b: float) -> bool:
    return _signum(a) == _signum(b)


def _signum(x: float) -> float:
    if x == 0.0 or math.isnan(x):
        return x
    return math.copysign(1.0, x)
