"""
Order Planner - per-timeslot wholesale trading for the default broker.

Runs once per timeslot, after the customer model has reported usage for
the current slot. For every open future timeslot it estimates the energy
our subscribers will need, nets out what is already bought or sold, and
submits one order for the difference.

Horizon rules:
  - First day:       hour-of-day profile, falling back to current usage
                     where that hour has no history yet.
  - Through week 1:  hour-of-day profile.
  - After week 1:    hour-of-week profile.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from config import USAGE_RECORD_LENGTH, FIRST_DAY_TIMESLOTS, KWH_PER_MWH
from models.subscription_book import SubscriptionBook
from optimizer.price_escalator import PriceEscalator
from state.domain import MarketPosition, Order
from state.timeslots import TimeslotClock

logger = logging.getLogger(__name__)


class OrderPlanner:
    """Turns the usage forecast into one order per open timeslot."""

    def __init__(self, broker: str, book: SubscriptionBook,
                 escalator: PriceEscalator, clock: TimeslotClock,
                 find_position: Callable[[int], Optional[MarketPosition]],
                 route: Callable[[Order], None]):
        self.broker = broker
        self.book = book
        self.escalator = escalator
        self.clock = clock
        self.find_position = find_position
        self.route = route

    def activate(self) -> list[Order]:
        """Plan and submit orders for every enabled timeslot."""
        current = self.clock.current_timeslot()
        logger.info(f"activate: timeslot {current}")
        orders = []

        for timeslot in self.clock.enabled_timeslots():
            needed_kwh = self.needed_kwh(current, timeslot)
            order = self.submit_order(needed_kwh, timeslot, current)
            if order is not None:
                orders.append(order)
        return orders

    def lookup_index(self, current: int, timeslot: int) -> int:
        if current <= USAGE_RECORD_LENGTH:
            return timeslot % FIRST_DAY_TIMESLOTS
        return timeslot % USAGE_RECORD_LENGTH

    def needed_kwh(self, current: int, timeslot: int) -> float:
        """Broker-side kWh balance required in timeslot."""
        needed = self.book.collect_usage(self.lookup_index(current, timeslot))
        if current < FIRST_DAY_TIMESLOTS and needed == 0.0:
            # no history for that hour yet, assume it looks like now
            needed = self.book.collect_usage(current)
        return needed

    def submit_order(self, needed_kwh: float, timeslot: int,
                     current: int) -> Optional[Order]:
        needed_mwh = needed_kwh / KWH_PER_MWH
        position = self.find_position(timeslot)
        if position is not None:
            needed_mwh -= position.overall_balance
        logger.debug(f"needed mWh={needed_mwh}")
        if needed_mwh == 0.0:
            logger.info(f"no power required in timeslot {timeslot}")
            return None

        limit_price = self.escalator.compute_limit_price(
            timeslot, current, self.clock.deactivate_timeslots_ahead, needed_mwh)
        logger.info(f"new order for {needed_mwh} at {limit_price} in timeslot {timeslot}")
        order = Order(self.broker, timeslot, needed_mwh, limit_price)
        self.escalator.remember(order)
        self.route(order)
        return order
