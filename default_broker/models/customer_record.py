"""
Per-customer usage model.

Usage is stored per subscribed individual and reported as the product of
the per-individual figure and the current subscribed population, so the
history stays useful while the population shifts.

Profile: one slot per hour of the week, exponentially smoothed.
A slot holding exactly 0.0 is treated as never written.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

import numpy as np

from config import USAGE_RECORD_LENGTH, SMOOTHING_ALPHA, TIMESLOT_DURATION
from state.domain import CustomerInfo

logger = logging.getLogger(__name__)


class CustomerRecord:
    """Subscription count and smoothed usage for one (tariff, customer) pair."""

    def __init__(self, customer: CustomerInfo, population: int,
                 base: datetime | None = None,
                 timeslot_duration: timedelta = TIMESLOT_DURATION,
                 bootstrap_mode: bool = False,
                 alpha: float = SMOOTHING_ALPHA):
        self.customer = customer
        self.subscribed_population = population
        self.usage = np.zeros(USAGE_RECORD_LENGTH)
        self.bootstrap_usage: list[float] = []
        self.base = base
        self.timeslot_duration = timeslot_duration
        self.bootstrap_mode = bootstrap_mode
        self.alpha = alpha

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def signup(self, population: int):
        """Add individuals, capped at the customer's declared population."""
        self.subscribed_population = min(self.customer.population,
                                         self.subscribed_population + population)

    def withdraw(self, population: int):
        """Remove individuals. Not clamped at zero."""
        self.subscribed_population -= population

    # ------------------------------------------------------------------
    # Usage recording
    # ------------------------------------------------------------------

    def produce_consume(self, kwh: float, raw_index: int):
        """Record usage for the absolute timeslot raw_index.

        In bootstrap mode the raw value is also kept, indexed by timeslot;
        a second report for the same timeslot is added to the first.
        """
        if self.bootstrap_mode:
            if raw_index < 0:
                logger.warning(f"usage {kwh} for customer {self.customer.name} "
                               f"at negative index {raw_index}, raw series not updated")
            else:
                self._record_raw(kwh, raw_index)

        index = self.ring_index(raw_index)
        if self.subscribed_population <= 0:
            logger.warning(f"usage {kwh} for customer {self.customer.name} "
                           f"with no subscribers, profile not updated")
            return
        kwh_per_customer = kwh / self.subscribed_population
        old_usage = self.usage[index]
        if old_usage == 0.0:
            self.usage[index] = kwh_per_customer
        else:
            self.usage[index] = (self.alpha * kwh_per_customer
                                 + (1.0 - self.alpha) * old_usage)
        logger.debug(f"consume {kwh} at {index}, customer {self.customer.name}")

    def produce_consume_at(self, kwh: float, when: datetime):
        """Record usage reported at a wall-clock instant."""
        self.produce_consume(kwh, self.index_for(when))

    def _record_raw(self, kwh: float, raw_index: int):
        if len(self.bootstrap_usage) <= raw_index:
            self.bootstrap_usage.extend([0.0] * (raw_index - len(self.bootstrap_usage)))
            self.bootstrap_usage.append(kwh)
        else:
            self.bootstrap_usage[raw_index] += kwh

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    def get_usage(self, raw_index: int) -> float:
        """Predicted total kWh for the population currently subscribed."""
        if raw_index < 0:
            logger.warning(f"usage requested for negative index {raw_index}")
            raw_index = 0
        return float(self.usage[self.ring_index(raw_index)] * self.subscribed_population)

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    def ring_index(self, raw_index: int) -> int:
        return raw_index % len(self.usage)

    def index_for(self, when: datetime) -> int:
        """Timeslot number of an instant; assumes slot 0 starts at base."""
        return (when - self.base) // self.timeslot_duration
