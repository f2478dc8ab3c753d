"""
Subscription book: tariff -> customer class -> CustomerRecord.
The tariff level is fixed at init (the two standing tariffs); customer
records appear on first signup or first bootstrap-data injection.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterator, Optional

from config import TIMESLOT_DURATION
from models.customer_record import CustomerRecord
from state.domain import (
    CustomerInfo, PowerType, TariffSpecification, TariffTransaction, TxType,
)

logger = logging.getLogger(__name__)


class SubscriptionBook:
    """Owns every CustomerRecord of the broker."""

    def __init__(self, base: datetime | None = None,
                 timeslot_duration: timedelta = TIMESLOT_DURATION,
                 bootstrap_mode: bool = False):
        self.base = base
        self.timeslot_duration = timeslot_duration
        self.bootstrap_mode = bootstrap_mode
        self._subscriptions: dict[TariffSpecification, dict[CustomerInfo, CustomerRecord]] = {}

    def add_tariff(self, spec: TariffSpecification):
        self._subscriptions.setdefault(spec, {})

    @property
    def tariffs(self) -> list[TariffSpecification]:
        return list(self._subscriptions)

    def tariff_for(self, power_type: PowerType) -> Optional[TariffSpecification]:
        """First standing tariff with the given power type."""
        for spec in self._subscriptions:
            if spec.power_type == power_type:
                return spec
        return None

    def customers(self, spec: TariffSpecification) -> dict[CustomerInfo, CustomerRecord]:
        return self._subscriptions[spec]

    def find_record(self, spec: TariffSpecification,
                    customer: CustomerInfo) -> Optional[CustomerRecord]:
        return self._subscriptions.get(spec, {}).get(customer)

    def ensure_record(self, spec: TariffSpecification, customer: CustomerInfo,
                      population: int) -> CustomerRecord:
        """Return the record, creating it with the given population if absent."""
        customer_map = self._subscriptions[spec]
        record = customer_map.get(customer)
        if record is None:
            record = CustomerRecord(customer, population,
                                    base=self.base,
                                    timeslot_duration=self.timeslot_duration,
                                    bootstrap_mode=self.bootstrap_mode)
            customer_map[customer] = record
        return record

    def records(self) -> Iterator[tuple[TariffSpecification, CustomerRecord]]:
        for spec, customer_map in self._subscriptions.items():
            for record in customer_map.values():
                yield spec, record

    # ------------------------------------------------------------------
    # Tariff transactions
    # ------------------------------------------------------------------

    def apply(self, ttx: TariffTransaction):
        """Update subscriptions and usage from one tariff transaction.
        Only SIGNUP, WITHDRAW, PRODUCE and CONSUME matter here."""
        customer_map = self._subscriptions.get(ttx.tariff_spec)
        if customer_map is None:
            logger.warning(f"transaction {ttx.tx_type.value} on a tariff we do not own")
            return
        customer = ttx.customer_info
        record = customer_map.get(customer)

        if ttx.tx_type == TxType.SIGNUP:
            if record is None:
                self.ensure_record(ttx.tariff_spec, customer,
                                   min(ttx.customer_count, customer.population))
            else:
                record.signup(ttx.customer_count)

        elif ttx.tx_type == TxType.WITHDRAW:
            if record is None:
                logger.warning("unknown customer withdraws subscription")
            else:
                record.withdraw(ttx.customer_count)

        elif ttx.tx_type in (TxType.PRODUCE, TxType.CONSUME):
            if record is None:
                logger.warning(f"{ttx.tx_type.value.lower()} by unsubscribed customer "
                               f"{customer.name}")
                return
            if ttx.customer_count != record.subscribed_population:
                verb = "production" if ttx.tx_type == TxType.PRODUCE else "consumption"
                logger.warning(f"{verb} by subset {ttx.customer_count} "
                               f"of subscribed population {record.subscribed_population}")
            record.produce_consume_at(ttx.kwh, ttx.posted_time)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def collect_usage(self, index: int) -> float:
        """Energy balance needed at index, broker viewpoint (kWh)."""
        result = 0.0
        for _, record in self.records():
            result += record.get_usage(index)
        return -result

    def customer_counts(self) -> dict[str, int]:
        """Subscribed population keyed by customer name + power type."""
        return {f"{record.customer.name}{spec.power_type.value}": record.subscribed_population
                for spec, record in self.records()}
