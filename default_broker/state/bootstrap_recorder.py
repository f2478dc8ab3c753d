"""
Bootstrap-mode data collection.

During the pre-game run the default broker keeps everything a real broker
would want to start from: raw per-customer usage (held by the customer
records), the quantity and delivered price of the power it bought each
timeslot, and the weather reports. Balancing cost is deliberately ignored.
"""

from __future__ import annotations

import logging

from models.subscription_book import SubscriptionBook
from state.domain import (
    CustomerBootstrapData, MarketBootstrapData, MarketTransaction, WeatherReport,
)

logger = logging.getLogger(__name__)


class BootstrapRecorder:
    """Accumulates wholesale and weather history and exports trailing windows."""

    def __init__(self):
        self.market_tx_map: dict[int, list[MarketTransaction]] = {}
        self.market_mwh: list[float] = []
        self.market_price: list[float] = []
        self.weather: list[WeatherReport] = []

    def add_market_transaction(self, tx: MarketTransaction):
        self.market_tx_map.setdefault(tx.timeslot, []).append(tx)

    def add_weather_report(self, report: WeatherReport):
        self.weather.append(report)

    def record_delivered_price(self, timeslot: int) -> tuple[float, float]:
        """Append quantity and volume-weighted price of power bought in timeslot.

        Only purchases (mwh > 0) count. Prices are negative when we paid.
        """
        tx_list = self.market_tx_map.setdefault(timeslot, [])
        total_mwh = 0.0
        total_cost = 0.0
        for tx in tx_list:
            if tx.mwh > 0.0:
                logger.info(f"record price: mwh={tx.mwh}, price={tx.price}")
                total_mwh += tx.mwh
                total_cost += tx.price * tx.mwh

        vwap = total_cost / total_mwh if total_mwh != 0.0 else 0.0
        logger.info(f"market totals: mwh={total_mwh}, price={vwap}")
        self.market_mwh.append(total_mwh)
        self.market_price.append(vwap)
        return total_mwh, vwap

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def customer_bootstrap_data(self, book: SubscriptionBook,
                                max_timeslots: int) -> list[CustomerBootstrapData]:
        """One item per (tariff, customer) with the trailing usage values."""
        result = []
        for spec, record in book.records():
            usage = record.bootstrap_usage
            start = max(0, len(usage) - max_timeslots)
            result.append(CustomerBootstrapData(customer_name=record.customer.name,
                                                power_type=spec.power_type,
                                                net_usage=list(usage[start:])))
        return result

    def market_bootstrap_data(self, max_timeslots: int) -> MarketBootstrapData:
        """Trailing quantities and prices, paired element-wise."""
        size = len(self.market_mwh)
        if size != len(self.market_price):
            logger.error(f"marketMWh.size()={len(self.market_mwh)} != "
                         f"marketPrice.size()={len(self.market_price)}")
            size = min(size, len(self.market_price))
        start = max(0, size - max_timeslots)
        return MarketBootstrapData(mwh=self.market_mwh[start:size],
                                   market_price=self.market_price[start:size])

    def weather_reports(self, max_timeslots: int) -> list[WeatherReport]:
        """The newest max_timeslots reports; older ones are dropped for good."""
        discard = len(self.weather) - max_timeslots
        if discard > 0:
            del self.weather[:discard]
        return self.weather

    def collect(self, book: SubscriptionBook, max_timeslots: int) -> list[object]:
        """Flattened customer data, then market data, then weather."""
        result: list[object] = []
        result.extend(self.customer_bootstrap_data(book, max_timeslots))
        result.append(self.market_bootstrap_data(max_timeslots))
        result.extend(self.weather_reports(max_timeslots))
        return result
