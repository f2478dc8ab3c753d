"""
Default Broker service.

The default broker offers the two standing tariffs every customer can fall
back on, keeps a usage profile for whoever subscribes, and buys or sells in
the wholesale market to cover that profile. It runs after the last message
of each timeslot (the CashPosition from accounting), on the thread that
delivers messages to it.

In bootstrap mode it also records the dataset handed to competing brokers
at the start of a real game.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Union

from api.host import BrokerProxy, CustomerRepo, PositionLookup, TariffMarket
from broker.message_router import MessageRouter
from config import BROKER_USERNAME, BrokerConfig
from models.random_source import RandomSource
from models.subscription_book import SubscriptionBook
from optimizer.order_planner import OrderPlanner
from optimizer.price_escalator import PriceEscalator
from state.bootstrap_recorder import BootstrapRecorder
from state.domain import (
    CashPosition, CustomerBootstrapData, CustomerInfo, MarketPosition,
    MarketTransaction, Order, PluginConfig, PowerType, Rate,
    TariffSpecification, TariffTransaction, WeatherReport,
)
from state.timeslots import TimeslotClock

logger = logging.getLogger(__name__)


class DefaultBroker:
    """Owns the subscription book, the escalator state and the bootstrap buffers."""

    def __init__(self, clock: TimeslotClock, tariff_market: TariffMarket,
                 proxy: BrokerProxy, positions: PositionLookup,
                 customer_repo: CustomerRepo,
                 random_source: Optional[RandomSource] = None,
                 username: str = BROKER_USERNAME):
        self.clock = clock
        self.tariff_market = tariff_market
        self.proxy = proxy
        self.positions = positions
        self.customer_repo = customer_repo
        self.random_source = random_source or RandomSource()
        self.username = username

        self.config = BrokerConfig()
        self.bootstrap_mode = False
        self.default_consumption: Optional[TariffSpecification] = None
        self.default_production: Optional[TariffSpecification] = None
        self.book: Optional[SubscriptionBook] = None
        self.escalator: Optional[PriceEscalator] = None
        self.planner: Optional[OrderPlanner] = None
        self.recorder: Optional[BootstrapRecorder] = None
        self.router = MessageRouter()

    # ------------------------------------------------------------------
    # Game setup
    # ------------------------------------------------------------------

    def init(self, config: Union[PluginConfig, Mapping[str, object], None] = None,
             bootstrap_mode: bool = False):
        """Set up per-game state and publish the default tariffs."""
        options = config.configuration if isinstance(config, PluginConfig) else config
        self.config = BrokerConfig.from_mapping(options)
        self.bootstrap_mode = bootstrap_mode
        logger.info(f"init, bootstrapMode={bootstrap_mode}")

        self.book = SubscriptionBook(base=self.clock.start_instant(0),
                                     timeslot_duration=self.clock.timeslot_duration,
                                     bootstrap_mode=bootstrap_mode)
        self.escalator = PriceEscalator(
            self.random_source,
            buy_limit_price_max=self.config.buy_limit_price_max,
            buy_limit_price_min=self.config.buy_limit_price_min,
            sell_limit_price_max=self.config.sell_limit_price_max,
            sell_limit_price_min=self.config.sell_limit_price_min,
        )
        self.planner = OrderPlanner(self.username, self.book, self.escalator, self.clock,
                                    find_position=self.positions.find_market_position,
                                    route=self.proxy.route_message)
        self.recorder = BootstrapRecorder() if bootstrap_mode else None

        self.default_consumption = self._publish(PowerType.CONSUMPTION,
                                                 self.config.consumption_rate)
        self.default_production = self._publish(PowerType.PRODUCTION,
                                                self.config.production_rate)
        self._register_handlers()

    @property
    def initial_bid_kwh(self) -> float:
        """Configured but not used when planning orders."""
        return self.config.initial_bid_kwh

    def _publish(self, power_type: PowerType, rate: float) -> TariffSpecification:
        spec = TariffSpecification(self.username, power_type).add_rate(Rate(rate))
        self.tariff_market.set_default_tariff(spec)
        self.book.add_tariff(spec)
        return spec

    def _register_handlers(self):
        self.router = MessageRouter()
        self.router.register(TariffTransaction, self.handle_tariff_transaction)
        self.router.register(MarketTransaction, self.handle_market_transaction)
        self.router.register(WeatherReport, self.handle_weather_report)
        self.router.register(CustomerBootstrapData, self.handle_customer_bootstrap_data)
        self.router.register(MarketPosition, self.handle_market_position)
        self.router.register(CashPosition, self.handle_cash_position)

    # ------------------------------------------------------------------
    # Incoming messages
    # ------------------------------------------------------------------

    def receive(self, msg: object) -> None:
        """Entry point for every message addressed to the broker."""
        self.router.route(msg)

    def handle_tariff_transaction(self, ttx: TariffTransaction):
        self.book.apply(ttx)

    def handle_market_transaction(self, tx: MarketTransaction):
        """Keep the trade for the bootstrap dataset; reset escalation on a full fill."""
        if self.bootstrap_mode:
            self.recorder.add_market_transaction(tx)
        self.escalator.on_market_transaction(tx)

    def handle_weather_report(self, report: WeatherReport):
        if self.bootstrap_mode:
            self.recorder.add_weather_report(report)

    def handle_customer_bootstrap_data(self, cbd: CustomerBootstrapData):
        """Seed a customer's profile from a previous bootstrap run.

        The history is placed so that its last value lands just before the
        current timeslot.
        """
        customer = self.customer_repo.find_by_name(cbd.customer_name)
        if customer is None:
            logger.warning(f"bootstrap data for unknown customer {cbd.customer_name}")
            return
        tariff = self.book.tariff_for(cbd.power_type)
        if tariff is None:
            logger.warning(f"no default tariff for power type {cbd.power_type.value}")
            return
        record = self.book.ensure_record(tariff, customer, customer.population)
        offset = self.clock.current_timeslot() - len(cbd.net_usage)
        for i, kwh in enumerate(cbd.net_usage):
            record.produce_consume(kwh, i + offset)

    def handle_market_position(self, posn: MarketPosition):
        # read on demand through the position lookup
        pass

    def handle_cash_position(self, cp: CashPosition):
        """Last message of the timeslot: time to trade."""
        if self.bootstrap_mode:
            self.recorder.record_delivered_price(self.clock.current_timeslot())
        self.activate()

    # ------------------------------------------------------------------
    # Per-timeslot activation
    # ------------------------------------------------------------------

    def activate(self) -> list[Order]:
        return self.planner.activate()

    def collect_usage(self, index: int) -> float:
        return self.book.collect_usage(index)

    # ------------------------------------------------------------------
    # Bootstrap data
    # ------------------------------------------------------------------

    def collect_bootstrap_data(self, max_timeslots: int) -> list[object]:
        """Customer usage, market totals and weather for the last max_timeslots.
        Only meaningful at the end of a bootstrap run."""
        if not self.bootstrap_mode:
            logger.warning("bootstrap data requested outside bootstrap mode")
            return []
        return self.recorder.collect(self.book, max_timeslots)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def customer_counts(self) -> dict[str, int]:
        return self.book.customer_counts()

    def get_usage_for_customer(self, customer: CustomerInfo,
                               tariff_spec: TariffSpecification, index: int) -> float:
        return self.book.find_record(tariff_spec, customer).get_usage(index)

    def last_order(self, timeslot: int) -> Optional[Order]:
        return self.escalator.last_order.get(timeslot)
