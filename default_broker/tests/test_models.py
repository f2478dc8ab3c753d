"""
Tests for the usage models: customer records, the subscription book,
the random source and option parsing.
"""

import logging
import pytest
import sys
import os
from datetime import datetime, timedelta, timezone

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np

from config import BrokerConfig, SMOOTHING_ALPHA, USAGE_RECORD_LENGTH
from models.customer_record import CustomerRecord
from models.random_source import RandomSource
from models.subscription_book import SubscriptionBook
from state.domain import (
    CustomerInfo, PowerType, Rate, TariffSpecification, TariffTransaction, TxType,
)


BASE = datetime(2010, 6, 21, tzinfo=timezone.utc)
HOUR = timedelta(hours=1)


def _customer(name="Village", population=1000, power_type=PowerType.CONSUMPTION):
    return CustomerInfo(name, population, power_type)


def _record(population=1000, bootstrap_mode=False, customer=None):
    return CustomerRecord(customer or _customer(), population, base=BASE,
                          timeslot_duration=HOUR, bootstrap_mode=bootstrap_mode)


# ============================================================
# CustomerRecord
# ============================================================

class TestCustomerRecordSubscriptions:

    def test_signup_adds_population(self):
        record = _record(population=100)
        record.signup(250)
        assert record.subscribed_population == 350

    def test_signup_capped_at_customer_population(self):
        record = _record(population=900)
        record.signup(500)
        assert record.subscribed_population == 1000

    def test_withdraw_removes_population(self):
        record = _record(population=1000)
        record.withdraw(400)
        assert record.subscribed_population == 600

    def test_withdraw_is_not_clamped(self):
        """Over-withdrawal drives the count negative; nothing clamps it."""
        record = _record(population=10)
        record.withdraw(15)
        assert record.subscribed_population == -5

    def test_signup_withdraw_sequence_stays_in_range(self):
        record = _record(population=0)
        for n in (300, 900, 200):
            record.signup(n)
            assert 0 <= record.subscribed_population <= 1000
        record.withdraw(600)
        record.withdraw(400)
        assert record.subscribed_population == 0


class TestCustomerRecordUsage:

    def test_single_write_stores_per_capita(self):
        """-500 kWh over 1000 customers = -0.5 kWh each."""
        record = _record()
        record.produce_consume(-500.0, 7)
        assert record.usage[7] == pytest.approx(-0.5)

    def test_second_write_is_smoothed(self):
        """0.3 * (-800/1000) + 0.7 * (-500/1000) = -0.59"""
        record = _record()
        record.produce_consume(-500.0, 7)
        record.produce_consume(-800.0, 7)
        expected = SMOOTHING_ALPHA * -0.8 + (1 - SMOOTHING_ALPHA) * -0.5
        assert record.usage[7] == pytest.approx(expected)
        assert record.usage[7] == pytest.approx(-0.59)

    def test_ring_wraps_weekly(self):
        record = _record()
        record.produce_consume(-200.0, USAGE_RECORD_LENGTH + 3)
        assert record.usage[3] == pytest.approx(-0.2)

    def test_zero_slot_counts_as_unwritten(self):
        """A slot smoothed back to exactly zero is overwritten on the next write."""
        record = _record()
        record.usage[4] = 0.0
        record.produce_consume(300.0, 4)
        assert record.usage[4] == pytest.approx(0.3)

    def test_get_usage_scales_by_population(self):
        record = _record()
        record.produce_consume(-1000.0, 12)
        record.signup(0)
        assert record.get_usage(12) == pytest.approx(-1000.0)
        record.withdraw(500)
        assert record.get_usage(12) == pytest.approx(-500.0)

    def test_get_usage_uses_ring_index(self):
        record = _record()
        record.produce_consume(-1000.0, 5)
        assert record.get_usage(5 + 2 * USAGE_RECORD_LENGTH) == pytest.approx(-1000.0)

    def test_negative_index_clamped(self, caplog):
        record = _record()
        record.produce_consume(-1000.0, 0)
        with caplog.at_level(logging.WARNING):
            assert record.get_usage(-3) == pytest.approx(-1000.0)
        assert "negative index" in caplog.text

    def test_instant_converted_to_index(self):
        record = _record()
        record.produce_consume_at(-250.0, BASE + 30 * HOUR + timedelta(minutes=15))
        assert record.usage[30] == pytest.approx(-0.25)

    def test_no_subscribers_leaves_profile(self, caplog):
        record = _record(population=0)
        with caplog.at_level(logging.WARNING):
            record.produce_consume(-100.0, 2)
        assert not np.any(record.usage)
        assert "no subscribers" in caplog.text


class TestCustomerRecordBootstrap:

    def test_raw_series_not_kept_in_sim_mode(self):
        record = _record()
        record.produce_consume(-100.0, 3)
        assert record.bootstrap_usage == []

    def test_gap_filled_with_zeros(self):
        record = _record(bootstrap_mode=True)
        record.produce_consume(-100.0, 3)
        assert record.bootstrap_usage == [0.0, 0.0, 0.0, -100.0]

    def test_same_index_adds(self):
        record = _record(bootstrap_mode=True)
        record.produce_consume(-100.0, 1)
        record.produce_consume(-40.0, 1)
        record.produce_consume(-10.0, 2)
        assert record.bootstrap_usage == [0.0, -140.0, -10.0]

    def test_negative_index_skips_raw_series(self, caplog):
        """Raw series is left alone; the ring slot (-2 mod 168 = 166) still learns."""
        record = _record(bootstrap_mode=True)
        with caplog.at_level(logging.WARNING):
            record.produce_consume(-100.0, -2)
        assert record.bootstrap_usage == []
        assert record.usage[USAGE_RECORD_LENGTH - 2] == pytest.approx(-0.1)
        assert "negative index -2" in caplog.text

    def test_negative_index_does_not_touch_existing_entries(self):
        record = _record(bootstrap_mode=True)
        record.produce_consume(-10.0, 0)
        record.produce_consume(-20.0, 1)
        record.produce_consume(-99.0, -1)
        assert record.bootstrap_usage == [-10.0, -20.0]

    def test_instant_before_base(self):
        record = _record(bootstrap_mode=True)
        record.produce_consume_at(-50.0, BASE - timedelta(minutes=30))
        assert record.bootstrap_usage == []
        assert record.usage[USAGE_RECORD_LENGTH - 1] == pytest.approx(-0.05)


# ============================================================
# SubscriptionBook
# ============================================================

def _book(bootstrap_mode=False):
    book = SubscriptionBook(base=BASE, timeslot_duration=HOUR,
                            bootstrap_mode=bootstrap_mode)
    consumption = TariffSpecification("default", PowerType.CONSUMPTION).add_rate(Rate(-1.0))
    production = TariffSpecification("default", PowerType.PRODUCTION).add_rate(Rate(0.01))
    book.add_tariff(consumption)
    book.add_tariff(production)
    return book, consumption, production


def _ttx(tx_type, spec, customer, count, kwh=0.0, timeslot=0):
    return TariffTransaction(tx_type, spec, customer, count, kwh=kwh,
                             posted_time=BASE + timeslot * HOUR)


class TestSubscriptionBook:

    def test_tariff_lookup_by_power_type(self):
        book, consumption, production = _book()
        assert book.tariff_for(PowerType.CONSUMPTION) is consumption
        assert book.tariff_for(PowerType.PRODUCTION) is production

    def test_first_signup_creates_record(self):
        book, consumption, _ = _book()
        customer = _customer()
        book.apply(_ttx(TxType.SIGNUP, consumption, customer, 400))
        record = book.find_record(consumption, customer)
        assert record is not None
        assert record.subscribed_population == 400

    def test_later_signup_accumulates(self):
        book, consumption, _ = _book()
        customer = _customer()
        book.apply(_ttx(TxType.SIGNUP, consumption, customer, 400))
        book.apply(_ttx(TxType.SIGNUP, consumption, customer, 700))
        assert book.find_record(consumption, customer).subscribed_population == 1000

    def test_first_signup_capped_at_customer_population(self):
        """1500 reported for a class of 1000 leaves 1000 subscribed."""
        book, consumption, _ = _book()
        customer = _customer()
        book.apply(_ttx(TxType.SIGNUP, consumption, customer, 1500))
        assert book.find_record(consumption, customer).subscribed_population == 1000

    def test_signups_never_exceed_population(self):
        book, consumption, _ = _book()
        customer = _customer(population=300)
        for count in (200, 200, 500):
            book.apply(_ttx(TxType.SIGNUP, consumption, customer, count))
            assert 0 <= book.find_record(consumption, customer).subscribed_population <= 300

    def test_withdraw_unknown_customer_warns(self, caplog):
        book, consumption, _ = _book()
        customer = _customer()
        with caplog.at_level(logging.WARNING):
            book.apply(_ttx(TxType.WITHDRAW, consumption, customer, 10))
        assert "unknown customer withdraws" in caplog.text
        assert book.find_record(consumption, customer) is None

    def test_withdraw_known_customer(self):
        book, consumption, _ = _book()
        customer = _customer()
        book.apply(_ttx(TxType.SIGNUP, consumption, customer, 600))
        book.apply(_ttx(TxType.WITHDRAW, consumption, customer, 100))
        assert book.find_record(consumption, customer).subscribed_population == 500

    def test_consume_records_usage(self):
        book, consumption, _ = _book()
        customer = _customer()
        book.apply(_ttx(TxType.SIGNUP, consumption, customer, 1000))
        book.apply(_ttx(TxType.CONSUME, consumption, customer, 1000, kwh=-2000.0, timeslot=9))
        assert book.find_record(consumption, customer).usage[9] == pytest.approx(-2.0)

    def test_population_mismatch_warns_but_records(self, caplog):
        """Divisor stays the subscribed population: -300 / 600 = -0.5."""
        book, consumption, _ = _book()
        customer = _customer()
        book.apply(_ttx(TxType.SIGNUP, consumption, customer, 600))
        with caplog.at_level(logging.WARNING):
            book.apply(_ttx(TxType.CONSUME, consumption, customer, 200, kwh=-300.0, timeslot=2))
        assert "consumption by subset 200 of subscribed population 600" in caplog.text
        assert book.find_record(consumption, customer).usage[2] == pytest.approx(-0.5)

    def test_produce_mismatch_wording(self, caplog):
        book, _, production = _book()
        farm = _customer("SolarFarm", 20, PowerType.PRODUCTION)
        book.apply(_ttx(TxType.SIGNUP, production, farm, 20))
        with caplog.at_level(logging.WARNING):
            book.apply(_ttx(TxType.PRODUCE, production, farm, 10, kwh=100.0, timeslot=12))
        assert "production by subset 10" in caplog.text

    def test_other_kinds_ignored(self):
        book, consumption, _ = _book()
        customer = _customer()
        book.apply(_ttx(TxType.PERIODIC, consumption, customer, 10, kwh=-5.0))
        book.apply(_ttx(TxType.PUBLISH, consumption, customer, 0))
        assert book.find_record(consumption, customer) is None

    def test_collect_usage_flips_sign(self):
        """Customers consume 1500 kWh in total -> broker needs +1500."""
        book, consumption, production = _book()
        village = _customer("Village", 1000)
        office = _customer("Office", 50)
        farm = _customer("SolarFarm", 20, PowerType.PRODUCTION)
        book.apply(_ttx(TxType.SIGNUP, consumption, village, 1000))
        book.apply(_ttx(TxType.SIGNUP, consumption, office, 50))
        book.apply(_ttx(TxType.SIGNUP, production, farm, 20))
        book.apply(_ttx(TxType.CONSUME, consumption, village, 1000, kwh=-1000.0, timeslot=3))
        book.apply(_ttx(TxType.CONSUME, consumption, office, 50, kwh=-500.0, timeslot=3))
        book.apply(_ttx(TxType.PRODUCE, production, farm, 20, kwh=400.0, timeslot=3))
        assert book.collect_usage(3) == pytest.approx(1100.0)
        assert book.collect_usage(4) == 0.0

    def test_customer_counts(self):
        book, consumption, production = _book()
        book.apply(_ttx(TxType.SIGNUP, consumption, _customer("Village", 1000), 300))
        book.apply(_ttx(TxType.SIGNUP, production,
                        _customer("SolarFarm", 20, PowerType.PRODUCTION), 20))
        assert book.customer_counts() == {"VillageCONSUMPTION": 300,
                                          "SolarFarmPRODUCTION": 20}


# ============================================================
# RandomSource and options
# ============================================================

class TestRandomSource:

    def test_same_seed_same_sequence(self):
        a, b = RandomSource(11), RandomSource(11)
        assert [a.next_double() for _ in range(5)] == [b.next_double() for _ in range(5)]

    def test_values_in_unit_interval(self):
        source = RandomSource(3)
        values = [source.next_double() for _ in range(200)]
        assert all(0.0 <= v < 1.0 for v in values)
        assert source.draws == 200


class TestBrokerConfig:

    def test_defaults(self):
        config = BrokerConfig.from_mapping(None)
        assert config.consumption_rate == -1.0
        assert config.production_rate == 0.01
        assert config.initial_bid_kwh == 500.0
        assert config.buy_limit_price_min == -100.0
        assert config.buy_limit_price_max == -1.0
        assert config.sell_limit_price_min == 0.2
        assert config.sell_limit_price_max == 100.0

    def test_overrides_by_option_name(self):
        config = BrokerConfig.from_mapping({"buyLimitPriceMin": "-80",
                                            "sellLimitPriceMax": 55.5,
                                            "unrelated": "x"})
        assert config.buy_limit_price_min == -80.0
        assert config.sell_limit_price_max == 55.5

    def test_bad_value_keeps_default(self, caplog):
        with caplog.at_level(logging.WARNING):
            config = BrokerConfig.from_mapping({"consumptionRate": "cheap"})
        assert config.consumption_rate == -1.0
        assert "consumptionRate" in caplog.text
