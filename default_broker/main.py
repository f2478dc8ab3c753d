"""
Default Broker - Main Entry Point.

Runs the default broker against a synthetic world.

  bootstrap: pre-game run in bootstrap mode; writes the dataset file.
  sim:       loads a dataset, seeds a fresh broker with its customer
             history and trades for the requested number of timeslots.

Usage:
    python main.py bootstrap --timeslots 360 --output bootstrapData.xml
    python main.py sim --dataset bootstrapData.xml --timeslots 48
    python main.py bootstrap --set buyLimitPriceMin=-80 --set consumptionRate=-0.5
"""

from __future__ import annotations

import argparse
import logging
import sys

from api.host import InMemoryBrokerProxy, InMemoryCustomerRepo, InMemoryTariffMarket
from broker.default_broker import DefaultBroker
from config import (
    BOOTSTRAP_DATA_FILE, BOOTSTRAP_TIMESLOT_COUNT, BOOTSTRAP_DISCARDED_TIMESLOTS,
    DEFAULT_SEED, LOG_FILE,
)
from dataset.bootstrap_file import (
    BootstrapDatasetError, read_bootstrap_dataset, save_bootstrap_data,
)
from models.random_source import RandomSource
from sim.demo_world import DEMO_CUSTOMERS, DemoWorld
from state.domain import Competition, PluginConfig
from state.timeslots import SimulationClock
from ui.console_display import ConsoleDisplay

logger = logging.getLogger(__name__)

PLUGIN_ROLE = "DefaultBrokerService"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Default Broker simulation driver")
    sub = parser.add_subparsers(dest="command", required=True)

    boot = sub.add_parser("bootstrap", help="Run a bootstrap game and write the dataset")
    boot.add_argument(
        "--timeslots", type=int,
        default=BOOTSTRAP_TIMESLOT_COUNT + BOOTSTRAP_DISCARDED_TIMESLOTS,
        help="Timeslots to simulate (default: bootstrap count + discarded)"
    )
    boot.add_argument("--output", default=BOOTSTRAP_DATA_FILE,
                      help=f"Dataset file to write (default: {BOOTSTRAP_DATA_FILE})")

    sim = sub.add_parser("sim", help="Replay a dataset and trade")
    sim.add_argument("--dataset", default=BOOTSTRAP_DATA_FILE,
                     help=f"Dataset file to load (default: {BOOTSTRAP_DATA_FILE})")
    sim.add_argument("--timeslots", type=int, default=48,
                     help="Timeslots to simulate after the bootstrap period (default: 48)")

    for p in (boot, sim):
        p.add_argument("--seed", type=int, default=DEFAULT_SEED,
                       help=f"Random seed (default: {DEFAULT_SEED})")
        p.add_argument("--set", action="append", default=[], metavar="NAME=VALUE",
                       help="Broker option override, e.g. sellLimitPriceMin=0.5")
        p.add_argument("--quiet", action="store_true", help="Skip the console summary")
    return parser.parse_args(argv)


def parse_overrides(pairs: list[str]) -> PluginConfig:
    """Turn NAME=VALUE strings into the broker's plugin config."""
    pic = PluginConfig(role_name=PLUGIN_ROLE)
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name.strip():
            raise ValueError(f"expected NAME=VALUE, got {pair!r}")
        pic.add_configuration(name.strip(), value.strip())
    return pic


def build_broker(competition: Competition, seed: int, current: int = 0):
    """Wire a broker to in-memory collaborators."""
    clock = SimulationClock(competition, current=current)
    proxy = InMemoryBrokerProxy()
    broker = DefaultBroker(
        clock=clock,
        tariff_market=InMemoryTariffMarket(),
        proxy=proxy,
        positions=proxy,
        customer_repo=InMemoryCustomerRepo(DEMO_CUSTOMERS),
        random_source=RandomSource(seed),
    )
    return broker, clock, proxy


# ============================================================
# Commands
# ============================================================

def run_bootstrap(args: argparse.Namespace, pic: PluginConfig) -> DefaultBroker:
    competition = Competition()
    broker, clock, proxy = build_broker(competition, args.seed)
    broker.init(pic, bootstrap_mode=True)

    world = DemoWorld(broker, clock, proxy, seed=args.seed)
    world.signup_all()
    stats = world.run(args.timeslots)
    logger.info(f"bootstrap run done: {stats.timeslots} timeslots, {stats.orders} orders, "
                f"{stats.fills} fills ({stats.partial_fills} partial)")

    save_bootstrap_data(broker, competition, [pic], args.output)
    logger.info(f"bootstrap dataset written to {args.output}")
    return broker


def run_sim(args: argparse.Namespace, pic: PluginConfig) -> DefaultBroker:
    dataset = read_bootstrap_dataset(args.dataset)
    history = max((len(c.net_usage) for c in dataset.customer_data()), default=0)
    start = dataset.offset + history
    for stored in dataset.plugin_configs:
        if stored.role_name == PLUGIN_ROLE:
            pic = PluginConfig(PLUGIN_ROLE, configuration={**stored.configuration,
                                                           **pic.configuration})

    broker, clock, proxy = build_broker(dataset.competition, args.seed, current=start)
    broker.init(pic, bootstrap_mode=False)
    for cbd in dataset.customer_data():
        broker.receive(cbd)
    logger.info(f"replayed {len(dataset.customer_data())} customer histories, "
                f"starting at timeslot {start}")

    world = DemoWorld(broker, clock, proxy, seed=args.seed)
    world.signup_all()
    stats = world.run(args.timeslots)
    logger.info(f"sim run done: {stats.orders} orders, {stats.cleared_mwh:.2f} MWh cleared")
    return broker


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        handlers=[logging.FileHandler(LOG_FILE), logging.StreamHandler()],
    )
    logger.info(f"Starting Default Broker | command: {args.command} | seed: {args.seed}")

    try:
        pic = parse_overrides(args.set)
    except ValueError as e:
        logger.error(str(e))
        return 2

    if args.command == "bootstrap":
        broker = run_bootstrap(args, pic)
    else:
        try:
            broker = run_sim(args, pic)
        except BootstrapDatasetError as e:
            logger.error(str(e))
            return 1

    if not args.quiet:
        ConsoleDisplay().render(broker)
    return 0


if __name__ == "__main__":
    sys.exit(main())
