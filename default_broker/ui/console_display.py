"""
Rich terminal summary of the default broker's state.
Subscriptions, outstanding orders and (bootstrap mode) market history.
"""

from __future__ import annotations

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.text import Text
from rich import box

from broker.default_broker import DefaultBroker


class ConsoleDisplay:
    """Renders a one-shot broker summary."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def render(self, broker: DefaultBroker) -> None:
        self.console.print(self._build_summary(broker))

    def render_string(self, broker: DefaultBroker) -> str:
        """Return the summary as plain text (used in tests and logs)."""
        with self.console.capture() as capture:
            self.console.print(self._build_summary(broker))
        return capture.get()

    def _build_summary(self, broker: DefaultBroker) -> Table:
        grid = Table.grid(expand=True)
        grid.add_column(ratio=1)
        grid.add_row(self._header_panel(broker))
        grid.add_row(self._subscription_panel(broker))
        grid.add_row(self._order_panel(broker))
        if broker.bootstrap_mode:
            grid.add_row(self._market_panel(broker))
        return grid

    # ------------------------------------------------------------------
    # Panels
    # ------------------------------------------------------------------

    def _header_panel(self, broker: DefaultBroker) -> Panel:
        mode = ("[bold cyan]BOOTSTRAP[/bold cyan]" if broker.bootstrap_mode
                else "[bold green]SIM[/bold green]")
        header = (
            f"  Timeslot [bold]{broker.clock.current_timeslot()}[/bold]  |  "
            f"Mode {mode}  |  "
            f"Consumption rate {broker.config.consumption_rate:+.2f}  |  "
            f"Production rate {broker.config.production_rate:+.2f}"
        )
        return Panel(Text.from_markup(header), title=broker.username, box=box.HEAVY)

    def _subscription_panel(self, broker: DefaultBroker) -> Panel:
        table = Table(box=box.SIMPLE, expand=True)
        table.add_column("Customer")
        table.add_column("Tariff")
        table.add_column("Subscribed", justify="right")
        table.add_column("Next hour kWh", justify="right")

        next_slot = broker.clock.current_timeslot() + 1
        for spec, record in broker.book.records():
            table.add_row(
                record.customer.name,
                spec.power_type.value,
                f"{record.subscribed_population:,}",
                f"{record.get_usage(next_slot):,.1f}",
            )
        return Panel(table, title="Subscriptions")

    def _order_panel(self, broker: DefaultBroker) -> Panel:
        table = Table(box=box.SIMPLE, expand=True)
        table.add_column("Timeslot", justify="right")
        table.add_column("Side")
        table.add_column("MWh", justify="right")
        table.add_column("Limit $/MWh", justify="right")

        current = broker.clock.current_timeslot()
        for timeslot, order in sorted(broker.escalator.last_order.items()):
            if order is None or timeslot <= current:
                continue
            side = "[green]BUY[/green]" if order.mwh > 0 else "[red]SELL[/red]"
            table.add_row(str(timeslot), side, f"{order.mwh:.3f}", f"{order.limit_price:.2f}")
        return Panel(table, title="Outstanding orders")

    def _market_panel(self, broker: DefaultBroker) -> Panel:
        recorder = broker.recorder
        bought = sum(recorder.market_mwh)
        cost = sum(m * p for m, p in zip(recorder.market_mwh, recorder.market_price))
        avg = cost / bought if bought else 0.0
        text = (
            f"  Timeslots recorded: [bold]{len(recorder.market_mwh)}[/bold]  |  "
            f"MWh bought: [bold]{bought:,.2f}[/bold]  |  "
            f"Avg price: [bold]{avg:.2f}[/bold]  |  "
            f"Weather reports: [bold]{len(recorder.weather)}[/bold]"
        )
        return Panel(Text.from_markup(text), title="Bootstrap data")
