#!/usr/bin/env python3
import asyncio
import logging
from decimal import Decimal
from typing import Optional

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table
from rich.text import Text

from cryptofolio import (
    Asset,
    CoinGeckoConfig,
    CoinGeckoSource,
    HoldingsStore,
    JsonFileStore,
    MarketSummary,
    Portfolio,
    PortfolioTracker,
    PriceCatalogFetcher,
    SortKey,
    StorageConfig,
    ValuedHolding,
)

logger = logging.getLogger(__name__)
console = Console()

MARKET_ROWS = 20
SEARCH_RESULTS = 10

COMMANDS: list[str] = [
    "portfolio", "market", "add", "edit", "remove", "sort", "search", "refresh", "quit",
]
SORT_LABELS: dict[SortKey, str] = {
    SortKey.VALUE: "Value (high to low)",
    SortKey.PERFORMANCE: "Return % (high to low)",
    SortKey.NAME: "Name (A to Z)",
    SortKey.AMOUNT: "Amount (high to low)",
}


def _change_color(value: Decimal) -> str:
    if value > 0:
        return "green"
    return "red" if value < 0 else "white"


def _signed_pct(value: Decimal) -> Text:
    return Text(f"{float(value):+.2f}%", style=_change_color(value))


def _money(value: Decimal) -> str:
    if abs(value) >= 1:
        return f"${value:,.2f}"
    return f"${value:,.6f}"


def market_table(
    assets: list[Asset] | tuple[Asset, ...],
    title: str = "Market",
    numbered: bool = False,
) -> Table:
    """Build a Rich table of assets in snapshot order.

    With ``numbered`` the first column is the row number instead of the rank.
    """
    t = Table(title=title, box=box.ROUNDED, title_style="bold white")
    t.add_column("#", justify="right", style="dim")
    t.add_column("Coin", style="cyan")
    t.add_column("Name", style="dim")
    t.add_column("Price", justify="right")
    t.add_column("24h", justify="right")
    t.add_column("Market Cap", justify="right")
    t.add_column("Volume", justify="right")

    for i, asset in enumerate(assets, 1):
        t.add_row(
            str(i) if numbered else str(asset.market_cap_rank or ""),
            asset.symbol.upper(),
            asset.name,
            _money(asset.current_price),
            _signed_pct(asset.price_change_percentage_24h),
            f"${asset.market_cap:,.0f}",
            f"${asset.total_volume:,.0f}",
        )
    return t


def market_panel(summary: MarketSummary) -> Panel:
    body = Text.assemble(
        ("Market cap ", "dim"), (f"${summary.total_market_cap / Decimal(10**12):,.2f}T", "bold"),
        ("   Avg 24h ", "dim"), _signed_pct(summary.average_change_24h),
        ("   Gainers ", "dim"), (str(summary.gainers), "green"),
        ("   Losers ", "dim"), (str(summary.losers), "red"),
    )
    return Panel(body, title="Top 100 cryptos", box=box.ROUNDED)


def portfolio_table(
    portfolio: Portfolio, holdings: list[ValuedHolding], title: str
) -> Table:
    """Build a Rich table showing valued holdings and their share of the total."""
    t = Table(title=title, box=box.ROUNDED, title_style="bold white")
    t.add_column("#", justify="right", style="dim")
    t.add_column("Coin", style="cyan")
    t.add_column("Amount", justify="right")
    t.add_column("Bought", justify="right", style="dim")
    t.add_column("Price", justify="right")
    t.add_column("Value", justify="right")
    t.add_column("Alloc", justify="right", style="yellow")
    t.add_column("P/L", justify="right")
    t.add_column("P/L %", justify="right")

    alloc = portfolio.allocation()
    for i, h in enumerate(holdings, start=1):
        t.add_row(
            str(i),
            h.symbol.upper(),
            f"{h.amount:,}",
            _money(h.purchase_price),
            _money(h.current_price),
            _money(h.value),
            f"{float(alloc.get(h.holding_id, Decimal(0))):.1f}%",
            Text(_money(h.profit_loss), style=_change_color(h.profit_loss)),
            _signed_pct(h.profit_loss_percentage),
        )

    t.add_section()
    t.add_row(
        "", "", "", "", "Total",
        f"[bold]{_money(portfolio.total_value)}[/bold]",
        "",
        Text(_money(portfolio.total_profit_loss), style=_change_color(portfolio.total_profit_loss)),
        _signed_pct(portfolio.total_profit_loss_percentage),
    )
    return t


def metrics_panel(portfolio: Portfolio) -> Panel:
    best, worst = portfolio.best_performer, portfolio.worst_performer
    lines = [
        f"[dim]Invested[/dim]  {_money(portfolio.total_invested)}",
        f"[dim]Avg return[/dim]  {float(portfolio.average_return):+.2f}%",
        f"[dim]Gains[/dim]  [green]{_money(portfolio.total_gains)}[/green]"
        f"   [dim]Losses[/dim]  [red]{_money(portfolio.total_losses)}[/red]",
    ]
    if best and worst:
        lines.append(
            f"[dim]Best[/dim]  {best.symbol.upper()} {float(best.profit_loss_percentage):+.2f}%"
            f"   [dim]Worst[/dim]  {worst.symbol.upper()} {float(worst.profit_loss_percentage):+.2f}%"
        )
    return Panel("\n".join(lines), title="Metrics", box=box.ROUNDED)


def status_line(tracker: PortfolioTracker) -> Text:
    fetcher = tracker.fetcher
    if tracker.error:
        return Text(f"Error loading data: {tracker.error}", style="bold red")
    if tracker.refreshing:
        return Text("Refreshing prices...", style="yellow")
    if fetcher.last_updated:
        return Text(f"Prices as of {fetcher.last_updated:%H:%M:%S} UTC", style="dim")
    return Text("No market data yet", style="dim")


def display_portfolio(tracker: PortfolioTracker, sort_key: SortKey) -> None:
    console.print(status_line(tracker))
    portfolio = tracker.portfolio
    holdings = tracker.sorted_holdings(sort_key)

    if not holdings:
        console.print("[dim]  No holdings yet. Use 'add' to record one.[/dim]")
    else:
        console.print(portfolio_table(portfolio, holdings, f"Portfolio · {SORT_LABELS[sort_key]}"))
        console.print(metrics_panel(portfolio))

    unpriced = len(tracker.holdings) - len(portfolio.holdings)
    if unpriced > 0:
        console.print(f"[yellow]  {unpriced} holding(s) not in the current top 100, hidden.[/yellow]")


def display_market(tracker: PortfolioTracker) -> None:
    console.print(status_line(tracker))
    console.print(market_panel(tracker.market_summary()))
    console.print(market_table(tracker.assets[:MARKET_ROWS], f"Top {MARKET_ROWS} by market cap"))


async def ask(prompt: str, **kwargs) -> str:
    """Prompt on a worker thread so scheduled refreshes keep running."""
    return await asyncio.to_thread(Prompt.ask, prompt, **kwargs)


async def confirm(prompt: str, default: bool = False) -> bool:
    return await asyncio.to_thread(Confirm.ask, prompt, default=default)


async def _pick_asset(tracker: PortfolioTracker) -> Optional[Asset]:
    term = await ask("  Search coin (name or symbol)")
    matches = tracker.search_assets(term)[:SEARCH_RESULTS]
    if not matches:
        console.print("[red]  No matching coins.[/red]")
        return None

    console.print(market_table(matches, "Matches", numbered=True))
    index = await ask("  Coin #", choices=[str(i) for i in range(1, len(matches) + 1)], default="1")
    return matches[int(index) - 1]


async def _pick_holding(
    tracker: PortfolioTracker, sort_key: SortKey
) -> Optional[ValuedHolding]:
    holdings = tracker.sorted_holdings(sort_key)
    if not holdings:
        console.print("[dim]  Nothing to select.[/dim]")
        return None

    console.print(portfolio_table(tracker.portfolio, holdings, "Holdings"))
    index = await ask("  Holding #", choices=[str(i) for i in range(1, len(holdings) + 1)])
    return holdings[int(index) - 1]


async def add_flow(tracker: PortfolioTracker) -> None:
    asset = await _pick_asset(tracker)
    if asset is None:
        return

    amount = await ask(f"  Amount of {asset.symbol.upper()}")
    price = await ask("  Purchase price (USD)", default=str(asset.current_price))
    if tracker.add_holding(asset.id, amount, price) is None:
        console.print("[red]  Invalid amount or price, nothing added.[/red]")
    else:
        console.print(f"[green]  Added {asset.name}.[/green]")


async def edit_flow(tracker: PortfolioTracker, sort_key: SortKey) -> None:
    selected = await _pick_holding(tracker, sort_key)
    if selected is None:
        return

    amount = await ask("  Amount", default=str(selected.amount))
    price = await ask("  Purchase price (USD)", default=str(selected.purchase_price))
    if tracker.update_holding(selected.holding_id, amount, price) is None:
        console.print("[red]  Invalid amount or price, holding unchanged.[/red]")


async def remove_flow(tracker: PortfolioTracker, sort_key: SortKey) -> None:
    selected = await _pick_holding(tracker, sort_key)
    if selected is None:
        return

    if await confirm(f"  Remove {selected.name} from your portfolio?"):
        tracker.remove_holding(selected.holding_id)


async def run_cli_loop(tracker: PortfolioTracker) -> None:
    sort_key = SortKey.VALUE

    while True:
        console.print()
        command = await ask("[bold]Command[/bold]", choices=COMMANDS, default="portfolio")
        console.print()

        if command == "quit":
            break
        elif command == "portfolio":
            display_portfolio(tracker, sort_key)
        elif command == "market":
            display_market(tracker)
        elif command == "add":
            await add_flow(tracker)
        elif command == "edit":
            await edit_flow(tracker, sort_key)
        elif command == "remove":
            await remove_flow(tracker, sort_key)
        elif command == "sort":
            choice = await ask(
                "  Sort by", choices=[k.value for k in SortKey], default=sort_key.value
            )
            sort_key = SortKey(choice)
            display_portfolio(tracker, sort_key)
        elif command == "search":
            term = await ask("  Search")
            console.print(market_table(tracker.search_assets(term)[:MARKET_ROWS], "Search results"))
        elif command == "refresh":
            with console.status("[bold]Refreshing prices...[/bold]"):
                await tracker.fetcher.refresh()
            display_portfolio(tracker, sort_key)


async def run() -> None:
    storage_config = StorageConfig.from_env()
    source = CoinGeckoSource(CoinGeckoConfig.from_env())
    tracker = PortfolioTracker(
        PriceCatalogFetcher(source),
        HoldingsStore(JsonFileStore(storage_config.DEFAULT_PATH), storage_config),
    )

    try:
        with console.status("[bold]Fetching market data from CoinGecko...[/bold]"):
            await tracker.start()
        display_portfolio(tracker, SortKey.VALUE)
        await run_cli_loop(tracker)
    finally:
        await tracker.stop()
        await source.close()


def main() -> None:
    """Entry point for the CLI application."""
    logging.basicConfig(
        level=logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    console.print()
    console.print(
        Panel("[bold]Crypto Portfolio[/bold] · live valuation", box=box.DOUBLE)
    )

    try:
        asyncio.run(run())
    except (KeyboardInterrupt, EOFError):
        console.print()


if __name__ == "__main__":
    main()
