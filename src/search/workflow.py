"""
Market Search Workflow.

Runs a market search from the command line and prints the enriched companies.

    python -m src.search.workflow "dental practice management software"
    python -m src.search.workflow "fleet telematics" --count 8 --no-randomize
"""
import asyncio
import logging
from datetime import datetime
from typing import Optional

from rich.console import Console
from rich.table import Table

from src.core.config import settings
from src.core.database import init_db
from src.search.data_types import CompanySuccess, SearchRunResult
from src.search.scraper import SiteScraper
from src.search.service import build_search_service
from src.search.store import SearchStore

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)


async def run_market_search(
    query: str,
    owner_id: str = "default",
    desired_count: Optional[int] = None,
    randomize: bool = True,
) -> SearchRunResult:
    console = Console()
    console.print(f"[bold blue]Running market search: '{query}'[/bold blue]")

    await init_db()
    store = SearchStore()

    async with SiteScraper() as scraper:
        service = build_search_service(scraper, store=store)
        result = await service.run_search(query, owner_id=owner_id, desired_count=desired_count, randomize=randomize)
        # Contact discovery and the aggregate insight still need the scraper's session
        await service.drain()

    print_report(console, result)

    if result.search_id is not None:
        search = await store.get_search(result.search_id, owner_id)
        if search and search.get("global_opportunities"):
            console.print(f"\n[bold]Market opportunities[/bold]\n{search['global_opportunities']}")

    return result


def print_report(console, result: SearchRunResult):
    """Print summary report to console"""
    console.print("\n[bold]MARKET SEARCH REPORT[/bold]")
    console.print(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M')}")
    console.print(f"Search: {result.search_id}  Niche: {result.niche_key}")

    if result.selection:
        s = result.selection
        console.print(
            f"Selected {s.fresh + s.repeat_unseen_saved + s.repeat_seen}/{s.requested} "
            f"(fresh {s.fresh}, repeat {s.repeat_unseen_saved}, saved {s.repeat_seen})"
        )

    if not result.outcomes:
        console.print(f"\n[yellow]{result.message or 'No companies processed.'}[/yellow]")
        return

    table = Table(title="Companies")
    table.add_column("Company", style="cyan")
    table.add_column("Website")
    table.add_column("Industry", style="magenta")
    table.add_column("Fit", justify="right")
    table.add_column("Summary / Error")

    for outcome in result.outcomes:
        if isinstance(outcome, CompanySuccess):
            payload = outcome.extracted
            table.add_row(
                outcome.name,
                outcome.website or "",
                payload.primary_industry,
                f"{payload.acquisition_fit_score:.1f}",
                payload.summary[:120],
            )
        else:
            table.add_row(
                outcome.name,
                outcome.website or "",
                "",
                "",
                f"[red]{outcome.error_message}[/red]",
            )

    console.print(table)


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description="Run a market search")
    parser.add_argument("query", help="Free-text market or niche query")
    parser.add_argument("--owner", default="default", help="Owner id used for niche history (default: default)")
    parser.add_argument("--count", type=int, default=None, help=f"Companies to enrich (default: {settings.desired_company_count})")
    parser.add_argument("--no-randomize", action="store_false", dest="randomize", help="Keep discovery order inside each tier")
    parser.set_defaults(randomize=True)

    args = parser.parse_args()

    asyncio.run(run_market_search(args.query, owner_id=args.owner, desired_count=args.count, randomize=args.randomize))
