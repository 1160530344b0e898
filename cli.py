"""PagerDuty for Compass — CLI.

Runs the data provider pipeline or the sync trigger once, outside the HTTP
server, and renders the result in the terminal using Rich. Uses the same
environment configuration as the server (see core/config.py).

Usage:
    uv run python cli.py fetch https://acme.pagerduty.com/service-directory/PABC123
    uv run python cli.py set-token
    uv run python cli.py sync <site id>

Exit codes for fetch: 0 ok, 2 PagerDuty unavailable, 3 malformed upstream data.
"""

import argparse
import asyncio
import sys

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from core.assembler import UNKNOWN_PROVIDER_ID
from core.bootstrap import build_compass_gateway, build_data_provider, build_secret_store
from core.config import Settings
from core.routing import InvalidRequestUrl
from core.secrets import API_TOKEN_KEY, FileSecretStore
from core.sync import SITE_ARI_PREFIX, trigger_sync
from schemas.compass import DataProviderResponse, IncidentEventState
from schemas.result import HardFailure, SoftFailure

console = Console()

EXIT_OK = 0
EXIT_SOFT_FAILURE = 2
EXIT_HARD_FAILURE = 3


# ── Rendering ─────────────────────────────────────────────────────────────────

def render_response(response: DataProviderResponse) -> None:
    """Print a metric panel and an incident table for one response."""
    if response.provider_id == UNKNOWN_PROVIDER_ID:
        console.print(Panel("No PagerDuty service matched (or no token is set).",
                            title=response.provider_id, border_style="yellow"))
        return

    metrics = "\n".join(
        f"{value.metric_definition}: [bold]{value.value:g}[/bold] min"
        if value.built_in else f"{value.metric_definition}: [bold]{value.value:g}[/bold]"
        for value in response.metric_values
    ) or "no metric values"
    console.print(Panel(metrics, title=response.provider_id, border_style="cyan"))

    table = Table(title=f"Incidents ({len(response.incidents)})")
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("State")
    table.add_column("Last updated")

    for incident in response.incidents:
        colour = "green" if incident.state == IncidentEventState.RESOLVED else "red"
        table.add_row(
            incident.id,
            incident.display_name,
            f"[{colour}]{incident.state.value}[/{colour}]",
            incident.last_updated,
        )

    console.print(table)


# ── Commands ──────────────────────────────────────────────────────────────────

async def fetch(url: str, settings: Settings) -> int:
    provider = build_data_provider(settings, build_secret_store(settings))

    try:
        result = await provider.resolve(url)
    except InvalidRequestUrl as exc:
        console.print(f"[red]{exc}[/red]")
        return EXIT_HARD_FAILURE

    if isinstance(result, SoftFailure):
        console.print(f"[yellow]PagerDuty unavailable, try again later:[/yellow] {result.reason}")
        return EXIT_SOFT_FAILURE
    if isinstance(result, HardFailure):
        console.print(f"[red]Malformed PagerDuty data:[/red] {result.detail}")
        return EXIT_HARD_FAILURE

    render_response(result.response)
    return EXIT_OK


async def set_token(settings: Settings) -> int:
    if settings.secret_store_path is None:
        console.print("[red]SECRET_STORE_PATH is not set; a token stored now would be lost on exit.[/red]")
        return 1

    token = Prompt.ask("PagerDuty API token", password=True, console=console)
    if not token:
        console.print("[red]Empty token, nothing stored.[/red]")
        return 1

    await FileSecretStore(settings.secret_store_path).set_secret(API_TOKEN_KEY, token)
    console.print(f"Token stored in {settings.secret_store_path}.")
    return EXIT_OK


async def sync(site_id: str, settings: Settings) -> int:
    gateway = build_compass_gateway(settings)
    result = await trigger_sync(
        {"installContext": f"{SITE_ARI_PREFIX}{site_id}"}, gateway, settings.app_id
    )
    colour = "green" if result.status_code == 200 else "red"
    console.print(f"[{colour}]HTTP {result.status_code}[/{colour}] {result.body.strip()}")
    return EXIT_OK if result.status_code == 200 else 1


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="PagerDuty for Compass")
    commands = parser.add_subparsers(dest="command", required=True)

    fetch_cmd = commands.add_parser("fetch", help="Run the data provider for one link URL.")
    fetch_cmd.add_argument("url")

    commands.add_parser("set-token", help="Store the PagerDuty API token.")

    sync_cmd = commands.add_parser("sync", help="Re-sync link associations for a site.")
    sync_cmd.add_argument("site_id")

    args = parser.parse_args(argv)
    settings = Settings.from_env()

    if args.command == "fetch":
        return asyncio.run(fetch(args.url, settings))
    if args.command == "set-token":
        return asyncio.run(set_token(settings))
    return asyncio.run(sync(args.site_id, settings))


if __name__ == "__main__":
    sys.exit(main())
