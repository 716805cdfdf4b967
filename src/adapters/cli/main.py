"""
adapters.cli.main - Operator CLI for the Smart Recipe Generator.

Uses the same ServiceFactory, ledger, and PaymentService as the REST API
so balance changes and reconciliation behave identically.

Commands
--------
  init-db        Create or upgrade the database schema
  balance        Show a customer's credit balance
  grant          Add credits to a customer (support adjustments)
  transactions   List payment transactions, optionally only anomalies
  refresh        Re-check a PENDING transaction with its gateway

Usage
-----
  python run_cli.py balance alice@example.com
  python run_cli.py grant alice@example.com 20
  python run_cli.py transactions --anomalies
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Optional

# ── Ensure src/ is on the path ──
_SRC = Path(__file__).resolve().parent.parent.parent
sys.path.insert(0, str(_SRC))

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from domain.entities import Customer, TransactionStatus
from domain.exceptions import CustomerNotFoundError, TransactionNotFoundError
from factory import ServiceFactory
from infrastructure.config import Settings

__version__ = "1.0.0"

console = Console()
app = typer.Typer(
    help="Smart Recipe Generator admin CLI",
    add_completion=False,
    no_args_is_help=True,
)

_STATUS_STYLE = {
    TransactionStatus.PENDING: "yellow",
    TransactionStatus.COMPLETED: "green",
    TransactionStatus.FAILED: "red",
}


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

async def _make_factory() -> ServiceFactory:
    """Create a ServiceFactory with the schema up to date."""
    factory = ServiceFactory(Settings.from_env())
    await factory.initialize()
    return factory


async def _require_customer(factory: ServiceFactory, email: str) -> Customer:
    customer = await factory.create_customer_repository().get_by_email(email)
    if customer is None:
        console.print(f"[bold red]No customer with email '{email}'.[/bold red]")
        raise typer.Exit(code=1)
    return customer


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"smart-recipe-admin v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-v",
        callback=_version_callback, is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Smart Recipe Generator admin CLI."""


# ---------------------------------------------------------------------------
# Commands: Database
# ---------------------------------------------------------------------------

@app.command("init-db")
def init_db() -> None:
    """Create or upgrade the database schema."""
    async def _run() -> None:
        factory = await _make_factory()
        console.print(f"[green]Schema ready[/green] at [bold]{factory.config.db_path}[/bold]")

    asyncio.run(_run())


# ---------------------------------------------------------------------------
# Commands: Credits
# ---------------------------------------------------------------------------

@app.command()
def balance(email: str = typer.Argument(..., help="Customer email.")) -> None:
    """Show a customer's credit balance."""
    async def _run() -> None:
        factory = await _make_factory()
        customer = await _require_customer(factory, email)

        t = Table(box=box.SIMPLE, show_header=False, padding=(0, 2))
        t.add_column("Field", style="bold")
        t.add_column("Value")
        t.add_row("Customer", f"#{customer.id}")
        if customer.full_name:
            t.add_row("Name", customer.full_name)
        t.add_row("Email", customer.email)
        t.add_row("Credits", str(customer.credits))
        console.print(Panel(t, title="Balance", border_style="blue"))

    asyncio.run(_run())


@app.command()
def grant(
    email: str = typer.Argument(..., help="Customer email."),
    amount: int = typer.Argument(..., min=1, help="Credits to add."),
) -> None:
    """Add credits to a customer's balance."""
    async def _run() -> None:
        factory = await _make_factory()
        customer = await _require_customer(factory, email)
        try:
            new_balance = await factory.create_credit_ledger().credit(customer.id, amount)
        except CustomerNotFoundError:
            console.print(f"[bold red]Customer '{email}' is no longer active.[/bold red]")
            raise typer.Exit(code=1)
        console.print(
            f"[green]Granted {amount} credits[/green] to [bold]{email}[/bold] "
            f"(balance {new_balance})."
        )

    asyncio.run(_run())


# ---------------------------------------------------------------------------
# Commands: Payments
# ---------------------------------------------------------------------------

@app.command()
def transactions(
    status: Optional[str] = typer.Option(
        None, "--status", "-s",
        help="Only PENDING, COMPLETED or FAILED transactions.",
    ),
    anomalies: bool = typer.Option(
        False, "--anomalies", "-a",
        help="Only transactions held for manual review.",
    ),
    limit: int = typer.Option(50, "--limit", "-n", min=1),
) -> None:
    """List payment transactions, newest first."""
    status_filter = None
    if status:
        try:
            status_filter = TransactionStatus(status.upper())
        except ValueError:
            console.print(f"[bold red]Unknown status '{status}'.[/bold red]")
            raise typer.Exit(code=1)

    async def _run() -> None:
        factory = await _make_factory()
        rows = await factory.create_payment_service().list_transactions(
            status=status_filter, anomalies_only=anomalies, limit=limit,
        )
        if not rows:
            console.print("[dim]No transactions.[/dim]")
            return

        t = Table(box=box.SIMPLE_HEAD)
        t.add_column("Transaction", style="bold")
        t.add_column("Customer")
        t.add_column("Gateway")
        t.add_column("Credits", justify="right")
        t.add_column("Amount", justify="right")
        t.add_column("Status")
        t.add_column("Created")
        t.add_column("Review note")
        for txn in rows:
            style = _STATUS_STYLE[txn.status]
            t.add_row(
                txn.transaction_id,
                str(txn.customer_id),
                txn.gateway,
                str(txn.credits),
                f"{txn.amount} {txn.currency}",
                f"[{style}]{txn.status.value}[/{style}]",
                txn.created_at[:19],
                txn.review_note or "",
            )
        console.print(t)

    asyncio.run(_run())


@app.command()
def refresh(
    transaction_id: str = typer.Argument(..., help="Transaction to re-check."),
) -> None:
    """Ask the gateway for the live status of a PENDING transaction."""
    async def _run() -> None:
        factory = await _make_factory()
        try:
            txn = await factory.create_payment_service().refresh_by_id(transaction_id)
        except TransactionNotFoundError:
            console.print(f"[bold red]Transaction '{transaction_id}' not found.[/bold red]")
            raise typer.Exit(code=1)

        style = _STATUS_STYLE[txn.status]
        note = f"\n[bold red]Held for review:[/bold red] {txn.review_note}" if txn.review_note else ""
        console.print(Panel(
            f"[bold]{txn.transaction_id}[/bold] via {txn.gateway}\n"
            f"Status: [{style}]{txn.status.value}[/{style}]{note}",
            border_style=style,
        ))

    asyncio.run(_run())


if __name__ == "__main__":
    app()
