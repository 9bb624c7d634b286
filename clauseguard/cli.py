"""
Command-line interface for ClauseGuard.

Analyze contracts, re-run analyses and inspect stored results. Without
DATABASE_URL records live in memory for the duration of one command only.
"""

import asyncio
import json
import mimetypes
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from clauseguard.analysis.orchestrator import ContractAnalysisService, create_analysis_service
from clauseguard.models import AnalysisOutcome, FileType, ProcessingStatus
from clauseguard.utils.errors import ClauseGuardError
from clauseguard.utils.logging import setup_logging

app = typer.Typer(
    name="clauseguard",
    help="Contract risk analysis with AI and local fallback",
    add_completion=False,
)
console = Console()

RATING_STYLES = {"Safe": "green", "Moderate": "yellow", "Risky": "dark_orange", "Dangerous": "red"}


def _guess_mime_type(path: Path) -> Optional[str]:
    if path.suffix.lower() == ".docx":
        return FileType.DOCX.mime_type
    mime_type, _ = mimetypes.guess_type(path.name)
    return mime_type


def _print_outcome(outcome: AnalysisOutcome) -> None:
    analysis = outcome.analysis.analysis
    metrics = analysis["executive_summary"]["key_metrics"]
    rating = metrics.get("safety_rating", "")
    style = RATING_STYLES.get(rating, "white")

    console.print(
        Panel(
            f"[bold]{outcome.contract.title}[/bold]\n"
            f"Contract ID: {outcome.contract.id}\n"
            f"Type: {analysis['metadata'].get('contractType', '')}\n"
            f"Risk score: [{style}]{outcome.analysis.risk_score}/100 ({rating})[/{style}]\n"
            f"Pages: {outcome.contract.page_count}  Words: {outcome.contract.word_count}",
            title="Analysis complete",
            border_style=style,
        )
    )

    missing = analysis["clause_analysis"].get("missing_clauses", [])
    if missing:
        table = Table(title="Missing clauses")
        table.add_column("Clause", style="cyan")
        table.add_column("Importance", justify="center")
        table.add_column("Risk if missing")
        for clause in missing:
            table.add_row(
                str(clause.get("clauseType", "")),
                str(clause.get("importance", "")),
                str(clause.get("riskIfMissing", "")),
            )
        console.print(table)

    recommendations = analysis["legal_insights"].get("contextual_recommendations", [])
    for rec in recommendations:
        console.print(f"  • [bold]{rec.get('title', '')}[/bold] ({rec.get('priority', '')})")


async def _with_service(operation):
    service: ContractAnalysisService = create_analysis_service()
    try:
        return await operation(service)
    finally:
        await service.close()


@app.command()
def analyze(
    file_path: Path = typer.Argument(..., help="PDF or DOCX contract", exists=True, dir_okay=False),
    user_id: str = typer.Option("local", "--user", "-u", help="Owner of the contract"),
    as_json: bool = typer.Option(False, "--json", help="Print the full analysis as JSON"),
):
    """Upload and analyze a contract."""

    async def _analyze(service: ContractAnalysisService) -> AnalysisOutcome:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            progress.add_task(f"Analyzing {file_path.name}...", total=None)
            return await service.upload_and_analyze(
                data=file_path.read_bytes(),
                file_name=file_path.name,
                mime_type=_guess_mime_type(file_path),
                user_id=user_id,
            )

    try:
        outcome = asyncio.run(_with_service(_analyze))
    except ClauseGuardError as e:
        console.print(f"[red]✗[/red] {e.message}")
        raise typer.Exit(1)

    if as_json:
        console.print_json(json.dumps(outcome.analysis.analysis, default=str))
    else:
        _print_outcome(outcome)


@app.command()
def reanalyze(
    contract_id: str = typer.Argument(..., help="Stored contract ID"),
):
    """Run the analysis again for a stored contract."""
    try:
        outcome = asyncio.run(_with_service(lambda service: service.reanalyze(contract_id)))
    except ClauseGuardError as e:
        console.print(f"[red]✗[/red] {e.message}")
        raise typer.Exit(1)

    _print_outcome(outcome)


@app.command()
def show(
    contract_id: str = typer.Argument(..., help="Stored contract ID"),
    legacy: bool = typer.Option(False, "--legacy", help="Show the flat legacy view"),
):
    """Print the current analysis of a contract as JSON."""
    try:
        analysis = asyncio.run(
            _with_service(lambda service: service.get_analysis(contract_id, legacy=legacy))
        )
    except ClauseGuardError as e:
        console.print(f"[red]✗[/red] {e.message}")
        raise typer.Exit(1)

    if analysis is None:
        console.print(f"[yellow]No completed analysis for contract {contract_id}[/yellow]")
        raise typer.Exit(1)
    console.print_json(json.dumps(analysis, default=str))


@app.command("list")
def list_contracts(
    user_id: str = typer.Option("local", "--user", "-u", help="Owner of the contracts"),
):
    """List a user's contracts."""

    async def _list(service: ContractAnalysisService):
        contracts = await service.list_contracts(user_id)
        completed = await service.count_contracts(user_id, ProcessingStatus.COMPLETED)
        return contracts, completed

    try:
        contracts, completed = asyncio.run(_with_service(_list))
    except ClauseGuardError as e:
        console.print(f"[red]✗[/red] {e.message}")
        raise typer.Exit(1)

    if not contracts:
        console.print("No contracts found")
        return

    table = Table(title=f"Contracts for {user_id} ({completed}/{len(contracts)} completed)")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Status", justify="center")
    table.add_column("Pages", justify="right")
    table.add_column("Created", style="dim")
    for contract in contracts:
        table.add_row(
            contract.id,
            contract.title,
            contract.status.value,
            str(contract.page_count),
            contract.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@app.command()
def chat(
    contract_id: str = typer.Argument(..., help="Stored contract ID"),
    question: Optional[str] = typer.Argument(None, help="Question about the contract"),
    user_id: str = typer.Option("local", "--user", "-u", help="Owner of the contract"),
    clear: bool = typer.Option(False, "--clear", help="Delete the chat history instead"),
):
    """Ask a question about a contract, or print its chat history."""

    async def _chat(service: ContractAnalysisService):
        if clear:
            return await service.clear_chat_history(contract_id, user_id)
        if question is not None:
            return [await service.ask(contract_id, user_id, question)]
        return await service.get_chat_history(contract_id, user_id)

    try:
        result = asyncio.run(_with_service(_chat))
    except ClauseGuardError as e:
        console.print(f"[red]✗[/red] {e.message}")
        raise typer.Exit(1)

    if clear:
        console.print(f"Deleted {result} message(s)")
        return
    if not result:
        console.print("No chat history")
        return

    for exchange in result:
        console.print(f"[bold cyan]You:[/bold cyan] {escape(exchange.message)}", highlight=False)
        console.print(f"[bold]ClauseGuard:[/bold] {escape(exchange.response)}\n", highlight=False)


@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """ClauseGuard - contract risk analysis."""
    setup_logging(log_level="DEBUG" if debug else "INFO")


if __name__ == "__main__":
    app()
