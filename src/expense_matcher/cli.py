import logging
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from expense_matcher.database.connection import DatabaseConfig, DatabaseManager
from expense_matcher.repositories.sqlite_entry_repository import SQLiteEntryRepository
from expense_matcher.repositories.sqlite_learned_repository import SQLiteLearnedVocabularyRepository
from expense_matcher.search import highlight_matches
from expense_matcher.services.categorization_service import CategorizationService

app = typer.Typer(
    name="expense-matcher",
    help="Categorize and search your expense descriptions",
    add_completion=False,
)

console = Console()

DEFAULT_DB_PATH = Path("data/expense_matcher.db")


class State:
    verbose: bool = False
    service: Optional[CategorizationService] = None


state = State()


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
        force=True,
    )


def _fail(e: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
    if state.verbose:
        console.print_exception()
    raise typer.Exit(code=1)


def _confidence_color(confidence: float) -> str:
    if confidence >= 0.8:
        return "green"
    if confidence >= 0.5:
        return "yellow"
    return "red"


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Enable verbose output",
    ),
    db_path: Path = typer.Option(
        DEFAULT_DB_PATH,
        "--db",
        help="Path to the SQLite database",
    ),
):
    """
    Expense Matcher - Classify, log, correct and search your expenses.
    """
    configure_logging(verbose)

    if state.service is None:
        db_manager = DatabaseManager(DatabaseConfig(db_path))
        state.service = CategorizationService(
            entry_repository=SQLiteEntryRepository(db_manager),
            learned_repository=SQLiteLearnedVocabularyRepository(db_manager),
        )

    state.verbose = verbose


@app.command(name="classify")
def classify(
    text: str = typer.Argument(..., help="Expense description"),
    hour: Optional[int] = typer.Option(
        None,
        "--hour",
        help="Hour of day (0-23) to use for time context",
        min=0,
        max=23,
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Show every candidate the engine considered",
    ),
):
    """
    Classify a description without saving it.

    Examples:
        expense-matcher classify "sbux coffee run"
        expense-matcher classify "grab something quick" --hour 8 --debug
    """
    try:
        if debug:
            report = state.service.engine.debug_match(text, hour=hour)
            result = report.result
        else:
            report = None
            result = state.service.classify(text, hour=hour)

        color = _confidence_color(result.confidence)
        console.print(Panel.fit(
            f"[bold]Category:[/bold] [{color}]{escape(str(result.category))}[/{color}]\n"
            f"[bold]Confidence:[/bold] {result.confidence:.0%}\n"
            f"[bold]Algorithm:[/bold] {result.algorithm.value}\n"
            f"[bold]Why:[/bold] {escape(result.explanation)}",
            title=f"[bold cyan]{escape(text)}[/bold cyan]",
            border_style="cyan",
        ))

        if result.alternatives:
            table = Table(title="Alternatives", box=None, padding=(0, 2))
            table.add_column("Category", style="cyan")
            table.add_column("Confidence", justify="right")
            table.add_column("Algorithm", style="dim")
            for alternative in result.alternatives:
                table.add_row(
                    escape(str(alternative.category)),
                    f"{alternative.confidence:.0%}",
                    alternative.algorithm.value,
                )
            console.print(table)

        if report is not None:
            console.print(f"\n[bold]Variants:[/bold] {escape(', '.join(report.variants)) or '-'}")
            candidates = Table(title="Candidates", padding=(0, 1))
            candidates.add_column("Category", style="cyan")
            candidates.add_column("Algorithm")
            candidates.add_column("Score", justify="right")
            candidates.add_column("Confidence", justify="right")
            candidates.add_column("Explanation", style="dim")
            for candidate in report.exact_hits + report.candidates:
                candidates.add_row(
                    escape(str(candidate.category)),
                    candidate.algorithm.value,
                    f"{candidate.score:.2f}",
                    f"{candidate.confidence:.2f}",
                    escape(candidate.explanation),
                )
            console.print(candidates)
            for line in result.trace:
                console.print(f"[dim]→ {escape(line)}[/dim]")

    except Exception as e:
        _fail(e)


@app.command(name="log")
def log_entry(
    description: str = typer.Argument(..., help="What the money was spent on"),
    amount: str = typer.Option(..., "--amount", "-a", help="Amount spent"),
    category: Optional[str] = typer.Option(
        None,
        "--category", "-c",
        help="Category (skips automatic classification)",
    ),
):
    """
    Log a new expense entry.

    Examples:
        expense-matcher log "sbux coffee run" --amount 5.40
        expense-matcher log "dog food" --amount 30 --category "Pet Supplies"
    """
    try:
        try:
            value = Decimal(amount)
        except InvalidOperation:
            raise ValueError(f"Invalid amount: {amount}")

        result = state.service.log_entry(description, value, category=category)
        entry = result.entry

        console.print(f"[bold green]✓ Logged entry #{entry.id}[/bold green]")
        console.print(f"  {escape(entry.description)}  [red]${entry.amount:,.2f}[/red]")
        if result.auto_categorized:
            color = _confidence_color(result.classification.confidence)
            console.print(
                f"  Category: [{color}]{escape(str(entry.category))}[/{color}] "
                f"({result.classification.confidence:.0%} - {escape(result.classification.explanation)})"
            )
            console.print(f"[dim]  Wrong? expense-matcher correct {entry.id} \"<category>\"[/dim]")
        else:
            console.print(f"  Category: [cyan]{escape(str(entry.category))}[/cyan]")

    except Exception as e:
        _fail(e)


@app.command(name="correct")
def correct(
    entry_id: int = typer.Argument(..., help="ID of the entry to correct"),
    category: str = typer.Argument(..., help="Correct category"),
):
    """
    Correct an entry's category. The engine learns from it.

    Examples:
        expense-matcher correct 12 Electronics
    """
    try:
        entry = state.service.correct_entry(entry_id, category)
        console.print(f"[bold green]✓ Entry #{entry.id} is now {escape(str(entry.category))}[/bold green]")
        if state.verbose:
            console.print(f"[dim]→ Learned '{escape(entry.description)}' as {escape(str(entry.category))}[/dim]")

    except Exception as e:
        _fail(e)


@app.command(name="search")
def search(
    query: str = typer.Argument(..., help="Search text"),
    typos: Optional[int] = typer.Option(
        None,
        "--typos", "-t",
        help="Retry allowing this many typos when nothing matches",
        min=0,
    ),
):
    """
    Search logged entries.

    Examples:
        expense-matcher search starbucks
        expense-matcher search stabucks --typos 2
    """
    try:
        hits = state.service.search_entries(query, max_typos=typos)

        if not hits:
            console.print(Panel(
                f"[yellow]No entries match '{escape(query)}'[/yellow]",
                title="No Results",
                border_style="yellow",
            ))
            return

        table = Table(title=f"Results for '{escape(query)}'", padding=(0, 1))
        table.add_column("ID", style="dim", justify="right")
        table.add_column("Description", style="white", max_width=40)
        table.add_column("Category", style="cyan")
        table.add_column("Amount", justify="right", style="red")
        table.add_column("Score", justify="right")

        for hit in hits:
            entry = hit.item
            highlight = hit.highlights.get("description")
            spans = highlight.highlights if highlight is not None else ()
            description = highlight_matches(
                entry.description, spans, "[bold yellow]", "[/bold yellow]", escape=escape
            )
            table.add_row(
                str(entry.id),
                description,
                escape(str(entry.category)),
                f"${entry.amount:,.2f}",
                f"{hit.score:.2f}",
            )

        console.print(table)

    except Exception as e:
        _fail(e)


@app.command(name="history")
def history(
    category: Optional[str] = typer.Option(
        None,
        "--category", "-c",
        help="Only show this category",
    ),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of entries to show", min=1),
):
    """
    Show logged entries, newest first.

    Examples:
        expense-matcher history
        expense-matcher history --category Coffee
    """
    try:
        entries = state.service.history(category)

        if not entries:
            console.print("[yellow]No entries logged yet[/yellow]")
            return

        table = Table(show_header=True, padding=(0, 1))
        table.add_column("ID", style="dim", justify="right")
        table.add_column("Date", style="cyan", width=16)
        table.add_column("Description", style="white", max_width=40)
        table.add_column("Category", style="magenta")
        table.add_column("Amount", justify="right", style="red")

        for entry in entries[:limit]:
            desc = entry.description[:37] + "..." if len(entry.description) > 40 else entry.description
            table.add_row(
                str(entry.id),
                entry.created_at.strftime("%Y-%m-%d %H:%M"),
                escape(desc),
                escape(str(entry.category)),
                f"${entry.amount:,.2f}",
            )

        console.print(table)

        if len(entries) > limit:
            console.print(f"\n[dim]Showing {limit} of {len(entries)} entries[/dim]")

    except Exception as e:
        _fail(e)


@app.command(name="stats")
def stats():
    """
    Show spending per category and what the engine has learned.
    """
    try:
        summary = state.service.get_stats()

        console.print(Panel(
            f"[bold]Entries:[/bold] {summary.entry_count}\n"
            f"[bold]Total:[/bold]   ${summary.total_amount:,.2f}",
            title="[bold]Spending[/bold]",
            border_style="cyan",
            padding=(1, 2),
        ))

        if summary.top_categories:
            table = Table(show_header=True, box=None, padding=(0, 2))
            table.add_column("Category", style="cyan", no_wrap=True)
            table.add_column("Amount", justify="right", style="red")
            table.add_column("% of Total", justify="right", style="dim")
            for label, amount in summary.top_categories:
                percentage = (amount / summary.total_amount * 100) if summary.total_amount > 0 else 0
                table.add_row(escape(label), f"${amount:,.2f}", f"{percentage:.1f}%")
            console.print(table)

        engine_table = Table(title="Engine", box=None, padding=(0, 2))
        engine_table.add_column("Metric", style="cyan")
        engine_table.add_column("Value", justify="right")
        for name, value in summary.engine.items():
            engine_table.add_row(name.replace("_", " ").capitalize(), str(value))
        console.print(engine_table)

    except Exception as e:
        _fail(e)


def cli_main():
    """Entry point for the CLI"""
    app()


if __name__ == "__main__":
    cli_main()
