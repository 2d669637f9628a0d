"""Typer CLI for TripWise."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
import yaml
from rich.console import Console
from rich.table import Table

from tripwise.cascade import ModelCascade
from tripwise.config import get_settings
from tripwise.errors import GenerationError
from tripwise.models import GenerationTrace, StreamChunk
from tripwise.orchestrator import RequestOrchestrator
from tripwise.prompt import ANSWER_COUNT, QUESTIONS
from tripwise.providers import create_provider
from tripwise.retry import RetryPolicy
from tripwise.streaming import StreamAdapter
from tripwise.validation import AnswerCorrector, validate_answer, validate_answers

app = typer.Typer(
    name="tripwise",
    help="TripWise — travel itineraries from a cascade of LLMs",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
console = Console()


@app.command()
def tiers() -> None:
    """Show the model cascade, richest tier first."""
    settings = get_settings()
    try:
        cascade = ModelCascade.from_settings(settings)
    except ValueError as e:
        console.print(f"[red]Invalid cascade configuration: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title="Model Cascade")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Model ID", style="magenta")
    table.add_column("Max tokens", justify="right")
    table.add_column("Temp", justify="right")
    table.add_column("Tools", justify="center")
    table.add_column("Fallback note", style="dim", max_width=50)

    for i, tier in enumerate(cascade):
        table.add_row(
            str(i),
            tier.id,
            str(tier.max_output_tokens),
            f"{tier.temperature:.1f}",
            "[green]Y[/green]" if tier.supports_tools else "-",
            tier.fallback_note or "-",
        )

    console.print(table)
    max_attempts = cascade.max_attempts(RetryPolicy.from_settings(settings))
    console.print(f"\n[dim]At most {max_attempts} attempts per itinerary[/dim]")


def _load_answers(path: Path) -> list[str]:
    with open(path) as f:
        data = yaml.safe_load(f)
    if not isinstance(data, list):
        raise ValueError("answers file must contain a YAML list")
    return [str(a) for a in data]


def _ask_answers() -> list[str]:
    answers: list[str] = []
    for index, question in enumerate(QUESTIONS):
        while True:
            text = typer.prompt(question)
            result = validate_answer(index, text)
            if result.valid:
                break
            console.print(f"[yellow]{result.message}[/yellow]")
        answers.append(text)
    return answers


def _print_trace(trace: GenerationTrace) -> None:
    table = Table(title=f"Attempts ({trace.request_id})")
    table.add_column("Tier", style="magenta")
    table.add_column("Attempt", justify="right")
    table.add_column("Outcome")
    table.add_column("Error", style="yellow")
    table.add_column("Detail", style="dim", max_width=50)
    for a in trace.attempts:
        table.add_row(
            a.tier_id,
            str(a.attempt_index + 1),
            a.outcome.value,
            a.error_kind.value if a.error_kind else "-",
            a.detail or "-",
        )
    console.print()
    console.print(table)
    console.print(f"[dim]  Termination: {trace.termination_state.value}[/dim]")


def _print_chunk(chunk: StreamChunk) -> None:
    if chunk.reset:
        console.print("\n[yellow]Model failed part way, starting over...[/yellow]\n")
    elif not chunk.is_final:
        console.print(chunk.text, end="", markup=False, highlight=False, soft_wrap=True)


@app.command()
def plan(
    answers_file: Path | None = typer.Option(
        None, "--answers", "-a", help="YAML list with one answer per question"
    ),
    stream: bool = typer.Option(False, "--stream", "-s", help="Print the itinerary as it arrives"),
    show_trace: bool = typer.Option(False, "--trace", "-t", help="Show every attempt made"),
) -> None:
    """Plan a trip: answer the questions, then generate the itinerary."""
    if answers_file is not None:
        try:
            answers = _load_answers(answers_file)
            failures = validate_answers(answers)
        except (OSError, yaml.YAMLError, ValueError) as e:
            console.print(f"[red]Could not read answers: {e}[/red]")
            raise typer.Exit(1)
        if failures:
            for index, result in failures.items():
                console.print(f"[red]Answer {index + 1}: {result.message}[/red]")
            raise typer.Exit(1)
    else:
        answers = _ask_answers()

    settings = get_settings()
    orchestrator = RequestOrchestrator(create_provider(settings), settings=settings)

    try:
        if stream:
            adapter = StreamAdapter(orchestrator)
            result = asyncio.run(adapter.generate_stream(answers, _print_chunk))
            console.print()
        else:
            with console.status("[bold green]Generating itinerary..."):
                result = orchestrator.generate_sync(answers)
            console.print(result.content, markup=False, highlight=False, soft_wrap=True)
    except GenerationError as e:
        console.print(f"\n[red]{e.message}[/red]")
        if show_trace and e.trace is not None:
            _print_trace(e.trace)
        raise typer.Exit(1)

    console.print(f"\n[bold green]Model:[/bold green] {result.producing_tier.id}")
    if result.tool_invocation_count:
        console.print(f"  Tool invocations: {result.tool_invocation_count}")
    if show_trace:
        _print_trace(result.trace)


@app.command()
def validate(
    index: int = typer.Argument(help=f"Question index, 0 to {ANSWER_COUNT - 1}"),
    text: str = typer.Argument(help="The answer to check"),
    correct: bool = typer.Option(
        False, "--correct", "-c", help="Ask the simplest model for a cleaned-up answer"
    ),
) -> None:
    """Check one answer the way the question flow does."""
    try:
        result = validate_answer(index, text)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(2)

    if result.valid:
        console.print("[green]Valid[/green]")
    else:
        console.print(f"[red]Invalid:[/red] {result.message}")

    if correct:
        settings = get_settings()
        corrector = AnswerCorrector(create_provider(settings), settings=settings)
        suggestion = asyncio.run(corrector.correct(index, text))
        if suggestion:
            console.print(f"[bold]Suggestion:[/bold] {suggestion}")
        else:
            console.print("[dim]No suggestion available[/dim]")

    if not result.valid:
        raise typer.Exit(1)


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Host to bind to"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port to bind to"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload for development"),
) -> None:
    """Start the itinerary HTTP server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.server_host
    port = port or settings.server_port

    console.print(f"[bold green]Starting TripWise server on {host}:{port}[/bold green]")
    console.print("[dim]Endpoint: POST /api/generate-itinerary[/dim]\n")

    uvicorn.run(
        "tripwise.server:app",
        host=host,
        port=port,
        reload=reload,
    )


@app.callback()
def main() -> None:
    """TripWise — travel itineraries from a cascade of LLMs."""


if __name__ == "__main__":
    app()
